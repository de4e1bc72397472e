"""
Snapshot merging: turns untrusted address sources into one deduplicated
entitlement list.

Sources:
- combined CSV: evm_address,solana_wallet[,amount]
- split CSV pair: CSV-A evm_address[,amount] joined on evm_address with
  CSV-B evm_address,solana_wallet
- manual wallet list: array, JSON array string or free text

Duplicates are resolved first-wins everywhere. Wallet comparison is case
insensitive and output order follows first occurrence across
[csv rows..., manual wallets...].
"""

import io
import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from app.core.errors import SnapshotValidationError
from app.core.solana_auth import normalize_wallet_address
from app.models.campaign import MANUAL_ENTRY_SOURCE

logger = logging.getLogger(__name__)

COMBINED_HEADERS = ("evm_address", "solana_wallet", "amount")
AMOUNT_HEADERS = ("evm_address", "amount")
WALLET_HEADERS = ("evm_address", "solana_wallet")

_MANUAL_SPLIT = re.compile(r"[\r\n,;]+")
_AMOUNT_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")

# entitlement_entries.amount and claims.amount are 32-bit INTEGER columns
MAX_AMOUNT = 2**31 - 1


@dataclass
class SnapshotRow:
    evm_address: str
    solana_wallet: str
    amount: int = 1


@dataclass
class SplitMergeResult:
    rows: List[SnapshotRow]
    matched: int = 0
    unmatched_a: int = 0
    unmatched_b: int = 0
    duplicates_ignored: int = 0


@dataclass
class SnapshotMergeResult:
    rows: List[SnapshotRow]
    csv_provided: int = 0
    manual_provided: int = 0
    manual_inserted: int = 0
    duplicates_ignored: int = 0
    invalid_entries: List[str] = field(default_factory=list)


@dataclass
class SnapshotBuild:
    """Everything an upload reports back, plus the rows to persist."""

    rows: List[SnapshotRow]
    matched: int = 0
    unmatched_a: int = 0
    unmatched_b: int = 0
    csv_provided: int = 0
    manual_provided: int = 0
    manual_inserted: int = 0
    duplicates_ignored: int = 0
    invalid_entries: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# CSV parsing
# ---------------------------------------------------------------------------


def _read_csv(text: Optional[str], required: Iterable[str], source: str) -> pd.DataFrame:
    if not text or not text.strip():
        raise SnapshotValidationError("CSV content is empty", source=source)
    try:
        frame = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise SnapshotValidationError(f"CSV could not be parsed: {e}", source=source)

    frame.columns = [str(column).strip() for column in frame.columns]
    missing = [column for column in required if column not in frame.columns]
    if missing:
        raise SnapshotValidationError(
            f"CSV headers must include: {','.join(required)} (missing {','.join(missing)})",
            source=source,
        )
    # short rows come back as NaN even with keep_default_na=False
    frame = frame.fillna("")
    for column in frame.columns:
        frame[column] = frame[column].astype(str).str.strip()
    return frame


def _records(frame: pd.DataFrame) -> Iterable[Tuple[int, Dict[str, str]]]:
    # row 1 is the header
    for idx, record in enumerate(frame.to_dict("records")):
        yield idx + 2, record


def _parse_amount(raw: Optional[str], row: int, source: str) -> int:
    if raw is None or raw == "":
        return 1
    if not _AMOUNT_PATTERN.match(raw):
        raise SnapshotValidationError(f"Row {row} has invalid amount", row=row, source=source)
    amount = float(raw)
    if not math.isfinite(amount) or amount < 1 or amount >= MAX_AMOUNT + 1:
        raise SnapshotValidationError(f"Row {row} has invalid amount", row=row, source=source)
    return int(math.floor(amount))


def _parse_source_address(raw: Optional[str], row: int, source: str) -> str:
    if not raw:
        raise SnapshotValidationError(f"Row {row} missing evm_address", row=row, source=source)
    return raw.lower()


def _parse_wallet(raw: Optional[str], row: int, source: str) -> str:
    if not raw:
        raise SnapshotValidationError(f"Row {row} missing solana_wallet", row=row, source=source)
    wallet = normalize_wallet_address(raw)
    if wallet is None:
        raise SnapshotValidationError(f"Row {row} has invalid solana_wallet", row=row, source=source)
    return wallet


def parse_snapshot_csv(text: str, source: str = "csv") -> List[SnapshotRow]:
    """Parse a combined evm_address,solana_wallet,amount CSV. Any bad row fails the whole file."""
    frame = _read_csv(text, COMBINED_HEADERS[:2], source)
    rows = []
    for row, record in _records(frame):
        rows.append(
            SnapshotRow(
                evm_address=_parse_source_address(record.get("evm_address"), row, source),
                solana_wallet=_parse_wallet(record.get("solana_wallet"), row, source),
                amount=_parse_amount(record.get("amount"), row, source),
            )
        )
    return rows


def parse_amounts_csv(text: str, source: str = "csv_a") -> List[Tuple[str, int]]:
    """Parse CSV-A: evm_address,amount."""
    frame = _read_csv(text, AMOUNT_HEADERS[:1], source)
    return [
        (
            _parse_source_address(record.get("evm_address"), row, source),
            _parse_amount(record.get("amount"), row, source),
        )
        for row, record in _records(frame)
    ]


def parse_wallets_csv(text: str, source: str = "csv_b") -> List[Tuple[str, str]]:
    """Parse CSV-B: evm_address,solana_wallet."""
    frame = _read_csv(text, WALLET_HEADERS, source)
    return [
        (
            _parse_source_address(record.get("evm_address"), row, source),
            _parse_wallet(record.get("solana_wallet"), row, source),
        )
        for row, record in _records(frame)
    ]


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def merge_split_snapshot(
    amount_rows: List[Tuple[str, int]], wallet_rows: List[Tuple[str, str]]
) -> SplitMergeResult:
    """Join CSV-A amounts with CSV-B wallets on the source address."""
    duplicates = 0

    amounts: Dict[str, int] = {}
    for address, amount in amount_rows:
        if address in amounts:
            duplicates += 1
            continue
        amounts[address] = amount

    wallets: Dict[str, str] = {}
    for address, wallet in wallet_rows:
        if address in wallets:
            duplicates += 1
            continue
        wallets[address] = wallet

    rows: List[SnapshotRow] = []
    seen = set()
    matched = 0
    for address, amount in amounts.items():
        wallet = wallets.get(address)
        if wallet is None:
            continue
        matched += 1
        key = wallet.lower()
        if key in seen:
            duplicates += 1
            continue
        seen.add(key)
        rows.append(SnapshotRow(evm_address=address, solana_wallet=wallet, amount=amount))

    return SplitMergeResult(
        rows=rows,
        matched=matched,
        unmatched_a=sum(1 for address in amounts if address not in wallets),
        unmatched_b=sum(1 for address in wallets if address not in amounts),
        duplicates_ignored=duplicates,
    )


def _split_entries(value: str) -> List[str]:
    return [entry.strip() for entry in _MANUAL_SPLIT.split(value) if entry.strip()]


def parse_manual_addresses(value: Any) -> List[str]:
    """Accepts a list, a JSON array embedded in a string, or newline/comma/semicolon separated text."""
    if isinstance(value, (list, tuple)):
        return [entry for item in value for entry in _split_entries(str(item))]
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return []
        if trimmed.startswith("[") and trimmed.endswith("]"):
            try:
                parsed = json.loads(trimmed)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return [entry for item in parsed for entry in _split_entries(str(item))]
        return _split_entries(trimmed)
    return []


def _merge_wallets(wallets: List[str]) -> Tuple[List[str], List[str], int]:
    merged: List[str] = []
    invalid: List[str] = []
    duplicates = 0
    seen = set()
    for raw in wallets:
        normalized = normalize_wallet_address(raw)
        if normalized is None:
            if raw.strip():
                invalid.append(raw.strip())
            continue
        key = normalized.lower()
        if key in seen:
            duplicates += 1
            continue
        seen.add(key)
        merged.append(normalized)
    return merged, invalid, duplicates


def merge_snapshot_rows(csv_rows: List[SnapshotRow], manual_input: Any = None) -> SnapshotMergeResult:
    """
    Merge csv-derived rows with manual wallets.

    CSV rows win over manual wallets for the same wallet; wallets only present
    in the manual list get a sentinel source address and amount 1.
    """
    manual_addresses = parse_manual_addresses(manual_input)
    merged, invalid, duplicates = _merge_wallets(
        [row.solana_wallet for row in csv_rows] + manual_addresses
    )

    csv_by_wallet: Dict[str, SnapshotRow] = {}
    for row in csv_rows:
        csv_by_wallet.setdefault(row.solana_wallet.lower(), row)

    rows: List[SnapshotRow] = []
    manual_inserted = 0
    for wallet in merged:
        from_csv = csv_by_wallet.get(wallet.lower())
        if from_csv is not None:
            rows.append(from_csv)
        else:
            manual_inserted += 1
            rows.append(SnapshotRow(evm_address=MANUAL_ENTRY_SOURCE, solana_wallet=wallet, amount=1))

    return SnapshotMergeResult(
        rows=rows,
        csv_provided=len(csv_rows),
        manual_provided=len(manual_addresses),
        manual_inserted=manual_inserted,
        duplicates_ignored=duplicates,
        invalid_entries=invalid,
    )


def build_snapshot(
    csv: Optional[str] = None,
    csv_a: Optional[str] = None,
    csv_b: Optional[str] = None,
    manual_addresses: Any = None,
) -> SnapshotBuild:
    """
    Resolve every provided source into the final entitlement rows.

    Raises SnapshotValidationError for malformed input or when nothing is left
    to persist.
    """
    has_csv = bool(csv and csv.strip())
    has_a = bool(csv_a and csv_a.strip())
    has_b = bool(csv_b and csv_b.strip())
    has_manual = bool(parse_manual_addresses(manual_addresses))

    if not (has_csv or has_a or has_b or has_manual):
        raise SnapshotValidationError("Provide csv, csv_a and csv_b, or manual_addresses")

    split: Optional[SplitMergeResult] = None
    if has_csv:
        csv_rows = parse_snapshot_csv(csv)
    elif has_a or has_b:
        if not (has_a and has_b):
            raise SnapshotValidationError("csv_a and csv_b must be provided together")
        split = merge_split_snapshot(parse_amounts_csv(csv_a), parse_wallets_csv(csv_b))
        csv_rows = split.rows
    else:
        csv_rows = []

    merged = merge_snapshot_rows(csv_rows, manual_addresses)
    if not merged.rows:
        raise SnapshotValidationError("Snapshot is empty after merging, nothing to persist")

    result = SnapshotBuild(
        rows=merged.rows,
        csv_provided=merged.csv_provided,
        manual_provided=merged.manual_provided,
        manual_inserted=merged.manual_inserted,
        duplicates_ignored=merged.duplicates_ignored,
        invalid_entries=merged.invalid_entries,
    )
    if split is not None:
        result.matched = split.matched
        result.unmatched_a = split.unmatched_a
        result.unmatched_b = split.unmatched_b
        result.duplicates_ignored += split.duplicates_ignored

    logger.info(
        "snapshot built: rows=%d csv=%d manual=%d manual_inserted=%d duplicates=%d invalid=%d",
        len(result.rows),
        result.csv_provided,
        result.manual_provided,
        result.manual_inserted,
        result.duplicates_ignored,
        len(result.invalid_entries),
    )
    return result
