"""
Client for the external minting service.

The mint is the one non-idempotent, network-bound step of a claim. It is
attempted at most once per claim request and always with a timeout.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import requests

from app.core.config import settings

logger = logging.getLogger(__name__)

_TX_KEYS = ("transaction_id", "tx_signature", "txSignature", "signature")
_ASSET_KEYS = ("asset_id", "mint_address", "mintAddress", "mint")


class MintServiceError(Exception):
    """The minting service failed or answered with something unusable."""


@dataclass
class MintResult:
    tx_signature: str
    mint_address: str


class Minter(Protocol):
    def mint(self, owner_wallet: str, metadata_uri: str, name: str, symbol: str) -> MintResult:
        ...


def _first_str(payload: Dict[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def mint_result_from_payload(payload: Any) -> MintResult:
    """Map a minting service response onto MintResult."""
    if not isinstance(payload, dict):
        raise MintServiceError(f"Unexpected mint response type: {type(payload).__name__}")
    if isinstance(payload.get("data"), dict):
        payload = payload["data"]

    tx_signature = _first_str(payload, _TX_KEYS)
    mint_address = _first_str(payload, _ASSET_KEYS)
    if not tx_signature or not mint_address:
        raise MintServiceError("Mint response is missing the transaction or asset id")
    return MintResult(tx_signature=tx_signature, mint_address=mint_address)


class HttpMinter:
    """POSTs mint requests to MINT_SERVICE_URL."""

    def __init__(self, url: str, api_key: Optional[str] = None, timeout: float = 60.0) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    def mint(self, owner_wallet: str, metadata_uri: str, name: str, symbol: str) -> MintResult:
        body = {
            "owner_wallet": owner_wallet,
            "uri": metadata_uri,
            "name": name,
            "symbol": symbol,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = requests.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise MintServiceError(f"Mint request failed: {e}") from e

        if response.status_code not in (200, 201):
            raise MintServiceError(f"Mint failed: {response.status_code} {response.text[:200]}")
        try:
            payload = response.json()
        except ValueError as e:
            raise MintServiceError("Mint response is not JSON") from e

        result = mint_result_from_payload(payload)
        logger.info("minted %s for %s in tx %s", result.mint_address, owner_wallet, result.tx_signature)
        return result


def get_minter() -> Minter:
    return HttpMinter(
        settings.MINT_SERVICE_URL,
        api_key=settings.MINT_SERVICE_API_KEY,
        timeout=settings.MINT_TIMEOUT_SECONDS,
    )
