from typing import List, Optional

import base58
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from app.core.solana_auth import nonce_message
from app.services.minting import MintResult, MintServiceError


class SigningWallet:
    """Ed25519 keypair standing in for a browser wallet."""

    def __init__(self) -> None:
        self._key = Ed25519PrivateKey.generate()
        raw = self._key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self.address = base58.b58encode(raw).decode("ascii")

    def sign(self, message: str) -> str:
        return base58.b58encode(self._key.sign(message.encode("utf-8"))).decode("ascii")

    def sign_nonce(self, nonce: str) -> str:
        return self.sign(nonce_message(nonce))


class FakeMinter:
    """Records mint calls and hands out sequential ids."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[dict] = []
        self.before_return = None

    def mint(self, owner_wallet: str, metadata_uri: str, name: str, symbol: str) -> MintResult:
        self.calls.append(
            {"owner_wallet": owner_wallet, "metadata_uri": metadata_uri, "name": name, "symbol": symbol}
        )
        if self.fail:
            raise MintServiceError("mint service unavailable")
        result = MintResult(
            tx_signature=f"tx-{len(self.calls)}-{owner_wallet[:6]}",
            mint_address=f"mint-{len(self.calls)}-{owner_wallet[:6]}",
        )
        if self.before_return is not None:
            self.before_return(owner_wallet, result)
        return result


def csv_text(header: str, rows: List[str], trailer: Optional[str] = None) -> str:
    lines = [header, *rows]
    if trailer:
        lines.append(trailer)
    return "\n".join(lines) + "\n"
