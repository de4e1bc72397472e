"""
Solana Wallet Authentication Utilities

This module handles the wallet-side cryptography of the challenge/response flow.

Authentication Flow:
1. Backend generates a random nonce -> generate_nonce()
2. Frontend signs nonce_message(nonce) with the wallet (signMessage)
3. Frontend sends: wallet, nonce, signature
4. Backend verifies: verify_signature()
   - The wallet address is the base58 encoding of its ED25519 public key,
     so no separate public key is sent
   - Verifies the ED25519 signature over the exact challenge bytes

The signature verification uses:
- ED25519 cryptography (Solana's signature algorithm)
- base58 for wallet addresses and wallet-produced signatures
"""

import base64
import binascii
import secrets
from typing import Optional

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from app.core.config import settings


PUBLIC_KEY_NUM_BYTES = 32
SIGNATURE_NUM_BYTES = 64


def generate_nonce(num_bytes: int = settings.NONCE_NUM_BYTES) -> str:
    """
    Generate a cryptographically secure random nonce for wallet authentication.

    The token is URL-safe so it can travel in query strings and JSON unchanged.
    """
    if num_bytes <= 0:
        num_bytes = 18
    return secrets.token_urlsafe(num_bytes)


def nonce_message(nonce: str, app_name: str = settings.APP_NAME) -> str:
    """The exact challenge string the wallet must sign."""
    return f"{app_name} nonce: {nonce}"


def decode_wallet_address(value: str) -> Optional[bytes]:
    """Return the 32 public key bytes of a base58 wallet address, or None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None
    try:
        raw = base58.b58decode(value)
    except ValueError:
        return None
    if len(raw) != PUBLIC_KEY_NUM_BYTES:
        return None
    return raw


def normalize_wallet_address(value: str) -> Optional[str]:
    """
    Canonical base58 form of a wallet address.

    Decoding and re-encoding drops whitespace and any leading-zero ambiguity.
    Returns None when the value is not a valid public key.
    """
    raw = decode_wallet_address(value)
    if raw is None:
        return None
    return base58.b58encode(raw).decode("ascii")


def _decode_base64(value: str) -> bytes:
    return base64.b64decode(value, validate=True)


def decode_signature(value: str) -> bytes:
    """
    Decode a detached signature.

    Solana wallets usually hand back base58, some adapters send hex or base64,
    so all three are accepted. Only 64 byte results are considered.
    """
    value = value.strip()
    decoders = (base58.b58decode, binascii.unhexlify, _decode_base64)
    for decode in decoders:
        try:
            raw = decode(value)
        except (binascii.Error, ValueError):
            continue
        if len(raw) == SIGNATURE_NUM_BYTES:
            return raw
    raise ValueError("Signature must be a base58, hex or base64 encoded ED25519 signature")


def verify_signature(wallet: str, nonce: str, signature: str) -> bool:
    """
    Verify that ``signature`` was produced by ``wallet`` over nonce_message(nonce).

    Pure function, never raises for malformed input; any decoding problem is a
    failed verification.
    """
    public_key_bytes = decode_wallet_address(wallet)
    if public_key_bytes is None:
        return False
    try:
        signature_bytes = decode_signature(signature)
    except ValueError:
        return False

    message_bytes = nonce_message(nonce).encode("utf-8")
    try:
        Ed25519PublicKey.from_public_bytes(public_key_bytes).verify(signature_bytes, message_bytes)
    except (InvalidSignature, ValueError):
        return False
    return True
