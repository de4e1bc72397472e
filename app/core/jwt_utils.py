"""
JWT Token Utilities

This module handles JSON Web Token (JWT) creation and verification for wallet sessions.
After a wallet proves ownership of a login or admin nonce, this module creates a JWT token
that can be used for subsequent authenticated API requests.

Flow:
1. Wallet verifies a nonce signature -> create_access_token() generates JWT
2. Client sends the JWT in the Authorization header -> verify_token() validates it
3. Protected endpoints use the dependencies in dependencies.py to extract the wallet

The JWT contains:
- wallet_address: The authenticated Solana wallet address
- scope: "login" or "admin"
- iat / exp: Issued at and expiration timestamps
- jti: Session id (admin tokens only, references admin_sessions)
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from app.core.config import settings
from app.core.errors import AuthError


def create_access_token(
    wallet_address: str,
    extra_claims: Optional[Dict[str, Any]] = None,
    expires_in_seconds: Optional[int] = None,
) -> str:
    """
    Create a JWT access token for an authenticated wallet address.

    Args:
        wallet_address: The Solana wallet address that was verified
        extra_claims: Optional additional claims to include in the JWT payload
        expires_in_seconds: Lifetime override, defaults to ACCESS_TOKEN_EXPIRE_SECONDS

    Raises:
        ValueError: If wallet_address is empty
    """
    if not wallet_address:
        raise ValueError("wallet_address is required")

    lifetime = expires_in_seconds or settings.ACCESS_TOKEN_EXPIRE_SECONDS
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "wallet_address": wallet_address,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=lifetime)).timestamp()),
    }
    if extra_claims:
        payload.update(extra_claims)

    return jwt.encode(payload, settings.ENCODE_KEY, algorithm=settings.ENCODE_ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        AuthError: If token is missing, expired, invalid, or missing wallet_address
    """
    if not token:
        raise AuthError("Missing token")

    try:
        payload = jwt.decode(token, settings.ENCODE_KEY, algorithms=[settings.ENCODE_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")

    if "wallet_address" not in payload:
        raise AuthError("Invalid token payload")

    return payload
