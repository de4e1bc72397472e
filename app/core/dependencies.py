"""
FastAPI Authentication Dependencies

Usage in endpoints:
    @router.get("/me")
    def me(wallet_address: str = Depends(get_current_wallet)):
        return {"wallet_address": wallet_address}

    @router.post("/campaigns")
    def create(admin: AdminContext = Depends(require_admin)):
        ...

Flow:
1. Client sends Authorization: Bearer <token> (admin tokens may use X-Admin-Token)
2. _extract_token() pulls the raw token out of the headers
3. verify_token() / get_admin_session() validate it
4. The wallet (or admin context) is handed to the route handler

When ADMIN_WALLETS is empty admin auth is disabled and require_admin lets
every request through with a public context.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.errors import AuthError
from app.core.jwt_utils import verify_token
from app.db.session import get_db
from app.models.auth import AdminSession
from app.services.sessions import SCOPE_LOGIN, get_admin_session, is_admin_auth_enabled


@dataclass
class AdminContext:
    wallet: str
    expires_at: Optional[int]
    auth_enabled: bool = True
    session: Optional[AdminSession] = None


def _extract_token(authorization: Optional[str], fallback: Optional[str] = None) -> Optional[str]:
    """
    Extract a token from the Authorization header, or the fallback header value.
    Supports both "Bearer <token>" and plain token formats.
    """
    if authorization and authorization.strip():
        authorization = authorization.strip()
        if authorization.lower().startswith("bearer "):
            token = authorization[7:].strip()
        else:
            token = authorization
        if token:
            return token
    if fallback and fallback.strip():
        return fallback.strip()
    return None


def get_current_wallet(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> str:
    """Wallet address of a login token."""
    token = _extract_token(authorization)
    if not token:
        raise AuthError("Authorization header missing")
    payload = verify_token(token)
    if payload.get("scope") != SCOPE_LOGIN:
        raise AuthError("Invalid token scope")
    return payload["wallet_address"]


def require_admin(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
    db: Session = Depends(get_db),
) -> AdminContext:
    if not is_admin_auth_enabled():
        return AdminContext(wallet="public-access", expires_at=None, auth_enabled=False)

    token = _extract_token(authorization, x_admin_token)
    session = get_admin_session(db, token) if token else None
    if session is None:
        raise AuthError("Admin authentication required")
    return AdminContext(wallet=session.wallet, expires_at=session.expires_at, session=session)
