"""
Wallet login and admin sessions built on top of the nonce authenticator.

Both flows consume their nonce in the same commit that produces the session,
so a verified nonce can never be replayed for a second token.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional, Set

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AdminForbiddenError, AuthError
from app.core.jwt_utils import create_access_token, verify_token
from app.core.solana_auth import normalize_wallet_address
from app.models.auth import PURPOSE_ADMIN, PURPOSE_LOGIN, AdminSession
from app.services.nonces import consume_nonce, verify_nonce

logger = logging.getLogger(__name__)

SCOPE_LOGIN = "login"
SCOPE_ADMIN = "admin"


@dataclass
class IssuedToken:
    access_token: str
    wallet_address: str
    expires_at: int


def admin_wallet_set() -> Set[str]:
    wallets = set()
    for entry in settings.admin_wallets():
        normalized = normalize_wallet_address(entry)
        if normalized:
            wallets.add(normalized.lower())
    return wallets


def is_admin_auth_enabled() -> bool:
    return len(admin_wallet_set()) > 0


def is_admin_wallet(wallet: str) -> bool:
    normalized = normalize_wallet_address(wallet)
    if normalized is None:
        return False
    return normalized.lower() in admin_wallet_set()


def login_wallet(db: Session, wallet: str, nonce: str, signature: str) -> IssuedToken:
    record = verify_nonce(db, wallet, nonce, PURPOSE_LOGIN, signature)
    consume_nonce(db, record)
    db.commit()

    expires_at = int(time.time()) + settings.ACCESS_TOKEN_EXPIRE_SECONDS
    token = create_access_token(wallet, extra_claims={"scope": SCOPE_LOGIN})
    logger.info("wallet login for %s", wallet)
    return IssuedToken(access_token=token, wallet_address=wallet, expires_at=expires_at)


def login_admin(db: Session, wallet: str, nonce: str, signature: str) -> IssuedToken:
    """Exchange a signed admin nonce for an admin session token."""
    if not is_admin_wallet(wallet):
        raise AdminForbiddenError("Wallet is not an admin")

    record = verify_nonce(db, wallet, nonce, PURPOSE_ADMIN, signature)

    lifetime = settings.ADMIN_SESSION_HOURS * 3600
    now = int(time.time())
    session = AdminSession(
        wallet=wallet,
        token_id=uuid.uuid4().hex,
        created_at=now,
        expires_at=now + lifetime,
        revoked=False,
    )
    db.add(session)
    consume_nonce(db, record)
    db.commit()

    token = create_access_token(
        wallet,
        extra_claims={"scope": SCOPE_ADMIN, "jti": session.token_id},
        expires_in_seconds=lifetime,
    )
    logger.info("admin session opened for %s", wallet)
    return IssuedToken(access_token=token, wallet_address=wallet, expires_at=session.expires_at)


def get_admin_session(db: Session, token: str) -> Optional[AdminSession]:
    """Live, unrevoked session for an admin token whose wallet is still allow-listed."""
    try:
        payload = verify_token(token)
    except AuthError:
        return None
    if payload.get("scope") != SCOPE_ADMIN or not payload.get("jti"):
        return None

    session = (
        db.query(AdminSession)
        .filter(AdminSession.token_id == payload["jti"])
        .order_by(AdminSession.id.desc())
        .first()
    )
    if session is None or session.revoked:
        return None
    if session.expires_at < int(time.time()):
        return None
    if not is_admin_wallet(session.wallet):
        return None
    return session


def revoke_admin_session(db: Session, session: AdminSession) -> None:
    session.revoked = True
    db.commit()
    logger.info("admin session revoked for %s", session.wallet)
