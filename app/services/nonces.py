"""
Wallet challenge nonces.

A nonce moves issued -> used or issued -> expired and never comes back.
verify_nonce() only checks; consume_nonce() flips ``used`` inside the caller's
transaction so the business effect and the consumption commit together.
"""

import logging
import time
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.core.config import settings
from app.core.errors import NonceVerificationError
from app.core.solana_auth import generate_nonce, nonce_message, verify_signature
from app.models.auth import AuthNonce

logger = logging.getLogger(__name__)


def issue_nonce(db: Session, wallet: str, purpose: str, now: Optional[int] = None) -> AuthNonce:
    """Store a fresh nonce for wallet+purpose. Earlier live nonces stay valid."""
    now = int(time.time()) if now is None else now
    record = AuthNonce(
        wallet=wallet,
        nonce=generate_nonce(),
        purpose=purpose,
        used=False,
        created_at=now,
        expires_at=now + settings.NONCE_EXPIRY_SECONDS,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("issued %s nonce for %s", purpose, wallet)
    return record


def challenge_message(record: AuthNonce) -> str:
    return nonce_message(record.nonce)


def find_nonce(db: Session, wallet: str, nonce: str) -> Optional[AuthNonce]:
    """Most recently issued row matching wallet and token."""
    return (
        db.query(AuthNonce)
        .filter(AuthNonce.wallet == wallet, AuthNonce.nonce == nonce)
        .order_by(AuthNonce.id.desc())
        .first()
    )


def verify_nonce(
    db: Session,
    wallet: str,
    nonce: str,
    purpose: str,
    signature: str,
    now: Optional[int] = None,
) -> AuthNonce:
    """
    Check a signed nonce without consuming it.

    Raises NonceVerificationError with the first failing reason, in order:
    not_found, purpose_mismatch, already_used, expired, invalid_signature.
    No state is changed on failure.
    """
    record = find_nonce(db, wallet, nonce)
    if record is None:
        raise _reject(wallet, NonceVerificationError.NOT_FOUND)
    if record.purpose != purpose:
        raise _reject(wallet, NonceVerificationError.PURPOSE_MISMATCH)
    if record.used:
        raise _reject(wallet, NonceVerificationError.ALREADY_USED)

    now = int(time.time()) if now is None else now
    if now > record.expires_at:
        raise _reject(wallet, NonceVerificationError.EXPIRED)

    if not verify_signature(wallet, record.nonce, signature):
        raise _reject(wallet, NonceVerificationError.INVALID_SIGNATURE)
    return record


def consume_nonce(db: Session, record: AuthNonce) -> None:
    """
    Mark the nonce used as part of the caller's unit of work. Does not commit.

    The update is conditional on ``used`` still being false so two requests
    racing on the same nonce cannot both consume it.
    """
    updated = (
        db.query(AuthNonce)
        .filter(AuthNonce.id == record.id, AuthNonce.used.is_(False))
        .update({AuthNonce.used: True}, synchronize_session=False)
    )
    if updated != 1:
        raise _reject(record.wallet, NonceVerificationError.ALREADY_USED)
    set_committed_value(record, "used", True)


def _reject(wallet: str, reason: str) -> NonceVerificationError:
    logger.info("nonce rejected for %s: %s", wallet, reason)
    return NonceVerificationError(reason)
