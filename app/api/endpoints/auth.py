from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import app.schemas.auth as schemas
from app.core.dependencies import AdminContext, get_current_wallet, require_admin
from app.core.errors import AuthError
from app.db.session import get_db
from app.services import nonces, sessions

router = APIRouter()
group_tags: List[str] = ["Auth"]


@router.post(
    "/nonce",
    tags=group_tags,
    response_model=schemas.NonceResponse,
    status_code=status.HTTP_200_OK,
)
def request_nonce(body: schemas.NonceRequest, db: Session = Depends(get_db)) -> schemas.NonceResponse:
    """
    Issue a single-use challenge for a wallet.

    The client signs ``message`` verbatim and sends the signature back together
    with ``nonce`` to /auth/verify, /auth/admin/login or the claim endpoint,
    depending on ``purpose``. Expires after NONCE_EXPIRY_SECONDS.
    """
    record = nonces.issue_nonce(db, body.wallet, body.purpose)
    return schemas.NonceResponse(
        nonce=record.nonce,
        message=nonces.challenge_message(record),
        purpose=record.purpose,
        expires_at=record.expires_at,
    )


@router.post(
    "/verify",
    tags=group_tags,
    response_model=schemas.AuthResponse,
)
def verify_wallet(body: schemas.SignedNonceRequest, db: Session = Depends(get_db)) -> schemas.AuthResponse:
    """Verify a signed login nonce and return an access token."""
    issued = sessions.login_wallet(db, body.wallet, body.nonce, body.signature)
    return schemas.AuthResponse(
        access_token=issued.access_token,
        wallet_address=issued.wallet_address,
        expires_at=issued.expires_at,
    )


@router.get("/me", tags=group_tags)
def current_wallet(wallet_address: str = Depends(get_current_wallet)) -> dict:
    return {"wallet_address": wallet_address}


@router.post(
    "/admin/login",
    tags=group_tags,
    response_model=schemas.AuthResponse,
)
def admin_login(body: schemas.SignedNonceRequest, db: Session = Depends(get_db)) -> schemas.AuthResponse:
    """Exchange a signed admin nonce from an allow-listed wallet for an admin token."""
    issued = sessions.login_admin(db, body.wallet, body.nonce, body.signature)
    return schemas.AuthResponse(
        access_token=issued.access_token,
        wallet_address=issued.wallet_address,
        expires_at=issued.expires_at,
    )


@router.get(
    "/admin/session",
    tags=group_tags,
    response_model=schemas.AdminSessionResponse,
)
def admin_session(admin: AdminContext = Depends(require_admin)) -> schemas.AdminSessionResponse:
    return schemas.AdminSessionResponse(
        wallet_address=admin.wallet,
        expires_at=admin.expires_at or 0,
        auth_enabled=admin.auth_enabled,
    )


@router.post("/admin/logout", tags=group_tags)
def admin_logout(admin: AdminContext = Depends(require_admin), db: Session = Depends(get_db)) -> dict:
    if admin.session is None:
        raise AuthError("No admin session to revoke")
    sessions.revoke_admin_session(db, admin.session)
    return {"ok": True}
