from sqlalchemy import BigInteger, Boolean, Column, Index, Integer, String

from app.core.config import settings
from app.db.base import Base

SCHEMA = settings.DB_SCHEMA

PURPOSE_CLAIM = "claim"
PURPOSE_LOGIN = "login"
PURPOSE_ADMIN = "admin"
NONCE_PURPOSES = (PURPOSE_CLAIM, PURPOSE_LOGIN, PURPOSE_ADMIN)


class AuthNonce(Base):
    """Model for storing wallet challenge nonces. Rows are never deleted."""

    __tablename__ = "auth_nonces"
    __table_args__ = (
        Index("idx_nonce_wallet", "wallet", "nonce"),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet = Column(String(64), nullable=False)
    nonce = Column(String(128), nullable=False)
    purpose = Column(String(16), nullable=False, default=PURPOSE_CLAIM)
    used = Column(Boolean, nullable=False, default=False)
    created_at = Column(BigInteger, nullable=False)
    expires_at = Column(BigInteger, nullable=False)


class AdminSession(Base):
    """Admin session referenced by the jti claim of an admin token."""

    __tablename__ = "admin_sessions"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet = Column(String(64), nullable=False)
    token_id = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(BigInteger, nullable=False)
    expires_at = Column(BigInteger, nullable=False)
    revoked = Column(Boolean, nullable=False, default=False)
