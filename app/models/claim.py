from sqlalchemy import BigInteger, Column, ForeignKey, Integer, String, Text, UniqueConstraint

from app.core.config import settings
from app.db.base import Base

SCHEMA = settings.DB_SCHEMA
_prefix = f"{SCHEMA}." if SCHEMA else ""

INTENT_PENDING = "pending"
INTENT_MINTED = "minted"
INTENT_COMMITTED = "committed"
INTENT_FAILED = "failed"
INTENT_ORPHANED = "orphaned"
INTENT_STATUSES = (INTENT_PENDING, INTENT_MINTED, INTENT_COMMITTED, INTENT_FAILED, INTENT_ORPHANED)


class Claim(Base):
    """Model for claims table. Immutable once written.
    Example:
    {
        "id": 4,
        "campaign_id": 1,
        "wallet": "8rN25w5ecRjT3hSLM2gFCQ8rLJiVn4A8L9jtrM7G7f1M",
        "source_address": "0x9f2c...",
        "amount": 3,
        "tx_signature": "5h3k...",
        "mint_address": "9xQe...",
        "created_at": 1760000000
    }
    """

    __tablename__ = "claims"
    __table_args__ = (
        UniqueConstraint("campaign_id", "wallet", name="uq_claim_campaign_wallet"),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey(f"{_prefix}campaigns.id"), nullable=False, index=True)
    wallet = Column(String(64), nullable=False)
    source_address = Column(String(255), nullable=True)
    amount = Column(Integer, nullable=False, default=1)
    tx_signature = Column(String(128), nullable=False)
    mint_address = Column(String(64), nullable=False)
    created_at = Column(BigInteger, nullable=False)


class ClaimIntent(Base):
    """Write-ahead record of a mint attempt.

    Committed before the external mint is called so a mint that never reaches
    the claims table is still visible to operators.
    status: pending -> minted -> committed, or pending -> failed,
    or minted -> orphaned when the final commit does not land.
    """

    __tablename__ = "claim_intents"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey(f"{_prefix}campaigns.id"), nullable=False, index=True)
    wallet = Column(String(64), nullable=False)
    nonce_id = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=INTENT_PENDING, index=True)
    tx_signature = Column(String(128), nullable=True)
    mint_address = Column(String(64), nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
