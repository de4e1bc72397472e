from sqlalchemy import BigInteger, Column, ForeignKey, Integer, String, Text, UniqueConstraint

from app.core.config import settings
from app.db.base import Base

SCHEMA = settings.DB_SCHEMA
_prefix = f"{SCHEMA}." if SCHEMA else ""

CAMPAIGN_DRAFT = "draft"
CAMPAIGN_OPEN = "open"
CAMPAIGN_CLOSED = "closed"
CAMPAIGN_STATUSES = (CAMPAIGN_DRAFT, CAMPAIGN_OPEN, CAMPAIGN_CLOSED)

# source address recorded for wallets that only came from the manual list
MANUAL_ENTRY_SOURCE = "manual_entry"


class Campaign(Base):
    """Model for campaigns table
    Example:
    {
        "id": 1,
        "name": "Community Revival Demo",
        "slug": "community-revival-demo",
        "description": "Demo migration campaign",
        "symbol": "REVIVE",
        "metadata_uri": null,
        "status": "draft",
        "total_snapshot_count": 120,
        "created_at": 1760000000
    }
    """

    __tablename__ = "campaigns"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False)
    symbol = Column(String(10), nullable=False)
    metadata_uri = Column(Text, nullable=True)  # falls back to settings.METADATA_URI
    status = Column(String(16), nullable=False, default=CAMPAIGN_DRAFT)  # draft, open, closed
    total_snapshot_count = Column(Integer, nullable=False, default=0)
    created_at = Column(BigInteger, nullable=False)

    @property
    def display_name(self) -> str:
        return f"{self.name} Revival Pass"

    @property
    def resolved_metadata_uri(self) -> str:
        return self.metadata_uri or settings.METADATA_URI


class EntitlementEntry(Base):
    """Model for entitlement_entries table, one row per eligible wallet per campaign
    Example:
    {
        "id": 10,
        "campaign_id": 1,
        "source_address": "0x9f2c...",
        "wallet": "8rN25w5ecRjT3hSLM2gFCQ8rLJiVn4A8L9jtrM7G7f1M",
        "amount": 3,
        "created_at": 1760000000
    }
    """

    __tablename__ = "entitlement_entries"
    __table_args__ = (
        UniqueConstraint("campaign_id", "wallet", name="uq_entitlement_campaign_wallet"),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey(f"{_prefix}campaigns.id"), nullable=False, index=True)
    source_address = Column(String(255), nullable=False)  # lowercase evm address or "manual_entry"
    wallet = Column(String(64), nullable=False)  # canonical base58
    amount = Column(Integer, nullable=False, default=1)
    created_at = Column(BigInteger, nullable=False)
