"""
Campaign lifecycle: creation, the draft -> open -> closed state machine and
the draft-only snapshot replace.

Status gates are enforced with conditional UPDATEs so the database row is the
only synchronization point between concurrent admin requests.
"""

import logging
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import CampaignStateError, ConflictError, NotFoundError, SnapshotValidationError
from app.models.campaign import (
    CAMPAIGN_CLOSED,
    CAMPAIGN_DRAFT,
    CAMPAIGN_OPEN,
    Campaign,
    EntitlementEntry,
)
from app.models.claim import Claim
from app.services.snapshot import SnapshotRow

logger = logging.getLogger(__name__)

# the only legal forward step out of each status
_NEXT_STATUS = {CAMPAIGN_DRAFT: CAMPAIGN_OPEN, CAMPAIGN_OPEN: CAMPAIGN_CLOSED}
_PREVIOUS_STATUS = {target: source for source, target in _NEXT_STATUS.items()}


def get_campaign(db: Session, slug: str) -> Campaign:
    campaign = db.query(Campaign).filter(Campaign.slug == slug).first()
    if campaign is None:
        raise NotFoundError("Campaign not found")
    return campaign


def create_campaign(
    db: Session,
    name: str,
    slug: str,
    description: str,
    symbol: str,
    metadata_uri: Optional[str] = None,
) -> Campaign:
    campaign = Campaign(
        name=name,
        slug=slug,
        description=description,
        symbol=symbol,
        metadata_uri=metadata_uri,
        status=CAMPAIGN_DRAFT,
        total_snapshot_count=0,
        created_at=int(time.time()),
    )
    db.add(campaign)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Campaign slug already exists")
    db.refresh(campaign)
    logger.info("created campaign %s", slug)
    return campaign


def require_draft(campaign: Campaign) -> None:
    """Fail fast on snapshot uploads to a campaign that already left draft."""
    if campaign.status != CAMPAIGN_DRAFT:
        raise CampaignStateError(
            "Snapshot can only be uploaded while the campaign is in draft",
            expected=CAMPAIGN_DRAFT,
            actual=campaign.status,
        )


def replace_snapshot(db: Session, campaign: Campaign, rows: List[SnapshotRow]) -> int:
    """
    Replace every entitlement of ``campaign`` with ``rows`` in one transaction.

    The draft gate is checked by the same transaction that writes the rows, so
    a concurrent open cannot slip between the check and the write.
    """
    now = int(time.time())
    slug = campaign.slug
    gated = (
        db.query(Campaign)
        .filter(Campaign.id == campaign.id, Campaign.status == CAMPAIGN_DRAFT)
        .update({Campaign.total_snapshot_count: len(rows)}, synchronize_session=False)
    )
    if gated != 1:
        db.rollback()
        db.refresh(campaign)
        require_draft(campaign)

    db.query(EntitlementEntry).filter(EntitlementEntry.campaign_id == campaign.id).delete(
        synchronize_session=False
    )
    db.add_all(
        EntitlementEntry(
            campaign_id=campaign.id,
            source_address=row.evm_address,
            wallet=row.solana_wallet,
            amount=row.amount,
            created_at=now,
        )
        for row in rows
    )
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise SnapshotValidationError(f"Snapshot sync failed: {e.orig}")
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("snapshot replace failed for %s", slug)
        raise SnapshotValidationError(f"Snapshot sync failed: {e}")
    db.refresh(campaign)
    logger.info("replaced snapshot for %s with %d entries", campaign.slug, len(rows))
    return len(rows)


def transition_status(db: Session, campaign: Campaign, target: str) -> Campaign:
    """
    Move the campaign forward: draft -> open (needs at least one entitlement)
    or open -> closed. Requesting the current status is a no-op.
    """
    current = campaign.status
    if target == current:
        return campaign
    if _NEXT_STATUS.get(current) != target:
        raise CampaignStateError(
            f"Cannot move campaign from {current} to {target}",
            expected=_PREVIOUS_STATUS.get(target),
            actual=current,
        )

    query = db.query(Campaign).filter(Campaign.id == campaign.id, Campaign.status == current)
    if target == CAMPAIGN_OPEN:
        query = query.filter(Campaign.total_snapshot_count >= 1)
    updated = query.update({Campaign.status: target}, synchronize_session=False)

    if updated != 1:
        db.rollback()
        db.refresh(campaign)
        if campaign.status == current and target == CAMPAIGN_OPEN:
            raise ConflictError(
                "Upload a snapshot before opening the campaign",
                total_snapshot_count=campaign.total_snapshot_count,
            )
        raise CampaignStateError(
            f"Cannot move campaign from {campaign.status} to {target}",
            expected=current,
            actual=campaign.status,
        )

    db.commit()
    db.refresh(campaign)
    logger.info("campaign %s moved %s -> %s", campaign.slug, current, target)
    return campaign


def count_claims(db: Session, campaign_id: int) -> int:
    return db.query(func.count(Claim.id)).filter(Claim.campaign_id == campaign_id).scalar() or 0


def campaign_stats(db: Session, campaign: Campaign) -> Dict:
    total = campaign.total_snapshot_count
    claimed_at = [
        created_at
        for (created_at,) in db.query(Claim.created_at).filter(Claim.campaign_id == campaign.id)
    ]
    claimed = len(claimed_at)
    per_day = Counter(
        datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d") for ts in claimed_at
    )
    return {
        "total": total,
        "claimed": claimed,
        "remaining": max(0, total - claimed),
        "progress": round(claimed / total * 100, 2) if total > 0 else 0.0,
        "claim_history": [{"date": day, "value": per_day[day]} for day in sorted(per_day)],
    }
