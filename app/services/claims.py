"""
Claim coordinator: at most one successful mint per (campaign, wallet).

Order of operations for claim():
1. existing claim -> return it as idempotent, before the nonce is looked at
2. campaign must be open
3. claim nonce must verify (nothing is written on failure)
4. wallet must be in the snapshot
5. write-ahead intent, then the external mint (nonce stays unused on failure)
6. claim insert + nonce consumption + intent update in one commit
7. unique violation on commit -> a concurrent request won, return its claim

The unique constraint on claims(campaign_id, wallet) is the only arbiter when
two requests race; no in-process locking is used.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    CampaignStateError,
    ClaimPersistenceError,
    MintError,
    NonceVerificationError,
    NotEligibleError,
)
from app.models.auth import PURPOSE_CLAIM, AuthNonce
from app.models.campaign import CAMPAIGN_OPEN, Campaign, EntitlementEntry
from app.models.claim import (
    INTENT_COMMITTED,
    INTENT_FAILED,
    INTENT_MINTED,
    INTENT_ORPHANED,
    INTENT_PENDING,
    Claim,
    ClaimIntent,
)
from app.services.minting import Minter, MintResult
from app.services.nonces import consume_nonce, verify_nonce

logger = logging.getLogger(__name__)


@dataclass
class ClaimOutcome:
    claim: Claim
    idempotent: bool

    def to_response(self) -> Dict:
        return {
            "idempotent": self.idempotent,
            "tx_signature": self.claim.tx_signature,
            "mint_address": self.claim.mint_address,
            "explorer": settings.explorer_tx_url(self.claim.tx_signature),
        }


def find_claim(db: Session, campaign_id: int, wallet: str) -> Optional[Claim]:
    return db.query(Claim).filter(Claim.campaign_id == campaign_id, Claim.wallet == wallet).first()


def find_entitlement(db: Session, campaign_id: int, wallet: str) -> Optional[EntitlementEntry]:
    return (
        db.query(EntitlementEntry)
        .filter(
            EntitlementEntry.campaign_id == campaign_id,
            func.lower(EntitlementEntry.wallet) == wallet.lower(),
        )
        .first()
    )


def check_eligibility(db: Session, campaign: Campaign, wallet: str) -> Dict:
    """Eligibility is answered in every campaign status, alongside that status."""
    entry = find_entitlement(db, campaign.id, wallet)
    existing = find_claim(db, campaign.id, wallet)
    return {
        "eligible": entry is not None,
        "amount": entry.amount if entry else 0,
        "evm_address": entry.source_address if entry else None,
        "status": campaign.status,
        "claim_open": campaign.status == CAMPAIGN_OPEN,
        "already_claimed": existing is not None,
        "existing_claim": (
            {
                "tx_signature": existing.tx_signature,
                "mint_address": existing.mint_address,
                "explorer": settings.explorer_tx_url(existing.tx_signature),
            }
            if existing
            else None
        ),
    }


def _set_intent(
    intent: ClaimIntent,
    status: str,
    minted: Optional[MintResult] = None,
    error: Optional[str] = None,
) -> None:
    intent.status = status
    intent.updated_at = int(time.time())
    if minted is not None:
        intent.tx_signature = minted.tx_signature
        intent.mint_address = minted.mint_address
    if error is not None:
        intent.error = error[:1000]


def _record_intent(db: Session, campaign: Campaign, wallet: str, nonce: AuthNonce) -> ClaimIntent:
    now = int(time.time())
    intent = ClaimIntent(
        campaign_id=campaign.id,
        wallet=wallet,
        nonce_id=nonce.id,
        status=INTENT_PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(intent)
    db.commit()
    return intent


def _mark_orphaned(db: Session, intent: ClaimIntent, wallet: str, minted: MintResult, reason: str) -> None:
    # the log line is the last record of the mint ids if this commit fails too
    logger.error(
        "orphaned mint %s (tx %s) for %s: %s",
        minted.mint_address,
        minted.tx_signature,
        wallet,
        reason,
    )
    try:
        _set_intent(intent, INTENT_ORPHANED, minted, error=reason)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("could not record orphaned mint %s", minted.mint_address)


def claim(
    db: Session,
    campaign: Campaign,
    wallet: str,
    nonce: Optional[str],
    signature: Optional[str],
    minter: Minter,
    now: Optional[int] = None,
) -> ClaimOutcome:
    existing = find_claim(db, campaign.id, wallet)
    if existing is not None:
        return ClaimOutcome(existing, idempotent=True)

    if campaign.status != CAMPAIGN_OPEN:
        raise CampaignStateError(
            "Campaign is not open for claims", expected=CAMPAIGN_OPEN, actual=campaign.status
        )

    if not nonce or not signature:
        raise NonceVerificationError(NonceVerificationError.NOT_FOUND)
    nonce_record = verify_nonce(db, wallet, nonce, PURPOSE_CLAIM, signature, now=now)

    entry = find_entitlement(db, campaign.id, wallet)
    if entry is None:
        raise NotEligibleError("Wallet is not in snapshot")
    source_address, amount = entry.source_address, entry.amount

    intent = _record_intent(db, campaign, wallet, nonce_record)
    try:
        minted = minter.mint(
            wallet, campaign.resolved_metadata_uri, campaign.display_name, campaign.symbol
        )
    except Exception as e:
        logger.exception("mint failed for %s in %s", wallet, campaign.slug)
        try:
            _set_intent(intent, INTENT_FAILED, error=str(e))
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("could not record failed mint for %s", wallet)
        raise MintError("NFT mint failed")

    try:
        _set_intent(intent, INTENT_MINTED, minted)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        _mark_orphaned(db, intent, wallet, minted, f"intent update failed: {e}")
        raise ClaimPersistenceError("Claim persistence failed")

    record = Claim(
        campaign_id=campaign.id,
        wallet=wallet,
        source_address=source_address,
        amount=amount,
        tx_signature=minted.tx_signature,
        mint_address=minted.mint_address,
        created_at=int(time.time()),
    )
    try:
        db.add(record)
        db.flush()
        consume_nonce(db, nonce_record)
        _set_intent(intent, INTENT_COMMITTED)
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = find_claim(db, campaign.id, wallet)
        _mark_orphaned(db, intent, wallet, minted, "claim committed by a concurrent request")
        if winner is None:
            raise ClaimPersistenceError("Claim persistence failed")
        logger.info("claim race for %s in %s resolved idempotently", wallet, campaign.slug)
        return ClaimOutcome(winner, idempotent=True)
    except (NonceVerificationError, SQLAlchemyError) as e:
        db.rollback()
        _mark_orphaned(db, intent, wallet, minted, f"claim commit failed: {e}")
        raise ClaimPersistenceError("Claim persistence failed")

    db.refresh(record)
    logger.info("claim committed for %s in %s (tx %s)", wallet, campaign.slug, minted.tx_signature)
    return ClaimOutcome(record, idempotent=False)


def list_intents(db: Session, campaign: Campaign, status: Optional[str] = None) -> List[ClaimIntent]:
    query = db.query(ClaimIntent).filter(ClaimIntent.campaign_id == campaign.id)
    if status:
        query = query.filter(ClaimIntent.status == status)
    return query.order_by(ClaimIntent.id.desc()).all()
