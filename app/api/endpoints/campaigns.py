from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.dependencies import AdminContext, require_admin
from app.core.solana_auth import normalize_wallet_address
from app.db.session import get_db
from app.models.claim import INTENT_STATUSES
from app.schemas.campaign import (
    CampaignCreateRequest,
    CampaignInfo,
    CampaignResponse,
    CampaignStatsResponse,
    CampaignStatusRequest,
    CampaignSummaryResponse,
    ClaimIntentInfo,
    ClaimIntentListResponse,
    ClaimRequest,
    ClaimResponse,
    EligibilityResponse,
    MetadataResponse,
    SnapshotUploadRequest,
    SnapshotUploadResponse,
)
from app.services import campaigns, claims
from app.services.metadata import MetadataFetcher, get_metadata_fetcher, resolve_campaign_metadata
from app.services.minting import Minter, get_minter
from app.services.snapshot import build_snapshot

router = APIRouter()
group_tags: List[str] = ["campaigns"]


@router.post(
    "",
    tags=group_tags,
    response_model=CampaignResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_campaign(
    body: CampaignCreateRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
) -> CampaignResponse:
    """Create a campaign in draft status. Slugs are unique (409 on conflict)."""
    campaign = campaigns.create_campaign(
        db,
        name=body.name,
        slug=body.slug,
        description=body.description,
        symbol=body.symbol,
        metadata_uri=body.metadata_uri,
    )
    return CampaignResponse(campaign=CampaignInfo.from_record(campaign))


@router.get(
    "/{slug}",
    tags=group_tags,
    response_model=CampaignSummaryResponse,
)
def get_campaign(slug: str, db: Session = Depends(get_db)) -> CampaignSummaryResponse:
    campaign = campaigns.get_campaign(db, slug)
    claimed = campaigns.count_claims(db, campaign.id)
    return CampaignSummaryResponse(
        campaign=CampaignInfo.from_record(campaign),
        claimed=claimed,
        remaining=max(0, campaign.total_snapshot_count - claimed),
        claim_link=f"/claim/{campaign.slug}",
    )


@router.post(
    "/{slug}/snapshot",
    tags=group_tags,
    response_model=SnapshotUploadResponse,
)
def upload_snapshot(
    slug: str,
    body: SnapshotUploadRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
) -> SnapshotUploadResponse:
    """
    Replace the campaign snapshot. Only allowed while the campaign is draft.

    Body (any combination, csv wins over csv_a/csv_b):
    - csv: evm_address,solana_wallet,amount
    - csv_a: evm_address,amount and csv_b: evm_address,solana_wallet
    - manual_addresses: list, JSON array string or newline/comma/semicolon separated text

    Nothing is written when any CSV row is malformed or the merge is empty.
    """
    campaign = campaigns.get_campaign(db, slug)
    campaigns.require_draft(campaign)
    snapshot = build_snapshot(
        csv=body.csv,
        csv_a=body.csv_a,
        csv_b=body.csv_b,
        manual_addresses=body.manual_addresses,
    )
    inserted = campaigns.replace_snapshot(db, campaign, snapshot.rows)
    return SnapshotUploadResponse(
        inserted=inserted,
        matched=snapshot.matched,
        unmatched_a=snapshot.unmatched_a,
        unmatched_b=snapshot.unmatched_b,
        csv_provided=snapshot.csv_provided,
        manual_provided=snapshot.manual_provided,
        manual_inserted=snapshot.manual_inserted,
        duplicates_ignored=snapshot.duplicates_ignored,
        invalid_count=len(snapshot.invalid_entries),
        invalid_entries=snapshot.invalid_entries,
    )


@router.patch(
    "/{slug}/status",
    tags=group_tags,
    response_model=CampaignResponse,
)
def update_status(
    slug: str,
    body: CampaignStatusRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
) -> CampaignResponse:
    """draft -> open (needs a snapshot) -> closed. Same status is a no-op."""
    campaign = campaigns.get_campaign(db, slug)
    campaign = campaigns.transition_status(db, campaign, body.status)
    return CampaignResponse(campaign=CampaignInfo.from_record(campaign))


@router.get(
    "/{slug}/eligibility",
    tags=group_tags,
    response_model=EligibilityResponse,
)
def get_eligibility(
    slug: str,
    wallet: Optional[str] = Query(default=None, description="Solana wallet address"),
    db: Session = Depends(get_db),
) -> EligibilityResponse:
    if not wallet or not wallet.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="wallet query param is required")
    campaign = campaigns.get_campaign(db, slug)
    normalized = normalize_wallet_address(wallet) or wallet.strip()
    return EligibilityResponse(**claims.check_eligibility(db, campaign, normalized))


@router.get(
    "/{slug}/metadata",
    tags=group_tags,
    response_model=MetadataResponse,
)
def get_metadata(
    slug: str,
    db: Session = Depends(get_db),
    fetcher: MetadataFetcher = Depends(get_metadata_fetcher),
) -> MetadataResponse:
    """Upstream metadata JSON with campaign values as fallback for anything missing."""
    campaign = campaigns.get_campaign(db, slug)
    return MetadataResponse(**resolve_campaign_metadata(campaign, fetcher))


@router.get(
    "/{slug}/stats",
    tags=group_tags,
    response_model=CampaignStatsResponse,
)
def get_stats(slug: str, db: Session = Depends(get_db)) -> CampaignStatsResponse:
    campaign = campaigns.get_campaign(db, slug)
    return CampaignStatsResponse(**campaigns.campaign_stats(db, campaign))


@router.post(
    "/{slug}/claim",
    tags=group_tags,
    response_model=ClaimResponse,
)
def claim(
    slug: str,
    body: ClaimRequest,
    db: Session = Depends(get_db),
    minter: Minter = Depends(get_minter),
) -> ClaimResponse:
    """
    Mint the campaign pass for a wallet, at most once.

    A wallet that already claimed gets its original claim back with
    ``idempotent=true`` whatever nonce it sends, so clients can retry safely
    after a timeout.
    """
    campaign = campaigns.get_campaign(db, slug)
    outcome = claims.claim(db, campaign, body.wallet, body.nonce, body.signature, minter)
    return ClaimResponse(**outcome.to_response())


@router.get(
    "/{slug}/claim-intents",
    tags=group_tags,
    response_model=ClaimIntentListResponse,
)
def get_claim_intents(
    slug: str,
    intent_status: Optional[str] = Query(
        default=None, alias="status", description=f"Filter by intent status: {', '.join(INTENT_STATUSES)}"
    ),
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
) -> ClaimIntentListResponse:
    """Mint attempts, for reconciling orphaned mints (status=orphaned) out of band."""
    if intent_status is not None and intent_status not in INTENT_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid intent status")
    campaign = campaigns.get_campaign(db, slug)
    intents = claims.list_intents(db, campaign, intent_status)
    return ClaimIntentListResponse(
        intents=[ClaimIntentInfo.from_record(intent) for intent in intents],
        total=len(intents),
    )
