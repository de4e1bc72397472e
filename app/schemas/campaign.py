from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from app.schemas.auth import WalletRequest
from app.schemas.my_base_model import CustomBaseModel


class CampaignCreateRequest(BaseModel):
    """Input validation for POST /campaigns"""

    name: str = Field(..., min_length=2)
    slug: str = Field(
        ...,
        min_length=3,
        pattern=r"^[a-z0-9-]+$",
        description="slug can include lowercase letters, numbers and hyphens",
    )
    description: str = Field(..., min_length=10)
    symbol: str = Field(default="RVPASS", min_length=2, max_length=10)
    metadata_uri: Optional[str] = Field(default=None, description="Token metadata JSON URI")


class CampaignInfo(CustomBaseModel):
    """Campaign row as exposed by the API"""

    id: int = 0
    name: str = ""
    slug: str = ""
    description: str = ""
    symbol: str = ""
    metadata_uri: Optional[str] = None
    status: str = "draft"  # draft, open, closed
    total_snapshot_count: int = 0
    created_at: int = 0


class CampaignResponse(CustomBaseModel):
    campaign: CampaignInfo


class CampaignSummaryResponse(CustomBaseModel):
    """Response for GET /campaigns/{slug}"""

    campaign: CampaignInfo
    claimed: int = 0
    remaining: int = 0
    claim_link: str = ""


class CampaignStatusRequest(BaseModel):
    status: Literal["draft", "open", "closed"]


class SnapshotUploadRequest(BaseModel):
    """
    Snapshot sources, any combination:
    - csv: combined evm_address,solana_wallet,amount
    - csv_a + csv_b: evm_address,amount joined with evm_address,solana_wallet
    - manual_addresses: list of wallets, JSON array string or free text
    The combined csv takes priority over csv_a/csv_b.
    """

    csv: Optional[str] = None
    csv_a: Optional[str] = None
    csv_b: Optional[str] = None
    manual_addresses: Optional[Union[List[Any], str]] = None


class SnapshotUploadResponse(CustomBaseModel):
    inserted: int = 0
    matched: int = 0
    unmatched_a: int = 0
    unmatched_b: int = 0
    csv_provided: int = 0
    manual_provided: int = 0
    manual_inserted: int = 0
    duplicates_ignored: int = 0
    invalid_count: int = 0
    invalid_entries: List[str] = Field(default_factory=list)


class ExistingClaim(CustomBaseModel):
    tx_signature: str = ""
    mint_address: str = ""
    explorer: str = ""


class EligibilityResponse(CustomBaseModel):
    """Response for GET /campaigns/{slug}/eligibility"""

    eligible: bool = False
    amount: int = 0
    evm_address: Optional[str] = None
    status: str = ""
    claim_open: bool = False
    already_claimed: bool = False
    existing_claim: Optional[ExistingClaim] = None


class MetadataResponse(CustomBaseModel):
    metadata_uri: str = ""
    name: str = ""
    symbol: str = ""
    description: str = ""
    image: Optional[str] = None


class ClaimHistoryPoint(CustomBaseModel):
    date: str = ""
    value: int = 0


class CampaignStatsResponse(CustomBaseModel):
    total: int = 0
    claimed: int = 0
    remaining: int = 0
    progress: float = 0.0
    claim_history: List[ClaimHistoryPoint] = Field(default_factory=list)


class ClaimRequest(WalletRequest):
    """Input validation for POST /campaigns/{slug}/claim

    nonce and signature may be omitted when retrying a claim that already went through.
    """

    nonce: Optional[str] = Field(default=None, min_length=8, description="Claim nonce")
    signature: Optional[str] = Field(default=None, min_length=40, description="Signature of the challenge message")


class ClaimResponse(CustomBaseModel):
    idempotent: bool = False
    tx_signature: str = ""
    mint_address: str = ""
    explorer: str = ""


class ClaimIntentInfo(CustomBaseModel):
    id: int = 0
    campaign_id: int = 0
    wallet: str = ""
    nonce_id: int = 0
    status: str = ""
    tx_signature: Optional[str] = None
    mint_address: Optional[str] = None
    error: Optional[str] = None
    created_at: int = 0
    updated_at: int = 0


class ClaimIntentListResponse(CustomBaseModel):
    intents: List[ClaimIntentInfo] = Field(default_factory=list)
    total: int = 0
