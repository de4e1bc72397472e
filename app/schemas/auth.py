from typing import Literal

from pydantic import BaseModel, Field, field_validator

from app.core.solana_auth import normalize_wallet_address
from app.schemas.my_base_model import CustomBaseModel


def _wallet(value: str) -> str:
    normalized = normalize_wallet_address(value)
    if normalized is None:
        raise ValueError("wallet must be a base58 encoded Solana public key")
    return normalized


class WalletRequest(BaseModel):
    wallet: str = Field(..., min_length=32, max_length=64, description="Solana wallet address")

    @field_validator("wallet")
    @classmethod
    def normalize_wallet(cls, value: str) -> str:
        return _wallet(value)


class NonceRequest(WalletRequest):
    """Request model for nonce generation - input validation"""

    purpose: Literal["claim", "login", "admin"] = Field(
        default="claim", description="Context the nonce may be redeemed in"
    )


class NonceResponse(CustomBaseModel):
    """Response model for nonce generation - output"""

    nonce: str = ""
    message: str = ""
    purpose: str = ""
    expires_at: int = 0


class SignedNonceRequest(WalletRequest):
    """Wallet, nonce and the wallet's signature over the challenge message"""

    nonce: str = Field(..., min_length=8, description="Nonce to verify")
    signature: str = Field(..., min_length=40, description="Signature of the challenge message")


class AuthResponse(CustomBaseModel):
    """Response model for authentication - output"""

    access_token: str
    token_type: str = "bearer"
    wallet_address: str
    expires_at: int = 0


class AdminSessionResponse(CustomBaseModel):
    wallet_address: str
    expires_at: int = 0
    auth_enabled: bool = True
