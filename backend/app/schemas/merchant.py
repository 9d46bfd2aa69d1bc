"""Pydantic schemas for the merchant profile and payout wallet verification"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

WALLET_ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"


class UpdateProfileRequest(BaseModel):
    """Partial profile update; unknown fields are rejected"""
    model_config = ConfigDict(extra="forbid")

    payout_wallet_address: Optional[str] = Field(None, pattern=WALLET_ADDRESS_PATTERN)
    webhook_url: Optional[HttpUrl] = None

    @field_validator("webhook_url")
    @classmethod
    def require_https(cls, v):
        if v is not None and v.scheme != "https":
            raise ValueError("Webhook URL must use HTTPS")
        return v


class VerifyPayoutWalletRequest(BaseModel):
    walletAddress: str = Field(..., pattern=WALLET_ADDRESS_PATTERN)
    signedMessage: str = Field(..., min_length=1)
    originalMessage: str = Field(..., min_length=1)
