"""Pydantic schemas for API key management"""
from datetime import datetime, timezone
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreateApiKeyRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    expires_at: Optional[datetime] = None  # Never expires when omitted

    @field_validator("expires_at")
    @classmethod
    def must_be_in_future(cls, v):
        if v is None:
            return v
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        if v <= datetime.now(timezone.utc):
            raise ValueError("expires_at must be in the future")
        return v


class UpdateApiKeyRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, max_length=255)
    status: Optional[Literal["active", "revoked"]] = None
