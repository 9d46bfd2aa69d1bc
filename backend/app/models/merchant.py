"""Merchant model"""
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.models.base import Base


class Merchant(Base):
    """Merchant profile keyed by the identity provider's principal id"""
    __tablename__ = "merchants"

    id = Column(String(64), primary_key=True)  # Principal id from the identity provider
    email = Column(String(255), nullable=True)
    payout_wallet_address = Column(String(42), nullable=True)  # Lowercase 0x-prefixed hex
    is_payout_wallet_verified = Column(Boolean, default=False, nullable=False)
    webhook_url = Column(String(2048), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    api_keys = relationship("ApiKey", back_populates="merchant")
    transactions = relationship("Transaction", back_populates="merchant")
