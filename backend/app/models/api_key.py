"""ApiKey model"""
import uuid
from sqlalchemy import Column, String, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.models.base import Base

API_KEY_ACTIVE = "active"
API_KEY_REVOKED = "revoked"


class ApiKey(Base):
    """Merchant API credential, stored as a one-way hash plus display prefix"""
    __tablename__ = "api_keys"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    merchant_id = Column(String(64), ForeignKey("merchants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    key_prefix = Column(String(32), nullable=False)
    key_hash = Column(String(64), unique=True, nullable=False)  # SHA-256 hex, never returned
    status = Column(String(20), default=API_KEY_ACTIVE, nullable=False)  # 'active', 'revoked'
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    merchant = relationship("Merchant", back_populates="api_keys")

    __table_args__ = (
        Index('ix_api_keys_merchant_created', 'merchant_id', 'created_at'),
    )
