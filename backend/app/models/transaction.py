"""Transaction (payment session) model"""
import uuid
from decimal import Decimal
from sqlalchemy import Column, String, ForeignKey, Numeric, DateTime, Index, UniqueConstraint
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.models.base import Base

AMOUNT_SCALE = Decimal("0.000001")


class Amount(TypeDecorator):
    """NUMERIC(18, 6); kept as exact decimal text on SQLite, which only has binary floats"""
    impl = Numeric(18, 6)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(40))
        return dialect.type_descriptor(Numeric(18, 6))

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name != "sqlite":
            return value
        return str(Decimal(value).quantize(AMOUNT_SCALE))

    def process_result_value(self, value, dialect):
        if value is None or dialect.name != "sqlite":
            return value
        return Decimal(value)


class Transaction(Base):
    """One expected customer payment; the id doubles as the public session token"""
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    merchant_id = Column(String(64), ForeignKey("merchants.id"), nullable=False, index=True)
    merchant_order_id = Column(String(255), nullable=False)
    amount = Column(Amount(), nullable=False)
    currency = Column(String(10), nullable=False)  # 'USDC', 'USDT', 'DAI'
    customer_email = Column(String(255), nullable=True)
    callback_url = Column(String(2048), nullable=False)
    merchant_payout_wallet_address = Column(String(42), nullable=True)  # Frozen at creation
    status = Column(String(20), default="pending", nullable=False)  # 'pending', 'confirmed', 'failed'
    tx_hash = Column(String(66), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    reconciled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    merchant = relationship("Merchant", back_populates="transactions")

    __table_args__ = (
        UniqueConstraint('merchant_id', 'merchant_order_id', name='uq_transactions_merchant_order'),
        Index('ix_transactions_merchant_created', 'merchant_id', 'created_at'),
    )
