"""Pydantic schemas for payment sessions and status webhooks"""
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, HttpUrl


class CreatePaymentSessionRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=6)
    currency: Literal["USDC", "USDT", "DAI"]
    orderId: str = Field(..., min_length=1, max_length=255)
    customerEmail: Optional[EmailStr] = None
    callbackUrl: HttpUrl


class PaymentStatusWebhook(BaseModel):
    """Payment outcome reported by the on-chain watcher.

    ``orderId`` carries the payment session id, not the merchant's order id.
    """
    orderId: UUID
    txHash: str = Field(..., pattern=r"^0x[a-fA-F0-9]{64}$")
    status: Literal["confirmed", "failed"]
