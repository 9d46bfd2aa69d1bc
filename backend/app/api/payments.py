"""Public payment session and payment status webhook routes"""
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import Unauthorized, ValidationFailed
from app.core.security import get_merchant_notifier
from app.db.session import get_db
from app.models.merchant import Merchant
from app.schemas.payments import PaymentStatusWebhook
from app.services.notification_service import (
    SIGNATURE_HEADER, TIMESTAMP_HEADER, build_payment_event, verify_signature
)
from app.services.payment_session_service import get_public_payment_session, reconcile_payment

router = APIRouter(prefix="/api", tags=["payments"])
logger = logging.getLogger("webhooks")


@router.get("/payment-session/{session_id}")
def get_payment_session(session_id: str, db: Session = Depends(get_db)):
    """Checkout details for a payment link (public)"""
    return get_public_payment_session(session_id, db)


@router.post("/webhook/payment-status")
async def payment_status_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier=Depends(get_merchant_notifier)
):
    """Reconcile a payment session with its on-chain outcome

    The signature is checked against the raw body, so the payload is parsed
    only after verification.
    """
    payload = await request.body()
    if not verify_signature(
        payload,
        settings.WEBHOOK_SECRET,
        request.headers.get(SIGNATURE_HEADER),
        request.headers.get(TIMESTAMP_HEADER),
        settings.WEBHOOK_TOLERANCE_SECONDS,
    ):
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Rejected payment status webhook with invalid signature from {client}")
        raise Unauthorized("Invalid webhook signature.")

    try:
        event = PaymentStatusWebhook.model_validate_json(payload)
    except ValidationError as e:
        raise ValidationFailed(details=e.errors(include_url=False, include_context=False))

    result = reconcile_payment(str(event.orderId), event.txHash, event.status, db)

    transaction = result.pop("transaction", None)
    if transaction is not None:
        merchant = db.query(Merchant).filter(Merchant.id == transaction.merchant_id).first()
        if merchant and merchant.webhook_url:
            background_tasks.add_task(notifier.notify, merchant.webhook_url, build_payment_event(transaction))

    return result
