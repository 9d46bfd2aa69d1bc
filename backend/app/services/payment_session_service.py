"""Payment session service - creation, public checkout view and reconciliation.

A session moves through a small state machine::

    pending -> confirmed
    pending -> failed

``confirmed`` and ``failed`` are terminal. Reconciliation only writes while
the row is still ``pending`` (conditional update), so concurrent webhooks
resolve to a single winner. A repeat of the exact same outcome is answered
with the stored result instead of being re-applied.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import AlreadyReconciled, Conflict, NotFound
from app.core.metrics import (
    payment_sessions_created_counter, payment_sessions_conflicts_counter, reconciliations_counter
)
from app.models.merchant import Merchant
from app.models.transaction import Transaction

logger = logging.getLogger("payments")

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_FAILED = "failed"

TRANSITIONS = {
    STATUS_PENDING: [STATUS_CONFIRMED, STATUS_FAILED],
    STATUS_CONFIRMED: [],  # Terminal state
    STATUS_FAILED: [],  # Terminal state
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, [])


def build_payment_url(session_id: str) -> str:
    return f"{settings.APP_URL}/pay/{session_id}"


def _serialize_transaction(tx: Transaction) -> Dict:
    return {
        "id": tx.id,
        "merchant_order_id": tx.merchant_order_id,
        "amount": str(tx.amount),
        "currency": tx.currency,
        "customer_email": tx.customer_email,
        "callback_url": tx.callback_url,
        "merchant_payout_wallet_address": tx.merchant_payout_wallet_address,
        "status": tx.status,
        "tx_hash": tx.tx_hash,
        "created_at": tx.created_at.isoformat() if tx.created_at else None,
        "reconciled_at": tx.reconciled_at.isoformat() if tx.reconciled_at else None,
    }


def create_payment_session(
    merchant_id: str,
    order_id: str,
    amount: Decimal,
    currency: str,
    callback_url: str,
    db: Session,
    customer_email: Optional[str] = None,
) -> Dict:
    """Insert a pending session and return its shareable payment URL.

    Raises:
        Conflict: the merchant already has a session for ``order_id``
    """
    merchant = db.query(Merchant).filter(Merchant.id == merchant_id).first()
    payout_address = None
    if merchant and merchant.is_payout_wallet_verified:
        payout_address = merchant.payout_wallet_address

    tx = Transaction(
        merchant_id=merchant_id,
        merchant_order_id=order_id,
        amount=amount,
        currency=currency,
        customer_email=customer_email,
        callback_url=callback_url,
        merchant_payout_wallet_address=payout_address,
        status=STATUS_PENDING,
    )
    db.add(tx)
    try:
        db.commit()
    except IntegrityError:
        # uq_transactions_merchant_order: the storage layer picks the single winner
        db.rollback()
        payment_sessions_conflicts_counter.inc()
        logger.info(f"Duplicate order id {order_id!r} for merchant {merchant_id}")
        raise Conflict("A payment session for this Order ID already exists.")
    db.refresh(tx)

    payment_sessions_created_counter.labels(currency=currency).inc()
    logger.info(f"Created payment session {tx.id} for merchant {merchant_id} order {order_id!r}")
    return {"payment_url": build_payment_url(tx.id)}


def get_public_payment_session(session_id: str, db: Session) -> Dict:
    """Fields needed to render the checkout page, nothing else"""
    tx = db.query(Transaction).filter(Transaction.id == session_id).first()
    if not tx:
        raise NotFound("Payment session not found.")

    return {
        "paymentSessionId": tx.id,
        "amount": str(tx.amount),
        "currency": tx.currency,
        "merchantOrderId": tx.merchant_order_id,
        "customerEmail": tx.customer_email,
        "callbackUrl": tx.callback_url,
        "merchantPayoutWalletAddress": tx.merchant_payout_wallet_address,
        "status": tx.status,
    }


def list_merchant_transactions(merchant_id: str, db: Session) -> List[Dict]:
    """Merchant's transaction history, newest first"""
    transactions = (
        db.query(Transaction)
        .filter(Transaction.merchant_id == merchant_id)
        .order_by(Transaction.created_at.desc())
        .all()
    )
    return [_serialize_transaction(tx) for tx in transactions]


def _resolve_terminal(tx: Transaction, tx_hash: str, status: str) -> Dict:
    """Answer a reconciliation against a session that already left pending"""
    if tx.status == status and tx.tx_hash == tx_hash:
        reconciliations_counter.labels(outcome="duplicate").inc()
        logger.info(f"Repeated reconciliation for session {tx.id} ignored")
        return {
            "message": "Transaction already reconciled.",
            "paymentSessionId": tx.id,
            "status": tx.status,
            "already_reconciled": True,
        }

    reconciliations_counter.labels(outcome="rejected").inc()
    logger.warning(
        f"Rejected reconciliation for session {tx.id}: "
        f"{tx.status} -> {status} (tx {tx_hash})"
    )
    raise AlreadyReconciled(details={"status": tx.status})


def reconcile_payment(session_id: str, tx_hash: str, status: str, db: Session) -> Dict:
    """Apply a terminal status reported for a payment session.

    Returns a dict with ``already_reconciled`` set; ``transaction`` is included
    only when this call performed the transition.

    Raises:
        NotFound: no session with this id (nothing is written)
        AlreadyReconciled: the session is terminal with a different outcome
    """
    # Hex case carries no meaning; redeliveries must compare equal
    tx_hash = tx_hash.lower()

    tx = db.query(Transaction).filter(Transaction.id == session_id).first()
    if not tx:
        reconciliations_counter.labels(outcome="not_found").inc()
        raise NotFound("Transaction not found")

    if not can_transition(tx.status, status):
        return _resolve_terminal(tx, tx_hash, status)

    now = datetime.now(timezone.utc)
    updated = (
        db.query(Transaction)
        .filter(Transaction.id == session_id, Transaction.status == STATUS_PENDING)
        .update(
            {"status": status, "tx_hash": tx_hash, "reconciled_at": now},
            synchronize_session=False,
        )
    )
    db.commit()
    db.refresh(tx)

    if updated == 0:
        # Another request won the transition between our read and write
        return _resolve_terminal(tx, tx_hash, status)

    reconciliations_counter.labels(outcome=status).inc()
    logger.info(f"Session {tx.id} reconciled as {status} (tx {tx_hash})")
    return {
        "message": "Webhook received and transaction updated successfully.",
        "paymentSessionId": tx.id,
        "status": tx.status,
        "already_reconciled": False,
        "transaction": tx,
    }
