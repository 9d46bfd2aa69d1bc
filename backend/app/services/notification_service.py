"""Outbound merchant notifications and inbound webhook signatures.

Both directions use the same scheme: ``v1=<hex hmac-sha256>`` computed over
``"{timestamp}.{raw body}"`` with a shared secret.
"""
import hashlib
import hmac
import json
import logging
import time
from typing import Dict, Optional

import httpx

from app.core.config import settings
from app.core.metrics import merchant_notifications_counter

logger = logging.getLogger("webhooks")

SIGNATURE_HEADER = "X-FlowKora-Signature"
TIMESTAMP_HEADER = "X-FlowKora-Timestamp"


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    signed_payload = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return f"v1={digest}"


def verify_signature(
    payload: bytes,
    secret: str,
    signature: Optional[str],
    timestamp: Optional[str],
    tolerance_seconds: int,
) -> bool:
    """Check signature and timestamp freshness; False on anything missing"""
    if not secret or not signature or not timestamp:
        return False
    try:
        ts = int(timestamp)
    except ValueError:
        return False
    if abs(int(time.time()) - ts) > tolerance_seconds:
        return False
    expected = compute_signature(payload, secret, ts)
    return hmac.compare_digest(expected, signature)


class MerchantNotifier:
    """Posts payment outcomes to a merchant's configured webhook URL.

    One attempt per event; delivery failures are logged, never retried.
    """

    def __init__(self, secret: str, timeout: float, client: Optional[httpx.Client] = None):
        self.secret = secret
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def close(self):
        self._client.close()

    def notify(self, webhook_url: str, event: Dict) -> bool:
        body = json.dumps(event, separators=(",", ":")).encode()
        timestamp = int(time.time())
        headers = {
            "Content-Type": "application/json",
            TIMESTAMP_HEADER: str(timestamp),
        }
        if self.secret:
            headers[SIGNATURE_HEADER] = compute_signature(body, self.secret, timestamp)

        try:
            response = self._client.post(webhook_url, content=body, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            merchant_notifications_counter.labels(status="failed").inc()
            logger.warning(f"Merchant webhook delivery to {webhook_url} failed: {e}")
            return False

        merchant_notifications_counter.labels(status="delivered").inc()
        logger.info(f"Delivered {event.get('event')} to {webhook_url}")
        return True


def build_payment_event(transaction) -> Dict:
    """Notification body for a reconciled transaction"""
    return {
        "event": f"payment.{transaction.status}",
        "paymentSessionId": transaction.id,
        "merchantOrderId": transaction.merchant_order_id,
        "amount": str(transaction.amount),
        "currency": transaction.currency,
        "status": transaction.status,
        "txHash": transaction.tx_hash,
    }


def create_merchant_notifier() -> MerchantNotifier:
    return MerchantNotifier(
        secret=settings.MERCHANT_WEBHOOK_SECRET,
        timeout=settings.MERCHANT_WEBHOOK_TIMEOUT_SECONDS,
    )
