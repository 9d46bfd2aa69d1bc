"""Payout wallet ownership verification.

The merchant first requests a challenge; the server stores it in Redis with a
short TTL. The wallet signs that exact text as an EIP-191 personal message and
the signature is checked by recovering the signer address. Each challenge is
consumed on first use, so a signature can never be replayed.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature
from eth_utils import ValidationError as EthValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InvalidChallenge, InvalidSignature
from app.core.metrics import wallet_verifications_counter
from app.db.redis import set_wallet_challenge, consume_wallet_challenge
from app.services.merchant_service import get_merchant, set_verified_payout_wallet

logger = logging.getLogger(__name__)

CHALLENGE_STATEMENT = "Verify ownership of this address for FlowKora"


def issue_wallet_challenge(merchant_id: str, db: Session) -> Dict:
    """Create a single-use, time-bound message for the wallet to sign"""
    get_merchant(merchant_id, db)

    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(seconds=settings.WALLET_CHALLENGE_TTL)
    nonce = secrets.token_hex(16)
    message = (
        f"{CHALLENGE_STATEMENT}\n\n"
        f"Nonce: {nonce}\n"
        f"Issued At: {issued_at.isoformat()}"
    )
    set_wallet_challenge(merchant_id, message)
    return {"message": message, "expires_at": expires_at.isoformat()}


def recover_signer(message: str, signature: str) -> str:
    """Recover the address that signed ``message`` as a personal message

    Raises:
        InvalidSignature: the signature is malformed or unrecoverable
    """
    try:
        return Account.recover_message(encode_defunct(text=message), signature=signature)
    except (ValueError, TypeError, EthValidationError, BadSignature) as e:
        # Malformed hex, wrong length, bad v value or an unrecoverable point
        logger.info(f"Signature recovery failed: {e}")
        raise InvalidSignature("Invalid signature or message.")


def verify_payout_wallet(
    merchant_id: str,
    wallet_address: str,
    original_message: str,
    signed_message: str,
    db: Session,
) -> Dict:
    """Verify the signature and mark the wallet as the merchant's payout address

    Raises:
        InvalidChallenge: no outstanding challenge, or it differs from ``original_message``
        InvalidSignature: the recovered signer is not ``wallet_address``
    """
    expected = consume_wallet_challenge(merchant_id)
    if expected is None or expected != original_message:
        wallet_verifications_counter.labels(status="invalid_challenge").inc()
        raise InvalidChallenge()

    recovered = recover_signer(original_message, signed_message)
    if recovered.lower() != wallet_address.lower():
        wallet_verifications_counter.labels(status="mismatch").inc()
        logger.info(f"Wallet verification mismatch for merchant {merchant_id}")
        raise InvalidSignature()

    set_verified_payout_wallet(merchant_id, wallet_address, db)
    wallet_verifications_counter.labels(status="verified").inc()
    logger.info(f"Payout wallet verified for merchant {merchant_id}")
    return {"message": "Wallet successfully verified."}
