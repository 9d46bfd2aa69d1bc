"""Merchant profile service"""
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import NotFound
from app.models.merchant import Merchant

logger = logging.getLogger(__name__)


def get_or_create_merchant(merchant_id: str, email: Optional[str], db: Session) -> Merchant:
    """Get the merchant row for a principal, creating it on first sign-in"""
    merchant = db.query(Merchant).filter(Merchant.id == merchant_id).first()
    if merchant:
        if email and merchant.email != email:
            merchant.email = email
            db.commit()
        return merchant

    merchant = Merchant(id=merchant_id, email=email)
    db.add(merchant)
    db.commit()
    db.refresh(merchant)
    logger.info(f"Created merchant profile for principal {merchant_id}")
    return merchant


def get_merchant(merchant_id: str, db: Session) -> Merchant:
    merchant = db.query(Merchant).filter(Merchant.id == merchant_id).first()
    if not merchant:
        raise NotFound("Merchant profile not found.")
    return merchant


def get_profile(merchant_id: str, db: Session) -> Dict:
    """Profile fields a merchant may read"""
    merchant = get_merchant(merchant_id, db)
    return {
        "payout_wallet_address": merchant.payout_wallet_address,
        "is_payout_wallet_verified": merchant.is_payout_wallet_verified,
        "webhook_url": merchant.webhook_url,
    }


def update_profile(merchant_id: str, changes: Dict, db: Session) -> Dict:
    """Apply a partial profile update.

    A changed payout address always clears the verification flag in the same
    write; only the wallet verifier sets it back.
    """
    if not changes:
        return {"message": "No data to update."}

    merchant = get_merchant(merchant_id, db)

    if "payout_wallet_address" in changes:
        address = changes["payout_wallet_address"]
        address = address.lower() if address else None
        if address != merchant.payout_wallet_address:
            merchant.payout_wallet_address = address
            merchant.is_payout_wallet_verified = False
            logger.info(f"Payout address changed for merchant {merchant_id}; verification reset")

    if "webhook_url" in changes:
        webhook_url = changes["webhook_url"]
        merchant.webhook_url = str(webhook_url) if webhook_url else None

    db.commit()
    return {"message": "Profile updated successfully."}


def set_verified_payout_wallet(merchant_id: str, address: str, db: Session) -> None:
    """Persist a payout address whose ownership has been proven"""
    merchant = get_merchant(merchant_id, db)
    merchant.payout_wallet_address = address.lower()
    merchant.is_payout_wallet_verified = True
    db.commit()
