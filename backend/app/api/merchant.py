"""Merchant profile, payout wallet and transaction history routes"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.security import require_session, require_merchant
from app.db.session import get_db
from app.schemas.merchant import UpdateProfileRequest, VerifyPayoutWalletRequest
from app.schemas.payments import CreatePaymentSessionRequest
from app.services.merchant_service import get_profile, update_profile
from app.services.payment_session_service import create_payment_session, list_merchant_transactions
from app.services.wallet_verification_service import issue_wallet_challenge, verify_payout_wallet

router = APIRouter(prefix="/api/merchant", tags=["merchant"])


@router.get("/profile")
def get_merchant_profile(merchant_id: str = Depends(require_session), db: Session = Depends(get_db)):
    """Get payout wallet and webhook settings"""
    return get_profile(merchant_id, db)


@router.put("/profile")
def update_merchant_profile(
    request_data: UpdateProfileRequest,
    merchant_id: str = Depends(require_session),
    db: Session = Depends(get_db)
):
    """Partially update payout wallet and webhook settings"""
    return update_profile(merchant_id, request_data.model_dump(exclude_unset=True), db)


@router.post("/verify-payout-wallet/challenge")
def create_wallet_challenge(merchant_id: str = Depends(require_session), db: Session = Depends(get_db)):
    """Issue the message the payout wallet has to sign"""
    return issue_wallet_challenge(merchant_id, db)


@router.post("/verify-payout-wallet")
def verify_wallet(
    request_data: VerifyPayoutWalletRequest,
    merchant_id: str = Depends(require_session),
    db: Session = Depends(get_db)
):
    """Prove ownership of the payout wallet with a signed challenge"""
    return verify_payout_wallet(
        merchant_id,
        request_data.walletAddress,
        request_data.originalMessage,
        request_data.signedMessage,
        db
    )


@router.get("/transactions")
def get_transactions(merchant_id: str = Depends(require_merchant), db: Session = Depends(get_db)):
    """Transaction history, newest first"""
    return list_merchant_transactions(merchant_id, db)


@router.post("/create-payment-session")
def create_session(
    request_data: CreatePaymentSessionRequest,
    merchant_id: str = Depends(require_merchant),
    db: Session = Depends(get_db)
):
    """Create a pending payment session and return its payment link"""
    return create_payment_session(
        merchant_id,
        order_id=request_data.orderId,
        amount=request_data.amount,
        currency=request_data.currency,
        callback_url=str(request_data.callbackUrl),
        customer_email=request_data.customerEmail,
        db=db
    )
