"""API key management routes"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.security import require_session
from app.db.session import get_db
from app.schemas.api_keys import CreateApiKeyRequest, UpdateApiKeyRequest
from app.services.api_key_service import issue_api_key, list_api_keys, update_api_key, revoke_api_key

router = APIRouter(prefix="/api/merchant/api-keys", tags=["api-keys"])


@router.get("")
def get_api_keys(merchant_id: str = Depends(require_session), db: Session = Depends(get_db)):
    """List API keys, newest first (hashes are never returned)"""
    return list_api_keys(merchant_id, db)


@router.post("", status_code=201)
def create_api_key(
    request_data: CreateApiKeyRequest,
    merchant_id: str = Depends(require_session),
    db: Session = Depends(get_db)
):
    """Issue a new key; fullApiKey is only ever present in this response"""
    return issue_api_key(merchant_id, request_data.name, db, expires_at=request_data.expires_at)


@router.put("/{key_id}")
def update_key(
    key_id: str,
    request_data: UpdateApiKeyRequest,
    merchant_id: str = Depends(require_session),
    db: Session = Depends(get_db)
):
    """Rename or revoke a key"""
    return update_api_key(merchant_id, key_id, request_data.model_dump(exclude_unset=True), db)


@router.delete("/{key_id}")
def revoke_key(key_id: str, merchant_id: str = Depends(require_session), db: Session = Depends(get_db)):
    """Revoke a key"""
    return revoke_api_key(merchant_id, key_id, db)
