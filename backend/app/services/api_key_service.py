"""API key service - issuing, listing, updating and revoking merchant keys"""
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import API_KEY_TAG
from app.core.exceptions import NotFound, ValidationFailed
from app.core.metrics import api_keys_issued_counter
from app.models.api_key import ApiKey, API_KEY_ACTIVE, API_KEY_REVOKED

logger = logging.getLogger(__name__)

# 24 random bytes -> 48 hex chars
SECRET_BYTES = 24
# Characters of the secret kept in the public display prefix
DISPLAY_CHARS = 8


def hash_api_key(full_key: str) -> str:
    """One-way hash of the full prefixed key"""
    return hashlib.sha256(full_key.encode("utf-8")).hexdigest()


def generate_api_key() -> tuple[str, str, str]:
    """Generate a new key.

    Returns:
        tuple: (full_key, key_prefix, key_hash)
    """
    full_key = f"{API_KEY_TAG}{secrets.token_hex(SECRET_BYTES)}"
    key_prefix = full_key[:len(API_KEY_TAG) + DISPLAY_CHARS]
    return full_key, key_prefix, hash_api_key(full_key)


def _serialize_key(api_key: ApiKey) -> Dict:
    """Public view of a key (never includes the hash)"""
    return {
        "id": api_key.id,
        "name": api_key.name,
        "key_prefix": api_key.key_prefix,
        "status": api_key.status,
        "created_at": api_key.created_at.isoformat() if api_key.created_at else None,
        "last_used_at": api_key.last_used_at.isoformat() if api_key.last_used_at else None,
        "expires_at": api_key.expires_at.isoformat() if api_key.expires_at else None,
    }


def issue_api_key(
    merchant_id: str,
    name: Optional[str],
    db: Session,
    expires_at: Optional[datetime] = None,
) -> Dict:
    """Create a key and return its plaintext exactly once.

    Only the hash and display prefix are persisted; the plaintext cannot be
    recovered afterwards, only replaced by issuing a fresh key.
    """
    full_key, key_prefix, key_hash = generate_api_key()
    api_key = ApiKey(
        merchant_id=merchant_id,
        name=name,
        key_prefix=key_prefix,
        key_hash=key_hash,
        status=API_KEY_ACTIVE,
        expires_at=expires_at,
    )
    db.add(api_key)
    db.commit()
    db.refresh(api_key)

    api_keys_issued_counter.inc()
    logger.info(f"Issued API key {api_key.id} ({key_prefix}...) for merchant {merchant_id}")

    result = _serialize_key(api_key)
    result["fullApiKey"] = full_key
    return result


def list_api_keys(merchant_id: str, db: Session) -> List[Dict]:
    """List the merchant's keys, newest first"""
    keys = (
        db.query(ApiKey)
        .filter(ApiKey.merchant_id == merchant_id)
        .order_by(ApiKey.created_at.desc())
        .all()
    )
    return [_serialize_key(k) for k in keys]


def _get_owned_key(merchant_id: str, key_id: str, db: Session) -> ApiKey:
    # Ownership is part of the lookup, so foreign keys look the same as missing ones
    api_key = (
        db.query(ApiKey)
        .filter(ApiKey.id == key_id, ApiKey.merchant_id == merchant_id)
        .first()
    )
    if not api_key:
        raise NotFound("API key not found.")
    return api_key


def update_api_key(merchant_id: str, key_id: str, changes: Dict, db: Session) -> Dict:
    """Rename a key or change its status (active -> revoked only)"""
    api_key = _get_owned_key(merchant_id, key_id, db)

    new_status = changes.get("status")
    if new_status == API_KEY_ACTIVE and api_key.status == API_KEY_REVOKED:
        raise ValidationFailed("Revoked API keys cannot be re-activated.")

    if "name" in changes:
        api_key.name = changes["name"]
    if new_status is not None:
        api_key.status = new_status
    db.commit()
    db.refresh(api_key)
    return _serialize_key(api_key)


def revoke_api_key(merchant_id: str, key_id: str, db: Session) -> Dict:
    """Revoke a key owned by the merchant"""
    api_key = _get_owned_key(merchant_id, key_id, db)
    if api_key.status != API_KEY_REVOKED:
        api_key.status = API_KEY_REVOKED
        db.commit()
        logger.info(f"Revoked API key {key_id} for merchant {merchant_id}")
    return {"message": "API key revoked successfully."}


def authenticate_api_key(full_key: str, db: Session) -> Optional[str]:
    """Resolve a presented key to its merchant id, or None.

    The key must be active and unexpired; last_used_at is stamped on success.
    """
    if not full_key or not full_key.startswith(API_KEY_TAG):
        return None

    key_hash = hash_api_key(full_key)
    api_key = db.query(ApiKey).filter(ApiKey.key_hash == key_hash).first()
    if not api_key or not hmac.compare_digest(api_key.key_hash, key_hash):
        return None
    if api_key.status != API_KEY_ACTIVE:
        return None

    now = datetime.now(timezone.utc)
    expires_at = api_key.expires_at
    if expires_at is not None:
        # SQLite drops tzinfo on the way back
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= now:
            return None

    api_key.last_used_at = now
    db.commit()
    return api_key.merchant_id
