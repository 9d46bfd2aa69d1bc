"""Security dependencies, client identification and access logging"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import Depends, Header, Request, Response
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.exceptions import Unauthorized
from app.db.redis import get_session
from app.db.session import get_db
from app.services.api_key_service import authenticate_api_key

security_logger = logging.getLogger("security")
api_access_logger = logging.getLogger("api_access")

SESSION_COOKIE = "session_id"


def require_session(request: Request) -> str:
    """Dependency: Require a session cookie, return merchant_id"""
    session_id = request.cookies.get(SESSION_COOKIE)

    if not session_id:
        raise Unauthorized("Not authenticated. Please log in.")

    merchant_id = get_session(session_id)
    if not merchant_id:
        raise Unauthorized("Session expired. Please log in again.")

    return merchant_id


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def require_merchant(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: Session = Depends(get_db)
) -> str:
    """Dependency: session cookie or API key, return merchant_id"""
    presented_key = _bearer_token(authorization) or x_api_key
    if presented_key:
        merchant_id = authenticate_api_key(presented_key, db)
        if not merchant_id:
            security_logger.warning(
                f"Rejected API key - IP: {_client_ip(request)}, Path: {request.url.path}"
            )
            raise Unauthorized("Invalid or revoked API key.")
        return merchant_id

    return require_session(request)


def get_identity_provider(request: Request):
    """Dependency: identity provider owned by the application lifespan"""
    return request.app.state.identity_provider


def get_merchant_notifier(request: Request):
    """Dependency: merchant notifier owned by the application lifespan"""
    return request.app.state.merchant_notifier


def _client_ip(request: Request) -> str:
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return client_ip


def get_client_identifier(request: Request, session_id: Optional[str] = None) -> str:
    """Get a unique identifier for rate limiting"""
    if session_id:
        return f"session:{session_id}"
    return f"ip:{_client_ip(request)}"


def log_api_access(
    request: Request,
    session_id: Optional[str] = None,
    status_code: int = 200,
    error: Optional[str] = None
):
    """Log detailed API access information"""
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": request.url.path,
        "session_id": session_id[:16] + "..." if session_id else None,
        "client_ip": _client_ip(request),
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "status_code": status_code,
        "error": error
    }

    if error or status_code >= 400:
        api_access_logger.warning(f"API Access: {json.dumps(log_data)}")
    else:
        api_access_logger.info(f"API Access: {json.dumps(log_data)}")


def set_auth_cookie(response: Response, session_id: str) -> None:
    """Set the session cookie"""
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        max_age=60 * 60 * 24 * 30  # 30 days, matches the Redis session TTL
    )
