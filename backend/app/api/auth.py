"""Auth API routes - identity provider callback and session lifecycle"""
import secrets
import logging
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import PortalError
from app.core.metrics import login_attempts_counter
from app.core.security import require_session, get_identity_provider, set_auth_cookie, SESSION_COOKIE
from app.db.redis import set_session, delete_session
from app.db.session import get_db
from app.services.merchant_service import get_or_create_merchant, get_merchant

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)


@router.get("/auth/callback")
def auth_callback(
    request: Request,
    code: str = Query(None),
    db: Session = Depends(get_db),
    identity_provider=Depends(get_identity_provider)
):
    """Complete the identity provider sign-in and open a session"""
    dashboard_url = f"{settings.FRONTEND_URL}/dashboard"
    if not code:
        return RedirectResponse(f"{settings.FRONTEND_URL}/login", status_code=303)

    try:
        principal = identity_provider.exchange_code(code, request.cookies.get("code_verifier"))
    except PortalError as e:
        login_attempts_counter.labels(status="failed").inc()
        logger.warning(f"Auth callback failed: {e.message}")
        return RedirectResponse(f"{settings.FRONTEND_URL}/login?error=auth_failed", status_code=303)

    get_or_create_merchant(principal.id, principal.email, db)

    session_id = secrets.token_urlsafe(32)
    set_session(session_id, principal.id)
    login_attempts_counter.labels(status="success").inc()

    response = RedirectResponse(dashboard_url, status_code=303)
    set_auth_cookie(response, session_id)
    response.delete_cookie("code_verifier")
    return response


@router.post("/api/auth/logout")
def logout(request: Request, response: Response):
    """Logout merchant"""
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id:
        delete_session(session_id)
        response.delete_cookie(SESSION_COOKIE)
    return {"message": "Logged out successfully"}


@router.get("/api/auth/me")
def get_current_merchant(merchant_id: str = Depends(require_session), db: Session = Depends(get_db)):
    """Get current signed-in merchant"""
    merchant = get_merchant(merchant_id, db)
    return {"merchant": {"id": merchant.id, "email": merchant.email}}
