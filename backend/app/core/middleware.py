"""Middleware and exception handlers for the FastAPI application"""
import logging
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.exceptions import PortalError, UpstreamFailure
from app.core.security import get_client_identifier, log_api_access, SESSION_COOKIE
from app.db.redis import check_rate_limit

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")


def get_allowed_origins():
    """Dashboard and checkout page origins (plus local dev servers)"""
    origins = {settings.FRONTEND_URL, settings.APP_URL}
    if settings.ENVIRONMENT == "development":
        origins.update({"http://localhost:3000", "http://127.0.0.1:3000"})
    return sorted(origins)


def setup_cors_middleware(app):
    """Browser access for the dashboard (cookie sessions) and the checkout page"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    )


async def security_middleware(request: Request, call_next):
    """Rate limiting and API access logging"""
    session_id = request.cookies.get(SESSION_COOKIE)
    status_code = 500
    error = None

    try:
        path = request.url.path
        if path not in ("/health", "/metrics"):
            identifier = get_client_identifier(request, session_id)
            is_state_changing = request.method in ["POST", "PATCH", "DELETE", "PUT"]
            if not check_rate_limit(identifier, strict=is_state_changing):
                status_code = 429
                error = "Rate limit exceeded"
                security_logger.warning(f"Rate limit exceeded - Identifier: {identifier}, Path: {path}")
                return JSONResponse(
                    status_code=429,
                    content={"error": "Rate limit exceeded. Please try again later.", "code": "RateLimited"}
                )

        response = await call_next(request)
        status_code = response.status_code
        return response

    except Exception as e:
        error = str(e)
        security_logger.error(f"Security middleware error: {error}", exc_info=True)
        raise
    finally:
        log_api_access(request, session_id, status_code, error)


async def portal_error_handler(request: Request, exc: PortalError):
    """Map domain exceptions to the error envelope"""
    if isinstance(exc, UpstreamFailure):
        logger.error(f"Upstream failure on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Schema violations are 400s with field-level details"""
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({
            "error": "Invalid input",
            "code": "ValidationError",
            "details": exc.errors(),
        })
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Keep framework errors (404 route, 405 method) in the same envelope"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": "HTTPError"},
        headers=getattr(exc, "headers", None)
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected error occurred.", "code": "InternalError"}
    )


def register_exception_handlers(app):
    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
