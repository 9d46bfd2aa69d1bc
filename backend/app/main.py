"""FastAPI application entry point"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.middleware import register_exception_handlers, security_middleware, setup_cors_middleware
from app.core.otel import initialize_otel, instrument_app
from app.db.redis import get_redis_client
from app.db.session import engine, init_db
from app.models import Base  # noqa: F401  Import all models to register with Base.metadata
from app.services.identity_service import create_identity_provider
from app.services.notification_service import create_merchant_notifier

# Import routers
from app.api import auth, api_keys, merchant, payments

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    if initialize_otel():
        instrument_app(app, engine)
        logger.info(f"OpenTelemetry initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Testing Redis connection...")
    try:
        get_redis_client().ping()
        logger.info("Redis connection successful")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise

    # Third-party clients live for the whole process and are injected per request
    app.state.identity_provider = create_identity_provider()
    app.state.merchant_notifier = create_merchant_notifier()

    yield

    # Shutdown
    logger.info("Shutting down...")
    app.state.identity_provider.close()
    app.state.merchant_notifier.close()


# Create FastAPI app
app = FastAPI(
    title="FlowKora Backend",
    description="Stablecoin payment portal for merchants",
    version="0.1.0",
    lifespan=lifespan
)

setup_cors_middleware(app)
app.middleware("http")(security_middleware)
register_exception_handlers(app)

# Include routers
app.include_router(auth.router)
app.include_router(api_keys.router)
app.include_router(merchant.router)
app.include_router(payments.router)


# Prometheus metrics endpoint
@app.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Health check endpoint
@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, proxy_headers=True)
