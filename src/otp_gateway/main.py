"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from otp_gateway.api.router import router as otp_router
from otp_gateway.config import settings
from otp_gateway.database.engine import async_session_factory, init_db
from otp_gateway.database.repository import (
    SqlOtpCodeRepository,
    SqlOtpPolicyRepository,
    SqlPrincipalDirectory,
)
from otp_gateway.delivery.dispatcher import DeliveryDispatcher
from otp_gateway.services.admin_service import AdminService
from otp_gateway.services.auth_service import AuthService
from otp_gateway.services.credentials import IdentityApiVerifier
from otp_gateway.services.otp_service import OtpService
from otp_gateway.services.session_store import SessionTokenStore
from otp_gateway.services.sweeper import ExpirationSweeper

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)

# ── Shared instances (created once, reused across requests) ──
directory = SqlPrincipalDirectory(async_session_factory)
otp_service = OtpService(
    codes=SqlOtpCodeRepository(async_session_factory),
    policies=SqlOtpPolicyRepository(async_session_factory),
    directory=directory,
    dispatcher=DeliveryDispatcher(),
)
session_store = SessionTokenStore(settings.session_token_ttl_seconds)
auth_service = AuthService(IdentityApiVerifier(), directory, session_store)
sweeper = ExpirationSweeper(otp_service, settings.sweep_interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    logger.info("Starting %s …", settings.app_name)
    await init_db()
    logger.info("Database initialised")
    sweeper.start()
    yield
    logger.info("Shutting down %s …", settings.app_name)
    sweeper.stop()


app = FastAPI(
    title=settings.app_name,
    description="One-time code issuing, delivery and validation service",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.otp_service = otp_service
app.state.admin_service = AdminService(otp_service)
app.state.auth_service = auth_service
app.state.session_store = session_store

app.include_router(otp_router)


@app.get("/health")
async def health_check():
    """Simple liveness probe."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "sweeper_running": sweeper.is_running,
        "active_sessions": session_store.active_count,
    }


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
