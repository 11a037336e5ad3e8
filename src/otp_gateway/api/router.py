"""OTP API router — thin HTTP wrapper over the OTP engine and session store.

Endpoints
---------
POST  /otp/generate   → generate a code and deliver it to the caller
POST  /otp/validate   → consume a code
POST  /auth/token     → exchange credentials for a bearer token
POST  /auth/logout    → revoke the caller's bearer token
GET   /admin/policy   → current OTP policy (admin only)
PATCH /admin/policy   → replace the OTP policy (admin only)
DELETE /admin/principals/{id}/codes → delete a principal's codes (admin only)
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field

from otp_gateway.api.deps import (
    bearer_scheme,
    get_admin_service,
    get_auth_service,
    get_current_principal,
    get_otp_service,
    get_session_store,
    require_admin,
)
from otp_gateway.exceptions import (
    CodeSpaceExhausted,
    DeliveryFailed,
    InvalidPolicy,
    PersistenceUnavailable,
    PrincipalNotFound,
    UnsupportedChannel,
)
from otp_gateway.services.admin_service import AdminService, PolicyUpdate
from otp_gateway.services.auth_service import AuthService
from otp_gateway.services.otp_service import OtpService
from otp_gateway.services.session_store import PrincipalRef, SessionTokenStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["otp"])

INVALID_CODE_DETAIL = "Invalid or expired code"


# ── Request / response models ────────────────────────────

class GenerateRequest(BaseModel):
    operation_id: str | None = Field(default=None, max_length=128)
    channel: str


class GenerateResponse(BaseModel):
    status: str = "sent"


class ValidateRequest(BaseModel):
    code: str = Field(..., max_length=16)


class ValidateResponse(BaseModel):
    valid: bool


class TokenRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=128)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class PolicyBody(BaseModel):
    length: int
    ttl_seconds: int


class PurgeResponse(BaseModel):
    deleted: int


# ── Endpoints ────────────────────────────────────────────

@router.post("/otp/generate", response_model=GenerateResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_otp(
    body: GenerateRequest,
    principal: Annotated[PrincipalRef, Depends(get_current_principal)],
    otp_service: Annotated[OtpService, Depends(get_otp_service)],
):
    """Generate a code for the caller and deliver it over the requested channel."""
    try:
        await otp_service.dispatch_to_principal(principal.id, body.operation_id, body.channel)
    except UnsupportedChannel as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PrincipalNotFound as exc:
        raise HTTPException(status_code=404, detail="Principal not found") from exc
    except DeliveryFailed as exc:
        raise HTTPException(status_code=502, detail="Code could not be delivered") from exc
    except CodeSpaceExhausted as exc:
        raise HTTPException(status_code=503, detail="No code available, try again") from exc
    except PersistenceUnavailable as exc:
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc
    return GenerateResponse()


@router.post("/otp/validate", response_model=ValidateResponse)
async def validate_otp(
    body: ValidateRequest,
    principal: Annotated[PrincipalRef, Depends(get_current_principal)],
    otp_service: Annotated[OtpService, Depends(get_otp_service)],
):
    """Consume a code.  Every kind of rejection looks the same to the caller."""
    try:
        is_valid = await otp_service.validate(body.code)
    except PersistenceUnavailable as exc:
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc
    if not is_valid:
        logger.info("OTP validation rejected for principal %s", principal.id)
        raise HTTPException(status_code=400, detail=INVALID_CODE_DETAIL)
    logger.info("OTP validated for principal %s", principal.id)
    return ValidateResponse(valid=True)


@router.post("/auth/token", response_model=TokenResponse)
async def issue_token(
    body: TokenRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    store: Annotated[SessionTokenStore, Depends(get_session_store)],
):
    """Exchange a username and password for a bearer token."""
    try:
        token = await auth_service.login(body.username, body.password)
    except PersistenceUnavailable as exc:
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenResponse(access_token=token, expires_in=int(store.ttl.total_seconds()))


@router.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    store: Annotated[SessionTokenStore, Depends(get_session_store)],
) -> None:
    if credentials:
        store.revoke(credentials.credentials)


@router.get("/admin/policy", response_model=PolicyBody)
async def read_policy(
    _: Annotated[PrincipalRef, Depends(require_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
):
    try:
        policy = await admin_service.get_policy()
    except PersistenceUnavailable as exc:
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc
    return PolicyBody(length=policy.length, ttl_seconds=policy.ttl_seconds)


@router.patch("/admin/policy", response_model=PolicyBody)
async def update_policy(
    body: PolicyUpdate,
    _: Annotated[PrincipalRef, Depends(require_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
):
    try:
        policy = await admin_service.update_policy(body.length, body.ttl_seconds)
    except InvalidPolicy as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PersistenceUnavailable as exc:
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc
    return PolicyBody(length=policy.length, ttl_seconds=policy.ttl_seconds)


@router.delete("/admin/principals/{principal_id}/codes", response_model=PurgeResponse)
async def purge_principal_codes(
    principal_id: int,
    _: Annotated[PrincipalRef, Depends(require_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
):
    """Delete every code of a principal, ahead of removing the principal."""
    try:
        deleted = await admin_service.purge_principal_codes(principal_id)
    except PersistenceUnavailable as exc:
        raise HTTPException(status_code=503, detail="Storage unavailable") from exc
    return PurgeResponse(deleted=deleted)
