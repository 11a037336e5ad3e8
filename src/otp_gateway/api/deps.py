"""API dependencies — service lookup and bearer-token authentication."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from otp_gateway.models.principal import PrincipalRole
from otp_gateway.services.admin_service import AdminService
from otp_gateway.services.auth_service import AuthService
from otp_gateway.services.otp_service import OtpService
from otp_gateway.services.session_store import PrincipalRef, SessionTokenStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_session_store(request: Request) -> SessionTokenStore:
    return request.app.state.session_store


def get_otp_service(request: Request) -> OtpService:
    return request.app.state.otp_service


def get_admin_service(request: Request) -> AdminService:
    return request.app.state.admin_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    store: Annotated[SessionTokenStore, Depends(get_session_store)],
) -> PrincipalRef:
    """Resolve the bearer token to a principal or fail with 401."""
    principal = store.validate(credentials.credentials) if credentials else None
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_admin(
    principal: Annotated[PrincipalRef, Depends(get_current_principal)],
) -> PrincipalRef:
    if principal.role is not PrincipalRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return principal
