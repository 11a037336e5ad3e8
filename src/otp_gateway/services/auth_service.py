"""Auth service — exchanges verified credentials for a session token."""

from __future__ import annotations

import logging

from otp_gateway.database.base import PrincipalDirectory
from otp_gateway.services.credentials import CredentialVerifier
from otp_gateway.services.session_store import PrincipalRef, SessionTokenStore

logger = logging.getLogger(__name__)


class AuthService:
    """Issues bearer tokens to callers whose credentials check out."""

    def __init__(
        self,
        verifier: CredentialVerifier,
        directory: PrincipalDirectory,
        session_store: SessionTokenStore,
    ) -> None:
        self._verifier = verifier
        self._directory = directory
        self._session_store = session_store

    async def login(self, username: str, password: str) -> str | None:
        """Return a new token, or ``None`` if the caller cannot be authenticated.

        The principal named by the identity service must also exist and be
        active in the local directory.
        """
        principal_id = await self._verifier.verify(username, password)
        if principal_id is None:
            logger.warning("Login rejected for %s: bad credentials", username)
            return None

        principal = await self._directory.get_principal(principal_id)
        if principal is None:
            logger.warning("Login rejected for %s: principal %s unknown or inactive", username, principal_id)
            return None

        return self._session_store.issue(PrincipalRef.from_principal(principal))
