"""Credential verification — asks an identity service who a caller is.

Passwords are never stored or hashed here.  The gateway hands the
submitted credentials to an external identity API and trusts its answer;
the principal it names is then looked up in the local directory.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from otp_gateway.config import settings

logger = logging.getLogger(__name__)


class CredentialVerifier(ABC):
    """Checks a username/password pair."""

    @abstractmethod
    async def verify(self, username: str, password: str) -> int | None:
        """Return the principal id the credentials belong to, or ``None``."""


class IdentityApiVerifier(CredentialVerifier):
    """Async HTTP wrapper around the identity service's verify endpoint.

    ``POST {base_url}/credentials/verify`` with ``{username, password}``
    answers ``200 {"principal_id": ...}`` for a match and ``401`` otherwise.
    """

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.identity_api_base_url).rstrip("/")
        self._transport = transport

    async def verify(self, username: str, password: str) -> int | None:
        url = f"{self._base_url}/credentials/verify"
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=settings.identity_timeout_seconds
            ) as client:
                resp = await client.post(url, json={"username": username, "password": password})
            if resp.status_code == 200:
                return int(resp.json()["principal_id"])
            if resp.status_code in (401, 403, 404):
                logger.info("Identity service rejected credentials for %s", username)
                return None
            logger.error("Credential check failed: %s %s", resp.status_code, resp.text)
            return None
        except httpx.HTTPError as exc:
            logger.exception("Credential check request error: %s", exc)
            return None
