"""Session token store — issues and validates bearer tokens for API callers."""

from __future__ import annotations

import logging
import secrets
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from otp_gateway.config import settings
from otp_gateway.models.principal import Principal, PrincipalRole

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
MAX_ISSUE_ATTEMPTS = 3


@dataclass(frozen=True)
class PrincipalRef:
    """The authenticated identity a token stands for."""

    id: int
    role: PrincipalRole

    @classmethod
    def from_principal(cls, principal: Principal) -> PrincipalRef:
        return cls(id=principal.id, role=principal.role)


@dataclass(frozen=True)
class SessionToken:
    """One issued token.  Never mutated; a refresh is a new token."""

    token: str
    principal: PrincipalRef
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class TokenMap(ABC):
    """Key-value storage for tokens with atomic insert and removal."""

    @abstractmethod
    def get(self, token: str) -> SessionToken | None: ...

    @abstractmethod
    def put_if_absent(self, entry: SessionToken) -> bool:
        """Store *entry* unless its token is already present."""

    @abstractmethod
    def remove(self, token: str) -> SessionToken | None: ...

    @abstractmethod
    def remove_if_same(self, entry: SessionToken) -> bool:
        """Remove *entry* only if it is still the value stored for its token."""

    @abstractmethod
    def __len__(self) -> int: ...


class InMemoryTokenMap(TokenMap):
    """Process-local map guarded by a lock; safe across threads and tasks.

    For multi-process deployments, swap in a shared implementation
    (e.g. Redis ``SET NX``/``GETDEL``) behind the same interface.
    """

    def __init__(self) -> None:
        self._entries: dict[str, SessionToken] = {}
        self._lock = threading.Lock()

    def get(self, token: str) -> SessionToken | None:
        with self._lock:
            return self._entries.get(token)

    def put_if_absent(self, entry: SessionToken) -> bool:
        with self._lock:
            if entry.token in self._entries:
                return False
            self._entries[entry.token] = entry
            return True

    def remove(self, token: str) -> SessionToken | None:
        with self._lock:
            return self._entries.pop(token, None)

    def remove_if_same(self, entry: SessionToken) -> bool:
        with self._lock:
            if self._entries.get(entry.token) is not entry:
                return False
            del self._entries[entry.token]
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SessionTokenStore:
    """Issues opaque tokens with a fixed time-to-live.

    Validity is re-checked on every use; expired tokens are evicted the
    first time they are seen, so no background sweep is needed.
    """

    def __init__(
        self,
        ttl_seconds: int | None = None,
        token_map: TokenMap | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        if ttl_seconds is None:
            ttl_seconds = settings.session_token_ttl_seconds
        self._ttl = timedelta(seconds=ttl_seconds)
        self._tokens = token_map if token_map is not None else InMemoryTokenMap()
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, principal: PrincipalRef) -> str:
        """Create a token for *principal* and return it."""
        expires_at = self._clock() + self._ttl
        for _ in range(MAX_ISSUE_ATTEMPTS):
            entry = SessionToken(
                token=secrets.token_urlsafe(TOKEN_BYTES),
                principal=principal,
                expires_at=expires_at,
            )
            if self._tokens.put_if_absent(entry):
                logger.info(
                    "Issued session token for principal %s (expires at %s)",
                    principal.id,
                    expires_at.isoformat(),
                )
                return entry.token
        raise RuntimeError("Could not allocate a unique session token")

    def validate(self, token: str) -> PrincipalRef | None:
        """Return the token's principal, or ``None`` if absent or expired."""
        entry = self._tokens.get(token)
        if entry is None:
            logger.warning("Token validation failed: token not found")
            return None
        if entry.is_expired(self._clock()):
            self._tokens.remove_if_same(entry)
            logger.warning(
                "Token for principal %s expired at %s, removed from store",
                entry.principal.id,
                entry.expires_at.isoformat(),
            )
            return None
        return entry.principal

    def revoke(self, token: str) -> None:
        """Remove *token*; a no-op if it is unknown."""
        if self._tokens.remove(token) is not None:
            logger.info("Session token revoked")

    @property
    def active_count(self) -> int:
        """Number of stored tokens, including expired ones not yet observed."""
        return len(self._tokens)
