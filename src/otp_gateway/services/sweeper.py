"""Expiration sweeper — periodically expires stale codes in the background."""

from __future__ import annotations

import asyncio
import logging

from otp_gateway.services.otp_service import OtpService

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    """Runs :meth:`OtpService.sweep_expired` at a fixed rate.

    The first sweep happens one interval after :meth:`start`.  A single
    task performs the sweeps one after another, so two sweeps never
    overlap; ticks missed while a slow sweep was running are skipped
    rather than replayed.
    """

    def __init__(self, otp_service: OtpService, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._otp_service = otp_service
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.is_running:
            logger.warning("Expiration sweeper already running")
            return
        logger.info("Starting OTP-expiration sweeper, interval=%ss", self._interval)
        self._task = asyncio.create_task(self._run_forever(), name="otp-expiration-sweeper")

    def stop(self) -> None:
        """Cancel pending and in-flight sweeps without waiting for them."""
        if self._task is None:
            return
        logger.info("Stopping OTP-expiration sweeper")
        self._task.cancel()
        self._task = None

    async def run_once(self) -> int | None:
        """Perform one sweep.  Errors are logged, never raised."""
        try:
            count = await self._otp_service.sweep_expired()
        except Exception:
            logger.exception("Error in OTP-expiration sweep")
            return None
        logger.debug("Sweeper run finished: %d codes expired", count)
        return count

    async def _run_forever(self) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time() + self._interval
        while True:
            await asyncio.sleep(max(0.0, next_run - loop.time()))
            await self.run_once()
            next_run += self._interval
            while next_run <= loop.time():
                next_run += self._interval
