"""File backend — appends codes to a per-recipient text file."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path

from otp_gateway.config import settings
from otp_gateway.delivery.base import Channel, DeliveryBackend

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class FileBackend(DeliveryBackend):
    """Writes ``<timestamp> - <text>`` lines to ``<base_dir>/<address>.txt``.

    Only the final path component of *address* is used, so a recipient
    can never point outside ``base_dir``.
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self._base_dir = Path(base_dir or settings.delivery_file_dir)

    @property
    def channel(self) -> Channel:
        return Channel.FILE

    def path_for(self, address: str) -> Path:
        return self._base_dir / f"{Path(address).name}.txt"

    async def send(self, address: str, text: str) -> None:
        path = self.path_for(address)
        entry = f"{datetime.now().strftime(TIMESTAMP_FORMAT)} - {text}\n"
        await asyncio.to_thread(self._append, path, entry)
        logger.info("OTP written to file %s", path)

    @staticmethod
    def _append(path: Path, entry: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(entry)
