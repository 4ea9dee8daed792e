"""Report journal and archival sync."""

from __future__ import annotations

import json
import logging
import time
from typing import Iterable

import httpx

from lexicite.config import settings
from lexicite.models.report import ReportEntry

logger = logging.getLogger(__name__)


class ReportJournal:
    """Bounded history of batch reports, most recent first."""

    def __init__(self, entries: Iterable[ReportEntry] = (), limit: int | None = None) -> None:
        self.limit = limit or settings.history_limit
        self._entries: list[ReportEntry] = list(entries)[: self.limit]

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[ReportEntry]:
        return list(self._entries)

    def record(self, entry: ReportEntry) -> None:
        self._entries = [entry, *self._entries][: self.limit]

    def clear(self) -> None:
        self._entries = []

    def export_json(self) -> str:
        return json.dumps([e.to_dict() for e in self._entries], indent=2)


class ArchiveSync:
    """Posts reports to an external endpoint. Failures are logged, never raised."""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url if url is not None else settings.sync_url
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def send_report(self, entry: ReportEntry) -> bool:
        return await self._post(entry.to_dict())

    async def send_dataset(self, entries: list[ReportEntry]) -> bool:
        return await self._post(
            {
                "type": "FULL_DATASET_REPORT",
                "timestamp": int(time.time() * 1000),
                "journalCount": len(entries),
                "data": [e.to_dict() for e in entries],
            }
        )

    async def _post(self, payload: dict) -> bool:
        if not self.enabled:
            return False
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Archive sync to %s failed: %s", self.url, exc)
            return False
        logger.info("Archive sync to %s succeeded", self.url)
        return True
