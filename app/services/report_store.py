"""Persistence for analysis reports, keyed by creation instant."""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from pydantic import ValidationError

from app.errors import NotFound, StorageFailure
from app.models.report import Report, StoredReport
from app.services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "report-"


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


def report_key(report_id: str) -> str:
    return f"{KEY_PREFIX}{report_id}"


def make_report_id(instant: datetime | int) -> str:
    """Epoch milliseconds as a string: lexical order matches chronological order."""
    millis = instant if isinstance(instant, int) else int(instant.timestamp() * 1000)
    return str(millis)


class ReportStore:
    """put/get/list/delete over any ``KeyValueStore``.

    Ids are derived from the creation instant. Two reports created in the
    same millisecond share an id and the second overwrites the first.
    """

    def __init__(self, backend: KeyValueStore, clock: Callable[[], int] = _now_millis) -> None:
        self.backend = backend
        self._clock = clock

    async def put(self, report: Report, created_at: Optional[datetime] = None) -> str:
        """Persist a report and return its id. Raises ``StorageFailure``."""
        report_id = make_report_id(created_at if created_at is not None else self._clock())
        try:
            await self.backend.set(report_key(report_id), report.to_json())
        except Exception as exc:
            logger.exception("Failed to write report %s", report_id)
            raise StorageFailure(f"could not write report {report_id}: {exc}") from exc
        logger.info("Stored report %s (emotion=%s)", report_id, report.emotion)
        return report_id

    async def get(self, report_id: str) -> Report | NotFound:
        """Return the report, or ``NotFound`` for unknown or unreadable entries."""
        try:
            raw = await self.backend.get(report_key(report_id))
        except Exception:
            logger.exception("Failed to read report %s", report_id)
            return NotFound(report_id)
        if raw is None:
            return NotFound(report_id)
        try:
            return Report.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Stored report %s is unreadable: %s", report_id, exc)
            return NotFound(report_id)

    async def list(
        self,
        emotion: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[StoredReport]:
        """Return stored reports newest first, optionally filtered by emotion.

        Raises ``StorageFailure`` when the backend cannot be read.
        """
        try:
            rows = await self.backend.items(KEY_PREFIX)
        except Exception as exc:
            logger.exception("Failed to list reports")
            raise StorageFailure(f"could not list reports: {exc}") from exc

        entries: list[StoredReport] = []
        for key, raw in rows:
            report_id = key[len(KEY_PREFIX):]
            if not report_id.isdigit():
                logger.warning("Skipping report entry with malformed key %r", key)
                continue
            try:
                report = Report.model_validate_json(raw)
            except ValidationError as exc:
                logger.warning("Skipping unreadable report %s: %s", report_id, exc)
                continue
            if emotion and report.emotion != emotion:
                continue
            entries.append(StoredReport(id=report_id, report=report))

        entries.sort(key=lambda e: int(e.id), reverse=True)
        return entries[:limit] if limit is not None else entries

    async def delete(self, report_id: str) -> bool:
        """Delete a report. Returns True if deleted."""
        deleted = await self.backend.delete(report_key(report_id))
        if deleted:
            logger.info("Deleted report %s", report_id)
        return deleted
