"""One analysis attempt as an explicit state machine.

    idle ──► uploading ──► analyzing ──► complete
      │          │             │
      └──────────┴──► error ◄──┘   (idle → analyzing when no transfer is needed)

``complete`` is only entered once the report has been written to the store.
``error`` is terminal: a new attempt starts from a fresh instance.
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

from pydantic import BaseModel

from app.ai.analyzer import Analyzer
from app.errors import (
    AttemptInProgress, IllegalTransition, PawsightError, ServiceFailure, TransportFailure,
)
from app.media.upload import CloudinaryUploader
from app.models.dog import DogSubject
from app.models.media import InlineMedia, PendingUpload, RemoteMedia
from app.services.progress import ANALYSIS_STEPS, PROGRESS_INTERVAL_SECONDS, IllustrativeProgress, step_index
from app.services.report_store import ReportStore

logger = logging.getLogger(__name__)

MAX_TRACKED_ATTEMPTS = 50


class AttemptState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"


_TRANSITIONS: dict[AttemptState, frozenset[AttemptState]] = {
    AttemptState.IDLE: frozenset({AttemptState.UPLOADING, AttemptState.ANALYZING}),
    AttemptState.UPLOADING: frozenset({AttemptState.ANALYZING, AttemptState.ERROR}),
    AttemptState.ANALYZING: frozenset({AttemptState.COMPLETE, AttemptState.ERROR}),
    AttemptState.COMPLETE: frozenset(),
    AttemptState.ERROR: frozenset(),
}

AttemptInput = Union[RemoteMedia, InlineMedia, PendingUpload]


class AttemptStatus(BaseModel):
    """Snapshot exposed to the presentation layer."""
    attempt_id: str
    state: AttemptState
    upload_progress: Optional[int] = None
    analysis_progress: int = 0
    analysis_step: Optional[int] = None
    analysis_caption: Optional[str] = None
    report_id: Optional[str] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    updated_at: datetime


class AnalysisAttempt:
    """Drives acquisition output through upload, analysis and storage."""

    def __init__(
        self,
        analyzer: Analyzer,
        store: ReportStore,
        uploader: Optional[CloudinaryUploader] = None,
        progress_interval: float = PROGRESS_INTERVAL_SECONDS,
        on_change: Optional[Callable[[AttemptStatus], None]] = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.analyzer = analyzer
        self.store = store
        self.uploader = uploader
        self.progress_interval = progress_interval
        self._on_change = on_change

        self.state = AttemptState.IDLE
        self.upload_progress: Optional[int] = None
        self.analysis_progress = 0
        self.report_id: Optional[str] = None
        self.error: Optional[PawsightError] = None
        self.updated_at = datetime.now(timezone.utc)

    @property
    def settled(self) -> bool:
        return self.state in (AttemptState.COMPLETE, AttemptState.ERROR)

    def status(self) -> AttemptStatus:
        step = step_index(self.analysis_progress) if self.state is AttemptState.ANALYZING else None
        return AttemptStatus(
            attempt_id=self.id,
            state=self.state,
            upload_progress=self.upload_progress,
            analysis_progress=self.analysis_progress,
            analysis_step=step,
            analysis_caption=ANALYSIS_STEPS[step] if step is not None else None,
            report_id=self.report_id,
            error_kind=self.error.kind if self.error else None,
            error_message=self.error.user_message if self.error else None,
            updated_at=self.updated_at,
        )

    async def run(self, subject: DogSubject, media: AttemptInput) -> str:
        """Run the attempt to completion and return the stored report id.

        Raises the typed failure that moved the attempt to ``error``.
        """
        if self.state is not AttemptState.IDLE:
            raise IllegalTransition(f"attempt {self.id} already ran (state={self.state.value})")
        try:
            if isinstance(media, PendingUpload):
                self._transition(AttemptState.UPLOADING)
                media = await self._upload(media)

            self._transition(AttemptState.ANALYZING)
            report = await self._analyze(subject, media)

            report_id = await self.store.put(report)
        except PawsightError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            failure = _unexpected(self.state, exc)
            self._fail(failure)
            raise failure from exc

        self.report_id = report_id
        self._transition(AttemptState.COMPLETE)
        logger.info("Attempt %s complete: report %s", self.id, report_id)
        return report_id

    async def _upload(self, pending: PendingUpload) -> RemoteMedia:
        if self.uploader is None or not self.uploader.configured:
            raise TransportFailure("Upload backend is not configured", reason="network")
        self.upload_progress = 0
        self._notify()
        try:
            return await self.uploader.upload(pending, on_progress=self._set_upload_progress)
        except PawsightError:
            raise
        except OSError as exc:
            raise TransportFailure(f"Could not read {pending.filename}: {exc}", reason="network") from exc
        except Exception as exc:
            raise TransportFailure(f"Upload raised {type(exc).__name__}: {exc}", reason="network") from exc

    async def _analyze(self, subject: DogSubject, media: Union[RemoteMedia, InlineMedia]):
        ticker = IllustrativeProgress(self._set_analysis_progress, interval=self.progress_interval)
        ticker.start()
        try:
            return await self.analyzer.analyze(subject, media)
        except PawsightError:
            raise
        except Exception as exc:
            raise ServiceFailure(f"Analyzer raised {type(exc).__name__}: {exc}") from exc
        finally:
            ticker.stop()

    # ─── State bookkeeping ────────────────────────────────────────────────────

    def _transition(self, target: AttemptState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise IllegalTransition(f"{self.state.value} -> {target.value} is not allowed")
        logger.debug("Attempt %s: %s -> %s", self.id, self.state.value, target.value)
        self.state = target
        self._notify()

    def _fail(self, exc: PawsightError) -> None:
        self.error = exc
        if AttemptState.ERROR in _TRANSITIONS[self.state]:
            self._transition(AttemptState.ERROR)
        logger.warning("Attempt %s failed (%s): %s", self.id, exc.kind, exc.detail or exc)

    def _set_upload_progress(self, percent: int) -> None:
        if self.state is AttemptState.UPLOADING:
            self.upload_progress = percent
            self._notify()

    def _set_analysis_progress(self, value: int) -> None:
        if self.state is AttemptState.ANALYZING:
            self.analysis_progress = value
            self._notify()

    def _notify(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
        if self._on_change is not None:
            self._on_change(self.status())


def _unexpected(state: AttemptState, exc: Exception) -> PawsightError:
    if state is AttemptState.UPLOADING:
        return TransportFailure(f"Upload raised {type(exc).__name__}: {exc}", reason="network")
    return ServiceFailure(f"Attempt raised {type(exc).__name__}: {exc}")


class AttemptRegistry:
    """Tracks attempts by id and refuses to start one while another is in flight."""

    def __init__(self, factory: Callable[[], AnalysisAttempt]) -> None:
        self._factory = factory
        self._attempts: "OrderedDict[str, AnalysisAttempt]" = OrderedDict()
        self._tasks: set[asyncio.Task] = set()
        self._active: Optional[AnalysisAttempt] = None

    @property
    def busy(self) -> bool:
        return self._active is not None and not self._active.settled

    def get(self, attempt_id: str) -> Optional[AnalysisAttempt]:
        return self._attempts.get(attempt_id)

    def start(
        self,
        subject: DogSubject,
        media: AttemptInput,
        cleanup: Optional[Callable[[], None]] = None,
    ) -> AnalysisAttempt:
        """Create an attempt and run it in the background."""
        if self.busy:
            raise AttemptInProgress(f"attempt {self._active.id} is still running")
        attempt = self._factory()
        self._active = attempt
        self._attempts[attempt.id] = attempt
        self._evict()

        task = asyncio.get_event_loop().create_task(self._drive(attempt, subject, media, cleanup))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return attempt

    async def wait_idle(self) -> None:
        """Wait for background attempts to settle (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _drive(self, attempt, subject, media, cleanup) -> None:
        try:
            await attempt.run(subject, media)
        except PawsightError as exc:
            logger.debug("Attempt %s settled with %s", attempt.id, exc.kind)
        finally:
            if cleanup is not None:
                cleanup()

    def _evict(self) -> None:
        while len(self._attempts) > MAX_TRACKED_ATTEMPTS:
            oldest_id, oldest = next(iter(self._attempts.items()))
            if not oldest.settled:
                break
            del self._attempts[oldest_id]
