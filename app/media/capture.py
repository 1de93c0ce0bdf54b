"""Live capture from a local camera with bounded-duration recording.

The camera handle is a context manager: the device is released when the
``with`` block exits, whatever happens inside it. Recordings shorter than
``MIN_CLIP_SECONDS`` are discarded and never handed downstream.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

import cv2

from app.errors import CaptureBusy, InputRejected, PermissionDenied

logger = logging.getLogger(__name__)

MAX_CLIP_SECONDS = float(os.getenv("MAX_CLIP_SECONDS", "15"))
MIN_CLIP_SECONDS = float(os.getenv("MIN_CLIP_SECONDS", "2"))
DEFAULT_FPS = 20.0


class FrameSource(Protocol):
    def isOpened(self) -> bool: ...

    def read(self) -> tuple[bool, Any]: ...

    def get(self, prop_id: int) -> float: ...

    def release(self) -> None: ...


class FrameSink(Protocol):
    def write(self, frame: Any) -> None: ...

    def release(self) -> None: ...


def _open_writer(path: Path, fps: float, size: tuple[int, int]) -> FrameSink:
    fourcc = cv2.VideoWriter_fourcc(*"mp4v")
    return cv2.VideoWriter(str(path), fourcc, fps, size)


@dataclass
class RecordedClip:
    path: Path
    duration_seconds: float
    frame_count: int
    mime_type: str = "video/mp4"


class Camera:
    """Scoped handle on a capture device."""

    def __init__(
        self,
        device: int | str = 0,
        opener: Callable[[int | str], FrameSource] = cv2.VideoCapture,
    ) -> None:
        self.device = device
        self._opener = opener
        self._source: Optional[FrameSource] = None

    def __enter__(self) -> "Camera":
        source = self._opener(self.device)
        if not source.isOpened():
            source.release()
            raise PermissionDenied(f"Camera {self.device!r} could not be opened (access denied or unavailable)")
        self._source = source
        logger.info("Camera %r acquired", self.device)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    @property
    def is_open(self) -> bool:
        return self._source is not None

    @property
    def fps(self) -> float:
        if self._source is None:
            return DEFAULT_FPS
        fps = self._source.get(cv2.CAP_PROP_FPS)
        return fps if fps and fps > 0 else DEFAULT_FPS

    def read(self) -> Any:
        if self._source is None:
            raise RuntimeError("Camera is not open")
        ok, frame = self._source.read()
        return frame if ok else None

    def release(self) -> None:
        if self._source is not None:
            self._source.release()
            self._source = None
            logger.info("Camera %r released", self.device)


class ClipRecorder:
    """Records one clip at a time from an open camera."""

    def __init__(
        self,
        camera: Camera,
        max_seconds: float = MAX_CLIP_SECONDS,
        min_seconds: float = MIN_CLIP_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        writer_factory: Callable[[Path, float, tuple[int, int]], FrameSink] = _open_writer,
    ) -> None:
        if min_seconds > max_seconds:
            raise ValueError("min_seconds must not exceed max_seconds")
        self.camera = camera
        self.max_seconds = max_seconds
        self.min_seconds = min_seconds
        self._clock = clock
        self._writer_factory = writer_factory
        self._active = threading.Lock()
        self._stop = threading.Event()

    @property
    def recording(self) -> bool:
        return self._active.locked()

    def stop(self) -> None:
        """Ask the running recording to finish after the current frame."""
        self._stop.set()

    def record(self, output_path: Path) -> RecordedClip:
        """Record until ``stop()`` is called, frames run out, or the cap is hit.

        Raises:
            CaptureBusy: another recording is running on this recorder.
            InputRejected: the clip is shorter than ``min_seconds``.
        """
        if not self._active.acquire(blocking=False):
            raise CaptureBusy("A recording is already in progress")
        self._stop.clear()
        writer: Optional[FrameSink] = None
        frames = 0
        started = self._clock()
        elapsed = 0.0
        try:
            while not self._stop.is_set():
                frame = self.camera.read()
                elapsed = self._clock() - started
                if frame is None or elapsed > self.max_seconds:
                    break
                if writer is None:
                    height, width = frame.shape[:2]
                    writer = self._writer_factory(output_path, self.camera.fps, (width, height))
                writer.write(frame)
                frames += 1
        except BaseException:
            _discard(output_path)
            raise
        finally:
            if writer is not None:
                writer.release()
            self._active.release()

        duration = min(elapsed, self.max_seconds)
        if frames == 0 or duration < self.min_seconds:
            _discard(output_path)
            raise InputRejected(
                f"Recording too short ({duration:.1f}s). Record at least {self.min_seconds:g} seconds.",
                reason="too_short",
            )
        logger.info("Recorded %d frames (%.1fs) to %s", frames, duration, output_path)
        return RecordedClip(path=output_path, duration_seconds=duration, frame_count=frames)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
