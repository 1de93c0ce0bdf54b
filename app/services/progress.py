"""Illustrative progress: advances on a fixed schedule, not on real completion."""

import asyncio
import logging
import os
from typing import Callable, Optional

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL_SECONDS = float(os.getenv("PROGRESS_INTERVAL_SECONDS", "0.5"))
PROGRESS_STEP = 10
PROGRESS_CEILING = 100

ANALYSIS_STEPS = (
    "Warming up the AI... sniffing out the details.",
    "Analyzing gait and posture for happy wiggles.",
    "Decoding tail wags and ear positions.",
    "Listening for barks, yips, and woofs.",
    "Checking for zoomies and play bows.",
    "Translating findings into human speak.",
    "Generating your Pawsight report...",
)


def step_index(progress: int, steps: int = len(ANALYSIS_STEPS), ceiling: int = PROGRESS_CEILING) -> int:
    """Caption index for an illustrative progress value; the last step is reached at the ceiling."""
    progress = max(0, min(progress, ceiling))
    return progress * (steps - 1) // ceiling


class IllustrativeProgress:
    """Ticker that adds ``step`` every ``interval`` seconds up to ``ceiling``.

    Once at the ceiling it holds there. After ``stop()`` returns no further
    update is ever emitted.
    """

    def __init__(
        self,
        on_update: Callable[[int], None],
        interval: float = PROGRESS_INTERVAL_SECONDS,
        step: int = PROGRESS_STEP,
        ceiling: int = PROGRESS_CEILING,
    ) -> None:
        if interval <= 0 or step <= 0:
            raise ValueError("interval and step must be positive")
        self._on_update = on_update
        self.interval = interval
        self.step = step
        self.ceiling = ceiling
        self.value = 0
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None or self._stopped:
            raise RuntimeError("ticker can only be started once")
        self._task = asyncio.get_event_loop().create_task(self._run())

    def stop(self) -> None:
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        while self.value < self.ceiling:
            await asyncio.sleep(self.interval)
            if self._stopped:
                return
            self.value = min(self.value + self.step, self.ceiling)
            self._on_update(self.value)
        logger.debug("Illustrative progress holding at %d", self.ceiling)

    async def __aenter__(self) -> "IllustrativeProgress":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()
