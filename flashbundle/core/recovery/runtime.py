from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from .errors import CancellationError, PipelineStage

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class RunContext:
    """Cancellation signal and time source shared by every stage of one run.

    ``clock`` and ``sleep`` are injectable so retry and polling loops can be
    driven by virtual time in tests.
    """

    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    clock: Clock = time.monotonic
    sleep: Sleeper = asyncio.sleep

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def check_cancelled(self, stage: Optional[PipelineStage] = None) -> None:
        if self.cancel_event.is_set():
            raise CancellationError(stage)

    async def pause(self, delay: float, stage: Optional[PipelineStage] = None) -> None:
        """Sleep for ``delay`` seconds unless cancellation fires first."""

        self.check_cancelled(stage)
        if delay <= 0:
            return

        sleeper = asyncio.ensure_future(self.sleep(delay))
        watcher = asyncio.ensure_future(self.cancel_event.wait())
        try:
            await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, watcher):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleeper, watcher, return_exceptions=True)

        self.check_cancelled(stage)
