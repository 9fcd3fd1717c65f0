"""Deadline-bounded polling of a remote generation job.

The loop is a small state machine: each iteration asks a backend-specific
``check`` for a fresh ``GenerationResult`` snapshot (``None`` meaning "nothing
observable yet"), then either settles or suspends for ``poll_interval``. The
deadline and an optional cancel signal are the only other exits.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from app.models.generation import GenerationResult, GenerationStatus
from app.services.errors import TransportError

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Generation timed out"
CANCELLED_MESSAGE = "Generation cancelled"


@dataclass(frozen=True)
class PollContext:
    job_id: str
    attempt: int
    elapsed: float
    max_wait: float

    @property
    def remaining_progress(self) -> float:
        """Share of the wait budget still unused, as a 0-100 progress proxy."""

        if self.max_wait <= 0:
            return 0.0
        return max(0.0, min(100.0, (self.max_wait - self.elapsed) / self.max_wait * 100.0))


StatusCheck = Callable[[PollContext], Awaitable[Optional[GenerationResult]]]


class Clock(Protocol):
    def monotonic(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class LoopClock:
    """Clock backed by the running event loop."""

    def monotonic(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class JobPoller:
    def __init__(self, check: StatusCheck, *, clock: Optional[Clock] = None):
        self._check = check
        self._clock = clock or LoopClock()

    async def _suspend(self, seconds: float, cancel: Optional[asyncio.Event]) -> None:
        if cancel is None:
            await self._clock.sleep(seconds)
            return
        sleeper = asyncio.ensure_future(self._clock.sleep(seconds))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()

    async def await_result(
        self,
        job_id: str,
        *,
        max_wait: float = 300.0,
        poll_interval: float = 2.0,
        stop_on_progress: bool = True,
        cancel: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """Poll until a settled snapshot, the deadline, or ``cancel`` is set.

        With ``stop_on_progress`` the first ``processing`` snapshot is returned;
        otherwise polling continues until ``completed`` or ``failed``. Transport
        failures during a poll are logged and retried on the next iteration.
        Cancelling neither aborts nor cancels the remote job.
        """

        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        started = self._clock.monotonic()
        polls = 0
        while self._clock.monotonic() - started < max_wait:
            if cancel is not None and cancel.is_set():
                logger.info("Stopped polling job %s: cancelled", job_id)
                return GenerationResult.failed(job_id, CANCELLED_MESSAGE)

            polls += 1
            try:
                snapshot = await self._check(
                    PollContext(
                        job_id=job_id,
                        attempt=polls,
                        elapsed=self._clock.monotonic() - started,
                        max_wait=max_wait,
                    )
                )
            except TransportError as exc:
                logger.warning("Status check %d for job %s failed: %s", polls, job_id, exc)
                snapshot = None
            except (TypeError, ValueError, KeyError, AttributeError) as exc:
                logger.warning("Status check %d for job %s got a malformed payload: %r", polls, job_id, exc)
                snapshot = None

            if snapshot is not None:
                logger.debug("Job %s poll %d -> %s", job_id, polls, snapshot.status.value)
                if snapshot.status.is_terminal:
                    return snapshot
                if stop_on_progress and snapshot.status is GenerationStatus.PROCESSING:
                    return snapshot

            remaining = max_wait - (self._clock.monotonic() - started)
            if remaining > 0:
                await self._suspend(min(poll_interval, remaining), cancel)

        logger.warning("Job %s timed out after %.1fs (%d polls)", job_id, max_wait, polls)
        return GenerationResult.failed(job_id, TIMEOUT_MESSAGE)

