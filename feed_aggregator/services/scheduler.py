"""
Cycle scheduling with single-flight and manual-trigger throttling.

Two kinds of trigger start a merge cycle:
- Timed: fired by the periodic loop; obeys single-flight only
- Manual: fired by an operator; also obeys a cool-down measured from
  the previous accepted manual start

A trigger that cannot start is rejected with a reason, never queued.
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from feed_aggregator.observability.metrics import MetricsCollector, get_metrics

logger = structlog.get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 600.0
DEFAULT_MANUAL_COOLDOWN_SECONDS = 30.0


class GateState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class TriggerStatus(str, Enum):
    ACCEPTED = "accepted"
    BUSY = "busy"
    THROTTLED = "throttled"


@dataclass
class TriggerResult:
    """Outcome of a trigger attempt."""

    status: TriggerStatus
    retry_after_seconds: float = 0.0
    task: asyncio.Task | None = None

    @property
    def accepted(self) -> bool:
        return self.status is TriggerStatus.ACCEPTED

    @property
    def wait_seconds(self) -> int:
        """Retry delay rounded up to whole seconds for display."""
        return math.ceil(self.retry_after_seconds)


class CycleGate:
    """
    IDLE/RUNNING state machine guarding cycle starts.

    try_start() and finish() are plain synchronous calls, so on a single
    event loop no two triggers can both observe IDLE.
    """

    def __init__(
        self,
        manual_cooldown_seconds: float = DEFAULT_MANUAL_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cooldown = manual_cooldown_seconds
        self._clock = clock
        self._state = GateState.IDLE
        self._last_manual_start: float | None = None

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is GateState.RUNNING

    def try_start(self, manual: bool = False) -> TriggerResult:
        if self._state is GateState.RUNNING:
            return TriggerResult(TriggerStatus.BUSY)

        now = self._clock()
        if manual and self._last_manual_start is not None:
            elapsed = now - self._last_manual_start
            if elapsed < self._cooldown:
                return TriggerResult(
                    TriggerStatus.THROTTLED,
                    retry_after_seconds=self._cooldown - elapsed,
                )

        self._state = GateState.RUNNING
        if manual:
            self._last_manual_start = now
        return TriggerResult(TriggerStatus.ACCEPTED)

    def finish(self) -> None:
        self._state = GateState.IDLE


class FeedScheduler:
    """
    Runs merge cycles on a timer and on demand.

    Usage:
        scheduler = FeedScheduler(service.run_cycle, interval_seconds=600)
        scheduler.start()
        result = scheduler.trigger(manual=True)
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        run_cycle: Callable[[], Awaitable[Any]],
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        manual_cooldown_seconds: float = DEFAULT_MANUAL_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        metrics: MetricsCollector | None = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._run_cycle = run_cycle
        self._interval = interval_seconds
        self._gate = CycleGate(manual_cooldown_seconds, clock=clock)
        self._clock = clock
        self._metrics = metrics or get_metrics()

        self._loop_task: asyncio.Task | None = None
        self._cycle_task: asyncio.Task | None = None

        self.last_result: Any = None
        self.last_error: str | None = None
        self.last_finished_at: datetime | None = None

    @property
    def gate(self) -> CycleGate:
        return self._gate

    @property
    def is_running(self) -> bool:
        return self._gate.is_running

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def started(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def trigger(self, manual: bool = False) -> TriggerResult:
        """
        Try to start a cycle now.

        Must be called from within the running event loop. On acceptance
        the cycle runs as a task carried by the returned result.
        """
        result = self._gate.try_start(manual=manual)
        kind = "manual" if manual else "timed"

        if not result.accepted:
            self._metrics.record_rejected_trigger(result.status.value)
            logger.info(
                "Trigger rejected",
                kind=kind,
                reason=result.status.value,
                retry_after_seconds=round(result.retry_after_seconds, 2),
            )
            return result

        logger.info("Trigger accepted", kind=kind)
        task = asyncio.create_task(self._run_guarded(), name="feed-cycle")
        self._cycle_task = task
        return TriggerResult(TriggerStatus.ACCEPTED, task=task)

    async def _run_guarded(self) -> Any:
        start = self._clock()
        outcome = "failed"
        try:
            result = await self._run_cycle()
            outcome = "success"
            self.last_result = result
            self.last_error = None
            return result
        except Exception as e:
            self.last_error = f"{type(e).__name__}: {e}"
            logger.error("Cycle failed", error=str(e), exc_info=True)
            return None
        finally:
            self._gate.finish()
            self.last_finished_at = datetime.now(timezone.utc)
            self._metrics.record_cycle(outcome, latency=self._clock() - start)

    def start(self, run_immediately: bool = True) -> None:
        """Start the periodic loop in the background."""
        if self.started:
            return
        self._loop_task = asyncio.create_task(
            self._loop(run_immediately), name="feed-scheduler"
        )
        logger.info(
            "Scheduler started",
            interval_seconds=self._interval,
            run_immediately=run_immediately,
        )

    async def _loop(self, run_immediately: bool) -> None:
        if not run_immediately:
            await asyncio.sleep(self._interval)

        while True:
            result = self.trigger(manual=False)
            if result.status is TriggerStatus.BUSY:
                logger.info("Cycle still running, skipping timed trigger")
            await asyncio.sleep(self._interval)

    async def stop(self) -> None:
        """Stop the periodic loop and wait for an in-flight cycle."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None

        if self._cycle_task is not None and not self._cycle_task.done():
            logger.info("Waiting for in-flight cycle to finish")
            await asyncio.gather(self._cycle_task, return_exceptions=True)
        self._cycle_task = None

        logger.info("Scheduler stopped")
