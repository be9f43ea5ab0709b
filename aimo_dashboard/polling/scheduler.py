"""APScheduler-driven polling of upstream sources.

Each source is a ``PollTask``: an async ``fetch`` that talks to the network
and a synchronous ``apply`` that reconciles the result into state.  A tick
never raises.  Failures are logged, counted and recorded on the source's
status while the last known good data stays in place.

Per-source state machine::

    idle -> loading -> ready -> loading -> ready ...
    loading -> error -> loading -> ready
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from datetime import UTC, datetime
from typing import Any, Literal

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-untyped]

from aimo_dashboard.errors import SourceError
from aimo_dashboard.models import WireModel
from aimo_dashboard.observability.metrics import POLL_DURATION, POLLS_TOTAL, SOURCE_HEALTHY

logger = logging.getLogger(__name__)

SourceState = Literal["idle", "loading", "ready", "error"]


class SourceStatus(WireModel):
    name: str
    state: SourceState = "idle"
    interval_seconds: float = 0.0
    last_attempt: datetime | None = None
    last_success: datetime | None = None
    last_error: str | None = None
    consecutive_failures: int = 0


class PollTask:
    """One polled source.

    Args:
        name: Source name used in logs, metrics and status.
        interval_seconds: Poll cadence; 0 or less means initial load only.
        fetch: Coroutine returning the fetched payload. May raise.
        apply: Synchronous reconcile step; returns records that newly arrived.
        notify: Called with newly arrived records on ticks after the initial load.
        stage: Initial-load ordering. Tasks of a lower stage are applied before
            any task of a higher stage starts.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        fetch: Callable[[], Awaitable[Any]],
        apply: Callable[[Any], Sequence[Any]],
        notify: Callable[[Sequence[Any]], None] | None = None,
        stage: int = 0,
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self.fetch = fetch
        self.apply = apply
        self.notify = notify
        self.stage = stage

    def __repr__(self) -> str:
        return f"PollTask({self.name!r}, every {self.interval_seconds}s)"


class PollingScheduler:
    def __init__(self, tasks: Iterable[PollTask]) -> None:
        self.tasks: dict[str, PollTask] = {task.name: task for task in tasks}
        self._statuses: dict[str, SourceStatus] = {
            name: SourceStatus(name=name, interval_seconds=task.interval_seconds) for name, task in self.tasks.items()
        }
        self.initial_errors: dict[str, str] = {}
        self._scheduler: AsyncIOScheduler | None = None
        self._initial_load_done = False
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def statuses(self) -> list[SourceStatus]:
        return list(self._statuses.values())

    def status(self, name: str) -> SourceStatus:
        return self._statuses[name]

    async def run_once(self, name: str, initial: bool = False) -> bool:
        """Run one tick of a source. Returns True on success; never raises."""
        task = self.tasks[name]
        status = self._statuses[name]
        status.state = "loading"
        status.last_attempt = datetime.now(UTC)
        start = time.monotonic()

        try:
            payload = await task.fetch()
            if not self._active:
                logger.debug("Discarding %s result that arrived after teardown", name)
                status.state = "idle"
                return False
            arrived = task.apply(payload)
        except SourceError as exc:
            logger.warning("Poll of %s failed: %s", name, exc)
            self._record_failure(status, str(exc))
            return False
        except Exception as exc:
            logger.exception("Poll of %s failed unexpectedly", name)
            self._record_failure(status, f"{type(exc).__name__}: {exc}")
            return False
        finally:
            POLL_DURATION.labels(source=name).observe(time.monotonic() - start)

        if arrived and not initial and task.notify is not None:
            task.notify(arrived)

        status.state = "ready"
        status.last_success = datetime.now(UTC)
        status.last_error = None
        status.consecutive_failures = 0
        POLLS_TOTAL.labels(source=name, status="success").inc()
        SOURCE_HEALTHY.labels(source=name).set(1.0)
        return True

    def _record_failure(self, status: SourceStatus, message: str) -> None:
        status.state = "error"
        status.last_error = message
        status.consecutive_failures += 1
        POLLS_TOTAL.labels(source=status.name, status="error").inc()
        SOURCE_HEALTHY.labels(source=status.name).set(0.0)

    async def initial_load(self, names: Iterable[str] | None = None) -> dict[str, str]:
        """Run one tick of every (or each named) source, stage by stage.

        Sources sharing a stage run concurrently.  Errors accumulate across
        calls, so the load may be split around other startup steps.

        Returns:
            Source name -> error message for every source whose initial load failed.
        """
        self._active = True
        selected = list(names) if names is not None else list(self.tasks)
        for stage in sorted({self.tasks[name].stage for name in selected}):
            batch = [name for name in selected if self.tasks[name].stage == stage]
            results = await asyncio.gather(*(self.run_once(name, initial=True) for name in batch))
            for name, ok in zip(batch, results, strict=True):
                if ok:
                    self.initial_errors.pop(name, None)
                    continue
                error = self._statuses[name].last_error or "unknown error"
                self.initial_errors[name] = error
                logger.error("Initial load of %s failed: %s", name, error)

        self._initial_load_done = True
        return dict(self.initial_errors)

    def start(self) -> None:
        """Register an interval job per source with a positive cadence.

        Raises:
            RuntimeError: If called before ``initial_load`` has completed.
        """
        if not self._initial_load_done:
            msg = "initial_load() must complete before start()"
            raise RuntimeError(msg)
        if self._scheduler is not None:
            return

        self._active = True
        self._scheduler = AsyncIOScheduler()
        for task in self.tasks.values():
            if task.interval_seconds <= 0:
                logger.info("Polling disabled for %s (initial load only)", task.name)
                continue
            self._scheduler.add_job(
                self.run_once,
                trigger=IntervalTrigger(seconds=task.interval_seconds),
                args=[task.name],
                id=f"poll_{task.name}",
                name=f"Poll {task.name}",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            logger.info("Polling %s every %.0fs", task.name, task.interval_seconds)
        self._scheduler.start()

    def stop(self) -> None:
        """Shut the scheduler down; results of in-flight fetches are discarded."""
        self._active = False
        if self._scheduler is not None:
            with contextlib.suppress(Exception):
                self._scheduler.shutdown(wait=False)
            logger.info("Polling scheduler stopped")
            self._scheduler = None
