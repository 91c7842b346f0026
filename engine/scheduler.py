"""Sliding-window scheduler that runs one asynchronous job per item."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from app.errors import LabelerError, describe_error

from .progress import ProgressReporter, ProgressState, ProgressSummary

LOGGER = logging.getLogger("autolabel.engine.scheduler")

T = TypeVar("T")


@dataclass(frozen=True)
class JobResult:
    """Outcome of a job that succeeded; failures are raised instead."""

    label: str
    metadata: dict[str, Any] = field(default_factory=dict)


JobFn = Callable[[T, ProgressState], Awaitable[JobResult]]


def _describe_failure(item: Any) -> str:
    return f"{item} failed"


class Scheduler(Generic[T]):
    """Keeps up to ``concurrency`` jobs in flight until every item has run once.

    A job that raises :class:`~app.errors.LabelerError` counts as a failed item
    and the run carries on. Any other exception is treated as a bug: it stops
    dispatching, cancels the jobs still in flight and propagates.

    When ``cancel`` is set no further items are started; jobs already in flight
    finish normally.

    ``describe`` turns an item into the lead of its failure line, for example
    ``"Failed to label sample \"a.jpg\" (ID: 1)"``.
    """

    def __init__(
        self,
        concurrency: int,
        *,
        cancel: asyncio.Event | None = None,
        describe: Callable[[T], str] = _describe_failure,
        logger: logging.Logger = LOGGER,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self._cancel = cancel
        self._describe = describe
        self._logger = logger
        self.in_flight = 0
        self.peak_in_flight = 0

    async def run(self, items: Sequence[T], job: JobFn[T], progress: ProgressState) -> None:
        pending = iter(items)

        async def worker() -> None:
            # next() on the shared iterator never suspends, so no two workers
            # can take the same item.
            for item in pending:
                if self._cancelled():
                    return
                await self._dispatch(item, job, progress)

        workers = [
            asyncio.create_task(worker(), name=f"scheduler-worker-{index}")
            for index in range(min(self.concurrency, len(items)))
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

    def _cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    async def _dispatch(self, item: T, job: JobFn[T], progress: ProgressState) -> None:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            result = await job(item, progress)
        except LabelerError as exc:
            self._logger.error(
                "%s %s: %s",
                progress.position(offset=1),
                self._describe(item),
                describe_error(exc),
            )
            progress.record_failure()
        else:
            progress.record_success(result.label)
        finally:
            self.in_flight -= 1


async def label_all(
    items: Sequence[T],
    concurrency: int,
    job: JobFn[T],
    *,
    progress_interval: float | None = None,
    report: Callable[[ProgressState], None] | None = None,
    cancel: asyncio.Event | None = None,
    describe: Callable[[T], str] = _describe_failure,
) -> ProgressSummary:
    """Run ``job`` over ``items`` and return the final counters.

    With ``progress_interval`` set, ``report`` is called with the live
    :class:`ProgressState` on that period for as long as the run lasts.
    """
    progress = ProgressState(total=len(items))
    scheduler: Scheduler[T] = Scheduler(concurrency, cancel=cancel, describe=describe)
    if progress_interval is None:
        await scheduler.run(items, job, progress)
        return progress.snapshot()

    render = report or _log_progress
    async with ProgressReporter(progress_interval, lambda: render(progress)):
        await scheduler.run(items, job, progress)
    return progress.snapshot()


def _log_progress(progress: ProgressState) -> None:
    LOGGER.info("%s Labeling samples... %s", progress.position(), progress.breakdown())
