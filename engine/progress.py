"""Shared run counters and the periodic reporter that samples them."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

LOGGER = logging.getLogger("autolabel.engine.progress")


def format_position(processed: int, total: int) -> str:
    """Return ``[processed/total]`` with processed padded to the total's width."""
    return f"[{str(processed).rjust(len(str(total)))}/{total}]"


def format_breakdown(label_counts: dict[str, int], errors: int) -> str:
    parts = [f"{label}={count}" for label, count in label_counts.items()]
    parts.append(f"error={errors}")
    return "(" + ", ".join(parts) + ")"


@dataclass(frozen=True)
class ProgressSummary:
    total: int
    processed: int
    errors: int
    label_counts: dict[str, int]

    def position(self) -> str:
        return format_position(self.processed, self.total)

    def breakdown(self) -> str:
        return format_breakdown(self.label_counts, self.errors)


@dataclass
class ProgressState:
    """Counters for one scheduler run.

    Only completing jobs write here and every write is a single increment with
    no suspension point in between, so concurrent completions on the event loop
    cannot lose updates.
    """

    total: int
    processed: int = 0
    errors: int = 0
    label_counts: dict[str, int] = field(default_factory=dict)

    def record_success(self, label: str) -> None:
        self._advance()
        self.label_counts[label] = self.label_counts.get(label, 0) + 1

    def record_failure(self) -> None:
        self._advance()
        self.errors += 1

    def _advance(self) -> None:
        if self.processed >= self.total:
            raise RuntimeError(
                f"processed count would exceed total of {self.total} items"
            )
        self.processed += 1

    def position(self, offset: int = 0) -> str:
        return format_position(self.processed + offset, self.total)

    def breakdown(self) -> str:
        return format_breakdown(self.label_counts, self.errors)

    def snapshot(self) -> ProgressSummary:
        return ProgressSummary(
            total=self.total,
            processed=self.processed,
            errors=self.errors,
            label_counts=dict(self.label_counts),
        )


class ProgressReporter:
    """Calls ``sample`` every ``interval`` seconds until stopped.

    Use it as an async context manager so the timer is torn down whether the
    wrapped block finishes or raises::

        async with ProgressReporter(3.0, lambda: LOGGER.info(state.breakdown())):
            await scheduler.run(...)
    """

    def __init__(self, interval: float, sample: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._sample = sample
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "ProgressReporter":
        if self._task is not None:
            raise RuntimeError("reporter already started")
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name="progress-reporter"
        )
        return self

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._sample()
            except Exception:
                LOGGER.exception("progress sample failed")

    async def __aenter__(self) -> "ProgressReporter":
        return self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
