"""Timeout-bounded retries for single asynchronous remote calls."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
)

from app.errors import OperationTimeout, RetriesExhausted, describe_error

LOGGER = logging.getLogger("autolabel.engine.retry")

T = TypeVar("T")


class RetryObserver(Protocol):
    def on_warning(self, retries_left: int, exc: BaseException) -> None:
        ...

    def on_error(self, exc: BaseException) -> None:
        ...


class NullObserver:
    def on_warning(self, retries_left: int, exc: BaseException) -> None:
        pass

    def on_error(self, exc: BaseException) -> None:
        pass


@dataclass(frozen=True)
class LoggingObserver:
    """Logs retry warnings and the terminal error for one operation on one item.

    ``prefix`` is called at log time so the line carries the progress position
    reached when the failure happened, e.g. ``[ 4/10]``.
    """

    action: str
    logger: logging.Logger = LOGGER
    prefix: Callable[[], str] = lambda: ""

    def on_warning(self, retries_left: int, exc: BaseException) -> None:
        self.logger.warning(
            "%sWARN: %s: %s. Retries left=%d",
            _spaced(self.prefix()),
            self.action,
            describe_error(exc),
            retries_left,
        )

    def on_error(self, exc: BaseException) -> None:
        self.logger.error(
            "%sERR: %s: %s.",
            _spaced(self.prefix()),
            self.action,
            describe_error(exc),
        )


@dataclass(frozen=True)
class RetryPolicy:
    """How many times and for how long a named operation may be attempted.

    ``timeout`` is in seconds and bounds each attempt separately.
    """

    name: str
    max_retries: int = 3
    timeout: float = 60.0
    observer: RetryObserver = field(default_factory=NullObserver)

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
) -> T:
    """Run ``operation`` until it succeeds or the policy's attempts are spent.

    Every failed attempt, including one that overran ``policy.timeout``, is
    reported through ``policy.observer.on_warning`` with the number of attempts
    still available. The last failure goes to ``on_error`` instead and is raised
    as :class:`RetriesExhausted`. Attempts follow each other immediately.
    """

    def _warn(state: RetryCallState) -> None:
        retries_left = policy.max_retries - state.attempt_number
        policy.observer.on_warning(retries_left, state.outcome.exception())

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries),
        wait=wait_none(),
        retry=retry_if_exception_type(Exception),
        before_sleep=_warn,
    )
    try:
        async for attempt in retrying:
            with attempt:
                return await _attempt(operation, policy)
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        policy.observer.on_error(last_error)
        raise RetriesExhausted(policy.name, policy.max_retries, last_error) from last_error
    raise AssertionError("unreachable")  # pragma: no cover


async def _attempt(operation: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
    try:
        return await asyncio.wait_for(operation(), timeout=policy.timeout)
    except asyncio.TimeoutError as exc:
        raise OperationTimeout(policy.name, policy.timeout) from exc


def _spaced(prefix: str) -> str:
    return f"{prefix} " if prefix else ""
