"""Scoped acquisition with guaranteed, reported release."""

from __future__ import annotations

import inspect
import logging
from types import TracebackType
from typing import Any, Awaitable, Callable, TypeVar

from .errors import CleanupFailed, attach_cleanup_failure

LOG = logging.getLogger(__name__)

T = TypeVar("T")

ReleaseCallback = Callable[[], Awaitable[Any] | Any]


class Teardown:
    """Async context manager that unwinds release steps in reverse order.

    Unlike ``contextlib.AsyncExitStack``, a failing release step never
    replaces the exception raised by the protected block. Every step runs;
    failures are attached to the block's exception, or, when the block
    succeeded, the first failure is raised with the rest attached to it.
    """

    def __init__(self, label: str) -> None:
        self._label = label
        self._steps: list[tuple[str, ReleaseCallback]] = []

    def push(self, description: str, callback: ReleaseCallback) -> None:
        """Register a release step; steps run last-in, first-out."""

        self._steps.append((description, callback))

    @property
    def pending(self) -> tuple[str, ...]:
        return tuple(description for description, _ in reversed(self._steps))

    async def __aenter__(self) -> Teardown:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        failures = await self.unwind()
        if exc is not None:
            for failure in failures:
                attach_cleanup_failure(exc, failure)
            return False
        if failures:
            first, *rest = failures
            for failure in rest:
                attach_cleanup_failure(first, failure)
            raise first from first.error
        return False

    async def unwind(self) -> list[CleanupFailed]:
        """Run every pending step and return the failures in order."""

        failures: list[CleanupFailed] = []
        if self._steps:
            LOG.debug("Starting cleanup of %s", self._label)
        while self._steps:
            description, callback = self._steps.pop()
            try:
                outcome = callback()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as exc:
                LOG.warning("Cleanup of %s: %s failed: %s", self._label, description, exc)
                failures.append(CleanupFailed(description, exc))
            else:
                LOG.debug("Cleanup of %s: %s done", self._label, description)
        return failures


async def run_task(task: Callable[..., Awaitable[T] | T], *args: Any) -> T:
    """Call a sync or async task inline and return its own result."""

    result = task(*args)
    if inspect.isawaitable(result):
        return await result
    return result


__all__ = ["ReleaseCallback", "Teardown", "run_task"]
