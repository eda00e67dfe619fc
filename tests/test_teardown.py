"""Tests for the scoped teardown helper."""

from __future__ import annotations

import pytest

from pgsandbox.errors import CleanupFailed, SandboxError
from pgsandbox.teardown import Teardown, run_task


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio
async def test_steps_run_in_reverse_order() -> None:
    order: list[str] = []

    async def _async_step() -> None:
        order.append("second")

    async with Teardown("demo") as teardown:
        teardown.push("first", lambda: order.append("first"))
        teardown.push("second", _async_step)
        assert teardown.pending == ("second", "first")

    assert order == ["second", "first"]
    assert teardown.pending == ()


@pytest.mark.anyio
async def test_failing_step_does_not_stop_later_steps() -> None:
    order: list[str] = []

    def _boom() -> None:
        raise OSError("gone")

    with pytest.raises(CleanupFailed) as excinfo:
        async with Teardown("demo") as teardown:
            teardown.push("last", lambda: order.append("last"))
            teardown.push("boom", _boom)

    assert order == ["last"]
    assert excinfo.value.step == "boom"
    assert isinstance(excinfo.value.__cause__, OSError)


@pytest.mark.anyio
async def test_body_error_is_not_replaced() -> None:
    def _boom() -> None:
        raise OSError("gone")

    with pytest.raises(SandboxError) as excinfo:
        async with Teardown("demo") as teardown:
            teardown.push("boom", _boom)
            raise SandboxError("setup failed")

    assert str(excinfo.value) == "setup failed"
    assert [failure.step for failure in excinfo.value.cleanup_failures] == ["boom"]
    assert excinfo.value.__notes__ == ["Cleanup step 'boom' failed: gone"]


@pytest.mark.anyio
async def test_multiple_cleanup_failures_are_aggregated() -> None:
    def _fail(message: str):  # type: ignore[no-untyped-def]
        def _step() -> None:
            raise RuntimeError(message)

        return _step

    with pytest.raises(CleanupFailed) as excinfo:
        async with Teardown("demo") as teardown:
            teardown.push("a", _fail("a broke"))
            teardown.push("b", _fail("b broke"))

    assert excinfo.value.step == "b"
    assert [failure.step for failure in excinfo.value.cleanup_failures] == ["a"]


@pytest.mark.anyio
async def test_run_task_accepts_sync_and_async_callables() -> None:
    async def _double(value: int) -> int:
        return value * 2

    assert await run_task(lambda value: value + 1, 1) == 2
    assert await run_task(_double, 4) == 8
