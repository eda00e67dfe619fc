"""Tests for the bounded connect retry loop."""

from __future__ import annotations

import time

import pytest

from fakes import FakeConnector
from pgsandbox.errors import ConnectionTimeout
from pgsandbox.models import ConnectionParams
from pgsandbox.retry import connect_with_retry


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio
async def test_exhausts_exact_attempt_budget() -> None:
    connector = FakeConnector(always_fail=True)
    sleeps: list[float] = []

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    with pytest.raises(ConnectionTimeout) as excinfo:
        await connect_with_retry(connector, ConnectionParams(), attempts=100, interval=0.1, sleep=_sleep)

    assert connector.attempts == 100
    assert sleeps == [0.1] * 99
    assert excinfo.value.attempts == 100
    assert str(excinfo.value.last_error) == "refused (attempt 100)"
    assert excinfo.value.__cause__ is excinfo.value.last_error


@pytest.mark.anyio
async def test_returns_first_successful_connection() -> None:
    connector = FakeConnector(failures_before_success=4)

    connection = await connect_with_retry(connector, ConnectionParams(), attempts=10, interval=0)

    assert connector.attempts == 5
    assert connection is connector.connections[0]


@pytest.mark.anyio
async def test_elapsed_time_is_bounded_by_budget() -> None:
    connector = FakeConnector(always_fail=True)
    started = time.perf_counter()

    with pytest.raises(ConnectionTimeout):
        await connect_with_retry(connector, ConnectionParams(), attempts=10, interval=0.02)

    elapsed = time.perf_counter() - started
    assert 0.15 <= elapsed < 2.0


@pytest.mark.anyio
async def test_rejects_empty_budget() -> None:
    with pytest.raises(ValueError):
        await connect_with_retry(FakeConnector(), ConnectionParams(), attempts=0)
