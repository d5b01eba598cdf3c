"""
Tests for deadline-bounded calls.
"""

import asyncio

import pytest

from core.exceptions import RequestTimeout
from core.timeouts import deadline, with_deadline


class TestWithDeadline:
    """with_deadline() behaviour."""

    async def test_returns_result_within_deadline(self):
        async def fast():
            return 42

        assert await with_deadline(fast, seconds=1.0) == 42

    async def test_raises_request_timeout(self):
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(RequestTimeout) as exc_info:
            await with_deadline(slow, seconds=0.01, operation="storage.read")

        assert exc_info.value.operation == "storage.read"
        assert exc_info.value.status_code == 504
        assert exc_info.value.details == {"operation": "storage.read", "timeout_seconds": 0.01}

    async def test_retry_once_recovers_from_single_stall(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(1)
            return "ok"

        assert await with_deadline(flaky, seconds=0.05, retry_once=True) == "ok"
        assert len(calls) == 2

    async def test_retry_once_gives_up_after_second_timeout(self):
        calls = []

        async def stalled():
            calls.append(1)
            await asyncio.sleep(1)

        with pytest.raises(RequestTimeout):
            await with_deadline(stalled, seconds=0.01, retry_once=True)
        assert len(calls) == 2

    async def test_no_retry_by_default(self):
        calls = []

        async def stalled():
            calls.append(1)
            await asyncio.sleep(1)

        with pytest.raises(RequestTimeout):
            await with_deadline(stalled, seconds=0.01)
        assert len(calls) == 1

    async def test_errors_propagate_unchanged(self):
        async def broken():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await with_deadline(broken, seconds=1.0, retry_once=True)


class TestDeadlineDecorator:
    """The decorator form."""

    async def test_passes_arguments_through(self):
        @deadline("math.add", seconds=1.0)
        async def add(a, b=0):
            return a + b

        assert await add(2, b=3) == 5

    async def test_operation_defaults_to_qualified_name(self):
        @deadline(seconds=0.01)
        async def sleepy():
            await asyncio.sleep(1)

        with pytest.raises(RequestTimeout) as exc_info:
            await sleepy()
        assert exc_info.value.operation.endswith(".sleepy")

    async def test_preserves_function_metadata(self):
        @deadline("jobs.list")
        async def list_jobs():
            """List jobs."""

        assert list_jobs.__name__ == "list_jobs"
        assert list_jobs.__doc__ == "List jobs."
