"""
Unit Tests for the retry helper.
"""

import pytest

from topicgen.utils.retry import RetryError, RetryOptions, with_retry


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def _flaky(failures, result="ok"):
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise RuntimeError(f"failure {calls['count']}")
        return result

    return operation, calls


@pytest.mark.asyncio
async def test_returns_first_success_without_sleeping():
    sleep = FakeSleep()
    operation, calls = _flaky(0)

    result = await with_retry(operation, RetryOptions(max_retries=3, delay=1.0), sleep=sleep)

    assert result == "ok"
    assert calls["count"] == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_retries_with_exponential_backoff():
    sleep = FakeSleep()
    operation, calls = _flaky(3)
    options = RetryOptions(max_retries=5, delay=10.0, backoff_multiplier=1.5, max_delay=60.0)

    result = await with_retry(operation, options, sleep=sleep)

    assert result == "ok"
    assert calls["count"] == 4
    assert sleep.delays == [10.0, 15.0, 22.5]


@pytest.mark.asyncio
async def test_delay_is_capped():
    sleep = FakeSleep()
    operation, _ = _flaky(4)
    options = RetryOptions(max_retries=5, delay=10.0, backoff_multiplier=3.0, max_delay=30.0)

    await with_retry(operation, options, sleep=sleep)

    assert sleep.delays == [10.0, 30.0, 30.0, 30.0]


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    sleep = FakeSleep()
    operation, calls = _flaky(10)

    with pytest.raises(RetryError) as exc_info:
        await with_retry(operation, RetryOptions(max_retries=3, delay=1.0), sleep=sleep)

    assert calls["count"] == 3
    assert len(sleep.delays) == 2
    assert exc_info.value.attempts == 3
    assert str(exc_info.value.last_error) == "failure 3"
    assert "failed after 3 attempts" in str(exc_info.value)


@pytest.mark.asyncio
async def test_final_error_is_chained():
    operation, _ = _flaky(10)

    with pytest.raises(RetryError) as exc_info:
        await with_retry(operation, RetryOptions(max_retries=2, delay=0.0), sleep=FakeSleep())

    assert exc_info.value.__cause__ is exc_info.value.last_error
    assert isinstance(exc_info.value.last_error, RuntimeError)


@pytest.mark.asyncio
async def test_single_attempt_never_sleeps():
    sleep = FakeSleep()
    operation, calls = _flaky(1)

    with pytest.raises(RetryError) as exc_info:
        await with_retry(operation, RetryOptions(max_retries=1, delay=5.0), sleep=sleep)

    assert calls["count"] == 1
    assert exc_info.value.attempts == 1
    assert sleep.delays == []
