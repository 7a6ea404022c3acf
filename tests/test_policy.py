import asyncio

import pytest

from wordrelay.errors import RequestError
from wordrelay.policy import RetryPolicy


def test_delay_doubles_per_attempt():
    policy = RetryPolicy()
    assert [policy.delay(attempt) for attempt in (1, 2, 3)] == [2.0, 4.0, 8.0]


def test_always_failing_action_runs_four_times(fake_sleep):
    attempts = []

    async def action():
        attempts.append(len(attempts) + 1)
        raise RequestError(f"failure {len(attempts)}")

    policy = RetryPolicy(sleep=fake_sleep)
    with pytest.raises(RequestError, match="failure 4"):
        asyncio.run(policy.run(action))

    assert len(attempts) == 4
    assert fake_sleep.delays == [2.0, 4.0, 8.0]


def test_recovers_after_transient_failures(fake_sleep):
    attempts = []

    async def action():
        attempts.append(1)
        if len(attempts) < 3:
            raise RuntimeError("flaky")
        return ["done"]

    policy = RetryPolicy(sleep=fake_sleep)
    assert asyncio.run(policy.run(action)) == ["done"]
    assert fake_sleep.delays == [2.0, 4.0]


def test_zero_retries_fails_immediately(fake_sleep):
    attempts = []

    async def action():
        attempts.append(1)
        raise RuntimeError("down")

    policy = RetryPolicy(retries=0, sleep=fake_sleep)
    with pytest.raises(RuntimeError):
        asyncio.run(policy.run(action))
    assert len(attempts) == 1
    assert fake_sleep.delays == []


def test_retry_attempts_are_logged(fake_sleep, caplog):
    async def action():
        raise RuntimeError("down")

    policy = RetryPolicy(retries=1, sleep=fake_sleep)
    with pytest.raises(RuntimeError):
        asyncio.run(policy.run(action, label="batch for a.md"))
    assert "batch for a.md" in caplog.text
