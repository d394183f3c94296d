"""Unit tests for the retry policy (backoff and fail_with_retry_policy)."""

from __future__ import annotations

import random
from datetime import timedelta

import pytest

from eventrelay.adapters.eventlog.in_memory_adapters import (
    InMemoryDispatchQueue,
    InMemoryEventLog,
    InMemoryEventLogData,
)
from eventrelay.config import DispatcherSettings
from eventrelay.interfaces.dispatch_queue import DispatchStatus, EnqueueOptions
from eventrelay.interfaces.event_log import AppendOptions, NewDomainEvent
from eventrelay.service_layer.retry import (
    ExponentialBackoff,
    FixedBackoff,
    fail_with_retry_policy,
)

# pylint: disable=redefined-outer-name, too-few-public-methods, magic-value-comparison


class StubRandom:
    """Stands in for random.Random with a fixed draw."""

    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


# ============================================================================
#                                 Backoff
# ============================================================================


def test_fixed_backoff_ignores_attempt():
    """FixedBackoff returns the same delay every time (default 60 s)."""
    assert FixedBackoff().seconds_for(1) == 60.0
    assert FixedBackoff(seconds=5).seconds_for(9) == 5


def test_exponential_backoff_doubles_then_caps():
    """Without jitter the delay doubles per attempt up to max_seconds."""
    policy = ExponentialBackoff(jitter_ratio=0.0)
    assert [policy.seconds_for(n) for n in range(1, 7)] == [30, 60, 120, 240, 480, 900]


@pytest.mark.parametrize("attempt", [0, -3])
def test_exponential_backoff_first_attempt_floor(attempt):
    """Attempt numbers below 1 behave like the first attempt."""
    assert ExponentialBackoff(jitter_ratio=0.0).seconds_for(attempt) == 30


def test_exponential_backoff_jitter_stays_in_band():
    """Jitter adds at most jitter_ratio times the capped delay."""
    policy = ExponentialBackoff(jitter_ratio=0.2, rng=random.Random(1234))
    for attempt in range(1, 10):
        capped = min(30 * 2 ** (attempt - 1), 900)
        delay = policy.seconds_for(attempt)
        assert capped <= delay <= capped * 1.2


def test_exponential_backoff_jitter_ratio_is_clamped():
    """A jitter ratio above 0.5 behaves like 0.5."""
    policy = ExponentialBackoff(jitter_ratio=5.0, rng=StubRandom(1.0))  # type: ignore[arg-type]
    assert policy.seconds_for(1) == pytest.approx(45.0)


def test_exponential_backoff_never_below_initial():
    """The delay is never shorter than the initial delay."""
    policy = ExponentialBackoff(initial_seconds=30, multiplier=1.0, jitter_ratio=0.0)
    assert policy.seconds_for(5) == 30


def test_exponential_backoff_from_settings():
    """The policy mirrors the dispatcher's settings."""
    settings = DispatcherSettings(
        initial_backoff_seconds=10,
        backoff_multiplier=3,
        max_backoff_seconds=100,
        jitter_ratio=0,
        worker_id="w",
    )
    policy = ExponentialBackoff.from_settings(settings)
    assert [policy.seconds_for(n) for n in (1, 2, 3)] == [10, 30, 90]
    assert policy.seconds_for(4) == 100


# ============================================================================
#                          fail_with_retry_policy
# ============================================================================


@pytest.fixture
def queue(clock):
    """An in-memory queue with one claimed entry (max_attempts=3)."""
    data = InMemoryEventLogData()
    log = InMemoryEventLog(data, clock=clock)
    event = log.append(
        NewDomainEvent("donation", "d-1", "community.donation.completed"),
        AppendOptions(enqueue_dispatch=False),
    )
    q = InMemoryDispatchQueue(data, clock=clock)
    q.enqueue(event, EnqueueOptions(max_attempts=3))
    return q


def _claim_one(queue):
    (entry,) = queue.claim(1, "worker-a")
    return entry


def test_non_terminal_failure_schedules_backoff(queue, clock):
    """A failure below the limit goes back to pending after the backoff."""
    entry = _claim_one(queue)

    decision = fail_with_retry_policy(
        queue, entry, "HTTP 503", backoff=FixedBackoff(45), now=clock.now
    )

    assert decision.attempt == 1
    assert decision.terminal is False
    assert decision.next_available_at == clock.now + timedelta(seconds=45)
    assert decision.entry is not None
    assert decision.entry.status is DispatchStatus.PENDING
    assert decision.entry.available_at == decision.next_available_at
    assert decision.entry.metadata == {"attempts": 1, "backoff_seconds": 45}


def test_failure_reaching_limit_is_terminal(queue, clock):
    """The attempt equal to max_attempts fails the entry for good."""
    for _ in range(2):
        entry = _claim_one(queue)
        fail_with_retry_policy(
            queue, entry, "boom", backoff=FixedBackoff(0), now=clock.now
        )

    entry = _claim_one(queue)
    decision = fail_with_retry_policy(
        queue, entry, "boom", backoff=FixedBackoff(0), now=clock.now
    )

    assert decision.attempt == 3
    assert decision.terminal is True
    assert decision.next_available_at is None
    assert decision.entry is not None
    assert decision.entry.status is DispatchStatus.FAILED


def test_explicit_max_attempts_overrides_entry(queue, clock):
    """A lower ceiling from the caller wins over the entry's own."""
    entry = _claim_one(queue)

    decision = fail_with_retry_policy(
        queue, entry, "boom", backoff=FixedBackoff(), max_attempts=1, now=clock.now
    )

    assert decision.terminal is True


def test_extra_metadata_is_merged(queue, clock):
    """Caller-supplied keys are merged alongside the retry bookkeeping."""
    entry = _claim_one(queue)

    decision = fail_with_retry_policy(
        queue,
        entry,
        "boom",
        backoff=FixedBackoff(10),
        metadata_patch={"http_status": 503},
        now=clock.now,
    )

    assert decision.entry is not None
    assert decision.entry.metadata == {
        "attempts": 1,
        "backoff_seconds": 10,
        "http_status": 503,
    }
