"""Retry policy for failed dispatches.

The dispatch queue itself only knows one retry delay (a fixed 60 seconds)
and treats `max_attempts` as advisory. This module supplies the policy on
top of it:

- `BackoffPolicy` and its two implementations compute how long to wait
  before attempt ``n + 1``.
- `fail_with_retry_policy` wraps `DispatchQueue.fail`: it decides whether the
  failure is terminal, computes the next availability instant, and records
  the attempt number and delay in the entry's metadata.

Example:
    ```py
    decision = fail_with_retry_policy(
        uow.dispatch_queue, entry, error, backoff=ExponentialBackoff()
    )
    if decision.terminal:
        ...
    ```
"""

from __future__ import annotations

import abc
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from eventrelay.domain import utc_now
from eventrelay.interfaces.dispatch_queue import (
    DEFAULT_RETRY_DELAY,
    DispatchEntry,
    DispatchQueue,
)

if TYPE_CHECKING:
    from eventrelay.config import DispatcherSettings

MAX_JITTER_RATIO = 0.5


class BackoffPolicy(abc.ABC):
    """Computes the delay before the next delivery attempt."""

    @abc.abstractmethod
    def seconds_for(self, attempt: int) -> float:
        """Return the delay in seconds after failed attempt number `attempt`.

        Args:
            attempt: 1-based number of the attempt that just failed.
        """


@dataclass(frozen=True)
class FixedBackoff(BackoffPolicy):
    """Same delay after every attempt."""

    seconds: float = DEFAULT_RETRY_DELAY.total_seconds()

    def seconds_for(self, attempt: int) -> float:
        return self.seconds


@dataclass(frozen=True)
class ExponentialBackoff(BackoffPolicy):
    """Exponential backoff with a cap and proportional jitter.

    ``delay = initial * multiplier ** (attempt - 1)``, capped at `max_seconds`,
    plus a random jitter of up to ``jitter_ratio`` (at most 0.5) times the
    capped delay. The result is never below `initial_seconds`.
    """

    initial_seconds: float = 30.0
    multiplier: float = 2.0
    max_seconds: float = 900.0
    jitter_ratio: float = 0.15
    rng: random.Random | None = None

    def seconds_for(self, attempt: int) -> float:
        exponential = self.initial_seconds * self.multiplier ** max(attempt - 1, 0)
        capped = min(exponential, self.max_seconds)
        ratio = min(max(self.jitter_ratio, 0.0), MAX_JITTER_RATIO)
        draw = (self.rng or random).random()
        return max(self.initial_seconds, capped + capped * ratio * draw)

    @classmethod
    def from_settings(
        cls, settings: DispatcherSettings, rng: random.Random | None = None
    ) -> ExponentialBackoff:
        """Build the policy from the dispatcher's configured parameters."""
        return cls(
            initial_seconds=settings.initial_backoff_seconds,
            multiplier=settings.backoff_multiplier,
            max_seconds=settings.max_backoff_seconds,
            jitter_ratio=settings.jitter_ratio,
            rng=rng,
        )


@dataclass(frozen=True, slots=True)
class RetryDecision:
    """Outcome of `fail_with_retry_policy`.

    Attributes:
        attempt: Number of the attempt that failed (1-based).
        terminal: True when the entry was moved to `failed`.
        backoff_seconds: The computed delay (recorded even when terminal).
        next_available_at: When the entry becomes due again; None if terminal.
        entry: The updated entry, or None if it no longer exists.
    """

    attempt: int
    terminal: bool
    backoff_seconds: float
    next_available_at: datetime | None
    entry: DispatchEntry | None


def fail_with_retry_policy(  # pylint: disable=too-many-arguments
    queue: DispatchQueue,
    entry: DispatchEntry,
    error: BaseException | str | None,
    *,
    backoff: BackoffPolicy,
    max_attempts: int | None = None,
    metadata_patch: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> RetryDecision:
    """Record a failed attempt, terminating the entry once attempts run out.

    Args:
        queue: The queue holding `entry`.
        entry: The entry as claimed (its `attempts` excludes this attempt).
        error: The failure to record.
        backoff: Policy computing the delay before the next attempt.
        max_attempts: Attempt ceiling. Defaults to the entry's own
            `max_attempts`.
        metadata_patch: Extra keys merged into the entry's metadata, on top
            of ``attempts`` and ``backoff_seconds``.
        now: Reference instant for the next availability. Defaults to now.

    Returns:
        The decision taken and the updated entry.
    """
    attempt = entry.attempts + 1
    limit = entry.max_attempts if max_attempts is None else max_attempts
    terminal = attempt >= limit
    seconds = backoff.seconds_for(attempt)
    next_available_at = (
        None if terminal else (now or utc_now()) + timedelta(seconds=seconds)
    )

    patch = {"attempts": attempt, "backoff_seconds": seconds, **(metadata_patch or {})}
    updated = queue.fail(
        entry.id,
        error,
        next_available_at=next_available_at,
        terminal=terminal,
        metadata_patch=patch,
    )
    return RetryDecision(
        attempt=attempt,
        terminal=terminal,
        backoff_seconds=seconds,
        next_available_at=next_available_at,
        entry=updated,
    )
