"""Fixed-threshold mastery rule for mistake book records.

A record leaves active review once it has been answered correctly
``threshold`` times in a row. Any wrong answer resets the streak and
bumps the wrong count. Everything here is pure: no I/O, no session.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

MASTERY_THRESHOLD = 3


@dataclass(frozen=True)
class MasteryState:
    """Review state of one record after a transition."""

    correct_streak: int
    wrong_count: int
    mastered: bool
    last_seen_at: datetime


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def is_mastered(correct_streak: int, threshold: int = MASTERY_THRESHOLD) -> bool:
    return correct_streak >= threshold


def apply_outcome(
    prior_streak: int,
    prior_wrong_count: int,
    correct: bool,
    *,
    threshold: int = MASTERY_THRESHOLD,
    now: datetime | None = None,
) -> MasteryState:
    """
    Compute the next review state from the previous one and a new answer.

    Args:
        prior_streak: Consecutive correct answers before this one
        prior_wrong_count: Times the question was answered wrong so far
        correct: Whether this answer was correct
        threshold: Streak length at which the record counts as mastered
        now: Timestamp to stamp as last_seen_at (defaults to current UTC time)

    Returns:
        MasteryState for the record after this answer
    """
    if correct:
        next_streak = prior_streak + 1
        next_wrong_count = prior_wrong_count
    else:
        next_streak = 0
        next_wrong_count = prior_wrong_count + 1

    return MasteryState(
        correct_streak=next_streak,
        wrong_count=next_wrong_count,
        mastered=is_mastered(next_streak, threshold),
        last_seen_at=_now(now),
    )


def reset_for_miss(prior_wrong_count: int, *, now: datetime | None = None) -> MasteryState:
    """State of an existing record that was missed again in a fresh quiz."""
    # The streak is irrelevant once the answer is wrong
    return apply_outcome(0, prior_wrong_count, False, now=now)


def initial_state(*, now: datetime | None = None) -> MasteryState:
    """State of a record created by its first miss."""
    return reset_for_miss(0, now=now)
