"""Learning engine: review-state algorithms for the mistake book."""

from mistake_book.learning_engine.mastery import (
    MASTERY_THRESHOLD,
    MasteryState,
    apply_outcome,
    initial_state,
    is_mastered,
    reset_for_miss,
)

__all__ = [
    "MASTERY_THRESHOLD",
    "MasteryState",
    "apply_outcome",
    "initial_state",
    "is_mastered",
    "reset_for_miss",
]
