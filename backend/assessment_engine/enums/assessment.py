"""
Assessment Enums

Defines enums for the test attempt lifecycle.
"""

from enum import Enum


class AttemptStatus(str, Enum):
    """
    Lifecycle states of a test attempt.

    State transitions:
    - IN_PROGRESS → COMPLETED (finish attempt, scored, triggers aggregation)
    - IN_PROGRESS → ABANDONED (no scoring)

    COMPLETED and ABANDONED are terminal.
    """

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self is not AttemptStatus.IN_PROGRESS


class ContentSource(str, Enum):
    """
    Where a served hint or explanation came from.

    - STATIC: authored on the question
    - CACHED: generated earlier in this attempt and reused
    - GENERATED: generated for this request
    - FALLBACK: generation failed, a fixed encouraging message was served
    """

    STATIC = "static"
    CACHED = "cached"
    GENERATED = "generated"
    FALLBACK = "fallback"
