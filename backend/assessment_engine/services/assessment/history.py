"""
Attempt History Store

Appends each submission verdict to its QuestionAttemptRecord and recomputes
the record's derived fields:

- best judge score: max over the full history, never lowered by a later
  worse submission
- is_correct: strict correctness of the LATEST submission
- answered_on_first_attempt: correct on the only submission so far
- used_no_hints: no hint consumed so far
- showed_persistence: correct after more than one submission

The record is located by (attempt_id, question_id) and created on first use.
Re-submitting overwrites the mutable fields but always appends to the
history, so a retried request adds an entry instead of corrupting state.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from assessment_engine.db.models import Question, QuestionAttemptRecord
from assessment_engine.models.assessment import (
    SubmissionHistoryEntry,
    SubmissionVerdict,
)
from assessment_engine.services.assessment.repository import AssessmentRepository

logger = logging.getLogger(__name__)


def history_judge_scores(history: Optional[Iterable[dict[str, Any]]]) -> list[float]:
    """Numeric judge scores present in a stored history, in order."""
    scores = []
    for entry in history or []:
        if not isinstance(entry, dict):
            continue
        score = entry.get("judge_score")
        if isinstance(score, (int, float)) and not isinstance(score, bool):
            scores.append(float(score))
    return scores


def best_judge_score(history: Optional[Iterable[dict[str, Any]]]) -> Optional[float]:
    """Highest judge score across the history, or None if none was recorded."""
    scores = history_judge_scores(history)
    return max(scores) if scores else None


def build_history_entry(
    verdict: SubmissionVerdict, timestamp: Optional[datetime] = None
) -> dict[str, Any]:
    """Serialize a verdict into a JSON-safe history entry."""
    entry = SubmissionHistoryEntry(
        answer=verdict.answer,
        is_correct=verdict.strict_correct,
        judge_score=verdict.score,
        feedback=verdict.feedback,
        timestamp=timestamp or datetime.now(timezone.utc),
    )
    return entry.model_dump(mode="json")


def apply_verdict(
    record: QuestionAttemptRecord,
    verdict: SubmissionVerdict,
    time_spent_seconds: Optional[int] = None,
    timestamp: Optional[datetime] = None,
) -> QuestionAttemptRecord:
    """
    Append a verdict to the record and recompute its derived fields in place.

    A new list is assigned to submission_history so the JSON column is
    flagged dirty.
    """
    now = timestamp or datetime.now(timezone.utc)
    history = list(record.submission_history or [])
    history.append(build_history_entry(verdict, now))

    candidates = history_judge_scores(history)
    if record.judge_score is not None:
        candidates.append(record.judge_score)
    best = max(candidates) if candidates else None

    attempts_count = len(history)
    hints_used = record.hints_used or 0
    strict_correct = verdict.strict_correct

    record.submission_history = history
    record.student_answer = verdict.answer
    record.is_correct = strict_correct
    record.judge_score = best
    record.feedback = verdict.feedback
    record.attempts_count = attempts_count
    record.answered_on_first_attempt = strict_correct and attempts_count == 1
    record.used_no_hints = hints_used == 0
    record.showed_persistence = strict_correct and attempts_count > 1
    record.answered_at = now
    if time_spent_seconds is not None:
        record.time_taken_seconds = time_spent_seconds

    return record


class AttemptHistoryStore:
    """Persists submission verdicts as an append-only per-question log."""

    def __init__(self, repository: AssessmentRepository):
        self.repo = repository

    async def get_best_score(
        self, attempt_id: str, question_id: str
    ) -> Optional[float]:
        record = await self.repo.get_record(attempt_id, question_id)
        if record is None:
            return None
        return record.judge_score

    async def record_submission(
        self,
        attempt_id: str,
        question: Question,
        verdict: SubmissionVerdict,
        time_spent_seconds: Optional[int] = None,
    ) -> QuestionAttemptRecord:
        """
        Append the verdict for (attempt, question) and commit.

        Returns:
            The updated record.
        """
        record = await self.repo.get_or_create_record(attempt_id, question)
        apply_verdict(record, verdict, time_spent_seconds=time_spent_seconds)
        await self.repo.commit()

        logger.info(
            f"Recorded submission {record.attempts_count} for attempt {attempt_id}, "
            f"question {question.id}: correct={record.is_correct}, "
            f"best_score={record.judge_score}"
        )
        return record
