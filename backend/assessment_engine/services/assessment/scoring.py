"""
Scoring Engine

Computes the authoritative result of a finished attempt.

Per question (one QuestionAttemptRecord each):
    raw_score         = rounded mean of all judge scores in the history,
                        else the stored best score, else 100/0 from the
                        strict flag
    is_correct        = raw_score >= SCORING_CORRECT_THRESHOLD (60)
    penalty           = (hints * 10 + explanation 20 + study material 20)
                        * difficulty multiplier (1.0, 0.9, 0.75, 0.6, 0.5)
    final_question    = max(0, raw_score - penalty)
    weighted_mark     = final_question / 100 * mark

Aggregate:
    basic_score = round(sum(weighted_mark) / total mark * 100)
    final_score = max(0, basic_score - time_penalty)

Time penalty (tests with a duration limit): one point per whole minute over
the limit, plus a flat 10 once more than 5 minutes over.

Marks, difficulty, total mark and duration are read from the snapshots taken
when the attempt (and each question record) was created, so authoring edits
made during an attempt only affect later attempts.

Behavioral metrics are derived from the same records. All constants come from
settings (SCORING_*), so the formula can be audited and tuned in one place.

State machine:
    in_progress -> completed (finish_attempt; idempotent)
    in_progress -> abandoned (AttemptService.abandon_attempt; never scored)

Usage:
    engine = ScoringEngine(repo, PerformanceAggregator(repo))
    result = await engine.finish_attempt(attempt_id)
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from assessment_engine.config import settings
from assessment_engine.db.models import Question, QuestionAttemptRecord, TestAttempt
from assessment_engine.enums.assessment import AttemptStatus
from assessment_engine.errors import EmptyAttemptError, InvalidAttemptStateError
from assessment_engine.models.assessment import (
    AttemptResult,
    BehavioralMetrics,
    QuestionPenalties,
    QuestionScoreBreakdown,
    ScoreBreakdown,
)
from assessment_engine.services.assessment.history import history_judge_scores
from assessment_engine.services.assessment.repository import AssessmentRepository

logger = logging.getLogger(__name__)


# ===========================================
# Pure scoring functions
# ===========================================


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves upward (2.5 -> 3, 0.5 -> 1)."""
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int, default: int = 0) -> int:
    """Rounded integer percentage, or default when whole is 0."""
    if whole <= 0:
        return default
    return round_half_up(part / whole * 100)


def difficulty_multiplier(difficulty: Optional[int]) -> float:
    """Penalty scale for a difficulty level; unknown levels scale by 1.0."""
    if difficulty is None:
        return settings.SCORING_DEFAULT_DIFFICULTY_MULTIPLIER
    return settings.SCORING_DIFFICULTY_MULTIPLIERS.get(
        difficulty, settings.SCORING_DEFAULT_DIFFICULTY_MULTIPLIER
    )


def raw_question_score(record: QuestionAttemptRecord) -> float:
    """
    Raw (pre-penalty) score of one question.

    Averaging the whole history means a struggle before the right answer
    still counts against the question, unlike the best score shown live.
    """
    scores = history_judge_scores(record.submission_history)
    if scores:
        return float(round_half_up(sum(scores) / len(scores)))
    if record.judge_score is not None:
        return float(record.judge_score)
    return 100.0 if record.is_correct else 0.0


def question_penalties(
    hints_used: int,
    explanation_viewed: bool,
    study_material_downloaded: bool,
    multiplier: float,
) -> QuestionPenalties:
    """Unscaled penalty components and their difficulty-scaled total."""
    hints = (hints_used or 0) * settings.SCORING_HINT_PENALTY
    explanation = settings.SCORING_EXPLANATION_PENALTY if explanation_viewed else 0.0
    study = settings.SCORING_STUDY_MATERIAL_PENALTY if study_material_downloaded else 0.0
    return QuestionPenalties(
        hints=hints,
        explanation=explanation,
        study_material=study,
        total=(hints + explanation + study) * multiplier,
    )


def score_question(
    record: QuestionAttemptRecord, question: Optional[Question]
) -> QuestionScoreBreakdown:
    """
    Score one question record.

    Mark and difficulty come from the record's snapshot, falling back to
    the question for records without one. With neither, the mark is 0.
    """
    raw = raw_question_score(record)
    difficulty = record.difficulty
    if difficulty is None and question is not None:
        difficulty = question.difficulty
    mark = record.mark
    if mark is None:
        mark = question.mark if question is not None else 0.0

    multiplier = difficulty_multiplier(difficulty)
    penalties = question_penalties(
        record.hints_used,
        record.explanation_viewed,
        record.study_material_downloaded,
        multiplier,
    )
    final = min(100.0, max(0.0, raw - penalties.total))
    mark = float(mark or 0)

    return QuestionScoreBreakdown(
        question_id=record.question_id,
        raw_score=raw,
        penalties=penalties,
        difficulty_multiplier=multiplier,
        final_question_score=final,
        mark=mark,
        weighted_mark=final / 100 * mark,
        is_correct=raw >= settings.SCORING_CORRECT_THRESHOLD,
        tags=list(question.tags or []) if question else [],
    )


def time_penalty(elapsed_seconds: int, duration_minutes: Optional[int]) -> int:
    """Overtime penalty; 0 for tests without a duration limit."""
    if not duration_minutes or duration_minutes <= 0:
        return 0
    extra_minutes = math.floor(elapsed_seconds / 60 - duration_minutes)
    if extra_minutes <= 0:
        return 0
    penalty = extra_minutes * settings.SCORING_TIME_PENALTY_PER_MINUTE
    if extra_minutes > settings.SCORING_TIME_PENALTY_GRACE_MINUTES:
        penalty += settings.SCORING_TIME_PENALTY_FLAT
    return int(penalty)


def build_breakdown(
    records: list[QuestionAttemptRecord],
    questions: dict[str, Question],
    attempt: TestAttempt,
) -> ScoreBreakdown:
    """Aggregate per-question scores against the attempt's snapshotted totals."""
    scored = [score_question(r, questions.get(r.question_id)) for r in records]

    total_test_marks = float(attempt.total_mark or 0)
    safe_total = total_test_marks if total_test_marks > 0 else 1.0
    total_weighted = sum(q.weighted_mark for q in scored)

    basic_score = round_half_up(total_weighted / safe_total * 100)
    elapsed = sum(r.time_taken_seconds or 0 for r in records)
    penalty = time_penalty(elapsed, attempt.duration_minutes)

    return ScoreBreakdown(
        questions=scored,
        total_weighted_marks=total_weighted,
        total_test_marks=total_test_marks,
        basic_score=basic_score,
        time_penalty=penalty,
        final_score=max(0, basic_score - penalty),
    )


def behavioral_metrics(
    records: list[QuestionAttemptRecord], breakdown: ScoreBreakdown
) -> BehavioralMetrics:
    """
    Derive the behavioral profile of an attempt.

    Records and breakdown.questions must be in the same order.
    """
    total = len(records)
    pairs = list(zip(records, breakdown.questions))
    correct = [(r, q) for r, q in pairs if q.is_correct]

    engaged = sum(1 for r in records if (r.hints_used or 0) > 0 or r.explanation_viewed)
    first_attempt = sum(
        1 for r in records if r.is_correct and r.answered_on_first_attempt
    )
    multi = [(r, q) for r, q in pairs if (r.attempts_count or 0) > 1]
    persisted = sum(1 for _, q in multi if q.is_correct)
    fast_correct = sum(
        1
        for r, _ in correct
        if (r.time_taken_seconds or 0) < settings.SCORING_CONFIDENCE_WINDOW_SECONDS
    )
    hinted_correct = sum(1 for r, _ in correct if (r.hints_used or 0) > 0)
    elapsed = sum(r.time_taken_seconds or 0 for r in records)

    first_attempt_rate = percentage(first_attempt, total)

    return BehavioralMetrics(
        learning_engagement_rate=percentage(engaged, total),
        average_time_per_question=round_half_up(elapsed / total) if total else 0,
        first_attempt_success_rate=first_attempt_rate,
        persistence_score=percentage(persisted, len(multi), default=100),
        confidence_indicator=percentage(fast_correct, len(correct)),
        hint_dependency_rate=percentage(hinted_correct, len(correct)),
        questions_requiring_study=sum(
            1
            for q in breakdown.questions
            if q.final_question_score < settings.SCORING_STUDY_THRESHOLD
        ),
        mastery_achieved=(
            breakdown.final_score >= settings.SCORING_MASTERY_SCORE
            and first_attempt_rate >= settings.SCORING_MASTERY_FIRST_ATTEMPT_RATE
        ),
    )


# ===========================================
# Service
# ===========================================


def attempt_result(attempt: TestAttempt) -> AttemptResult:
    """Build the result view from the persisted columns of a completed attempt."""
    breakdown = ScoreBreakdown.model_validate(attempt.score_breakdown or {})
    return AttemptResult(
        attempt_id=attempt.id,
        test_id=attempt.test_id,
        student_id=attempt.student_id,
        status=attempt.status,
        started_at=attempt.started_at,
        completed_at=attempt.completed_at,
        score=attempt.score or 0,
        basic_score=attempt.basic_score or 0,
        correct_answers=attempt.correct_answers or 0,
        total_questions=attempt.total_questions or 0,
        hints_used=attempt.hints_used or 0,
        time_taken_seconds=attempt.time_taken_seconds or 0,
        metrics=BehavioralMetrics(
            learning_engagement_rate=attempt.learning_engagement_rate or 0,
            average_time_per_question=attempt.average_time_per_question or 0,
            first_attempt_success_rate=attempt.first_attempt_success_rate or 0,
            persistence_score=(
                attempt.persistence_score
                if attempt.persistence_score is not None
                else 100
            ),
            confidence_indicator=attempt.confidence_indicator or 0,
            hint_dependency_rate=attempt.hint_dependency_rate or 0,
            questions_requiring_study=attempt.questions_requiring_study or 0,
            mastery_achieved=bool(attempt.mastery_achieved),
        ),
        breakdown=breakdown,
    )


class ScoringEngine:
    """
    Finishes attempts: scores, persists and triggers longitudinal aggregation.

    The aggregator is optional; when given, it runs after the completed
    attempt is committed and its failures are logged, never raised.
    """

    def __init__(self, repository: AssessmentRepository, aggregator=None):
        self.repo = repository
        self.aggregator = aggregator

    async def finish_attempt(self, attempt_id: str) -> AttemptResult:
        """
        Score and complete an in-progress attempt.

        Re-invoking on a completed attempt returns the stored result without
        recomputing or re-aggregating.

        Raises:
            NotFoundError: If the attempt does not exist
            InvalidAttemptStateError: If the attempt was abandoned
            EmptyAttemptError: If no question was ever interacted with
            SQLAlchemyError: If the completed attempt cannot be committed
        """
        attempt = await self.repo.get_attempt(attempt_id)

        if attempt.status == AttemptStatus.COMPLETED.value:
            logger.info(f"Attempt {attempt_id} already completed, returning stored result")
            return attempt_result(attempt)
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            raise InvalidAttemptStateError(
                f"Cannot finish attempt {attempt_id} in status {attempt.status}"
            )

        records = await self.repo.list_records(attempt_id)
        if not records:
            raise EmptyAttemptError(
                f"Attempt {attempt_id} has no answered questions",
                details={"attempt_id": attempt_id},
            )

        questions = await self.repo.get_questions([r.question_id for r in records])
        breakdown = build_breakdown(records, questions, attempt)
        metrics = behavioral_metrics(records, breakdown)

        self._apply_result(attempt, records, breakdown, metrics)

        try:
            await self.repo.commit()
        except SQLAlchemyError:
            await self.repo.rollback()
            logger.exception(f"Failed to commit completed attempt {attempt_id}")
            raise

        logger.info(
            f"Completed attempt {attempt_id}: score={breakdown.final_score}, "
            f"basic={breakdown.basic_score}, time_penalty={breakdown.time_penalty}, "
            f"mastery={metrics.mastery_achieved}"
        )

        # Built before aggregation: a failed aggregation rolls back and expires the session
        result = attempt_result(attempt)
        await self._aggregate(attempt)
        return result

    @staticmethod
    def _apply_result(
        attempt: TestAttempt,
        records: list[QuestionAttemptRecord],
        breakdown: ScoreBreakdown,
        metrics: BehavioralMetrics,
    ) -> None:
        attempt.status = AttemptStatus.COMPLETED.value
        attempt.completed_at = datetime.now(timezone.utc)
        attempt.score = breakdown.final_score
        attempt.basic_score = breakdown.basic_score
        attempt.correct_answers = sum(1 for q in breakdown.questions if q.is_correct)
        attempt.hints_used = sum(r.hints_used or 0 for r in records)
        attempt.time_taken_seconds = sum(r.time_taken_seconds or 0 for r in records)

        attempt.learning_engagement_rate = metrics.learning_engagement_rate
        attempt.average_time_per_question = metrics.average_time_per_question
        attempt.first_attempt_success_rate = metrics.first_attempt_success_rate
        attempt.persistence_score = metrics.persistence_score
        attempt.confidence_indicator = metrics.confidence_indicator
        attempt.hint_dependency_rate = metrics.hint_dependency_rate
        attempt.questions_requiring_study = metrics.questions_requiring_study
        attempt.mastery_achieved = metrics.mastery_achieved

        attempt.score_breakdown = breakdown.model_dump(mode="json")

    async def _aggregate(self, attempt: TestAttempt) -> None:
        if self.aggregator is None:
            return
        try:
            await self.aggregator.recalculate(attempt.student_id, attempt.test_id)
        except Exception:
            logger.exception(
                f"Performance aggregation failed for student {attempt.student_id}, "
                f"test {attempt.test_id} (attempt {attempt.id} is already scored)"
            )
