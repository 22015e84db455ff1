"""
SQLAlchemy Database Models for the Assessment Engine

Tables:
- tests: Authored tests (mark total, optional duration limit)
- questions: Authored questions with static hints and explanation
- test_attempts: One student's run through one test, plus the final metrics
- question_attempts: One row per (attempt, question) with submission history
- performance_metrics: Derived per (student, test) trend statistics

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    There is a corresponding Pydantic file: assessment_engine/models/assessment.py

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database

JSON columns (hints, tags, generated hints, submission history, score
breakdown) must be reassigned, never mutated in place, or the ORM will not
see the change.
"""

from datetime import datetime, timezone
from typing import List, Optional
import uuid


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


from sqlalchemy import (  # noqa: E402
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship  # noqa: E402

from assessment_engine.db.base import Base  # noqa: E402
from assessment_engine.enums.assessment import AttemptStatus  # noqa: E402


# ===========================================
# Authored Content
# ===========================================


class Test(Base):
    """
    An authored test.

    Attributes:
        id: UUID primary key.
        title: Display title.
        duration_minutes: Time limit in minutes. 0 or null means no limit.
        total_mark: Sum of question marks. Used as the denominator of the
            final score percentage.
        questions: Questions belonging to this test.
    """

    __tablename__ = "tests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255))
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    total_mark: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )

    questions: Mapped[List["Question"]] = relationship(
        back_populates="test", cascade="all, delete-orphan"
    )


class Question(Base):
    """
    An authored fill-in-the-blank question.

    Immutable for the duration of an attempt; edits only affect attempts
    started afterwards.

    Attributes:
        id: UUID primary key.
        test_id: Owning test.
        question_text: Text with an embedded blank marker.
        correct_answer: Canonical reference answer.
        hints: Ordered static hints, shown before any generated hint.
        explanation: Optional authored simplified explanation.
        tags: Topic/concept tags.
        mark: Weight of this question in the test total.
        difficulty: Integer level 1 (easiest) to 5 (hardest).
    """

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), index=True
    )

    question_text: Mapped[str] = mapped_column(Text)
    correct_answer: Mapped[str] = mapped_column(Text)
    hints: Mapped[Optional[list]] = mapped_column(JSON)
    explanation: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[Optional[list]] = mapped_column(JSON)
    mark: Mapped[float] = mapped_column(Float, default=1.0)
    difficulty: Mapped[int] = mapped_column(Integer, default=1)

    test: Mapped["Test"] = relationship(back_populates="questions")


# ===========================================
# Attempts
# ===========================================


class TestAttempt(Base):
    """
    One student's run through one test.

    At most one IN_PROGRESS attempt exists per (student, test); starting again
    resumes it. Once COMPLETED, the metrics columns hold the authoritative
    result and are never recomputed.

    Attributes:
        id: UUID primary key.
        test_id / student_id: The (student, test) pair.
        status: AttemptStatus value.
        started_at / completed_at: Lifecycle timestamps.
        total_questions / total_mark / duration_minutes: Copied from the test
            at start; scoring reads these, never the live test.

        Result (set on completion):
        score: Time-adjusted final score (0-100).
        basic_score: Weighted-mark percentage without the time penalty.
        correct_answers: Questions whose raw score met the threshold.
        hints_used: Total hints consumed across questions.
        time_taken_seconds: Sum of per-question elapsed time.
        learning_engagement_rate, average_time_per_question,
        first_attempt_success_rate, persistence_score, confidence_indicator,
        hint_dependency_rate, questions_requiring_study, mastery_achieved:
            Behavioral metrics.
        score_breakdown: Explainable per-question breakdown (JSON).

        question_records: Owned QuestionAttemptRecord rows (cascade delete).
    """

    __tablename__ = "test_attempts"
    __table_args__ = (
        Index(
            "uq_attempt_in_progress",
            "student_id",
            "test_id",
            unique=True,
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), index=True
    )
    student_id: Mapped[str] = mapped_column(String(36), index=True)

    status: Mapped[str] = mapped_column(
        String(20), default=AttemptStatus.IN_PROGRESS.value, index=True
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    total_mark: Mapped[float] = mapped_column(Float, default=0.0)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)

    # Result
    score: Mapped[Optional[int]] = mapped_column(Integer)
    basic_score: Mapped[Optional[int]] = mapped_column(Integer)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    hints_used: Mapped[int] = mapped_column(Integer, default=0)
    time_taken_seconds: Mapped[int] = mapped_column(Integer, default=0)

    # Behavioral metrics
    learning_engagement_rate: Mapped[Optional[int]] = mapped_column(Integer)
    average_time_per_question: Mapped[Optional[int]] = mapped_column(Integer)
    first_attempt_success_rate: Mapped[Optional[int]] = mapped_column(Integer)
    persistence_score: Mapped[Optional[int]] = mapped_column(Integer)
    confidence_indicator: Mapped[Optional[int]] = mapped_column(Integer)
    hint_dependency_rate: Mapped[Optional[int]] = mapped_column(Integer)
    questions_requiring_study: Mapped[int] = mapped_column(Integer, default=0)
    mastery_achieved: Mapped[bool] = mapped_column(Boolean, default=False)

    score_breakdown: Mapped[Optional[dict]] = mapped_column(JSON)

    question_records: Mapped[List["QuestionAttemptRecord"]] = relationship(
        back_populates="attempt", cascade="all, delete-orphan"
    )


class QuestionAttemptRecord(Base):
    """
    Per-(attempt, question) state, created lazily on first interaction.

    The submission history is append-only. best_judge_score is the maximum
    judge score over the whole history and never moves down.

    Attributes:
        attempt_id / question_id: Composite natural key (unique).
        mark / difficulty: Copied from the question when the record is
            created, so later edits to the question do not change this attempt.
        student_answer: Last submitted answer.
        is_correct: Strict correctness of the LATEST submission.
        judge_score: Best judge score across the history.
        feedback: Feedback of the latest submission.
        attempts_count: Number of submissions (== len(submission_history)).
        hints_used: Hints consumed so far.
        explanation_viewed: Whether a simplified explanation was served.
        study_material_downloaded / downloaded_at: Study material tracking.
        time_taken_seconds: Elapsed time on this question.
        answered_on_first_attempt / used_no_hints / showed_persistence:
            Flags derived on every submission.
        generated_hints: Cached generated hints, in the order they were shown.
        generated_explanation: Cached default generated explanation.
        submission_history: Ordered list of
            {answer, is_correct, judge_score, feedback, timestamp}.
    """

    __tablename__ = "question_attempts"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_question_attempt"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("test_attempts.id", ondelete="CASCADE"), index=True
    )
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), index=True
    )
    mark: Mapped[Optional[float]] = mapped_column(Float)
    difficulty: Mapped[Optional[int]] = mapped_column(Integer)

    student_answer: Mapped[Optional[str]] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    judge_score: Mapped[Optional[float]] = mapped_column(Float)
    feedback: Mapped[Optional[str]] = mapped_column(Text)

    attempts_count: Mapped[int] = mapped_column(Integer, default=0)
    hints_used: Mapped[int] = mapped_column(Integer, default=0)
    explanation_viewed: Mapped[bool] = mapped_column(Boolean, default=False)
    study_material_downloaded: Mapped[bool] = mapped_column(Boolean, default=False)
    downloaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    time_taken_seconds: Mapped[int] = mapped_column(Integer, default=0)

    answered_on_first_attempt: Mapped[bool] = mapped_column(Boolean, default=False)
    used_no_hints: Mapped[bool] = mapped_column(Boolean, default=True)
    showed_persistence: Mapped[bool] = mapped_column(Boolean, default=False)

    generated_hints: Mapped[Optional[list]] = mapped_column(JSON)
    generated_explanation: Mapped[Optional[str]] = mapped_column(Text)
    submission_history: Mapped[Optional[list]] = mapped_column(JSON)

    answered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )

    attempt: Mapped["TestAttempt"] = relationship(back_populates="question_records")

    @classmethod
    def empty(
        cls,
        attempt_id: str,
        question_id: str,
        mark: Optional[float] = None,
        difficulty: Optional[int] = None,
    ) -> "QuestionAttemptRecord":
        """
        Build a fresh record with every default applied in Python.

        Column defaults only fire on flush; the services read these fields
        before that happens.
        """
        return cls(
            attempt_id=attempt_id,
            question_id=question_id,
            mark=mark,
            difficulty=difficulty,
            is_correct=False,
            attempts_count=0,
            hints_used=0,
            explanation_viewed=False,
            study_material_downloaded=False,
            time_taken_seconds=0,
            answered_on_first_attempt=False,
            used_no_hints=True,
            showed_persistence=False,
            generated_hints=[],
            submission_history=[],
        )


# ===========================================
# Longitudinal Metrics
# ===========================================


class PerformanceMetrics(Base):
    """
    Derived trend statistics for one (student, test) pair.

    Recomputed in full from completed attempts on every completion, so it is
    safe to drop and rebuild at any time.
    """

    __tablename__ = "performance_metrics"
    __table_args__ = (
        UniqueConstraint("student_id", "test_id", name="uq_performance_student_test"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[str] = mapped_column(String(36), index=True)
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), index=True
    )

    total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    average_score: Mapped[float] = mapped_column(Float, default=0.0)
    average_basic_score: Mapped[float] = mapped_column(Float, default=0.0)
    improvement_rate: Mapped[float] = mapped_column(Float, default=0.0)
    consistency_score: Mapped[float] = mapped_column(Float, default=0.0)
    average_hint_usage: Mapped[float] = mapped_column(Float, default=0.0)
    average_learning_engagement: Mapped[float] = mapped_column(Float, default=0.0)
    average_time_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    strong_topics: Mapped[Optional[list]] = mapped_column(JSON)
    weak_topics: Mapped[Optional[list]] = mapped_column(JSON)

    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
