"""
Assessment Models (Pydantic)

Request/result schemas for the assessment engine:
- External service payloads (judge verdicts, generated hints/explanations)
- Submission verdicts and the append-only submission history
- Hint and explanation requests
- Final attempt result with explainable score breakdown
- Longitudinal performance metrics

ARCHITECTURE NOTE:
    This file contains PYDANTIC models for validation.
    There is a corresponding SQLAlchemy file: assessment_engine/db/models.py

    Data flows: Caller → Pydantic → Service → SQLAlchemy → Database

Contract:
    Request models use StrictRequest (extra="forbid") to reject unknown fields.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from assessment_engine.enums.assessment import AttemptStatus, ContentSource
from assessment_engine.models.base import StrictRequest, StrictResponse


# ===========================================
# External Service Payloads
# ===========================================


class JudgeResult(BaseModel):
    """
    Reply of the free-text judgment service.

    Accepts both the camelCase keys the judgment prompt asks for and
    snake_case keys, since models are not always consistent.

    is_correct is True only for a literal JSON true. Loose values such as
    "true", "yes" or 1 read as False, keeping their partial score.
    """

    model_config = ConfigDict(populate_by_name=True)

    is_correct: bool = Field(False, alias="isCorrect")
    score: float = Field(..., ge=0, le=100)
    feedback: str = ""

    @field_validator("is_correct", mode="before")
    @classmethod
    def only_literal_true(cls, value: object) -> bool:
        return value is True


class GeneratedHint(BaseModel):
    """Reply of the hint generation service."""

    hint: str = Field(..., min_length=1)


class GeneratedExplanation(BaseModel):
    """Reply of the explanation generation service."""

    content: str = Field(..., min_length=1)


# ===========================================
# Submissions
# ===========================================


class SubmissionHistoryEntry(BaseModel):
    """
    One entry of a question record's append-only submission history.

    judge_score and feedback are None when the judgment service was not
    reachable (or not needed and not recorded).
    """

    answer: str
    is_correct: bool
    judge_score: Optional[float] = None
    feedback: Optional[str] = None
    timestamp: datetime


class SubmissionVerdict(StrictResponse):
    """
    AnswerJudge decision for a single submission.

    Attributes:
        strict_correct: Exact normalized match, or the judge explicitly said
            isCorrect=true.
        score: 100 on a strict match, the judge's partial score otherwise,
            None when the judge was unavailable.
        feedback: Short feedback to show immediately.
        best_judge_score: max(previous best, score).
        judged_externally: Whether the judgment service produced this verdict.
    """

    answer: str
    strict_correct: bool
    score: Optional[float] = None
    feedback: Optional[str] = None
    best_judge_score: Optional[float] = None
    judged_externally: bool = False


class SubmitAnswerRequest(StrictRequest):
    """
    Request to submit an answer for one question of an attempt.

    time_spent_seconds is the caller's cumulative elapsed time on the
    question; when given it replaces the stored value.
    """

    attempt_id: str = Field(..., min_length=1)
    question_id: str = Field(..., min_length=1)
    answer: str = ""
    time_spent_seconds: Optional[int] = Field(None, ge=0)


class SubmitAnswerResponse(StrictResponse):
    """Immediate feedback for a submission."""

    is_correct: bool
    score: Optional[float] = None
    best_score: Optional[float] = None
    feedback: Optional[str] = None
    correct_answer: str
    attempts_count: int


# ===========================================
# Hints & Explanations
# ===========================================


class HintRequest(StrictRequest):
    """
    Request for the hint at a zero-based index.

    current_answer is the student's current (wrong) answer, used to
    personalize generated hints.
    """

    attempt_id: str = Field(..., min_length=1)
    question_id: str = Field(..., min_length=1)
    hint_index: int = Field(..., ge=0)
    current_answer: Optional[str] = None


class HintResponse(StrictResponse):
    hint: str
    hint_index: int
    source: ContentSource


class ExplanationRequest(StrictRequest):
    """
    Request for a simplified explanation.

    A follow_up_question always produces a freshly generated answer that is
    not cached.
    """

    question_id: str = Field(..., min_length=1)
    attempt_id: Optional[str] = None
    follow_up_question: Optional[str] = None


class ExplanationResponse(StrictResponse):
    content: str
    source: ContentSource


# ===========================================
# Attempts & Scoring
# ===========================================


class AttemptResponse(StrictResponse):
    """Attempt lifecycle view (start / resume / abandon)."""

    id: str
    test_id: str
    student_id: str
    status: AttemptStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    total_questions: int = 0
    total_mark: float = 0.0


class QuestionPenalties(BaseModel):
    """Penalty components for one question, before and after scaling."""

    hints: float = 0.0
    explanation: float = 0.0
    study_material: float = 0.0
    total: float = 0.0


class QuestionScoreBreakdown(BaseModel):
    """
    Explainable score for one question.

    final_question_score = max(0, raw_score - penalties.total)
    weighted_mark = final_question_score / 100 * mark
    """

    question_id: str
    raw_score: float
    penalties: QuestionPenalties
    difficulty_multiplier: float
    final_question_score: float
    mark: float
    weighted_mark: float
    is_correct: bool
    tags: list[str] = Field(default_factory=list)


class ScoreBreakdown(BaseModel):
    """Explainable aggregate score for an attempt."""

    questions: list[QuestionScoreBreakdown] = Field(default_factory=list)
    total_weighted_marks: float = 0.0
    total_test_marks: float = 0.0
    basic_score: int = 0
    time_penalty: float = 0.0
    final_score: int = 0


class BehavioralMetrics(BaseModel):
    """
    Behavioral profile of a completed attempt.

    Rates are integer percentages (0-100).
    """

    learning_engagement_rate: int = 0
    average_time_per_question: int = 0
    first_attempt_success_rate: int = 0
    persistence_score: int = 100
    confidence_indicator: int = 0
    hint_dependency_rate: int = 0
    questions_requiring_study: int = 0
    mastery_achieved: bool = False


class AttemptResult(StrictResponse):
    """Authoritative result of a completed attempt."""

    attempt_id: str
    test_id: str
    student_id: str
    status: AttemptStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    score: int
    basic_score: int
    correct_answers: int
    total_questions: int
    hints_used: int
    time_taken_seconds: int
    metrics: BehavioralMetrics
    breakdown: ScoreBreakdown


# ===========================================
# Longitudinal Performance
# ===========================================


class PerformanceMetricsResponse(StrictResponse):
    """Trend statistics across completed attempts for a (student, test) pair."""

    student_id: str
    test_id: str
    total_attempts: int
    average_score: float
    average_basic_score: float
    improvement_rate: float
    consistency_score: float
    average_hint_usage: float
    average_learning_engagement: float
    average_time_seconds: float
    strong_topics: list[str] = Field(default_factory=list)
    weak_topics: list[str] = Field(default_factory=list)
    calculated_at: Optional[datetime] = None
