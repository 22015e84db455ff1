"""Pydantic models for the assessment engine."""

from assessment_engine.models.assessment import (
    AttemptResponse,
    AttemptResult,
    BehavioralMetrics,
    ExplanationRequest,
    ExplanationResponse,
    HintRequest,
    HintResponse,
    PerformanceMetricsResponse,
    ScoreBreakdown,
    SubmissionVerdict,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
)

__all__ = [
    "AttemptResponse",
    "AttemptResult",
    "BehavioralMetrics",
    "ExplanationRequest",
    "ExplanationResponse",
    "HintRequest",
    "HintResponse",
    "PerformanceMetricsResponse",
    "ScoreBreakdown",
    "SubmissionVerdict",
    "SubmitAnswerRequest",
    "SubmitAnswerResponse",
]
