"""
Assessment Services

Services for answer evaluation, progressive support and attempt scoring.

Modules:
- generation: External judgment/hint/explanation interfaces + LLM implementations
- repository: Storage contract over an AsyncSession
- judge: Strict match with external fallback judgment
- history: Append-only per-question submission history
- hints: Static → cached → generated hint escalation
- explanations: Simplified explanations with per-attempt caching
- scoring: Penalty-adjusted attempt scoring and behavioral metrics
- performance: Longitudinal (student, test) trend statistics
- attempts: Attempt lifecycle and submission orchestration

Usage:
    from assessment_engine.services.assessment import (
        AnswerJudge,
        AssessmentRepository,
        AttemptService,
        ScoringEngine,
        PerformanceAggregator,
    )
"""

from assessment_engine.services.assessment.generation import (
    AnswerJudgmentService,
    ExplanationGenerationService,
    HintGenerationService,
    LLMAnswerJudgmentService,
    LLMExplanationGenerationService,
    LLMHintGenerationService,
    call_with_timeout,
)
from assessment_engine.services.assessment.repository import AssessmentRepository
from assessment_engine.services.assessment.judge import AnswerJudge
from assessment_engine.services.assessment.history import AttemptHistoryStore
from assessment_engine.services.assessment.hints import HintEscalator
from assessment_engine.services.assessment.explanations import ExplanationProvider
from assessment_engine.services.assessment.scoring import ScoringEngine
from assessment_engine.services.assessment.performance import PerformanceAggregator
from assessment_engine.services.assessment.attempts import AttemptService

__all__ = [
    # Collaborators
    "AnswerJudgmentService",
    "HintGenerationService",
    "ExplanationGenerationService",
    "LLMAnswerJudgmentService",
    "LLMHintGenerationService",
    "LLMExplanationGenerationService",
    "call_with_timeout",
    # Storage
    "AssessmentRepository",
    # Services
    "AnswerJudge",
    "AttemptHistoryStore",
    "HintEscalator",
    "ExplanationProvider",
    "ScoringEngine",
    "PerformanceAggregator",
    "AttemptService",
]
