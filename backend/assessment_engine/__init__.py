"""
Adaptive Assessment Engine

Scores fill-in-the-blank tests taken with progressive support (hints,
simplified explanations, study material) and tracks how a student's
performance on a test develops across attempts.

Usage:
    from assessment_engine.db import async_session_maker
    from assessment_engine.services.assessment import (
        AnswerJudge,
        AssessmentRepository,
        AttemptService,
        LLMAnswerJudgmentService,
        PerformanceAggregator,
        ScoringEngine,
    )
    from assessment_engine.services.llm import get_llm_client

    async with async_session_maker() as session:
        repo = AssessmentRepository(session)
        attempts = AttemptService(
            repo, AnswerJudge(LLMAnswerJudgmentService(get_llm_client()))
        )
        scoring = ScoringEngine(repo, PerformanceAggregator(repo))
"""

__version__ = "0.1.0"
