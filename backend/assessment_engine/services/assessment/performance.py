"""
Performance Aggregator

Recomputes longitudinal trend statistics for a (student, test) pair from all
of its completed attempts, oldest completion first:

- total_attempts
- average_score / average_basic_score: means of final and basic scores,
  rounded half-up like every other percentage
- improvement_rate: last final score minus first final score
- consistency_score: max(0, round(100 - population stddev of final scores))
- average_hint_usage: mean hints per attempt, one decimal
- average_learning_engagement / average_time_seconds: rounded half-up
- strong_topics / weak_topics: question tags whose mean final question score
  across the stored score breakdowns is at or above / below the configured
  thresholds

The single PerformanceMetrics row for the pair is upserted. With no completed
attempts nothing is written. The row is derived data and is rebuilt in full
on every call.

Usage:
    aggregator = PerformanceAggregator(repo)
    await aggregator.recalculate(student_id, test_id)
    metrics = await aggregator.get_metrics(student_id, test_id)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from assessment_engine.config import settings
from assessment_engine.db.models import PerformanceMetrics, TestAttempt
from assessment_engine.models.assessment import PerformanceMetricsResponse
from assessment_engine.services.assessment.repository import AssessmentRepository
from assessment_engine.services.assessment.scoring import round_half_up

logger = logging.getLogger(__name__)


def _attempts_frame(attempts: list[TestAttempt]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "score": a.score or 0,
                "basic_score": a.basic_score or 0,
                "hints_used": a.hints_used or 0,
                "learning_engagement_rate": a.learning_engagement_rate or 0,
                "time_taken_seconds": a.time_taken_seconds or 0,
            }
            for a in attempts
        ]
    )


def _topic_frame(attempts: list[TestAttempt]) -> pd.DataFrame:
    """One row per (tag, question score) across all stored breakdowns."""
    rows = []
    for attempt in attempts:
        breakdown = attempt.score_breakdown or {}
        for question in breakdown.get("questions", []):
            for tag in question.get("tags") or []:
                rows.append(
                    {"tag": tag, "score": question.get("final_question_score", 0)}
                )
    return pd.DataFrame(rows, columns=["tag", "score"])


def classify_topics(attempts: list[TestAttempt]) -> tuple[list[str], list[str]]:
    """Split question tags into (strong, weak) by mean final question score."""
    df = _topic_frame(attempts)
    if df.empty:
        return [], []

    means = df.groupby("tag")["score"].mean().sort_index()
    strong = means[means >= settings.PERFORMANCE_STRONG_TOPIC_THRESHOLD]
    weak = means[means < settings.PERFORMANCE_WEAK_TOPIC_THRESHOLD]
    return list(strong.index), list(weak.index)


def compute_performance(attempts: list[TestAttempt]) -> dict[str, Any]:
    """
    Compute trend statistics for attempts ordered by completion time.

    Args:
        attempts: Completed attempts, oldest first. Must not be empty.

    Returns:
        Column values for the PerformanceMetrics row.
    """
    df = _attempts_frame(attempts)
    scores = df["score"]

    # Population standard deviation: a single attempt is perfectly consistent
    std = float(scores.std(ddof=0))
    strong, weak = classify_topics(attempts)

    return {
        "total_attempts": len(df),
        "average_score": float(round_half_up(scores.mean())),
        "average_basic_score": float(round_half_up(df["basic_score"].mean())),
        "improvement_rate": float(scores.iloc[-1] - scores.iloc[0]),
        "consistency_score": float(max(0, round_half_up(100 - std))),
        "average_hint_usage": round_half_up(float(df["hints_used"].mean()) * 10) / 10,
        "average_learning_engagement": float(
            round_half_up(df["learning_engagement_rate"].mean())
        ),
        "average_time_seconds": float(round_half_up(df["time_taken_seconds"].mean())),
        "strong_topics": strong,
        "weak_topics": weak,
    }


def metrics_response(metrics: PerformanceMetrics) -> PerformanceMetricsResponse:
    return PerformanceMetricsResponse(
        student_id=metrics.student_id,
        test_id=metrics.test_id,
        total_attempts=metrics.total_attempts or 0,
        average_score=metrics.average_score or 0.0,
        average_basic_score=metrics.average_basic_score or 0.0,
        improvement_rate=metrics.improvement_rate or 0.0,
        consistency_score=metrics.consistency_score or 0.0,
        average_hint_usage=metrics.average_hint_usage or 0.0,
        average_learning_engagement=metrics.average_learning_engagement or 0.0,
        average_time_seconds=metrics.average_time_seconds or 0.0,
        strong_topics=list(metrics.strong_topics or []),
        weak_topics=list(metrics.weak_topics or []),
        calculated_at=metrics.calculated_at,
    )


class PerformanceAggregator:
    """Maintains the derived PerformanceMetrics row per (student, test)."""

    def __init__(self, repository: AssessmentRepository):
        self.repo = repository

    async def recalculate(
        self, student_id: str, test_id: str
    ) -> Optional[PerformanceMetricsResponse]:
        """
        Rebuild and upsert the metrics for the pair.

        Returns:
            The stored metrics, or None when there are no completed attempts.
        """
        attempts = await self.repo.list_completed_attempts(student_id, test_id)
        if not attempts:
            logger.debug(
                f"No completed attempts for student {student_id}, test {test_id}"
            )
            return None

        values = compute_performance(attempts)
        values["calculated_at"] = datetime.now(timezone.utc)

        metrics = await self.repo.upsert_performance_metrics(
            student_id, test_id, values
        )
        try:
            await self.repo.commit()
        except SQLAlchemyError:
            await self.repo.rollback()
            raise

        logger.info(
            f"Updated performance metrics for student {student_id}, test {test_id}: "
            f"attempts={values['total_attempts']}, "
            f"improvement={values['improvement_rate']}, "
            f"consistency={values['consistency_score']}"
        )
        return metrics_response(metrics)

    async def get_metrics(
        self, student_id: str, test_id: str
    ) -> Optional[PerformanceMetricsResponse]:
        metrics = await self.repo.get_performance_metrics(student_id, test_id)
        if metrics is None:
            return None
        return metrics_response(metrics)
