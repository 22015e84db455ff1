"""
Assessment Repository

The storage contract consumed by the assessment services, implemented over an
AsyncSession:

- read Test / Question / TestAttempt by id (NotFoundError when missing)
- upsert QuestionAttemptRecord by (attempt_id, question_id)
- read all completed TestAttempts for a (student, test) pair
- read / upsert PerformanceMetrics by (student, test)

Writes are staged on the session; services decide when to commit so that a
unit of work (e.g. append history + recompute flags) lands atomically.

Usage:
    async with async_session_maker() as session:
        repo = AssessmentRepository(session)
        question = await repo.get_question(question_id)
"""

import logging
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_engine.db.models import (
    PerformanceMetrics,
    Question,
    QuestionAttemptRecord,
    Test,
    TestAttempt,
)
from assessment_engine.enums.assessment import AttemptStatus
from assessment_engine.errors import NotFoundError

logger = logging.getLogger(__name__)


class AssessmentRepository:
    """Async SQLAlchemy implementation of the assessment storage contract."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # Authored content
    # ===========================================

    async def get_test(self, test_id: str) -> Test:
        result = await self.db.execute(select(Test).where(Test.id == test_id))
        test = result.scalar_one_or_none()
        if test is None:
            raise NotFoundError(f"Test {test_id} not found")
        return test

    async def get_question(self, question_id: str) -> Question:
        result = await self.db.execute(
            select(Question).where(Question.id == question_id)
        )
        question = result.scalar_one_or_none()
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        return question

    async def count_questions(self, test_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Question).where(Question.test_id == test_id)
        )
        return result.scalar_one()

    async def get_questions(self, question_ids: list[str]) -> dict[str, Question]:
        """Fetch several questions at once, keyed by id. Missing ids are skipped."""
        if not question_ids:
            return {}
        result = await self.db.execute(
            select(Question).where(Question.id.in_(question_ids))
        )
        return {q.id: q for q in result.scalars().all()}

    # ===========================================
    # Attempts
    # ===========================================

    async def get_attempt(self, attempt_id: str) -> TestAttempt:
        result = await self.db.execute(
            select(TestAttempt).where(TestAttempt.id == attempt_id)
        )
        attempt = result.scalar_one_or_none()
        if attempt is None:
            raise NotFoundError(f"Attempt {attempt_id} not found")
        return attempt

    async def find_in_progress_attempt(
        self, student_id: str, test_id: str
    ) -> Optional[TestAttempt]:
        result = await self.db.execute(
            select(TestAttempt).where(
                TestAttempt.student_id == student_id,
                TestAttempt.test_id == test_id,
                TestAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
        )
        return result.scalars().first()

    async def add_attempt(self, attempt: TestAttempt) -> TestAttempt:
        self.db.add(attempt)
        await self.db.flush()
        return attempt

    async def list_completed_attempts(
        self, student_id: str, test_id: str
    ) -> list[TestAttempt]:
        """All completed attempts for the pair, oldest completion first."""
        result = await self.db.execute(
            select(TestAttempt)
            .where(
                TestAttempt.student_id == student_id,
                TestAttempt.test_id == test_id,
                TestAttempt.status == AttemptStatus.COMPLETED.value,
            )
            .order_by(TestAttempt.completed_at.asc())
        )
        return list(result.scalars().all())

    # ===========================================
    # Question records
    # ===========================================

    async def get_record(
        self, attempt_id: str, question_id: str
    ) -> Optional[QuestionAttemptRecord]:
        result = await self.db.execute(
            select(QuestionAttemptRecord).where(
                QuestionAttemptRecord.attempt_id == attempt_id,
                QuestionAttemptRecord.question_id == question_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create_record(
        self, attempt_id: str, question: Question
    ) -> QuestionAttemptRecord:
        """
        Return the record for (attempt, question), staging a new one if needed.

        A new record snapshots the question's mark and difficulty; scoring
        uses the snapshot so edits made during the attempt do not apply.

        The unique constraint on the pair makes a racing duplicate insert fail
        at commit instead of producing two rows.
        """
        record = await self.get_record(attempt_id, question.id)
        if record is None:
            record = QuestionAttemptRecord.empty(
                attempt_id,
                question.id,
                mark=question.mark,
                difficulty=question.difficulty,
            )
            self.db.add(record)
            logger.debug(
                f"Created question record for attempt {attempt_id}, question {question.id}"
            )
        return record

    async def list_records(self, attempt_id: str) -> list[QuestionAttemptRecord]:
        result = await self.db.execute(
            select(QuestionAttemptRecord)
            .where(QuestionAttemptRecord.attempt_id == attempt_id)
            .order_by(QuestionAttemptRecord.id.asc())
        )
        return list(result.scalars().all())

    # ===========================================
    # Performance metrics
    # ===========================================

    async def get_performance_metrics(
        self, student_id: str, test_id: str
    ) -> Optional[PerformanceMetrics]:
        result = await self.db.execute(
            select(PerformanceMetrics).where(
                PerformanceMetrics.student_id == student_id,
                PerformanceMetrics.test_id == test_id,
            )
        )
        return result.scalar_one_or_none()

    async def upsert_performance_metrics(
        self, student_id: str, test_id: str, values: dict[str, Any]
    ) -> PerformanceMetrics:
        """Insert or update the single metrics row for (student, test)."""
        metrics = await self.get_performance_metrics(student_id, test_id)
        if metrics is None:
            metrics = PerformanceMetrics(student_id=student_id, test_id=test_id)
            self.db.add(metrics)
        for key, value in values.items():
            setattr(metrics, key, value)
        return metrics

    # ===========================================
    # Unit of work
    # ===========================================

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
