"""
Unit tests for AssessmentRepository.

Runs against a mocked AsyncSession: verifies not-found handling, record
creation defaults and the metrics upsert. Query correctness is left to the
database.
"""

from unittest.mock import MagicMock

import pytest

from assessment_engine.db.models import PerformanceMetrics, QuestionAttemptRecord
from assessment_engine.errors import NotFoundError
from assessment_engine.services.assessment.repository import AssessmentRepository
from tests.factories import make_question


def returns(session, value):
    """Make the next session.execute() yield `value` from scalar_one_or_none()."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    session.execute.return_value = result


class TestLookups:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["get_test", "get_question", "get_attempt"])
    async def test_missing_row_raises(self, mock_db_session, method):
        returns(mock_db_session, None)
        repo = AssessmentRepository(mock_db_session)

        with pytest.raises(NotFoundError):
            await getattr(repo, method)("missing")

    @pytest.mark.asyncio
    async def test_returns_row(self, mock_db_session):
        question = make_question()
        returns(mock_db_session, question)

        assert await AssessmentRepository(mock_db_session).get_question("q-1") is question

    @pytest.mark.asyncio
    async def test_count_questions(self, mock_db_session):
        result = MagicMock()
        result.scalar_one.return_value = 3
        mock_db_session.execute.return_value = result

        assert await AssessmentRepository(mock_db_session).count_questions("test-1") == 3


class TestRecords:
    @pytest.mark.asyncio
    async def test_creates_record_with_defaults(self, mock_db_session):
        returns(mock_db_session, None)
        repo = AssessmentRepository(mock_db_session)

        record = await repo.get_or_create_record(
            "attempt-1", make_question(mark=4.0, difficulty=3)
        )

        mock_db_session.add.assert_called_once_with(record)
        assert record.attempt_id == "attempt-1"
        assert record.question_id == "q-1"
        assert record.mark == 4.0
        assert record.difficulty == 3
        assert record.attempts_count == 0
        assert record.used_no_hints is True
        assert record.generated_hints == []
        assert record.submission_history == []

    @pytest.mark.asyncio
    async def test_reuses_existing_record(self, mock_db_session):
        existing = QuestionAttemptRecord.empty("attempt-1", "q-1")
        returns(mock_db_session, existing)

        record = await AssessmentRepository(mock_db_session).get_or_create_record(
            "attempt-1", make_question()
        )

        assert record is existing
        mock_db_session.add.assert_not_called()


class TestPerformanceMetrics:
    @pytest.mark.asyncio
    async def test_inserts_new_row(self, mock_db_session):
        returns(mock_db_session, None)
        repo = AssessmentRepository(mock_db_session)

        metrics = await repo.upsert_performance_metrics(
            "student-1", "test-1", {"total_attempts": 2, "average_score": 75.0}
        )

        mock_db_session.add.assert_called_once_with(metrics)
        assert metrics.student_id == "student-1"
        assert metrics.total_attempts == 2
        assert metrics.average_score == 75.0

    @pytest.mark.asyncio
    async def test_updates_existing_row(self, mock_db_session):
        existing = PerformanceMetrics(
            student_id="student-1", test_id="test-1", total_attempts=1
        )
        returns(mock_db_session, existing)
        repo = AssessmentRepository(mock_db_session)

        metrics = await repo.upsert_performance_metrics(
            "student-1", "test-1", {"total_attempts": 2}
        )

        assert metrics is existing
        assert existing.total_attempts == 2
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_commit_and_rollback_delegate(self, mock_db_session):
        repo = AssessmentRepository(mock_db_session)

        await repo.commit()
        await repo.rollback()

        mock_db_session.commit.assert_awaited_once()
        mock_db_session.rollback.assert_awaited_once()
