"""
Unit tests for AttemptService.

Tests the attempt lifecycle and the submission flow end to end against the
in-memory repository:
- Start / resume / abandon
- Submitting answers (strict, judged, judge unavailable)
- Study material tracking
- A full attempt from first submission to finished score
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from assessment_engine.enums.assessment import AttemptStatus
from assessment_engine.errors import (
    InvalidAttemptStateError,
    LLMError,
    NotFoundError,
)
from assessment_engine.models.assessment import HintRequest, JudgeResult, SubmitAnswerRequest
from assessment_engine.services.assessment.attempts import AttemptService
from assessment_engine.services.assessment.hints import HintEscalator
from assessment_engine.services.assessment.judge import AnswerJudge
from assessment_engine.services.assessment.performance import PerformanceAggregator
from assessment_engine.services.assessment.repository import AssessmentRepository
from assessment_engine.services.assessment.scoring import ScoringEngine
from tests.factories import (
    FakeHintService,
    FakeJudgmentService,
    make_attempt,
    make_question,
    make_test,
)


def service_for(repo, judgment=None):
    return AttemptService(repo, AnswerJudge(judgment or FakeJudgmentService()))


def session_results(test, winner):
    """Results for get_test, find_in_progress, count_questions, then the re-read."""
    found_test = MagicMock()
    found_test.scalar_one_or_none.return_value = test
    no_attempt = MagicMock()
    no_attempt.scalars.return_value.first.return_value = None
    count = MagicMock()
    count.scalar_one.return_value = 1
    reread = MagicMock()
    reread.scalars.return_value.first.return_value = winner
    return [found_test, no_attempt, count, reread]


def submit(answer, time_spent_seconds=None, question_id="q-1"):
    return SubmitAnswerRequest(
        attempt_id="attempt-1",
        question_id=question_id,
        answer=answer,
        time_spent_seconds=time_spent_seconds,
    )


# ============================================================================
# Lifecycle
# ============================================================================


class TestStartAttempt:
    @pytest.mark.asyncio
    async def test_creates_attempt(self, repo):
        repo.add_test(
            make_test(total_mark=20),
            [make_question("q-1"), make_question("q-2")],
        )
        service = service_for(repo)

        attempt = await service.start_attempt("student-1", "test-1")

        assert attempt.status == AttemptStatus.IN_PROGRESS
        assert attempt.total_questions == 2
        assert attempt.total_mark == 20
        assert attempt.id in repo.attempts
        assert repo.commits == 1

    @pytest.mark.asyncio
    async def test_resumes_in_progress_attempt(self, seeded_repo):
        service = service_for(seeded_repo)

        attempt = await service.start_attempt("student-1", "test-1")

        assert attempt.id == "attempt-1"
        assert len(seeded_repo.attempts) == 1
        assert seeded_repo.commits == 0

    @pytest.mark.asyncio
    async def test_new_attempt_after_completion(self, seeded_repo):
        seeded_repo.attempts["attempt-1"].status = AttemptStatus.COMPLETED.value
        service = service_for(seeded_repo)

        attempt = await service.start_attempt("student-1", "test-1")

        assert attempt.id != "attempt-1"
        assert len(seeded_repo.attempts) == 2

    @pytest.mark.asyncio
    async def test_unknown_test(self, repo):
        with pytest.raises(NotFoundError):
            await service_for(repo).start_attempt("student-1", "missing")


class TestConcurrentStart:
    """Two starts racing for the same (student, test) in-progress slot."""

    @pytest.mark.asyncio
    async def test_losing_insert_resumes_winner(self, mock_db_session):
        winner = make_attempt("attempt-winner")
        mock_db_session.execute.side_effect = session_results(make_test(), winner)
        mock_db_session.flush.side_effect = IntegrityError(
            "INSERT INTO test_attempts", {}, Exception("duplicate key")
        )
        service = service_for(AssessmentRepository(mock_db_session))

        attempt = await service.start_attempt("student-1", "test-1")

        assert attempt.id == "attempt-winner"
        assert attempt.status == AttemptStatus.IN_PROGRESS
        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_integrity_error_without_winner_propagates(self, mock_db_session):
        mock_db_session.execute.side_effect = session_results(make_test(), None)
        mock_db_session.flush.side_effect = IntegrityError(
            "INSERT INTO test_attempts", {}, Exception("foreign key")
        )
        service = service_for(AssessmentRepository(mock_db_session))

        with pytest.raises(IntegrityError):
            await service.start_attempt("student-1", "test-1")

        mock_db_session.rollback.assert_awaited_once()


class TestAbandonAttempt:
    @pytest.mark.asyncio
    async def test_abandons_in_progress(self, seeded_repo):
        response = await service_for(seeded_repo).abandon_attempt("attempt-1")

        assert response.status == AttemptStatus.ABANDONED
        assert response.completed_at is not None

    @pytest.mark.asyncio
    async def test_abandon_twice_is_noop(self, seeded_repo):
        service = service_for(seeded_repo)

        await service.abandon_attempt("attempt-1")
        await service.abandon_attempt("attempt-1")

        assert seeded_repo.commits == 1

    @pytest.mark.asyncio
    async def test_cannot_abandon_completed(self, seeded_repo):
        seeded_repo.attempts["attempt-1"].status = AttemptStatus.COMPLETED.value

        with pytest.raises(InvalidAttemptStateError):
            await service_for(seeded_repo).abandon_attempt("attempt-1")


# ============================================================================
# Submissions
# ============================================================================


class TestSubmitAnswer:
    @pytest.mark.asyncio
    async def test_strict_correct_submission(self, seeded_repo):
        response = await service_for(seeded_repo).submit_answer(
            submit("mitochondria", time_spent_seconds=12)
        )

        record = seeded_repo.records[("attempt-1", "q-1")]
        assert response.is_correct is True
        assert response.score == 100
        assert response.best_score == 100
        assert response.correct_answer == "Mitochondria"
        assert response.attempts_count == 1
        assert record.time_taken_seconds == 12
        assert record.answered_on_first_attempt is True

    @pytest.mark.asyncio
    async def test_partial_credit_then_correct(self, seeded_repo):
        judgment = FakeJudgmentService(
            JudgeResult(is_correct=False, score=60, feedback="Almost!")
        )
        service = service_for(seeded_repo, judgment)

        first = await service.submit_answer(submit("mitochondrion"))
        second = await service.submit_answer(submit("Mitochondria"))

        assert first.is_correct is False
        assert first.score == 60
        assert first.feedback == "Almost!"
        assert second.is_correct is True
        assert second.best_score == 100
        assert second.attempts_count == 2
        assert seeded_repo.records[("attempt-1", "q-1")].showed_persistence is True

    @pytest.mark.asyncio
    async def test_judge_unavailable_still_records(self, seeded_repo):
        service = service_for(
            seeded_repo, FakeJudgmentService(error=LLMError("provider down"))
        )

        response = await service.submit_answer(submit("nucleus"))

        record = seeded_repo.records[("attempt-1", "q-1")]
        assert response.is_correct is False
        assert response.score is None
        assert response.feedback is None
        assert record.attempts_count == 1
        assert record.submission_history[0]["judge_score"] is None

    @pytest.mark.asyncio
    async def test_rejects_submission_to_finished_attempt(self, seeded_repo):
        seeded_repo.attempts["attempt-1"].status = AttemptStatus.ABANDONED.value

        with pytest.raises(InvalidAttemptStateError):
            await service_for(seeded_repo).submit_answer(submit("mitochondria"))

    @pytest.mark.asyncio
    async def test_unknown_question(self, seeded_repo):
        with pytest.raises(NotFoundError):
            await service_for(seeded_repo).submit_answer(
                submit("x", question_id="missing")
            )

    def test_request_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            SubmitAnswerRequest(attempt_id="a", question_id="q", answer="x", extra=1)


class TestStudyMaterial:
    @pytest.mark.asyncio
    async def test_tracks_download(self, seeded_repo):
        await service_for(seeded_repo).track_study_material_download(
            "attempt-1", "q-1"
        )

        record = seeded_repo.records[("attempt-1", "q-1")]
        assert record.study_material_downloaded is True
        assert record.downloaded_at is not None
        assert record.attempts_count == 0


# ============================================================================
# Full flow
# ============================================================================


class TestFullAttempt:
    @pytest.mark.asyncio
    async def test_attempt_with_support_scores_and_aggregates(self, repo):
        repo.add_test(
            make_test(total_mark=20, duration_minutes=30),
            [
                make_question("q-1", hints=["It makes energy."], tags=["cells"]),
                make_question(
                    "q-2", correct_answer="Ribosome", difficulty=2, tags=["proteins"]
                ),
            ],
        )
        judgment = FakeJudgmentService(JudgeResult(is_correct=False, score=40))
        service = service_for(repo, judgment)
        escalator = HintEscalator(repo, FakeHintService())
        engine = ScoringEngine(repo, PerformanceAggregator(repo))

        attempt = await service.start_attempt("student-1", "test-1")

        # q-1: one static hint, then correct
        await escalator.get_hint(
            HintRequest(attempt_id=attempt.id, question_id="q-1", hint_index=0)
        )
        await service.submit_answer(
            SubmitAnswerRequest(
                attempt_id=attempt.id,
                question_id="q-1",
                answer="mitochondria",
                time_spent_seconds=25,
            )
        )
        # q-2: partial credit, then correct, with study material
        await service.track_study_material_download(attempt.id, "q-2")
        for answer in ("ribosomes", "ribosome"):
            await service.submit_answer(
                SubmitAnswerRequest(
                    attempt_id=attempt.id,
                    question_id="q-2",
                    answer=answer,
                    time_spent_seconds=90,
                )
            )

        result = await engine.finish_attempt(attempt.id)

        q1, q2 = result.breakdown.questions
        assert q1.final_question_score == 90
        # raw (40 + 100) / 2 = 70, study penalty 20 * 0.9 = 18
        assert q2.raw_score == 70
        assert q2.final_question_score == pytest.approx(52)
        # (9 + 5.2) / 20 = 71%
        assert result.basic_score == 71
        assert result.score == 71
        assert result.correct_answers == 2
        assert result.metrics.first_attempt_success_rate == 50
        assert result.metrics.persistence_score == 100
        assert result.metrics.questions_requiring_study == 1

        metrics = await PerformanceAggregator(repo).get_metrics("student-1", "test-1")
        assert metrics.total_attempts == 1
        assert metrics.average_score == 71
        assert metrics.strong_topics == ["cells"]
        assert metrics.weak_topics == ["proteins"]

    @pytest.mark.asyncio
    async def test_authoring_edits_mid_attempt_do_not_rescore(self, repo):
        repo.add_test(
            make_test(total_mark=10),
            [make_question("q-1", hints=["It makes energy."], mark=10, difficulty=1)],
        )
        service = service_for(repo)
        escalator = HintEscalator(repo, FakeHintService())
        engine = ScoringEngine(repo)

        attempt = await service.start_attempt("student-1", "test-1")
        await escalator.get_hint(
            HintRequest(attempt_id=attempt.id, question_id="q-1", hint_index=0)
        )
        await service.submit_answer(
            SubmitAnswerRequest(
                attempt_id=attempt.id,
                question_id="q-1",
                answer="mitochondria",
                time_spent_seconds=120,
            )
        )

        repo.tests["test-1"].total_mark = 20
        repo.tests["test-1"].duration_minutes = 1
        question = repo.questions["q-1"]
        question.mark = 5
        question.difficulty = 5

        result = await engine.finish_attempt(attempt.id)

        assert result.breakdown.total_test_marks == 10
        assert result.breakdown.questions[0].mark == 10
        assert result.breakdown.questions[0].difficulty_multiplier == 1.0
        assert result.breakdown.questions[0].final_question_score == 90
        assert result.breakdown.time_penalty == 0
        assert result.basic_score == 90
        assert result.score == 90
