"""
Attempt Service

Attempt lifecycle and submission orchestration:

- start_attempt: resume the student's in-progress attempt on a test, or
  create one
- submit_answer: judge an answer and append it to the question's history
- track_study_material_download: flag a question's study material as used
- abandon_attempt: end an attempt without scoring

Finishing (scoring) an attempt is ScoringEngine's job.

Usage:
    service = AttemptService(repo, AnswerJudge(LLMAnswerJudgmentService(llm)))
    attempt = await service.start_attempt(student_id, test_id)
    response = await service.submit_answer(
        SubmitAnswerRequest(attempt_id=attempt.id, question_id=q, answer="ATP")
    )
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from assessment_engine.db.models import TestAttempt
from assessment_engine.enums.assessment import AttemptStatus
from assessment_engine.errors import InvalidAttemptStateError
from assessment_engine.models.assessment import (
    AttemptResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
)
from assessment_engine.services.assessment.history import AttemptHistoryStore
from assessment_engine.services.assessment.judge import AnswerJudge
from assessment_engine.services.assessment.repository import AssessmentRepository

logger = logging.getLogger(__name__)


def _attempt_response(attempt: TestAttempt) -> AttemptResponse:
    return AttemptResponse(
        id=attempt.id,
        test_id=attempt.test_id,
        student_id=attempt.student_id,
        status=attempt.status,
        started_at=attempt.started_at,
        completed_at=attempt.completed_at,
        total_questions=attempt.total_questions or 0,
        total_mark=attempt.total_mark or 0.0,
    )


class AttemptService:
    """
    Entry point for student interactions with an attempt.

    Attributes:
        repo: Storage contract.
        judge: Answer evaluation.
        history: Per-question submission log.
    """

    def __init__(self, repository: AssessmentRepository, judge: AnswerJudge):
        self.repo = repository
        self.judge = judge
        self.history = AttemptHistoryStore(repository)

    async def start_attempt(self, student_id: str, test_id: str) -> AttemptResponse:
        """
        Resume the in-progress attempt for (student, test), or start one.

        The partial unique index on in-progress attempts rejects a second
        concurrent start; the loser resumes the winner's attempt.

        Raises:
            NotFoundError: If the test does not exist
        """
        test = await self.repo.get_test(test_id)

        existing = await self.repo.find_in_progress_attempt(student_id, test.id)
        if existing is not None:
            logger.info(
                f"Resuming attempt {existing.id} for student {student_id}, test {test_id}"
            )
            return _attempt_response(existing)

        attempt = TestAttempt(
            test_id=test.id,
            student_id=student_id,
            status=AttemptStatus.IN_PROGRESS.value,
            started_at=datetime.now(timezone.utc),
            total_questions=await self.repo.count_questions(test.id),
            total_mark=test.total_mark or 0.0,
            duration_minutes=test.duration_minutes,
            correct_answers=0,
            hints_used=0,
            time_taken_seconds=0,
            questions_requiring_study=0,
            mastery_achieved=False,
        )
        try:
            await self.repo.add_attempt(attempt)
            await self.repo.commit()
        except IntegrityError:
            # A concurrent start won the in-progress slot for this pair
            await self.repo.rollback()
            existing = await self.repo.find_in_progress_attempt(student_id, test_id)
            if existing is None:
                raise
            logger.info(
                f"Attempt {existing.id} was started concurrently for student "
                f"{student_id}, test {test_id}; resuming it"
            )
            return _attempt_response(existing)

        logger.info(
            f"Started attempt {attempt.id} for student {student_id}, test {test_id}"
        )
        return _attempt_response(attempt)

    async def abandon_attempt(self, attempt_id: str) -> AttemptResponse:
        """
        Move an in-progress attempt to abandoned. Already abandoned is a no-op.

        Raises:
            NotFoundError: If the attempt does not exist
            InvalidAttemptStateError: If the attempt is completed
        """
        attempt = await self.repo.get_attempt(attempt_id)

        if attempt.status == AttemptStatus.ABANDONED.value:
            return _attempt_response(attempt)
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            raise InvalidAttemptStateError(
                f"Cannot abandon attempt {attempt_id} in status {attempt.status}"
            )

        attempt.status = AttemptStatus.ABANDONED.value
        attempt.completed_at = datetime.now(timezone.utc)
        await self.repo.commit()

        logger.info(f"Abandoned attempt {attempt_id}")
        return _attempt_response(attempt)

    async def submit_answer(self, request: SubmitAnswerRequest) -> SubmitAnswerResponse:
        """
        Judge a submission and record it.

        External judge failures never surface here; they produce a verdict
        with no score and no feedback.

        Raises:
            NotFoundError: If the attempt or question does not exist
            InvalidAttemptStateError: If the attempt is no longer in progress
        """
        attempt = await self.repo.get_attempt(request.attempt_id)
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            raise InvalidAttemptStateError(
                f"Cannot submit to attempt {attempt.id} in status {attempt.status}"
            )
        question = await self.repo.get_question(request.question_id)

        previous_best = await self.history.get_best_score(attempt.id, question.id)
        verdict = await self.judge.evaluate(question, request.answer, previous_best)

        record = await self.history.record_submission(
            attempt.id,
            question,
            verdict,
            time_spent_seconds=request.time_spent_seconds,
        )

        return SubmitAnswerResponse(
            is_correct=verdict.strict_correct,
            score=verdict.score,
            best_score=record.judge_score,
            feedback=verdict.feedback,
            correct_answer=question.correct_answer,
            attempts_count=record.attempts_count,
        )

    async def track_study_material_download(
        self, attempt_id: str, question_id: str
    ) -> None:
        """
        Mark that the student downloaded study material for a question.

        Raises:
            NotFoundError: If the attempt or question does not exist
            InvalidAttemptStateError: If the attempt is no longer in progress
        """
        attempt = await self.repo.get_attempt(attempt_id)
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            raise InvalidAttemptStateError(
                f"Cannot track study material on attempt {attempt.id} "
                f"in status {attempt.status}"
            )
        question = await self.repo.get_question(question_id)

        record = await self.repo.get_or_create_record(attempt.id, question)
        record.study_material_downloaded = True
        record.downloaded_at = datetime.now(timezone.utc)
        await self.repo.commit()

        logger.info(
            f"Study material downloaded for attempt {attempt.id}, question {question.id}"
        )
