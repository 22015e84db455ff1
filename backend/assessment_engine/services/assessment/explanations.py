"""
Explanation Provider

Serves the simplified explanation ("micro-lesson") for a question.

Resolution order:
1. The authored explanation, unless the student asked a follow-up question
2. A follow-up question always gets a fresh generated answer, never cached
3. The default generated explanation cached for this attempt
4. A newly generated default explanation, cached once per attempt
5. A fixed fallback message when generation fails

Serving any explanation for an in-progress attempt marks the question record
as explanation_viewed, which the scoring formula penalizes.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from assessment_engine.config import settings
from assessment_engine.db.models import Question, QuestionAttemptRecord, TestAttempt
from assessment_engine.enums.assessment import AttemptStatus, ContentSource
from assessment_engine.models.assessment import (
    ExplanationRequest,
    ExplanationResponse,
)
from assessment_engine.services.assessment.generation import (
    ExplanationGenerationService,
    call_with_timeout,
)
from assessment_engine.services.assessment.repository import AssessmentRepository

logger = logging.getLogger(__name__)


class ExplanationProvider:
    def __init__(
        self,
        repository: AssessmentRepository,
        explanation_service: ExplanationGenerationService,
        timeout: Optional[float] = None,
    ):
        self.repo = repository
        self.explanation_service = explanation_service
        self.timeout = timeout

    async def get_explanation(self, request: ExplanationRequest) -> ExplanationResponse:
        """
        Resolve the explanation for request.question_id.

        Raises:
            NotFoundError: If the question (or the given attempt) does not exist
        """
        question = await self.repo.get_question(request.question_id)
        follow_up = (request.follow_up_question or "").strip() or None

        record = await self._tracked_record(request.attempt_id, question)

        if question.explanation and question.explanation.strip() and not follow_up:
            await self._mark_viewed(record)
            return ExplanationResponse(
                content=question.explanation, source=ContentSource.STATIC
            )

        if not follow_up and record is not None and record.generated_explanation:
            await self._mark_viewed(record)
            return ExplanationResponse(
                content=record.generated_explanation, source=ContentSource.CACHED
            )

        content = await self._generate(question, follow_up)
        if content is None:
            return ExplanationResponse(
                content=settings.EXPLANATION_FALLBACK_MESSAGE,
                source=ContentSource.FALLBACK,
            )

        if record is not None:
            if not follow_up:
                record.generated_explanation = content
            await self._mark_viewed(record)

        return ExplanationResponse(content=content, source=ContentSource.GENERATED)

    async def _tracked_record(
        self, attempt_id: Optional[str], question: Question
    ) -> Optional[QuestionAttemptRecord]:
        """Record to cache on and mark, or None outside an in-progress attempt."""
        if not attempt_id:
            return None
        attempt: TestAttempt = await self.repo.get_attempt(attempt_id)
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            return None
        return await self.repo.get_or_create_record(attempt.id, question)

    async def _mark_viewed(self, record: Optional[QuestionAttemptRecord]) -> None:
        if record is None:
            return
        record.explanation_viewed = True
        try:
            await self.repo.commit()
        except SQLAlchemyError as e:
            await self.repo.rollback()
            logger.error(
                f"Failed to store explanation state for attempt {record.attempt_id}, "
                f"question {record.question_id}: {e}"
            )

    async def _generate(
        self, question: Question, follow_up: Optional[str]
    ) -> Optional[str]:
        try:
            generated = await call_with_timeout(
                self.explanation_service.generate_explanation(
                    question_text=question.question_text,
                    reference_answer=question.correct_answer,
                    follow_up_question=follow_up,
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(
                f"Explanation generation failed for question {question.id}: "
                f"{type(e).__name__}: {e}"
            )
            return None
        return generated.content
