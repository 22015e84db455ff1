"""
Hint Escalator

Serves progressively stronger hints for a question within an attempt.

Escalation order for zero-based hint index k:
1. Static hints authored on the question (k < len(static)), served as-is
2. Hints generated earlier in this attempt, cached on the question record
   at position k - len(static)
3. A newly generated hint, personalized with the student's current wrong
   answer, appended to the cache and persisted
4. A fixed encouraging message when generation fails

Index k is always the k-th hint ever shown for the question in the attempt.
Requesting past the next unseen hint is rejected, so generated hints are
never skipped or reordered.

Usage:
    escalator = HintEscalator(repo, LLMHintGenerationService(get_llm_client()))
    response = await escalator.get_hint(
        HintRequest(attempt_id=a, question_id=q, hint_index=2, current_answer="mitosis")
    )
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from assessment_engine.config import settings
from assessment_engine.db.models import Question, QuestionAttemptRecord
from assessment_engine.enums.assessment import AttemptStatus, ContentSource
from assessment_engine.errors import InvalidAttemptStateError, ValidationError
from assessment_engine.models.assessment import HintRequest, HintResponse
from assessment_engine.services.assessment.generation import (
    HintGenerationService,
    call_with_timeout,
)
from assessment_engine.services.assessment.repository import AssessmentRepository

logger = logging.getLogger(__name__)


class HintEscalator:
    """Static-first, then cached, then generated hints with a safe fallback."""

    def __init__(
        self,
        repository: AssessmentRepository,
        hint_service: HintGenerationService,
        timeout: Optional[float] = None,
    ):
        self.repo = repository
        self.hint_service = hint_service
        self.timeout = timeout

    async def get_hint(self, request: HintRequest) -> HintResponse:
        """
        Serve the hint at request.hint_index.

        Raises:
            NotFoundError: If the attempt or question does not exist
            InvalidAttemptStateError: If the attempt is no longer in progress
            ValidationError: If the index skips past the next unseen hint
        """
        attempt = await self.repo.get_attempt(request.attempt_id)
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            raise InvalidAttemptStateError(
                f"Cannot use hints on attempt {attempt.id} in status {attempt.status}"
            )

        question = await self.repo.get_question(request.question_id)
        static_hints = list(question.hints or [])
        index = request.hint_index

        if index < len(static_hints):
            record = await self.repo.get_or_create_record(attempt.id, question)
            self._mark_used(record, index)
            await self.repo.commit()
            return HintResponse(
                hint=static_hints[index], hint_index=index, source=ContentSource.STATIC
            )

        record = await self.repo.get_or_create_record(attempt.id, question)
        cached = list(record.generated_hints or [])
        generated_index = index - len(static_hints)

        if generated_index < len(cached):
            self._mark_used(record, index)
            await self.repo.commit()
            return HintResponse(
                hint=cached[generated_index],
                hint_index=index,
                source=ContentSource.CACHED,
            )

        if generated_index > len(cached):
            raise ValidationError(
                f"Hint {index} requested but only "
                f"{len(static_hints) + len(cached)} hints have been shown",
                details={"next_hint_index": len(static_hints) + len(cached)},
            )

        hint = await self._generate(question, request.current_answer)
        if hint is None:
            return HintResponse(
                hint=settings.HINT_FALLBACK_MESSAGE,
                hint_index=index,
                source=ContentSource.FALLBACK,
            )

        record.generated_hints = cached + [hint]
        self._mark_used(record, index)
        try:
            await self.repo.commit()
        except SQLAlchemyError as e:
            # Still show the hint; the cache write is retried on the next request
            await self.repo.rollback()
            logger.error(
                f"Failed to store generated hint for attempt {attempt.id}, "
                f"question {question.id}: {e}"
            )

        logger.info(
            f"Generated hint {index} for attempt {attempt.id}, question {question.id}"
        )
        return HintResponse(hint=hint, hint_index=index, source=ContentSource.GENERATED)

    @staticmethod
    def _mark_used(record: QuestionAttemptRecord, index: int) -> None:
        record.hints_used = max(record.hints_used or 0, index + 1)
        record.used_no_hints = False

    async def _generate(
        self, question: Question, wrong_answer: Optional[str]
    ) -> Optional[str]:
        try:
            generated = await call_with_timeout(
                self.hint_service.generate_hint(
                    question_text=question.question_text,
                    reference_answer=question.correct_answer,
                    wrong_answer=wrong_answer or None,
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(
                f"Hint generation failed for question {question.id}: "
                f"{type(e).__name__}: {e}"
            )
            return None
        return generated.hint
