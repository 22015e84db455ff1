"""
External Judgment & Generation Services

The engine depends on three external collaborators, each defined here as an
abstract interface so services can be handed deterministic fakes in tests:

- AnswerJudgmentService: scores a free-text answer against the reference
  answer, returning {isCorrect, score 0-100, feedback}
- HintGenerationService: produces one hint, optionally personalized with the
  student's current wrong answer
- ExplanationGenerationService: produces a simplified explanation,
  optionally answering a follow-up question

The LLM-backed implementations render the prompts in prompts.py, request
JSON mode from LLMClient and validate the reply shape with Pydantic. Any
provider failure or malformed reply is raised as LLMError; deciding on a
fallback is the caller's job.

call_with_timeout() is the single place the per-call time bound is applied.

Usage:
    judge = LLMAnswerJudgmentService(get_llm_client())
    result = await call_with_timeout(
        judge.judge(question_text, reference_answer, submitted_answer)
    )
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from assessment_engine.config import settings
from assessment_engine.enums.llm import LLMOperation
from assessment_engine.errors import LLMError
from assessment_engine.models.assessment import (
    GeneratedExplanation,
    GeneratedHint,
    JudgeResult,
)
from assessment_engine.services.assessment.prompts import (
    EXPLANATION_FOLLOW_UP_SECTION,
    EXPLANATION_PROMPT,
    EXPLANATION_SYSTEM_PROMPT,
    HINT_PROMPT,
    HINT_SYSTEM_PROMPT,
    HINT_WRONG_ANSWER_SECTION,
    JUDGE_PROMPT,
    JUDGE_SYSTEM_PROMPT,
)
from assessment_engine.services.llm.client import LLMClient, build_messages

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_timeout(
    call: Awaitable[T], timeout: Optional[float] = None
) -> T:
    """
    Await an external call with an upper time bound.

    Raises:
        asyncio.TimeoutError: If the call does not finish in time
    """
    return await asyncio.wait_for(
        call, timeout=timeout or settings.EXTERNAL_CALL_TIMEOUT_SECONDS
    )


# ===========================================
# Interfaces
# ===========================================


class AnswerJudgmentService(ABC):
    """Scores a free-text answer against the reference answer."""

    @abstractmethod
    async def judge(
        self, question_text: str, reference_answer: str, submitted_answer: str
    ) -> JudgeResult:
        """Return the judgment, or raise on failure."""


class HintGenerationService(ABC):
    """Generates the next hint for a question."""

    @abstractmethod
    async def generate_hint(
        self,
        question_text: str,
        reference_answer: str,
        wrong_answer: Optional[str] = None,
    ) -> GeneratedHint:
        """Return a new hint, or raise on failure."""


class ExplanationGenerationService(ABC):
    """Generates a simplified explanation for a question."""

    @abstractmethod
    async def generate_explanation(
        self,
        question_text: str,
        reference_answer: str,
        follow_up_question: Optional[str] = None,
    ) -> GeneratedExplanation:
        """Return an explanation, or raise on failure."""


# ===========================================
# LLM-backed implementations
# ===========================================


class _LLMGenerationBase:
    """Shared plumbing: one JSON-mode completion validated into a model."""

    def __init__(self, llm_client: LLMClient, model: Optional[str] = None):
        self.llm = llm_client
        self.model = model

    async def _complete_json(
        self,
        operation: LLMOperation,
        prompt: str,
        system_prompt: str,
        result_model: type[T],
    ) -> T:
        messages = build_messages(prompt=prompt, system_prompt=system_prompt)

        try:
            data, usage = await self.llm.complete(
                operation=operation,
                messages=messages,
                json_mode=True,
                model=self.model,
            )
        except Exception as e:
            raise LLMError(
                f"{operation.value} call failed: {e}",
                details={"operation": operation.value},
            ) from e

        logger.debug(f"{operation.value} usage: {usage}")

        if not isinstance(data, dict):
            raise LLMError(
                f"{operation.value} returned {type(data).__name__}, expected object",
                details={"operation": operation.value},
            )

        try:
            return result_model.model_validate(data)
        except PydanticValidationError as e:
            raise LLMError(
                f"{operation.value} returned an unusable payload: {e}",
                details={"operation": operation.value, "payload": data},
            ) from e


class LLMAnswerJudgmentService(_LLMGenerationBase, AnswerJudgmentService):
    """AnswerJudgmentService backed by the configured text model."""

    async def judge(
        self, question_text: str, reference_answer: str, submitted_answer: str
    ) -> JudgeResult:
        prompt = JUDGE_PROMPT.format(
            question_text=question_text,
            reference_answer=reference_answer,
            submitted_answer=submitted_answer,
        )
        return await self._complete_json(
            LLMOperation.ANSWER_JUDGMENT, prompt, JUDGE_SYSTEM_PROMPT, JudgeResult
        )


class LLMHintGenerationService(_LLMGenerationBase, HintGenerationService):
    """HintGenerationService backed by the configured text model."""

    async def generate_hint(
        self,
        question_text: str,
        reference_answer: str,
        wrong_answer: Optional[str] = None,
    ) -> GeneratedHint:
        wrong_answer_section = (
            HINT_WRONG_ANSWER_SECTION.format(wrong_answer=wrong_answer)
            if wrong_answer
            else ""
        )
        prompt = HINT_PROMPT.format(
            question_text=question_text,
            reference_answer=reference_answer,
            wrong_answer_section=wrong_answer_section,
        )
        return await self._complete_json(
            LLMOperation.HINT_GENERATION, prompt, HINT_SYSTEM_PROMPT, GeneratedHint
        )


class LLMExplanationGenerationService(_LLMGenerationBase, ExplanationGenerationService):
    """ExplanationGenerationService backed by the configured text model."""

    async def generate_explanation(
        self,
        question_text: str,
        reference_answer: str,
        follow_up_question: Optional[str] = None,
    ) -> GeneratedExplanation:
        follow_up_section = (
            EXPLANATION_FOLLOW_UP_SECTION.format(follow_up_question=follow_up_question)
            if follow_up_question
            else ""
        )
        prompt = EXPLANATION_PROMPT.format(
            question_text=question_text,
            reference_answer=reference_answer,
            follow_up_section=follow_up_section,
        )
        return await self._complete_json(
            LLMOperation.EXPLANATION_GENERATION,
            prompt,
            EXPLANATION_SYSTEM_PROMPT,
            GeneratedExplanation,
        )
