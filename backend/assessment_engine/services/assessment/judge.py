"""
Answer Judge

Decides correctness of a single submitted answer.

Evaluation stages:
1. **Strict match**: submitted and reference answers are normalized
   (trimmed, lowercased). Equal means correct with score 100; the external
   judge is not called.
2. **External judgment**: for a non-empty mismatch, the free-text judgment
   service scores the answer 0-100 with feedback.
3. **Promotion rule**: only an explicit ``isCorrect == true`` from the judge
   promotes the submission to strictly correct (score becomes 100). Otherwise
   the judge's score is kept as partial credit and strict correctness stays
   false.
4. **Degradation**: if the judge fails, times out or replies with something
   unusable, the verdict is "not correct, no score, no feedback". The
   submission flow never sees the error.

The judge only decides; persisting the verdict is AttemptHistoryStore's job.

Usage:
    judge = AnswerJudge(LLMAnswerJudgmentService(get_llm_client()))
    verdict = await judge.evaluate(question, "photosynthesis", previous_best_score=40)
"""

import logging
from typing import Optional

from assessment_engine.config import settings
from assessment_engine.db.models import Question
from assessment_engine.models.assessment import JudgeResult, SubmissionVerdict
from assessment_engine.services.assessment.generation import (
    AnswerJudgmentService,
    call_with_timeout,
)

logger = logging.getLogger(__name__)

PERFECT_SCORE = 100.0


def normalize_answer(answer: Optional[str]) -> str:
    """Normalize an answer for strict comparison."""
    return (answer or "").strip().lower()


def is_strict_match(submitted: Optional[str], reference: Optional[str]) -> bool:
    return normalize_answer(submitted) == normalize_answer(reference)


def _best_of(previous_best: Optional[float], score: Optional[float]) -> Optional[float]:
    scores = [s for s in (previous_best, score) if s is not None]
    return max(scores) if scores else None


class AnswerJudge:
    """
    Multi-stage answer evaluation with an external fallback judge.

    Attributes:
        judgment_service: External free-text judge.
        timeout: Upper bound in seconds for one judge call
            (defaults to settings.EXTERNAL_CALL_TIMEOUT_SECONDS).
    """

    def __init__(
        self,
        judgment_service: AnswerJudgmentService,
        timeout: Optional[float] = None,
    ):
        self.judgment_service = judgment_service
        self.timeout = timeout

    async def evaluate(
        self,
        question: Question,
        submitted_answer: str,
        previous_best_score: Optional[float] = None,
    ) -> SubmissionVerdict:
        """
        Evaluate one submission.

        Args:
            question: The question being answered.
            submitted_answer: Raw answer text as submitted.
            previous_best_score: Best judge score stored for this question in
                this attempt, if any.

        Returns:
            SubmissionVerdict for immediate feedback and for the history log.
        """
        if is_strict_match(submitted_answer, question.correct_answer):
            return SubmissionVerdict(
                answer=submitted_answer,
                strict_correct=True,
                score=PERFECT_SCORE,
                feedback=settings.CORRECT_FEEDBACK_MESSAGE,
                best_judge_score=_best_of(previous_best_score, PERFECT_SCORE),
            )

        if not normalize_answer(submitted_answer):
            return SubmissionVerdict(
                answer=submitted_answer,
                strict_correct=False,
                best_judge_score=previous_best_score,
            )

        judgment = await self._judge(question, submitted_answer)
        if judgment is None:
            return SubmissionVerdict(
                answer=submitted_answer,
                strict_correct=False,
                best_judge_score=previous_best_score,
            )

        # Only an explicit isCorrect=true promotes; a high partial score alone does not
        if judgment.is_correct is True:
            score = PERFECT_SCORE
            strict_correct = True
        else:
            score = judgment.score
            strict_correct = False

        return SubmissionVerdict(
            answer=submitted_answer,
            strict_correct=strict_correct,
            score=score,
            feedback=judgment.feedback or None,
            best_judge_score=_best_of(previous_best_score, score),
            judged_externally=True,
        )

    async def _judge(
        self, question: Question, submitted_answer: str
    ) -> Optional[JudgeResult]:
        """Call the external judge; None means the judge was unavailable."""
        try:
            return await call_with_timeout(
                self.judgment_service.judge(
                    question_text=question.question_text,
                    reference_answer=question.correct_answer,
                    submitted_answer=submitted_answer,
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(
                f"Answer judgment unavailable for question {question.id}: "
                f"{type(e).__name__}: {e}"
            )
            return None
