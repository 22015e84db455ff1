"""
Unit tests for AttemptHistoryStore.

Tests the append-only submission history and its derived fields:
- Best judge score is monotonically non-decreasing
- Strict correctness reflects the latest submission only
- First-attempt / no-hints / persistence flags
"""

import random

import pytest

from assessment_engine.models.assessment import SubmissionVerdict
from assessment_engine.services.assessment.history import (
    AttemptHistoryStore,
    apply_verdict,
    best_judge_score,
    history_judge_scores,
)
from tests.factories import history_entry, make_record


def verdict(strict=False, score=None, answer="x", feedback=None):
    return SubmissionVerdict(
        answer=answer, strict_correct=strict, score=score, feedback=feedback
    )


# ============================================================================
# Pure helpers
# ============================================================================


class TestHistoryScores:
    def test_ignores_missing_and_non_numeric_scores(self):
        history = [
            history_entry(judge_score=40),
            history_entry(judge_score=None),
            {"answer": "x", "judge_score": "high"},
            "garbage",
            history_entry(judge_score=70.5),
        ]

        assert history_judge_scores(history) == [40.0, 70.5]
        assert best_judge_score(history) == 70.5

    def test_empty_history(self):
        assert best_judge_score([]) is None
        assert best_judge_score(None) is None


# ============================================================================
# apply_verdict
# ============================================================================


class TestApplyVerdict:
    def test_first_correct_submission(self):
        record = make_record()

        apply_verdict(record, verdict(strict=True, score=100, answer="mitochondria"))

        assert record.attempts_count == 1
        assert record.is_correct is True
        assert record.judge_score == 100
        assert record.answered_on_first_attempt is True
        assert record.used_no_hints is True
        assert record.showed_persistence is False
        assert record.student_answer == "mitochondria"
        assert len(record.submission_history) == 1

    def test_correct_after_retry_shows_persistence(self):
        record = make_record()

        apply_verdict(record, verdict(strict=False, score=40))
        apply_verdict(record, verdict(strict=True, score=100))

        assert record.attempts_count == 2
        assert record.is_correct is True
        assert record.answered_on_first_attempt is False
        assert record.showed_persistence is True

    def test_is_correct_reflects_latest_submission(self):
        record = make_record()

        apply_verdict(record, verdict(strict=True, score=100))
        apply_verdict(record, verdict(strict=False, score=20))

        assert record.is_correct is False
        assert record.judge_score == 100
        assert record.showed_persistence is False

    def test_hints_clear_used_no_hints(self):
        record = make_record(hints_used=2)

        apply_verdict(record, verdict(strict=True, score=100))

        assert record.used_no_hints is False

    def test_unscored_submission_keeps_previous_best(self):
        record = make_record()

        apply_verdict(record, verdict(score=60))
        apply_verdict(record, verdict(score=None))

        assert record.judge_score == 60
        assert record.submission_history[-1]["judge_score"] is None

    def test_history_is_reassigned_not_mutated(self):
        record = make_record()
        original = record.submission_history

        apply_verdict(record, verdict(score=10))

        assert record.submission_history is not original
        assert original == []

    def test_time_spent_replaces_stored_value(self):
        record = make_record(time_taken_seconds=15)

        apply_verdict(record, verdict(score=10), time_spent_seconds=42)
        assert record.time_taken_seconds == 42

        apply_verdict(record, verdict(score=10))
        assert record.time_taken_seconds == 42

    def test_best_score_is_monotonic_for_any_sequence(self):
        rng = random.Random(7)
        record = make_record()
        previous_best = None

        for _ in range(50):
            score = rng.choice([None, rng.randint(0, 100)])
            apply_verdict(record, verdict(score=score))
            if previous_best is not None:
                assert record.judge_score >= previous_best
            previous_best = record.judge_score

        assert record.attempts_count == 50
        assert record.judge_score == best_judge_score(record.submission_history)


# ============================================================================
# Store
# ============================================================================


class TestAttemptHistoryStore:
    @pytest.mark.asyncio
    async def test_record_submission_creates_and_commits(self, seeded_repo):
        store = AttemptHistoryStore(seeded_repo)
        question = seeded_repo.questions["q-1"]

        record = await store.record_submission(
            "attempt-1", question, verdict(score=55), time_spent_seconds=20
        )

        assert seeded_repo.records[("attempt-1", "q-1")] is record
        assert record.mark == question.mark
        assert record.difficulty == question.difficulty
        assert record.attempts_count == 1
        assert record.time_taken_seconds == 20
        assert seeded_repo.commits == 1

    @pytest.mark.asyncio
    async def test_resubmission_appends_to_same_record(self, seeded_repo):
        store = AttemptHistoryStore(seeded_repo)
        question = seeded_repo.questions["q-1"]

        await store.record_submission("attempt-1", question, verdict(score=55))
        record = await store.record_submission("attempt-1", question, verdict(score=35))

        assert len(seeded_repo.records) == 1
        assert record.attempts_count == 2
        assert [e["judge_score"] for e in record.submission_history] == [55, 35]
        assert await store.get_best_score("attempt-1", "q-1") == 55

    @pytest.mark.asyncio
    async def test_get_best_score_without_record(self, seeded_repo):
        store = AttemptHistoryStore(seeded_repo)
        assert await store.get_best_score("attempt-1", "q-1") is None
