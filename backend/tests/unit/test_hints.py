"""
Unit tests for HintEscalator.

Tests the hint escalation order:
- Static hints first, no generation
- Cached generated hints reused by position
- New hints generated, appended and persisted
- Fallback message when generation fails
- hints_used bookkeeping and index validation
"""

import pytest
from sqlalchemy.exc import OperationalError

from assessment_engine.config import settings
from assessment_engine.enums.assessment import AttemptStatus, ContentSource
from assessment_engine.errors import (
    InvalidAttemptStateError,
    LLMError,
    NotFoundError,
    ValidationError,
)
from assessment_engine.models.assessment import HintRequest
from assessment_engine.services.assessment.hints import HintEscalator
from tests.factories import (
    FakeHintService,
    make_attempt,
    make_question,
    make_record,
    make_test,
)


@pytest.fixture
def hint_repo(repo):
    repo.add_test(
        make_test(),
        [make_question(hints=["It produces energy.", "Starts with M."])],
    )
    repo.put_attempt(make_attempt())
    return repo


def request(index, current_answer=None):
    return HintRequest(
        attempt_id="attempt-1",
        question_id="q-1",
        hint_index=index,
        current_answer=current_answer,
    )


# ============================================================================
# Escalation order
# ============================================================================


class TestHintEscalation:
    @pytest.mark.asyncio
    async def test_static_hint_served_without_generation(self, hint_repo):
        service = FakeHintService()
        escalator = HintEscalator(hint_repo, service)

        response = await escalator.get_hint(request(1))

        assert response.hint == "Starts with M."
        assert response.source == ContentSource.STATIC
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_generates_after_static_hints(self, hint_repo):
        service = FakeHintService()
        escalator = HintEscalator(hint_repo, service)

        response = await escalator.get_hint(request(2, current_answer="nucleus"))

        record = hint_repo.records[("attempt-1", "q-1")]
        assert response.hint == "generated hint 1"
        assert response.source == ContentSource.GENERATED
        assert record.generated_hints == ["generated hint 1"]
        assert service.calls == ["nucleus"]
        assert hint_repo.commits == 1

    @pytest.mark.asyncio
    async def test_cached_hint_reused_by_position(self, hint_repo):
        service = FakeHintService()
        escalator = HintEscalator(hint_repo, service)

        await escalator.get_hint(request(2))
        await escalator.get_hint(request(3))
        again = await escalator.get_hint(request(2))

        assert again.hint == "generated hint 1"
        assert again.source == ContentSource.CACHED
        assert len(service.calls) == 2
        assert hint_repo.records[("attempt-1", "q-1")].generated_hints == [
            "generated hint 1",
            "generated hint 2",
        ]

    @pytest.mark.asyncio
    async def test_question_without_static_hints(self, repo):
        repo.add_test(make_test(), [make_question(hints=None)])
        repo.put_attempt(make_attempt())
        escalator = HintEscalator(repo, FakeHintService())

        response = await escalator.get_hint(request(0))

        assert response.source == ContentSource.GENERATED

    @pytest.mark.asyncio
    async def test_skipping_ahead_is_rejected(self, hint_repo):
        escalator = HintEscalator(hint_repo, FakeHintService())

        with pytest.raises(ValidationError) as exc_info:
            await escalator.get_hint(request(4))

        assert exc_info.value.details == {"next_hint_index": 2}


# ============================================================================
# Failure handling
# ============================================================================


class TestHintFallback:
    @pytest.mark.asyncio
    async def test_generation_failure_returns_fallback(self, hint_repo):
        escalator = HintEscalator(hint_repo, FakeHintService(error=LLMError("down")))

        response = await escalator.get_hint(request(2))

        record = hint_repo.records[("attempt-1", "q-1")]
        assert response.hint == settings.HINT_FALLBACK_MESSAGE
        assert response.source == ContentSource.FALLBACK
        assert record.generated_hints == []
        assert record.hints_used == 0

    @pytest.mark.asyncio
    async def test_fallback_is_not_cached_so_next_request_retries(self, hint_repo):
        service = FakeHintService(error=LLMError("down"))
        escalator = HintEscalator(hint_repo, service)

        await escalator.get_hint(request(2))
        service.error = None
        response = await escalator.get_hint(request(2))

        assert response.source == ContentSource.GENERATED
        assert response.hint == "generated hint 2"

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns_hint(self, hint_repo):
        hint_repo.fail_commit = OperationalError("UPDATE", {}, Exception("gone"))
        escalator = HintEscalator(hint_repo, FakeHintService())

        response = await escalator.get_hint(request(2))

        assert response.hint == "generated hint 1"
        assert hint_repo.rollbacks == 1


# ============================================================================
# Bookkeeping & validation
# ============================================================================


class TestHintBookkeeping:
    @pytest.mark.asyncio
    async def test_hints_used_tracks_highest_index(self, hint_repo):
        escalator = HintEscalator(hint_repo, FakeHintService())

        await escalator.get_hint(request(0))
        await escalator.get_hint(request(1))
        await escalator.get_hint(request(0))

        record = hint_repo.records[("attempt-1", "q-1")]
        assert record.hints_used == 2
        assert record.used_no_hints is False

    @pytest.mark.asyncio
    async def test_existing_record_is_reused(self, hint_repo):
        hint_repo.put_record(make_record(attempts_count=1, judge_score=30))
        escalator = HintEscalator(hint_repo, FakeHintService())

        await escalator.get_hint(request(0))

        record = hint_repo.records[("attempt-1", "q-1")]
        assert record.judge_score == 30
        assert record.hints_used == 1

    @pytest.mark.asyncio
    async def test_rejects_finished_attempt(self, hint_repo):
        hint_repo.attempts["attempt-1"].status = AttemptStatus.COMPLETED.value
        escalator = HintEscalator(hint_repo, FakeHintService())

        with pytest.raises(InvalidAttemptStateError):
            await escalator.get_hint(request(0))

    @pytest.mark.asyncio
    async def test_unknown_question_raises_not_found(self, hint_repo):
        escalator = HintEscalator(hint_repo, FakeHintService())

        with pytest.raises(NotFoundError):
            await escalator.get_hint(
                HintRequest(attempt_id="attempt-1", question_id="nope", hint_index=0)
            )
