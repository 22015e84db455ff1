"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across the unit tests.
Row factories and in-memory doubles live in tests/factories.py.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from dotenv import load_dotenv

# Load .env file from project root BEFORE any fixtures run
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# Use litellm's bundled model cost map instead of fetching it over the
# network at import time (the fetch fails offline and litellm then deadlocks).
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from tests.factories import (  # noqa: E402
    FakeRepository,
    make_attempt,
    make_question,
    make_test,
)


# ============================================================================
# Environment Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Set up test environment variables before any tests run.

    Overrides values from .env files to ensure test isolation.
    """
    original_env = os.environ.copy()

    test_env = {
        "POSTGRES_HOST": os.environ.get("POSTGRES_HOST", "localhost"),
        "POSTGRES_PORT": os.environ.get("POSTGRES_PORT", "5432"),
        "POSTGRES_USER": os.environ.get("POSTGRES_TEST_USER", "testuser"),
        "POSTGRES_PASSWORD": os.environ.get("POSTGRES_TEST_PASSWORD", "testpass"),
        "POSTGRES_DB": os.environ.get("POSTGRES_TEST_DB", "testdb"),
        "OPENAI_API_KEY": os.environ.get("OPENAI_API_KEY", "test-api-key"),
        "DEBUG": "true",
    }
    os.environ.update(test_env)

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ============================================================================
# Storage Fixtures
# ============================================================================


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def seeded_repo(repo: FakeRepository) -> FakeRepository:
    """One 10-mark test with one 10-mark question and an in-progress attempt."""
    repo.add_test(make_test(), [make_question()])
    repo.put_attempt(make_attempt())
    return repo


@pytest.fixture
def completion_times() -> list[datetime]:
    base = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    return [base + timedelta(days=i) for i in range(10)]


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_db_session() -> MagicMock:
    """
    Create a mock database session for unit testing.
    """
    mock = MagicMock()
    mock.execute = AsyncMock()
    mock.commit = AsyncMock()
    mock.rollback = AsyncMock()
    mock.close = AsyncMock()
    mock.add = MagicMock()
    mock.flush = AsyncMock()
    return mock


@pytest.fixture
def mock_llm_client() -> MagicMock:
    """LLMClient stand-in whose complete() returns (data, usage)."""
    client = MagicMock()
    client.complete = AsyncMock(return_value=({}, MagicMock()))
    return client
