"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Scoring constants are kept here rather than inline in the scoring code so the
formula stays auditable: every penalty, threshold and multiplier used by the
ScoringEngine can be read (and overridden) in one place.

Usage:
    from assessment_engine.config import settings

    # Access settings
    db_url = settings.POSTGRES_URL
    penalty = settings.SCORING_HINT_PENALTY
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    APP_NAME: str = "Adaptive Assessment Engine"
    DEBUG: bool = False

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "assessment"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "assessment"

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # LLM providers (any one is enough, LiteLLM picks by model prefix)
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""
    GEMINI_API_KEY: str = ""
    MISTRAL_API_KEY: str = ""

    # Text model for judging answers and generating hints/explanations
    # Format: provider/model-name
    TEXT_MODEL: str = "openai/gpt-4o-mini"
    # Per-operation overrides keyed by LLMOperation value, e.g.
    # LLM_OPERATION_MODELS='{"ANSWER_JUDGMENT": "anthropic/claude-3-5-haiku-latest"}'
    LLM_OPERATION_MODELS: dict[str, str] = Field(default_factory=dict)
    LLM_TEMPERATURE: float = 0.3
    LLM_MAX_TOKENS: int = 1024

    # Upper bound on any single judge/hint/explanation call, retries included
    EXTERNAL_CALL_TIMEOUT_SECONDS: float = 20.0

    # ===========================================
    # Answer evaluation
    # ===========================================
    CORRECT_FEEDBACK_MESSAGE: str = "Correct!"
    HINT_FALLBACK_MESSAGE: str = "Think about the logic carefully! You can do it!"
    EXPLANATION_FALLBACK_MESSAGE: str = "Learning is fun! Keep exploring this topic."

    # ===========================================
    # Scoring formula
    # ===========================================
    # Per-question support penalties (points out of 100, before difficulty scaling)
    SCORING_HINT_PENALTY: float = 10.0
    SCORING_EXPLANATION_PENALTY: float = 20.0
    SCORING_STUDY_MATERIAL_PENALTY: float = 20.0

    # Harder questions are penalized less for using support
    SCORING_DIFFICULTY_MULTIPLIERS: dict[int, float] = Field(
        default_factory=lambda: {1: 1.0, 2: 0.9, 3: 0.75, 4: 0.6, 5: 0.5}
    )
    SCORING_DEFAULT_DIFFICULTY_MULTIPLIER: float = 1.0

    # A question counts as correct when its raw score reaches this value
    SCORING_CORRECT_THRESHOLD: float = 60.0
    # A question needs study when its post-penalty score is below this value
    SCORING_STUDY_THRESHOLD: float = 60.0

    # Mastery = final score AND first-attempt success rate at or above these
    SCORING_MASTERY_SCORE: float = 90.0
    SCORING_MASTERY_FIRST_ATTEMPT_RATE: float = 80.0

    # Correct answers faster than this count toward the confidence indicator
    SCORING_CONFIDENCE_WINDOW_SECONDS: int = 30

    # Overtime: per whole extra minute, plus a flat amount past the grace period
    SCORING_TIME_PENALTY_PER_MINUTE: float = 1.0
    SCORING_TIME_PENALTY_GRACE_MINUTES: int = 5
    SCORING_TIME_PENALTY_FLAT: float = 10.0

    # ===========================================
    # Longitudinal performance
    # ===========================================
    PERFORMANCE_STRONG_TOPIC_THRESHOLD: float = 80.0
    PERFORMANCE_WEAK_TOPIC_THRESHOLD: float = 60.0


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
