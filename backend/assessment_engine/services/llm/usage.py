"""
LLM Usage Types

Defines the LLMUsage dataclass and helpers for extracting token, cost and
latency information from LiteLLM responses.

Usage:
    from assessment_engine.services.llm.usage import extract_usage_from_response

    usage = extract_usage_from_response(
        response=litellm_response,
        model="openai/gpt-4o-mini",
        latency_ms=412,
        operation=LLMOperation.ANSWER_JUDGMENT,
    )
"""

import logging
import uuid
from dataclasses import dataclass, field, asdict
from typing import Optional

import litellm

logger = logging.getLogger(__name__)


@dataclass
class LLMUsage:
    """
    Structured LLM usage data returned from completion calls.

    Attributes:
        request_id: Unique identifier for this request (auto-generated UUID)
        model: Full model identifier (e.g., "openai/gpt-4o-mini")
        provider: Extracted provider name (e.g., "openai")
        prompt_tokens / completion_tokens / total_tokens: Token usage
        cost_usd: Total cost in USD, when LiteLLM can price the model
        operation: LLMOperation value the call was made for
        latency_ms: Request latency in milliseconds
        success: Whether the request succeeded
        error_message: Error message if request failed
    """

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    model: str = ""
    provider: str = ""

    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None

    cost_usd: Optional[float] = None

    operation: Optional[str] = None

    latency_ms: Optional[int] = None
    success: bool = True
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for logging or serialization."""
        return asdict(self)

    @property
    def total_cost(self) -> float:
        """Return total cost, defaulting to 0 if not available."""
        return self.cost_usd or 0.0

    def __str__(self) -> str:
        cost_str = f"${self.cost_usd:.4f}" if self.cost_usd else "N/A"
        tokens_str = str(self.total_tokens) if self.total_tokens else "N/A"
        return f"LLMUsage({self.model}, {self.operation}, cost={cost_str}, tokens={tokens_str})"


def extract_provider(model: str) -> str:
    """
    Extract provider name from model identifier.

    Returns:
        Provider name (e.g., "openai") or "unknown" if not parseable
    """
    if "/" in model:
        return model.split("/")[0]
    return "unknown"


def extract_usage_from_response(
    response,
    model: str,
    latency_ms: int,
    operation: Optional[str] = None,
) -> LLMUsage:
    """
    Extract usage and cost information from a LiteLLM response.

    Args:
        response: LiteLLM response object
        model: Model identifier used for the request
        latency_ms: Measured latency in milliseconds
        operation: Optional operation name for attribution

    Returns:
        LLMUsage populated with whatever the response exposes
    """
    usage = LLMUsage(
        model=model,
        provider=extract_provider(model),
        latency_ms=latency_ms,
        operation=operation,
    )

    if getattr(response, "usage", None):
        usage.prompt_tokens = getattr(response.usage, "prompt_tokens", None)
        usage.completion_tokens = getattr(response.usage, "completion_tokens", None)
        usage.total_tokens = getattr(response.usage, "total_tokens", None)

    hidden = getattr(response, "_hidden_params", None)
    if isinstance(hidden, dict):
        usage.cost_usd = hidden.get("response_cost")

    # Fallback: price it ourselves
    if usage.cost_usd is None and usage.total_tokens:
        try:
            usage.cost_usd = litellm.completion_cost(completion_response=response)
        except Exception as e:
            logger.debug(f"Cost calculation not available for {model}: {e}")

    return usage


def create_error_usage(
    model: str,
    latency_ms: int,
    error_message: str,
    operation: Optional[str] = None,
) -> LLMUsage:
    """Build the usage record for a failed request."""
    return LLMUsage(
        model=model,
        provider=extract_provider(model),
        latency_ms=latency_ms,
        operation=operation,
        success=False,
        error_message=error_message,
    )
