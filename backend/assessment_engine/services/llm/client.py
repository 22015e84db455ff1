"""
Unified LLM Client supporting multiple providers via LiteLLM.

LiteLLM provides a unified interface to 100+ LLM providers using
the format "provider/model-name". Key features:
- Operation-based model selection via LLMOperation enum
- Usage tracking via LLMUsage
- Automatic retries with exponential backoff
- Native async support

See: https://docs.litellm.ai/

Usage:
    from assessment_engine.enums import LLMOperation
    from assessment_engine.services.llm import get_llm_client

    client = get_llm_client()

    response, usage = await client.complete(
        operation=LLMOperation.ANSWER_JUDGMENT,
        messages=[{"role": "user", "content": "Grade this..."}],
        json_mode=True,
    )
    print(f"Cost: ${usage.total_cost:.4f}")
"""

import json
import logging
import os
import time
from typing import Any, Optional, Union

import litellm
from litellm import acompletion
from tenacity import retry, stop_after_attempt, wait_exponential

from assessment_engine.config.settings import settings
from assessment_engine.enums.llm import LLMOperation
from assessment_engine.services.llm.usage import (
    LLMUsage,
    create_error_usage,
    extract_usage_from_response,
)

logger = logging.getLogger(__name__)

# Configure LiteLLM
litellm.drop_params = True  # Drop unsupported params instead of erroring
if settings.DEBUG:
    os.environ["LITELLM_LOG"] = "DEBUG"


def build_messages(
    prompt: str,
    system_prompt: Optional[str] = None,
) -> list[dict[str, str]]:
    """
    Build messages list from prompt and optional system prompt.

    Args:
        prompt: User prompt text
        system_prompt: Optional system prompt

    Returns:
        List of message dicts for LLM API
    """
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


def strip_code_fences(text: str) -> str:
    """Remove ```json fences some models wrap around JSON replies."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    return cleaned.strip()


class LLMClient:
    """
    LLM client with operation-based model selection and usage tracking.

    Every operation runs on settings.TEXT_MODEL unless
    settings.LLM_OPERATION_MODELS maps its value to another model.
    """

    def __init__(self):
        """Initialize the LLM client and validate API keys."""
        self._validate_api_keys()

    def _validate_api_keys(self):
        """Log which providers have credentials; warn if none do."""
        available_keys = []

        if os.getenv("OPENAI_API_KEY") or settings.OPENAI_API_KEY:
            available_keys.append("OpenAI")
        if os.getenv("ANTHROPIC_API_KEY") or settings.ANTHROPIC_API_KEY:
            available_keys.append("Anthropic")
        if os.getenv("GEMINI_API_KEY") or settings.GEMINI_API_KEY:
            available_keys.append("Google/Gemini")
        if os.getenv("MISTRAL_API_KEY") or settings.MISTRAL_API_KEY:
            available_keys.append("Mistral")

        if not available_keys:
            logger.warning(
                "No LLM API keys configured. Set at least one of: "
                "OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY, MISTRAL_API_KEY"
            )
        else:
            logger.info(f"LLM client initialized with providers: {available_keys}")

    def get_model_for_operation(self, operation: LLMOperation) -> str:
        """
        Get the configured model for a specific operation.

        Returns:
            Model identifier in LiteLLM format (provider/model-name)
        """
        return settings.LLM_OPERATION_MODELS.get(operation.value, settings.TEXT_MODEL)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def complete(
        self,
        operation: LLMOperation,
        messages: list[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        model: Optional[str] = None,
    ) -> tuple[Union[str, Any], LLMUsage]:
        """
        Generate a completion using the appropriate model for the operation.

        Args:
            operation: LLMOperation specifying the operation type.
                Used for both model selection and usage attribution.
            messages: Chat messages in OpenAI format
            temperature: Sampling temperature (defaults to settings.LLM_TEMPERATURE)
            max_tokens: Maximum tokens in response (defaults to settings.LLM_MAX_TOKENS)
            json_mode: Request structured JSON output and parse response as JSON.
                Returns parsed dict/list. JSONDecodeError triggers retry.
            model: Optional model override (bypasses operation-based selection)

        Returns:
            Tuple of (response_text or parsed JSON if json_mode, LLMUsage)

        Raises:
            json.JSONDecodeError: If json_mode=True and response is not valid JSON
                after all retries
            Exception: If completion fails after retries
        """
        model = model or self.get_model_for_operation(operation)
        operation_name = operation.value

        kwargs = {
            "model": model,
            "messages": messages,
            "temperature": settings.LLM_TEMPERATURE if temperature is None else temperature,
            "max_tokens": max_tokens or settings.LLM_MAX_TOKENS,
        }

        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start_time = time.perf_counter()

        try:
            response = await acompletion(**kwargs)
            latency_ms = int((time.perf_counter() - start_time) * 1000)

            usage = extract_usage_from_response(
                response=response,
                model=model,
                latency_ms=latency_ms,
                operation=operation_name,
            )

            logger.debug(
                f"LLM completion [{model}] {operation_name} - "
                f"Tokens: {usage.total_tokens}, Latency: {latency_ms}ms"
            )

            content = response.choices[0].message.content

            if json_mode:
                # JSONDecodeError will trigger @retry
                content = json.loads(strip_code_fences(content or ""))

            return content, usage

        except json.JSONDecodeError:
            logger.warning(f"JSON decode error, will retry (model={model})")
            raise
        except Exception as e:
            latency_ms = int((time.perf_counter() - start_time) * 1000)
            logger.error(f"LLM completion failed: {e} (model={model})")
            error_usage = create_error_usage(
                model=model,
                latency_ms=latency_ms,
                error_message=str(e),
                operation=operation_name,
            )
            logger.debug(f"Failed request usage: {error_usage}")
            raise


# Singleton instance
_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """
    Get or create singleton LLM client.

    Returns:
        Shared LLMClient instance
    """
    global _client
    if _client is None:
        _client = LLMClient()
    return _client


def reset_llm_client():
    """Reset the singleton client (useful for testing)."""
    global _client
    _client = None
