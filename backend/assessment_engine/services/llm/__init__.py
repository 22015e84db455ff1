"""
LLM Service Module

Provides a unified interface to multiple LLM providers via LiteLLM.

Key Components:
- client.py: LLMClient with async completion and operation-based model selection
- usage.py: LLMUsage records extracted from every response

Usage:
    from assessment_engine.enums import LLMOperation
    from assessment_engine.services.llm import get_llm_client

    client = get_llm_client()
    response, usage = await client.complete(
        operation=LLMOperation.HINT_GENERATION,
        messages=[{"role": "user", "content": "Give a hint..."}],
        json_mode=True,
    )
"""

from assessment_engine.services.llm.client import (
    LLMClient,
    build_messages,
    get_llm_client,
    reset_llm_client,
)
from assessment_engine.services.llm.usage import LLMUsage

__all__ = [
    "LLMClient",
    "LLMUsage",
    "get_llm_client",
    "reset_llm_client",
    "build_messages",
]
