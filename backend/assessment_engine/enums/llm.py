"""
LLM-related enums.

Defines the operation types the engine sends to the text model.
"""

from enum import Enum


class LLMOperation(str, Enum):
    """
    Operation types for LLM calls.

    Used for both:
    1. Model selection: LLMClient uses this to pick the right model for each task
    2. Usage tracking: operations are attached to every LLMUsage record
    """

    ANSWER_JUDGMENT = "ANSWER_JUDGMENT"
    HINT_GENERATION = "HINT_GENERATION"
    EXPLANATION_GENERATION = "EXPLANATION_GENERATION"
