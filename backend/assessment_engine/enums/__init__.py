"""
Centralized enum definitions for the assessment engine.

All enums are organized by domain:
- assessment.py: Test attempt lifecycle, hint/explanation sources
- llm.py: LLM operation types

Usage:
    from assessment_engine.enums import AttemptStatus, LLMOperation
"""

from assessment_engine.enums.assessment import AttemptStatus, ContentSource
from assessment_engine.enums.llm import LLMOperation

__all__ = [
    "AttemptStatus",
    "ContentSource",
    "LLMOperation",
]
