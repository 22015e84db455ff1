"""
Strict Base Models for Request/Response Validation

Request models reject unknown fields so mismatches between the host
application and the engine fail fast with a clear validation error instead of
being silently ignored.

Usage:
    # For request payloads (strictest validation)
    class HintRequest(StrictRequest):
        attempt_id: str
        hint_index: int

    # For results built from ORM rows
    class PerformanceMetricsResponse(StrictResponse):
        ...

Architecture:
    Caller → StrictRequest (extra="forbid") → Service
    DB Model → StrictResponse (extra="ignore") → Caller
"""

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """
    Base model for request payloads with strict validation.

    Features:
        - extra="forbid": Unknown fields raise a ValidationError
        - validate_default=True: Validates default values
        - str_strip_whitespace=True: Trims whitespace from strings
        - from_attributes=True: Allows ORM model conversion
    """

    model_config = ConfigDict(
        extra="forbid",  # Reject unknown fields
        validate_default=True,  # Validate defaults
        str_strip_whitespace=True,  # Clean string inputs
        from_attributes=True,  # Enable ORM conversion
    )


class StrictResponse(BaseModel):
    """
    Base model for result payloads.

    More lenient than StrictRequest: ORM rows carry more columns than a
    response exposes, and those are ignored.
    """

    model_config = ConfigDict(
        extra="ignore",  # Allow extra fields in responses
        validate_default=True,  # Validate defaults
        from_attributes=True,  # Enable ORM conversion
    )
