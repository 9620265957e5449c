"""
Error taxonomy of the generation gate.

Every terminal rejection is a ``GenerationRejected`` carrying a
machine-readable code, a retryable flag and the itemized issues. Backend
failures (``ModelCallError``) stay inside the orchestrator.
"""

from typing import Any, Optional

from .state import GenerationMode, Issue

# Reason suffixes; the surface prefix (AI_DRAFT / AI_NEWS) is added per mode.
PARSE_BLOCKED = "PARSE_BLOCKED"
SCHEMA_INVALID = "SCHEMA_INVALID"
SIMILARITY_BLOCKED = "SIMILARITY_BLOCKED"
REFERENCE_OUT_OF_SCOPE = "REFERENCE_OUT_OF_SCOPE"
REFERENCE_MISSING = "REFERENCE_MISSING"
REFERENCE_UNGROUNDED = "REFERENCE_UNGROUNDED"
REFERENCE_UNAVAILABLE = "REFERENCE_UNAVAILABLE"
COMPLIANCE_BLOCKED = "COMPLIANCE_BLOCKED"
MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"

# Orchestrator reason codes
MODEL_TIMEOUT = "MODEL_TIMEOUT"
MODEL_OVERLOADED = "MODEL_OVERLOADED"
MODEL_ERROR = "MODEL_ERROR"
MODEL_EMPTY = "MODEL_EMPTY"


def reason_code(mode: GenerationMode, suffix: str) -> str:
    """Full reason code for a mode, e.g. ``AI_DRAFT_SCHEMA_INVALID``."""
    return f"{mode.code_prefix}_{suffix}"


# =============================================================================
# Backend failures (internal to the orchestrator)
# =============================================================================


class ModelCallError(Exception):
    """A single model attempt failed."""

    retryable = False

    def __init__(
        self,
        message: str,
        reason_code: str = MODEL_ERROR,
        retry_after_s: Optional[float] = None,
    ):
        super().__init__(message)
        self.reason_code = reason_code
        self.retry_after_s = retry_after_s


class TransientBackendFailure(ModelCallError):
    """Timeout, overload, rate limit or unavailability; worth another attempt."""

    retryable = True


# =============================================================================
# Rejections (surfaced to the caller)
# =============================================================================


class GenerationRejected(Exception):
    """
    Terminal rejection of a generation request.

    Attributes:
        code: Machine-readable reason code
        retryable: Whether the caller may retry the same request later
        issues: Itemized rule violations
        retried: Whether the gate already spent its automatic retry
        stage: Pipeline stage that rejected the request
    """

    stage = "gate"
    default_retryable = False

    def __init__(
        self,
        code: str,
        message: str = "",
        issues: Optional[list[Issue]] = None,
        retryable: Optional[bool] = None,
        retried: bool = False,
    ):
        super().__init__(message or code)
        self.code = code
        self.message = message or code
        self.issues = list(issues or [])
        self.retryable = self.default_retryable if retryable is None else retryable
        self.retried = retried

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "retryable": self.retryable,
            "retried": self.retried,
            "stage": self.stage,
            "issues": [issue.model_dump() for issue in self.issues],
        }


class ParseFailure(GenerationRejected):
    stage = "parse"
    default_retryable = True


class SchemaViolation(GenerationRejected):
    stage = "schema"
    default_retryable = True


class SimilarityViolation(GenerationRejected):
    stage = "similarity"
    default_retryable = True


class GroundingViolation(GenerationRejected):
    stage = "grounding"


class ReferenceUnavailable(GenerationRejected):
    stage = "references"
    default_retryable = True


class ComplianceBlock(GenerationRejected):
    stage = "compliance"


class ModelUnavailable(GenerationRejected):
    stage = "generation"
    default_retryable = True
