"""Validation module - schema rules, similarity, grounding and the gate."""

from .gate import GateDecision, ValidationGate
from .grounding import GroundingReport, check_grounding, is_lexically_grounded
from .schema_rules import check_schema
from .similarity import SimilarityChecker, SimilarityThresholds, find_copied_span

__all__ = [
    "GateDecision",
    "ValidationGate",
    "GroundingReport",
    "check_grounding",
    "is_lexically_grounded",
    "check_schema",
    "SimilarityChecker",
    "SimilarityThresholds",
    "find_copied_span",
]
