"""
Validation gate - ordered schema, similarity and grounding checks.

The first failing stage short-circuits the remaining ones for that attempt.
The gate only decides; retries, compliance and counters are driven by the
pipeline.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from ..errors import SCHEMA_INVALID, SIMILARITY_BLOCKED, reason_code
from ..state import (
    DraftArtifact,
    GenerationRequest,
    Issue,
    NewsBatchCandidate,
    NewsItemCandidate,
    ReferenceArticle,
)
from .grounding import check_grounding
from .schema_rules import check_schema
from .similarity import SimilarityChecker, SimilarityThresholds

logger = logging.getLogger(__name__)

Candidate = Union[DraftArtifact, NewsBatchCandidate]

STAGE_SCHEMA = "schema"
STAGE_SIMILARITY = "similarity"
STAGE_GROUNDING = "grounding"


@dataclass
class GateDecision:
    """
    Verdict on one parsed candidate.

    Attributes:
        accepted: True when every stage passed
        stage: Failing stage (schema, similarity or grounding)
        issues: Itemized violations of the failing stage
        code: Full reason code, e.g. AI_DRAFT_SIMILARITY_BLOCKED
        cited: Resolved references per draft or per batch item, in order
    """

    accepted: bool
    stage: Optional[str] = None
    issues: list[Issue] = field(default_factory=list)
    code: Optional[str] = None
    cited: list[list[ReferenceArticle]] = field(default_factory=list)


class ValidationGate:
    """Schema → similarity → grounding."""

    def __init__(self, thresholds: Optional[SimilarityThresholds] = None) -> None:
        self.similarity = SimilarityChecker(thresholds)

    def validate(self, candidate: Candidate, request: GenerationRequest) -> GateDecision:
        mode = request.mode

        issues = check_schema(candidate, request.constraints, mode)
        if issues:
            return self._reject(STAGE_SCHEMA, issues, reason_code(mode, SCHEMA_INVALID))

        issues = []
        for prefix, item in self._units(candidate):
            body = item.content
            if isinstance(item, NewsItemCandidate):
                body = f"{item.summary}\n\n{item.content}"
            issues += self.similarity.check(item.title, body, request.reference_set, prefix)
        if issues:
            return self._reject(STAGE_SIMILARITY, issues, reason_code(mode, SIMILARITY_BLOCKED))

        cited: list[list[ReferenceArticle]] = []
        for prefix, item in self._units(candidate):
            report = check_grounding(item, request, prefix)
            if not report.grounded:
                # One ungrounded item fails the whole batch.
                return self._reject(
                    STAGE_GROUNDING, report.issues, reason_code(mode, report.code_suffix)
                )
            cited.append(report.cited)

        return GateDecision(accepted=True, cited=cited)

    @staticmethod
    def _units(candidate: Candidate) -> list[tuple[str, object]]:
        if isinstance(candidate, NewsBatchCandidate):
            return [(f"items[{i}].", item) for i, item in enumerate(candidate.items)]
        return [("", candidate)]

    @staticmethod
    def _reject(stage: str, issues: list[Issue], code: str) -> GateDecision:
        logger.info(f"Gate blocked at {stage} with {code}: {len(issues)} issue(s)")
        return GateDecision(accepted=False, stage=stage, issues=issues, code=code)
