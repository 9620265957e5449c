"""
Reference-grounding enforcement.

A candidate must cite at least one reference, every cited URL must resolve
(by normalized URL) to a non-synthetic article of the request, and at least
one resolved citation must lexically overlap the candidate's text.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config import constants
from ..errors import REFERENCE_MISSING, REFERENCE_OUT_OF_SCOPE, REFERENCE_UNGROUNDED
from ..state import CandidateBase, GenerationRequest, Issue, ReferenceArticle
from ..utils.text import jaccard, normalize_url, significant_tokens

logger = logging.getLogger(__name__)


@dataclass
class GroundingReport:
    """Outcome of grounding one candidate (or one batch item)."""

    issues: list[Issue] = field(default_factory=list)
    code_suffix: Optional[str] = None
    cited: list[ReferenceArticle] = field(default_factory=list)

    @property
    def grounded(self) -> bool:
        return not self.issues


def is_lexically_grounded(
    text: str,
    reference: ReferenceArticle,
    min_shared_tokens: int = constants.GROUNDING_MIN_SHARED_TOKENS,
    min_jaccard: float = constants.GROUNDING_MIN_JACCARD,
) -> bool:
    """True when the text shares enough significant (non-stopword) tokens with the reference title+summary."""
    text_tokens = set(significant_tokens(text))
    ref_tokens = set(significant_tokens(reference.grounding_text))
    if len(text_tokens & ref_tokens) >= min_shared_tokens:
        return True
    return jaccard(text_tokens, ref_tokens) >= min_jaccard


def check_grounding(
    candidate: CandidateBase,
    request: GenerationRequest,
    prefix: str = "",
) -> GroundingReport:
    """
    Ground one candidate against the request's reference set.

    Args:
        candidate: Draft artifact or a single news item
        request: Request owning the reference set
        prefix: Field prefix for batch items

    Returns:
        GroundingReport; ``code_suffix`` names the first failed rule
    """
    by_url = {ref.normalized_url: ref for ref in request.real_references if ref.normalized_url}
    declared = [c for c in candidate.citations if c.url.strip()]

    if not declared:
        return GroundingReport(
            issues=[
                Issue(
                    field=f"{prefix}sourceCitation",
                    rule="reference_missing",
                    message="no citation URL was provided",
                )
            ],
            code_suffix=REFERENCE_MISSING,
        )

    issues: list[Issue] = []
    cited: list[ReferenceArticle] = []
    for index, citation in enumerate(declared):
        ref = by_url.get(normalize_url(citation.url))
        if ref is None:
            issues.append(
                Issue(
                    field=f"{prefix}sourceCitation[{index}].url",
                    rule="reference_out_of_scope",
                    message=f"cited URL is not one of the fetched references: {citation.url}",
                )
            )
        elif ref not in cited:
            cited.append(ref)

    if issues:
        logger.info(f"Out-of-scope citation(s): {[i.message for i in issues]}")
        return GroundingReport(issues=issues, code_suffix=REFERENCE_OUT_OF_SCOPE, cited=cited)

    if not any(is_lexically_grounded(candidate.full_text, ref) for ref in cited):
        return GroundingReport(
            issues=[
                Issue(
                    field=f"{prefix}content",
                    rule="reference_ungrounded",
                    message="text does not overlap the cited reference",
                )
            ],
            code_suffix=REFERENCE_UNGROUNDED,
            cited=cited,
        )
    return GroundingReport(cited=cited)
