"""
Heuristic copy detection against reference articles.

Four sub-checks run against every non-synthetic reference:

- exact normalized title match
- title token-Jaccard
- longest copied span: a window slid over the whitespace-free reference
  title+summary in fixed steps; any window found in the candidate is a copy
- lead-paragraph structural overlap: token-Jaccard and sentence-signature
  overlap of the first two paragraphs, combined into a composite score

With window ``w`` and step ``s`` every copied run of at least ``w + s - 1``
characters contains a full window on the step grid, so it is always caught.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..config import constants
from ..config.settings import Settings, get_settings
from ..state import Issue, ReferenceArticle
from ..utils.text import compact, jaccard, normalize_title, split_paragraphs, split_sentences


class SimilarityThresholds(BaseModel):
    """Named, injectable similarity thresholds."""

    title_jaccard: float = Field(default=constants.SIMILARITY_TITLE_JACCARD, ge=0.0, le=1.0)
    lead_jaccard: float = Field(default=constants.SIMILARITY_LEAD_JACCARD, ge=0.0, le=1.0)
    lead_signature: float = Field(default=constants.SIMILARITY_LEAD_SIGNATURE, ge=0.0, le=1.0)
    lead_composite: float = Field(default=constants.SIMILARITY_LEAD_COMPOSITE, ge=0.0, le=1.0)
    span_length: int = constants.SIMILARITY_SPAN_LENGTH
    span_step: int = Field(default=constants.SIMILARITY_SPAN_STEP, ge=1)
    signature_chars: int = Field(default=constants.SIMILARITY_SIGNATURE_CHARS, ge=4)

    @field_validator("span_length")
    @classmethod
    def _clamp_span(cls, v: int) -> int:
        low, high = constants.SIMILARITY_SPAN_BOUNDS
        return max(low, min(high, v))

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SimilarityThresholds":
        settings = settings or get_settings()
        return cls(
            title_jaccard=settings.similarity_title_jaccard,
            lead_jaccard=settings.similarity_lead_jaccard,
            lead_signature=settings.similarity_lead_signature,
            lead_composite=settings.similarity_lead_composite,
            span_length=settings.similarity_span_length,
            span_step=settings.similarity_span_step,
        )

    @property
    def guaranteed_span(self) -> int:
        """Shortest copied run that is always detected."""
        return self.span_length + self.span_step - 1


def find_copied_span(reference_text: str, candidate_text: str, window: int, step: int) -> Optional[str]:
    """
    First reference window (whitespace removed, case-folded) found in the candidate.

    The last window of the reference is always checked too, so a copied tail
    is not missed because of step alignment.
    """
    ref = compact(reference_text)
    cand = compact(candidate_text)
    if len(ref) < window or len(cand) < window:
        return None

    starts = list(range(0, len(ref) - window + 1, step))
    if starts[-1] != len(ref) - window:
        starts.append(len(ref) - window)
    for start in starts:
        chunk = ref[start : start + window]
        if chunk in cand:
            return chunk
    return None


def sentence_signatures(text: str, chars: int) -> set[str]:
    """First ``chars`` normalized characters of each sentence."""
    signatures = set()
    for sentence in split_sentences(text):
        signature = compact(sentence)[:chars]
        if len(signature) >= min(chars, 8):
            signatures.add(signature)
    return signatures


def signature_overlap(lead: str, reference_text: str, chars: int) -> float:
    """Share of reference sentence signatures that reappear in the lead."""
    ref_signatures = sentence_signatures(reference_text, chars)
    if not ref_signatures:
        return 0.0
    lead_signatures = sentence_signatures(lead, chars)
    return len(ref_signatures & lead_signatures) / len(ref_signatures)


class SimilarityChecker:
    """Runs the copy-detection sub-checks for one candidate."""

    def __init__(self, thresholds: Optional[SimilarityThresholds] = None) -> None:
        self.thresholds = thresholds or SimilarityThresholds.from_settings()

    def check(
        self,
        title: str,
        body: str,
        references: list[ReferenceArticle],
        prefix: str = "",
    ) -> list[Issue]:
        """
        Compare a candidate against every non-synthetic reference.

        Args:
            title: Candidate title
            body: Candidate body (summary and content for news items)
            references: Request reference set
            prefix: Field prefix for batch items, e.g. "items[0]."

        Returns:
            Issues, at most one per sub-check and reference
        """
        issues: list[Issue] = []
        for ref in references:
            if ref.synthetic:
                continue
            issues += self._check_title(title, ref, prefix)
            issues += self._check_span(title, body, ref, prefix)
            issues += self._check_lead(body, ref, prefix)
        return issues

    def _check_title(self, title: str, ref: ReferenceArticle, prefix: str) -> list[Issue]:
        candidate_title = normalize_title(title)
        if candidate_title and candidate_title == normalize_title(ref.title):
            return [
                Issue(
                    field=f"{prefix}title",
                    rule="title_exact_match",
                    message=f"title repeats the reference title '{ref.title}'",
                )
            ]
        score = jaccard(title, ref.title)
        if score >= self.thresholds.title_jaccard:
            return [
                Issue(
                    field=f"{prefix}title",
                    rule="title_overlap",
                    message=(
                        f"title overlaps '{ref.title}' "
                        f"(jaccard {score:.2f} >= {self.thresholds.title_jaccard:.2f})"
                    ),
                )
            ]
        return []

    def _check_span(self, title: str, body: str, ref: ReferenceArticle, prefix: str) -> list[Issue]:
        span = find_copied_span(
            ref.grounding_text,
            f"{title}\n{body}",
            self.thresholds.span_length,
            self.thresholds.span_step,
        )
        if span is None:
            return []
        return [
            Issue(
                field=f"{prefix}content",
                rule="copied_span",
                message=f"text copies a span of '{ref.title}': '{span}'",
            )
        ]

    def _check_lead(self, body: str, ref: ReferenceArticle, prefix: str) -> list[Issue]:
        lead = "\n".join(split_paragraphs(body)[:2])
        if not lead:
            return []
        t = self.thresholds
        lead_jaccard = jaccard(lead, ref.grounding_text)
        signature = signature_overlap(lead, ref.grounding_text, t.signature_chars)
        composite = 0.6 * lead_jaccard + 0.4 * signature
        if lead_jaccard >= t.lead_jaccard and signature >= t.lead_signature and composite >= t.lead_composite:
            return [
                Issue(
                    field=f"{prefix}content",
                    rule="lead_structure_overlap",
                    message=(
                        f"lead paragraphs mirror '{ref.title}' "
                        f"(jaccard {lead_jaccard:.2f}, signature {signature:.2f}, "
                        f"composite {composite:.2f})"
                    ),
                )
            ]
        return []
