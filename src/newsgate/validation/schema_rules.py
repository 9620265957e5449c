"""
Structural rules per generation mode.

Every violated rule yields one Issue naming the offending field, so callers
can show exactly what to fix.
"""

from typing import Union

from ..state import (
    DraftArtifact,
    GenerationConstraints,
    GenerationMode,
    Issue,
    NewsBatchCandidate,
    NewsItemCandidate,
)
from ..utils.text import count_sentence_units

Candidate = Union[DraftArtifact, NewsBatchCandidate]

_SECTION_FIELDS = (("core", "core"), ("deep_dive", "deepDive"), ("conclusion", "conclusion"))


def _required(field: str, value: str) -> list[Issue]:
    if value.strip():
        return []
    return [Issue(field=field, rule="required", message=f"{field} must not be empty")]


def _max_length(field: str, value: str, limit: int | None) -> list[Issue]:
    length = len(value.strip())
    if limit is None or length <= limit:
        return []
    return [
        Issue(
            field=field,
            rule="max_length",
            message=f"{field} is {length} characters; the limit is {limit}",
        )
    ]


def _count_range(field: str, count: int, low: int, high: int) -> list[Issue]:
    if low <= count <= high:
        return []
    return [
        Issue(
            field=field,
            rule="count_range",
            message=f"{field} has {count} entries; expected {low}-{high}",
        )
    ]


def check_draft(
    candidate: DraftArtifact,
    constraints: GenerationConstraints,
    mode: GenerationMode = GenerationMode.DRAFT,
) -> list[Issue]:
    """Rules for quick drafts and interactive longform."""
    issues = _required("title", candidate.title)
    issues += _max_length("title", candidate.title, constraints.title_max_chars)
    issues += _required("content", candidate.content)
    issues += _max_length("content", candidate.content, constraints.content_max_chars)

    if mode is GenerationMode.LONGFORM and constraints.min_sentences:
        sentences = count_sentence_units(candidate.content)
        if sentences < constraints.min_sentences:
            issues.append(
                Issue(
                    field="content",
                    rule="min_sentences",
                    message=(
                        f"content has {sentences} sentences; "
                        f"at least {constraints.min_sentences} are required"
                    ),
                )
            )

    if constraints.media_slots_max:
        issues += _count_range(
            "mediaSlots",
            len(candidate.media_slots),
            constraints.media_slots_min,
            constraints.media_slots_max,
        )

    if constraints.require_sections:
        for attr, wire_name in _SECTION_FIELDS:
            issues += _required(f"sections.{wire_name}", getattr(candidate.sections, attr))
    return issues


def check_news_item(
    item: NewsItemCandidate,
    constraints: GenerationConstraints,
    prefix: str = "",
) -> list[Issue]:
    """Rules for one news item; ``prefix`` scopes field names inside a batch."""
    issues = _required(f"{prefix}title", item.title)
    issues += _max_length(f"{prefix}title", item.title, constraints.title_max_chars)
    issues += _required(f"{prefix}summary", item.summary)
    issues += _required(f"{prefix}content", item.content)
    issues += _max_length(f"{prefix}content", item.content, constraints.content_max_chars)
    return issues


def check_schema(
    candidate: Candidate,
    constraints: GenerationConstraints,
    mode: GenerationMode,
) -> list[Issue]:
    """
    Check a parsed candidate against the structural rules of its mode.

    Args:
        candidate: Parsed draft/longform artifact or news batch
        constraints: Limits for the request's mode
        mode: Generation mode

    Returns:
        Issues, empty when the candidate is structurally valid
    """
    if isinstance(candidate, NewsBatchCandidate):
        issues: list[Issue] = []
        for index, item in enumerate(candidate.items):
            issues += check_news_item(item, constraints, prefix=f"items[{index}].")
        return issues
    return check_draft(candidate, constraints, mode)
