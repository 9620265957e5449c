"""
State module - enums and Pydantic models flowing through the generation gate.

This module defines:
- GenerationMode, EmotionCategory and RequestState enums
- ReferenceArticle and the request-scoped GenerationRequest
- Strict per-mode candidate schemas produced by the output parser
- ValidatedArtifact, the only shape that leaves the gate as a success
- Compliance assessment models
- Ops counter snapshot and event models
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import constants
from .config.settings import Settings, get_settings
from .utils.text import normalize_title, normalize_url


# =============================================================================
# Enums
# =============================================================================


class GenerationMode(str, Enum):
    """Generation surface; drafts and longform share the draft reason codes."""

    DRAFT = "draft"
    LONGFORM = "interactive-longform"
    NEWS = "news"

    @classmethod
    def normalize(cls, raw: Any) -> "GenerationMode":
        """Map caller input to a draft mode; anything unknown is a quick draft."""
        if isinstance(raw, cls):
            return raw
        text = str(raw or "").strip().lower()
        if text in ("interactive-longform", "longform"):
            return cls.LONGFORM
        if text == "news":
            return cls.NEWS
        return cls.DRAFT

    @property
    def code_prefix(self) -> str:
        return "AI_NEWS" if self is GenerationMode.NEWS else "AI_DRAFT"


class EmotionCategory(str, Enum):
    """Emotion categories news items are grouped under."""

    VIBRANCE = "vibrance"
    IMMERSION = "immersion"
    CLARITY = "clarity"
    GRAVITY = "gravity"
    SERENITY = "serenity"
    SPECTRUM = "spectrum"

    @classmethod
    def resolve(cls, raw: Any) -> Optional["EmotionCategory"]:
        """Resolve a category name or one of its aliases, None if unknown."""
        if isinstance(raw, cls):
            return raw
        text = str(raw or "").strip().lower()
        if not text:
            return None
        text = constants.EMOTION_ALIASES.get(text, text)
        try:
            return cls(text)
        except ValueError:
            return None

    @property
    def default_seeds(self) -> list[str]:
        return list(constants.EMOTION_DEFAULT_SEEDS.get(self.value, []))


def infer_emotion(title: str, summary: str = "") -> EmotionCategory:
    """
    Infer an emotion category from keyword hits in title and summary.

    Ties keep the earliest category in scoring order; no hits yield SPECTRUM.
    """
    haystack = f"{title or ''} {summary or ''}".lower()
    best = EmotionCategory.SPECTRUM
    best_score = 0
    for name in ("immersion", "clarity", "serenity", "vibrance", "gravity"):
        score = sum(1 for keyword in constants.EMOTION_KEYWORDS[name] if keyword.lower() in haystack)
        if score > best_score:
            best, best_score = EmotionCategory(name), score
    return best


class RequestState(str, Enum):
    """
    Lifecycle of one generation request.

    State flow:
    start → fetching_references → generating → parsing → validating →
    accepted | retrying → generating → ... → rejected
    """

    START = "start"
    FETCHING_REFERENCES = "fetching_references"
    GENERATING = "generating"
    PARSING = "parsing"
    VALIDATING = "validating"
    RETRYING = "retrying"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


# =============================================================================
# References
# =============================================================================


class ReferenceArticle(BaseModel):
    """A real (or explicitly synthetic) article used for grounding and citation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(description="Article headline")
    summary: str = Field(default="", description="Feed summary or lead")
    url: str = Field(default="", description="Canonical article URL")
    source: str = Field(default="", description="Publisher name")
    published_at: Optional[str] = Field(default=None, alias="publishedAt")
    synthetic: bool = Field(
        default=False,
        description="Placeholder row produced when every real fetch failed",
    )

    @property
    def normalized_url(self) -> str:
        return normalize_url(self.url)

    @property
    def identity_key(self) -> str:
        """Normalized URL, or the normalized title when the URL is missing."""
        return self.normalized_url or f"title:{normalize_title(self.title)}"

    @property
    def grounding_text(self) -> str:
        return f"{self.title}\n{self.summary}".strip()


class ReferenceFetchResult(BaseModel):
    """Outcome of one acquisitor lookup."""

    query: str = Field(description="Keyword or query variant that produced the articles")
    articles: list[ReferenceArticle] = Field(default_factory=list)
    used_fallback: bool = False
    reason_code: Optional[str] = None


# =============================================================================
# Requests
# =============================================================================


class GenerationConstraints(BaseModel):
    """Mode-dependent structural limits checked by the schema stage."""

    title_max_chars: int = constants.TITLE_MAX_CHARS
    content_max_chars: Optional[int] = None
    media_slots_min: int = 0
    media_slots_max: int = 0
    min_sentences: int = 0
    require_sections: bool = False

    @classmethod
    def for_mode(
        cls,
        mode: GenerationMode,
        settings: Optional[Settings] = None,
    ) -> "GenerationConstraints":
        settings = settings or get_settings()
        if mode is GenerationMode.LONGFORM:
            low, high = constants.LONGFORM_MEDIA_SLOTS
            return cls(
                title_max_chars=settings.title_max_chars,
                media_slots_min=low,
                media_slots_max=high,
                min_sentences=settings.longform_min_sentences,
                require_sections=True,
            )
        if mode is GenerationMode.NEWS:
            return cls(
                title_max_chars=settings.news_title_max_chars,
                content_max_chars=settings.news_content_max_chars,
            )
        low, high = constants.DRAFT_MEDIA_SLOTS
        return cls(
            title_max_chars=settings.title_max_chars,
            content_max_chars=settings.draft_content_max_chars,
            media_slots_min=low,
            media_slots_max=high,
            require_sections=True,
        )


class Issue(BaseModel):
    """One violated rule, reported back to the caller."""

    field: str = Field(description="Offending field, e.g. 'content' or 'items[1].title'")
    rule: str = Field(description="Machine-readable rule name")
    message: str = Field(description="Human-readable explanation")


class GenerationRequest(BaseModel):
    """One call into the gate, scoped to a single reference set."""

    mode: GenerationMode
    topic_seed: str
    reference_set: list[ReferenceArticle] = Field(default_factory=list)
    emotion_category: Optional[EmotionCategory] = None
    constraints: GenerationConstraints = Field(default_factory=GenerationConstraints)

    @property
    def real_references(self) -> list[ReferenceArticle]:
        return [ref for ref in self.reference_set if not ref.synthetic]

    @property
    def reference_urls(self) -> set[str]:
        return {ref.normalized_url for ref in self.real_references if ref.normalized_url}

    @property
    def fully_synthetic(self) -> bool:
        return not self.real_references


class GenerationAttempt(BaseModel):
    """Scratch record of one gate attempt; never persisted."""

    attempt_index: int
    prompt: str
    raw_model_text: Optional[str] = None
    parsed_candidate: Optional[Any] = None
    issues: list[Issue] = Field(default_factory=list)
    model_used: Optional[str] = None
    reason_code: Optional[str] = None


# =============================================================================
# Candidate Schemas (parser output)
# =============================================================================


class Citation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = ""
    url: str = ""
    source: str = ""

    @field_validator("title", "url", "source", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


class MediaSlot(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    type: str = "image"
    anchor_label: str = Field(default="core", alias="anchorLabel")
    position: str = "after"
    caption: str = ""


class Sections(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    core: str = ""
    deep_dive: str = Field(default="", alias="deepDive")
    conclusion: str = ""

    @field_validator("core", "deep_dive", "conclusion", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class CandidateBase(BaseModel):
    """Fields every generated candidate carries; title and content are required keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str
    content: str
    citations: list[Citation] = Field(default_factory=list, alias="sourceCitation")

    @field_validator("title", "content", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, (dict, list)):
            raise ValueError("expected text")
        return str(v)

    @field_validator("citations", mode="before")
    @classmethod
    def _coerce_citations(cls, v: Any) -> list[Any]:
        if v is None or v == "":
            return []
        if isinstance(v, dict):
            return [v]
        if isinstance(v, str):
            return [{"url": v}]
        return list(v)

    @property
    def full_text(self) -> str:
        return f"{self.title}\n{self.content}"


class DraftArtifact(CandidateBase):
    """Quick draft: concise body, three sections, 1-3 media slots."""

    sections: Sections = Field(default_factory=Sections)
    media_slots: list[MediaSlot] = Field(default_factory=list, alias="mediaSlots")

    @field_validator("sections", mode="before")
    @classmethod
    def _coerce_sections(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("media_slots", mode="before")
    @classmethod
    def _coerce_media(cls, v: Any) -> Any:
        return [] if v is None else v


class LongformArtifact(DraftArtifact):
    """Interactive longform: same wire shape, stricter schema rules."""


class NewsItemCandidate(CandidateBase):
    """One short news item of a batch."""

    summary: str = ""
    source: str = ""
    emotion: Optional[str] = None
    image_prompt: str = Field(default="", alias="imagePrompt")

    @field_validator("summary", "source", "image_prompt", mode="before")
    @classmethod
    def _coerce_optional_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def full_text(self) -> str:
        return f"{self.title}\n{self.summary}\n{self.content}"


class NewsBatchCandidate(BaseModel):
    items: list[NewsItemCandidate] = Field(min_length=1)


CANDIDATE_SCHEMAS: dict[GenerationMode, type[BaseModel]] = {
    GenerationMode.DRAFT: DraftArtifact,
    GenerationMode.LONGFORM: LongformArtifact,
    GenerationMode.NEWS: NewsBatchCandidate,
}


# =============================================================================
# Compliance
# =============================================================================


class ComplianceFlag(BaseModel):
    category: str
    severity: Severity
    matched: str = ""
    message: str = ""


class ComplianceAssessment(BaseModel):
    risk_level: Severity = Severity.LOW
    flags: list[ComplianceFlag] = Field(default_factory=list)
    publish_blocked: bool = False


# =============================================================================
# Accepted Output
# =============================================================================


class ValidatedArtifact(BaseModel):
    """Accepted output; produced only when every gate stage passed."""

    model_config = ConfigDict(frozen=True)

    mode: GenerationMode
    title: str
    summary: str = ""
    content: str
    sections: Optional[Sections] = None
    media_slots: list[MediaSlot] = Field(default_factory=list)
    citation: Citation
    citations: list[Citation] = Field(default_factory=list)
    compliance: ComplianceAssessment
    emotion_category: Optional[EmotionCategory] = None
    model_used: Optional[str] = None
    attempts: int = 1
    used_fallback_references: bool = False


class NewsBatch(BaseModel):
    """Accepted news batch; every item is independently grounded."""

    emotion_category: EmotionCategory
    items: list[ValidatedArtifact] = Field(default_factory=list)
    used_fallback_references: bool = False
    reason_code: Optional[str] = None


# =============================================================================
# Ops Counters
# =============================================================================


class OpsSnapshot(BaseModel):
    """Counter snapshot; persisted as one JSON document with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    started_at: str = Field(alias="startedAt")
    updated_at: str = Field(alias="updatedAt")
    totals: dict[str, int] = Field(default_factory=dict)
    by_mode: dict[str, dict[str, int]] = Field(default_factory=dict, alias="byMode")
    by_category: dict[str, dict[str, int]] = Field(default_factory=dict, alias="byCategory")


class OpsEvent(BaseModel):
    """One tracked increment (or an epoch reset) in the append-only event log."""

    model_config = ConfigDict(populate_by_name=True)

    at: str
    kind: str = "track"
    scope_type: Optional[str] = Field(default=None, alias="scopeType")
    scope: Optional[str] = None
    counter: Optional[str] = None
    amount: int = 0
