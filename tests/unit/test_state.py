"""Unit tests for state enums and models."""

import pytest
from pydantic import ValidationError

from conftest import make_reference
from newsgate.errors import SchemaViolation, reason_code
from newsgate.state import (
    Citation,
    EmotionCategory,
    GenerationConstraints,
    GenerationMode,
    GenerationRequest,
    Issue,
    NewsItemCandidate,
    RequestState,
    Severity,
    infer_emotion,
)


class TestGenerationMode:
    """Tests for GenerationMode."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("draft", GenerationMode.DRAFT),
            ("interactive-longform", GenerationMode.LONGFORM),
            ("LONGFORM", GenerationMode.LONGFORM),
            ("news", GenerationMode.NEWS),
            ("something-else", GenerationMode.DRAFT),
            (None, GenerationMode.DRAFT),
        ],
    )
    def test_normalize(self, raw, expected):
        """Unknown modes fall back to quick drafts."""
        assert GenerationMode.normalize(raw) is expected

    def test_reason_code_prefix(self):
        """Longform shares the draft prefix."""
        assert reason_code(GenerationMode.LONGFORM, "SCHEMA_INVALID") == "AI_DRAFT_SCHEMA_INVALID"
        assert reason_code(GenerationMode.NEWS, "SCHEMA_INVALID") == "AI_NEWS_SCHEMA_INVALID"


class TestEmotionCategory:
    """Tests for EmotionCategory."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("clarity", EmotionCategory.CLARITY),
            (" Gravity ", EmotionCategory.GRAVITY),
            ("analysis", EmotionCategory.CLARITY),
            ("calm", EmotionCategory.SERENITY),
            ("설렘", EmotionCategory.VIBRANCE),
            ("균형", EmotionCategory.SPECTRUM),
        ],
    )
    def test_resolve_names_and_aliases(self, raw, expected):
        """Names and aliases resolve case-insensitively."""
        assert EmotionCategory.resolve(raw) is expected

    def test_resolve_unknown(self):
        """Unknown names resolve to None."""
        assert EmotionCategory.resolve("melancholy") is None
        assert EmotionCategory.resolve("") is None

    def test_default_seeds(self):
        """Every category has default seeds."""
        assert all(category.default_seeds for category in EmotionCategory)


class TestInferEmotion:
    """Tests for infer_emotion."""

    def test_keyword_hits(self):
        """The category with the most keyword hits wins."""
        assert infer_emotion("Earthquake disaster warning issued") is EmotionCategory.GRAVITY
        assert infer_emotion("Economy data and policy analysis") is EmotionCategory.CLARITY

    def test_no_hits_is_spectrum(self):
        """Neutral text maps to spectrum."""
        assert infer_emotion("Quarterly update") is EmotionCategory.SPECTRUM


class TestReferenceArticle:
    """Tests for ReferenceArticle identity."""

    def test_identity_key_uses_normalized_url(self):
        """URL spelling variants share one identity."""
        a = make_reference(url="https://www.reuters.com/tech/eu-ai-act-timeline?utm_source=feed")
        b = make_reference(url="http://reuters.com/tech/eu-ai-act-timeline/")
        assert a.identity_key == b.identity_key

    def test_identity_key_falls_back_to_title(self):
        """URL-less rows are keyed by title."""
        assert make_reference(url="").identity_key.startswith("title:")

    def test_published_at_alias(self):
        """publishedAt populates published_at."""
        assert make_reference(publishedAt="2026-10-19").published_at == "2026-10-19"


class TestGenerationRequest:
    """Tests for GenerationRequest helpers."""

    def test_reference_urls_exclude_synthetic(self):
        """Only real references contribute citable URLs."""
        request = GenerationRequest(
            mode=GenerationMode.DRAFT,
            topic_seed="AI",
            reference_set=[make_reference(), make_reference(url="", synthetic=True)],
        )
        assert request.reference_urls == {"https://reuters.com/tech/eu-ai-act-timeline"}
        assert not request.fully_synthetic

    def test_fully_synthetic(self):
        """A set of placeholders is fully synthetic."""
        request = GenerationRequest(
            mode=GenerationMode.NEWS,
            topic_seed="AI",
            reference_set=[make_reference(url="", synthetic=True)],
        )
        assert request.fully_synthetic

    def test_constraints_per_mode(self, settings):
        """Each mode has its own limits."""
        draft = GenerationConstraints.for_mode(GenerationMode.DRAFT, settings)
        longform = GenerationConstraints.for_mode(GenerationMode.LONGFORM, settings)
        news = GenerationConstraints.for_mode(GenerationMode.NEWS, settings)
        assert (draft.content_max_chars, draft.media_slots_min, draft.media_slots_max) == (1200, 1, 3)
        assert (longform.content_max_chars, longform.min_sentences) == (None, 15)
        assert (longform.media_slots_min, longform.media_slots_max) == (3, 5)
        assert news.title_max_chars == 80
        assert news.media_slots_max == 0


class TestCandidates:
    """Tests for candidate coercion."""

    def test_citation_shapes(self):
        """Citations may be an object, a list or a bare URL."""
        as_object = NewsItemCandidate.model_validate(
            {"title": "T", "content": "C", "sourceCitation": {"url": " https://a.example/x "}}
        )
        as_string = NewsItemCandidate.model_validate(
            {"title": "T", "content": "C", "sourceCitation": "https://a.example/x"}
        )
        assert as_object.citations == as_string.citations == [Citation(url="https://a.example/x")]

    def test_missing_title_is_invalid(self):
        """title is a required key."""
        with pytest.raises(ValidationError):
            NewsItemCandidate.model_validate({"content": "C"})


class TestMisc:
    """Tests for small enums and errors."""

    def test_severity_rank(self):
        """Severities are ordered."""
        assert Severity.LOW.rank < Severity.MEDIUM.rank < Severity.HIGH.rank

    def test_request_states(self):
        """Terminal states exist."""
        assert {RequestState.ACCEPTED.value, RequestState.REJECTED.value} == {"accepted", "rejected"}

    def test_rejection_payload(self):
        """Rejections carry code, stage and issues."""
        error = SchemaViolation(
            "AI_DRAFT_SCHEMA_INVALID",
            issues=[Issue(field="content", rule="max_length", message="too long")],
        )
        assert error.retryable is True
        assert error.to_dict()["issues"][0]["field"] == "content"
        assert error.to_dict()["stage"] == "schema"
