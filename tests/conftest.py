"""Shared fixtures and fake collaborators for the newsgate test suite."""

import json
from typing import Any, Optional

import pytest

from newsgate.config.settings import Settings
from newsgate.research import ReferenceAcquisitor, TTLCache
from newsgate.state import ReferenceArticle
from newsgate.utils.retry import RetryPolicy


# =============================================================================
# Fake collaborators
# =============================================================================


class FakeBackend:
    """Scripted generative backend; each call consumes the next response or raises it."""

    def __init__(self, responses: list[Any]):
        self.responses = list(responses)
        self.calls: list[tuple[str, str, float]] = []

    async def call(self, prompt: str, model: str, timeout_s: float) -> str:
        self.calls.append((prompt, model, timeout_s))
        if not self.responses:
            raise RuntimeError("FakeBackend ran out of scripted responses")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def models_called(self) -> list[str]:
        return [model for _, model, _ in self.calls]


class FakeFeed:
    """Reference feed returning canned payloads per query (or one default payload)."""

    def __init__(
        self,
        payloads: Optional[dict[str, Any]] = None,
        default: Any = "[]",
        top_stories: Any = "[]",
    ):
        self.payloads = payloads or {}
        self.default = default
        self.top = top_stories
        self.search_calls: list[str] = []
        self.top_story_calls = 0

    async def search(self, query: str, timeout_s: float) -> str:
        self.search_calls.append(query)
        return self._resolve(self.payloads.get(query, self.default))

    async def top_stories(self, timeout_s: float) -> str:
        self.top_story_calls += 1
        return self._resolve(self.top)

    @staticmethod
    def _resolve(value: Any) -> str:
        if isinstance(value, BaseException):
            raise value
        return value


class SleepRecorder:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# =============================================================================
# Builders
# =============================================================================


EU_REFERENCE = {
    "title": "EU finalizes AI Act enforcement timeline",
    "summary": (
        "The European Union set out when obligations under the AI Act begin "
        "to apply to providers of general-purpose models."
    ),
    "url": "https://www.reuters.com/tech/eu-ai-act-timeline?utm_source=feed",
    "source": "Reuters",
}

CHIP_REFERENCE = {
    "title": "Chipmakers brace for new AI export rules",
    "summary": (
        "Semiconductor firms expect tighter licensing requirements for "
        "advanced processors shipped abroad."
    ),
    "url": "https://apnews.com/article/chip-export-rules",
    "source": "AP",
}


def make_reference(**overrides) -> ReferenceArticle:
    data = {**EU_REFERENCE, **overrides}
    return ReferenceArticle(**data)


def feed_payload(*articles: dict) -> str:
    return json.dumps(list(articles))


def draft_json(
    title: str = "Brussels sets dates for enforcing its AI rulebook",
    content: Optional[str] = None,
    url: str = "https://reuters.com/tech/eu-ai-act-timeline",
    media_slots: int = 1,
    sections: Optional[dict] = None,
) -> str:
    """A draft candidate that passes every gate stage against EU_REFERENCE."""
    if content is None:
        content = (
            "Brussels has published the dates on which its artificial intelligence "
            "rulebook becomes binding. Makers of general models face duties first, "
            "while other systems follow later."
        )
    if sections is None:
        sections = {
            "core": "Brussels has published binding dates for its rulebook.",
            "deepDive": "Makers of general models face duties first.",
            "conclusion": "Other systems follow later.",
        }
    return json.dumps(
        {
            "title": title,
            "content": content,
            "sections": sections,
            "mediaSlots": [
                {"id": f"m{i}", "type": "image", "anchorLabel": "core", "position": "after"}
                for i in range(1, media_slots + 1)
            ],
            "sourceCitation": {"title": "EU timeline", "url": url, "source": "Reuters"},
        },
        ensure_ascii=False,
    )


def news_json(items: Optional[list[dict]] = None) -> str:
    """A news batch that passes every gate stage against EU_REFERENCE and CHIP_REFERENCE."""
    if items is None:
        items = [
            {
                "title": "Brussels sets dates for enforcing its AI rulebook",
                "summary": "Deadlines for AI duties are now public.",
                "content": (
                    "Brussels has published the dates on which its artificial intelligence "
                    "rulebook becomes binding. Makers of general models face duties first."
                ),
                "source": "Reuters",
                "emotion": "clarity",
                "sourceCitation": {"url": EU_REFERENCE["url"]},
            },
            {
                "title": "Processor vendors prepare for stricter licensing",
                "summary": "Licences for advanced chips may get harder to obtain.",
                "content": (
                    "Companies selling advanced chips overseas are preparing for stricter "
                    "licensing rules. Analysts expect extra paperwork for shipments."
                ),
                "source": "AP",
                "emotion": "clarity",
                "sourceCitation": {"url": CHIP_REFERENCE["url"]},
            },
        ]
    return json.dumps({"items": items}, ensure_ascii=False)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment and .env files."""
    return Settings(
        _env_file=None,
        google_api_key="",
        gemini_api_key="",
        ops_dir=tmp_path / "ops",
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fast_retry(sleep_recorder) -> RetryPolicy:
    """Two-attempt reference retry policy that never really sleeps."""
    return RetryPolicy(max_attempts=2, sleep=sleep_recorder, name="test fetch")


@pytest.fixture
def make_acquisitor(settings, fast_retry):
    """Factory for acquisitors over a given feed."""

    def _make(feed, cache: Optional[TTLCache] = None) -> ReferenceAcquisitor:
        return ReferenceAcquisitor(feed, settings=settings, cache=cache, retry_policy=fast_retry)

    return _make
