"""
Reference feeds for grounding material.

Fetches raw search payloads from an external aggregation feed (Google News
RSS by default) and parses RSS/Atom XML or JSON payloads into
ReferenceArticle rows.
"""

import json
import logging
import re
from typing import Any, Optional, Protocol
from urllib.parse import urlparse

import feedparser
import httpx
from bs4 import BeautifulSoup

from ..state import ReferenceArticle
from ..utils.text import normalize_whitespace

logger = logging.getLogger(__name__)


class ReferenceFeed(Protocol):
    """External reference feed consumed by the acquisitor."""

    async def search(self, query: str, timeout_s: float) -> str:
        """Return the raw payload of a keyword search."""
        ...

    async def top_stories(self, timeout_s: float) -> str:
        """Return the raw payload of the generic top-stories listing."""
        ...


class GoogleNewsFeed:
    """Google News RSS search and top-stories feed over httpx."""

    SEARCH_URL = "https://news.google.com/rss/search"
    TOP_STORIES_URL = "https://news.google.com/rss"
    USER_AGENT = "Mozilla/5.0 (compatible; newsgate/0.1; +https://news.google.com)"

    def __init__(
        self,
        language: str = "en-US",
        country: str = "US",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the feed.

        Args:
            language: Feed language, e.g. "en-US" or "ko"
            country: Feed edition country code, e.g. "US" or "KR"
            client: Optional shared AsyncClient (a short-lived one is used otherwise)
        """
        self.language = language
        self.country = country
        self._client = client

    def _locale_params(self) -> dict[str, str]:
        base_language = self.language.split("-")[0]
        return {
            "hl": self.language,
            "gl": self.country,
            "ceid": f"{self.country}:{base_language}",
        }

    async def search(self, query: str, timeout_s: float) -> str:
        params = {"q": query, **self._locale_params()}
        return await self._get(self.SEARCH_URL, params, timeout_s)

    async def top_stories(self, timeout_s: float) -> str:
        return await self._get(self.TOP_STORIES_URL, self._locale_params(), timeout_s)

    async def _get(self, url: str, params: dict[str, str], timeout_s: float) -> str:
        headers = {"User-Agent": self.USER_AGENT}
        if self._client is not None:
            response = await self._client.get(
                url, params=params, headers=headers, timeout=timeout_s
            )
        else:
            async with httpx.AsyncClient(timeout=timeout_s, follow_redirects=True) as client:
                response = await client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.text


# =============================================================================
# Payload Parsing
# =============================================================================


def parse_feed_payload(payload: str) -> list[ReferenceArticle]:
    """
    Parse a raw feed payload into reference articles.

    JSON payloads may be a list of items or an object holding one under
    "items", "articles" or "results". Anything else is handed to feedparser.

    Raises:
        ValueError: If the payload is neither parseable JSON nor a feed
    """
    text = (payload or "").strip()
    if not text:
        return []

    if text.startswith(("{", "[")):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON feed payload: {e}") from e
        return _parse_json_items(data)

    feed = feedparser.parse(text)
    if feed.bozo and not feed.entries:
        raise ValueError(f"Unparseable feed payload: {feed.get('bozo_exception')}")

    articles = []
    for entry in feed.entries:
        source_info = entry.get("source") or {}
        link = entry.get("link", "")
        source = normalize_whitespace(source_info.get("title", "")) or _domain(link)
        title = _strip_source_suffix(normalize_whitespace(entry.get("title", "")), source)
        if not title:
            continue
        summary = _strip_html(entry.get("summary", ""))
        articles.append(
            ReferenceArticle(
                title=title,
                summary=_strip_source_suffix(summary, source),
                url=link,
                source=source,
                published_at=entry.get("published"),
            )
        )
    return articles


def _parse_json_items(data: Any) -> list[ReferenceArticle]:
    if isinstance(data, dict):
        for key in ("items", "articles", "results"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
        else:
            return []
    if not isinstance(data, list):
        return []

    articles = []
    for item in data:
        if not isinstance(item, dict):
            continue
        title = normalize_whitespace(str(item.get("title") or ""))
        if not title:
            continue
        url = str(item.get("url") or item.get("link") or item.get("href") or "")
        source = item.get("source") or ""
        if isinstance(source, dict):
            source = source.get("name") or source.get("title") or ""
        summary = item.get("summary") or item.get("description") or item.get("snippet") or ""
        articles.append(
            ReferenceArticle(
                title=title,
                summary=_strip_html(str(summary)),
                url=url,
                source=normalize_whitespace(str(source)) or _domain(url),
                published_at=item.get("publishedAt") or item.get("published_at") or item.get("pubDate"),
            )
        )
    return articles


def _strip_html(html: str) -> str:
    if not html:
        return ""
    if "<" not in html:
        return normalize_whitespace(html)
    return normalize_whitespace(BeautifulSoup(html, "html.parser").get_text(" ", strip=True))


def _strip_source_suffix(text: str, source: str) -> str:
    """Remove a trailing " - Publisher" suffix as Google News appends it."""
    if not text or not source:
        return text
    pattern = re.compile(rf"\s*[-|–]\s*{re.escape(source)}\s*$", re.IGNORECASE)
    return pattern.sub("", text).strip() or text


def _domain(url: str) -> str:
    host = urlparse(url or "").netloc.lower()
    return host[4:] if host.startswith("www.") else host
