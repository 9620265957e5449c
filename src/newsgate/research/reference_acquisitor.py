"""
Reference acquisitor - real, attributable grounding articles for a keyword.

Lookup order for one keyword:
    fresh cache → query variants (raw phrase, phrase + "news", first two
    significant tokens, first token) → top stories → stale cache →
    synthetic placeholder rows

Only results from the query variants are cached. Network, timeout and
payload errors are handled per variant; callers only observe
``used_fallback`` and ``reason_code`` on the result.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from ..config import constants
from ..config.settings import Settings, get_settings
from ..state import ReferenceArticle, ReferenceFetchResult
from ..utils.retry import RetryPolicy, linear_backoff
from ..utils.text import normalize_keyword, normalize_whitespace, significant_tokens
from .cache import TTLCache
from .feeds import ReferenceFeed, parse_feed_payload

logger = logging.getLogger(__name__)

REFERENCE_TOP_STORIES = "REFERENCE_TOP_STORIES"
REFERENCE_STALE_CACHE = "REFERENCE_STALE_CACHE"
REFERENCE_SYNTHETIC = "REFERENCE_SYNTHETIC"

SYNTHETIC_SOURCE = "newsgate-fallback"
_SYNTHETIC_ANGLES = (
    ("Latest developments on {keyword}", "No live reference could be fetched for {keyword}."),
    ("Background on {keyword}", "Placeholder context row for {keyword}; not a citable source."),
    ("What to watch on {keyword}", "Placeholder follow-up row for {keyword}; not a citable source."),
)


def is_transient_fetch_error(error: BaseException) -> bool:
    """Timeouts, transport errors and 429/5xx responses are worth a second attempt."""
    if isinstance(error, (asyncio.TimeoutError, httpx.TransportError)):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500
    return False


class ReferenceAcquisitor:
    """Fetches grounding references through a feed, with a TTL cache."""

    def __init__(
        self,
        feed: ReferenceFeed,
        settings: Optional[Settings] = None,
        cache: Optional[TTLCache[str, list[ReferenceArticle]]] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        """
        Initialize the acquisitor.

        Args:
            feed: External reference feed
            settings: Application settings (defaults to get_settings())
            cache: Keyword cache (a fresh one with the configured TTL otherwise)
            retry_policy: Per-variant retry policy (2 attempts by default)
        """
        self.settings = settings or get_settings()
        self.feed = feed
        self.cache = (
            cache if cache is not None else TTLCache(ttl_s=self.settings.reference_cache_ttl_s)
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=constants.REFERENCE_ATTEMPTS,
            backoff=linear_backoff(constants.REFERENCE_BACKOFF_S),
            is_retryable=is_transient_fetch_error,
            name="reference fetch",
        )
        low, high = constants.REFERENCE_FETCH_CONCURRENCY_BOUNDS
        self.max_concurrency = max(low, min(high, self.settings.reference_fetch_concurrency))

    @staticmethod
    def build_query_variants(keyword: str) -> list[str]:
        """
        Ordered, deduplicated query variants for a keyword.

        Example:
            >>> ReferenceAcquisitor.build_query_variants("AI regulation in Europe")
            ['AI regulation in Europe', 'AI regulation in Europe news', 'ai regulation', 'ai']
        """
        phrase = normalize_whitespace(keyword)
        if not phrase:
            return []
        tokens = significant_tokens(phrase)
        candidates = [phrase, f"{phrase} {constants.REFERENCE_QUERY_SUFFIX}"]
        if len(tokens) >= 2:
            candidates.append(" ".join(tokens[:2]))
        if tokens:
            candidates.append(tokens[0])

        variants: list[str] = []
        seen: set[str] = set()
        for candidate in candidates:
            key = candidate.casefold()
            if key not in seen:
                seen.add(key)
                variants.append(candidate)
        return variants

    async def fetch_references(
        self,
        keyword: str,
        limit: Optional[int] = None,
        timeout_s: Optional[float] = None,
    ) -> ReferenceFetchResult:
        """
        Return up to ``limit`` reference articles for a keyword.

        Args:
            keyword: Topic keyword or phrase
            limit: Maximum articles returned (default from settings)
            timeout_s: Per-attempt feed timeout (default from settings)

        Returns:
            ReferenceFetchResult; ``used_fallback`` is True for every path
            other than a cache hit or a successful variant search
        """
        limit = limit or self.settings.reference_limit
        timeout_s = timeout_s or self.settings.reference_timeout_s
        cache_key = normalize_keyword(keyword)

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Reference cache hit for '{keyword}' ({len(cached)} articles)")
            return ReferenceFetchResult(query=keyword, articles=cached[:limit])

        tokens = significant_tokens(keyword)

        for variant in self.build_query_variants(keyword):
            try:
                payload = await self._fetch_with_retry(
                    lambda _attempt, q=variant: self.feed.search(q, timeout_s), timeout_s
                )
                articles = self._select(parse_feed_payload(payload), tokens, limit)
            except Exception as e:
                logger.warning(f"Reference search failed for variant '{variant}': {e}")
                continue
            if articles:
                logger.info(f"Found {len(articles)} references for '{keyword}' via '{variant}'")
                self.cache.set(cache_key, articles)
                return ReferenceFetchResult(query=variant, articles=articles)
            logger.debug(f"No matching references for variant '{variant}'")

        try:
            payload = await self._fetch_with_retry(
                lambda _attempt: self.feed.top_stories(timeout_s), timeout_s
            )
            articles = self._select(parse_feed_payload(payload), tokens, limit)
        except Exception as e:
            logger.warning(f"Top stories fallback failed for '{keyword}': {e}")
            articles = []
        if articles:
            logger.info(f"Using {len(articles)} top-story references for '{keyword}'")
            return ReferenceFetchResult(
                query="top-stories",
                articles=articles,
                used_fallback=True,
                reason_code=REFERENCE_TOP_STORIES,
            )

        stale = self.cache.get(cache_key, allow_stale=True)
        if stale:
            logger.info(f"Using stale cached references for '{keyword}'")
            return ReferenceFetchResult(
                query=keyword,
                articles=stale[:limit],
                used_fallback=True,
                reason_code=REFERENCE_STALE_CACHE,
            )

        logger.warning(f"All reference sources failed for '{keyword}', synthesizing placeholders")
        return ReferenceFetchResult(
            query=keyword,
            articles=self.synthesize_placeholders(keyword, limit),
            used_fallback=True,
            reason_code=REFERENCE_SYNTHETIC,
        )

    async def fetch_many(
        self,
        keywords: list[str],
        limit: Optional[int] = None,
        timeout_s: Optional[float] = None,
    ) -> list[ReferenceFetchResult]:
        """Fetch several keywords concurrently with bounded fan-out, in input order."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(keyword: str) -> ReferenceFetchResult:
            async with semaphore:
                return await self.fetch_references(keyword, limit=limit, timeout_s=timeout_s)

        return list(await asyncio.gather(*(_bounded(k) for k in keywords)))

    @staticmethod
    def synthesize_placeholders(keyword: str, limit: int) -> list[ReferenceArticle]:
        """Placeholder rows; synthetic, URL-less and never citable."""
        phrase = normalize_whitespace(keyword) or "general news"
        rows = []
        for title, summary in _SYNTHETIC_ANGLES[: max(1, limit)]:
            rows.append(
                ReferenceArticle(
                    title=title.format(keyword=phrase),
                    summary=summary.format(keyword=phrase),
                    url="",
                    source=SYNTHETIC_SOURCE,
                    synthetic=True,
                )
            )
        return rows

    async def _fetch_with_retry(
        self,
        fetch: Callable[[int], Awaitable[str]],
        timeout_s: float,
    ) -> str:
        async def _attempt(attempt: int) -> str:
            return await asyncio.wait_for(fetch(attempt), timeout=timeout_s)

        return await self.retry_policy.run(_attempt)

    @staticmethod
    def _select(
        articles: list[ReferenceArticle],
        tokens: list[str],
        limit: int,
    ) -> list[ReferenceArticle]:
        """Keep keyword-matching articles (all when there are no tokens), deduplicated."""
        selected: list[ReferenceArticle] = []
        seen: set[str] = set()
        for article in articles:
            if tokens:
                haystack = f"{article.title} {article.summary}".lower()
                if not any(token in haystack for token in tokens):
                    continue
            key = article.identity_key
            if key in seen:
                continue
            seen.add(key)
            selected.append(article)
            if len(selected) >= limit:
                break
        return selected
