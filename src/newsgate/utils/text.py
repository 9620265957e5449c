"""
Text helpers shared by the acquisitor, the similarity gate and the grounding check.

Tokenization is deliberately simple: lowercase, punctuation stripped, tokens
shorter than two characters dropped. ``\\w`` keeps Hangul and other scripts.
"""

import re
from urllib.parse import urlsplit, urlunsplit

_TOKEN_RE = re.compile(r"[^\w\s]|_", re.UNICODE)
_WHITESPACE_RE = re.compile(r"\s+")
_SENTENCE_SPLIT_RE = re.compile(r"[.?!。？！…]+|\n+")

STOPWORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "of", "to", "in", "on", "for", "with",
        "at", "by", "from", "as", "is", "are", "was", "were", "be", "it",
        "its", "this", "that", "these", "those", "has", "have", "had", "will",
        "would", "not", "but", "than", "their", "they", "after", "about", "into",
        "over", "under", "out", "when", "also", "been", "more", "news", "latest",
        "new",
    }
)


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def compact(text: str) -> str:
    """Case-folded text with all whitespace removed."""
    return _WHITESPACE_RE.sub("", text or "").casefold()


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens with punctuation stripped and length >= 2."""
    cleaned = _TOKEN_RE.sub(" ", (text or "").lower())
    return [token for token in cleaned.split() if len(token) >= 2]


def token_set(text: str) -> set[str]:
    return set(tokenize(text))


def jaccard(left: str | set[str], right: str | set[str]) -> float:
    """
    Jaccard similarity of two token sets (strings are tokenized first).

    Returns 0.0 when either side has no tokens.
    """
    a = left if isinstance(left, set) else token_set(left)
    b = right if isinstance(right, set) else token_set(right)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def significant_tokens(text: str) -> list[str]:
    """Ordered, deduplicated tokens without stopwords."""
    seen: list[str] = []
    for token in tokenize(text):
        if token in STOPWORDS or token in seen:
            continue
        seen.append(token)
    return seen


def normalize_title(title: str) -> str:
    """Title reduced to its tokens joined by single spaces."""
    return " ".join(tokenize(title))


def normalize_keyword(keyword: str) -> str:
    """Cache key form of a search keyword."""
    return normalize_whitespace(keyword).casefold()


def normalize_url(url: str) -> str:
    """
    Canonical form of an article URL used as its identity key.

    Scheme and host are lowercased, a leading ``www.`` is dropped, query and
    fragment are stripped (which also removes tracking parameters) and a
    trailing slash is removed. Returns "" for empty or non-http input.
    """
    raw = (url or "").strip()
    if not raw:
        return ""
    parts = urlsplit(raw if "://" in raw else f"https://{raw}")
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return ""
    host = parts.netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    path = parts.path.rstrip("/")
    return urlunsplit(("https", host, path, "", ""))


def split_sentences(text: str) -> list[str]:
    """Split on sentence-terminal punctuation and newlines."""
    return [piece.strip() for piece in _SENTENCE_SPLIT_RE.split(text or "") if piece.strip()]


def count_sentence_units(text: str) -> int:
    """Number of sentence units that carry at least one word token."""
    return sum(1 for sentence in split_sentences(text) if tokenize(sentence))


def split_paragraphs(text: str) -> list[str]:
    """Paragraphs separated by blank lines, falling back to single newlines."""
    raw = (text or "").strip()
    if not raw:
        return []
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", raw) if p.strip()]
    if len(paragraphs) == 1:
        paragraphs = [p.strip() for p in raw.splitlines() if p.strip()]
    return paragraphs
