"""
Output parser for raw generative-model text.

Model output is treated as untrusted text. Candidates are tried in order:

1. The whole text
2. The first fenced code block
3. The first balanced ``{...}`` object
4. The first balanced ``[...]`` array

Each candidate that fails ``json.loads`` is retried once after a light
repair (BOM and zero-width characters removed, smart quotes normalized,
trailing commas dropped). Returning None is not an error; the caller decides
whether to ask a model to repair the output.
"""

import json
import logging
import re
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from ..state import NewsBatchCandidate

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:[A-Za-z0-9_-]+)?\s*\n?(.*?)```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_INVISIBLE_CHARS = dict.fromkeys(map(ord, "\ufeff\u200b\u200c\u200d\u2060"), None)
_SMART_QUOTES = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "«": '"',
        "»": '"',
        "‘": "'",
        "’": "'",
    }
)

_DRAFT_ENVELOPES = ("article", "draft", "result", "data")
_BATCH_ENVELOPES = ("items", "articles", "news", "results")


def light_repair(text: str) -> str:
    """Fix the common cosmetic JSON defects of model output."""
    repaired = text.translate(_INVISIBLE_CHARS).translate(_SMART_QUOTES)
    return _TRAILING_COMMA_RE.sub(r"\1", repaired).strip()


def extract_balanced(text: str, opener: str, closer: str) -> Optional[str]:
    """
    Substring from the first ``opener`` to its matching ``closer``.

    String literals and escapes are honoured so brackets inside JSON strings
    do not count. Falls back to the last ``closer`` when the text is
    unbalanced (for example truncated output with a stray character).
    """
    start = text.find(opener)
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    end = text.rfind(closer)
    return text[start : end + 1] if end > start else None


def _candidates(text: str) -> list[str]:
    candidates = [text]
    fence = _FENCE_RE.search(text)
    if fence:
        candidates.append(fence.group(1))
    for opener, closer in (("{", "}"), ("[", "]")):
        block = extract_balanced(text, opener, closer)
        if block:
            candidates.append(block)

    unique: list[str] = []
    for candidate in candidates:
        candidate = candidate.strip()
        if candidate and candidate not in unique:
            unique.append(candidate)
    return unique


def _loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def parse_model_output(raw_text: Optional[str]) -> Optional[Any]:
    """
    Parse raw model text into a JSON value.

    Args:
        raw_text: Untrusted model output

    Returns:
        The first candidate that parses into an object or array, else None
    """
    if not raw_text or not raw_text.strip():
        return None

    for candidate in _candidates(raw_text):
        for attempt in (candidate, light_repair(candidate)):
            data = _loads(attempt)
            if isinstance(data, (dict, list)):
                return data
    logger.debug("No JSON candidate could be parsed from model output")
    return None


# =============================================================================
# Schema Coercion
# =============================================================================


def _unwrap_single(data: Any) -> Any:
    """Unwrap one-element lists and known envelopes around a single object."""
    if isinstance(data, list):
        return data[0] if len(data) == 1 else data
    if isinstance(data, dict) and "title" not in data:
        for key in _DRAFT_ENVELOPES + _BATCH_ENVELOPES:
            value = data.get(key)
            if isinstance(value, dict):
                return value
            if isinstance(value, list) and len(value) == 1:
                return value[0]
    return data


def _wrap_batch(data: Any) -> Any:
    """Normalize a batch payload into ``{"items": [...]}``."""
    if isinstance(data, list):
        return {"items": data}
    if isinstance(data, dict):
        if isinstance(data.get("items"), list):
            return data
        for key in _BATCH_ENVELOPES[1:]:
            if isinstance(data.get(key), list):
                return {"items": data[key]}
        if "title" in data:
            return {"items": [data]}
    return data


def coerce_to_schema(data: Any, schema: type[S]) -> Optional[S]:
    """Validate parsed data against exactly one candidate schema, None on mismatch."""
    if data is None:
        return None
    payload = _wrap_batch(data) if schema is NewsBatchCandidate else _unwrap_single(data)
    if not isinstance(payload, dict):
        return None
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        logger.debug(f"Parsed output does not match {schema.__name__}: {e.error_count()} errors")
        return None


def parse_candidate(raw_text: Optional[str], schema: type[S]) -> Optional[S]:
    """
    Parse raw model text straight into a candidate schema.

    Example:
        >>> parse_candidate('```json\\n{"title": "T", "content": "C",}\\n```', DraftArtifact)
        DraftArtifact(title='T', content='C', ...)
    """
    return coerce_to_schema(parse_model_output(raw_text), schema)
