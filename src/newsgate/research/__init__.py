"""Research module for acquiring grounding reference articles."""

from .cache import TTLCache
from .feeds import GoogleNewsFeed, ReferenceFeed, parse_feed_payload
from .reference_acquisitor import ReferenceAcquisitor

__all__ = [
    "GoogleNewsFeed",
    "ReferenceAcquisitor",
    "ReferenceFeed",
    "TTLCache",
    "parse_feed_payload",
]
