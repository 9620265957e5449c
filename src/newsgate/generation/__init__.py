"""Generation module - backends, orchestrator and prompt builders."""

from .backend import GeminiBackend, GenerativeBackend, build_default_backend
from .orchestrator import GenerationOrchestrator, GenerationResult, classify_backend_error
from .prompts import (
    amend_for_similarity,
    build_draft_prompt,
    build_news_prompt,
    build_repair_prompt,
)

__all__ = [
    "GeminiBackend",
    "GenerativeBackend",
    "build_default_backend",
    "GenerationOrchestrator",
    "GenerationResult",
    "classify_backend_error",
    "amend_for_similarity",
    "build_draft_prompt",
    "build_news_prompt",
    "build_repair_prompt",
]
