"""
Generative backends.

The orchestrator treats a backend as an opaque async callable that takes a
prompt, a model name and a timeout and returns raw text or raises. Retries
and model fallback live in the orchestrator, so backends never retry.
"""

import logging
from typing import Any, Optional, Protocol

from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from ..config import constants

logger = logging.getLogger(__name__)


class GenerativeBackend(Protocol):
    async def call(self, prompt: str, model: str, timeout_s: float) -> str:
        """Return the raw model text for a prompt, raising on failure."""
        ...


class GeminiBackend:
    """
    Gemini chat models through LangChain.

    ``ainvoke`` is awaited directly, so cancelling the calling task (for
    example on an orchestrator timeout) cancels the in-flight request.
    """

    def __init__(
        self,
        api_key: str,
        temperature: float = constants.LLM_TEMPERATURE,
    ) -> None:
        if not api_key:
            raise ValueError(
                "Gemini API key is not configured (set GOOGLE_API_KEY or GEMINI_API_KEY)"
            )
        self._api_key = api_key
        self.temperature = temperature
        self._models: dict[tuple[str, float], ChatGoogleGenerativeAI] = {}

    def _get_llm(self, model: str, timeout_s: float) -> ChatGoogleGenerativeAI:
        key = (model, timeout_s)
        llm = self._models.get(key)
        if llm is None:
            llm = ChatGoogleGenerativeAI(
                model=model,
                google_api_key=self._api_key,
                temperature=self.temperature,
                timeout=timeout_s,
                max_retries=0,  # Retries are owned by the orchestrator
            )
            self._models[key] = llm
        return llm

    async def call(self, prompt: str, model: str, timeout_s: float) -> str:
        llm = self._get_llm(model, timeout_s)
        response = await llm.ainvoke([HumanMessage(content=prompt)])
        return content_to_text(getattr(response, "content", response))


def content_to_text(content: Any) -> str:
    """Flatten LangChain message content (string or list of parts) into text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content)


def build_default_backend(settings) -> Optional[GeminiBackend]:
    """Gemini backend from settings, or None when no API key is configured."""
    if not settings.api_key:
        logger.warning("No Gemini API key configured; generation is unavailable")
        return None
    return GeminiBackend(api_key=settings.api_key, temperature=settings.llm_temperature)
