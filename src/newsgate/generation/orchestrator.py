"""
Generation orchestrator - one model call with retries and model fallback.

Model chain: primary model (2 attempts) followed by each fallback model
(1 attempt). Each attempt races the backend call against a timeout that
cancels the in-flight call. Only transient failures (timeout, overload,
rate limit, unavailability) are retried on the same model, waiting for the
backend's Retry-After hint when it is longer than the backoff (capped at
RETRY_AFTER_CAP_S); anything else moves straight to the next model. The
orchestrator never fabricates text: an exhausted chain returns ``text=None``
with the last reason code.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Optional

from ..config import constants
from ..config.settings import Settings, get_settings
from ..errors import (
    MODEL_EMPTY,
    MODEL_ERROR,
    MODEL_OVERLOADED,
    MODEL_TIMEOUT,
    ModelCallError,
    TransientBackendFailure,
)
from ..utils.retry import RetryPolicy, linear_backoff
from .backend import GenerativeBackend

logger = logging.getLogger(__name__)

_TIMEOUT_RE = re.compile(r"timeout|timed out|deadline|etimedout", re.IGNORECASE)
_TRANSIENT_RE = re.compile(
    r"timeout|timed out|deadline|unavailable|high demand|overload|rate.?limit|quota|"
    r"resource.?exhausted|too many requests|econnreset|etimedout|socket hang up",
    re.IGNORECASE,
)


@dataclass
class GenerationResult:
    """Outcome of one orchestrated generation."""

    text: Optional[str]
    model_used: Optional[str]
    latency_ms: int
    reason_code: Optional[str] = None
    retries: int = 0
    fallback_used: bool = False

    @property
    def ok(self) -> bool:
        return self.text is not None


# =============================================================================
# Error Classification
# =============================================================================


def parse_retry_after(value: Any) -> Optional[float]:
    """Parse a Retry-After value given in seconds or as an HTTP date."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return max(0.0, float(value))
    text = str(value).strip()
    if not text:
        return None
    try:
        return max(0.0, float(text))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def extract_status(error: BaseException) -> Optional[int]:
    """HTTP-like status code from common client exception shapes."""
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def _extract_retry_after(error: BaseException) -> Optional[float]:
    for attr in ("retry_after", "retry_after_s", "retry_after_seconds"):
        parsed = parse_retry_after(getattr(error, attr, None))
        if parsed is not None:
            return parsed
    headers = getattr(getattr(error, "response", None), "headers", None) or {}
    try:
        return parse_retry_after(headers.get("retry-after"))
    except AttributeError:
        return None


def classify_backend_error(error: BaseException) -> ModelCallError:
    """Map an arbitrary backend exception onto the orchestrator's failure classes."""
    if isinstance(error, ModelCallError):
        return error
    message = str(error) or error.__class__.__name__
    if isinstance(error, asyncio.TimeoutError):
        return TransientBackendFailure(message, MODEL_TIMEOUT)

    status = extract_status(error)
    retry_after = _extract_retry_after(error)
    if status in constants.RETRYABLE_STATUS_CODES or _TRANSIENT_RE.search(message):
        code = MODEL_TIMEOUT if (status == 408 or _TIMEOUT_RE.search(message)) else MODEL_OVERLOADED
        return TransientBackendFailure(message, code, retry_after_s=retry_after)
    return ModelCallError(message, MODEL_ERROR, retry_after_s=retry_after)


def _is_retryable(error: BaseException) -> bool:
    return bool(getattr(error, "retryable", False))


# =============================================================================
# Orchestrator
# =============================================================================


class GenerationOrchestrator:
    """Calls the generative backend across an ordered model chain."""

    def __init__(
        self,
        backend: GenerativeBackend,
        models: Optional[list[str]] = None,
        settings: Optional[Settings] = None,
        primary_attempts: int = constants.PRIMARY_MODEL_ATTEMPTS,
        fallback_attempts: int = constants.FALLBACK_MODEL_ATTEMPTS,
        backoff: Optional[Callable[[int], float]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            backend: Generative backend
            models: Ordered model chain (default: primary + fallbacks from settings)
            settings: Application settings (defaults to get_settings())
            primary_attempts: Attempts on the primary model
            fallback_attempts: Attempts on each fallback model
            backoff: Delay schedule between same-model attempts
            sleep: Awaitable sleep, injectable for tests
        """
        self.settings = settings or get_settings()
        self.backend = backend
        self.models = [m for m in (models or self.settings.model_chain) if m]
        if not self.models:
            raise ValueError("At least one model is required")
        backoff = backoff or linear_backoff(
            constants.MODEL_BACKOFF_BASE_S, constants.MODEL_BACKOFF_STEP_S
        )
        self._primary_policy = RetryPolicy(
            max_attempts=primary_attempts,
            backoff=backoff,
            is_retryable=_is_retryable,
            max_retry_after_s=constants.RETRY_AFTER_CAP_S,
            sleep=sleep,
            name="primary model",
        )
        self._fallback_policy = RetryPolicy(
            max_attempts=fallback_attempts,
            backoff=backoff,
            is_retryable=_is_retryable,
            max_retry_after_s=constants.RETRY_AFTER_CAP_S,
            sleep=sleep,
            name="fallback model",
        )

    async def generate(self, prompt: str, timeout_s: Optional[float] = None) -> GenerationResult:
        """
        Generate raw text for a prompt.

        Args:
            prompt: Full prompt text
            timeout_s: Per-attempt timeout (default from settings)

        Returns:
            GenerationResult; ``text`` is None when the whole chain failed
        """
        timeout_s = timeout_s or self.settings.model_timeout_s
        started = time.perf_counter()
        retries = 0
        last_reason: Optional[str] = None

        def _count_retry(attempt: int, error: BaseException) -> None:
            nonlocal retries
            retries += 1

        for index, model in enumerate(self.models):
            policy = self._primary_policy if index == 0 else self._fallback_policy
            try:
                text = await policy.run(
                    lambda _attempt, m=model: self._attempt(m, prompt, timeout_s),
                    on_retry=_count_retry,
                )
            except ModelCallError as e:
                last_reason = e.reason_code
                logger.warning(f"Model {model} failed ({e.reason_code}): {e}")
                continue

            latency_ms = int((time.perf_counter() - started) * 1000)
            if index > 0:
                logger.info(f"Recovered with fallback model {model}")
            return GenerationResult(
                text=text,
                model_used=model,
                latency_ms=latency_ms,
                retries=retries,
                fallback_used=index > 0,
            )

        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.error(f"Model chain exhausted after {latency_ms}ms (last reason: {last_reason})")
        return GenerationResult(
            text=None,
            model_used=self.models[-1],
            latency_ms=latency_ms,
            reason_code=last_reason,
            retries=retries,
            fallback_used=len(self.models) > 1,
        )

    async def _attempt(self, model: str, prompt: str, timeout_s: float) -> str:
        try:
            text = await asyncio.wait_for(
                self.backend.call(prompt, model, timeout_s), timeout=timeout_s
            )
        except asyncio.TimeoutError as e:
            raise TransientBackendFailure(
                f"{model} timed out after {timeout_s}s", MODEL_TIMEOUT
            ) from e
        except ModelCallError:
            raise
        except Exception as e:
            raise classify_backend_error(e) from e

        if not text or not text.strip():
            raise ModelCallError(f"{model} returned empty output", MODEL_EMPTY)
        return text
