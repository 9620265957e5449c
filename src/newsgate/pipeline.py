"""
Grounded generation pipeline - wires acquisitor, orchestrator, parser, gate,
compliance scanner and ops counters into the two public operations.

Request flow:
    start → fetching_references → generating → parsing → validating →
    accepted | retrying (similarity only) → generating → ... → rejected

Each attempt runs at most two orchestrator calls: the generation itself and
one "repair via model" pass when the output cannot be parsed. Only a
similarity block earns a second attempt; every other failure is terminal.
"""

import logging
from typing import Any, Optional, Union

from .compliance import ComplianceScanner
from .config import constants
from .config.settings import Settings, get_settings
from .errors import (
    COMPLIANCE_BLOCKED,
    MODEL_EMPTY,
    MODEL_UNAVAILABLE,
    PARSE_BLOCKED,
    REFERENCE_UNAVAILABLE,
    ComplianceBlock,
    GenerationRejected,
    GroundingViolation,
    ModelUnavailable,
    ParseFailure,
    ReferenceUnavailable,
    SchemaViolation,
    SimilarityViolation,
    reason_code,
)
from .generation import (
    GenerationOrchestrator,
    amend_for_similarity,
    build_default_backend,
    build_draft_prompt,
    build_news_prompt,
    build_repair_prompt,
)
from .ops import JsonFileOpsStore, MetricsRegistry
from .parsers import parse_candidate
from .research import GoogleNewsFeed, ReferenceAcquisitor
from .state import (
    CANDIDATE_SCHEMAS,
    Citation,
    ComplianceAssessment,
    DraftArtifact,
    EmotionCategory,
    GenerationAttempt,
    GenerationConstraints,
    GenerationMode,
    GenerationRequest,
    Issue,
    NewsBatch,
    NewsBatchCandidate,
    ReferenceArticle,
    RequestState,
    Severity,
    ValidatedArtifact,
)
from .utils.text import normalize_keyword, normalize_whitespace
from .validation import GateDecision, SimilarityThresholds, ValidationGate
from .validation.gate import STAGE_SCHEMA, STAGE_SIMILARITY

logger = logging.getLogger(__name__)

Scope = Union[GenerationMode, EmotionCategory]


class GroundedGenerationPipeline:
    """
    Reference-grounded generation of news batches and article drafts.

    Example:
        pipeline = GroundedGenerationPipeline.from_settings()
        batch = await pipeline.generate_news_items("clarity", ["AI regulation"])
        draft = await pipeline.generate_draft("draft", "AI regulation", reference)
    """

    def __init__(
        self,
        orchestrator: Optional[GenerationOrchestrator],
        acquisitor: ReferenceAcquisitor,
        gate: Optional[ValidationGate] = None,
        scanner: Optional[ComplianceScanner] = None,
        metrics: Optional[MetricsRegistry] = None,
        settings: Optional[Settings] = None,
        max_attempts: int = constants.MAX_GATE_ATTEMPTS,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            orchestrator: Generation orchestrator (None when no backend is configured)
            acquisitor: Reference acquisitor
            gate: Validation gate (thresholds from settings by default)
            scanner: Compliance scanner
            metrics: Ops counter registry (in-memory by default)
            settings: Application settings (defaults to get_settings())
            max_attempts: Gate attempts per request
        """
        self.settings = settings or get_settings()
        self.orchestrator = orchestrator
        self.acquisitor = acquisitor
        self.gate = gate or ValidationGate(SimilarityThresholds.from_settings(self.settings))
        self.scanner = scanner or ComplianceScanner()
        self.metrics = metrics or MetricsRegistry()
        self.max_attempts = max_attempts

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        metrics: Optional[MetricsRegistry] = None,
    ) -> "GroundedGenerationPipeline":
        """Pipeline with the default Gemini backend, Google News feed and file-backed counters."""
        settings = settings or get_settings()
        backend = build_default_backend(settings)
        orchestrator = GenerationOrchestrator(backend, settings=settings) if backend else None
        feed = GoogleNewsFeed(language=settings.feed_language, country=settings.feed_country)
        if metrics is None:
            metrics = MetricsRegistry.rehydrate(
                JsonFileOpsStore.from_settings(settings),
                debounce_s=settings.ops_flush_debounce_s,
            )
        return cls(
            orchestrator=orchestrator,
            acquisitor=ReferenceAcquisitor(feed, settings=settings),
            metrics=metrics,
            settings=settings,
        )

    def close(self) -> None:
        self.metrics.close()

    # =========================================================================
    # Public operations
    # =========================================================================

    async def generate_news_items(
        self,
        emotion: Union[str, EmotionCategory],
        keyword_seeds: Optional[list[str]] = None,
        count: int = constants.NEWS_ITEMS_PER_BATCH,
    ) -> NewsBatch:
        """
        Generate a batch of grounded news items for an emotion category.

        Args:
            emotion: Emotion category or one of its aliases
            keyword_seeds: Topic keywords (category defaults when empty)
            count: Maximum number of items returned

        Returns:
            NewsBatch of accepted items

        Raises:
            ValueError: Unknown emotion category or non-positive count
            GenerationRejected: Typed rejection with an AI_NEWS_* code
        """
        category = EmotionCategory.resolve(emotion)
        if category is None:
            raise ValueError(f"Unknown emotion category: {emotion!r}")
        if count < 1:
            raise ValueError("count must be at least 1")

        seeds = _unique_seeds(keyword_seeds or []) or category.default_seeds
        mode = GenerationMode.NEWS
        self._track(category, "requests")
        self._transition(RequestState.START, f"news/{category.value} seeds={seeds}")

        self._transition(RequestState.FETCHING_REFERENCES, ", ".join(seeds))
        results = await self.acquisitor.fetch_many(seeds, limit=self.settings.reference_limit)
        references = _merge_references(result.articles for result in results)
        fallback_codes = [r.reason_code for r in results if r.used_fallback and r.reason_code]
        used_fallback = any(result.used_fallback for result in results)
        if used_fallback:
            self._track(category, "referenceFallbacks")

        request = GenerationRequest(
            mode=mode,
            topic_seed=", ".join(seeds),
            reference_set=references,
            emotion_category=category,
            constraints=GenerationConstraints.for_mode(mode, self.settings),
        )
        self._require_real_references(request)

        prompt = build_news_prompt(request, count)
        batch, decision, attempts, model_used = await self._run_gate(
            request, prompt, NewsBatchCandidate, category
        )

        items = batch.items[:count]
        assessments = [self.scanner.assess(item.full_text) for item in items]
        blocked = [i for i, assessment in enumerate(assessments) if assessment.publish_blocked]
        if blocked:
            self._track(category, "complianceBlocks")
            issues = []
            for index in blocked:
                issues += _compliance_issues(assessments[index], prefix=f"items[{index}].")
            raise self._reject(
                ComplianceBlock,
                reason_code(mode, COMPLIANCE_BLOCKED),
                "Generated news items carry high compliance risk",
                issues,
                retried=attempts > 1,
            )

        accepted = [
            ValidatedArtifact(
                mode=mode,
                title=item.title.strip(),
                summary=item.summary.strip(),
                content=item.content.strip(),
                citation=_citation(cited[0]),
                citations=[_citation(ref) for ref in cited],
                compliance=assessment,
                emotion_category=category,
                model_used=model_used,
                attempts=attempts,
                used_fallback_references=used_fallback,
            )
            for item, cited, assessment in zip(items, decision.cited, assessments)
        ]
        self._track(category, "success")
        self._transition(RequestState.ACCEPTED, f"{len(accepted)} news items")
        return NewsBatch(
            emotion_category=category,
            items=accepted,
            used_fallback_references=used_fallback,
            reason_code=fallback_codes[0] if fallback_codes else None,
        )

    async def generate_draft(
        self,
        mode: Union[str, GenerationMode],
        topic: str,
        selected_reference: Optional[Union[ReferenceArticle, dict[str, Any]]] = None,
    ) -> ValidatedArtifact:
        """
        Generate a grounded draft or interactive longform article.

        Args:
            mode: "draft" or "interactive-longform"
            topic: Topic seed; also the supplementary reference keyword
            selected_reference: Reference chosen by the caller

        Returns:
            ValidatedArtifact

        Raises:
            ValueError: News mode requested, or neither topic nor reference given
            GenerationRejected: Typed rejection with an AI_DRAFT_* code
        """
        mode = GenerationMode.normalize(mode)
        if mode is GenerationMode.NEWS:
            raise ValueError("Use generate_news_items for news batches")
        if isinstance(selected_reference, dict):
            selected_reference = ReferenceArticle.model_validate(selected_reference)
        topic = normalize_whitespace(topic)
        if not topic and selected_reference is None:
            raise ValueError("A topic or a selected reference is required")

        keyword = topic or selected_reference.title
        self._track(mode, "requests")
        self._transition(RequestState.START, f"{mode.value} topic='{keyword}'")

        self._transition(RequestState.FETCHING_REFERENCES, keyword)
        result = await self.acquisitor.fetch_references(keyword, limit=self.settings.reference_limit)
        supplementary = [ref for ref in result.articles if not ref.synthetic]
        used_fallback = result.used_fallback
        if used_fallback:
            self._track(mode, "referenceFallbacks")
        selected = [selected_reference] if selected_reference is not None else []
        references = _merge_references([selected, supplementary])

        request = GenerationRequest(
            mode=mode,
            topic_seed=keyword,
            reference_set=references,
            constraints=GenerationConstraints.for_mode(mode, self.settings),
        )
        self._require_real_references(request)

        schema = CANDIDATE_SCHEMAS[mode]
        prompt = build_draft_prompt(request)
        candidate, decision, attempts, model_used = await self._run_gate(
            request, prompt, schema, mode
        )

        assessment = self.scanner.assess(candidate.full_text)
        if assessment.publish_blocked:
            self._track(mode, "complianceBlocks")
            raise self._reject(
                ComplianceBlock,
                reason_code(mode, COMPLIANCE_BLOCKED),
                "Generated draft carries high compliance risk",
                _compliance_issues(assessment),
                retried=attempts > 1,
            )

        cited = decision.cited[0]
        artifact = ValidatedArtifact(
            mode=mode,
            title=candidate.title.strip(),
            summary=candidate.sections.core.strip(),
            content=candidate.content.strip(),
            sections=candidate.sections,
            media_slots=candidate.media_slots,
            citation=_citation(cited[0]),
            citations=[_citation(ref) for ref in cited],
            compliance=assessment,
            model_used=model_used,
            attempts=attempts,
            used_fallback_references=used_fallback,
        )
        self._track(mode, "success")
        self._transition(RequestState.ACCEPTED, f"{mode.value} '{artifact.title}'")
        return artifact

    # =========================================================================
    # Gate loop
    # =========================================================================

    async def _run_gate(
        self,
        request: GenerationRequest,
        prompt: str,
        schema: type,
        scope: Scope,
    ) -> tuple[Any, GateDecision, int, Optional[str]]:
        """
        Generate, parse and validate with one similarity retry.

        Returns:
            (candidate, decision, attempts used, model used)
        """
        mode = request.mode
        history: list[GenerationAttempt] = []
        current_prompt = prompt

        for attempt_index in range(1, self.max_attempts + 1):
            retried = attempt_index > 1
            if retried:
                self._track(scope, "retries")
                self._transition(RequestState.RETRYING, f"attempt {attempt_index}")

            attempt = GenerationAttempt(attempt_index=attempt_index, prompt=current_prompt)
            history.append(attempt)
            candidate = await self._generate_candidate(request, attempt, schema, scope)

            self._transition(RequestState.VALIDATING, f"attempt {attempt_index}")
            decision = self.gate.validate(candidate, request)
            attempt.issues = decision.issues
            attempt.reason_code = decision.code
            if decision.accepted:
                return candidate, decision, attempt_index, attempt.model_used

            if decision.stage == STAGE_SIMILARITY:
                self._track(scope, "similarityBlocks")
                if attempt_index < self.max_attempts:
                    current_prompt = amend_for_similarity(prompt, decision.issues)
                    continue
                raise self._reject(
                    SimilarityViolation,
                    decision.code,
                    "Output stayed too close to the references after a rephrase retry",
                    decision.issues,
                    retried=True,
                    history=history,
                )
            if decision.stage == STAGE_SCHEMA:
                self._track(scope, "schemaBlocks")
                raise self._reject(
                    SchemaViolation,
                    decision.code,
                    "Output violates the structural rules of its mode",
                    decision.issues,
                    retried=retried,
                    history=history,
                )
            self._track(scope, "groundingBlocks")
            raise self._reject(
                GroundingViolation,
                decision.code,
                "Output is not grounded in the fetched references",
                decision.issues,
                retried=retried,
                history=history,
            )

        # max_attempts < 1 is a configuration error
        raise ValueError("max_attempts must be at least 1")

    async def _generate_candidate(
        self,
        request: GenerationRequest,
        attempt: GenerationAttempt,
        schema: type,
        scope: Scope,
    ) -> Union[DraftArtifact, NewsBatchCandidate]:
        mode = request.mode
        retried = attempt.attempt_index > 1

        self._transition(RequestState.GENERATING, f"attempt {attempt.attempt_index}")
        raw_text, model_used = await self._call_model(attempt.prompt, mode, scope, retried)
        attempt.raw_model_text = raw_text
        attempt.model_used = model_used

        self._transition(RequestState.PARSING, f"{len(raw_text)} chars")
        candidate = parse_candidate(raw_text, schema)
        if candidate is None:
            logger.info("Model output did not parse, requesting a model repair pass")
            try:
                repaired_text, repair_model = await self._call_model(
                    build_repair_prompt(raw_text, mode), mode, scope, retried
                )
            except ModelUnavailable as e:
                logger.warning(f"Model repair pass failed ({e.code}), output stays unparseable")
            else:
                candidate = parse_candidate(repaired_text, schema)
                if candidate is not None:
                    self._track(scope, "fallbackRecoveries")
                    attempt.model_used = repair_model

        if candidate is None:
            self._track(scope, "parseFailures")
            attempt.reason_code = reason_code(mode, PARSE_BLOCKED)
            raise self._reject(
                ParseFailure,
                attempt.reason_code,
                "Model output could not be parsed into the expected schema",
                [Issue(field="output", rule="parse", message="no JSON object matching the schema")],
                retried=retried,
            )
        attempt.parsed_candidate = candidate
        return candidate

    async def _call_model(
        self,
        prompt: str,
        mode: GenerationMode,
        scope: Scope,
        retried: bool,
    ) -> tuple[str, Optional[str]]:
        code = reason_code(mode, MODEL_UNAVAILABLE)
        if self.orchestrator is None:
            raise self._reject(
                ModelUnavailable,
                code,
                "No generative backend is configured",
                retried=retried,
            )

        result = await self.orchestrator.generate(prompt)
        if result.text is None:
            if result.reason_code == MODEL_EMPTY:
                self._track(scope, "modelEmpty")
            raise self._reject(
                ModelUnavailable,
                code,
                f"Every model in the chain failed (last: {result.reason_code})",
                [Issue(field="model", rule="unavailable", message=str(result.reason_code))],
                retried=retried,
            )
        if result.fallback_used:
            self._track(scope, "fallbackRecoveries")
        return result.text, result.model_used

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_real_references(self, request: GenerationRequest) -> None:
        if not request.fully_synthetic:
            return
        raise self._reject(
            ReferenceUnavailable,
            reason_code(request.mode, REFERENCE_UNAVAILABLE),
            "No real reference article could be fetched",
            [
                Issue(
                    field="references",
                    rule="reference_unavailable",
                    message=f"only placeholder references for '{request.topic_seed}'",
                )
            ],
        )

    def _track(self, scope: Scope, counter: str) -> None:
        self.metrics.track(scope, counter)

    @staticmethod
    def _transition(state: RequestState, detail: str = "") -> None:
        logger.debug(f"[{state.value}] {detail}")

    @staticmethod
    def _reject(
        error_cls: type[GenerationRejected],
        code: str,
        message: str,
        issues: Optional[list[Issue]] = None,
        retried: bool = False,
        history: Optional[list[GenerationAttempt]] = None,
    ) -> GenerationRejected:
        if history:
            summary = ", ".join(f"#{a.attempt_index}:{a.reason_code or 'ok'}" for a in history)
            logger.warning(f"[{RequestState.REJECTED.value}] {code} after attempts {summary}")
        else:
            logger.warning(f"[{RequestState.REJECTED.value}] {code}: {message}")
        return error_cls(code, message, issues=issues, retried=retried)


def _merge_references(groups) -> list[ReferenceArticle]:
    """Flatten reference groups, keeping the first article per identity key."""
    merged: list[ReferenceArticle] = []
    seen: set[str] = set()
    for group in groups:
        for ref in group:
            if ref.identity_key in seen:
                continue
            seen.add(ref.identity_key)
            merged.append(ref)
    return merged


def _citation(reference: ReferenceArticle) -> Citation:
    return Citation(title=reference.title, url=reference.url, source=reference.source)


def _compliance_issues(assessment: ComplianceAssessment, prefix: str = "") -> list[Issue]:
    return [
        Issue(
            field=f"{prefix}content",
            rule=f"compliance_{flag.category}",
            message=f"{flag.message}: '{flag.matched}'",
        )
        for flag in assessment.flags
        if flag.severity is Severity.HIGH
    ]


def _unique_seeds(keyword_seeds: list[str]) -> list[str]:
    """Non-blank seeds in input order, one per cache key."""
    seeds: list[str] = []
    seen: set[str] = set()
    for raw in keyword_seeds:
        seed = normalize_whitespace(raw or "")
        key = normalize_keyword(seed)
        if not key or key in seen:
            continue
        seen.add(key)
        seeds.append(seed)
    return seeds
