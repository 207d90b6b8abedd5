"""
Healing Orchestrator for locator self-healing.

Coordinates one healing attempt end to end: classify the failure, fan out to
every strategy provider, score each candidate, rank, and hand the ranked list
back to the caller. The caller applies a candidate with its own browser driver
and reports the outcome, which is recorded in the learning store.
"""

import asyncio
import logging
import time
import uuid
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from ..core.exceptions import HealingValidationError, LearningStoreError
from ..core.logging_config import get_healing_logger
from ..core.metrics import MetricsCollector, get_metrics_collector
from ..core.models import (
    BrowserInfo,
    Candidate,
    ElementContext,
    FailureKind,
    FailureRecord,
    HealingConfiguration,
    HealingResult,
    HealingState,
    PageContext,
    ProviderKind,
    ScoredCandidate,
    StrategyOutcomeRecord,
)
from .confidence_scorer import ConfidenceScorer
from .failure_classifier import FailureClassifier
from .learning_store import AdaptiveLearningStore
from .providers import GenerationContext, MLScorer, StrategyProvider, create_providers


logger = logging.getLogger(__name__)

PHASE_TIMER = "healing_phase_duration"


class HealingOrchestrator:
    """Main orchestrator for the locator healing workflow."""

    # Distinct selectors whose failure counts are kept for prioritization
    failure_count_limit = 1000

    def __init__(
        self,
        config: Optional[HealingConfiguration] = None,
        learning_store: Optional[AdaptiveLearningStore] = None,
        ml_scorer: Optional[MLScorer] = None,
        providers: Optional[Sequence[StrategyProvider]] = None,
        scorer: Optional[ConfidenceScorer] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        """Initialize the healing orchestrator.

        Args:
            config: Healing configuration settings
            learning_store: Outcome store; an in-memory store is used when omitted
            ml_scorer: Injected ML model; a no-op scorer is used when omitted
            providers: Explicit providers in insertion order; built from
                ``config.providers`` when omitted
            scorer: Confidence scorer; built on the learning store when omitted
            metrics_collector: Metrics sink; the process-wide collector by default
        """
        self.config = config or HealingConfiguration()

        self.learning_store = learning_store or AdaptiveLearningStore(
            db_path=None,
            flush_batch_size=self.config.flush_batch_size,
            history_limit=self.config.history_limit,
            recent_window_days=self.config.recent_window_days,
            register_atexit=False,
        )
        self.classifier = FailureClassifier()
        self.scorer = scorer or ConfidenceScorer(self.learning_store, self.config.recent_window_days)

        if providers is None:
            providers = create_providers(self.config, self.learning_store, ml_scorer)
        self.providers: List[StrategyProvider] = list(providers)

        # Per-selector failure counts drive the failure priority
        self._failure_counts: Counter = Counter()
        self._counts_lock = asyncio.Lock()

        self._executor: Optional[ThreadPoolExecutor] = None
        # The injected scorer gets its own pool so a hung model cannot starve the others
        self._ml_executor: Optional[ThreadPoolExecutor] = None
        self.metrics_collector = metrics_collector or get_metrics_collector()

        logger.info(
            f"Healing orchestrator initialized with providers: {[p.name for p in self.providers]}"
        )

    async def start(self):
        """Start the worker pool used for provider fan-out and scoring."""
        self._ensure_executor()
        logger.info("Healing orchestrator started")

    async def stop(self):
        """Flush pending outcomes and release the worker pools.

        Pools are shut down without waiting: a scorer call that outlived its
        timeout finishes in the background and its result is discarded.
        """
        loop = asyncio.get_running_loop()
        if self._executor is not None:
            await loop.run_in_executor(self._executor, self.learning_store.flush)
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        else:
            self.learning_store.flush()

        if self._ml_executor is not None:
            self._ml_executor.shutdown(wait=False, cancel_futures=True)
            self._ml_executor = None
        logger.info("Healing orchestrator stopped")

    async def __aenter__(self) -> "HealingOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    async def heal(self, failure: FailureRecord, page_context: Optional[PageContext] = None) -> HealingResult:
        """Produce a ranked, explained list of remediation candidates.

        Args:
            failure: The failed interaction
            page_context: Page-level state; neutral defaults when omitted

        Returns:
            HealingResult in the ``reported`` state. An empty ranked list is a
            valid result.

        Raises:
            HealingValidationError: If the failure record is missing or malformed
        """
        try:
            self._validate_failure(failure)
        except HealingValidationError:
            self.metrics_collector.increment_counter("healing_validation_failures")
            raise

        page = page_context or PageContext()
        started = time.perf_counter()
        result = HealingResult(
            attempt_id=str(uuid.uuid4()),
            failure=failure,
            failure_kind=FailureKind.UNKNOWN,
            state=HealingState.RECEIVED,
            started_at=datetime.now(),
            state_history=[HealingState.RECEIVED],
        )
        log = get_healing_logger("orchestrator", result.attempt_id, failure.selector, failure.test_name)
        log.log_operation_start("healing", action=failure.action)

        result.failure_kind = self.classifier.classify(failure.error)
        async with self._counts_lock:
            self._failure_counts[failure.selector] += 1
            failure_count = self._failure_counts[failure.selector]
            if len(self._failure_counts) > self.failure_count_limit:
                self._failure_counts = Counter(dict(
                    self._failure_counts.most_common(self.failure_count_limit)
                ))
        result.priority = self.classifier.priority(result.failure_kind, failure_count)
        result.transition(HealingState.CLASSIFIED)

        if not self.config.enabled:
            log.info("Healing disabled, reporting without candidates")
            return self._report(result, started, log)

        result.transition(HealingState.GENERATING)
        now = datetime.now()
        context = GenerationContext(failure_kind=result.failure_kind, page=page, now=now)

        timer_id = self.metrics_collector.start_timer("generating")
        candidates = await self._generate(failure, context, result, log)
        self.metrics_collector.stop_timer(timer_id, PHASE_TIMER, {"phase": "generating"})
        result.total_candidates = len(candidates)

        result.transition(HealingState.SCORING)
        timer_id = self.metrics_collector.start_timer("scoring")
        loop = asyncio.get_running_loop()
        scored = await loop.run_in_executor(
            self._ensure_executor(), self._score_all, candidates, failure, page, now
        )
        self.metrics_collector.stop_timer(timer_id, PHASE_TIMER, {"phase": "scoring"})

        result.ranked = self._rank(scored)
        result.transition(HealingState.RANKED)

        return self._report(result, started, log)

    async def record_outcome(
        self,
        result: HealingResult,
        candidate: ScoredCandidate,
        success: bool,
        execution_time: float,
        error_kind: Optional[Union[FailureKind, str]] = None,
    ) -> Optional[StrategyOutcomeRecord]:
        """Record the caller's attempt of one ranked candidate.

        Persistence problems are logged and absorbed; they never reach the caller.

        Args:
            result: The healing result the candidate came from
            candidate: The candidate the caller attempted
            success: Whether the attempt succeeded
            execution_time: Attempt duration in milliseconds
            error_kind: Failure kind of an unsuccessful attempt

        Returns:
            The appended outcome record, or None if recording failed
        """
        result.transition(HealingState.APPLYING)
        result.applied_candidate = candidate

        if isinstance(error_kind, FailureKind):
            error_kind = error_kind.value

        log = get_healing_logger("learning", result.attempt_id, candidate.locator, result.failure.test_name)
        loop = asyncio.get_running_loop()
        record = None
        started = time.perf_counter()
        try:
            record = await loop.run_in_executor(
                self._ensure_executor(),
                lambda: self.learning_store.record_outcome(
                    candidate.locator, candidate.strategy, success, execution_time, error_kind
                ),
            )
        except LearningStoreError as e:
            self.metrics_collector.increment_counter("learning_persistence_failures")
            log.log_operation_failure(
                "record_outcome", time.perf_counter() - started, str(e),
                error_code="learning_store", strategy=candidate.strategy,
            )

        self.metrics_collector.record_outcome(candidate.strategy, success, execution_time)
        result.transition(HealingState.RECORDED)
        log.info(
            f"Recorded {'successful' if success else 'failed'} attempt of {candidate.strategy}",
            extra={"success": success, "duration": execution_time},
        )
        return record

    def get_analytics(self) -> Dict[str, Any]:
        """Learning-store analytics combined with the metrics snapshot."""
        return {
            "learning": self.learning_store.analytics(),
            "strategy_rankings": self.learning_store.strategy_rankings(),
            "most_failing_selectors": dict(self._failure_counts.most_common(10)),
            "metrics": self.metrics_collector.snapshot(),
        }

    # ---------------------------------------------------------------- phases

    async def _generate(self, failure: FailureRecord, context: GenerationContext,
                        result: HealingResult, log) -> List[Candidate]:
        """Run every provider concurrently; concatenate results in provider order."""
        batches = await asyncio.gather(*(
            self._run_provider(provider, failure, context, result, log)
            for provider in self.providers
        ))
        return [candidate for batch in batches for candidate in batch]

    async def _run_provider(self, provider: StrategyProvider, failure: FailureRecord,
                            context: GenerationContext, result: HealingResult, log) -> List[Candidate]:
        loop = asyncio.get_running_loop()
        is_ml = provider.kind == ProviderKind.ML_PREDICTION
        call = loop.run_in_executor(
            self._ensure_ml_executor() if is_ml else self._ensure_executor(),
            provider.generate, failure, failure.element, failure.browser, context,
        )

        try:
            if is_ml:
                produced = await asyncio.wait_for(call, timeout=self.config.ml_timeout)
            else:
                produced = await call
        except asyncio.TimeoutError:
            self._mark_degraded(provider, "timeout", f"timed out after {self.config.ml_timeout}s", result, log)
            return []
        except Exception as e:
            self._mark_degraded(provider, type(e).__name__, str(e), result, log)
            return []

        candidates = [c for c in (produced or []) if isinstance(c, Candidate)]
        if len(candidates) != len(produced or []):
            log.warning(f"Provider {provider.name} returned non-candidate values; they were dropped")
        return candidates

    def _mark_degraded(self, provider: StrategyProvider, reason: str, detail: str,
                       result: HealingResult, log):
        result.degraded_providers.append(provider.name)
        self.metrics_collector.record_provider_failure(provider.name, reason)
        log.log_degraded(provider.name, detail, reason=reason)

    def _score_all(self, candidates: List[Candidate], failure: FailureRecord,
                   page: PageContext, now: datetime) -> List[ScoredCandidate]:
        scored = []
        for candidate in candidates:
            history = self.learning_store.history_for(candidate.strategy, candidate.locator)
            try:
                scored.append(self.scorer.score(
                    candidate, failure.element, failure.browser, page, history, now
                ))
            except (ArithmeticError, TypeError, ValueError) as e:
                logger.error(f"Failed to score candidate {candidate.locator!r}: {e}", exc_info=True)
        return scored

    def _rank(self, scored: List[ScoredCandidate]) -> List[ScoredCandidate]:
        """Order by confidence, then priority hint, then insertion order; dedupe; truncate."""
        ordered = sorted(
            enumerate(scored),
            key=lambda item: (-item[1].confidence, -item[1].candidate.priority, item[0]),
        )

        ranked = []
        seen = set()
        for _, scored_candidate in ordered:
            key = scored_candidate.candidate.dedupe_key
            if key in seen:
                continue
            seen.add(key)
            ranked.append(scored_candidate)

        return ranked[:self.config.max_candidates]

    def _report(self, result: HealingResult, started: float, log) -> HealingResult:
        result.transition(HealingState.REPORTED)
        result.completed_at = datetime.now()
        duration = time.perf_counter() - started

        self.metrics_collector.record_healing_attempt(result.failure_kind.value, duration, len(result.ranked))
        log.log_operation_success(
            "healing",
            duration,
            failure_kind=result.failure_kind.value,
            candidates=len(result.ranked),
            degraded=list(result.degraded_providers),
            top=result.top.locator if result.top else None,
        )
        return result

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers, thread_name_prefix="healing"
            )
        return self._executor

    def _ensure_ml_executor(self) -> ThreadPoolExecutor:
        if self._ml_executor is None:
            self._ml_executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers, thread_name_prefix="healing-ml"
            )
        return self._ml_executor

    def _validate_failure(self, failure: FailureRecord):
        """Fail fast on records the pipeline cannot reason about."""
        if failure is None:
            raise HealingValidationError("Failure record is required", field="failure")
        if not isinstance(failure, FailureRecord):
            raise HealingValidationError(
                f"Expected FailureRecord, got {type(failure).__name__}", field="failure")
        if not isinstance(failure.action, str) or not failure.action.strip():
            raise HealingValidationError("Failure record has no action", field="action")
        if not isinstance(failure.selector, str) or not failure.selector.strip():
            raise HealingValidationError("Failure record has no selector", field="selector")
        if failure.error is not None and not isinstance(failure.error, str):
            raise HealingValidationError("Failure error must be text", field="error")
        if not isinstance(failure.element, ElementContext):
            raise HealingValidationError("Failure record has no element context", field="element")
        if not isinstance(failure.browser, BrowserInfo):
            raise HealingValidationError("Failure record has no browser info", field="browser")
        for name in ("retry_count", "healing_attempts"):
            value = getattr(failure, name)
            if not isinstance(value, int) or value < 0:
                raise HealingValidationError(f"{name} must be a non-negative integer", field=name)


def create_orchestrator(ml_scorer: Optional[MLScorer] = None,
                        config: Optional[HealingConfiguration] = None) -> HealingOrchestrator:
    """Build an orchestrator from the YAML configuration and environment settings."""
    from ..core.config import settings
    from ..core.config_loader import get_healing_config

    config = config or get_healing_config()
    store = AdaptiveLearningStore(
        db_path=settings.LEARNING_STORE_PATH,
        flush_batch_size=config.flush_batch_size,
        history_limit=config.history_limit,
        recent_window_days=config.recent_window_days,
    )
    return HealingOrchestrator(config, learning_store=store, ml_scorer=ml_scorer)
