"""
End-to-end tests of the healing pipeline.

Each test drives a full healing attempt through the orchestrator with the
built-in providers and checks a behavioral property of the ranked output.
"""

import itertools
import time
from unittest.mock import patch

import pytest

from locator_healing.core.models import (
    BrowserInfo,
    Candidate,
    ConfidenceTier,
    ElementContext,
    FailureKind,
    FailureRecord,
    HealingConfiguration,
    PageContext,
    PageElement,
    ProviderKind,
    Viewport,
)
from locator_healing.services.healing_orchestrator import HealingOrchestrator
from locator_healing.services.learning_store import AdaptiveLearningStore
from locator_healing.services.providers import PROVIDER_REGISTRY, StrategyProvider


pytestmark = pytest.mark.integration


class DelayedProvider(StrategyProvider):
    """Provider that finishes after a delay, to vary completion order."""

    def __init__(self, kind, candidates, delay):
        self.kind = kind
        self.candidates = candidates
        self.delay = delay

    def generate(self, failure, element, browser, context=None):
        time.sleep(self.delay)
        return list(self.candidates)


def summary(result):
    return [(c.locator, c.strategy, c.confidence, c.factors.to_dict()) for c in result.ranked]


async def heal_once(failure, page=None, store=None, **kwargs):
    orchestrator = HealingOrchestrator(HealingConfiguration(), store, **kwargs)
    try:
        return await orchestrator.heal(failure, page)
    finally:
        await orchestrator.stop()


ELEMENTS = [
    ElementContext(tag_name="div"),
    ElementContext(tag_name="button", has_id=True, is_visible=True, is_enabled=True, in_viewport=True),
    ElementContext.from_attributes(
        "input", {"id": "email", "data-testid": "email", "name": "email", "class": "form-control",
                  "type": "email"},
        text="Email", is_visible=True, is_dynamic=True, in_shadow_dom=True, dom_depth=14),
    ElementContext.from_attributes("span", {"aria-label": "Close"}, text="x" * 300),
]

PAGES = [
    PageContext(),
    PageContext(dom_element_count=9000, has_react=True, is_spa=True, has_ajax_loading=True,
                has_loading_indicators=True, has_modals=True, page_load_complete=False,
                network_speed="slow", pending_requests=9, element_load_time_ms=9000,
                elements=[PageElement(selector="#email-2", tag_name="input", text="Email",
                                      class_name="form-control", input_type="email")]),
]

BROWSERS = [
    BrowserInfo.from_name("chromium", "121.0"),
    BrowserInfo.from_name("firefox", "60", Viewport(800, 600)),
    BrowserInfo.from_name("safari"),
    BrowserInfo.from_name("netsurf"),
]

ERRORS = [
    "Timeout 30000ms exceeded",
    "Element is not visible",
    "stale element reference",
    "net::ERR_NETWORK_CHANGED",
    "Permission denied",
    "",
]


class TestScoreBounds:
    """Every factor and confidence stays within [0, 1]."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("element, page", list(itertools.product(ELEMENTS, PAGES)))
    async def test_bounds(self, element, page):
        for browser, error in itertools.product(BROWSERS, ERRORS):
            failure = FailureRecord("click", "form > input.email:nth-child(2)", error, element, browser)

            result = await heal_once(failure, page)

            for scored in result.ranked:
                assert 0.0 <= scored.confidence <= 1.0
                for _, value in scored.factors.items():
                    assert 0.0 <= value <= 1.0
                assert 0 <= scored.candidate.priority <= 10


class TestDeterminism:
    """Identical inputs and store state produce identical output."""

    @pytest.mark.asyncio
    async def test_repeated_invocations(self, id_failure, memory_store):
        memory_store.record_outcome("#submit-btn", "id-selector", True, 20.0)
        memory_store.record_outcome("#submit-btn >> visible=true", "visible-descendant", False, 80.0)
        page = PAGES[1]

        orchestrator = HealingOrchestrator(HealingConfiguration(), memory_store)
        first = await orchestrator.heal(id_failure, page)
        second = await orchestrator.heal(id_failure, page)
        await orchestrator.stop()

        assert summary(first) == summary(second)
        assert summary(first)

    @pytest.mark.asyncio
    async def test_survives_store_reload(self, tmp_path, id_failure):
        path = str(tmp_path / "learning.db")
        store = AdaptiveLearningStore(db_path=path, register_atexit=False)
        store.record_outcome("#submit-btn", "id-selector", True, 20.0)
        store.record_outcome("#submit-btn", "chromium-id-selector", False, 20.0)
        before = await heal_once(id_failure, store=store)
        store.close()

        reloaded = AdaptiveLearningStore(db_path=path, register_atexit=False)
        after = await heal_once(id_failure, store=reloaded)
        reloaded.close()

        assert summary(before) == summary(after)


class TestTieBreak:
    """Equal confidences are ordered by priority, then insertion order."""

    @pytest.mark.asyncio
    async def test_priority_then_insertion(self, id_failure, memory_store):
        providers = [
            DelayedProvider(ProviderKind.ATTRIBUTE, [Candidate("a", "#x", 5, ProviderKind.ATTRIBUTE)], 0.2),
            DelayedProvider(ProviderKind.STRUCTURAL, [
                Candidate("b", "#y", 7, ProviderKind.STRUCTURAL),
                Candidate("c", "#z", 7, ProviderKind.STRUCTURAL),
            ], 0.1),
            DelayedProvider(ProviderKind.SIMILAR_ELEMENT, [Candidate("d", "#w", 5, ProviderKind.SIMILAR_ELEMENT)], 0.0),
        ]

        result = await heal_once(id_failure, store=memory_store, providers=providers)

        assert len({c.confidence for c in result.ranked}) == 1
        assert [c.strategy for c in result.ranked] == ["b", "c", "a", "d"]


class TestLearningMonotonicity:
    """Recorded successes raise the learned factors of a selector."""

    @pytest.mark.asyncio
    async def test_successes_raise_factors(self, id_failure, memory_store):
        orchestrator = HealingOrchestrator(HealingConfiguration(), memory_store)

        baseline = await orchestrator.heal(id_failure)
        target = next(c for c in baseline.ranked if c.strategy == "id-selector")

        for _ in range(5):
            result = await orchestrator.heal(id_failure)
            chosen = next(c for c in result.ranked if c.strategy == "id-selector")
            await orchestrator.record_outcome(result, chosen, True, 25.0)

        learned = await orchestrator.heal(id_failure)
        await orchestrator.stop()
        improved = next(c for c in learned.ranked if c.strategy == "id-selector")

        assert improved.factors.selector_stability > target.factors.selector_stability
        assert improved.factors.historical_success > target.factors.historical_success
        assert improved.confidence > target.confidence
        assert memory_store.selector_reliability("#submit-btn") == 1.0

    @pytest.mark.asyncio
    async def test_rate_never_decreases_with_successes(self, memory_store):
        memory_store.record_outcome("#a", "id-selector", False, 1.0)
        previous = memory_store.success_rate(selector="#a")
        for _ in range(10):
            memory_store.record_outcome("#a", "id-selector", True, 1.0)
            current = memory_store.success_rate(selector="#a")
            assert current >= previous
            previous = current


class TestProviderIsolation:
    """One failing provider never takes down the pipeline."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", list(ProviderKind))
    async def test_single_provider_failure(self, kind, id_failure, memory_store):
        with patch.object(PROVIDER_REGISTRY[kind], "generate", side_effect=RuntimeError("boom")):
            result = await heal_once(id_failure, store=memory_store)

        assert result.degraded_providers == [kind.value]
        assert result.ranked
        assert all(c.candidate.provider != kind for c in result.ranked)


class TestScenarios:
    """Concrete healing scenarios."""

    @pytest.mark.asyncio
    async def test_stable_attribute_present(self, id_failure, memory_store):
        result = await heal_once(id_failure, store=memory_store)

        assert result.failure_kind == FailureKind.ELEMENT_NOT_FOUND
        top = result.top
        assert top.strategy == "id-selector"
        assert top.candidate.provider == ProviderKind.ATTRIBUTE
        assert top.locator == "#submit-btn"
        assert top.confidence >= 0.6

    @pytest.mark.asyncio
    async def test_only_positional_selector(self, positional_failure, memory_store):
        result = await heal_once(positional_failure, store=memory_store)

        assert result.ranked
        nth_child = next(c for c in result.ranked if c.locator == "div:nth-child(3)")
        assert nth_child.factors.selector_stability <= 0.4
        assert all(c.tier in (ConfidenceTier.LOW, ConfidenceTier.VERY_LOW) for c in result.ranked)

    @pytest.mark.asyncio
    async def test_empty_error(self, id_element, chromium, memory_store):
        failure = FailureRecord(action="click", selector="#submit-btn", error="",
                                element=id_element, browser=chromium)

        result = await heal_once(failure, store=memory_store)

        assert result.failure_kind == FailureKind.UNKNOWN
        assert result.ranked

    @pytest.mark.asyncio
    async def test_noop_ml_scorer(self, id_failure, memory_store):
        result = await heal_once(id_failure, store=memory_store)

        assert result.ranked
        assert result.degraded_providers == []
        assert all(c.candidate.provider != ProviderKind.ML_PREDICTION for c in result.ranked)

    @pytest.mark.asyncio
    async def test_similar_element_on_changed_page(self, memory_store, chromium):
        element = ElementContext.from_attributes("input", {"class": "form-control", "type": "email"},
                                                 text="Email")
        failure = FailureRecord("fill", "#email", "Timeout 5000ms exceeded", element, chromium)
        page = PageContext(elements=[
            PageElement(selector="#email-v2", tag_name="input", text="Email",
                        class_name="form-control", input_type="email"),
        ])

        result = await heal_once(failure, page, store=memory_store)

        assert "#email-v2" in [c.locator for c in result.ranked]

    @pytest.mark.asyncio
    async def test_obscured_click(self, id_element, memory_store):
        browser = BrowserInfo.from_name("firefox", "121")
        failure = FailureRecord("click", "#submit-btn", "Element is not clickable at point (5, 5)",
                                id_element, browser)

        result = await heal_once(failure, store=memory_store)

        strategies = [c.strategy for c in result.ranked]
        assert result.failure_kind == FailureKind.ELEMENT_NOT_INTERACTABLE
        assert "javascript-click" in strategies
        assert "wait-for-ready" in strategies
