"""
Unit tests for the built-in strategy providers and their registry.
"""

import math
from unittest.mock import Mock

import pytest

from locator_healing.core.exceptions import ProviderError
from locator_healing.core.models import (
    BrowserInfo,
    ElementContext,
    FailureKind,
    FailureRecord,
    HealingConfiguration,
    PageContext,
    PageElement,
    ProviderKind,
)
from locator_healing.services.providers import (
    PROVIDER_REGISTRY,
    AccessibleNameProvider,
    AttributeProvider,
    BrowserQuirkProvider,
    FailureFallbackProvider,
    GenerationContext,
    MLPredictionProvider,
    NoOpScorer,
    RelaxedAttributeProvider,
    SimilarElementProvider,
    StructuralProvider,
    create_provider,
    create_providers,
)
from locator_healing.services.providers.accessible_name_provider import semantic_variants
from locator_healing.services.providers.relaxed_attribute_provider import id_variations


def make_failure(selector, element, browser=None, action="click", error="Timeout"):
    return FailureRecord(
        action=action,
        selector=selector,
        error=error,
        element=element,
        browser=browser or BrowserInfo.from_name("chromium"),
    )


class StaticScorer:
    """ML scorer returning fixed predictions."""

    def __init__(self, predictions):
        self.predictions = predictions
        self.calls = []

    def predict(self, feature_vector):
        self.calls.append(feature_vector)
        return self.predictions


class TestAttributeProvider:
    """Test stable-attribute candidates."""

    def test_all_attributes_in_priority_order(self):
        element = ElementContext.from_attributes(
            "input",
            {"id": "email", "data-testid": "email-field", "aria-label": "Email",
             "name": "email", "class": "form-control wide"},
            text="",
        )
        candidates = AttributeProvider().generate(make_failure("#email", element), element,
                                                  BrowserInfo.from_name("chromium"))

        assert [(c.strategy, c.locator, c.priority) for c in candidates] == [
            ("data-testid", '[data-testid="email-field"]', 10),
            ("id-selector", "#email", 9),
            ("aria-label", '[aria-label="Email"]', 8),
            ("name-attribute", '[name="email"]', 7),
            ("class-selector", ".form-control", 6),
        ]
        assert all(c.provider == ProviderKind.ATTRIBUTE for c in candidates)

    def test_value_recovered_from_selector(self, id_failure):
        candidates = AttributeProvider().generate(id_failure, id_failure.element, id_failure.browser)

        assert len(candidates) == 1
        assert candidates[0].locator == "#submit-btn"
        assert candidates[0].metadata == {"attribute": "id", "value": "submit-btn"}

    def test_text_candidate(self):
        element = ElementContext.from_attributes("a", {}, text="Forgot password?")
        candidates = AttributeProvider().generate(make_failure("a.link", element), element,
                                                  BrowserInfo.from_name("chromium"))

        assert [(c.strategy, c.locator, c.priority) for c in candidates] == [
            ("text-content", 'text="Forgot password?"', 4),
        ]

    def test_non_identifier_id_uses_attribute_selector(self):
        element = ElementContext.from_attributes("div", {"id": "1st item"})
        candidates = AttributeProvider().generate(make_failure("div", element), element,
                                                  BrowserInfo.from_name("chromium"))
        assert candidates[0].locator == '[id="1st item"]'

    def test_no_attributes(self, positional_failure):
        assert AttributeProvider().generate(
            positional_failure, positional_failure.element, positional_failure.browser) == []


class TestStructuralProvider:
    """Test positional fallback candidates."""

    def test_positional_candidates(self, positional_failure):
        element = ElementContext(tag_name="div", dom_path="body > main > div:nth-child(3)", dom_depth=3)
        candidates = StructuralProvider().generate(positional_failure, element, positional_failure.browser)

        assert [(c.strategy, c.locator, c.priority) for c in candidates] == [
            ("dom-path", "body > main > div:nth-child(3)", 3),
            ("xpath-position", "//*[3][self::div]", 2),
            ("css-nth-child", "div:nth-child(3)", 1),
        ]
        assert all(c.metadata["fragile"] for c in candidates)

    def test_xpath_counts_all_siblings_like_nth_child(self):
        element = ElementContext(tag_name="li", nth_child=2)
        candidates = StructuralProvider().generate(make_failure("ul > li", element), element,
                                                   BrowserInfo.from_name("chromium"))

        locators = {c.strategy: c.locator for c in candidates}
        assert locators["xpath-position"] == "//*[2][self::li]"
        assert locators["css-nth-child"] == "li:nth-child(2)"

    def test_skipped_when_stable_attribute_present(self, id_failure):
        assert StructuralProvider().generate(id_failure, id_failure.element, id_failure.browser) == []

    def test_nothing_without_position(self):
        element = ElementContext(tag_name="div")
        assert StructuralProvider().generate(make_failure("div", element), element,
                                             BrowserInfo.from_name("chromium")) == []


class TestBrowserQuirkProvider:
    """Test engine-aware candidates."""

    def test_reweighted_priority_and_interaction(self, id_failure):
        candidates = BrowserQuirkProvider().generate(id_failure, id_failure.element, id_failure.browser)

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.strategy == "chromium-id-selector"
        assert candidate.locator == "#submit-btn"
        assert candidate.priority == math.floor(9 * 0.9)
        assert candidate.interaction == {"engine": "chromium", "scroll_before_click": True, "wait_ms": 1000}

    def test_preferred_order_follows_engine(self):
        element = ElementContext.from_attributes("input", {"id": "q", "name": "query"})
        browser = BrowserInfo.from_name("safari")
        candidates = BrowserQuirkProvider().generate(make_failure("#q", element, browser), element, browser)

        assert [c.strategy for c in candidates] == ["webkit-id-selector", "webkit-name-attribute"]

    def test_click_style_for_obscured_element(self, id_failure):
        browser = BrowserInfo.from_name("firefox")
        context = GenerationContext(
            failure_kind=FailureKind.ELEMENT_NOT_INTERACTABLE,
            page=PageContext(has_animations=True),
        )
        candidates = BrowserQuirkProvider().generate(id_failure, id_failure.element, browser, context)

        click = candidates[-1]
        assert click.strategy == "javascript-click"
        assert click.locator == "#submit-btn"
        assert click.priority == 8
        assert click.interaction["click_style"] == "javascript-click"
        assert click.interaction["wait_ms"] == 2500

    def test_no_click_style_for_fill(self, id_element, chromium):
        failure = make_failure("#submit-btn", id_element, chromium, action="fill")
        context = GenerationContext(failure_kind=FailureKind.ELEMENT_NOT_INTERACTABLE)
        candidates = BrowserQuirkProvider().generate(failure, id_element, chromium, context)
        assert [c.strategy for c in candidates] == ["chromium-id-selector"]


class TestMLPredictionProvider:
    """Test the ML scorer adapter."""

    def test_noop_produces_nothing(self, id_failure):
        provider = MLPredictionProvider()
        assert provider.is_noop
        assert isinstance(provider.scorer, NoOpScorer)
        assert provider.generate(id_failure, id_failure.element, id_failure.browser) == []

    def test_predictions_become_candidates(self, id_failure):
        scorer = StaticScorer([("#ml-pick", 0.92), ("[data-testid=\"x\"]", 1.7)])
        candidates = MLPredictionProvider(scorer).generate(id_failure, id_failure.element, id_failure.browser)

        assert [(c.locator, c.priority) for c in candidates] == [("#ml-pick", 9), ('[data-testid="x"]', 10)]
        assert candidates[1].metadata["model_confidence"] == 1.0
        assert candidates[0].metadata["feature_layout_version"] == 1
        assert scorer.calls[0].shape == (25,)

    def test_malformed_predictions_dropped(self, id_failure):
        scorer = StaticScorer([
            ("", 0.5),
            ("   ", 0.5),
            ("#nan", float("nan")),
            ("#inf", float("inf")),
            ("#bad", "high"),
            ("only-one-value",),
            None,
            ("#good", 0.4),
        ])
        candidates = MLPredictionProvider(scorer).generate(id_failure, id_failure.element, id_failure.browser)

        assert [c.locator for c in candidates] == ["#good"]

    def test_scorer_failure_raises_provider_error(self, id_failure):
        scorer = Mock()
        scorer.predict.side_effect = RuntimeError("model not loaded")

        with pytest.raises(ProviderError) as exc_info:
            MLPredictionProvider(scorer).generate(id_failure, id_failure.element, id_failure.browser)

        assert exc_info.value.provider == "ml-prediction"


class TestSimilarElementProvider:
    """Test similar-element candidates."""

    def test_uses_page_inventory(self):
        element = ElementContext.from_attributes("button", {"class": "btn"}, text="Save")
        page = PageContext(elements=[
            PageElement(selector="#save-v2", tag_name="button", text="Save", class_name="btn"),
            PageElement(selector="#cancel", tag_name="a", text="Cancel"),
        ])
        failure = make_failure("#save", element)
        candidates = SimilarElementProvider().generate(
            failure, element, failure.browser, GenerationContext(page=page))

        assert [(c.strategy, c.locator, c.priority) for c in candidates] == [
            ("similar-element", "#save-v2", 8),
        ]

    def test_without_inventory(self, id_failure):
        assert SimilarElementProvider().generate(id_failure, id_failure.element, id_failure.browser) == []


class TestRelaxedAttributeProvider:
    """Test secondary-attribute, combination and id-derived candidates."""

    def test_secondary_attributes(self):
        element = ElementContext.from_attributes(
            "input", {"data-test": "login-email", "placeholder": "Your email", "type": "email"})
        failure = make_failure("#email", element)
        candidates = RelaxedAttributeProvider().generate(failure, element, failure.browser)

        assert [(c.strategy, c.locator, c.priority) for c in candidates] == [
            ("relaxed-attribute", '[data-test="login-email"]', 9),
            ("relaxed-attribute", 'input[placeholder="Your email"]', 5),
            ("relaxed-attribute", 'input[type="email"]', 4),
            ("testid-from-id", '[data-testid="email"]', 4),
        ]

    def test_attribute_combination(self):
        element = ElementContext.from_attributes("input", {"id": "q", "name": "query", "type": "search"})
        failure = make_failure("input[name='query']", element)
        candidates = RelaxedAttributeProvider().generate(failure, element, failure.browser)

        assert [(c.strategy, c.locator, c.priority) for c in candidates] == [
            ("relaxed-attribute", 'input[type="search"]', 4),
            ("attribute-combination", 'input[id="q"][name="query"]', 8),
        ]
        assert candidates[1].metadata["attributes"] == ["id", "name"]

    def test_renamed_id_becomes_test_id(self, id_failure):
        candidates = RelaxedAttributeProvider().generate(id_failure, id_failure.element, id_failure.browser)

        assert [c.locator for c in candidates] == [
            '[data-testid="submit-btn"]',
            '[data-testid="submitbtn"]',
            '[data-testid="submit-button"]',
        ]
        assert all(c.metadata["source_id"] == "submit-btn" for c in candidates)

    def test_no_id_variations_when_test_id_present(self):
        element = ElementContext.from_attributes("button", {"data-testid": "submit"})
        failure = make_failure("#submit-btn", element)

        assert RelaxedAttributeProvider().generate(failure, element, failure.browser) == []

    @pytest.mark.parametrize("value, expected", [
        ("submit-btn", ["submit-btn", "submitbtn", "submit-button"]),
        ("save-button", ["save-button", "savebutton", "save-btn"]),
        ("email", ["email"]),
    ])
    def test_id_variations(self, value, expected):
        assert id_variations(value) == expected

    def test_positional_element_yields_nothing(self, positional_failure):
        element = positional_failure.element
        assert RelaxedAttributeProvider().generate(positional_failure, element, positional_failure.browser) == []


class TestAccessibleNameProvider:
    """Test role/accessible-name and semantic text candidates."""

    def test_role_from_tag_with_names(self):
        element = ElementContext.from_attributes("button", {"aria-label": "Sign in"}, text="Sign In")
        failure = make_failure("#login", element)
        candidates = AccessibleNameProvider().generate(failure, element, failure.browser)

        assert [(c.strategy, c.locator, c.priority) for c in candidates] == [
            ("role-name", 'role=button[name="Sign in"]', 7),
            ("role-name", 'role=button[name="Sign In"]', 7),
            ("semantic-text", 'text="login"', 3),
        ]

    def test_role_from_input_type(self):
        element = ElementContext.from_attributes("input", {"type": "checkbox", "aria-label": "Remember me"})
        failure = make_failure("#remember", element)
        candidates = AccessibleNameProvider().generate(failure, element, failure.browser)

        assert [c.locator for c in candidates] == ['role=checkbox[name="Remember me"]']
        assert candidates[0].metadata["role"] == "checkbox"

    def test_explicit_role_wins(self):
        element = ElementContext.from_attributes("div", {"role": "tab"}, text="Settings")
        failure = make_failure("div.tab", element)
        candidates = AccessibleNameProvider().generate(failure, element, failure.browser)

        assert [c.locator for c in candidates] == ['role=tab[name="Settings"]', 'text="setting"']

    def test_long_text_is_not_a_name(self):
        element = ElementContext.from_attributes("a", {}, text="x" * 80)
        failure = make_failure("#more", element)

        assert AccessibleNameProvider().generate(failure, element, failure.browser) == []

    def test_positional_element_yields_nothing(self, positional_failure):
        element = positional_failure.element
        assert AccessibleNameProvider().generate(positional_failure, element, positional_failure.browser) == []

    @pytest.mark.parametrize("text, expected", [
        ("Sign In", ["login"]),
        ("Email", ["e-mail"]),
        ("Cancel", ["cancel operation"]),
        ("Loading", ["load"]),
        ("Submit", []),
        ("", []),
    ])
    def test_semantic_variants(self, text, expected):
        assert semantic_variants(text) == expected


class TestFailureFallbackProvider:
    """Test failure-kind fallbacks."""

    def test_not_found(self, id_failure):
        context = GenerationContext(failure_kind=FailureKind.ELEMENT_NOT_FOUND)
        candidates = FailureFallbackProvider().generate(id_failure, id_failure.element, id_failure.browser, context)

        assert [(c.strategy, c.locator, c.priority) for c in candidates] == [
            ("visible-descendant", "#submit-btn >> visible=true", 6),
        ]

    @pytest.mark.parametrize("kind, strategies", [
        (FailureKind.ELEMENT_NOT_INTERACTABLE, ["wait-for-ready", "scroll-into-view", "force-click"]),
        (FailureKind.ELEMENT_DETACHED, ["fresh-query", "wait-for-stability"]),
        (FailureKind.NETWORK_ISSUE, ["wait-for-network", "network-retry"]),
        (FailureKind.PERMISSION_ISSUE, ["longer-timeout", "wait-before-action"]),
        (FailureKind.UNKNOWN, ["longer-timeout", "wait-before-action"]),
    ])
    def test_kinds(self, id_failure, kind, strategies):
        context = GenerationContext(failure_kind=kind)
        candidates = FailureFallbackProvider().generate(id_failure, id_failure.element, id_failure.browser, context)

        assert [c.strategy for c in candidates] == strategies
        assert all(c.locator == "#submit-btn" for c in candidates)
        assert all(c.interaction for c in candidates)
        assert all(c.metadata["failure_kind"] == kind.value for c in candidates)

    def test_page_aware_additions(self, id_failure):
        context = GenerationContext(
            failure_kind=FailureKind.UNKNOWN,
            page=PageContext(has_loading_indicators=True, has_modals=True),
        )
        candidates = FailureFallbackProvider().generate(id_failure, id_failure.element, id_failure.browser, context)

        strategies = {c.strategy: c.priority for c in candidates}
        assert strategies["wait-for-loading"] == 9
        assert strategies["handle-modals"] == 8

    def test_interactions_are_not_shared(self, id_failure):
        context = GenerationContext(failure_kind=FailureKind.UNKNOWN)
        first = FailureFallbackProvider().generate(id_failure, id_failure.element, id_failure.browser, context)
        first[0].interaction["timeout_ms"] = 1

        second = FailureFallbackProvider().generate(id_failure, id_failure.element, id_failure.browser, context)
        assert second[0].interaction["timeout_ms"] == 30000


class TestProviderRegistry:
    """Test the closed provider registry."""

    def test_every_kind_registered(self):
        assert set(PROVIDER_REGISTRY) == set(ProviderKind)

    def test_create_providers_follows_config_order(self):
        config = HealingConfiguration(providers=[ProviderKind.FAILURE_FALLBACK, ProviderKind.ATTRIBUTE])
        providers = create_providers(config)
        assert [p.kind for p in providers] == [ProviderKind.FAILURE_FALLBACK, ProviderKind.ATTRIBUTE]

    def test_similar_element_uses_config(self):
        config = HealingConfiguration(similarity_threshold=0.7, similar_element_limit=5)
        provider = create_provider(ProviderKind.SIMILAR_ELEMENT, config)
        assert provider.threshold == 0.7
        assert provider.limit == 5

    def test_ml_provider_gets_scorer(self):
        scorer = StaticScorer([])
        provider = create_provider(ProviderKind.ML_PREDICTION, HealingConfiguration(), ml_scorer=scorer)
        assert provider.scorer is scorer
        assert not provider.is_noop

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            create_provider("teleport", HealingConfiguration())
