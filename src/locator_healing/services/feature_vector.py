"""
Fixed-layout numeric features for the injected ML scorer.

The layout is versioned. Every slot is normalized to [0, 1] and slots without a
value are zero-filled, so identical inputs always produce identical vectors.
"""

from typing import Optional, TYPE_CHECKING

import numpy as np

from ..core.models import BrowserInfo, ElementContext, EngineFamily, FailureKind, FailureRecord
from . import selector_analysis as sa

if TYPE_CHECKING:
    from .learning_store import AdaptiveLearningStore


FEATURE_LAYOUT_VERSION = 1
FEATURE_COUNT = 25

FEATURE_NAMES = (
    # Selector characteristics
    "selector_length",
    "has_id",
    "has_class",
    "has_test_id",
    "has_text",
    "is_xpath",
    "has_nth_child",
    "selector_complexity",
    "has_attribute",
    "has_pseudo",
    # Strategy characteristics
    "strategy_priority",
    "strategy_success_rate",
    "strategy_usage_share",
    # Element context
    "element_visible",
    "element_enabled",
    "element_type",
    "element_interactable",
    "element_stability",
    # Browser and environment
    "browser_engine",
    "browser_version",
    "viewport_size",
    # Execution
    "retry_count",
    "healing_attempts",
    # Failure
    "failure_kind",
    "failure_severity",
)

STRATEGY_PRIORITY = {
    sa.DATA_TESTID: 10,
    sa.ID_SELECTOR: 9,
    sa.ARIA_SELECTOR: 8,
    sa.NAME_SELECTOR: 7,
    sa.CLASS_SELECTOR: 6,
    sa.TEXT_SELECTOR: 4,
    sa.CSS_SELECTOR: 3,
    sa.XPATH_SELECTOR: 2,
}

ELEMENT_TYPE_CODES = {
    "button": 0.1,
    "input": 0.2,
    "a": 0.3,
    "div": 0.4,
    "span": 0.5,
}

ENGINE_CODES = {
    EngineFamily.CHROMIUM: 0.1,
    EngineFamily.FIREFOX: 0.2,
    EngineFamily.WEBKIT: 0.3,
}

INTERACTABLE_TAGS = {"button", "input", "select", "textarea", "a", "label"}

FAILURE_SEVERITY = {
    FailureKind.ELEMENT_NOT_FOUND: 0.8,
    FailureKind.ELEMENT_NOT_INTERACTABLE: 0.5,
    FailureKind.ELEMENT_DETACHED: 0.7,
    FailureKind.NETWORK_ISSUE: 0.9,
    FailureKind.PERMISSION_ISSUE: 0.6,
    FailureKind.UNKNOWN: 0.5,
}


def _flag(value: bool) -> float:
    return 1.0 if value else 0.0


def encode_viewport(browser: BrowserInfo) -> float:
    viewport = browser.viewport
    if viewport is None:
        return 0.5
    if viewport.area < 800 * 600:
        return 0.2
    if viewport.area < 1920 * 1080:
        return 0.5
    return 0.8


def element_stability(element: ElementContext) -> float:
    stability = 0.5
    if element.has_id:
        stability += 0.3
    if element.has_class:
        stability += 0.1
    if element.has_test_id:
        stability += 0.4
    return min(stability, 1.0)


def encode_failure_kind(kind: FailureKind) -> float:
    kinds = list(FailureKind)
    return kinds.index(kind) / (len(kinds) - 1)


class FeatureExtractor:
    """Builds the 25-slot feature vector handed to the ML scorer."""

    def __init__(self, learning_store: Optional["AdaptiveLearningStore"] = None):
        self.learning_store = learning_store

    def extract(self, failure: FailureRecord, failure_kind: FailureKind,
                strategy: Optional[str] = None) -> np.ndarray:
        """
        Extract the feature vector for a failure.

        Args:
            failure: The failed interaction
            failure_kind: Its classification
            strategy: Strategy the failing selector was produced by; defaults to
                the locator type of the selector

        Returns:
            float64 array of length ``FEATURE_COUNT``
        """
        selector = failure.selector or ""
        element = failure.element
        browser = failure.browser
        strategy = strategy or sa.selector_type(selector)
        flags = sa.selector_flags(selector)
        tag = (element.tag_name or "").lower()

        if self.learning_store is not None:
            success_rate = self.learning_store.success_rate(strategy=strategy)
            usage_share = self.learning_store.strategy_usage_share(strategy)
        else:
            success_rate, usage_share = 0.5, 0.0

        major = browser.major_version

        values = [
            min(len(selector) / 200, 1.0),
            _flag(flags["has_id"]),
            _flag(flags["has_class"]),
            _flag(flags["has_test_id"]),
            _flag(flags["has_text"]),
            _flag(flags["is_xpath"]),
            _flag(flags["has_nth_child"]),
            sa.feature_complexity(selector),
            _flag(flags["has_attribute"]),
            _flag(flags["has_pseudo"]),
            STRATEGY_PRIORITY.get(strategy, 5) / 10,
            success_rate,
            usage_share,
            _flag(element.is_visible),
            _flag(element.is_enabled),
            ELEMENT_TYPE_CODES.get(tag, 0.6),
            _flag(tag in INTERACTABLE_TAGS),
            element_stability(element),
            ENGINE_CODES.get(browser.engine, 0.5),
            min(major / 120, 1.0) if major else 0.0,
            encode_viewport(browser),
            min(failure.retry_count / 10, 1.0),
            min(failure.healing_attempts / 5, 1.0),
            encode_failure_kind(failure_kind),
            FAILURE_SEVERITY[failure_kind],
        ]

        vector = np.zeros(FEATURE_COUNT, dtype=np.float64)
        vector[:len(values)] = values
        return np.clip(vector, 0.0, 1.0)
