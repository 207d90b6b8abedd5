"""
Confidence Scoring for healing candidates.

Each candidate is scored on six independent factors which are combined with
fixed weights into an overall confidence. The scorer is a pure function of its
inputs and of the learning store's current state.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

from ..core.models import (
    BrowserInfo,
    Candidate,
    ConfidenceTier,
    ElementContext,
    FactorScores,
    PageContext,
    Recommendation,
    RiskNote,
    RiskSeverity,
    ScoredCandidate,
    StrategyOutcomeRecord,
)
from . import browser_compatibility as bc
from . import selector_analysis as sa

if TYPE_CHECKING:
    from .learning_store import AdaptiveLearningStore

logger = logging.getLogger(__name__)


FACTOR_WEIGHTS: Dict[str, float] = {
    "selector_stability": 0.25,
    "element_context": 0.20,
    "historical_success": 0.20,
    "browser_compatibility": 0.15,
    "page_complexity": 0.10,
    "timing": 0.10,
}

TIER_THRESHOLDS = (
    (0.8, ConfidenceTier.HIGH),
    (0.6, ConfidenceTier.MEDIUM),
    (0.4, ConfidenceTier.LOW),
)

RISK_THRESHOLD = 0.6
HIGH_RISK_THRESHOLD = 0.4

ELEMENT_TYPE_RELIABILITY = {
    "button": 0.9,
    "input": 0.85,
    "a": 0.8,
    "select": 0.85,
    "textarea": 0.8,
    "form": 0.7,
    "div": 0.5,
    "span": 0.4,
    "p": 0.3,
}

RISK_DESCRIPTIONS = {
    "selector_stability": "Selector may be fragile and prone to breaking with UI changes",
    "element_context": "Element may not be in the expected state for interaction",
    "historical_success": "Strategy has shown poor performance in similar scenarios",
    "browser_compatibility": "Strategy may not work reliably in this browser",
    "page_complexity": "Page complexity may interfere with element detection",
    "timing": "Timing issues may cause intermittent failures",
}


def clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def confidence_tier(confidence: float) -> ConfidenceTier:
    for threshold, tier in TIER_THRESHOLDS:
        if confidence >= threshold:
            return tier
    return ConfidenceTier.VERY_LOW


class ConfidenceScorer:
    """Scores candidates and explains the score."""

    def __init__(self, learning_store: Optional["AdaptiveLearningStore"] = None,
                 recent_window_days: int = 7):
        """
        Initialize the scorer.

        Args:
            learning_store: Source of per-selector reliability; unseen selectors
                count as 0.5 when absent
            recent_window_days: Window of the recent-success component
        """
        self.learning_store = learning_store
        self.recent_window = timedelta(days=recent_window_days)

    def score(self, candidate: Candidate, element: ElementContext, browser: BrowserInfo,
              page: PageContext, history: Sequence[StrategyOutcomeRecord],
              now: Optional[datetime] = None) -> ScoredCandidate:
        """
        Score one candidate.

        Args:
            candidate: Candidate to score
            element: Element context captured at failure time
            browser: Browser the failure occurred in
            page: Page-level state
            history: Outcome records relevant to the candidate's strategy or locator
            now: Reference time for the recent-history window

        Returns:
            ScoredCandidate with factor breakdown, tier, risks and recommendations
        """
        now = now or datetime.now()

        factors = FactorScores(
            selector_stability=self.score_selector_stability(candidate.locator, element),
            element_context=self.score_element_context(element),
            historical_success=self.score_historical_success(
                candidate.strategy, candidate.locator, history, now),
            browser_compatibility=self.score_browser_compatibility(candidate.locator, browser),
            page_complexity=self.score_page_complexity(page),
            timing=self.score_timing(page),
        )

        confidence = round(clamp(sum(
            value * FACTOR_WEIGHTS[name] for name, value in factors.items()
        )), 6)

        return ScoredCandidate(
            candidate=candidate,
            factors=factors,
            confidence=confidence,
            tier=confidence_tier(confidence),
            risks=self.identify_risks(factors),
            recommendations=self.recommendations(factors, confidence),
        )

    # ----------------------------------------------------------------- factors

    def score_selector_stability(self, selector: str, element: ElementContext) -> float:
        score = 0.5

        if "#" in selector and element.has_id:
            score += 0.4
        if "data-testid" in selector and element.has_test_id:
            score += 0.35
        if "aria-label" in selector and element.has_aria_label:
            score += 0.25
        if "[name=" in selector and element.has_name:
            score += 0.2
        if "." in selector and element.has_class:
            score += 0.1
        if "text=" in selector and element.has_text:
            score += 0.05

        if sa.is_xpath(selector):
            score -= 0.1
        if ":nth-child" in selector:
            score -= 0.2

        complexity = sa.selector_complexity(selector)
        if complexity > 3:
            score -= 0.1 * (complexity - 3)

        reliability = (
            self.learning_store.selector_reliability(selector) if self.learning_store else 0.5
        )
        return round(clamp(score * 0.7 + reliability * 0.3), 6)

    def score_element_context(self, element: ElementContext) -> float:
        score = 0.5

        score += 0.2 if element.is_visible else -0.3
        score += 0.15 if element.is_enabled else -0.2
        score += 0.1 if element.in_viewport else -0.1

        score += element.stable_attribute_count * 0.05
        score += ELEMENT_TYPE_RELIABILITY.get((element.tag_name or "").lower(), 0.5) * 0.1

        if element.in_shadow_dom:
            score -= 0.15
        if element.is_dynamic:
            score -= 0.1

        return round(clamp(score), 6)

    def score_historical_success(self, strategy: str, selector: str,
                                 history: Sequence[StrategyOutcomeRecord], now: datetime) -> float:
        """
        Blend of strategy, selector and recent success rates.

        With a learning store the strategy and selector rates come from its
        durable aggregates, which outlive the bounded in-memory history. The
        recent rate is always taken from the supplied history.
        """
        cutoff = now - self.recent_window
        recent_rate = _rate([r for r in history if r.timestamp >= cutoff])

        if self.learning_store is not None:
            strategy_rate = self.learning_store.success_rate(strategy=strategy)
            selector_rate = self.learning_store.success_rate(selector=selector)
        else:
            strategy_rate = _rate([r for r in history if r.strategy == strategy])
            selector_rate = _rate([r for r in history if r.selector == selector])

        return round(clamp(strategy_rate * 0.4 + selector_rate * 0.4 + recent_rate * 0.2), 6)

    def score_browser_compatibility(self, selector: str, browser: BrowserInfo) -> float:
        return round(bc.strategy_compatibility(sa.selector_type(selector), browser), 6)

    def score_page_complexity(self, page: PageContext) -> float:
        score = 0.8

        if page.dom_element_count > 5000:
            score -= 0.2
        elif page.dom_element_count > 2000:
            score -= 0.1

        if page.has_react:
            score -= 0.05
        if page.has_angular:
            score -= 0.1
        if page.has_vue:
            score -= 0.05
        if page.is_spa:
            score -= 0.1
        if page.has_ajax_loading:
            score -= 0.15
        if page.has_animations:
            score -= 0.05
        if page.has_shadow_dom:
            score -= 0.1
        if page.has_iframes:
            score -= 0.1

        return round(clamp(score), 6)

    def score_timing(self, page: PageContext) -> float:
        score = 0.7

        score += 0.2 if page.page_load_complete else -0.3

        if page.network_speed == "fast":
            score += 0.1
        elif page.network_speed == "slow":
            score -= 0.2

        if page.pending_requests > 0:
            score -= min(0.2, page.pending_requests * 0.05)

        if page.element_load_time_ms < 1000:
            score += 0.1
        elif page.element_load_time_ms > 5000:
            score -= 0.2

        return round(clamp(score), 6)

    # ------------------------------------------------------------ explanation

    def identify_risks(self, factors: FactorScores) -> List[RiskNote]:
        """Risk notes for factors below 0.6, lowest score first."""
        risks = []
        for name, value in factors.items():
            if value < RISK_THRESHOLD:
                risks.append(RiskNote(
                    factor=name,
                    severity=RiskSeverity.HIGH if value < HIGH_RISK_THRESHOLD else RiskSeverity.MEDIUM,
                    score=value,
                    description=RISK_DESCRIPTIONS[name],
                ))
        return sorted(risks, key=lambda r: r.score)

    def recommendations(self, factors: FactorScores, confidence: float) -> List[Recommendation]:
        recommendations = []

        if factors.selector_stability < 0.6:
            recommendations.append(Recommendation(
                type="selector_improvement",
                message="Prefer a stable attribute selector such as id or data-testid",
                priority="high",
                impact="Improves selector reliability by up to 40%",
            ))

        if factors.element_context < 0.5:
            recommendations.append(Recommendation(
                type="element_context",
                message="Element may not be ready for interaction. Consider adding waits.",
                priority="high",
                impact="Reduces timing-related failures",
            ))

        if factors.historical_success < 0.4:
            recommendations.append(Recommendation(
                type="strategy_change",
                message="This strategy has low historical success. Consider alternatives.",
                priority="medium",
                impact="May improve success rate based on historical data",
            ))

        if factors.browser_compatibility < 0.7:
            recommendations.append(Recommendation(
                type="browser_compatibility",
                message="Strategy may not be optimal for this browser. Consider browser-specific alternatives.",
                priority="medium",
                impact="Improves cross-browser reliability",
            ))

        if factors.page_complexity < 0.6:
            recommendations.append(Recommendation(
                type="page_complexity",
                message="Page complexity may affect reliability. Consider additional waits or simpler selectors.",
                priority="low",
                impact="Reduces complexity-related issues",
            ))

        if confidence < 0.5:
            recommendations.append(Recommendation(
                type="overall_strategy",
                message="Overall confidence is low. Consider manual review or alternative approaches.",
                priority="high",
                impact="Prevents potential test failures",
            ))

        return recommendations


def _rate(records: List[StrategyOutcomeRecord]) -> float:
    if not records:
        return 0.5
    return sum(1 for r in records if r.success) / len(records)
