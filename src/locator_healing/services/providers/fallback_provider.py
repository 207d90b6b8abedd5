"""
Failure-kind fallback provider.

Proposes remediation that keeps the original locator and changes how the
interaction is attempted: waiting, scrolling, re-querying, forcing.
"""

from typing import Dict, List, Optional, Tuple

from ...core.models import BrowserInfo, Candidate, ElementContext, FailureKind, FailureRecord, ProviderKind
from .base import GenerationContext, StrategyProvider


LOADING_SELECTORS = (".loading", ".spinner", ".loader", "[data-loading]")
MODAL_SELECTORS = (".modal", ".dialog", ".overlay", '[role="dialog"]')

# strategy, priority, interaction
Fallback = Tuple[str, int, Dict[str, object]]

GENERIC_FALLBACKS: List[Fallback] = [
    ("longer-timeout", 6, {"timeout_ms": 30000}),
    ("wait-before-action", 5, {"wait_before_ms": 2000, "timeout_ms": 15000}),
]

FALLBACKS: Dict[FailureKind, List[Fallback]] = {
    FailureKind.ELEMENT_NOT_INTERACTABLE: [
        ("wait-for-ready", 8, {"wait_for": "visible", "timeout_ms": 15000, "force": False}),
        ("scroll-into-view", 7, {"scroll_into_view": True, "wait_for": "visible", "timeout_ms": 10000}),
        ("force-click", 5, {"force": True, "timeout_ms": 10000}),
    ],
    FailureKind.ELEMENT_DETACHED: [
        ("fresh-query", 9, {"requery": True, "wait_for": "attached", "timeout_ms": 10000}),
        ("wait-for-stability", 8, {"wait_for_stability": True, "stability_timeout_ms": 2000,
                                   "timeout_ms": 15000}),
    ],
    FailureKind.NETWORK_ISSUE: [
        ("wait-for-network", 8, {"wait_for_load_state": "networkidle", "timeout_ms": 30000}),
        ("network-retry", 7, {"retries": 3, "retry_delay_ms": 2000, "wait_for_network": True}),
    ],
    FailureKind.PERMISSION_ISSUE: GENERIC_FALLBACKS,
    FailureKind.UNKNOWN: GENERIC_FALLBACKS,
}


class FailureFallbackProvider(StrategyProvider):
    """Maps the failure kind, and what the page shows, to interaction fallbacks."""

    kind = ProviderKind.FAILURE_FALLBACK

    def generate(self, failure: FailureRecord, element: ElementContext, browser: BrowserInfo,
                 context: Optional[GenerationContext] = None) -> List[Candidate]:
        context = context or GenerationContext()
        selector = failure.selector
        candidates = []

        if context.failure_kind == FailureKind.ELEMENT_NOT_FOUND:
            candidates.append(self._fallback(
                "visible-descendant", f"{selector} >> visible=true", 6,
                {"wait_for": True, "timeout_ms": 15000}, context.failure_kind,
            ))

        for strategy, priority, interaction in FALLBACKS.get(context.failure_kind, []):
            candidates.append(self._fallback(strategy, selector, priority, interaction, context.failure_kind))

        if context.page.has_loading_indicators:
            candidates.append(self._fallback(
                "wait-for-loading", selector, 9,
                {"wait_for_hidden": list(LOADING_SELECTORS), "timeout_ms": 30000}, context.failure_kind,
            ))

        if context.page.has_modals:
            candidates.append(self._fallback(
                "handle-modals", selector, 8,
                {"dismiss_modals": True, "modal_selectors": list(MODAL_SELECTORS)}, context.failure_kind,
            ))

        return candidates

    def _fallback(self, strategy: str, locator: str, priority: int,
                  interaction: Dict[str, object], kind: FailureKind) -> Candidate:
        candidate = self._candidate(strategy, locator, priority, failure_kind=kind.value)
        candidate.interaction = dict(interaction)
        return candidate
