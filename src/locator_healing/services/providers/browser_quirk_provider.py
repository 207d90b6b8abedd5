"""Browser-quirk strategy provider."""

import logging
import math
from typing import List, Optional

from ...core.models import BrowserInfo, Candidate, ElementContext, FailureKind, FailureRecord, ProviderKind
from .. import browser_compatibility as bc
from .base import ATTRIBUTE_SPECS_BY_NAME, GenerationContext, StrategyProvider, attribute_locator, attribute_value

logger = logging.getLogger(__name__)

CLICK_ACTIONS = {"click", "dblclick", "check", "uncheck", "tap", "hover"}

# Priority of the engine's overlapping-element click style.
CLICK_STYLE_PRIORITY = {
    "javascript-click": 8,
    "force-click": 7,
    "coordinate-click": 6,
}


class BrowserQuirkProvider(StrategyProvider):
    """
    Re-weights stable-attribute locators by the engine's compatibility table and
    attaches the engine's interaction profile. For elements that could not be
    interacted with it also proposes the engine's preferred click style on the
    original locator. It never invents selectors of its own.
    """

    kind = ProviderKind.BROWSER_QUIRK

    def generate(self, failure: FailureRecord, element: ElementContext, browser: BrowserInfo,
                 context: Optional[GenerationContext] = None) -> List[Candidate]:
        context = context or GenerationContext()
        quirks = bc.get_quirks(browser.engine)
        candidates = []

        for attribute in quirks.preferred_selectors:
            spec = ATTRIBUTE_SPECS_BY_NAME.get(attribute)
            if spec is None:
                continue
            value = attribute_value(spec, element, failure.selector)
            if not value:
                continue

            compatibility = bc.selector_compatibility(attribute, browser.engine)
            candidate = self._candidate(
                f"{quirks.engine.value}-{spec.strategy}",
                attribute_locator(spec, value),
                math.floor(spec.priority * compatibility),
                attribute=attribute,
                compatibility=compatibility,
                table_version=bc.TABLE_VERSION,
            )
            candidate.interaction = quirks.interaction()
            candidates.append(candidate)

        if (context.failure_kind == FailureKind.ELEMENT_NOT_INTERACTABLE
                and failure.action.lower() in CLICK_ACTIONS):
            candidate = self._candidate(
                quirks.overlapping_click,
                failure.selector,
                CLICK_STYLE_PRIORITY.get(quirks.overlapping_click, 6),
                engine=quirks.engine.value,
                table_version=bc.TABLE_VERSION,
            )
            candidate.interaction = {
                "click_style": quirks.overlapping_click,
                "scroll_before_click": quirks.scroll_before_click,
                "wait_ms": bc.wait_time_for(
                    browser.engine,
                    is_complex=element.dom_depth > 10,
                    has_animations=context.page.has_animations,
                    requires_network_data=context.page.pending_requests > 0,
                ),
                "retries": quirks.max_retries,
                "retry_delay_ms": quirks.retry_delay_ms,
            }
            candidates.append(candidate)

        logger.debug(f"Browser-quirk provider produced {len(candidates)} candidates for {browser.engine.value}")
        return candidates
