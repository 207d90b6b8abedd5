"""Stable-attribute strategy provider."""

import logging
from typing import List, Optional

from ...core.models import BrowserInfo, Candidate, ElementContext, FailureRecord, ProviderKind
from .base import ATTRIBUTE_SPECS, GenerationContext, StrategyProvider, attribute_locator, attribute_value

logger = logging.getLogger(__name__)


class AttributeProvider(StrategyProvider):
    """
    Emits one candidate per stable attribute the element carries, from test-id
    down to visible text. Priority is fixed per attribute type.
    """

    kind = ProviderKind.ATTRIBUTE

    def generate(self, failure: FailureRecord, element: ElementContext, browser: BrowserInfo,
                 context: Optional[GenerationContext] = None) -> List[Candidate]:
        candidates = []

        for spec in ATTRIBUTE_SPECS:
            value = attribute_value(spec, element, failure.selector)
            if not value:
                continue

            candidates.append(self._candidate(
                spec.strategy,
                attribute_locator(spec, value),
                spec.priority,
                attribute=spec.attribute,
                value=value,
            ))

        logger.debug(f"Attribute provider produced {len(candidates)} candidates for {failure.selector}")
        return candidates
