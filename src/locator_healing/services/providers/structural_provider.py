"""DOM-structure strategy provider for elements without stable attributes."""

from typing import List, Optional

from ...core.models import BrowserInfo, Candidate, ElementContext, FailureRecord, ProviderKind
from .. import selector_analysis as sa
from .base import GenerationContext, StrategyProvider


class StructuralProvider(StrategyProvider):
    """
    Falls back to the element's position in the DOM. Only used when the element
    has no stable attribute; every candidate is marked fragile.
    """

    kind = ProviderKind.STRUCTURAL

    DOM_PATH_PRIORITY = 3
    XPATH_PRIORITY = 2
    NTH_CHILD_PRIORITY = 1

    def generate(self, failure: FailureRecord, element: ElementContext, browser: BrowserInfo,
                 context: Optional[GenerationContext] = None) -> List[Candidate]:
        if element.has_stable_attribute:
            return []

        candidates = []
        tag = (element.tag_name or sa.leading_tag(failure.selector) or "").lower()
        position = element.nth_child or sa.extract_nth_child(failure.selector)

        if element.dom_path:
            candidates.append(self._candidate(
                "dom-path", element.dom_path, self.DOM_PATH_PRIORITY,
                fragile=True, depth=element.dom_depth,
            ))

        if tag and position:
            candidates.append(self._candidate(
                "xpath-position", f"//*[{position}][self::{tag}]", self.XPATH_PRIORITY,
                fragile=True, position=position,
            ))
            candidates.append(self._candidate(
                "css-nth-child", f"{tag}:nth-child({position})", self.NTH_CHILD_PRIORITY,
                fragile=True, position=position,
            ))

        return candidates
