"""Relaxed-attribute strategy provider: secondary attributes and combinations."""

import logging
from typing import List, Optional

from ...core.models import BrowserInfo, Candidate, ElementContext, FailureRecord, ProviderKind
from .. import selector_analysis as sa
from .base import GenerationContext, StrategyProvider

logger = logging.getLogger(__name__)


# (attribute, qualify with tag, priority). Test hooks stand alone; generic
# attributes are only unique enough together with the tag.
SECONDARY_ATTRIBUTES = (
    ("data-test", False, 9),
    ("data-cy", False, 9),
    ("placeholder", True, 5),
    ("title", True, 5),
    ("role", True, 5),
    ("type", True, 4),
)

# Attributes worth pairing, most specific first
COMBINABLE_ATTRIBUTES = ("data-testid", "id", "name", "type", "role")


def id_variations(value: str) -> List[str]:
    """
    Test-id spellings a renamed id commonly turns into.

    >>> id_variations("submit-btn")
    ['submit-btn', 'submitbtn', 'submit-button']
    """
    variants = [value, value.replace("-", "")]
    if value.endswith("-btn"):
        variants.append(value[:-len("-btn")] + "-button")
    elif value.endswith("-button"):
        variants.append(value[:-len("-button")] + "-btn")
    return list(dict.fromkeys(v for v in variants if v))


class RelaxedAttributeProvider(StrategyProvider):
    """
    Looks past the primary stable attributes: test hooks under other names,
    tag-qualified generic attributes, pairs of attributes that are unique only
    together, and test-ids derived from a failing id selector.
    """

    kind = ProviderKind.RELAXED_ATTRIBUTE

    COMBINATION_PRIORITY = 8
    TESTID_FROM_ID_PRIORITY = 4

    def generate(self, failure: FailureRecord, element: ElementContext, browser: BrowserInfo,
                 context: Optional[GenerationContext] = None) -> List[Candidate]:
        tag = (element.tag_name or sa.leading_tag(failure.selector) or "").lower()
        attributes = {
            name: value.strip() for name, value in element.attributes.items() if value and value.strip()
        }
        candidates = []

        for attribute, qualified, priority in SECONDARY_ATTRIBUTES:
            value = attributes.get(attribute)
            if not value:
                continue
            prefix = tag if qualified else ""
            candidates.append(self._candidate(
                "relaxed-attribute", f"{prefix}[{attribute}={sa.quote(value)}]", priority,
                attribute=attribute, value=value,
            ))

        paired = [name for name in COMBINABLE_ATTRIBUTES if name in attributes][:2]
        if len(paired) == 2:
            locator = tag + "".join(f"[{name}={sa.quote(attributes[name])}]" for name in paired)
            candidates.append(self._candidate(
                "attribute-combination", locator, self.COMBINATION_PRIORITY, attributes=paired,
            ))

        failed_id = sa.extract_id(failure.selector) if failure.selector.lstrip().startswith("#") else None
        if failed_id and not element.has_test_id:
            for variant in id_variations(failed_id):
                candidates.append(self._candidate(
                    "testid-from-id", f"[data-testid={sa.quote(variant)}]", self.TESTID_FROM_ID_PRIORITY,
                    source_id=failed_id, value=variant,
                ))

        logger.debug(f"Relaxed-attribute provider produced {len(candidates)} candidates for {failure.selector}")
        return candidates
