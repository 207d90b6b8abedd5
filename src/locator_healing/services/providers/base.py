"""
Strategy provider interface and the shared stable-attribute locator table.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, NamedTuple, Optional

from ...core.models import (
    BrowserInfo,
    Candidate,
    ElementContext,
    FailureKind,
    FailureRecord,
    PageContext,
    ProviderKind,
)
from .. import selector_analysis as sa


_CSS_IDENT = re.compile(r"^[A-Za-z_][\w-]*$")


@dataclass
class GenerationContext:
    """Per-attempt inputs shared by all providers beyond the failure itself."""
    failure_kind: FailureKind = FailureKind.UNKNOWN
    page: PageContext = field(default_factory=PageContext)
    now: datetime = field(default_factory=datetime.now)


class StrategyProvider(ABC):
    """
    A generator of candidate locators from one signal source.

    Implementations must not depend on one another. Raising is allowed; the
    orchestrator turns an exception into zero candidates from this provider.
    """

    kind: ProviderKind

    @abstractmethod
    def generate(self, failure: FailureRecord, element: ElementContext, browser: BrowserInfo,
                 context: Optional[GenerationContext] = None) -> List[Candidate]:
        """Produce candidates for one failure."""

    @property
    def name(self) -> str:
        return self.kind.value

    def _candidate(self, strategy: str, locator: str, priority: int, **metadata) -> Candidate:
        return Candidate(
            strategy=strategy,
            locator=locator,
            priority=priority,
            provider=self.kind,
            metadata=metadata,
        )


class AttributeSpec(NamedTuple):
    attribute: str
    flag: str
    strategy: str
    priority: int


# Most stable first.
ATTRIBUTE_SPECS = (
    AttributeSpec("data-testid", "has_test_id", "data-testid", 10),
    AttributeSpec("id", "has_id", "id-selector", 9),
    AttributeSpec("aria-label", "has_aria_label", "aria-label", 8),
    AttributeSpec("name", "has_name", "name-attribute", 7),
    AttributeSpec("class", "has_class", "class-selector", 6),
    AttributeSpec("text", "has_text", "text-content", 4),
)

ATTRIBUTE_SPECS_BY_NAME = {spec.attribute: spec for spec in ATTRIBUTE_SPECS}


def attribute_value(spec: AttributeSpec, element: ElementContext, selector: str) -> Optional[str]:
    """
    Value of a stable attribute, recovered from the failing selector when the
    element snapshot only carries the flag.
    """
    if not getattr(element, spec.flag):
        return None

    if spec.attribute == "text":
        return element.text or sa.extract_text(selector)

    value = element.attributes.get(spec.attribute)
    if value:
        return value.strip() or None

    if spec.attribute == "id":
        return sa.extract_id(selector)
    if spec.attribute == "class":
        return sa.extract_class(selector)
    return sa.extract_attribute(selector, spec.attribute)


def attribute_locator(spec: AttributeSpec, value: str) -> str:
    """CSS (or text engine) locator selecting an element by one attribute."""
    if spec.attribute == "id":
        return f"#{value}" if _CSS_IDENT.match(value) else f"[id={sa.quote(value)}]"
    if spec.attribute == "class":
        first = value.split()[0]
        return f".{first}" if _CSS_IDENT.match(first) else f"[class~={sa.quote(first)}]"
    if spec.attribute == "text":
        return f"text={sa.quote(value)}"
    return f"[{spec.attribute}={sa.quote(value)}]"
