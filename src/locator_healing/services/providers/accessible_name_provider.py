"""Role, accessible-name and semantic text strategy provider."""

import logging
import re
from typing import List, Optional

from ...core.models import BrowserInfo, Candidate, ElementContext, FailureRecord, ProviderKind
from .. import selector_analysis as sa
from .base import GenerationContext, StrategyProvider

logger = logging.getLogger(__name__)


IMPLICIT_ROLES = {
    "a": "link",
    "button": "button",
    "img": "img",
    "select": "combobox",
    "textarea": "textbox",
    "h1": "heading",
    "h2": "heading",
    "h3": "heading",
    "h4": "heading",
    "h5": "heading",
    "h6": "heading",
}

INPUT_ROLES = {
    "": "textbox",
    "text": "textbox",
    "email": "textbox",
    "search": "searchbox",
    "tel": "textbox",
    "url": "textbox",
    "number": "spinbutton",
    "checkbox": "checkbox",
    "radio": "radio",
    "button": "button",
    "submit": "button",
    "reset": "button",
}

# Wording that changes between releases of the same UI
SYNONYMS = (
    ("document", "doc"),
    ("save document", "save doc"),
    ("cancel operation", "cancel"),
    ("username", "user name"),
    ("e-mail", "email"),
    ("sign in", "login"),
    ("sign out", "logout"),
    ("catalog", "catalogue"),
    ("colour", "color"),
    ("amount", "price"),
)

MAX_NAME_LENGTH = 50


def implicit_role(element: ElementContext) -> Optional[str]:
    """ARIA role of an element, explicit or implied by its tag."""
    explicit = (element.attributes.get("role") or "").strip()
    if explicit:
        return explicit
    tag = (element.tag_name or "").lower()
    if tag == "input":
        return INPUT_ROLES.get((element.attributes.get("type") or "").strip().lower())
    return IMPLICIT_ROLES.get(tag)


def normalize_text(text: str) -> str:
    text = re.sub(r"\s+", " ", (text or "").lower().strip())
    return re.sub(r"[^\w\s]", "", text)


def _stem(word: str) -> str:
    return re.sub(r"(ing|ed|ly|s)$", "", word)


def semantic_variants(text: str) -> List[str]:
    """
    Alternative wordings of visible text: synonym swaps in both directions and
    a naively stemmed form. The normalized text itself is not included.

    >>> semantic_variants("Sign In")
    ['login']
    """
    base = normalize_text(text)
    if not base:
        return []

    variants = []
    for first, second in SYNONYMS:
        for source, target in ((first, second), (second, first)):
            pattern = r"\b" + re.escape(normalize_text(source)) + r"\b"
            if re.search(pattern, base):
                variants.append(re.sub(pattern, target, base))

    stemmed = " ".join(_stem(token) for token in base.split()).strip()
    if stemmed:
        variants.append(stemmed)

    return [v for v in dict.fromkeys(variants) if v and v != base]


class AccessibleNameProvider(StrategyProvider):
    """
    Targets the element the way assistive technology sees it: by role plus
    accessible name, and by visible text worded the way a later release might
    word it.
    """

    kind = ProviderKind.ACCESSIBLE_NAME

    ROLE_NAME_PRIORITY = 7
    SEMANTIC_TEXT_PRIORITY = 3

    def generate(self, failure: FailureRecord, element: ElementContext, browser: BrowserInfo,
                 context: Optional[GenerationContext] = None) -> List[Candidate]:
        candidates = []
        role = implicit_role(element)
        text = (element.text or sa.extract_text(failure.selector) or "").strip()

        if role:
            names = [(element.attributes.get("aria-label") or "").strip(), text]
            for name in dict.fromkeys(n for n in names if n and len(n) <= MAX_NAME_LENGTH):
                candidates.append(self._candidate(
                    "role-name", f"role={role}[name={sa.quote(name)}]", self.ROLE_NAME_PRIORITY,
                    role=role, name=name,
                ))

        if text and len(text) <= MAX_NAME_LENGTH:
            for variant in semantic_variants(text):
                candidates.append(self._candidate(
                    "semantic-text", f"text={sa.quote(variant)}", self.SEMANTIC_TEXT_PRIORITY,
                    original=text, variant=variant,
                ))

        logger.debug(f"Accessible-name provider produced {len(candidates)} candidates for {failure.selector}")
        return candidates
