"""
Selector inspection helpers shared by the scorer, the providers and the
feature extractor.
"""

import re
from typing import Dict, Optional


# Locator types used for compatibility lookups.
DATA_TESTID = "data_testid"
ID_SELECTOR = "id_selector"
ARIA_SELECTOR = "aria_selector"
NAME_SELECTOR = "name_selector"
CLASS_SELECTOR = "class_selector"
TEXT_SELECTOR = "text_selector"
XPATH_SELECTOR = "xpath_selector"
CSS_SELECTOR = "css_selector"

_COMBINATORS = re.compile(r"[>+~]")
_ATTRIBUTES = re.compile(r"\[.*?\]")
_PSEUDO_CLASSES = re.compile(r"(?<!:):(?!:)")
_PSEUDO_ELEMENTS = re.compile(r"::")
_ID_TOKEN = re.compile(r"#([A-Za-z_][\w-]*)")
_CLASS_TOKEN = re.compile(r"\.([A-Za-z_][\w-]*)")
_NTH_CHILD = re.compile(r":nth-child\((\d+)\)")
_ATTRIBUTE_VALUE = r"\[{name}\s*=\s*['\"]?([^'\"\]]+)['\"]?\s*\]"


def is_xpath(selector: str) -> bool:
    selector = selector.strip()
    return selector.startswith("//") or selector.startswith("(//") or selector.startswith("xpath=")


def selector_type(selector: str) -> str:
    """
    Classify a locator string into one of the compatibility lookup types.

    Args:
        selector: Locator string as the automation driver would receive it

    Returns:
        One of the ``*_SELECTOR`` / ``DATA_TESTID`` constants
    """
    selector = (selector or "").strip()

    if is_xpath(selector):
        return XPATH_SELECTOR
    if selector.startswith("role="):
        return ARIA_SELECTOR
    if "data-testid" in selector:
        return DATA_TESTID
    if selector.startswith("text=") or "text=" in selector:
        return TEXT_SELECTOR
    if "[aria-label" in selector:
        return ARIA_SELECTOR
    if "[name=" in selector:
        return NAME_SELECTOR
    if _ID_TOKEN.search(selector):
        return ID_SELECTOR
    if _CLASS_TOKEN.search(selector):
        return CLASS_SELECTOR
    return CSS_SELECTOR


def selector_complexity(selector: str) -> int:
    """
    Count combinators, attribute selectors, pseudo-classes, pseudo-elements and
    descendant spaces.
    """
    selector = selector or ""
    complexity = len(_COMBINATORS.findall(selector))
    complexity += len(_ATTRIBUTES.findall(selector))
    complexity += len(_PSEUDO_CLASSES.findall(selector))
    complexity += len(_PSEUDO_ELEMENTS.findall(selector))
    complexity += selector.count(" ")
    return complexity


def feature_complexity(selector: str) -> float:
    """Normalized complexity in [0, 1] used by the ML feature layout."""
    if not selector:
        return 0.0
    score = selector.count(" ") * 0.1
    score += selector.count(">") * 0.15
    score += len(_ATTRIBUTES.findall(selector)) * 0.2
    score += len(re.findall(r":\w+", selector)) * 0.1
    return min(1.0, score)


def extract_id(selector: str) -> Optional[str]:
    match = _ID_TOKEN.search(selector or "")
    if match:
        return match.group(1)
    return extract_attribute(selector, "id")


def extract_class(selector: str) -> Optional[str]:
    match = _CLASS_TOKEN.search(selector or "")
    return match.group(1) if match else None


def extract_attribute(selector: str, name: str) -> Optional[str]:
    """Value of ``[name=...]`` inside a CSS selector, if present."""
    match = re.search(_ATTRIBUTE_VALUE.format(name=re.escape(name)), selector or "")
    return match.group(1).strip() if match else None


def extract_text(selector: str) -> Optional[str]:
    selector = (selector or "").strip()
    if selector.startswith("text="):
        return selector[len("text="):].strip().strip("'\"") or None
    return None


def extract_nth_child(selector: str) -> Optional[int]:
    match = _NTH_CHILD.search(selector or "")
    return int(match.group(1)) if match else None


def leading_tag(selector: str) -> Optional[str]:
    """Tag name a CSS selector starts with, e.g. ``div`` for ``div:nth-child(3)``."""
    match = re.match(r"\s*([A-Za-z][A-Za-z0-9-]*)", selector or "")
    if not match or is_xpath(selector) or (selector or "").strip().startswith("text="):
        return None
    return match.group(1).lower()


def quote(value: str) -> str:
    """Double-quote an attribute value for use inside a CSS selector."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def selector_flags(selector: str) -> Dict[str, bool]:
    """Boolean features of a locator string."""
    selector = selector or ""
    return {
        "has_id": "#" in selector,
        "has_class": "." in selector,
        "has_test_id": "data-testid" in selector,
        "has_text": "text=" in selector,
        "is_xpath": is_xpath(selector),
        "has_nth_child": ":nth-child" in selector,
        "has_attribute": "[" in selector,
        "has_pseudo": ":" in selector,
    }
