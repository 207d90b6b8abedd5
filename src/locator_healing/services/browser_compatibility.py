"""
Static cross-browser quirk and compatibility tables.

The tables are versioned data. They are exposed read-only for inspection and are
never mutated at runtime.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from ..core.models import BrowserInfo, EngineFamily
from . import selector_analysis as sa

TABLE_VERSION = "2024.1"


@dataclass(frozen=True)
class QuirkProfile:
    """Known interaction quirks of one engine family."""
    engine: EngineFamily
    scroll_before_click: bool
    overlapping_click: str  # force-click | javascript-click | coordinate-click
    default_wait_ms: int
    network_idle_support: bool
    animation_wait_required: bool
    preferred_selectors: Tuple[str, ...]
    scroll_behavior: str = "auto"
    retry_delay_ms: int = 100
    max_retries: int = 3

    def interaction(self) -> dict:
        """Interaction descriptor applied to candidates for this engine."""
        return {
            "engine": self.engine.value,
            "scroll_before_click": self.scroll_before_click,
            "wait_ms": self.default_wait_ms,
        }


QUIRKS: Mapping[EngineFamily, QuirkProfile] = MappingProxyType({
    EngineFamily.CHROMIUM: QuirkProfile(
        engine=EngineFamily.CHROMIUM,
        scroll_before_click=True,
        overlapping_click="force-click",
        default_wait_ms=1000,
        network_idle_support=True,
        animation_wait_required=False,
        preferred_selectors=("data-testid", "id", "aria-label", "class"),
        scroll_behavior="smooth",
        retry_delay_ms=100,
        max_retries=3,
    ),
    EngineFamily.FIREFOX: QuirkProfile(
        engine=EngineFamily.FIREFOX,
        scroll_before_click=False,
        overlapping_click="javascript-click",
        default_wait_ms=1500,
        network_idle_support=False,
        animation_wait_required=True,
        preferred_selectors=("id", "data-testid", "name"),
        retry_delay_ms=150,
        max_retries=4,
    ),
    EngineFamily.WEBKIT: QuirkProfile(
        engine=EngineFamily.WEBKIT,
        scroll_before_click=True,
        overlapping_click="coordinate-click",
        default_wait_ms=2000,
        network_idle_support=False,
        animation_wait_required=True,
        preferred_selectors=("id", "name", "data-testid", "text"),
        retry_delay_ms=200,
        max_retries=5,
    ),
})

DEFAULT_QUIRKS = QuirkProfile(
    engine=EngineFamily.UNKNOWN,
    scroll_before_click=True,
    overlapping_click="javascript-click",
    default_wait_ms=1500,
    network_idle_support=False,
    animation_wait_required=True,
    preferred_selectors=("id", "data-testid"),
    retry_delay_ms=150,
    max_retries=3,
)

# Attribute-type compatibility used when re-weighting attribute candidates.
SELECTOR_COMPATIBILITY: Mapping[EngineFamily, Mapping[str, float]] = MappingProxyType({
    EngineFamily.CHROMIUM: MappingProxyType({
        "data-testid": 0.95, "id": 0.9, "aria-label": 0.9, "class": 0.85,
        "text": 0.8, "xpath": 0.75, "css": 0.9,
    }),
    EngineFamily.FIREFOX: MappingProxyType({
        "data-testid": 0.9, "id": 0.95, "aria-label": 0.85, "class": 0.8,
        "text": 0.75, "xpath": 0.9, "css": 0.85,
    }),
    EngineFamily.WEBKIT: MappingProxyType({
        "data-testid": 0.8, "id": 0.9, "aria-label": 0.75, "class": 0.7,
        "text": 0.8, "xpath": 0.6, "css": 0.75,
    }),
})
DEFAULT_SELECTOR_COMPATIBILITY = 0.5

# Locator-type compatibility used by the confidence scorer.
STRATEGY_COMPATIBILITY: Mapping[EngineFamily, Mapping[str, float]] = MappingProxyType({
    EngineFamily.CHROMIUM: MappingProxyType({
        sa.ID_SELECTOR: 0.95, sa.DATA_TESTID: 0.9, sa.CLASS_SELECTOR: 0.85,
        sa.XPATH_SELECTOR: 0.75, sa.TEXT_SELECTOR: 0.8, sa.CSS_SELECTOR: 0.9,
    }),
    EngineFamily.FIREFOX: MappingProxyType({
        sa.ID_SELECTOR: 0.9, sa.DATA_TESTID: 0.85, sa.CLASS_SELECTOR: 0.8,
        sa.XPATH_SELECTOR: 0.9, sa.TEXT_SELECTOR: 0.75, sa.CSS_SELECTOR: 0.85,
    }),
    EngineFamily.WEBKIT: MappingProxyType({
        sa.ID_SELECTOR: 0.85, sa.DATA_TESTID: 0.8, sa.CLASS_SELECTOR: 0.75,
        sa.XPATH_SELECTOR: 0.6, sa.TEXT_SELECTOR: 0.8, sa.CSS_SELECTOR: 0.75,
    }),
})
UNKNOWN_ENGINE_COMPATIBILITY = 0.7
MISSING_STRATEGY_COMPATIBILITY = 0.6


def normalize_engine(browser_name: Optional[str]) -> EngineFamily:
    """Map a raw browser name to its engine family."""
    name = (browser_name or "").lower()

    if "chrome" in name or "chromium" in name or "edge" in name:
        return EngineFamily.CHROMIUM
    if "firefox" in name or "gecko" in name:
        return EngineFamily.FIREFOX
    if "safari" in name or "webkit" in name:
        return EngineFamily.WEBKIT
    return EngineFamily.UNKNOWN


def get_quirks(engine: EngineFamily) -> QuirkProfile:
    return QUIRKS.get(engine, DEFAULT_QUIRKS)


def selector_compatibility(attribute_type: str, engine: EngineFamily) -> float:
    """Compatibility of an attribute type (``id``, ``data-testid``, ...) on an engine."""
    table = SELECTOR_COMPATIBILITY.get(engine)
    if table is None:
        return DEFAULT_SELECTOR_COMPATIBILITY
    return table.get(attribute_type, DEFAULT_SELECTOR_COMPATIBILITY)


def version_adjustment(browser: BrowserInfo) -> float:
    """Small bonus for recent engine versions, penalty for old ones."""
    major = browser.major_version
    if major is None:
        return 0.0
    if major >= 90:
        return 0.05
    if major >= 80:
        return 0.02
    if major < 70:
        return -0.05
    return 0.0


def strategy_compatibility(locator_type: str, browser: BrowserInfo) -> float:
    """
    Compatibility score of a locator type on the given browser.

    Unknown engines score a flat 0.7 regardless of version.
    """
    table = STRATEGY_COMPATIBILITY.get(browser.engine)
    if table is None:
        return UNKNOWN_ENGINE_COMPATIBILITY

    score = table.get(locator_type, MISSING_STRATEGY_COMPATIBILITY)
    return max(0.0, min(1.0, score + version_adjustment(browser)))


def wait_time_for(engine: EngineFamily, is_complex: bool = False, has_animations: bool = False,
                  requires_network_data: bool = False) -> int:
    """
    Recommended wait in milliseconds before retrying an interaction.

    Args:
        engine: Engine family
        is_complex: Element is complex to render
        has_animations: Page animates the element
        requires_network_data: Element content depends on pending network data

    Returns:
        Wait time, capped at 10 seconds
    """
    quirks = get_quirks(engine)
    wait_ms = float(quirks.default_wait_ms)

    if is_complex:
        wait_ms *= 1.5
    if quirks.animation_wait_required and has_animations:
        wait_ms += 1000
    if requires_network_data and not quirks.network_idle_support:
        wait_ms += 2000

    return int(min(wait_ms, 10000))
