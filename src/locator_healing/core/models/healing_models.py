"""Data models for the locator self-healing core."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Any
from enum import Enum


MAX_TEXT_LENGTH = 200

STABLE_ATTRIBUTE_FLAGS = {
    "id": "has_id",
    "data-testid": "has_test_id",
    "aria-label": "has_aria_label",
    "name": "has_name",
    "class": "has_class",
}


class FailureKind(Enum):
    """Closed classification of why an interaction failed."""
    ELEMENT_NOT_FOUND = "element-not-found"
    ELEMENT_NOT_INTERACTABLE = "element-not-interactable"
    ELEMENT_DETACHED = "element-detached"
    NETWORK_ISSUE = "network-issue"
    PERMISSION_ISSUE = "permission-issue"
    UNKNOWN = "unknown"


class EngineFamily(Enum):
    """Normalized browser engine families."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"
    UNKNOWN = "unknown"


class ConfidenceTier(Enum):
    """Qualitative bucket derived from the overall confidence."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very-low"


class RiskSeverity(Enum):
    """Severity of a factor that scored below the risk threshold."""
    HIGH = "high"
    MEDIUM = "medium"


class ProviderKind(Enum):
    """Built-in strategy provider kinds."""
    ATTRIBUTE = "attribute"
    STRUCTURAL = "structural"
    BROWSER_QUIRK = "browser-quirk"
    ML_PREDICTION = "ml-prediction"
    SIMILAR_ELEMENT = "similar-element"
    RELAXED_ATTRIBUTE = "relaxed-attribute"
    ACCESSIBLE_NAME = "accessible-name"
    FAILURE_FALLBACK = "failure-fallback"


class HealingState(Enum):
    """States of a single healing attempt."""
    RECEIVED = "received"
    CLASSIFIED = "classified"
    GENERATING = "generating"
    SCORING = "scoring"
    RANKED = "ranked"
    APPLYING = "applying"
    RECORDED = "recorded"
    REPORTED = "reported"


@dataclass(frozen=True)
class ElementContext:
    """Snapshot of the target element captured when the interaction failed."""
    tag_name: str = ""
    has_id: bool = False
    has_test_id: bool = False
    has_aria_label: bool = False
    has_name: bool = False
    has_class: bool = False
    has_text: bool = False
    is_visible: bool = False
    is_enabled: bool = False
    in_viewport: bool = False
    dom_depth: int = 0
    in_shadow_dom: bool = False
    is_dynamic: bool = False
    text: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    nth_child: Optional[int] = None
    dom_path: str = ""

    def __post_init__(self):
        """Bound the free-text content and copy the attribute map."""
        text = (self.text or "").strip()
        if len(text) > MAX_TEXT_LENGTH:
            text = text[:MAX_TEXT_LENGTH]
        object.__setattr__(self, "text", text)
        object.__setattr__(self, "attributes", dict(self.attributes or {}))

    @property
    def stable_attribute_count(self) -> int:
        """Number of present id/test-id/aria-label/name attributes."""
        return sum([self.has_id, self.has_test_id, self.has_aria_label, self.has_name])

    @property
    def has_stable_attribute(self) -> bool:
        return any([self.has_id, self.has_test_id, self.has_aria_label, self.has_name, self.has_class])

    @classmethod
    def from_attributes(cls, tag_name: str, attributes: Dict[str, str],
                        text: str = "", **state: Any) -> 'ElementContext':
        """Build a context whose stable-attribute flags follow the attribute map."""
        flags = {
            flag: bool(attributes.get(attr))
            for attr, flag in STABLE_ATTRIBUTE_FLAGS.items()
        }
        return cls(
            tag_name=tag_name,
            text=text,
            has_text=bool(text and text.strip()),
            attributes=attributes,
            **flags,
            **state
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag_name": self.tag_name,
            "has_id": self.has_id,
            "has_test_id": self.has_test_id,
            "has_aria_label": self.has_aria_label,
            "has_name": self.has_name,
            "has_class": self.has_class,
            "has_text": self.has_text,
            "is_visible": self.is_visible,
            "is_enabled": self.is_enabled,
            "in_viewport": self.in_viewport,
            "dom_depth": self.dom_depth,
            "in_shadow_dom": self.in_shadow_dom,
            "is_dynamic": self.is_dynamic,
            "text": self.text,
            "attributes": dict(self.attributes),
            "nth_child": self.nth_child,
            "dom_path": self.dom_path,
        }


@dataclass(frozen=True)
class Viewport:
    """Browser viewport size in CSS pixels."""
    width: int = 1280
    height: int = 720

    @property
    def area(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class BrowserInfo:
    """Browser the failure was observed in."""
    name: str = "chromium"
    engine: EngineFamily = EngineFamily.CHROMIUM
    version: str = ""
    viewport: Optional[Viewport] = None

    @property
    def major_version(self) -> Optional[int]:
        """Leading integer of the version string, if any."""
        head = (self.version or "").split(".")[0].strip()
        return int(head) if head.isdigit() else None

    @classmethod
    def from_name(cls, name: str, version: str = "",
                  viewport: Optional[Viewport] = None) -> 'BrowserInfo':
        """Create browser info with the engine family normalized from a raw name."""
        # Local import keeps the tables module free to import models.
        from ...services.browser_compatibility import normalize_engine
        return cls(name=name, engine=normalize_engine(name), version=version, viewport=viewport)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "engine": self.engine.value,
            "version": self.version,
            "viewport": {"width": self.viewport.width, "height": self.viewport.height}
            if self.viewport else None,
        }


@dataclass(frozen=True)
class PageElement:
    """One element of the page's current element inventory."""
    selector: str
    tag_name: str = ""
    text: str = ""
    class_name: str = ""
    input_type: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)


@dataclass
class PageContext:
    """Page-level state reported by the browser-automation collaborator."""
    dom_element_count: int = 0
    has_react: bool = False
    has_angular: bool = False
    has_vue: bool = False
    is_spa: bool = False
    has_ajax_loading: bool = False
    has_animations: bool = False
    has_shadow_dom: bool = False
    has_iframes: bool = False
    has_loading_indicators: bool = False
    has_modals: bool = False

    # Timing
    page_load_complete: bool = True
    network_speed: str = "medium"  # fast | medium | slow
    pending_requests: int = 0
    element_load_time_ms: float = 2000.0

    elements: List[PageElement] = field(default_factory=list)


@dataclass(frozen=True)
class FailureRecord:
    """A failed locator-driven interaction handed over by the test runner."""
    action: str
    selector: str
    error: str
    element: ElementContext
    browser: BrowserInfo
    retry_count: int = 0
    healing_attempts: int = 0
    timestamp: datetime = field(default_factory=datetime.now)
    test_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "selector": self.selector,
            "error": self.error,
            "element": self.element.to_dict(),
            "browser": self.browser.to_dict(),
            "retry_count": self.retry_count,
            "healing_attempts": self.healing_attempts,
            "timestamp": self.timestamp.isoformat(),
            "test_name": self.test_name,
        }


@dataclass
class Candidate:
    """A proposed alternative locator produced by one strategy provider."""
    strategy: str
    locator: str
    priority: int
    provider: ProviderKind
    interaction: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.priority = max(0, min(10, int(self.priority)))

    @property
    def dedupe_key(self) -> tuple:
        return (self.locator, tuple(sorted((k, repr(v)) for k, v in self.interaction.items())))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "locator": self.locator,
            "priority": self.priority,
            "provider": self.provider.value,
            "interaction": dict(self.interaction),
            "metadata": dict(self.metadata),
        }


@dataclass
class FactorScores:
    """Per-factor scores of a candidate, each within [0, 1]."""
    selector_stability: float = 0.5
    element_context: float = 0.5
    historical_success: float = 0.5
    browser_compatibility: float = 0.5
    page_complexity: float = 0.5
    timing: float = 0.5

    def items(self) -> List[tuple]:
        """Factor name/value pairs in declaration order."""
        return [
            ("selector_stability", self.selector_stability),
            ("element_context", self.element_context),
            ("historical_success", self.historical_success),
            ("browser_compatibility", self.browser_compatibility),
            ("page_complexity", self.page_complexity),
            ("timing", self.timing),
        ]

    def to_dict(self) -> Dict[str, float]:
        return dict(self.items())


@dataclass
class RiskNote:
    """A factor that scored below the risk threshold."""
    factor: str
    severity: RiskSeverity
    score: float
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "factor": self.factor,
            "severity": self.severity.value,
            "score": self.score,
            "description": self.description,
        }


@dataclass
class Recommendation:
    """Human-readable advice triggered by factor thresholds."""
    type: str
    message: str
    priority: str
    impact: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "type": self.type,
            "message": self.message,
            "priority": self.priority,
            "impact": self.impact,
        }


@dataclass
class ScoredCandidate:
    """A candidate annotated with its confidence breakdown."""
    candidate: Candidate
    factors: FactorScores
    confidence: float
    tier: ConfidenceTier
    risks: List[RiskNote] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)

    @property
    def locator(self) -> str:
        return self.candidate.locator

    @property
    def strategy(self) -> str:
        return self.candidate.strategy

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.candidate.to_dict(),
            "confidence": self.confidence,
            "tier": self.tier.value,
            "factors": self.factors.to_dict(),
            "risks": [r.to_dict() for r in self.risks],
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


@dataclass(frozen=True)
class StrategyOutcomeRecord:
    """Outcome of attempting one candidate. Append-only."""
    selector: str
    strategy: str
    success: bool
    execution_time: float
    error_kind: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selector": self.selector,
            "strategy": self.strategy,
            "success": self.success,
            "execution_time": self.execution_time,
            "error_kind": self.error_kind,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StrategyOutcomeRecord':
        data = data.copy()
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        return cls(**data)


@dataclass
class SelectorReliability:
    """Aggregate outcome state for one selector (or strategy) key."""
    attempts: int = 0
    successes: int = 0
    avg_execution_time: float = 0.0
    error_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        if self.attempts == 0:
            return 0.5
        return self.successes / self.attempts

    def apply(self, success: bool, execution_time: float, error_kind: Optional[str] = None):
        """Fold one outcome into the aggregate."""
        self.attempts += 1
        if success:
            self.successes += 1
        elif error_kind:
            self.error_counts[error_kind] = self.error_counts.get(error_kind, 0) + 1
        self.avg_execution_time += (execution_time - self.avg_execution_time) / self.attempts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "success_rate": self.success_rate,
            "avg_execution_time": self.avg_execution_time,
            "error_counts": dict(sorted(self.error_counts.items())),
        }


@dataclass
class HealingResult:
    """Outcome of one healing attempt, returned to the caller."""
    attempt_id: str
    failure: FailureRecord
    failure_kind: FailureKind
    state: HealingState
    started_at: datetime
    priority: int = 0
    state_history: List[HealingState] = field(default_factory=list)
    ranked: List[ScoredCandidate] = field(default_factory=list)
    degraded_providers: List[str] = field(default_factory=list)
    total_candidates: int = 0
    completed_at: Optional[datetime] = None
    applied_candidate: Optional[ScoredCandidate] = None

    def transition(self, state: HealingState):
        self.state = state
        self.state_history.append(state)

    @property
    def top(self) -> Optional[ScoredCandidate]:
        return self.ranked[0] if self.ranked else None

    @property
    def duration(self) -> Optional[float]:
        """Attempt duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to a dictionary for logging and display."""
        return {
            "attempt_id": self.attempt_id,
            "original_selector": self.failure.selector,
            "action": self.failure.action,
            "failure_kind": self.failure_kind.value,
            "priority": self.priority,
            "state": self.state.value,
            "state_history": [s.value for s in self.state_history],
            "ranked": [c.to_dict() for c in self.ranked],
            "degraded_providers": list(self.degraded_providers),
            "total_candidates": self.total_candidates,
            "duration": self.duration,
            "applied_locator": self.applied_candidate.locator if self.applied_candidate else None,
        }


@dataclass
class HealingConfiguration:
    """Configuration settings for the healing core."""
    enabled: bool = True
    max_candidates: int = 8
    providers: List[ProviderKind] = field(default_factory=lambda: list(ProviderKind))
    ml_timeout: float = 2.0  # seconds
    similarity_threshold: float = 0.5
    similar_element_limit: int = 3
    max_workers: int = 4

    # Learning store settings
    flush_batch_size: int = 10
    history_limit: int = 5000
    recent_window_days: int = 7

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "enabled": self.enabled,
            "max_candidates": self.max_candidates,
            "providers": [p.value for p in self.providers],
            "ml_timeout": self.ml_timeout,
            "similarity_threshold": self.similarity_threshold,
            "similar_element_limit": self.similar_element_limit,
            "max_workers": self.max_workers,
            "flush_batch_size": self.flush_batch_size,
            "history_limit": self.history_limit,
            "recent_window_days": self.recent_window_days,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HealingConfiguration':
        """Create configuration from dictionary."""
        data = data.copy()
        if "providers" in data:
            data["providers"] = [ProviderKind(p) for p in data["providers"]]
        return cls(**data)
