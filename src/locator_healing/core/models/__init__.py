"""Core data models for the locator healing engine."""

from .healing_models import (
    ElementContext,
    BrowserInfo,
    Viewport,
    PageElement,
    PageContext,
    FailureRecord,
    Candidate,
    FactorScores,
    RiskNote,
    Recommendation,
    ScoredCandidate,
    StrategyOutcomeRecord,
    SelectorReliability,
    HealingResult,
    HealingConfiguration,
    FailureKind,
    EngineFamily,
    ConfidenceTier,
    RiskSeverity,
    ProviderKind,
    HealingState
)

__all__ = [
    "ElementContext",
    "BrowserInfo",
    "Viewport",
    "PageElement",
    "PageContext",
    "FailureRecord",
    "Candidate",
    "FactorScores",
    "RiskNote",
    "Recommendation",
    "ScoredCandidate",
    "StrategyOutcomeRecord",
    "SelectorReliability",
    "HealingResult",
    "HealingConfiguration",
    "FailureKind",
    "EngineFamily",
    "ConfidenceTier",
    "RiskSeverity",
    "ProviderKind",
    "HealingState"
]
