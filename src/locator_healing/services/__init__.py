"""
Services module for locator healing.

Failure classification, strategy providers, confidence scoring, adaptive
learning and the healing orchestrator that ties them together.
"""

from .confidence_scorer import ConfidenceScorer
from .failure_classifier import FailureClassifier, classify_failure
from .healing_orchestrator import HealingOrchestrator, create_orchestrator
from .learning_store import AdaptiveLearningStore

__all__ = [
    "AdaptiveLearningStore",
    "ConfidenceScorer",
    "FailureClassifier",
    "HealingOrchestrator",
    "classify_failure",
    "create_orchestrator",
]
