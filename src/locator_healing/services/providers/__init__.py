"""
Built-in strategy providers.

The set of provider kinds is closed. ``PROVIDER_REGISTRY`` is the static dispatch
table from ProviderKind to implementation.
"""

from typing import Dict, List, Optional, Type, TYPE_CHECKING

from ...core.models import HealingConfiguration, ProviderKind
from ..feature_vector import FeatureExtractor
from .accessible_name_provider import AccessibleNameProvider
from .attribute_provider import AttributeProvider
from .base import GenerationContext, StrategyProvider
from .browser_quirk_provider import BrowserQuirkProvider
from .fallback_provider import FailureFallbackProvider
from .ml_provider import MLPredictionProvider, MLScorer, NoOpScorer
from .relaxed_attribute_provider import RelaxedAttributeProvider
from .similar_element_provider import SimilarElementProvider
from .structural_provider import StructuralProvider

if TYPE_CHECKING:
    from ..learning_store import AdaptiveLearningStore


PROVIDER_REGISTRY: Dict[ProviderKind, Type[StrategyProvider]] = {
    ProviderKind.ATTRIBUTE: AttributeProvider,
    ProviderKind.STRUCTURAL: StructuralProvider,
    ProviderKind.BROWSER_QUIRK: BrowserQuirkProvider,
    ProviderKind.ML_PREDICTION: MLPredictionProvider,
    ProviderKind.SIMILAR_ELEMENT: SimilarElementProvider,
    ProviderKind.RELAXED_ATTRIBUTE: RelaxedAttributeProvider,
    ProviderKind.ACCESSIBLE_NAME: AccessibleNameProvider,
    ProviderKind.FAILURE_FALLBACK: FailureFallbackProvider,
}


def create_provider(kind: ProviderKind, config: HealingConfiguration,
                    learning_store: Optional["AdaptiveLearningStore"] = None,
                    ml_scorer: Optional[MLScorer] = None) -> StrategyProvider:
    """
    Instantiate the built-in provider for a kind.

    Raises:
        ValueError: If the kind has no registered implementation
    """
    provider_cls = PROVIDER_REGISTRY.get(kind)
    if provider_cls is None:
        raise ValueError(f"No strategy provider registered for {kind!r}")

    if provider_cls is MLPredictionProvider:
        return MLPredictionProvider(ml_scorer, FeatureExtractor(learning_store))
    if provider_cls is SimilarElementProvider:
        return SimilarElementProvider(config.similarity_threshold, config.similar_element_limit)
    return provider_cls()


def create_providers(config: HealingConfiguration,
                     learning_store: Optional["AdaptiveLearningStore"] = None,
                     ml_scorer: Optional[MLScorer] = None) -> List[StrategyProvider]:
    """Instantiate the configured providers in configuration order."""
    return [create_provider(kind, config, learning_store, ml_scorer) for kind in config.providers]


__all__ = [
    "AccessibleNameProvider",
    "AttributeProvider",
    "BrowserQuirkProvider",
    "FailureFallbackProvider",
    "GenerationContext",
    "MLPredictionProvider",
    "MLScorer",
    "NoOpScorer",
    "PROVIDER_REGISTRY",
    "RelaxedAttributeProvider",
    "SimilarElementProvider",
    "StrategyProvider",
    "StructuralProvider",
    "create_provider",
    "create_providers",
]
