"""Adapter for an injected, externally trained ML scorer."""

import logging
import math
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from ...core.exceptions import ProviderError
from ...core.models import BrowserInfo, Candidate, ElementContext, FailureRecord, ProviderKind
from ..feature_vector import FEATURE_LAYOUT_VERSION, FeatureExtractor
from .base import GenerationContext, StrategyProvider

logger = logging.getLogger(__name__)


@runtime_checkable
class MLScorer(Protocol):
    """Opaque model: feature vector in, (selector, confidence) pairs out."""

    def predict(self, feature_vector: np.ndarray) -> Sequence[Tuple[str, float]]:
        ...


class NoOpScorer:
    """Scorer used when no model is configured. Always predicts nothing."""

    def predict(self, feature_vector: np.ndarray) -> Sequence[Tuple[str, float]]:
        return []


class MLPredictionProvider(StrategyProvider):
    """
    Builds the fixed feature vector for a failure and turns the scorer's
    predictions into candidates. Malformed predictions are dropped.
    """

    kind = ProviderKind.ML_PREDICTION

    def __init__(self, scorer: Optional[MLScorer] = None,
                 feature_extractor: Optional[FeatureExtractor] = None):
        self.scorer = scorer or NoOpScorer()
        self.feature_extractor = feature_extractor or FeatureExtractor()

    @property
    def is_noop(self) -> bool:
        return isinstance(self.scorer, NoOpScorer)

    def generate(self, failure: FailureRecord, element: ElementContext, browser: BrowserInfo,
                 context: Optional[GenerationContext] = None) -> List[Candidate]:
        if self.is_noop:
            return []

        context = context or GenerationContext()
        vector = self.feature_extractor.extract(failure, context.failure_kind)
        try:
            predictions = self.scorer.predict(vector) or []
        except Exception as e:
            raise ProviderError(f"ML scorer failed: {e}", provider=self.name) from e

        candidates = []
        for rank, prediction in enumerate(predictions):
            try:
                locator, confidence = prediction
                confidence = float(confidence)
            except (TypeError, ValueError):
                logger.warning(f"Dropping malformed ML prediction: {prediction!r}")
                continue

            if not isinstance(locator, str) or not locator.strip() or not math.isfinite(confidence):
                logger.warning(f"Dropping invalid ML prediction: {prediction!r}")
                continue

            confidence = max(0.0, min(1.0, confidence))
            candidates.append(self._candidate(
                "ml-prediction",
                locator.strip(),
                round(confidence * 10),
                model_confidence=confidence,
                rank=rank,
                feature_layout_version=FEATURE_LAYOUT_VERSION,
            ))

        logger.debug(f"ML provider produced {len(candidates)} candidates")
        return candidates
