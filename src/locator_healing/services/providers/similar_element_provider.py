"""Similar-element strategy provider."""

from typing import List, Optional

from ...core.models import BrowserInfo, Candidate, ElementContext, FailureRecord, ProviderKind
from ..similarity_scorer import SimilarityScorer
from .base import GenerationContext, StrategyProvider


class SimilarElementProvider(StrategyProvider):
    """Proposes the page elements that most resemble the element that failed."""

    kind = ProviderKind.SIMILAR_ELEMENT

    def __init__(self, threshold: float = 0.5, limit: int = 3,
                 scorer: Optional[SimilarityScorer] = None):
        self.threshold = threshold
        self.limit = limit
        self.scorer = scorer or SimilarityScorer()

    def generate(self, failure: FailureRecord, element: ElementContext, browser: BrowserInfo,
                 context: Optional[GenerationContext] = None) -> List[Candidate]:
        if context is None or not context.page.elements:
            return []

        inventory = [e for e in context.page.elements if e.selector]
        ranked = self.scorer.rank_similar(element, inventory, self.threshold, self.limit)

        return [
            self._candidate(
                "similar-element",
                match.selector,
                round(similarity * 10),
                similarity=similarity,
                tag_name=match.tag_name,
                text=match.text,
            )
            for match, similarity in ranked
        ]
