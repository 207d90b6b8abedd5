"""
Element similarity scoring for re-identifying a target among the page's
current elements.

Similarity is a weighted blend of text overlap, tag match, class overlap and
input-type match. Text only counts when both elements carry text, so the blend
is normalized by the weight that actually applied.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..core.models import ElementContext, PageElement


logger = logging.getLogger(__name__)


DEFAULT_WEIGHTS: Dict[str, float] = {
    "text": 0.4,
    "tag": 0.2,
    "class": 0.2,
    "type": 0.2,
}


class SimilarityScorer:
    """Scores how similar a page element is to the element that failed."""

    def __init__(self, custom_weights: Optional[Dict[str, float]] = None):
        """
        Initialize the scorer.

        Args:
            custom_weights: Optional overrides for the text/tag/class/type weights
        """
        self.weights = DEFAULT_WEIGHTS.copy()
        if custom_weights:
            self.weights.update(custom_weights)

    def calculate_similarity(self, target: ElementContext, element: PageElement) -> float:
        """
        Weighted similarity between the target and one page element.

        Args:
            target: Element context captured at failure time
            element: Candidate element from the current page

        Returns:
            Similarity in [0, 1]
        """
        score = 0.0
        applied = 0.0

        if target.text and element.text:
            score += self.text_similarity(target.text, element.text) * self.weights["text"]
            applied += self.weights["text"]

        if target.tag_name and target.tag_name.lower() == (element.tag_name or "").lower():
            score += self.weights["tag"]
        applied += self.weights["tag"]

        target_class = target.attributes.get("class", "")
        if target_class and element.class_name:
            score += self.class_overlap(target_class, element.class_name) * self.weights["class"]
        applied += self.weights["class"]

        target_type = target.attributes.get("type", "")
        if target_type and element.input_type and target_type == element.input_type:
            score += self.weights["type"]
        applied += self.weights["type"]

        if applied <= 0:
            return 0.0
        return max(0.0, min(1.0, score / applied))

    def rank_similar(self, target: ElementContext, elements: List[PageElement],
                     threshold: float = 0.5, limit: int = 3) -> List[Tuple[PageElement, float]]:
        """
        Rank page elements by similarity to the target.

        Args:
            target: Element context captured at failure time
            elements: Current page element inventory
            threshold: Elements must score strictly above this value
            limit: Maximum number of elements returned

        Returns:
            List of (element, similarity) tuples, most similar first; ties keep
            inventory order
        """
        scored = []
        for element in elements:
            similarity = self.calculate_similarity(target, element)
            if similarity > threshold:
                scored.append((element, similarity))

        scored.sort(key=lambda x: x[1], reverse=True)

        if scored:
            logger.debug(f"Found {len(scored)} similar elements, best score {scored[0][1]:.3f}")
        return scored[:limit]

    def text_similarity(self, a: str, b: str) -> float:
        """Share of words in common, relative to the longer text."""
        words_a = a.lower().split()
        words_b = b.lower().split()
        if not words_a or not words_b:
            return 0.0

        common = [word for word in words_a if word in words_b]
        return len(common) / max(len(words_a), len(words_b))

    def class_overlap(self, a: str, b: str) -> float:
        """Share of CSS classes in common, relative to the longer class list."""
        classes_a = a.split()
        classes_b = b.split()
        if not classes_a or not classes_b:
            return 0.0

        common = [cls for cls in classes_a if cls in classes_b]
        return len(common) / max(len(classes_a), len(classes_b))
