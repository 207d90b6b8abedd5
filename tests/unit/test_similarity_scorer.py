"""
Unit tests for element similarity scoring.
"""

import pytest

from locator_healing.core.models import ElementContext, PageElement
from locator_healing.services.similarity_scorer import SimilarityScorer


@pytest.fixture
def scorer():
    return SimilarityScorer()


@pytest.fixture
def target():
    return ElementContext.from_attributes(
        "button", {"class": "btn primary", "type": "submit"}, text="Sign in"
    )


class TestCalculateSimilarity:
    """Test the weighted similarity blend."""

    def test_identical_element(self, scorer, target):
        element = PageElement(selector="#login", tag_name="button", text="Sign in",
                              class_name="btn primary", input_type="submit")
        assert scorer.calculate_similarity(target, element) == pytest.approx(1.0)

    def test_unrelated_element(self, scorer, target):
        element = PageElement(selector="a.help", tag_name="a", text="Help")
        assert scorer.calculate_similarity(target, element) == pytest.approx(0.0)

    def test_text_weight_only_applies_when_both_have_text(self, scorer):
        target = ElementContext.from_attributes("button", {"class": "btn"})
        element = PageElement(selector="#x", tag_name="button", text="Anything", class_name="btn")
        # tag 0.2 + class 0.2 over applied 0.6
        assert scorer.calculate_similarity(target, element) == pytest.approx(0.4 / 0.6)

    def test_partial_text_overlap(self, scorer):
        assert scorer.text_similarity("Sign in now", "Sign in") == pytest.approx(2 / 3)

    def test_class_overlap(self, scorer):
        assert scorer.class_overlap("btn primary", "btn secondary") == pytest.approx(0.5)
        assert scorer.class_overlap("", "btn") == 0.0

    def test_custom_weights(self, target):
        scorer = SimilarityScorer({"text": 0.0})
        element = PageElement(selector="#x", tag_name="button", text="Other")
        assert scorer.calculate_similarity(target, element) == pytest.approx(0.2 / 0.6)


class TestRankSimilar:
    """Test ranking of the page inventory."""

    def test_threshold_is_strict_and_limit_applies(self, scorer, target):
        elements = [
            PageElement(selector="#a", tag_name="button", text="Sign in",
                        class_name="btn primary", input_type="submit"),
            PageElement(selector="#b", tag_name="button", text="Sign in", class_name="btn"),
            PageElement(selector="#c", tag_name="div", text="Footer"),
            PageElement(selector="#d", tag_name="button", text="Sign in",
                        class_name="btn primary", input_type="submit"),
        ]

        ranked = scorer.rank_similar(target, elements, threshold=0.5, limit=2)

        assert [e.selector for e, _ in ranked] == ["#a", "#d"]
        assert all(similarity > 0.5 for _, similarity in ranked)

    def test_empty_inventory(self, scorer, target):
        assert scorer.rank_similar(target, []) == []
