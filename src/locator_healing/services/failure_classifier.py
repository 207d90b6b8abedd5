"""
Failure classification for locator healing.

Maps the raw error text of a failed interaction to a FailureKind. The rules are
ordered and the first rule with a matching substring wins; text that matches no
rule is classified as ``unknown``.
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.models import FailureKind, FailureRecord

logger = logging.getLogger(__name__)


class FailureClassifier:
    """Pure, total classifier from error text to FailureKind."""

    # Ordered; first rule with any matching substring wins.
    RULES: Tuple[Tuple[FailureKind, Tuple[str, ...]], ...] = (
        (FailureKind.ELEMENT_NOT_FOUND, ("timeout", "not found")),
        (FailureKind.ELEMENT_NOT_INTERACTABLE, ("not visible", "not clickable", "not interactable")),
        (FailureKind.ELEMENT_DETACHED, ("detached", "stale")),
        (FailureKind.NETWORK_ISSUE, ("network", "navigation")),
        (FailureKind.PERMISSION_ISSUE, ("permission", "blocked")),
    )

    BASE_PRIORITY: Dict[FailureKind, int] = {
        FailureKind.ELEMENT_NOT_FOUND: 9,
        FailureKind.ELEMENT_NOT_INTERACTABLE: 8,
        FailureKind.ELEMENT_DETACHED: 7,
        FailureKind.NETWORK_ISSUE: 6,
        FailureKind.PERMISSION_ISSUE: 5,
        FailureKind.UNKNOWN: 3,
    }

    def classify(self, error_text: Optional[Any]) -> FailureKind:
        """
        Classify an error message.

        Args:
            error_text: Raw error text; ``None`` and non-string values are accepted

        Returns:
            The first matching FailureKind, or ``FailureKind.UNKNOWN``
        """
        message = _normalize(error_text)

        for kind, needles in self.RULES:
            if any(needle in message for needle in needles):
                logger.debug(f"Classified error as {kind.value}: {message[:120]}")
                return kind

        return FailureKind.UNKNOWN

    def classify_record(self, failure: FailureRecord) -> FailureKind:
        return self.classify(failure.error)

    def priority(self, kind: FailureKind, failure_count: int = 0) -> int:
        """
        Urgency of a failure, 0-10.

        Frequently failing selectors are raised by one point above two recorded
        failures and by two points above five.
        """
        priority = self.BASE_PRIORITY.get(kind, 3)

        if failure_count > 5:
            priority += 2
        elif failure_count > 2:
            priority += 1

        return min(10, priority)

    def statistics(self, failures: Iterable[FailureRecord]) -> Dict[str, Any]:
        """
        Generate statistics about a batch of failures.

        Args:
            failures: Failure records to summarize

        Returns:
            Dictionary with total count, per-kind counts and the most common selectors
        """
        failures: List[FailureRecord] = list(failures)
        if not failures:
            return {
                "total_failures": 0,
                "failure_kinds": {},
                "most_common_selectors": {},
                "most_common_actions": {}
            }

        kind_counts = Counter(self.classify(f.error).value for f in failures)
        selector_counts = Counter(f.selector for f in failures)
        action_counts = Counter(f.action for f in failures)

        return {
            "total_failures": len(failures),
            "failure_kinds": dict(kind_counts),
            "most_common_selectors": dict(selector_counts.most_common(10)),
            "most_common_actions": dict(action_counts.most_common(5))
        }


def _normalize(error_text: Optional[Any]) -> str:
    if error_text is None:
        return ""
    if not isinstance(error_text, str):
        error_text = str(error_text)
    return error_text.lower()


_default_classifier = FailureClassifier()


def classify_failure(error_text: Optional[Any]) -> FailureKind:
    """Classify error text with the shared classifier."""
    return _default_classifier.classify(error_text)
