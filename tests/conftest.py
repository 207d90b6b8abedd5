"""
Pytest configuration and shared fixtures for the test suite.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add the package source to Python path for testing
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from locator_healing.core.metrics import MetricsCollector
from locator_healing.core.models import (
    BrowserInfo,
    ElementContext,
    FailureRecord,
    HealingConfiguration,
    PageContext,
)
from locator_healing.services.learning_store import AdaptiveLearningStore


@pytest.fixture
def chromium():
    """Chromium browser without a parseable version."""
    return BrowserInfo.from_name("chromium")


@pytest.fixture
def id_element():
    """A button that only carries an id, as captured after a failed click."""
    return ElementContext(tag_name="button", has_id=True)


@pytest.fixture
def positional_element():
    """A div with no stable attributes."""
    return ElementContext(tag_name="div")


@pytest.fixture
def id_failure(id_element, chromium):
    """Click on #submit-btn that timed out."""
    return FailureRecord(
        action="click",
        selector="#submit-btn",
        error="Timeout 30000ms exceeded waiting for selector '#submit-btn'",
        element=id_element,
        browser=chromium,
        test_name="Login Test",
    )


@pytest.fixture
def positional_failure(positional_element, chromium):
    """Click on div:nth-child(3) that timed out."""
    return FailureRecord(
        action="click",
        selector="div:nth-child(3)",
        error="Timeout 30000ms exceeded",
        element=positional_element,
        browser=chromium,
    )


@pytest.fixture
def page():
    """Neutral page context."""
    return PageContext()


@pytest.fixture
def memory_store():
    """Learning store without persistence."""
    store = AdaptiveLearningStore(db_path=None, register_atexit=False)
    yield store
    store.close()


@pytest.fixture
def sqlite_store(tmp_path):
    """Learning store backed by a temporary SQLite file."""
    store = AdaptiveLearningStore(
        db_path=str(tmp_path / "learning.db"),
        flush_batch_size=5,
        register_atexit=False,
    )
    yield store
    store.close()


@pytest.fixture
def metrics():
    """Isolated metrics collector."""
    return MetricsCollector()


@pytest.fixture
def healing_config():
    """Default healing configuration."""
    return HealingConfiguration()


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Set up logging for tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
