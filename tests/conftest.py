"""
Pytest configuration and shared fixtures for nostrpool tests.

Provides:
- Logging configuration for the whole session
- Fake relay transport fixtures (``tests/fixtures/transport.py``)
- Signing keys generated with ``nostr-sdk``
"""

import logging

import pytest
from nostr_sdk import Keys


pytest_plugins = ["tests.fixtures.transport"]


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


@pytest.fixture(scope="session")
def keys() -> Keys:
    """Fresh signing keys for the test session."""
    return Keys.generate()
