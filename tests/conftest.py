"""
Shared pytest configuration.

This file ensures the project root is on sys.path so that `import readerai`
works consistently in all tests, and provides small shared fixtures.
"""

import sys
from pathlib import Path

import pytest


# Ensure project root is importable for test modules.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from readerai.settings import Settings  # noqa: E402


@pytest.fixture
def make_settings():
    """
    Build isolated Settings instances; keyword arguments use field names,
    e.g. make_settings(environment="production").
    """

    def _make(**overrides) -> Settings:
        overrides.setdefault("environment", "development")
        overrides.setdefault("api_auth_token", None)
        overrides.setdefault("ai_gateway_api_key", None)
        return Settings(**overrides)

    return _make
