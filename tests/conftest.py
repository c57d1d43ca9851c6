"""Root test fixtures shared across all test types.

This conftest only prepares the environment. Database fixtures live in
tests/integration/conftest.py.
"""

import os

# Set APP_ENV to testing before any app imports to disable rate limiting
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./tapcards-test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
# Never reach the Resend API from tests
os.environ["RESEND_API_KEY"] = ""

# ruff: noqa: E402 - Imports must be after env var setup
import pytest

from src.tapcards.core.audit_context import clear_audit_context
from src.tapcards.core.config import get_settings

# Clear settings cache to ensure test environment variables are picked up
get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_audit_context():
    """Request context is a contextvar; make sure nothing leaks between tests."""
    clear_audit_context()
    yield
    clear_audit_context()
