"""Pytest collection helpers for backend test runs.

Forces testing mode before the application modules read their settings and
keeps session state in memory so no Redis server is needed.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SESSION_BACKEND", "memory")
os.environ.setdefault("APP_ENV", "test")

import pytest

from rolegate.core.config import settings


@pytest.fixture(scope="session", autouse=True)
def force_testing_mode():
    """Force TESTING=True early in the test session so imports can read it."""
    settings.TESTING = True


@pytest.fixture(scope="session")
def anyio_backend():
    # Tests expect 'asyncio' as the anyio backend
    return "asyncio"
