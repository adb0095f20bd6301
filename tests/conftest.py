"""Pytest configuration and fixtures."""

import os

import pytest

# Modules read settings at import time, before fixtures run
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("CARDY_ENV", "test")


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["CARDY_ENV"] = "test"
    os.environ["EMBEDDING_RETRY_BASE_DELAY"] = "0"


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so per-test environment changes apply."""
    from cardy.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
