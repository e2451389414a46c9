"""Shared fixtures: settings and in-memory collaborators."""

from __future__ import annotations

import os
import sys

import pytest

# Make the tmagent package importable when running from the repo root
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tmagent.config import Settings  # noqa: E402

from tests.fakes import FakeChannel, FakeGenerator, FakeStore, FakeWarehouse  # noqa: E402


def make_settings(**overrides) -> Settings:
    values = {
        "agent_name": "test-agent",
        "twitter_username": "tmagent",
        "twitter_target_users": "",
        "twitter_dry_run": False,
        "warehouse_table": "TOKENS",
        "warehouse_pool_max": 2,
        "warehouse_acquire_timeout": 0.5,
        "rate_limit_count": 100,
        "rate_limit_window": 60.0,
        "cache_ttl": 300.0,
        "max_thread_depth": 10,
        "tavily_api_key": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def warehouse() -> FakeWarehouse:
    return FakeWarehouse()
