"""
tests/conftest.py -- Shared test fixtures for the login service.

This module provides:
  - accounts / sessions / analytics: function-scoped stores on tmp_path files
  - make_player(): builds a Player with a chosen id for seeding
  - _patch_lifespan(): wires test settings into app.state, bypassing real startup
  - api_client: TestClient over the real app with isolated databases

Design: SQLite files under tmp_path rather than ':memory:'. SQLAlchemy hands
each thread its own connection, and a plain in-memory DB is per-connection,
so the threaded concurrency tests and TestClient's worker threads would each
see a blank schema.

DEBUG is set before any project import so Settings() does not log the
open-login-policy warning on every instantiation.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from accounts.models import Player
from accounts.store import AccountStore
from analytics.store import AnalyticsStore
from api.main import app, build_services, close_services
from auth.sessions import SessionRegistry
from core.config import Settings

FIXED_NOW = 1_700_000_000


def make_player(player_id: str, **overrides) -> Player:
    fields = {
        "id": player_id,
        "username": f"runner{player_id}",
        "password": "hunter2",
        "key": "k" * 10,
        "migration_password": "migrate123",
    }
    fields.update(overrides)
    return Player(**fields)


def make_settings(tmp_dir: Path, **overrides) -> Settings:
    values = {
        "debug": True,
        "database_url": f"sqlite:///{tmp_dir / 'runauth.db'}",
        "analytics_db_path": tmp_dir / "analytics.db",
        "storage_timeout_seconds": 2.0,
    }
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'runauth.db'}"


@pytest.fixture
def accounts(db_url: str) -> Generator[AccountStore, None, None]:
    store = AccountStore(db_url, timeout=2.0)
    yield store
    store.close()


@pytest.fixture
def sessions(db_url: str) -> Generator[SessionRegistry, None, None]:
    registry = SessionRegistry(db_url, timeout=2.0)
    yield registry
    registry.close()


@pytest.fixture
def analytics(tmp_path: Path) -> Generator[AnalyticsStore, None, None]:
    store = AnalyticsStore(tmp_path / "analytics.db")
    yield store
    store.close()


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings):
    """Return an async context manager that replaces the real lifespan.

    Builds the same services as production, from test settings pointing at
    tmp_path databases instead of get_settings().
    """

    @asynccontextmanager
    async def test_lifespan(app):
        build_services(app, settings)
        yield
        close_services(app)

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory: pytest.TempPathFactory) -> Generator[TestClient, None, None]:
    """Yield a TestClient for the real app over isolated databases.

    One client per test module for speed. Tests reach the stores through
    client.app.state to seed and inspect accounts.
    """
    settings = make_settings(tmp_path_factory.mktemp("api"))
    app.router.lifespan_context = _patch_lifespan(settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
