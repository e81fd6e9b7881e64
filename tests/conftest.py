from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.adapters.clock import SteppingClock
from src.adapters.memory_store import InMemoryRuleStore
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.deps import Settings
from src.api.main import create_app
from src.components.redirects import RedirectConfig, RedirectEngine, create_redirect_engine

PROJECT_ROOT = Path(__file__).parent.parent

ADMIN_HOST = "lynx"
REDIRECT_HOST = "go"


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock(datetime(2025, 1, 1, tzinfo=UTC))


@pytest.fixture
def store(clock: SteppingClock) -> InMemoryRuleStore:
    """Fresh in-memory rule store."""
    return InMemoryRuleStore(clock=clock)


@pytest.fixture
def config() -> RedirectConfig:
    return RedirectConfig(admin_host=ADMIN_HOST, admin_port=3000)


@pytest.fixture
def engine(store: InMemoryRuleStore, config: RedirectConfig) -> RedirectEngine:
    """Engine over the in-memory store, cache loaded."""
    return create_redirect_engine(store, config)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Migrated SQLite database in a temp dir."""
    path = str(tmp_path / "lynx.db")
    SQLiteMigrator(path).run_migrations()
    return path


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.setenv("ADMIN_HOST", ADMIN_HOST)
    monkeypatch.setenv("DEFAULT_REDIRECT_HOST", REDIRECT_HOST)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'app.db'}")
    monkeypatch.setenv("LYNX_RULES_PATH", str(PROJECT_ROOT / "rules.yaml"))
    monkeypatch.delenv("PORT", raising=False)
    return Settings()


@pytest.fixture
def app_factory(settings: Settings) -> Callable[..., FastAPI]:
    def _make(store: InMemoryRuleStore | None = None) -> FastAPI:
        return create_app(settings, store=store)

    return _make


@pytest.fixture
def app(app_factory: Callable[..., FastAPI], store: InMemoryRuleStore) -> FastAPI:
    return app_factory(store)


@pytest.fixture
def admin_client(app: FastAPI) -> TestClient:
    """Client addressed to the admin host."""
    return TestClient(app, base_url=f"http://{ADMIN_HOST}")


@pytest.fixture
def redirect_client(app: FastAPI) -> TestClient:
    """Client addressed to the redirect host; redirects are not followed."""
    return TestClient(app, base_url=f"http://{REDIRECT_HOST}", follow_redirects=False)
