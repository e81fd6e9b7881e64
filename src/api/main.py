import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request

from src.adapters.memory_store import InMemoryRuleStore
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import SQLiteRuleStore
from src.api.deps import Settings, get_settings
from src.api.routes import admin_links
from src.api.routes.public_redirects import redirect_middleware
from src.components.redirects import RuleStorePort, create_redirect_engine
from src.rules.loader import load_rules, redirect_config

logger = logging.getLogger(__name__)


def build_rule_store(settings: Settings, migrate: bool = True) -> RuleStorePort:
    """Store selected by DATABASE_URL: SQLite by default, or "memory:"."""
    if settings.in_memory:
        logger.warning("Using in-memory rule store; links are lost on restart")
        return InMemoryRuleStore()
    if migrate:
        SQLiteMigrator(settings.db_path).run_migrations()
    return SQLiteRuleStore(settings.db_path)


def create_app(
    settings: Settings | None = None,
    store: RuleStorePort | None = None,
) -> FastAPI:
    """
    Build the application.

    Rules are loaded and the redirect cache is filled from the store here,
    before the app can serve a single request. Invalid rules fail fast.
    """
    settings = settings or get_settings()
    rules = load_rules(settings.rules_path)

    if store is None:
        store = build_rule_store(settings)

    engine = create_redirect_engine(store, redirect_config(rules, settings.admin_host))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Admin UI: http://%s:%d", settings.admin_host, settings.port)
        logger.info("Redirector: http://%s:%d", settings.default_redirect_host, settings.port)
        yield

    app = FastAPI(
        title="Lynx",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.rules = rules
    app.state.engine = engine

    app.middleware("http")(redirect_middleware)
    app.include_router(admin_links.router, prefix="/api/links", tags=["Links"])

    @app.get(rules.redirector.add_path, tags=["Links"])
    def add_link_prefill(source: str = "") -> dict[str, str]:
        """
        Landing point for unmatched short links.

        Returns the values an "add link" form would start from; the link
        itself is created with POST /api/links.
        """
        return {"host": settings.default_redirect_host, "source": source}

    @app.get("/health")
    def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", "rules": len(request.app.state.engine.cache)}

    return app
