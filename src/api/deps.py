import os
from functools import lru_cache
from pathlib import Path

from fastapi import Request

from src.components.redirects import RedirectEngine
from src.rules.models import Rules

SQLITE_URL_PREFIX = "sqlite:///"
# DATABASE_URL value selecting the non-persistent in-memory store
MEMORY_DATABASE = "memory:"


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.admin_host = os.environ.get("ADMIN_HOST", "lynx").lower()
        self.default_redirect_host = os.environ.get("DEFAULT_REDIRECT_HOST", "go").lower()
        self.db_path = database_path(os.environ.get("DATABASE_URL", "./data/lynx.db"))
        self.rules_path = Path(os.environ.get("LYNX_RULES_PATH", str(self.base_dir / "rules.yaml")))
        self.host = os.environ.get("HOST", "0.0.0.0")

        port = os.environ.get("PORT", "3000")
        try:
            self.port = int(port)
        except ValueError:
            raise ValueError(f"PORT must be a valid number, got {port!r}") from None

    @property
    def in_memory(self) -> bool:
        return self.db_path == MEMORY_DATABASE


def database_path(url: str) -> str:
    """Accept a sqlite:/// URL, a bare filesystem path, or "memory:"."""
    if url == MEMORY_DATABASE:
        return url
    if url.startswith(SQLITE_URL_PREFIX):
        return url[len(SQLITE_URL_PREFIX) :]
    if "://" in url:
        raise ValueError(f"Unsupported DATABASE_URL scheme: {url}")
    return url


@lru_cache
def get_settings() -> Settings:
    return Settings()


def request_host(request: Request) -> str:
    """Host header without port, lowercased."""
    host = request.headers.get("host", "")
    if host.startswith("["):
        # IPv6 literal: [::1]:3000
        end = host.find("]")
        return host[: end + 1].lower() if end >= 0 else host.lower()
    return host.rsplit(":", 1)[0].lower() if ":" in host else host.lower()


# --- Engine ---
# The engine is built once per app by create_app and lives on app.state.


def get_engine(request: Request) -> RedirectEngine:
    engine: RedirectEngine = request.app.state.engine
    return engine


def get_rules(request: Request) -> Rules:
    rules: Rules = request.app.state.rules
    return rules
