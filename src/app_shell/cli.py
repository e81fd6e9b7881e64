import argparse
import logging
import sys

import uvicorn

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.deps import Settings, get_settings
from src.api.main import build_rule_store, create_app
from src.components.redirects import (
    ExactRedirect,
    NoMatch,
    RuleStoreError,
    create_redirect_engine,
)
from src.rules.loader import load_rules, redirect_config

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")


def handle_serve(settings: Settings, args: argparse.Namespace) -> None:
    app = create_app(settings)
    uvicorn.run(
        app,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level="info",
    )


def handle_migrate(settings: Settings, args: argparse.Namespace) -> None:
    if settings.in_memory:
        print("In-memory database; nothing to migrate.")
        return
    applied = SQLiteMigrator(settings.db_path).run_migrations()
    print(f"Applied {len(applied)} migrations.")


def handle_list(settings: Settings, args: argparse.Namespace) -> None:
    store = build_rule_store(settings, migrate=False)
    for rule in store.list_all():
        print(f"{rule.id}\t{rule.host}{rule.source}\t{rule.target}")


def handle_resolve(settings: Settings, args: argparse.Namespace) -> None:
    rules = load_rules(settings.rules_path)
    store = build_rule_store(settings, migrate=False)
    engine = create_redirect_engine(store, redirect_config(rules, settings.admin_host))

    outcome = engine.resolver.resolve(args.host, args.path)
    if isinstance(outcome, NoMatch):
        print(f"no match -> {outcome.prefill_url}")
    elif isinstance(outcome, ExactRedirect):
        print(f"exact -> {outcome.target}")
    else:
        print(f"suffix -> {outcome.target}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Lynx short-link redirector")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", help="Bind address (default: $HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Bind port (default: $PORT or 3000)")

    # migrate
    subparsers.add_parser("migrate", help="Apply pending database migrations")

    # list
    subparsers.add_parser("list", help="Print every registered link")

    # resolve
    resolve_parser = subparsers.add_parser("resolve", help="Show where a request would redirect")
    resolve_parser.add_argument("host", help="Request host (e.g., go)")
    resolve_parser.add_argument("path", help="Request path (e.g., /docs/api)")

    args = parser.parse_args()

    handlers = {
        "serve": handle_serve,
        "migrate": handle_migrate,
        "list": handle_list,
        "resolve": handle_resolve,
    }

    try:
        settings = get_settings()
        handlers[args.command](settings, args)
    except (FileNotFoundError, ValueError, RuleStoreError) as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
