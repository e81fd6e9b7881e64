"""
Public Redirects.

Host-based dispatch: requests addressed to the admin host go on to the
admin routes; requests for any other host are resolved against the
redirect cache and answered with a redirect, without touching the store.

Key behaviors:
- The raw (still percent-encoded) request path is resolved verbatim
- Exact, parameterized and ancestor matches redirect to the rule target
- Unmatched paths redirect to the admin "add" form, prefilled
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from src.api.deps import request_host
from src.components.redirects import (
    NoMatch,
    RedirectEngine,
    ResolveInput,
    SuffixRedirect,
    run_resolve,
)

logger = logging.getLogger(__name__)


def request_path(request: Request) -> str:
    """Raw request path, excluding the query string."""
    raw = request.scope.get("raw_path")
    if raw:
        return bytes(raw).split(b"?", 1)[0].decode("latin-1")
    return request.url.path


def resolve_location(engine: RedirectEngine, host: str, path: str) -> str:
    """Resolve (host, path) to the Location the client should follow."""
    outcome = run_resolve(ResolveInput(host=host, path=path), engine=engine).outcome
    if isinstance(outcome, NoMatch):
        logger.debug("No rule for %s%s", host, path)
        return outcome.prefill_url
    if isinstance(outcome, SuffixRedirect):
        logger.debug("Ancestor rule for %s%s -> %s", host, path, outcome.target)
    return outcome.target


async def redirect_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Answer every non-admin host with a redirect."""
    host = request_host(request)
    settings = request.app.state.settings
    if host == settings.admin_host:
        return await call_next(request)

    engine: RedirectEngine = request.app.state.engine
    # The cache read lock blocks; keep it off the event loop.
    location = await run_in_threadpool(resolve_location, engine, host, request_path(request))
    status_code = request.app.state.rules.redirector.redirect_status_code
    return RedirectResponse(url=location, status_code=status_code)
