"""
Admin Links API Routes.

JSON endpoints for managing short-link rules. Every mutation goes through
the engine's MutationCoordinator so the redirect cache stays in step with
the store.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from src.api.deps import get_engine, get_rules
from src.components.redirects import (
    CONFLICT,
    NOT_FOUND,
    PERSISTENCE_ERROR,
    CreateRuleInput,
    DeleteRuleInput,
    RedirectEngine,
    Rule,
    RuleError,
    RulePatch,
    RuleStoreError,
    UpdateRuleInput,
    run_create,
    run_delete,
    run_update,
)
from src.rules.models import Rules

router = APIRouter()

# Keeps (page - 1) * per_page inside SQLite's 64-bit OFFSET
MAX_SEARCH_PAGE = 1_000_000


class CreateLinkRequest(BaseModel):
    """Request to create a link."""

    host: str = Field(..., min_length=1, description="Virtual host (e.g., go)")
    source: str = Field(..., min_length=1, description="Source pattern (e.g., /docs or /user/{id})")
    target: str = Field(..., min_length=1, description="Target URL, may embed {name}")


class UpdateLinkRequest(BaseModel):
    """Request to update a link. Omitted fields keep their current value."""

    host: str | None = Field(None, min_length=1, description="New host")
    source: str | None = Field(None, min_length=1, description="New source pattern")
    target: str | None = Field(None, min_length=1, description="New target URL")


class LinkResponse(BaseModel):
    """Link response."""

    id: int
    host: str
    source: str
    target: str
    created_at: str


class ErrorListResponse(BaseModel):
    """Error response."""

    errors: list[dict[str, Any]]


# --- Helper Functions ---


_STATUS_BY_CODE = {
    CONFLICT: 409,
    NOT_FOUND: 404,
    PERSISTENCE_ERROR: 500,
}


def _link_to_response(rule: Rule) -> LinkResponse:
    """Convert Rule to response model."""
    return LinkResponse(
        id=rule.id,
        host=rule.host,
        source=rule.source,
        target=rule.target,
        created_at=rule.created_at.isoformat(),
    )


def _serialize_errors(errors: list[RuleError]) -> list[dict[str, Any]]:
    """Serialize rule errors."""
    return [{"code": e.code, "message": e.message, "field": e.field} for e in errors]


def _raise_for_errors(errors: list[RuleError]) -> None:
    status_code = _STATUS_BY_CODE.get(errors[0].code, 400)
    raise HTTPException(status_code=status_code, detail={"errors": _serialize_errors(errors)})


def _store_failure(action: str, exc: RuleStoreError) -> HTTPException:
    error = RuleError(code=PERSISTENCE_ERROR, message=f"Failed to {action}: {exc}")
    return HTTPException(status_code=500, detail={"errors": _serialize_errors([error])})


# --- Routes ---


@router.get("", response_model=list[LinkResponse])
def list_links(
    engine: RedirectEngine = Depends(get_engine),
    rules: Rules = Depends(get_rules),
) -> list[LinkResponse]:
    """List the most recently created links."""
    try:
        links = engine.coordinator.list_recent(rules.admin_api.recent_limit)
    except RuleStoreError as e:
        raise _store_failure("fetch links", e) from e
    return [_link_to_response(r) for r in links]


@router.post(
    "",
    response_model=LinkResponse,
    responses={409: {"model": ErrorListResponse}, 500: {"model": ErrorListResponse}},
)
def create_link(
    request: CreateLinkRequest,
    engine: RedirectEngine = Depends(get_engine),
) -> LinkResponse:
    """Create a new link. Fails with 409 if (host, source) is taken."""
    output = run_create(
        CreateRuleInput(host=request.host, source=request.source, target=request.target),
        engine=engine,
    )
    if not output.success:
        _raise_for_errors(output.errors)

    assert output.rule is not None
    return _link_to_response(output.rule)


@router.get("/search", response_model=list[LinkResponse])
def search_links(
    q: str = "",
    page: int = Query(1, le=MAX_SEARCH_PAGE),
    per_page: int | None = None,
    engine: RedirectEngine = Depends(get_engine),
    rules: Rules = Depends(get_rules),
) -> list[LinkResponse]:
    """
    Search links by host, source or target.

    page is floored at 1 and rejected above MAX_SEARCH_PAGE; per_page is
    clamped to [1, search_max_per_page].
    """
    api = rules.admin_api
    page = max(page, 1)
    size = api.search_default_per_page if per_page is None else per_page
    size = min(max(size, 1), api.search_max_per_page)

    try:
        links = engine.coordinator.search(q, page, size)
    except RuleStoreError as e:
        raise _store_failure("search links", e) from e
    return [_link_to_response(r) for r in links]


@router.get(
    "/reverse",
    response_model=list[LinkResponse],
    responses={400: {"description": "Missing target"}},
)
def links_by_target(
    target: str | None = Query(None),
    engine: RedirectEngine = Depends(get_engine),
) -> list[LinkResponse]:
    """Find the links that point at a given URL."""
    if not target:
        raise HTTPException(status_code=400, detail="Missing 'target' query parameter")
    try:
        links = engine.coordinator.list_by_target(target)
    except RuleStoreError as e:
        raise _store_failure("fetch links by target", e) from e
    return [_link_to_response(r) for r in links]


@router.get(
    "/{link_id}",
    response_model=LinkResponse,
    responses={404: {"description": "Link not found"}},
)
def get_link(
    link_id: int,
    engine: RedirectEngine = Depends(get_engine),
) -> LinkResponse:
    """Get a link by ID."""
    try:
        rule = engine.coordinator.get(link_id)
    except RuleStoreError as e:
        raise _store_failure("fetch link", e) from e
    if rule is None:
        raise HTTPException(status_code=404, detail="Link not found")
    return _link_to_response(rule)


@router.put(
    "/{link_id}",
    response_model=LinkResponse,
    responses={
        400: {"model": ErrorListResponse},
        404: {"model": ErrorListResponse},
        409: {"model": ErrorListResponse},
    },
)
def update_link(
    link_id: int,
    request: UpdateLinkRequest,
    engine: RedirectEngine = Depends(get_engine),
) -> LinkResponse:
    """Update a link. Only the fields present in the body change."""
    patch = RulePatch.from_updates(request.model_dump(exclude_none=True))
    output = run_update(UpdateRuleInput(rule_id=link_id, patch=patch), engine=engine)
    if not output.success:
        _raise_for_errors(output.errors)

    assert output.rule is not None
    return _link_to_response(output.rule)


@router.delete(
    "/{link_id}",
    responses={404: {"model": ErrorListResponse}},
)
def delete_link(
    link_id: int,
    engine: RedirectEngine = Depends(get_engine),
) -> dict[str, str]:
    """Delete a link."""
    output = run_delete(DeleteRuleInput(rule_id=link_id), engine=engine)
    if not output.success:
        _raise_for_errors(output.errors)
    return {"message": "Link deleted successfully"}
