"""
Redirect engine - rule resolution and cache-consistent mutation.

Resolution runs entirely against the in-process RuleCache. Mutations go
through the MutationCoordinator, which persists first and touches the
cache only after the store has committed.

Key behaviors:
- Exact match wins over everything else
- A source may end in a single "{name}" segment captured from the path
- Unmatched paths fall back to the closest registered ancestor
- Anything else redirects to the admin form, prefilled with the path
- A rejected mutation leaves the cache exactly as it was
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from urllib.parse import quote

from ._cache import RuleCache
from .models import (
    CONFLICT,
    INVALID_INPUT,
    NOT_FOUND,
    PERSISTENCE_ERROR,
    ExactRedirect,
    NewRule,
    NoMatch,
    Outcome,
    Rule,
    RuleError,
    RulePatch,
    SuffixRedirect,
)
from .ports import RuleConflictError, RuleStoreError, RuleStorePort

logger = logging.getLogger(__name__)

# --- Configuration ---


@dataclass(frozen=True)
class RedirectConfig:
    """Redirect configuration from rules."""

    admin_host: str = "lynx"
    admin_scheme: str = "http"
    admin_port: int | None = 3000
    add_path: str = "/add"

    # Progressive suffix fallback cut points
    separators: tuple[str, ...] = ("/", ".", "?")


DEFAULT_CONFIG = RedirectConfig()


# --- Pattern Functions ---


def split_parameter(source: str) -> tuple[str, str] | None:
    """
    Split a parameterized source into (prefix, name).

    "/user/{id}" -> ("/user", "id"). The name is whatever lies between
    the right-most "/{" and the trailing "}"; it is not validated.
    """
    if not source.endswith("}"):
        return None
    start = source.rfind("/{")
    if start < 0:
        return None
    return source[:start], source[start + 2 : -1]


def capture_parameter(source: str, path: str) -> tuple[str, str, str] | None:
    """
    Match path against a parameterized source.

    Returns (prefix, name, value) where value is the raw remainder of the
    path after prefix + "/". The value must be non-empty.
    """
    parts = split_parameter(source)
    if parts is None:
        return None
    prefix, name = parts
    literal = prefix + "/"
    if not path.startswith(literal) or len(path) <= len(literal):
        return None
    return prefix, name, path[len(literal) :]


def substitute(target: str, name: str, value: str) -> str:
    """Replace every "{name}" in target with value, verbatim."""
    return target.replace("{" + name + "}", value)


def truncate_at_separator(candidate: str, separators: tuple[str, ...]) -> str | None:
    """Cut candidate at its right-most separator, or None if it has none."""
    cut = max(candidate.rfind(sep) for sep in separators)
    if cut < 0:
        return None
    return candidate[:cut]


def normalize_host(host: str) -> str:
    """Hosts compare case-insensitively; rules and lookups both use lowercase."""
    return host.lower()


def build_prefill_url(path: str, config: RedirectConfig = DEFAULT_CONFIG) -> str:
    """Admin "add rule" URL with the original path as the source query value."""
    authority = config.admin_host
    if config.admin_port is not None:
        authority = f"{authority}:{config.admin_port}"
    return f"{config.admin_scheme}://{authority}{config.add_path}?source={quote(path, safe='')}"


# --- Resolver ---


class Resolver:
    """
    Maps (host, path) to a redirect outcome.

    Read-only against the cache; never raises for any input path.
    """

    def __init__(self, cache: RuleCache, config: RedirectConfig | None = None) -> None:
        self._cache = cache
        self._config = config or DEFAULT_CONFIG

    def resolve(self, host: str, path: str) -> Outcome:
        host = normalize_host(host)
        rule = self._cache.lookup(host, path)
        if rule is not None:
            return ExactRedirect(rule.target)

        parameterized = self._match_parameterized(host, path)
        if parameterized is not None:
            return ExactRedirect(parameterized)

        ancestor = self._match_suffix(host, path)
        if ancestor is not None:
            return SuffixRedirect(ancestor.target)

        return NoMatch(build_prefill_url(path, self._config))

    def _match_parameterized(self, host: str, path: str) -> str | None:
        # Longest literal prefix wins; equal prefixes go to the oldest rule.
        best: tuple[int, int] | None = None
        result: str | None = None
        for rule in self._cache.scan_host(host):
            captured = capture_parameter(rule.source, path)
            if captured is None:
                continue
            prefix, name, value = captured
            rank = (-len(prefix), rule.id)
            if best is None or rank < best:
                best = rank
                result = substitute(rule.target, name, value)
        return result

    def _match_suffix(self, host: str, path: str) -> Rule | None:
        candidate: str | None = path
        while candidate:
            rule = self._cache.lookup(host, candidate)
            if rule is not None:
                return rule
            candidate = truncate_at_separator(candidate, self._config.separators)
        return None


# --- Mutation Coordinator ---


def _conflict_error(host: str, source: str) -> RuleError:
    return RuleError(
        code=CONFLICT,
        message=f"A link with host '{host}' and source '{source}' already exists",
        field="source",
    )


def _not_found_error(rule_id: int) -> RuleError:
    return RuleError(code=NOT_FOUND, message=f"Link {rule_id} not found")


def _persistence_error(action: str, exc: RuleStoreError) -> RuleError:
    return RuleError(code=PERSISTENCE_ERROR, message=f"Failed to {action} link: {exc}")


class MutationCoordinator:
    """
    Serializes rule mutations and keeps the cache in step with the store.

    The store call always happens outside the cache lock; the cache is
    written only after the store reports success.
    """

    def __init__(self, store: RuleStorePort, cache: RuleCache) -> None:
        self._store = store
        self._cache = cache
        self._mutex = threading.Lock()

    def startup(self) -> int:
        """Rebuild the cache from the store. Returns the number of rules loaded."""
        rules = self._store.list_all()
        self._cache.load(rules)
        logger.info("Loaded %d rules into cache", len(rules))
        return len(rules)

    def create(
        self,
        host: str,
        source: str,
        target: str,
    ) -> tuple[Rule | None, list[RuleError]]:
        """
        Create a new rule.

        Returns:
            Tuple of (rule, errors). Rule is None if the create failed.
        """
        host = normalize_host(host)
        with self._mutex:
            try:
                if self._store.has_conflict(host, source):
                    return None, [_conflict_error(host, source)]
                rule = self._store.insert(NewRule(host=host, source=source, target=target))
            except RuleConflictError:
                return None, [_conflict_error(host, source)]
            except RuleStoreError as e:
                logger.warning("Create failed for %s%s", host, source, exc_info=True)
                return None, [_persistence_error("create", e)]

            self._cache.insert(rule)

        logger.info("Created link %d: %s%s -> %s", rule.id, rule.host, rule.source, rule.target)
        return rule, []

    def update(
        self,
        rule_id: int,
        patch: RulePatch,
    ) -> tuple[Rule | None, list[RuleError]]:
        """
        Apply a partial update.

        Fields left UNSET in the patch keep their current values. The
        uniqueness check only runs when host or source actually changes.
        """
        if patch.is_empty():
            return None, [RuleError(code=INVALID_INPUT, message="No updates provided")]

        with self._mutex:
            try:
                current = self._store.get_by_id(rule_id)
                if current is None:
                    return None, [_not_found_error(rule_id)]

                merged = patch.apply_to(current)
                merged = replace(merged, host=normalize_host(merged.host))
                if merged.key != current.key and self._store.has_conflict(
                    merged.host, merged.source, exclude_id=rule_id
                ):
                    return None, [_conflict_error(merged.host, merged.source)]

                updated = self._store.update(merged)
            except RuleConflictError as e:
                return None, [_conflict_error(e.host, e.source)]
            except RuleStoreError as e:
                logger.warning("Update failed for link %d", rule_id, exc_info=True)
                return None, [_persistence_error("update", e)]

            if updated is None:
                return None, [_not_found_error(rule_id)]

            self._cache.replace(current.host, current.source, updated)

        logger.info("Updated link %d: %s%s -> %s", updated.id, updated.host, updated.source, updated.target)
        return updated, []

    def delete(self, rule_id: int) -> tuple[Rule | None, list[RuleError]]:
        """Delete a rule and drop its cache entry."""
        with self._mutex:
            try:
                current = self._store.get_by_id(rule_id)
                if current is None:
                    return None, [_not_found_error(rule_id)]
                deleted = self._store.delete(rule_id)
            except RuleStoreError as e:
                logger.warning("Delete failed for link %d", rule_id, exc_info=True)
                return None, [_persistence_error("delete", e)]

            if not deleted:
                return None, [_not_found_error(rule_id)]

            self._cache.remove(current.host, current.source)

        logger.info("Deleted link %d: %s%s", current.id, current.host, current.source)
        return current, []

    # --- Reads (store-backed, admin surface only) ---

    def get(self, rule_id: int) -> Rule | None:
        return self._store.get_by_id(rule_id)

    def list_recent(self, limit: int) -> list[Rule]:
        return self._store.list_recent(limit)

    def search(self, query: str, page: int, per_page: int) -> list[Rule]:
        offset = (page - 1) * per_page
        return self._store.search(query, per_page, offset)

    def list_by_target(self, target: str) -> list[Rule]:
        return self._store.list_by_target(target)


# --- Engine ---


@dataclass(frozen=True)
class RedirectEngine:
    """Owns the cache shared by the resolver and the coordinator."""

    cache: RuleCache
    resolver: Resolver
    coordinator: MutationCoordinator


def create_redirect_engine(
    store: RuleStorePort,
    config: RedirectConfig | None = None,
    load: bool = True,
) -> RedirectEngine:
    """Create a RedirectEngine, loading the cache from the store by default."""
    cache = RuleCache()
    engine = RedirectEngine(
        cache=cache,
        resolver=Resolver(cache, config),
        coordinator=MutationCoordinator(store, cache),
    )
    if load:
        engine.coordinator.startup()
    return engine
