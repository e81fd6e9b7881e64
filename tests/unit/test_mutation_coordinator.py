"""
Tests for the MutationCoordinator: uniqueness, partial updates and
cache consistency on every success and failure path.
"""

from __future__ import annotations

import pytest

from src.adapters.memory_store import InMemoryRuleStore
from src.components.redirects import (
    CONFLICT,
    INVALID_INPUT,
    NOT_FOUND,
    PERSISTENCE_ERROR,
    CreateRuleInput,
    DeleteRuleInput,
    ExactRedirect,
    NewRule,
    NoMatch,
    RedirectConfig,
    RedirectEngine,
    ResolveInput,
    Rule,
    RuleConflictError,
    RulePatch,
    RuleStoreError,
    SuffixRedirect,
    UpdateRuleInput,
    create_redirect_engine,
    run,
)

# --- Failing Store ---


class FlakyRuleStore(InMemoryRuleStore):
    """In-memory store whose writes can be made to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False
        self.raise_conflict = False

    def _check(self, new_rule: NewRule | Rule) -> None:
        if self.raise_conflict:
            raise RuleConflictError(new_rule.host, new_rule.source)
        if self.fail_writes:
            raise RuleStoreError("database is locked")

    def insert(self, new_rule: NewRule) -> Rule:
        self._check(new_rule)
        return super().insert(new_rule)

    def update(self, rule: Rule) -> Rule | None:
        self._check(rule)
        return super().update(rule)

    def delete(self, rule_id: int) -> bool:
        if self.fail_writes:
            raise RuleStoreError("disk I/O error")
        return super().delete(rule_id)


@pytest.fixture
def flaky_store() -> FlakyRuleStore:
    return FlakyRuleStore()


@pytest.fixture
def flaky_engine(flaky_store: FlakyRuleStore, config: RedirectConfig) -> RedirectEngine:
    return create_redirect_engine(flaky_store, config)


# --- Startup ---


class TestStartup:
    """Cache is rebuilt from the store."""

    def test_loads_existing_rules(self, store: InMemoryRuleStore, config: RedirectConfig) -> None:
        store.insert(NewRule(host="go", source="/a", target="https://a"))
        store.insert(NewRule(host="go", source="/b", target="https://b"))

        engine = create_redirect_engine(store, config)

        assert len(engine.cache) == 2
        assert engine.resolver.resolve("go", "/a") == ExactRedirect("https://a")

    def test_deferred_load(self, store: InMemoryRuleStore, config: RedirectConfig) -> None:
        store.insert(NewRule(host="go", source="/a", target="https://a"))
        engine = create_redirect_engine(store, config, load=False)
        assert len(engine.cache) == 0
        assert engine.coordinator.startup() == 1
        assert len(engine.cache) == 1


# --- Create ---


class TestCreate:
    """Test rule creation."""

    def test_create_success(self, engine: RedirectEngine, store: InMemoryRuleStore) -> None:
        rule, errors = engine.coordinator.create("go", "/x", "https://x")

        assert errors == []
        assert rule is not None
        assert store.get_by_id(rule.id) == rule
        assert engine.cache.lookup("go", "/x") == rule

    def test_duplicate_conflicts(self, engine: RedirectEngine) -> None:
        first, _ = engine.coordinator.create("go", "/x", "https://a")
        second, errors = engine.coordinator.create("go", "/x", "https://b")

        assert second is None
        assert [e.code for e in errors] == [CONFLICT]
        assert engine.cache.snapshot() == [first]
        assert engine.resolver.resolve("go", "/x") == ExactRedirect("https://a")

    def test_same_source_other_host_allowed(self, engine: RedirectEngine) -> None:
        engine.coordinator.create("go", "/x", "https://a")
        rule, errors = engine.coordinator.create("docs", "/x", "https://b")
        assert errors == []
        assert rule is not None

    def test_host_stored_lowercase(self, engine: RedirectEngine, store: InMemoryRuleStore) -> None:
        rule, errors = engine.coordinator.create("Go", "/wiki", "https://wiki")

        assert errors == []
        assert rule is not None
        assert rule.host == "go"
        assert store.get_by_id(rule.id).host == "go"
        assert engine.resolver.resolve("go", "/wiki") == ExactRedirect("https://wiki")
        assert engine.resolver.resolve("GO", "/wiki") == ExactRedirect("https://wiki")

    def test_host_case_conflicts(self, engine: RedirectEngine) -> None:
        engine.coordinator.create("go", "/x", "https://a")

        rule, errors = engine.coordinator.create("GO", "/x", "https://b")

        assert rule is None
        assert errors[0].code == "conflict"
        assert len(engine.cache) == 1

    def test_store_conflict_signal(self, flaky_engine: RedirectEngine, flaky_store: FlakyRuleStore) -> None:
        flaky_store.raise_conflict = True
        rule, errors = flaky_engine.coordinator.create("go", "/x", "https://x")

        assert rule is None
        assert [e.code for e in errors] == [CONFLICT]
        assert len(flaky_engine.cache) == 0

    def test_persistence_failure_leaves_cache(
        self, flaky_engine: RedirectEngine, flaky_store: FlakyRuleStore
    ) -> None:
        flaky_store.fail_writes = True
        rule, errors = flaky_engine.coordinator.create("go", "/x", "https://x")

        assert rule is None
        assert [e.code for e in errors] == [PERSISTENCE_ERROR]
        assert "database is locked" in errors[0].message
        assert len(flaky_engine.cache) == 0
        assert isinstance(flaky_engine.resolver.resolve("go", "/x"), NoMatch)


# --- Update ---


class TestUpdate:
    """Test partial updates."""

    def test_update_moves_source(self, engine: RedirectEngine) -> None:
        rule, _ = engine.coordinator.create("go", "/old", "https://t")
        assert rule is not None

        updated, errors = engine.coordinator.update(rule.id, RulePatch(source="/new"))

        assert errors == []
        assert updated is not None
        assert updated.source == "/new"
        assert updated.target == "https://t"
        assert isinstance(engine.resolver.resolve("go", "/old"), NoMatch)
        assert engine.resolver.resolve("go", "/new") == ExactRedirect("https://t")

    def test_old_path_falls_to_ancestor(self, engine: RedirectEngine) -> None:
        engine.coordinator.create("go", "/docs", "https://docs")
        rule, _ = engine.coordinator.create("go", "/docs/old", "https://old")
        assert rule is not None

        engine.coordinator.update(rule.id, RulePatch(source="/docs/new"))

        assert engine.resolver.resolve("go", "/docs/old") == SuffixRedirect("https://docs")

    def test_update_target_only(self, engine: RedirectEngine, store: InMemoryRuleStore) -> None:
        rule, _ = engine.coordinator.create("go", "/x", "https://a")
        assert rule is not None

        updated, errors = engine.coordinator.update(rule.id, RulePatch(target="https://b"))

        assert errors == []
        assert updated is not None
        assert (updated.host, updated.source) == ("go", "/x")
        assert updated.created_at == rule.created_at
        assert store.get_by_id(rule.id) == updated
        assert engine.resolver.resolve("go", "/x") == ExactRedirect("https://b")
        assert len(engine.cache) == 1

    def test_update_host(self, engine: RedirectEngine) -> None:
        rule, _ = engine.coordinator.create("go", "/x", "https://a")
        assert rule is not None

        engine.coordinator.update(rule.id, RulePatch(host="docs"))

        assert isinstance(engine.resolver.resolve("go", "/x"), NoMatch)
        assert engine.resolver.resolve("docs", "/x") == ExactRedirect("https://a")

    def test_update_host_lowercased(self, engine: RedirectEngine) -> None:
        rule, _ = engine.coordinator.create("go", "/x", "https://a")
        engine.coordinator.create("docs", "/x", "https://b")
        assert rule is not None

        updated, errors = engine.coordinator.update(rule.id, RulePatch(host="DOCS"))

        assert updated is None
        assert errors[0].code == "conflict"
        assert engine.resolver.resolve("go", "/x") == ExactRedirect("https://a")

    def test_update_conflict(self, engine: RedirectEngine) -> None:
        engine.coordinator.create("go", "/a", "https://a")
        b, _ = engine.coordinator.create("go", "/b", "https://b")
        assert b is not None
        before = sorted(engine.cache.snapshot(), key=lambda r: r.id)

        updated, errors = engine.coordinator.update(b.id, RulePatch(source="/a"))

        assert updated is None
        assert [e.code for e in errors] == [CONFLICT]
        assert sorted(engine.cache.snapshot(), key=lambda r: r.id) == before

    def test_unchanged_key_skips_conflict_check(self, engine: RedirectEngine) -> None:
        rule, _ = engine.coordinator.create("go", "/x", "https://a")
        assert rule is not None

        updated, errors = engine.coordinator.update(rule.id, RulePatch(source="/x", target="https://b"))

        assert errors == []
        assert updated is not None

    def test_update_not_found(self, engine: RedirectEngine) -> None:
        updated, errors = engine.coordinator.update(999, RulePatch(target="https://b"))
        assert updated is None
        assert [e.code for e in errors] == [NOT_FOUND]

    def test_empty_patch_rejected(self, engine: RedirectEngine) -> None:
        rule, _ = engine.coordinator.create("go", "/x", "https://a")
        assert rule is not None
        updated, errors = engine.coordinator.update(rule.id, RulePatch())
        assert updated is None
        assert [e.code for e in errors] == [INVALID_INPUT]

    def test_persistence_failure_leaves_cache(
        self, flaky_engine: RedirectEngine, flaky_store: FlakyRuleStore
    ) -> None:
        rule, _ = flaky_engine.coordinator.create("go", "/old", "https://t")
        assert rule is not None
        flaky_store.fail_writes = True

        updated, errors = flaky_engine.coordinator.update(rule.id, RulePatch(source="/new"))

        assert updated is None
        assert [e.code for e in errors] == [PERSISTENCE_ERROR]
        assert flaky_engine.cache.snapshot() == [rule]
        assert flaky_engine.resolver.resolve("go", "/old") == ExactRedirect("https://t")
        assert isinstance(flaky_engine.resolver.resolve("go", "/new"), NoMatch)


# --- Delete ---


class TestDelete:
    """Test deletion."""

    def test_delete_consistency(self, engine: RedirectEngine, store: InMemoryRuleStore) -> None:
        rule, _ = engine.coordinator.create("go", "/x", "https://x")
        assert rule is not None

        deleted, errors = engine.coordinator.delete(rule.id)

        assert errors == []
        assert deleted == rule
        assert isinstance(engine.resolver.resolve("go", "/x"), NoMatch)
        assert store.list_all() == []

    def test_delete_not_found(self, engine: RedirectEngine) -> None:
        deleted, errors = engine.coordinator.delete(42)
        assert deleted is None
        assert [e.code for e in errors] == [NOT_FOUND]

    def test_persistence_failure_leaves_cache(
        self, flaky_engine: RedirectEngine, flaky_store: FlakyRuleStore
    ) -> None:
        rule, _ = flaky_engine.coordinator.create("go", "/x", "https://x")
        assert rule is not None
        flaky_store.fail_writes = True

        deleted, errors = flaky_engine.coordinator.delete(rule.id)

        assert deleted is None
        assert [e.code for e in errors] == [PERSISTENCE_ERROR]
        assert flaky_engine.resolver.resolve("go", "/x") == ExactRedirect("https://x")


# --- Read helpers ---


class TestReads:
    """Store-backed admin reads."""

    def test_search_pages(self, engine: RedirectEngine) -> None:
        for i in range(5):
            engine.coordinator.create("go", f"/docs{i}", f"https://docs/{i}")
        engine.coordinator.create("go", "/other", "https://other")

        first = engine.coordinator.search("DOCS", page=1, per_page=3)
        second = engine.coordinator.search("docs", page=2, per_page=3)

        assert len(first) == 3
        assert len(second) == 2
        assert {r.source for r in first} | {r.source for r in second} == {f"/docs{i}" for i in range(5)}

    def test_list_by_target(self, engine: RedirectEngine) -> None:
        engine.coordinator.create("go", "/a", "https://same")
        engine.coordinator.create("go", "/b", "https://same")
        engine.coordinator.create("go", "/c", "https://different")

        assert {r.source for r in engine.coordinator.list_by_target("https://same")} == {"/a", "/b"}

    def test_list_recent_newest_first(self, engine: RedirectEngine) -> None:
        engine.coordinator.create("go", "/first", "https://1")
        engine.coordinator.create("go", "/second", "https://2")

        assert [r.source for r in engine.coordinator.list_recent(1)] == ["/second"]


# --- Component entry point ---


class TestRunDispatch:
    """The component's run() dispatches on input type."""

    def test_round_trip(self, engine: RedirectEngine) -> None:
        created = run(CreateRuleInput(host="go", source="/x", target="https://x"), engine=engine)
        assert created.success
        assert created.rule is not None

        updated = run(
            UpdateRuleInput(rule_id=created.rule.id, patch=RulePatch(target="https://y")),
            engine=engine,
        )
        assert updated.success

        resolved = run(ResolveInput(host="go", path="/x"), engine=engine)
        assert resolved.outcome == ExactRedirect("https://y")  # type: ignore[union-attr]

        deleted = run(DeleteRuleInput(rule_id=created.rule.id), engine=engine)
        assert deleted.success

    def test_failure_output(self, engine: RedirectEngine) -> None:
        output = run(DeleteRuleInput(rule_id=7), engine=engine)
        assert not output.success
        assert output.rule is None  # type: ignore[union-attr]
        assert output.errors[0].code == NOT_FOUND  # type: ignore[union-attr]

    def test_unknown_input(self, engine: RedirectEngine) -> None:
        with pytest.raises(ValueError):
            run("nope", engine=engine)  # type: ignore[arg-type]
