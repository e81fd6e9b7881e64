"""
In-memory rule store.

Used for local development and tests. Mirrors the SQLite store's
semantics: integer ids assigned in insertion order, unique (host, source),
most-recent-first listings.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from threading import Lock

from src.adapters.clock import ClockPort, SystemClock
from src.components.redirects import NewRule, Rule, RuleConflictError


class InMemoryRuleStore:
    """Dict-backed RuleStorePort implementation."""

    def __init__(self, clock: ClockPort | None = None) -> None:
        self._clock = clock or SystemClock()
        self._rules: dict[int, Rule] = {}
        self._next_id = 1
        self._lock = Lock()

    def list_all(self) -> list[Rule]:
        with self._lock:
            return self._newest_first(self._rules.values())

    def get_by_id(self, rule_id: int) -> Rule | None:
        with self._lock:
            return self._rules.get(rule_id)

    def insert(self, new_rule: NewRule) -> Rule:
        with self._lock:
            if self._owner(new_rule.host, new_rule.source) is not None:
                raise RuleConflictError(new_rule.host, new_rule.source)
            rule = Rule(
                id=self._next_id,
                host=new_rule.host,
                source=new_rule.source,
                target=new_rule.target,
                created_at=self._clock.now_utc(),
            )
            self._rules[rule.id] = rule
            self._next_id += 1
            return rule

    def update(self, rule: Rule) -> Rule | None:
        with self._lock:
            current = self._rules.get(rule.id)
            if current is None:
                return None
            owner = self._owner(rule.host, rule.source)
            if owner is not None and owner != rule.id:
                raise RuleConflictError(rule.host, rule.source)
            # created_at is owned by the store
            updated = replace(current, host=rule.host, source=rule.source, target=rule.target)
            self._rules[rule.id] = updated
            return updated

    def delete(self, rule_id: int) -> bool:
        with self._lock:
            return self._rules.pop(rule_id, None) is not None

    def has_conflict(self, host: str, source: str, exclude_id: int | None = None) -> bool:
        with self._lock:
            owner = self._owner(host, source)
            return owner is not None and owner != exclude_id

    def list_recent(self, limit: int) -> list[Rule]:
        return self.list_all()[:limit]

    def search(self, query: str, limit: int, offset: int) -> list[Rule]:
        needle = query.lower()
        matches = [
            r
            for r in self.list_all()
            if needle in r.source.lower() or needle in r.target.lower() or needle in r.host.lower()
        ]
        return matches[offset : offset + limit]

    def list_by_target(self, target: str) -> list[Rule]:
        return [r for r in self.list_all() if r.target == target]

    # Callers hold the lock.

    def _owner(self, host: str, source: str) -> int | None:
        for rule in self._rules.values():
            if rule.host == host and rule.source == source:
                return rule.id
        return None

    @staticmethod
    def _newest_first(rules: Iterable[Rule]) -> list[Rule]:
        return sorted(rules, key=lambda r: (r.created_at, r.id), reverse=True)
