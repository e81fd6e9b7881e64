"""
Rule cache - in-process mirror of every live rule.

The cache is the only data source for resolution. It is keyed by
(host, source) with a per-host secondary index so the parameterized
scan only visits rules registered on the requested host.

Key behaviors:
- No expiry, no capacity limit, no eviction
- Readers share the lock; mutations take it exclusively
- Rules are frozen, so readers never observe a partially updated rule
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from .models import Rule


class ReadWriteLock:
    """
    Reader/writer lock built on a condition variable.

    Any number of readers may hold the lock together. A writer waits for
    active readers to drain, and new readers wait while a writer is
    waiting so writers cannot be starved.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class RuleCache:
    """Concurrent-safe (host, source) -> Rule mapping."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._entries: dict[tuple[str, str], Rule] = {}
        self._by_host: dict[str, dict[str, Rule]] = {}

    # --- Reads ---

    def lookup(self, host: str, source: str) -> Rule | None:
        """Exact key lookup."""
        with self._lock.read():
            return self._entries.get((host, source))

    def scan_host(self, host: str) -> list[Rule]:
        """Snapshot of every rule registered on host, order unspecified."""
        with self._lock.read():
            return list(self._by_host.get(host, {}).values())

    def snapshot(self) -> list[Rule]:
        with self._lock.read():
            return list(self._entries.values())

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    # --- Writes ---

    def load(self, rules: Iterable[Rule]) -> None:
        """Replace the entire contents in one write section."""
        entries: dict[tuple[str, str], Rule] = {}
        by_host: dict[str, dict[str, Rule]] = {}
        for rule in rules:
            entries[rule.key] = rule
            by_host.setdefault(rule.host, {})[rule.source] = rule

        with self._lock.write():
            self._entries = entries
            self._by_host = by_host

    def insert(self, rule: Rule) -> None:
        """Add or replace the entry for (rule.host, rule.source)."""
        with self._lock.write():
            self._put(rule)

    def remove(self, host: str, source: str) -> None:
        """Delete the entry if present."""
        with self._lock.write():
            self._drop(host, source)

    def replace(self, old_host: str, old_source: str, rule: Rule) -> None:
        """Move a rule from its old key to its current key in one write section."""
        with self._lock.write():
            self._drop(old_host, old_source)
            self._put(rule)

    # Callers hold the write lock.

    def _put(self, rule: Rule) -> None:
        self._entries[rule.key] = rule
        self._by_host.setdefault(rule.host, {})[rule.source] = rule

    def _drop(self, host: str, source: str) -> None:
        if self._entries.pop((host, source), None) is None:
            return
        host_rules = self._by_host.get(host)
        if host_rules is not None:
            host_rules.pop(source, None)
            if not host_rules:
                del self._by_host[host]
