"""
Redirects component port definitions.

The rule store is the durable record of rules. The redirect engine only
reaches it through this port; resolution never touches it.
"""

from __future__ import annotations

from typing import Protocol

from .models import NewRule, Rule


class RuleStoreError(Exception):
    """Raised when the store is unreachable or rejects a write."""


class RuleConflictError(RuleStoreError):
    """Raised when a write violates the (host, source) uniqueness constraint."""

    def __init__(self, host: str, source: str) -> None:
        self.host = host
        self.source = source
        super().__init__(f"Rule already exists for host '{host}' and source '{source}'")


class RuleStorePort(Protocol):
    """Repository interface for rules."""

    def list_all(self) -> list[Rule]:
        """List every live rule."""
        ...

    def get_by_id(self, rule_id: int) -> Rule | None:
        """Get rule by ID."""
        ...

    def insert(self, new_rule: NewRule) -> Rule:
        """Persist a new rule and return it with its assigned id."""
        ...

    def update(self, rule: Rule) -> Rule | None:
        """Overwrite host, source and target of an existing rule. None if gone."""
        ...

    def delete(self, rule_id: int) -> bool:
        """Delete rule. False if it did not exist."""
        ...

    def has_conflict(self, host: str, source: str, exclude_id: int | None = None) -> bool:
        """Check whether another rule already owns (host, source)."""
        ...

    def list_recent(self, limit: int) -> list[Rule]:
        """Most recently created rules first."""
        ...

    def search(self, query: str, limit: int, offset: int) -> list[Rule]:
        """Case-insensitive substring match on host, source or target."""
        ...

    def list_by_target(self, target: str) -> list[Rule]:
        """Rules whose target equals the given URL."""
        ...
