"""
Redirects component input/output models.

Rules, partial-update patches, resolution outcomes and the
operation result envelopes shared by the service and the API shell.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Final

# --- Patch sentinel ---


class _Unset(Enum):
    """Marker for a patch field that was not supplied."""

    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset.UNSET


# --- Error Model ---


@dataclass(frozen=True)
class RuleError:
    """Rule operation error."""

    code: str
    message: str
    field: str | None = None


# Error codes
CONFLICT = "conflict"
NOT_FOUND = "not_found"
PERSISTENCE_ERROR = "persistence_error"
INVALID_INPUT = "invalid_input"


# --- Rule Model ---


@dataclass(frozen=True)
class Rule:
    """A registered (host, source) -> target mapping."""

    id: int
    host: str
    source: str  # e.g., "/user/{id}"
    target: str  # e.g., "https://example.com/profile?id={id}"
    created_at: datetime

    @property
    def key(self) -> tuple[str, str]:
        return (self.host, self.source)


@dataclass(frozen=True)
class NewRule:
    """A rule submitted for creation, before the store assigns an id."""

    host: str
    source: str
    target: str


@dataclass(frozen=True)
class RulePatch:
    """
    Partial update for a rule.

    Every field is either UNSET (keep the current value) or an explicit
    replacement value.
    """

    host: str | _Unset = UNSET
    source: str | _Unset = UNSET
    target: str | _Unset = UNSET

    @classmethod
    def from_updates(cls, updates: dict[str, Any]) -> RulePatch:
        """Build a patch from a mapping holding only the supplied fields."""
        return cls(
            host=updates.get("host", UNSET),
            source=updates.get("source", UNSET),
            target=updates.get("target", UNSET),
        )

    def is_empty(self) -> bool:
        return self.host is UNSET and self.source is UNSET and self.target is UNSET

    def apply_to(self, rule: Rule) -> Rule:
        """Return the rule with every supplied field replaced."""
        return replace(
            rule,
            host=rule.host if self.host is UNSET else self.host,
            source=rule.source if self.source is UNSET else self.source,
            target=rule.target if self.target is UNSET else self.target,
        )


# --- Resolution Outcomes ---


@dataclass(frozen=True)
class ExactRedirect:
    """Exact or parameterized match."""

    target: str


@dataclass(frozen=True)
class SuffixRedirect:
    """Match found on an ancestor of the requested path."""

    target: str


@dataclass(frozen=True)
class NoMatch:
    """No rule registered; points at the admin form prefilled with the path."""

    prefill_url: str


Outcome = ExactRedirect | SuffixRedirect | NoMatch


# --- Input Models ---


@dataclass(frozen=True)
class CreateRuleInput:
    """Input for creating a new rule."""

    host: str
    source: str
    target: str


@dataclass(frozen=True)
class UpdateRuleInput:
    """Input for updating an existing rule."""

    rule_id: int
    patch: RulePatch


@dataclass(frozen=True)
class DeleteRuleInput:
    """Input for deleting a rule."""

    rule_id: int


@dataclass(frozen=True)
class ResolveInput:
    """Input for resolving a request."""

    host: str
    path: str


# --- Output Models ---


@dataclass(frozen=True)
class RuleOperationOutput:
    """Output for rule operations (create, update, delete)."""

    rule: Rule | None = None
    errors: list[RuleError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class ResolveOutput:
    """Output for resolve operation."""

    outcome: Outcome
