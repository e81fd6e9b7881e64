"""
Redirects component - short-link rule resolution and cache-consistent mutation.
"""

from ._cache import ReadWriteLock, RuleCache
from ._impl import (
    RedirectConfig,
    RedirectEngine,
    MutationCoordinator,
    Resolver,
    build_prefill_url,
    capture_parameter,
    create_redirect_engine,
    normalize_host,
    split_parameter,
    substitute,
    truncate_at_separator,
)
from .component import (
    run,
    run_create,
    run_delete,
    run_resolve,
    run_update,
)
from .models import (
    CONFLICT,
    INVALID_INPUT,
    NOT_FOUND,
    PERSISTENCE_ERROR,
    UNSET,
    CreateRuleInput,
    DeleteRuleInput,
    ExactRedirect,
    NewRule,
    NoMatch,
    Outcome,
    ResolveInput,
    ResolveOutput,
    Rule,
    RuleError,
    RuleOperationOutput,
    RulePatch,
    SuffixRedirect,
    UpdateRuleInput,
)
from .ports import RuleConflictError, RuleStoreError, RuleStorePort

__all__ = [
    # Entry points
    "run",
    "run_create",
    "run_delete",
    "run_resolve",
    "run_update",
    # Input models
    "CreateRuleInput",
    "DeleteRuleInput",
    "ResolveInput",
    "UpdateRuleInput",
    # Output models
    "ExactRedirect",
    "NoMatch",
    "Outcome",
    "ResolveOutput",
    "RuleOperationOutput",
    "SuffixRedirect",
    # Domain models
    "NewRule",
    "Rule",
    "RuleError",
    "RulePatch",
    "UNSET",
    # Error codes
    "CONFLICT",
    "INVALID_INPUT",
    "NOT_FOUND",
    "PERSISTENCE_ERROR",
    # Ports
    "RuleConflictError",
    "RuleStoreError",
    "RuleStorePort",
    # Engine
    "MutationCoordinator",
    "ReadWriteLock",
    "RedirectConfig",
    "RedirectEngine",
    "Resolver",
    "RuleCache",
    "build_prefill_url",
    "capture_parameter",
    "create_redirect_engine",
    "normalize_host",
    "split_parameter",
    "substitute",
    "truncate_at_separator",
]
