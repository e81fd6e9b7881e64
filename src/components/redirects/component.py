"""
Redirects component - short-link rule management and resolution.

Handles rule creation, partial update, deletion and request resolution
against a RedirectEngine.

Invariants:
- I1: (host, source) is unique across live rules
- I2: The cache mirrors exactly the rules the store holds
- I3: A failed mutation never reaches the cache
- I4: Resolution always yields an outcome, never an error
"""

from __future__ import annotations

from ._impl import RedirectEngine
from .models import (
    CreateRuleInput,
    DeleteRuleInput,
    ResolveInput,
    ResolveOutput,
    RuleError,
    RuleOperationOutput,
    UpdateRuleInput,
)


def _operation_output(rule: object, errors: list[RuleError]) -> RuleOperationOutput:
    return RuleOperationOutput(
        rule=rule if not errors else None,  # type: ignore[arg-type]
        errors=errors,
        success=len(errors) == 0,
    )


# --- Component Entry Points ---


def run_create(inp: CreateRuleInput, *, engine: RedirectEngine) -> RuleOperationOutput:
    """
    Create a new rule.

    Args:
        inp: Input containing host, source and target.
        engine: Redirect engine owning the cache.

    Returns:
        RuleOperationOutput with created rule or errors.
    """
    rule, errors = engine.coordinator.create(inp.host, inp.source, inp.target)
    return _operation_output(rule, errors)


def run_update(inp: UpdateRuleInput, *, engine: RedirectEngine) -> RuleOperationOutput:
    """
    Update an existing rule.

    Args:
        inp: Input containing rule_id and the patch to apply.
        engine: Redirect engine owning the cache.

    Returns:
        RuleOperationOutput with updated rule or errors.
    """
    rule, errors = engine.coordinator.update(inp.rule_id, inp.patch)
    return _operation_output(rule, errors)


def run_delete(inp: DeleteRuleInput, *, engine: RedirectEngine) -> RuleOperationOutput:
    """Delete a rule. The output carries the rule as it was before deletion."""
    rule, errors = engine.coordinator.delete(inp.rule_id)
    return _operation_output(rule, errors)


def run_resolve(inp: ResolveInput, *, engine: RedirectEngine) -> ResolveOutput:
    """Resolve a (host, path) pair. Never touches the store."""
    return ResolveOutput(outcome=engine.resolver.resolve(inp.host, inp.path))


def run(
    inp: CreateRuleInput | UpdateRuleInput | DeleteRuleInput | ResolveInput,
    *,
    engine: RedirectEngine,
) -> RuleOperationOutput | ResolveOutput:
    """
    Main entry point for the redirects component.

    Dispatches to appropriate handler based on input type.
    """
    if isinstance(inp, CreateRuleInput):
        return run_create(inp, engine=engine)
    elif isinstance(inp, UpdateRuleInput):
        return run_update(inp, engine=engine)
    elif isinstance(inp, DeleteRuleInput):
        return run_delete(inp, engine=engine)
    elif isinstance(inp, ResolveInput):
        return run_resolve(inp, engine=engine)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
