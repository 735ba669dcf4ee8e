"""
Access Policy Evaluator — decides whether a caller may fire a binding.

Behavioral Contract:
- Evaluates a declarative expression tree against a TriggerContext
- Fail-closed: unknown node shapes, type mismatches and runaway trees
  evaluate to None, which is never treated as "allowed"
- Bounded: at most MAX_DEPTH nesting and MAX_NODE_COUNT visited nodes
- Never raises to the caller
"""

from typing import Any, Callable, Dict, Optional, Tuple, Union

from shell_kernel.models.action import TriggerContext
from shell_kernel.models.block import AccessPolicy

ExpressionValue = Union[bool, int, float, str, None]

MAX_DEPTH = 20
MAX_NODE_COUNT = 100


class _EvalBudget:
    def __init__(self):
        self.depth = 0
        self.count = 0


class _BudgetExceeded(Exception):
    pass


def _eval_literal(node: dict, ctx: TriggerContext, budget: _EvalBudget) -> ExpressionValue:
    value = node.get("value")
    if isinstance(value, (bool, int, float, str)):
        return value
    return None


def _eval_ref(node: dict, ctx: TriggerContext, budget: _EvalBudget) -> ExpressionValue:
    key = node.get("key")
    if not isinstance(key, str) or not key:
        return None

    ref_type = node.get("refType")
    if ref_type == "permission":
        return key in ctx.permissions
    if ref_type == "role":
        return key in ctx.roles
    if ref_type == "uiState":
        return ctx.ui.get(key)
    if ref_type == "surfaceState":
        return ctx.data.get(key)
    return None


def _eval_not(node: dict, ctx: TriggerContext, budget: _EvalBudget) -> ExpressionValue:
    operand = _evaluate(node.get("expr"), ctx, budget)
    # Negating a non-boolean would turn a fail-closed None into True
    if isinstance(operand, bool):
        return not operand
    return None


def _eval_and(node: dict, ctx: TriggerContext, budget: _EvalBudget) -> ExpressionValue:
    exprs = node.get("exprs")
    if not isinstance(exprs, list):
        return None
    for sub in exprs:
        if _evaluate(sub, ctx, budget) is not True:
            return False
    return True


def _eval_or(node: dict, ctx: TriggerContext, budget: _EvalBudget) -> ExpressionValue:
    exprs = node.get("exprs")
    if not isinstance(exprs, list):
        return None
    for sub in exprs:
        if _evaluate(sub, ctx, budget) is True:
            return True
    return False


def _same_kind(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool)
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return True
    return type(left) is type(right)


_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


def _eval_cmp(node: dict, ctx: TriggerContext, budget: _EvalBudget) -> ExpressionValue:
    left = _evaluate(node.get("left"), ctx, budget)
    right = _evaluate(node.get("right"), ctx, budget)
    op = node.get("op")

    if left is None or right is None:
        if op == "==":
            return left is right
        if op == "!=":
            return left is not right
        return False

    if not _same_kind(left, right):
        return False

    comparator = _COMPARATORS.get(op)
    if comparator is None:
        return False
    return comparator(left, right)


def _eval_in(node: dict, ctx: TriggerContext, budget: _EvalBudget) -> ExpressionValue:
    item = _evaluate(node.get("item"), ctx, budget)
    candidates = node.get("set")
    # Only an inline list of expressions is supported; refs cannot yield lists
    if item is None or not isinstance(candidates, list):
        return False
    for candidate in candidates:
        value = _evaluate(candidate, ctx, budget)
        if value is not None and _same_kind(item, value) and value == item:
            return True
    return False


def _eval_exists(node: dict, ctx: TriggerContext, budget: _EvalBudget) -> ExpressionValue:
    return _evaluate(node.get("expr"), ctx, budget) is not None


# Node registry: maps expression kinds to evaluation functions
_NODE_EVALUATORS: Dict[str, Callable[[dict, TriggerContext, _EvalBudget], ExpressionValue]] = {
    "literal": _eval_literal,
    "ref": _eval_ref,
    "not": _eval_not,
    "and": _eval_and,
    "or": _eval_or,
    "cmp": _eval_cmp,
    "in": _eval_in,
    "exists": _eval_exists,
}


def _evaluate(node: Any, ctx: TriggerContext, budget: _EvalBudget) -> ExpressionValue:
    budget.count += 1
    if budget.count > MAX_NODE_COUNT:
        raise _BudgetExceeded()
    if budget.depth >= MAX_DEPTH:
        return None

    if not isinstance(node, dict):
        return None
    evaluator = _NODE_EVALUATORS.get(node.get("kind"))
    if evaluator is None:
        return None

    budget.depth += 1
    try:
        return evaluator(node, ctx, budget)
    finally:
        budget.depth -= 1


def evaluate_expression(expr: Any, ctx: TriggerContext) -> ExpressionValue:
    """Evaluate an expression tree. Any failure yields None."""
    try:
        return _evaluate(expr, ctx, _EvalBudget())
    except _BudgetExceeded:
        return None
    except (TypeError, ValueError, AttributeError):
        return None


def evaluate_boolean(expr: Any, ctx: TriggerContext) -> bool:
    """True only when the expression evaluates to exactly True."""
    if isinstance(expr, str):
        # Shorthand: a bare string names a required permission
        return expr in ctx.permissions
    return evaluate_expression(expr, ctx) is True


def _describe_denial(expr: Any) -> str:
    if isinstance(expr, str):
        return f"missing permission '{expr}'"
    if isinstance(expr, dict) and expr.get("kind") == "ref":
        ref_type = expr.get("refType")
        if ref_type in ("permission", "role"):
            return f"missing {ref_type} '{expr.get('key')}'"
        return f"unknown refType '{ref_type}'"
    return "policy expression evaluated false"


def check_access(
    policy: Optional[Union[AccessPolicy, dict]],
    ctx: TriggerContext,
) -> Tuple[bool, Optional[str]]:
    """
    Check an optional access policy.

    Returns ``(allowed, reason)``; ``reason`` is a human-readable denial
    explanation when not allowed.
    """
    if policy is None:
        return True, None
    if isinstance(policy, AccessPolicy):
        expr = policy.expr
    elif isinstance(policy, dict):
        expr = policy.get("expr")
    else:
        return False, "malformed access policy"

    if expr is None:
        return True, None
    if evaluate_boolean(expr, ctx):
        return True, None
    return False, _describe_denial(expr)
