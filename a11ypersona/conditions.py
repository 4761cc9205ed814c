"""
Restricted Condition Evaluator

Contextual checks carry a boolean condition over three inputs:
scriptType, scriptContent and issueCategory. Conditions come from an
updatable rule set, so they are never handed to eval/exec. Instead the
source is parsed with `ast` and every node is checked against a small
grammar:

  - boolean:     and, or, not
  - comparisons: ==, !=, in, not in, <, <=, >, >=
  - names:       scriptType, scriptContent, issueCategory
  - literals:    strings, numbers, True/False/None, tuples/lists of literals
  - calls:       len(x), and string methods lower, upper, strip,
                 startswith, endswith, contains, has_word (whole word)
                 on a name or a chained method result

Example:
    scriptType == "phone" and "press" in scriptContent.lower()

The evaluator walks the validated tree directly.
"""

from __future__ import annotations

import ast
import operator
import re
from typing import Any, Callable

CONDITION_INPUTS = ("scriptType", "scriptContent", "issueCategory")

MAX_CONDITION_LENGTH = 2000

_STRING_METHODS = {"lower", "upper", "strip", "startswith", "endswith", "contains", "has_word"}

_COMPARATORS: dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}


class ConditionError(ValueError):
    """Raised when a condition falls outside the allowed grammar."""


def _check(node: ast.AST) -> None:
    """Recursively verify a node belongs to the grammar."""
    if isinstance(node, ast.BoolOp):
        if not isinstance(node.op, (ast.And, ast.Or)):
            raise ConditionError("Unsupported boolean operator")
        for value in node.values:
            _check(value)
    elif isinstance(node, ast.UnaryOp):
        if not isinstance(node.op, ast.Not):
            raise ConditionError("Only 'not' is allowed as a unary operator")
        _check(node.operand)
    elif isinstance(node, ast.Compare):
        for op in node.ops:
            if type(op) not in _COMPARATORS:
                raise ConditionError(f"Unsupported comparison: {type(op).__name__}")
        _check(node.left)
        for comparator in node.comparators:
            _check(comparator)
    elif isinstance(node, ast.Name):
        if node.id not in CONDITION_INPUTS:
            raise ConditionError(
                f"Unknown name '{node.id}'. Allowed: {', '.join(CONDITION_INPUTS)}"
            )
    elif isinstance(node, ast.Constant):
        if not isinstance(node.value, (str, int, float, bool, type(None))):
            raise ConditionError("Only string, number and boolean literals are allowed")
    elif isinstance(node, (ast.Tuple, ast.List)):
        for elt in node.elts:
            if not isinstance(elt, ast.Constant):
                raise ConditionError("Sequences may only contain literals")
            _check(elt)
    elif isinstance(node, ast.Call):
        _check_call(node)
    else:
        raise ConditionError(f"Unsupported expression: {type(node).__name__}")


def _check_call(node: ast.Call) -> None:
    if node.keywords:
        raise ConditionError("Keyword arguments are not allowed")
    func = node.func
    if isinstance(func, ast.Name):
        if func.id != "len" or len(node.args) != 1:
            raise ConditionError(f"Call to '{func.id}' is not allowed")
        _check(node.args[0])
        return
    if not isinstance(func, ast.Attribute) or func.attr not in _STRING_METHODS:
        raise ConditionError(f"Only {', '.join(sorted(_STRING_METHODS))} may be called")
    # Receiver must be an input name or another allowed method call
    if not isinstance(func.value, (ast.Name, ast.Call)):
        raise ConditionError("String methods must be called on an input value")
    _check(func.value)
    for arg in node.args:
        _check(arg)


def parse_condition(source: str) -> ast.Expression:
    """Parse and validate a condition. Raises ConditionError."""
    if not isinstance(source, str) or not source.strip():
        raise ConditionError("Condition must be a non-empty string")
    if len(source) > MAX_CONDITION_LENGTH:
        raise ConditionError("Condition is too long")
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as e:
        raise ConditionError(f"Invalid condition syntax: {e.msg}") from None
    _check(tree.body)
    return tree


def _eval(node: ast.AST, env: dict[str, str]) -> Any:
    if isinstance(node, ast.BoolOp):
        result: Any = isinstance(node.op, ast.And)
        for value in node.values:
            result = _eval(value, env)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result
    if isinstance(node, ast.UnaryOp):
        return not _eval(node.operand, env)
    if isinstance(node, ast.Compare):
        left = _eval(node.left, env)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval(comparator, env)
            if not _COMPARATORS[type(op)](left, right):
                return False
            left = right
        return True
    if isinstance(node, ast.Name):
        return env[node.id]
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, (ast.Tuple, ast.List)):
        return tuple(_eval(elt, env) for elt in node.elts)
    if isinstance(node, ast.Call):
        args = [_eval(arg, env) for arg in node.args]
        if isinstance(node.func, ast.Name):
            return len(args[0])
        receiver = _eval(node.func.value, env)
        if not isinstance(receiver, str):
            raise TypeError(f"'{node.func.attr}' needs a string receiver")
        if node.func.attr == "contains":
            return args[0] in receiver
        if node.func.attr == "has_word":
            return re.search(rf"\b{re.escape(args[0])}\b", receiver) is not None
        return getattr(receiver, node.func.attr)(*args)
    raise ConditionError(f"Unsupported expression: {type(node).__name__}")


class Condition:
    """A validated, side-effect-free predicate over the three script inputs."""

    __slots__ = ("source", "_tree")

    def __init__(self, source: str):
        self.source = source
        self._tree = parse_condition(source)

    def evaluate(self, script_type: str, script_content: str, issue_category: str) -> bool:
        env = {
            "scriptType": script_type or "",
            "scriptContent": script_content or "",
            "issueCategory": issue_category or "",
        }
        return bool(_eval(self._tree.body, env))

    def __repr__(self) -> str:
        return f"Condition({self.source!r})"
