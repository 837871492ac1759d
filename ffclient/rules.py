"""A small query language used to target users in flag rules.

Examples: ``key eq "abc"``, ``age >= 18 and not (country in ["FR", "DE"])``,
``email pr``, ``app.version ge 1.2.0``. ``and`` and ``or`` share one precedence
level and associate to the left.
"""

from __future__ import annotations

import json
import operator
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Mapping, NamedTuple


class RuleError(ValueError):
    """Raised when a rule cannot be parsed or cannot be applied to the data."""


class _Token(NamedTuple):
    kind: str
    text: str


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<string>"(?:[^"\\]|\\.)*")
    |(?P<version>\d+\.\d+\.\d+(?![\w.]))
    |(?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    |(?P<symbol>==|!=|>=|<=|&&|\|\||[<>()\[\],.])
    |(?P<word>[A-Za-z_][A-Za-z0-9_:\-]*)
    """,
    re.VERBOSE,
)

_COMPARE_OPS = {
    "eq": "eq", "EQ": "eq", "==": "eq",
    "ne": "ne", "NE": "ne", "!=": "ne",
    "gt": "gt", "GT": "gt", ">": "gt",
    "lt": "lt", "LT": "lt", "<": "lt",
    "ge": "ge", "GE": "ge", ">=": "ge",
    "le": "le", "LE": "le", "<=": "le",
    "co": "co", "CO": "co",
    "sw": "sw", "SW": "sw",
    "ew": "ew", "EW": "ew",
    "in": "in", "IN": "in",
}
_LOGICAL_OPS = {"and": "and", "AND": "and", "&&": "and", "or": "or", "OR": "or", "||": "or"}
_NOT = {"not", "NOT"}
_PRESENT = {"pr", "PR"}
_TRUE = {"true", "TRUE"}
_FALSE = {"false", "FALSE"}
_NULL = {"null", "NULL", "nil"}

_ORDERED: dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "lt": operator.lt,
    "ge": operator.ge,
    "le": operator.le,
}

_MISSING = object()


@dataclass(frozen=True, order=True)
class _Version:
    parts: tuple[int, ...]

    @classmethod
    def parse(cls, text: str) -> _Version:
        try:
            return cls(tuple(int(part) for part in text.split(".")))
        except ValueError as exc:
            raise RuleError(f"{text!r} is not a version") from exc


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise RuleError(f"unexpected character {text[pos]!r} at position {pos}")
        if match.lastgroup != "ws":
            tokens.append(_Token(match.lastgroup, match.group()))
        pos = match.end()
    return tokens


def _resolve(path: tuple[str, ...], data: Mapping[str, Any]) -> Any:
    current: Any = data
    for part in path:
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _same(left: Any, right: Any) -> bool:
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _ordered(op: str, left: Any, right: Any) -> bool:
    try:
        return _ORDERED[op](left, right)
    except KeyError:
        raise RuleError(f"operator {op!r} is not supported for {right!r}") from None


def _compare(op: str, left: Any, right: Any) -> bool:
    if left is _MISSING:
        left = None
    if op == "in":
        if not isinstance(right, list):
            raise RuleError("operator 'in' needs a list")
        return any(_same(left, item) for item in right)
    if isinstance(right, list):
        raise RuleError(f"operator {op!r} cannot take a list")
    if right is None or left is None:
        if op == "eq":
            return left is None and right is None
        if op == "ne":
            return (left is None) != (right is None)
        raise RuleError(f"operator {op!r} cannot compare null")
    if isinstance(right, bool):
        if not isinstance(left, bool) or op not in ("eq", "ne"):
            raise RuleError(f"cannot apply {op!r} to {left!r} and {right!r}")
        return _ordered(op, left, right)
    if isinstance(right, _Version):
        if not isinstance(left, str):
            raise RuleError(f"{left!r} is not a version")
        return _ordered(op, _Version.parse(left), right)
    if isinstance(right, str):
        if not isinstance(left, str):
            raise RuleError(f"cannot compare {left!r} with a string")
        if op == "co":
            return right in left
        if op == "sw":
            return left.startswith(right)
        if op == "ew":
            return left.endswith(right)
        return _ordered(op, left, right)
    if isinstance(left, bool) or not isinstance(left, (int, float)):
        raise RuleError(f"cannot compare {left!r} with a number")
    return _ordered(op, left, right)


@dataclass(frozen=True)
class _Compare:
    path: tuple[str, ...]
    op: str
    operand: Any

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        return _compare(self.op, _resolve(self.path, data), self.operand)


@dataclass(frozen=True)
class _Present:
    path: tuple[str, ...]

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        found = _resolve(self.path, data)
        return found is not _MISSING and found is not None


@dataclass(frozen=True)
class _Not:
    inner: Any

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        return not self.inner.evaluate(data)


@dataclass(frozen=True)
class _Logical:
    op: str
    left: Any
    right: Any

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        if self.op == "and":
            return self.left.evaluate(data) and self.right.evaluate(data)
        return self.left.evaluate(data) or self.right.evaluate(data)


class _Parser:
    def __init__(self, tokens: list[_Token]):
        self._tokens = tokens
        self._pos = 0

    def parse(self):
        node = self._expression()
        leftover = self._peek()
        if leftover is not None:
            raise RuleError(f"unexpected token {leftover.text!r}")
        return node

    def _peek(self) -> _Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise RuleError("unexpected end of rule")
        self._pos += 1
        return token

    def _expect(self, text: str) -> None:
        token = self._next()
        if token.text != text:
            raise RuleError(f"expected {text!r}, got {token.text!r}")

    def _expression(self):
        node = self._term()
        while (token := self._peek()) is not None and token.text in _LOGICAL_OPS:
            self._pos += 1
            node = _Logical(_LOGICAL_OPS[token.text], node, self._term())
        return node

    def _parenthesised(self):
        inner = self._expression()
        self._expect(")")
        return inner

    def _term(self):
        token = self._next()
        if token.text == "(":
            return self._parenthesised()
        if token.kind != "word":
            raise RuleError(f"unexpected token {token.text!r}")
        following = self._peek()
        if token.text in _NOT and following is not None and following.text == "(":
            self._pos += 1
            return _Not(self._parenthesised())
        path = self._path(token.text)
        op = self._next()
        if op.text in _PRESENT:
            return _Present(path)
        if op.text not in _COMPARE_OPS:
            raise RuleError(f"unknown operator {op.text!r}")
        return _Compare(path, _COMPARE_OPS[op.text], self._value())

    def _path(self, first: str) -> tuple[str, ...]:
        parts = [first]
        while (token := self._peek()) is not None and token.text == ".":
            self._pos += 1
            name = self._next()
            if name.kind != "word":
                raise RuleError(f"invalid attribute name {name.text!r}")
            parts.append(name.text)
        return tuple(parts)

    def _value(self) -> Any:
        token = self._next()
        if token.kind == "string":
            try:
                return json.loads(token.text)
            except json.JSONDecodeError as exc:
                raise RuleError(f"invalid string {token.text}") from exc
        if token.kind == "number":
            if any(mark in token.text for mark in ".eE"):
                return float(token.text)
            return int(token.text)
        if token.kind == "version":
            return _Version.parse(token.text)
        if token.text in _TRUE:
            return True
        if token.text in _FALSE:
            return False
        if token.text in _NULL:
            return None
        if token.text == "[":
            return self._list()
        raise RuleError(f"invalid value {token.text!r}")

    def _list(self) -> list[Any]:
        items: list[Any] = []
        following = self._peek()
        if following is not None and following.text == "]":
            self._pos += 1
            return items
        while True:
            items.append(self._value())
            token = self._next()
            if token.text == "]":
                return items
            if token.text != ",":
                raise RuleError(f"expected ',' or ']', got {token.text!r}")


class Rule:
    """A parsed rule that can be evaluated against a mapping of attributes."""

    __slots__ = ("text", "_root")

    def __init__(self, text: str):
        self.text = text
        self._root = _Parser(_tokenize(text)).parse()

    def evaluate(self, data: Mapping[str, Any]) -> bool:
        """Apply the rule to ``data``; raise RuleError on incompatible values.

        A missing attribute is treated as null.
        """
        return self._root.evaluate(data)

    def __repr__(self) -> str:
        return f"Rule({self.text!r})"


@lru_cache(maxsize=1024)
def parse_rule(rule: str) -> Rule:
    """Parse ``rule``, raising RuleError when it is malformed."""
    return Rule(rule)


def evaluate(rule: str, data: Mapping[str, Any]) -> bool:
    """Return whether ``rule`` holds for ``data``; any error counts as False."""
    try:
        return parse_rule(rule).evaluate(data)
    except RuleError:
        return False