"""Closed boolean expression language for marker and metadata predicates.

Expressions are parsed into a small AST and evaluated column-wise against a
`pandas.DataFrame`; nothing is handed to `eval`. Supported syntax:

- names, bare (`TNFa`, `visit.day`) or back-quoted (`` `IL-2` ``)
- literals: numbers, quoted strings, `TRUE`/`FALSE` (also `True`/`False`)
- negation `!` / `not`, conjunction `&` / `&&` / `and`, disjunction `|` / `||` / `or`
- comparisons `==`, `!=`, `<`, `<=`, `>`, `>=`
- membership `x %in% c("a", "b")` or `x in ["a", "b"]`
- parentheses

A bare name in boolean position is true where the value is present and
non-zero, so `"TNFa & IFNg"` selects categories positive for both markers.

Evaluation is three-valued: a comparison involving a missing value is itself
missing, negation keeps it missing, `&` is false as soon as one operand is
false and `|` is true as soon as one operand is true. Rows still missing at
the top level are not selected.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterator

import numpy as np
import pandas as pd

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<quoted>`[^`]+`)
  | (?P<op>%in%|&&|\|\||==|!=|<=|>=|<|>|!|&|\||\(|\)|\[|\]|,)
  | (?P<name>[A-Za-z_.][A-Za-z0-9_.]*)
    """,
    re.VERBOSE,
)

_KEYWORD_OPS = {"and": "&", "or": "|", "not": "!", "in": "%in%"}
_BOOL_LITERALS = {"TRUE": True, "True": True, "FALSE": False, "False": False}
_COMPARISONS = ("==", "!=", "<=", ">=", "<", ">")


@dataclass(frozen=True)
class _Token:
    kind: str
    value: str
    pos: int


class Expr:
    """Base class for expression nodes."""

    def evaluate(self, frame: pd.DataFrame) -> Any:
        raise NotImplementedError

    def names(self) -> set[str]:
        return set()

    def truth(self, frame: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
        """Row-wise `(value, present)`; rows where `present` is false are missing."""
        return _truthy(self.evaluate(frame), len(frame))

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        """Evaluate as a boolean row mask over `frame`; missing rows are false."""
        value, present = self.truth(frame)
        return value & present

    def __and__(self, other: Expr) -> Expr:
        return And((self, other))

    def __or__(self, other: Expr) -> Expr:
        return Or((self, other))

    def __invert__(self) -> Expr:
        return Not(self)


class _Logical(Expr):
    # Nodes whose value is a truth value; used as an operand they give the mask.
    def evaluate(self, frame: pd.DataFrame) -> Any:
        return self.mask(frame)


@dataclass(frozen=True)
class Name(Expr):
    name: str

    def evaluate(self, frame: pd.DataFrame) -> Any:
        if self.name not in frame.columns:
            available = ", ".join(str(c) for c in frame.columns)
            raise KeyError(f"Unknown name '{self.name}' in expression; available: {available}")
        return frame[self.name]

    def names(self) -> set[str]:
        return {self.name}


@dataclass(frozen=True)
class Literal(Expr):
    value: Any

    def evaluate(self, frame: pd.DataFrame) -> Any:
        return self.value


@dataclass(frozen=True)
class Not(_Logical):
    operand: Expr

    def truth(self, frame: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
        value, present = self.operand.truth(frame)
        return ~value & present, present

    def names(self) -> set[str]:
        return self.operand.names()


@dataclass(frozen=True)
class And(_Logical):
    operands: tuple[Expr, ...]

    def truth(self, frame: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
        n = len(frame)
        all_true = np.ones(n, dtype=bool)
        any_false = np.zeros(n, dtype=bool)
        for op in self.operands:
            value, present = op.truth(frame)
            all_true &= value & present
            any_false |= ~value & present
        return all_true, all_true | any_false

    def names(self) -> set[str]:
        return set().union(*(op.names() for op in self.operands))


@dataclass(frozen=True)
class Or(_Logical):
    operands: tuple[Expr, ...]

    def truth(self, frame: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
        n = len(frame)
        any_true = np.zeros(n, dtype=bool)
        all_false = np.ones(n, dtype=bool)
        for op in self.operands:
            value, present = op.truth(frame)
            any_true |= value & present
            all_false &= ~value & present
        return any_true, any_true | all_false

    def names(self) -> set[str]:
        return set().union(*(op.names() for op in self.operands))


@dataclass(frozen=True)
class Compare(_Logical):
    op: str
    left: Expr
    right: Expr

    def truth(self, frame: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
        lhs = self.left.evaluate(frame)
        rhs = self.right.evaluate(frame)
        n = len(frame)
        lhs_arr = _as_series(lhs, n)
        rhs_arr = _as_series(rhs, n)
        present = lhs_arr.notna().to_numpy() & rhs_arr.notna().to_numpy()
        try:
            if self.op == "==":
                res = lhs_arr == rhs_arr
            elif self.op == "!=":
                res = lhs_arr != rhs_arr
            elif self.op == "<":
                res = lhs_arr < rhs_arr
            elif self.op == "<=":
                res = lhs_arr <= rhs_arr
            elif self.op == ">":
                res = lhs_arr > rhs_arr
            else:
                res = lhs_arr >= rhs_arr
        except TypeError as exc:
            raise ValueError(f"Cannot apply '{self.op}' to the given operands: {exc}") from exc
        return np.asarray(res, dtype=bool) & present, present

    def names(self) -> set[str]:
        return self.left.names() | self.right.names()


@dataclass(frozen=True)
class In(_Logical):
    operand: Expr
    values: tuple[Any, ...]

    def truth(self, frame: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
        # Membership is never missing: an absent value is simply not in the list.
        series = _as_series(self.operand.evaluate(frame), len(frame))
        value = series.isin(list(self.values)).to_numpy(dtype=bool)
        return value, np.ones(len(frame), dtype=bool)

    def names(self) -> set[str]:
        return self.operand.names()


def _as_series(value: Any, n: int) -> pd.Series:
    if isinstance(value, pd.Series):
        return value.reset_index(drop=True)
    if isinstance(value, np.ndarray) and value.ndim == 1:
        return pd.Series(value)
    return pd.Series([value] * n)


def _truthy(value: Any, n: int) -> tuple[np.ndarray, np.ndarray]:
    if isinstance(value, np.ndarray) and value.dtype == bool:
        return value, np.ones(value.shape[0], dtype=bool)
    series = _as_series(value, n)
    present = series.notna().to_numpy()
    if pd.api.types.is_bool_dtype(series):
        out = series.astype("boolean").fillna(False).to_numpy(dtype=bool)
    elif pd.api.types.is_numeric_dtype(series):
        out = series.fillna(0).to_numpy(dtype=float) != 0.0
    else:
        out = series.fillna("").astype(str).str.len().to_numpy() > 0
    return out & present, present


def _tokenize(text: str) -> Iterator[_Token]:
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ValueError(f"Unexpected character {text[pos]!r} at position {pos} in {text!r}.")
        kind = match.lastgroup or ""
        value = match.group(kind)
        if kind == "name" and value in _KEYWORD_OPS:
            yield _Token("op", _KEYWORD_OPS[value], pos)
        elif kind != "ws":
            yield _Token(kind, value, pos)
        pos = match.end()


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = list(_tokenize(text))
        self.i = 0

    def _peek(self) -> _Token | None:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def _error(self, msg: str) -> ValueError:
        tok = self._peek()
        where = f"position {tok.pos}" if tok is not None else "end of input"
        return ValueError(f"{msg} at {where} in expression {self.text!r}.")

    def _accept(self, *ops: str) -> _Token | None:
        tok = self._peek()
        if tok is not None and tok.kind == "op" and tok.value in ops:
            self.i += 1
            return tok
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            raise self._error(f"Expected '{op}'")

    def parse(self) -> Expr:
        if not self.tokens:
            raise ValueError("Expression is empty.")
        node = self._or()
        if self._peek() is not None:
            raise self._error("Unexpected token")
        return node

    def _or(self) -> Expr:
        operands = [self._and()]
        while self._accept("|", "||"):
            operands.append(self._and())
        return operands[0] if len(operands) == 1 else Or(tuple(operands))

    def _and(self) -> Expr:
        operands = [self._not()]
        while self._accept("&", "&&"):
            operands.append(self._not())
        return operands[0] if len(operands) == 1 else And(tuple(operands))

    def _not(self) -> Expr:
        if self._accept("!"):
            return Not(self._not())
        return self._comparison()

    def _comparison(self) -> Expr:
        left = self._primary()
        tok = self._accept(*_COMPARISONS)
        if tok is not None:
            return Compare(tok.value, left, self._primary())
        if self._accept("%in%"):
            return In(left, self._values())
        return left

    def _values(self) -> tuple[Any, ...]:
        tok = self._peek()
        if tok is not None and tok.kind == "name" and tok.value == "c":
            self.i += 1
            self._expect("(")
            close = ")"
        elif self._accept("["):
            close = "]"
        elif self._accept("("):
            close = ")"
        else:
            raise self._error("Expected a value list")
        values: list[Any] = []
        if self._accept(close):
            return ()
        while True:
            node = self._primary()
            if not isinstance(node, Literal):
                raise self._error("Value lists may only hold literals")
            values.append(node.value)
            if self._accept(close):
                return tuple(values)
            self._expect(",")

    def _primary(self) -> Expr:
        tok = self._peek()
        if tok is None:
            raise self._error("Unexpected end of expression")
        if tok.kind == "op" and tok.value == "(":
            self.i += 1
            node = self._or()
            self._expect(")")
            return node
        self.i += 1
        if tok.kind == "number":
            num = float(tok.value)
            return Literal(int(num) if num.is_integer() and "." not in tok.value else num)
        if tok.kind == "string":
            return Literal(re.sub(r"\\(.)", r"\1", tok.value[1:-1]))
        if tok.kind == "quoted":
            return Name(tok.value[1:-1])
        if tok.kind == "name":
            if tok.value in _BOOL_LITERALS:
                return Literal(_BOOL_LITERALS[tok.value])
            return Name(tok.value)
        self.i -= 1
        raise self._error(f"Unexpected token {tok.value!r}")


def parse_expression(text: str | Expr) -> Expr:
    """Parse an expression string; parsed nodes pass through unchanged."""
    if isinstance(text, Expr):
        return text
    return _Parser(str(text)).parse()


def evaluate_mask(expression: str | Expr, frame: pd.DataFrame) -> np.ndarray:
    """Evaluate `expression` row-wise over `frame` as a boolean mask."""
    return parse_expression(expression).mask(frame)
