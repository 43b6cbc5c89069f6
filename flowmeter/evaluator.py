"""Evaluation of arithmetic equations with named parameters.

Equations use numbers, parameter names, parentheses, the operators
``+ - * / % **``, comparisons, ``&& || !``, the conditional ``c ? a : b``
and the functions ``sin``, ``cos``, ``tan`` and ``sqrt``. Numbers are
floating point throughout; division by zero and domain errors give
infinities or NaN rather than raising.
"""

from __future__ import annotations

import math
import operator
import re
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union

Value = Union[float, bool]


class EquationError(ValueError):
    """Raised when an equation cannot be parsed or evaluated."""


def _safe_unary(func: Callable[[float], float]) -> Callable[[float], float]:
    def apply(x: float) -> float:
        try:
            return func(x)
        except (ValueError, OverflowError):
            return math.nan

    return apply


_FUNCTIONS: dict[str, Callable[[float], float]] = {
    "sin": _safe_unary(math.sin),
    "cos": _safe_unary(math.cos),
    "tan": _safe_unary(math.tan),
    "sqrt": _safe_unary(math.sqrt),
}


def _divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _modulo(a: float, b: float) -> float:
    try:
        return math.fmod(a, b)
    except ValueError:
        return math.nan


def _is_odd_integer(x: float) -> bool:
    return math.isfinite(x) and x.is_integer() and int(x) % 2 == 1


def _power(a: float, b: float) -> float:
    if a == 0 and b < 0:
        if _is_odd_integer(b):
            return math.copysign(math.inf, a)
        return math.inf
    try:
        return math.pow(a, b)
    except OverflowError:
        return -math.inf if a < 0 and _is_odd_integer(b) else math.inf
    except ValueError:
        return math.nan


_ARITHMETIC: dict[str, Callable[[float, float], float]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _divide,
    "%": _modulo,
    "**": _power,
}

_ORDERING: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _number(value: Value, op: str) -> float:
    if isinstance(value, bool) or not isinstance(value, float):
        raise EquationError(f"operator {op!r} requires numeric operands")
    return value


def _boolean(value: Value, op: str) -> bool:
    if not isinstance(value, bool):
        raise EquationError(f"operator {op!r} requires boolean operands")
    return value


def _coerce_parameter(name: str, value: Any) -> Value:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    raise EquationError(
        f"parameter '{name}' has unsupported type {type(value).__name__}"
    )


@dataclass(frozen=True)
class _Literal:
    value: Value

    def evaluate(self, params: Mapping[str, Any]) -> Value:
        return self.value


@dataclass(frozen=True)
class _Variable:
    name: str

    def evaluate(self, params: Mapping[str, Any]) -> Value:
        try:
            value = params[self.name]
        except KeyError:
            raise EquationError(f"No parameter '{self.name}' found.") from None
        return _coerce_parameter(self.name, value)


@dataclass(frozen=True)
class _Call:
    name: str
    argument: Any

    def evaluate(self, params: Mapping[str, Any]) -> Value:
        return _FUNCTIONS[self.name](
            _number(self.argument.evaluate(params), self.name)
        )


@dataclass(frozen=True)
class _Unary:
    op: str
    operand: Any

    def evaluate(self, params: Mapping[str, Any]) -> Value:
        value = self.operand.evaluate(params)
        if self.op == "-":
            return -_number(value, self.op)
        return not _boolean(value, self.op)


@dataclass(frozen=True)
class _Binary:
    op: str
    left: Any
    right: Any

    def evaluate(self, params: Mapping[str, Any]) -> Value:
        op = self.op
        left = self.left.evaluate(params)
        if op == "&&":
            if not _boolean(left, op):
                return False
            return _boolean(self.right.evaluate(params), op)
        if op == "||":
            if _boolean(left, op):
                return True
            return _boolean(self.right.evaluate(params), op)
        right = self.right.evaluate(params)
        if op == "==":
            return type(left) is type(right) and left == right
        if op == "!=":
            return not (type(left) is type(right) and left == right)
        if op in _ORDERING:
            return _ORDERING[op](_number(left, op), _number(right, op))
        return _ARITHMETIC[op](_number(left, op), _number(right, op))


@dataclass(frozen=True)
class _Conditional:
    condition: Any
    if_true: Any
    if_false: Any

    def evaluate(self, params: Mapping[str, Any]) -> Value:
        if _boolean(self.condition.evaluate(params), "?"):
            return self.if_true.evaluate(params)
        return self.if_false.evaluate(params)


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    position: int


_TOKEN_RE = re.compile(
    r"(?P<space>\s+)"
    r"|(?P<number>[0-9]+(?:\.[0-9]*)?|\.[0-9]+)"
    r"|(?P<name>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<op>\*\*|==|!=|>=|<=|&&|\|\||[-+*/%()<>!?:,])"
    r"|(?P<error>.)",
    re.DOTALL,
)


def _tokenize(equation: str) -> Iterator[_Token]:
    for match in _TOKEN_RE.finditer(equation):
        kind = match.lastgroup
        if kind == "space":
            continue
        if kind == "error":
            raise EquationError(
                f"unexpected character {match.group()!r} at position {match.start()}"
            )
        yield _Token(kind, match.group(), match.start())


class _Parser:
    def __init__(self, equation: str) -> None:
        self._tokens = list(_tokenize(equation))
        self._index = 0

    def parse(self) -> Any:
        if not self._tokens:
            raise EquationError("empty equation")
        node = self._conditional()
        token = self._peek()
        if token is not None:
            raise EquationError(
                f"unexpected {token.text!r} at position {token.position}"
            )
        return node

    def _peek(self) -> _Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise EquationError("unexpected end of equation")
        self._index += 1
        return token

    def _accept(self, *ops: str) -> str | None:
        token = self._peek()
        if token is not None and token.kind == "op" and token.text in ops:
            self._index += 1
            return token.text
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            token = self._peek()
            found = "end of equation" if token is None else repr(token.text)
            raise EquationError(f"expected {op!r}, found {found}")

    def _binary_level(self, operand: Callable[[], Any], ops: tuple[str, ...]) -> Any:
        node = operand()
        while (op := self._accept(*ops)) is not None:
            node = _Binary(op, node, operand())
        return node

    def _conditional(self) -> Any:
        condition = self._or()
        if self._accept("?") is None:
            return condition
        if_true = self._conditional()
        self._expect(":")
        if_false = self._conditional()
        return _Conditional(condition, if_true, if_false)

    def _or(self) -> Any:
        return self._binary_level(self._and, ("||",))

    def _and(self) -> Any:
        return self._binary_level(self._comparison, ("&&",))

    def _comparison(self) -> Any:
        return self._binary_level(
            self._additive, ("==", "!=", "<", "<=", ">", ">=")
        )

    def _additive(self) -> Any:
        return self._binary_level(self._multiplicative, ("+", "-"))

    def _multiplicative(self) -> Any:
        return self._binary_level(self._exponent, ("*", "/", "%"))

    def _exponent(self) -> Any:
        return self._binary_level(self._unary, ("**",))

    def _unary(self) -> Any:
        op = self._accept("-", "!")
        if op is not None:
            return _Unary(op, self._unary())
        return self._primary()

    def _primary(self) -> Any:
        token = self._next()
        if token.kind == "number":
            return _Literal(float(token.text))
        if token.kind == "name":
            if token.text == "true":
                return _Literal(True)
            if token.text == "false":
                return _Literal(False)
            if self._accept("(") is not None:
                return self._call(token)
            return _Variable(token.text)
        if token.text == "(":
            node = self._conditional()
            self._expect(")")
            return node
        raise EquationError(f"unexpected {token.text!r} at position {token.position}")

    def _call(self, name: _Token) -> Any:
        if name.text not in _FUNCTIONS:
            raise EquationError(f"unknown function '{name.text}'")
        arguments = []
        if self._accept(")") is None:
            arguments.append(self._conditional())
            while self._accept(",") is not None:
                arguments.append(self._conditional())
            self._expect(")")
        if len(arguments) != 1:
            raise EquationError(
                f"function '{name.text}' takes one argument, got {len(arguments)}"
            )
        return _Call(name.text, arguments[0])


@lru_cache(maxsize=256)
def _parse(equation: str) -> Any:
    try:
        return _Parser(equation).parse()
    except RecursionError:
        raise EquationError("equation is nested too deeply") from None


def evaluate_equation(equation: str, parameters: Mapping[str, Any] | None) -> float:
    """Evaluate ``equation`` with ``parameters`` and return a float.

    Raises EquationError for syntax errors, unknown names, type mismatches
    and results that are not numbers.
    """
    node = _parse(equation)
    try:
        result = node.evaluate(parameters or {})
    except RecursionError:
        raise EquationError("equation is nested too deeply") from None
    if isinstance(result, bool) or not isinstance(result, float):
        raise EquationError("equation result is not a number")
    return result