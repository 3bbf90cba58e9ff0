"""Weak-form expression language.

Expressions are ASCII strings over numbers, names and the operators
``+ - * / ^ '`` (``'`` is the transpose), with parentheses and bracket
array literals ``[a, b; c, d]``. Precedence, from tightest:
transpose and power (left associative), unary sign, ``* /``, ``+ -``.

Names resolve, in order, to

- weak-form symbols: ``N`` (shape matrix), ``B`` (shape derivative
  matrix), ``x, y, z`` (physical position of the quadrature point) and
  ``xi, eta, zeta`` (reference coordinates);
- constants, substituted when the expression is compiled;
- previously compiled kernels, evaluated at the same point.

``*`` multiplies element-wise when one operand is a scalar and is the
matrix product otherwise. Expressions are parsed into a small tree and
evaluated by walking it; no Python code is generated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import numpy as np
from numpy.typing import NDArray

from .elements import Element, get_position, shape, shape_deriv
from .errors import ExpressionSyntaxError, ReservedNameError, UnknownConstantError

RESERVED = ("N", "B", "x", "y", "z", "xi", "eta", "zeta")
POSITION = ("x", "y", "z")
REFERENCE = ("xi", "eta", "zeta")

# Characters a constant must be separated by to count as a standalone token
_SEPARATORS = re.compile(r"[\s+\-*/^'()\[\],;]+")

_TOKEN = re.compile(
    r"""
    (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
    | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<op>[-+*/^'()\[\],;])
    | (?P<space>\s+)
    """,
    re.VERBOSE,
)


# =============================================================================
# Expression tree
# =============================================================================
@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Symbol:
    name: str


@dataclass(frozen=True)
class Array:
    rows: tuple[tuple[Any, ...], ...]


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Any


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Transpose:
    operand: Any


# =============================================================================
# Parsing
# =============================================================================
@dataclass(frozen=True)
class Token:
    kind: str  # 'number', 'name', 'op' or 'end'
    text: str
    pos: int


def tokenize(text: str) -> list[Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if m is None:
            raise ExpressionSyntaxError(f"Unexpected character {text[pos]!r} at {pos} in '{text}'")
        if m.lastgroup != "space":
            tokens.append(Token(m.lastgroup, m.group(), pos))
        pos = m.end()
    tokens.append(Token("end", "", len(text)))
    return tokens


class Parser:
    """Recursive-descent parser producing the expression tree of one string."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.i = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.i]

    def _accept(self, *ops: str) -> str | None:
        tok = self.current
        if tok.kind == "op" and tok.text in ops:
            self.i += 1
            return tok.text
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            self._fail(f"expected '{op}'")

    def _fail(self, message: str):
        tok = self.current
        found = repr(tok.text) if tok.kind != "end" else "end of expression"
        raise ExpressionSyntaxError(f"{message}, found {found} at {tok.pos} in '{self.text}'")

    def parse(self):
        if self.current.kind == "end":
            raise ExpressionSyntaxError("Empty expression")
        node = self._sum()
        if self.current.kind != "end":
            self._fail("unexpected token")
        return node

    def _sum(self):
        node = self._product()
        while (op := self._accept("+", "-")) is not None:
            node = BinaryOp(op, node, self._product())
        return node

    def _product(self):
        node = self._unary()
        while (op := self._accept("*", "/")) is not None:
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self):
        if (op := self._accept("-", "+")) is not None:
            return UnaryOp(op, self._unary())
        return self._power()

    def _power(self):
        node = self._postfix()
        while self._accept("^") is not None:
            node = BinaryOp("^", node, self._exponent())
        return node

    def _exponent(self):
        if (op := self._accept("-", "+")) is not None:
            return UnaryOp(op, self._exponent())
        return self._postfix()

    def _postfix(self):
        node = self._primary()
        while self._accept("'") is not None:
            node = Transpose(node)
        return node

    def _primary(self):
        tok = self.current
        if tok.kind == "number":
            self.i += 1
            return Number(float(tok.text))
        if tok.kind == "name":
            self.i += 1
            return Symbol(tok.text)
        if self._accept("(") is not None:
            node = self._sum()
            self._expect(")")
            return node
        if self._accept("[") is not None:
            return self._array()
        self._fail("expected a number, name, '(' or '['")

    def _array(self):
        rows = [[]]
        if self._accept("]") is not None:
            self._fail("empty array literal")
        while True:
            rows[-1].append(self._sum())
            if self._accept(",") is not None:
                continue
            if self._accept(";") is not None:
                rows.append([])
                continue
            self._expect("]")
            break
        if len({len(r) for r in rows}) != 1:
            raise ExpressionSyntaxError(f"Array rows have different lengths in '{self.text}'")
        return Array(tuple(tuple(r) for r in rows))


def parse(text: str):
    """Parse an expression string into its tree."""
    return Parser(text).parse()


def symbols(node) -> set[str]:
    """Names referenced by an expression tree."""
    if isinstance(node, Symbol):
        return {node.name}
    if isinstance(node, Number):
        return set()
    if isinstance(node, Array):
        return set().union(*(symbols(n) for row in node.rows for n in row))
    if isinstance(node, (UnaryOp, Transpose)):
        return symbols(node.operand)
    return symbols(node.left) | symbols(node.right)


def references(text: str, name: str) -> bool:
    """
    True if constant ``name`` is used by ``text``.

    A name must occur both as a substring and as a standalone token when the
    text is split on operators, so 'E' is not found in 'Ey'.
    """
    return name in text and name in _SEPARATORS.split(text)


# =============================================================================
# Evaluation
# =============================================================================
def _is_scalar(value) -> bool:
    return np.size(value) == 1


def _scalar(value) -> float:
    return np.asarray(value).item()


class Evaluator:
    """Tree-walking evaluator for one element and reference point."""

    def __init__(
        self,
        values: Mapping[str, Any],
        elem: Element | None = None,
        xi: NDArray[np.float64] | None = None,
    ):
        self.values = values
        self.elem = elem
        self.xi = xi
        self._cache: dict[str, Any] = {}
        self._dispatch: dict[type, Callable] = {
            Number: self._visit_Number,
            Symbol: self._visit_Symbol,
            Array: self._visit_Array,
            UnaryOp: self._visit_UnaryOp,
            BinaryOp: self._visit_BinaryOp,
            Transpose: self._visit_Transpose,
        }

    def visit(self, node):
        return self._dispatch[type(node)](node)

    def _visit_Number(self, node: Number):
        return node.value

    def _visit_Symbol(self, node: Symbol):
        name = node.name
        if name in RESERVED:
            if name not in self._cache:
                self._cache[name] = self._point_symbol(name)
            return self._cache[name]
        value = self.values[name]
        if isinstance(value, Kernel):
            return value(self.elem, self.xi)
        return value

    def _point_symbol(self, name: str):
        if self.elem is None:
            raise ReservedNameError(f"'{name}' is only defined inside a weak form")
        if name == "N":
            return shape(self.elem, self.xi)
        if name == "B":
            return shape_deriv(self.elem, self.xi)
        if name in POSITION:
            k, x = POSITION.index(name), get_position(self.elem, self.xi)
        else:
            k, x = REFERENCE.index(name), np.atleast_1d(self.xi)
        if k >= len(x):
            raise ValueError(f"'{name}' is not defined on a {len(x)}-D element")
        return float(x[k])

    def _visit_Array(self, node: Array):
        return np.block([[np.atleast_2d(self.visit(n)) for n in row] for row in node.rows])

    def _visit_UnaryOp(self, node: UnaryOp):
        value = self.visit(node.operand)
        return -value if node.op == "-" else value

    def _visit_Transpose(self, node: Transpose):
        value = np.asarray(self.visit(node.operand))
        if value.ndim == 0:
            return value
        if value.ndim == 1:
            value = value[:, np.newaxis]
        return value.T

    def _visit_BinaryOp(self, node: BinaryOp):
        a, b = self.visit(node.left), self.visit(node.right)
        if node.op == "+":
            return a + b
        if node.op == "-":
            return a - b
        if node.op == "*":
            if _is_scalar(a):
                return _scalar(a) * b
            if _is_scalar(b):
                return a * _scalar(b)
            return np.asarray(a) @ np.asarray(b)
        if node.op == "/":
            if not _is_scalar(b):
                raise ValueError("Only division by a scalar is supported")
            return a / _scalar(b)
        # '^'
        if not _is_scalar(b):
            raise ValueError("The exponent must be a scalar")
        if _is_scalar(a):
            return _scalar(a) ** _scalar(b)
        p = _scalar(b)
        if p != int(p):
            raise ValueError("Matrix powers need an integer exponent")
        return np.linalg.matrix_power(np.asarray(a), int(p))


# =============================================================================
# Compilation
# =============================================================================
def check_name(name: str) -> None:
    """Validate a constant/kernel name."""
    if name in RESERVED:
        raise ReservedNameError(f"'{name}' is a reserved weak-form symbol: {', '.join(RESERVED)}")
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"'{name}' is not a valid name")


def _bind(text: str, tree, definitions: Mapping[str, Any]) -> dict[str, Any]:
    """Resolve the non-reserved names of ``tree`` against ``definitions`` (in definition order)."""
    bound = {
        name: value for name, value in definitions.items() if references(text, name)
    }
    unknown = sorted(symbols(tree) - set(bound) - set(RESERVED))
    if unknown:
        raise UnknownConstantError(
            f"Undefined name(s) {', '.join(unknown)} in '{text}'; "
            "constants must be defined before they are used"
        )
    return bound


def evaluate_constant(expression: str, definitions: Mapping[str, Any]):
    """Evaluate a constant expression over previously defined constants."""
    tree = parse(expression)
    reserved = sorted(symbols(tree) & set(RESERVED))
    if reserved:
        raise ReservedNameError(
            f"Constant expression '{expression}' uses weak-form symbol(s) {', '.join(reserved)}"
        )
    values = _bind(expression, tree, definitions)
    return Evaluator(values).visit(tree)


class Kernel:
    """
    Compiled weak form: ``kernel(elem, xi)`` returns the integrand at ``xi``.

    ``expression`` is either a weak-form string or a Python callable with
    the same ``(elem, xi)`` signature.
    """

    def __init__(
        self,
        name: str,
        expression: str | Callable[[Element, NDArray[np.float64]], Any],
        definitions: Mapping[str, Any] | None = None,
    ):
        self.name = name
        self.expression = expression
        if callable(expression):
            self._tree = None
            self._values = {}
        else:
            self._tree = parse(expression)
            self._values = _bind(expression, self._tree, definitions or {})

    def __call__(self, elem: Element, xi=None) -> NDArray[np.float64]:
        if self._tree is None:
            return np.asarray(self.expression(elem, xi), dtype=np.float64)
        value = Evaluator(self._values, elem, xi).visit(self._tree)
        return np.asarray(value, dtype=np.float64)

    def __repr__(self) -> str:
        text = self.expression if isinstance(self.expression, str) else "<callable>"
        return f"Kernel({self.name!r}, {text!r})"
