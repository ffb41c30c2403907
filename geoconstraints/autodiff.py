"""Forward-mode automatic differentiation over dual numbers."""

from __future__ import annotations

import math
from typing import Union

import numpy as np


class Dual:
    """A value together with its partial derivatives.

    ``der`` is positionally aligned with the variable ordering of the
    evaluation that produced it.
    """

    __slots__ = ("value", "der")

    def __init__(self, value: float, der: np.ndarray):
        self.value = float(value)
        self.der = np.asarray(der, dtype=float)

    @classmethod
    def variable(cls, value: float, index: int, size: int) -> "Dual":
        der = np.zeros(size, dtype=float)
        der[index] = 1.0
        return cls(value, der)

    @classmethod
    def constant(cls, value: float, size: int) -> "Dual":
        return cls(value, np.zeros(size, dtype=float))

    def __repr__(self) -> str:
        return f"Dual(value={self.value!r}, der={self.der.tolist()!r})"

    def __add__(self, other):
        return plus(self, other)

    def __radd__(self, other):
        return plus(other, self)

    def __sub__(self, other):
        return minus(self, other)

    def __rsub__(self, other):
        return minus(other, self)

    def __mul__(self, other):
        return mul(self, other)

    def __rmul__(self, other):
        return mul(other, self)

    def __truediv__(self, other):
        return div(self, other)

    def __rtruediv__(self, other):
        return div(other, self)

    def __pow__(self, other):
        return power(self, other)

    def __rpow__(self, other):
        return power(other, self)

    def __neg__(self):
        return neg(self)


Scalar = Union[float, int]
Value = Union[Scalar, Dual]


def _promote(x0: Value, x1: Value):
    if not isinstance(x0, Dual):
        x0 = Dual.constant(x0, x1.der.size)
    if not isinstance(x1, Dual):
        x1 = Dual.constant(x1, x0.der.size)
    return x0, x1


def _both_plain(x0: Value, x1: Value) -> bool:
    return not isinstance(x0, Dual) and not isinstance(x1, Dual)


def plus(x0: Value, x1: Value) -> Value:
    if _both_plain(x0, x1):
        return x0 + x1
    x0, x1 = _promote(x0, x1)
    return Dual(x0.value + x1.value, x0.der + x1.der)


def minus(x0: Value, x1: Value) -> Value:
    if _both_plain(x0, x1):
        return x0 - x1
    x0, x1 = _promote(x0, x1)
    return Dual(x0.value - x1.value, x0.der - x1.der)


def mul(x0: Value, x1: Value) -> Value:
    if _both_plain(x0, x1):
        return x0 * x1
    x0, x1 = _promote(x0, x1)
    return Dual(x0.value * x1.value, x1.der * x0.value + x0.der * x1.value)


def div(x0: Value, x1: Value) -> Value:
    if _both_plain(x0, x1):
        return x0 / x1
    x0, x1 = _promote(x0, x1)
    value = x0.value / x1.value
    return Dual(value, (x1.value * x0.der - x0.value * x1.der) / (x1.value * x1.value))


def neg(x: Value) -> Value:
    if not isinstance(x, Dual):
        return -x
    return Dual(-x.value, -x.der)


def sin(x: Value) -> Value:
    if not isinstance(x, Dual):
        return math.sin(x)
    return Dual(math.sin(x.value), x.der * math.cos(x.value))


def cos(x: Value) -> Value:
    if not isinstance(x, Dual):
        return math.cos(x)
    return Dual(math.cos(x.value), -x.der * math.sin(x.value))


def tan(x: Value) -> Value:
    if not isinstance(x, Dual):
        return math.tan(x)
    c = math.cos(x.value)
    return Dual(math.tan(x.value), x.der / (c * c))


def asin(x: Value) -> Value:
    if not isinstance(x, Dual):
        return math.asin(x)
    return Dual(math.asin(x.value), x.der / math.sqrt(1.0 - x.value * x.value))


def acos(x: Value) -> Value:
    if not isinstance(x, Dual):
        return math.acos(x)
    return Dual(math.acos(x.value), -x.der / math.sqrt(1.0 - x.value * x.value))


def atan(x: Value) -> Value:
    if not isinstance(x, Dual):
        return math.atan(x)
    return Dual(math.atan(x.value), x.der / (1.0 + x.value * x.value))


def exp(x: Value) -> Value:
    if not isinstance(x, Dual):
        return math.exp(x)
    e = math.exp(x.value)
    return Dual(e, x.der * e)


def sqrt(x: Value) -> Value:
    if not isinstance(x, Dual):
        return math.sqrt(x)
    s = math.sqrt(x.value)
    return Dual(s, x.der * (0.5 / s))


def log(x: Value) -> Value:
    if not isinstance(x, Dual):
        return math.log(x)
    return Dual(math.log(x.value), x.der / x.value)


def power(x0: Value, x1: Value) -> Value:
    """Raise ``x0`` to ``x1``; dual bases support integer exponents only.

    A non-integer exponent gives NaN for the value and every derivative.
    The exponent's own derivative is never propagated.
    """

    if _both_plain(x0, x1):
        return math.pow(x0, x1)
    x0, x1 = _promote(x0, x1)
    n = x1.value
    if not float(n).is_integer():
        return Dual(math.nan, np.full(x0.der.size, math.nan))
    n = int(n)
    if n == 0:
        return Dual(1.0, np.zeros(x0.der.size))
    v = x0.value
    if n > 0:
        return Dual(v ** n, x0.der * (n * v ** (n - 1)))
    inv = 1.0 / v
    return Dual(inv ** (-n), x0.der * (n * inv ** (1 - n)))


def squared(x: Value) -> Value:
    return power(x, 2)


FUNCTIONS = {
    "sin": sin,
    "cos": cos,
    "tan": tan,
    "asin": asin,
    "acos": acos,
    "atan": atan,
    "exp": exp,
    "sqrt": sqrt,
    "log": log,
    "neg": neg,
}


__all__ = [
    "Dual",
    "FUNCTIONS",
    "acos",
    "asin",
    "atan",
    "cos",
    "div",
    "exp",
    "log",
    "minus",
    "mul",
    "neg",
    "plus",
    "power",
    "sin",
    "sqrt",
    "squared",
    "tan",
]
