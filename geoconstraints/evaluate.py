"""Evaluate equations to a value plus full gradient."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .ast import Binary, Call, Node, Number, Symbol, Unary, symbols_of
from .autodiff import FUNCTIONS, Dual, div, minus, mul, neg, plus, power
from .parser import parse_expression
from .printer import format_expression

logger = logging.getLogger(__name__)


class UnknownVariableError(LookupError):
    """Raised when an equation references a name with no binding."""

    def __init__(self, name: str, equation: str = ""):
        message = f'Unknown variable "{name}" for constraints'
        if equation:
            message += f" in {equation!r}"
        super().__init__(message)
        self.name = name
        self.equation = equation


@dataclass(frozen=True)
class CompiledEquation:
    """An equation parsed once; the tree is reused for every evaluation."""

    text: str
    tree: Node
    symbols: Tuple[str, ...]

    def substituted_text(self, known: Optional[Mapping[str, float]] = None) -> str:
        if not known:
            return self.text
        return format_expression(self.tree, known)


@lru_cache(maxsize=4096)
def compile_equation(text: str) -> CompiledEquation:
    tree = parse_expression(text)
    return CompiledEquation(text=text, tree=tree, symbols=symbols_of(tree))


Equation = Union[str, CompiledEquation]


def as_compiled(equation: Equation) -> CompiledEquation:
    if isinstance(equation, CompiledEquation):
        return equation
    return compile_equation(equation)


_BINARY = {'+': plus, '-': minus, '*': mul, '/': div, '^': power}


def _walk(node: Node, bindings: Mapping[str, object], equation: str):
    if isinstance(node, Number):
        return node.value
    if isinstance(node, Symbol):
        try:
            return bindings[node.name]
        except KeyError:
            raise UnknownVariableError(node.name, equation) from None
    if isinstance(node, Binary):
        return _BINARY[node.op](_walk(node.left, bindings, equation), _walk(node.right, bindings, equation))
    if isinstance(node, Unary):
        return neg(_walk(node.operand, bindings, equation))
    if isinstance(node, Call):
        return FUNCTIONS[node.func](_walk(node.arg, bindings, equation))
    raise TypeError(f"unsupported node {node!r}")


def dual_bindings(
    variables: Mapping[str, float], known: Optional[Mapping[str, float]] = None
) -> Dict[str, object]:
    """One-hot duals for ``variables`` (ordered by key) plus plain ``known`` values."""

    size = len(variables)
    bindings: Dict[str, object] = {}
    if known:
        bindings.update({name: float(value) for name, value in known.items()})
    for index, (name, value) in enumerate(variables.items()):
        bindings[name] = Dual.variable(value, index, size)
    return bindings


def _as_dual(result, size: int) -> Dual:
    if isinstance(result, Dual):
        return result
    return Dual.constant(result, size)


def evaluate(
    equation: Equation,
    variables: Mapping[str, float],
    known: Optional[Mapping[str, float]] = None,
) -> Dual:
    """Evaluate ``equation`` at ``variables``.

    The derivative vector of the result follows the key order of
    ``variables``. Names in ``known`` are treated as constants.
    """

    compiled = as_compiled(equation)
    bindings = dual_bindings(variables, known)
    return _as_dual(_walk(compiled.tree, bindings, compiled.text), len(variables))


def evaluate_system(
    equations: Sequence[Equation],
    variables: Mapping[str, float],
    known: Optional[Mapping[str, float]] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return the residual vector and Jacobian for ``equations``.

    The Jacobian has one row per equation and one column per variable.
    """

    bindings = dual_bindings(variables, known)
    size = len(variables)
    residuals = np.zeros(len(equations), dtype=float)
    jacobian = np.zeros((len(equations), size), dtype=float)
    for row, equation in enumerate(equations):
        compiled = as_compiled(equation)
        result = _as_dual(_walk(compiled.tree, bindings, compiled.text), size)
        residuals[row] = result.value
        jacobian[row, :] = result.der
    return residuals, jacobian


__all__ = [
    "CompiledEquation",
    "Equation",
    "UnknownVariableError",
    "as_compiled",
    "compile_equation",
    "dual_bindings",
    "evaluate",
    "evaluate_system",
]
