import math
from typing import Iterable, Mapping, Optional

from .ast import Binary, Call, Node, Number, Symbol, Unary

_PREC = {'+': 1, '-': 1, '*': 2, '/': 2, '^': 4}
_UNARY_PREC = 3
_ATOM_PREC = 5


def format_literal(value: float) -> str:
    """Render ``value`` so it can be pasted into an equation verbatim.

    Values are rounded to 8 decimals and magnitudes below 1e-12 collapse to
    ``0``. Negatives come out as ``(0-|v|)``, so substituting into ``a - x``
    gives ``a - (0-3)`` and never ``a - -3``. NaN and infinities raise
    ``ValueError``.
    """

    v = float(value)
    if not math.isfinite(v):
        raise ValueError(f"cannot render non-finite value {value!r} as a literal")
    if abs(v) < 1e-12:
        v = 0.0
    text = f"{abs(v):.8f}".rstrip("0").rstrip(".")
    if not text or text == "0":
        return "0"
    if v < 0:
        return f"(0-{text})"
    return text


def _number_str(value: float) -> str:
    v = float(value)
    if v.is_integer():
        return str(int(v))
    return repr(v)


def _prec(node: Node) -> int:
    if isinstance(node, Binary):
        return _PREC[node.op]
    if isinstance(node, Unary):
        return _UNARY_PREC
    return _ATOM_PREC


def format_expression(node: Node, known: Optional[Mapping[str, float]] = None) -> str:
    """Print ``node``; symbols present in ``known`` are replaced by literals."""

    if isinstance(node, Number):
        return format_literal(node.value)
    if isinstance(node, Symbol):
        if known is not None and node.name in known:
            return format_literal(known[node.name])
        return node.name
    if isinstance(node, Call):
        return f"{node.func}({format_expression(node.arg, known)})"
    if isinstance(node, Unary):
        inner = format_expression(node.operand, known)
        if _prec(node.operand) < _UNARY_PREC:
            inner = f"({inner})"
        return f"-{inner}"
    if isinstance(node, Binary):
        p = _PREC[node.op]
        left = format_expression(node.left, known)
        right = format_expression(node.right, known)
        lp = _prec(node.left)
        rp = _prec(node.right)
        if node.op == '^':
            if lp <= p:
                left = f"({left})"
            if rp < _UNARY_PREC:
                right = f"({right})"
            return f"{left}^{right}"
        if lp < p:
            left = f"({left})"
        if rp < p or (rp == p and node.op in '-/'):
            right = f"({right})"
        return f"{left} {node.op} {right}"
    raise ValueError(f"cannot print node {node!r}")


def _kind_of(constraint) -> str:
    kind = getattr(constraint, "kind", None) or getattr(constraint, "type", None)
    if not kind:
        raise ValueError(f"constraint without kind: {constraint!r}")
    return str(kind)


def format_constraint(constraint) -> str:
    kind = _kind_of(constraint)
    refs = " ".join(f"{ref.shape}.{ref.anchor}" for ref in constraint.anchors)
    if kind == "distance":
        if constraint.dist is None:
            raise ValueError("distance constraint without a distance value")
        return f"distance {refs} {_number_str(constraint.dist)}"
    return f"{kind} {refs}"


def print_constraints(constraints: Iterable[object]) -> str:
    """Render constraints as a ``constraints { ... }`` block.

    Returns an empty string when there is nothing to print.
    """

    lines = [f"  {format_constraint(c)}" for c in constraints]
    if not lines:
        return ""
    return "constraints {\n" + "\n".join(lines) + "\n}\n"
