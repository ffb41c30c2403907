from dataclasses import dataclass, field
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Symbol:
    name: str


@dataclass(frozen=True)
class Binary:
    op: str  # one of + - * / ^
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Unary:
    op: str  # only '-'
    operand: "Node"


@dataclass(frozen=True)
class Call:
    func: str
    arg: "Node"


Node = Union[Number, Symbol, Binary, Unary, Call]


@dataclass(frozen=True)
class AnchorRef:
    shape: str
    anchor: str


@dataclass
class ConstraintSpec:
    """One line of a ``constraints { ... }`` block."""

    kind: str
    anchors: Tuple[AnchorRef, ...]
    dist: Optional[float] = None
    line: int = 0
    col: int = 0
    cols: Tuple[int, ...] = field(default_factory=tuple)


def symbols_of(node: Node) -> Tuple[str, ...]:
    """Return the distinct symbol names of ``node`` in first-seen order."""

    seen = []
    stack = [node]
    while stack:
        cur = stack.pop()
        if isinstance(cur, Symbol):
            if cur.name not in seen:
                seen.append(cur.name)
        elif isinstance(cur, Binary):
            stack.append(cur.right)
            stack.append(cur.left)
        elif isinstance(cur, Unary):
            stack.append(cur.operand)
        elif isinstance(cur, Call):
            stack.append(cur.arg)
    return tuple(seen)
