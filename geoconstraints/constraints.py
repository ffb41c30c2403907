"""Constraint kinds and the residual equations they generate.

Every kind works on symbolic point coordinates ``(x<id>, y<id>)``. Point
kinds relate two anchors; line kinds relate two lines given by two anchors
each.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Type

from .ast import AnchorRef
from .printer import format_literal

PointSymbols = Tuple[str, str]


def point_symbols(anchor_id: str) -> PointSymbols:
    return (f"x{anchor_id}", f"y{anchor_id}")


class ConstraintType:
    kind: str = ""
    arity: int = 2

    @classmethod
    def equations(cls, points: Sequence[PointSymbols], dist: Optional[float] = None) -> List[str]:
        raise NotImplementedError

    @classmethod
    def _check(cls, points: Sequence[PointSymbols]) -> None:
        if len(points) != cls.arity:
            raise ValueError(f"{cls.kind} needs {cls.arity} points, got {len(points)}")


class Coincident(ConstraintType):
    kind = "coincident"

    @classmethod
    def equations(cls, points, dist=None):
        cls._check(points)
        (xa, ya), (xb, yb) = points
        return [f"{xa} - {xb}", f"{ya} - {yb}"]


class Distance(ConstraintType):
    kind = "distance"

    @classmethod
    def equations(cls, points, dist=None):
        cls._check(points)
        if dist is None:
            raise ValueError("distance constraint needs a distance")
        (xa, ya), (xb, yb) = points
        d = format_literal(dist)
        return [f"(({xb}-{xa})**2 + ({yb}-{ya})**2) - ({d}*{d})"]


class Horizontal(ConstraintType):
    kind = "horizontal"

    @classmethod
    def equations(cls, points, dist=None):
        cls._check(points)
        (_, ya), (_, yb) = points
        return [f"{yb} - {ya}"]


class Vertical(ConstraintType):
    kind = "vertical"

    @classmethod
    def equations(cls, points, dist=None):
        cls._check(points)
        (xa, _), (xb, _) = points
        return [f"{xb} - {xa}"]


class Parallel(ConstraintType):
    kind = "parallel"
    arity = 4

    @classmethod
    def equations(cls, points, dist=None):
        cls._check(points)
        (x1, y1), (x2, y2), (x3, y3), (x4, y4) = points
        # cross product of the two directions
        return [f"({y2} - {y1}) * ({x4} - {x3}) - ({x2} - {x1}) * ({y4} - {y3})"]


class Perpendicular(ConstraintType):
    kind = "perpendicular"
    arity = 4

    @classmethod
    def equations(cls, points, dist=None):
        cls._check(points)
        (x1, y1), (x2, y2), (x3, y3), (x4, y4) = points
        return [f"({x2} - {x1}) * ({x4} - {x3}) + ({y2} - {y1}) * ({y4} - {y3})"]


CONSTRAINT_TYPES: Dict[str, Type[ConstraintType]] = {
    cls.kind: cls for cls in (Coincident, Distance, Horizontal, Vertical, Parallel, Perpendicular)
}


def constraint_type(kind: str) -> Type[ConstraintType]:
    try:
        return CONSTRAINT_TYPES[kind]
    except KeyError:
        raise ValueError(f"Unknown constraint type: {kind}") from None


@dataclass
class Constraint:
    """A stored constraint definition; re-solved on every enforcement pass."""

    id: str
    type: str
    anchors: Tuple[AnchorRef, ...]
    dist: Optional[float] = None

    @property
    def a(self) -> AnchorRef:
        return self.anchors[0]

    @property
    def b(self) -> AnchorRef:
        return self.anchors[1]

    @property
    def shapes(self) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(ref.shape for ref in self.anchors))

    def equations(self, anchor_ids: Sequence[str]) -> List[str]:
        points = [point_symbols(anchor_id) for anchor_id in anchor_ids]
        return constraint_type(self.type).equations(points, self.dist)


def _describe(ref: AnchorRef) -> str:
    return f"{ref.shape}:{ref.anchor}"


def label(constraint: Constraint) -> str:
    refs = constraint.anchors
    if len(refs) == 4:
        pairs = f"{_describe(refs[0])} ↦ {_describe(refs[1])} ; {_describe(refs[2])} ↦ {_describe(refs[3])}"
    else:
        pairs = f"{_describe(refs[0])} ↦ {_describe(refs[1])}"
    if constraint.type == "distance":
        return f"Distance({_format_dist(constraint.dist)})  {pairs}"
    return f"{constraint.type.capitalize()}  {pairs}"


def _format_dist(dist: Optional[float]) -> str:
    if dist is None:
        return "?"
    return str(int(dist)) if float(dist).is_integer() else repr(float(dist))
