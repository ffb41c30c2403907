"""Named attachment points on shapes.

Offsets are local to the shape and ignore its rotation; rotation is applied
only when an anchor is resolved to world space.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional, Set, Tuple

from .shapes import Point2D, Shape

_SYM_RE = re.compile(r"[^a-z0-9_]")

RECT_TYPES = ("rectangle", "roundedrectangle", "chamferrectangle", "cross")
ROUND_TYPES = ("circle", "donut", "gear", "star")


def sym(raw: object) -> str:
    """Sanitise ``raw`` into a symbol usable inside equations."""

    return _SYM_RE.sub("_", str(raw).lower())


@dataclass(frozen=True)
class Anchor:
    shape_name: str
    key: str
    label: str
    ox: float
    oy: float
    id: str = ""

    @property
    def offset(self) -> Point2D:
        return (self.ox, self.oy)


class AnchorWorld(NamedTuple):
    x: float
    y: float
    ok: bool = True


MISSING = AnchorWorld(0.0, 0.0, False)


def rotate(offset: Point2D, degrees: float) -> Point2D:
    th = math.radians(degrees or 0.0)
    c, s = math.cos(th), math.sin(th)
    ox, oy = offset
    return (ox * c - oy * s, ox * s + oy * c)


def anchor_world(anchor: Anchor, shape: Shape) -> AnchorWorld:
    cx, cy = shape.transform.position
    rx, ry = rotate(anchor.offset, shape.transform.rotation)
    return AnchorWorld(cx + rx, cy + ry, True)


_Add = Callable[[str, str, float, float], None]


def _rect_anchors(shape: Shape, add: _Add) -> None:
    hx = shape.number(("width", "w")) / 2
    hy = shape.number(("height", "h")) / 2
    add("rect_tl", "Top-Left", -hx, +hy)
    add("rect_tr", "Top-Right", +hx, +hy)
    add("rect_br", "Bottom-Right", +hx, -hy)
    add("rect_bl", "Bottom-Left", -hx, -hy)
    add("rect_mt", "Mid-Top", 0.0, +hy)
    add("rect_mr", "Mid-Right", +hx, 0.0)
    add("rect_mb", "Mid-Bottom", 0.0, -hy)
    add("rect_ml", "Mid-Left", -hx, 0.0)


def _round_anchors(shape: Shape, add: _Add) -> None:
    r = shape.number(("outerRadius", "radius", "r"))
    add("circ_e", "East (0°)", +r, 0.0)
    add("circ_n", "North (90°)", 0.0, +r)
    add("circ_w", "West (180°)", -r, 0.0)
    add("circ_s", "South (270°)", 0.0, -r)
    if shape.kind == "donut":
        ri = shape.number(("innerRadius", "rInner", "holeRadius"))
        if ri > 0:
            add("donut_i_e", "Inner East", +ri, 0.0)
            add("donut_i_n", "Inner North", 0.0, +ri)
            add("donut_i_w", "Inner West", -ri, 0.0)
            add("donut_i_s", "Inner South", 0.0, -ri)


def _ellipse_anchors(shape: Shape, add: _Add) -> None:
    rx = shape.number(("radiusX", "rx"))
    ry = shape.number(("radiusY", "ry"))
    add("ellipse_e", "East", +rx, 0.0)
    add("ellipse_n", "North", 0.0, +ry)
    add("ellipse_w", "West", -rx, 0.0)
    add("ellipse_s", "South", 0.0, -ry)


def _polygon_anchors(shape: Shape, add: _Add) -> None:
    r = shape.number(("radius",))
    n = max(3, int(round(shape.number(("sides",), 3))))
    for i in range(n):
        t = 2 * math.pi * i / n
        add(f"poly_v{i}", f"Vertex {i}", r * math.cos(t), r * math.sin(t))


def _triangle_anchors(shape: Shape, add: _Add) -> None:
    bx = shape.number(("base", "width", "w")) / 2
    hy = shape.number(("height", "h")) / 2
    add("tri_apex", "Apex", 0.0, +hy)
    add("tri_bl", "Base-Left", -bx, -hy)
    add("tri_br", "Base-Right", +bx, -hy)
    add("tri_mb", "Mid-Base", 0.0, -hy)


def _arc_anchors(shape: Shape, add: _Add) -> None:
    r = shape.number(("radius", "r", "outerRadius"))
    a0 = math.radians(shape.number(("startAngle",)))
    a1 = math.radians(shape.number(("endAngle",)))
    am = (a0 + a1) / 2
    add("arc_start", "Start", r * math.cos(a0), r * math.sin(a0))
    add("arc_end", "End", r * math.cos(a1), r * math.sin(a1))
    add("arc_mid", "Mid", r * math.cos(am), r * math.sin(am))


def _arrow_anchors(shape: Shape, add: _Add) -> None:
    hx = shape.number(("length", "shaftLength")) / 2
    add("arrow_tip", "Tip", +hx, 0.0)
    add("arrow_tail", "Tail", -hx, 0.0)


_BUILDERS: Dict[str, Callable[[Shape, _Add], None]] = {
    **{kind: _rect_anchors for kind in RECT_TYPES},
    **{kind: _round_anchors for kind in ROUND_TYPES},
    "ellipse": _ellipse_anchors,
    "polygon": _polygon_anchors,
    "triangle": _triangle_anchors,
    "arc": _arc_anchors,
    "arrow": _arrow_anchors,
}


def anchors_for(shape: Shape, shape_name: str = "") -> List[Anchor]:
    """Anchors of ``shape``; ``center`` always comes first."""

    anchors: List[Anchor] = []

    def add(key: str, label: str, ox: float, oy: float) -> None:
        anchors.append(Anchor(shape_name, key, label, float(ox), float(oy), sym(f"{key}_{shape_name}")))

    add("center", "Center", 0.0, 0.0)
    builder = _BUILDERS.get(shape.kind)
    if builder is not None:
        builder(shape, add)
    return anchors


class AnchorCatalog:
    """Anchors of every shape in a collection, keyed for solving.

    Ids are unique across the catalog; when two anchors sanitise to the same
    symbol the later one gets a numeric suffix.
    """

    def __init__(self) -> None:
        self.by_ref: Dict[Tuple[str, str], Anchor] = {}
        self.by_shape: Dict[str, List[Anchor]] = {}

    def __len__(self) -> int:
        return len(self.by_ref)

    def rebuild(self, shapes: Mapping[str, Shape]) -> None:
        self.by_ref.clear()
        self.by_shape.clear()
        used: Set[str] = set()
        for name, shape in shapes.items():
            entries = []
            for anchor in anchors_for(shape, name):
                if anchor.id in used:
                    n = 2
                    while f"{anchor.id}_{n}" in used:
                        n += 1
                    anchor = replace(anchor, id=f"{anchor.id}_{n}")
                used.add(anchor.id)
                self.by_ref[(name, anchor.key)] = anchor
                entries.append(anchor)
            self.by_shape[name] = entries

    def get(self, shape_name: str, key: str) -> Optional[Anchor]:
        return self.by_ref.get((shape_name, key))

    def for_shape(self, shape_name: str) -> List[Anchor]:
        return list(self.by_shape.get(shape_name, []))
