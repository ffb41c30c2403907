"""Constraint engine: formulate, solve and apply constraints on live shapes.

Constraints are resolved one at a time, in list order, each as its own small
system. A shape touched by several constraints is moved once per constraint,
so later constraints win on shared shapes.
"""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from .anchors import MISSING, Anchor, AnchorCatalog, AnchorWorld, anchor_world
from .ast import AnchorRef, ConstraintSpec
from .constraints import CONSTRAINT_TYPES, Constraint, label, point_symbols
from .evaluate import compile_equation
from .shapes import Shape, ShapeCollection, ShapeEvent
from .solver import SolverOptions, solve_system

logger = logging.getLogger(__name__)

MOVE_EPSILON = 1e-6
CHANGE_THRESHOLD = 1e-6

AnchorLike = Any  # AnchorRef, (shape, anchor), {"shape": ..., "anchor": ...} or "Shape.anchor"


class AnchorLookupError(KeyError):
    """A constraint references a shape or anchor that does not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ConstraintHandle(NamedTuple):
    id: str
    label: str


# list entries share the handle shape
ConstraintLabel = ConstraintHandle


class AnchorInfo(NamedTuple):
    key: str
    label: str


class ConstraintGeometry(NamedTuple):
    a: AnchorWorld
    b: AnchorWorld
    mid: Tuple[float, float]


class TransformSnapshot(NamedTuple):
    x: float
    y: float
    r: float
    sx: float
    sy: float


@dataclass
class ConstraintOutcome:
    id: str
    satisfied: List[bool]
    moved: List[str] = field(default_factory=list)
    status: str = "converged"


def as_anchor_ref(value: AnchorLike) -> AnchorRef:
    if isinstance(value, AnchorRef):
        return value
    if isinstance(value, Mapping):
        return AnchorRef(str(value["shape"]), str(value["anchor"]))
    if isinstance(value, str):
        shape, sep, anchor = value.rpartition(".")
        if not sep or not shape or not anchor:
            raise ValueError(f"anchor reference must look like 'Shape.anchor', got {value!r}")
        return AnchorRef(shape, anchor)
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return AnchorRef(str(value[0]), str(value[1]))
    raise TypeError(f"cannot interpret {value!r} as an anchor reference")


def _snapshot_of(shape: Shape) -> TransformSnapshot:
    t = shape.transform
    return TransformSnapshot(t.position[0], t.position[1], t.rotation, t.scale[0], t.scale[1])


def change_score(before: TransformSnapshot, after: TransformSnapshot) -> float:
    """How strongly a shape looks user-edited between two snapshots."""

    dp = math.hypot(after.x - before.x, after.y - before.y)
    dr = abs(after.r - before.r) * 0.01
    ds = math.hypot(after.sx - before.sx, after.sy - before.sy) * 10
    return dp + dr + ds


class ConstraintEngine:
    def __init__(
        self,
        collection: ShapeCollection,
        on_shape_changed: Optional[Callable[[str, Shape], None]] = None,
        *,
        options: Optional[SolverOptions] = None,
    ):
        self.collection = collection
        self.on_shape_changed = on_shape_changed
        self.options = options

        self.catalog = AnchorCatalog()
        self.constraints: List[Constraint] = []
        self.live_enforce = True

        self._applying = False
        self._next_id = 1
        self._list_listeners: List[Callable[[List[ConstraintHandle]], None]] = []
        self._suspend_depth = 0
        self._list_dirty = False
        self._snapshot: Dict[str, TransformSnapshot] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None

        self._take_snapshot()

    @property
    def shapes(self) -> Dict[str, Shape]:
        return self.collection.shapes

    @property
    def applying(self) -> bool:
        return self._applying

    # --- anchors -----------------------------------------------------------

    def rebuild(self) -> None:
        self.catalog.rebuild(self.shapes)

    def _resolve(self, ref: AnchorRef) -> Anchor:
        if ref.shape not in self.shapes:
            raise AnchorLookupError(f"unknown shape {ref.shape!r}")
        anchor = self.catalog.get(ref.shape, ref.anchor)
        if anchor is None:
            raise AnchorLookupError(f"shape {ref.shape!r} has no anchor {ref.anchor!r}")
        return anchor

    def get_anchors_for_shape(self, shape_name: str) -> List[AnchorInfo]:
        self.rebuild()
        anchors = self.catalog.for_shape(shape_name)
        if not anchors:
            return [AnchorInfo("center", "Center")]
        return [AnchorInfo(a.key, a.label) for a in anchors]

    def get_anchor_world(self, shape_name: str, anchor_key: str) -> AnchorWorld:
        self.rebuild()
        anchor = self.catalog.get(shape_name, anchor_key)
        shape = self.shapes.get(shape_name)
        if anchor is None or shape is None:
            return MISSING
        return anchor_world(anchor, shape)

    def get_constraint_geometry(self, constraint: Constraint) -> ConstraintGeometry:
        """Endpoints and midpoint used to draw a constraint overlay.

        Line constraints are drawn between the midpoints of their two lines.
        """

        worlds = [self.get_anchor_world(ref.shape, ref.anchor) for ref in constraint.anchors]
        if len(worlds) == 4:
            pa = AnchorWorld(
                (worlds[0].x + worlds[1].x) / 2, (worlds[0].y + worlds[1].y) / 2, worlds[0].ok and worlds[1].ok
            )
            pb = AnchorWorld(
                (worlds[2].x + worlds[3].x) / 2, (worlds[2].y + worlds[3].y) / 2, worlds[2].ok and worlds[3].ok
            )
        else:
            pa, pb = worlds[0], worlds[1]
        return ConstraintGeometry(pa, pb, ((pa.x + pb.x) / 2, (pa.y + pb.y) / 2))

    # --- solving -----------------------------------------------------------

    @contextmanager
    def _applying_guard(self) -> Iterator[None]:
        previous = self._applying
        self._applying = True
        try:
            yield
        finally:
            self._applying = previous

    def _solve_constraint(self, constraint: Constraint, fixed_shape: Optional[str] = None) -> ConstraintOutcome:
        self.rebuild()
        anchors = [self._resolve(ref) for ref in constraint.anchors]
        equations = [compile_equation(text) for text in constraint.equations([a.id for a in anchors])]

        unique: Dict[str, Anchor] = {a.id: a for a in anchors}
        variables: Dict[str, float] = {}
        substitutions: Dict[str, float] = {}
        to_move: List[Anchor] = []
        for anchor in unique.values():
            world = anchor_world(anchor, self.shapes[anchor.shape_name])
            xs, ys = point_symbols(anchor.id)
            variables[xs], variables[ys] = world.x, world.y
            if fixed_shape is not None and anchor.shape_name == fixed_shape:
                substitutions[xs], substitutions[ys] = world.x, world.y
            else:
                to_move.append(anchor)

        solution = solve_system(equations, variables, substitutions, self.options)
        moved = self._apply_solved(to_move, solution.variables)
        logger.debug(
            "Solved %s %s fixed=%s satisfied=%s moved=%s",
            constraint.type,
            constraint.id or "<new>",
            fixed_shape,
            solution.satisfied,
            moved,
        )
        return ConstraintOutcome(constraint.id, solution.satisfied, moved, solution.status)

    def _apply_solved(self, anchors: Sequence[Anchor], solved: Mapping[str, float]) -> List[str]:
        moved: List[str] = []
        for anchor in anchors:
            xs, ys = point_symbols(anchor.id)
            nx, ny = solved.get(xs), solved.get(ys)
            if nx is None or ny is None or not (math.isfinite(nx) and math.isfinite(ny)):
                continue
            shape = self.shapes.get(anchor.shape_name)
            if shape is None:
                continue
            current = anchor_world(anchor, shape)
            dx = round(nx, 6) - current.x
            dy = round(ny, 6) - current.y
            if abs(dx) <= MOVE_EPSILON and abs(dy) <= MOVE_EPSILON:
                continue
            cx, cy = shape.transform.position
            # translation only; rotation is left untouched
            self.collection.set_position(anchor.shape_name, (round(cx + dx, 6), round(cy + dy, 6)))
            if anchor.shape_name not in moved:
                moved.append(anchor.shape_name)
            if self.on_shape_changed is not None:
                self.on_shape_changed(anchor.shape_name, shape)
        return moved

    # --- constraint list ---------------------------------------------------

    def _new_id(self) -> str:
        cid = f"c{self._next_id}"
        self._next_id += 1
        return cid

    def _add(
        self,
        kind: str,
        refs: Sequence[AnchorLike],
        dist: Optional[float] = None,
        fixed_shape: Optional[str] = None,
    ) -> ConstraintHandle:
        anchors = tuple(as_anchor_ref(ref) for ref in refs)
        for i in range(0, len(anchors), 2):
            if anchors[i] == anchors[i + 1]:
                raise ValueError(f"{kind} needs two different anchors, got {anchors[i].shape}.{anchors[i].anchor} twice")
        pending = Constraint(id="", type=kind, anchors=anchors, dist=dist)
        with self._applying_guard():
            outcome = self._solve_constraint(pending, fixed_shape)
        stored = replace(pending, id=self._new_id())
        self.constraints.append(stored)
        self._take_snapshot()
        text = label(stored)
        logger.info("Added constraint %s: %s satisfied=%s", stored.id, text, outcome.satisfied)
        self._notify_list_changed()
        return ConstraintHandle(stored.id, text)

    def add_coincident_anchors(self, a: AnchorLike, b: AnchorLike, *, fixed_shape: Optional[str] = None) -> ConstraintHandle:
        return self._add("coincident", (a, b), fixed_shape=fixed_shape)

    def add_distance(
        self, a: AnchorLike, b: AnchorLike, dist: float, *, fixed_shape: Optional[str] = None
    ) -> ConstraintHandle:
        try:
            value = float(dist)
        except (TypeError, ValueError):
            raise ValueError(f"distance must be a number, got {dist!r}") from None
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"distance must be a non-negative finite number, got {dist!r}")
        return self._add("distance", (a, b), dist=value, fixed_shape=fixed_shape)

    def add_horizontal(self, a: AnchorLike, b: AnchorLike, *, fixed_shape: Optional[str] = None) -> ConstraintHandle:
        return self._add("horizontal", (a, b), fixed_shape=fixed_shape)

    def add_vertical(self, a: AnchorLike, b: AnchorLike, *, fixed_shape: Optional[str] = None) -> ConstraintHandle:
        return self._add("vertical", (a, b), fixed_shape=fixed_shape)

    def add_parallel(
        self,
        line_a: Tuple[AnchorLike, AnchorLike],
        line_b: Tuple[AnchorLike, AnchorLike],
        *,
        fixed_shape: Optional[str] = None,
    ) -> ConstraintHandle:
        return self._add("parallel", (*line_a, *line_b), fixed_shape=fixed_shape)

    def add_perpendicular(
        self,
        line_a: Tuple[AnchorLike, AnchorLike],
        line_b: Tuple[AnchorLike, AnchorLike],
        *,
        fixed_shape: Optional[str] = None,
    ) -> ConstraintHandle:
        return self._add("perpendicular", (*line_a, *line_b), fixed_shape=fixed_shape)

    def add_spec(self, spec: ConstraintSpec, *, fixed_shape: Optional[str] = None) -> ConstraintHandle:
        """Add a constraint parsed from a ``constraints { ... }`` block."""

        if spec.kind not in CONSTRAINT_TYPES:
            raise ValueError(f"Unknown constraint type: {spec.kind}")
        refs = spec.anchors
        if spec.kind == "distance":
            return self.add_distance(refs[0], refs[1], spec.dist, fixed_shape=fixed_shape)
        if spec.kind in ("parallel", "perpendicular"):
            add = self.add_parallel if spec.kind == "parallel" else self.add_perpendicular
            return add((refs[0], refs[1]), (refs[2], refs[3]), fixed_shape=fixed_shape)
        return self._add(spec.kind, refs, fixed_shape=fixed_shape)

    def remove_constraint(self, constraint_id: str) -> bool:
        for idx, constraint in enumerate(self.constraints):
            if constraint.id == constraint_id:
                del self.constraints[idx]
                logger.info("Removed constraint %s", constraint_id)
                self._notify_list_changed()
                return True
        return False

    def clear_all_constraints(self) -> None:
        self.constraints = []
        self._notify_list_changed()

    def prune_constraints_for_shapes(self, shape_names: Sequence[str]) -> int:
        names = set(shape_names)
        if not names:
            return 0
        before = len(self.constraints)
        self.constraints = [c for c in self.constraints if not names.intersection(c.shapes)]
        removed = before - len(self.constraints)
        if removed:
            logger.info("Pruned %d constraint(s) for shapes %s", removed, sorted(names))
            self._notify_list_changed()
        return removed

    def get_constraint_list(self) -> List[ConstraintLabel]:
        return [ConstraintLabel(c.id, label(c)) for c in self.constraints]

    def get_constraint_snapshot(self) -> List[Constraint]:
        return [replace(c) for c in self.constraints]

    def apply_all_constraints(self, fixed_shape: Optional[str] = None) -> List[ConstraintOutcome]:
        """Re-solve every stored constraint in order.

        Does nothing while already applying, while live enforcement is off,
        or when there are no constraints.
        """

        if self._applying or not self.live_enforce or not self.constraints:
            return []
        outcomes: List[ConstraintOutcome] = []
        with self._applying_guard():
            for constraint in list(self.constraints):
                try:
                    outcomes.append(self._solve_constraint(constraint, fixed_shape))
                except AnchorLookupError as exc:
                    logger.warning("Skipping constraint %s: %s", constraint.id, exc)
        return outcomes

    # --- list-changed notifications -----------------------------------------

    def on_list_changed(self, callback: Callable[[List[ConstraintHandle]], None]) -> Callable[[], None]:
        self._list_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._list_listeners:
                self._list_listeners.remove(callback)

        return unsubscribe

    @contextmanager
    def suspend_list_events(self) -> Iterator[None]:
        """Batch list-changed notifications; fires once on exit if anything changed."""

        self._suspend_depth += 1
        try:
            yield
        finally:
            self._suspend_depth -= 1
            if self._suspend_depth == 0 and self._list_dirty:
                self._notify_list_changed()

    def _notify_list_changed(self) -> None:
        if self._suspend_depth:
            self._list_dirty = True
            return
        self._list_dirty = False
        snapshot = self.get_constraint_list()
        for callback in list(self._list_listeners):
            callback(snapshot)

    # --- live enforcement --------------------------------------------------

    def set_live_enforce(self, on: bool) -> None:
        self.live_enforce = bool(on)

    def _take_snapshot(self) -> None:
        self._snapshot = {name: _snapshot_of(shape) for name, shape in self.shapes.items()}

    def _detect_changed_shape(self) -> Optional[str]:
        best_score, which = 0.0, None
        for name, shape in self.shapes.items():
            before = self._snapshot.get(name)
            if before is None:
                continue
            score = change_score(before, _snapshot_of(shape))
            if score > best_score:
                best_score, which = score, name
        return which if best_score > CHANGE_THRESHOLD else None

    def install_live_enforcer(self, collection: Optional[ShapeCollection] = None) -> None:
        """Re-enforce constraints whenever the collection reports a mutation."""

        if self._unsubscribe is not None:
            return
        if collection is not None:
            self.collection = collection
        self._unsubscribe = self.collection.subscribe(self._on_shape_event)
        self._take_snapshot()

    def uninstall_live_enforcer(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_shape_event(self, event: ShapeEvent) -> None:
        if self._applying:
            return
        if event.action == "delete" and event.name is not None:
            self.prune_constraints_for_shapes([event.name])
            self._take_snapshot()
            return
        if not self.live_enforce:
            return
        try:
            fixed = self._detect_changed_shape()
            self.rebuild()
            self.apply_all_constraints(fixed)
        except Exception:
            logger.exception("Constraint enforce error after %s event on %s", event.action, event.name)
        finally:
            self._take_snapshot()


__all__ = [
    "AnchorInfo",
    "AnchorLookupError",
    "ConstraintEngine",
    "ConstraintGeometry",
    "ConstraintHandle",
    "ConstraintLabel",
    "ConstraintOutcome",
    "TransformSnapshot",
    "as_anchor_ref",
    "change_score",
]
