"""Minimal shape model shared with the editor.

The constraint engine never owns shapes. It reads their parameters and
transforms and writes positions back through :class:`ShapeCollection`, which
notifies subscribers of every mutation.
"""

from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Point2D = Tuple[float, float]


def _pair(value: object, default: Point2D) -> Point2D:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        try:
            x, y = float(value[0]), float(value[1])
        except (TypeError, ValueError):
            return default
        if math.isfinite(x) and math.isfinite(y):
            return (x, y)
    return default


@dataclass
class Transform:
    position: Point2D = (0.0, 0.0)
    rotation: float = 0.0  # degrees
    scale: Point2D = (1.0, 1.0)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Transform":
        data = data or {}
        try:
            rotation = float(data.get("rotation", 0.0) or 0.0)
        except (TypeError, ValueError):
            rotation = 0.0
        if not math.isfinite(rotation):
            rotation = 0.0
        return cls(
            position=_pair(data.get("position"), (0.0, 0.0)),
            rotation=rotation,
            scale=_pair(data.get("scale"), (1.0, 1.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": [self.position[0], self.position[1]],
            "rotation": self.rotation,
            "scale": [self.scale[0], self.scale[1]],
        }


@dataclass
class Shape:
    type: str
    params: Dict[str, Any] = field(default_factory=dict)
    transform: Transform = field(default_factory=Transform)

    @property
    def kind(self) -> str:
        return str(self.type or "").lower()

    def number(self, keys: Sequence[str], default: float = 0.0) -> float:
        """First finite numeric parameter among ``keys``."""

        for key in keys:
            value = self.params.get(key)
            if isinstance(value, bool) or value is None:
                continue
            if isinstance(value, numbers.Real):
                candidate = float(value)
            else:
                try:
                    candidate = float(value)
                except (TypeError, ValueError):
                    continue
            if math.isfinite(candidate):
                return candidate
        return default

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Shape":
        shape_type = data.get("type") or data.get("shapeType") or ""
        return cls(
            type=str(shape_type),
            params=dict(data.get("params") or {}),
            transform=Transform.from_dict(data.get("transform")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "params": dict(self.params), "transform": self.transform.to_dict()}


@dataclass(frozen=True)
class ShapeEvent:
    action: str  # "add", "update", "position", "rotation", "scale", "delete", "reset"
    name: Optional[str] = None


Listener = Callable[[ShapeEvent], None]


class ShapeCollection:
    """Ordered, named shapes plus a mutation notification hook."""

    def __init__(self, shapes: Optional[Mapping[str, Any]] = None):
        self.shapes: Dict[str, Shape] = {}
        self._listeners: List[Listener] = []
        if shapes:
            self.set_shapes(shapes, notify=False)

    def __contains__(self, name: object) -> bool:
        return name in self.shapes

    def __len__(self) -> int:
        return len(self.shapes)

    def get(self, name: str) -> Optional[Shape]:
        return self.shapes.get(name)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, action: str, name: Optional[str] = None) -> None:
        event = ShapeEvent(action, name)
        for listener in list(self._listeners):
            listener(event)

    def set_shapes(self, shapes: Mapping[str, Any], *, notify: bool = True) -> None:
        self.shapes = {
            str(name): shape if isinstance(shape, Shape) else Shape.from_dict(shape)
            for name, shape in shapes.items()
        }
        logger.info("Loaded %d shape(s)", len(self.shapes))
        if notify:
            self._emit("reset")

    def add_shape(self, name: str, shape: Any) -> Shape:
        if name in self.shapes:
            raise ValueError(f"shape {name!r} already exists")
        self.shapes[name] = shape if isinstance(shape, Shape) else Shape.from_dict(shape)
        self._emit("add", name)
        return self.shapes[name]

    def _require(self, name: str) -> Shape:
        try:
            return self.shapes[name]
        except KeyError:
            raise KeyError(f"unknown shape {name!r}") from None

    def update_shape(self, name: str, params: Mapping[str, Any]) -> None:
        self._require(name).params.update(params)
        self._emit("update", name)

    def set_position(self, name: str, position: Iterable[float]) -> None:
        x, y = position
        self._require(name).transform.position = (float(x), float(y))
        self._emit("position", name)

    def set_rotation(self, name: str, degrees: float) -> None:
        self._require(name).transform.rotation = float(degrees)
        self._emit("rotation", name)

    def set_scale(self, name: str, scale: Iterable[float]) -> None:
        sx, sy = scale
        self._require(name).transform.scale = (float(sx), float(sy))
        self._emit("scale", name)

    def remove_shape(self, name: str) -> None:
        self._require(name)
        del self.shapes[name]
        self._emit("delete", name)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: shape.to_dict() for name, shape in self.shapes.items()}
