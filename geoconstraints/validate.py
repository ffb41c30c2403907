import math
from typing import Iterable

from .anchors import anchors_for
from .ast import ConstraintSpec
from .parser import LINE_KINDS, POINT_KINDS
from .shapes import ShapeCollection


class ValidationError(Exception):
    pass


def _where(spec: ConstraintSpec, idx: int = -1) -> str:
    col = spec.cols[idx] if 0 <= idx < len(spec.cols) else spec.col
    return f'[line {spec.line}, col {col}]'


def _ensure_distinct(spec: ConstraintSpec):
    for i in range(0, len(spec.anchors), 2):
        if spec.anchors[i] == spec.anchors[i + 1]:
            ref = spec.anchors[i]
            raise ValidationError(f'{_where(spec, i + 1)} anchors must be distinct (got {ref.shape}.{ref.anchor} twice)')


def validate(specs: Iterable[ConstraintSpec], collection: ShapeCollection) -> None:
    for s in specs:
        k = s.kind
        expect = 2 if k in POINT_KINDS else 4 if k in LINE_KINDS else None
        if expect is None:
            raise ValidationError(f'{_where(s)} unknown constraint kind {k!r}')
        if len(s.anchors) != expect:
            raise ValidationError(f'{_where(s)} {k} needs {expect} anchors, got {len(s.anchors)}')
        for idx, ref in enumerate(s.anchors):
            shape = collection.get(ref.shape)
            if shape is None:
                raise ValidationError(f'{_where(s, idx)} unknown shape {ref.shape!r}')
            keys = [a.key for a in anchors_for(shape, ref.shape)]
            if ref.anchor not in keys:
                raise ValidationError(
                    f'{_where(s, idx)} shape {ref.shape!r} has no anchor {ref.anchor!r} (has: {", ".join(keys)})'
                )
        _ensure_distinct(s)
        if k == 'distance':
            if s.dist is None or not math.isfinite(s.dist):
                raise ValidationError(f'{_where(s)} distance needs a finite value')
            if s.dist < 0:
                raise ValidationError(f'{_where(s)} distance must be non-negative (got {s.dist:g})')
        elif s.dist is not None:
            raise ValidationError(f'{_where(s)} {k} does not take a distance')
