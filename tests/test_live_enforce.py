import logging

import pytest

from geoconstraints import ConstraintEngine, ShapeCollection
from geoconstraints.engine import TransformSnapshot, change_score


def _scene():
    return ShapeCollection(
        {
            "A": {"type": "rectangle", "params": {"width": 40, "height": 20}, "transform": {"position": [0, 0]}},
            "B": {"type": "circle", "params": {"radius": 5}, "transform": {"position": [10, 20]}},
        }
    )


def _pos(collection, name):
    return collection.get(name).transform.position


def test_change_score_weights():
    before = TransformSnapshot(0.0, 0.0, 0.0, 1.0, 1.0)
    after = TransformSnapshot(3.0, 4.0, 10.0, 1.0, 1.1)
    assert change_score(before, after) == pytest.approx(5.0 + 0.1 + 1.0)


def test_edited_shape_is_held_fixed():
    shapes = _scene()
    engine = ConstraintEngine(shapes)
    engine.install_live_enforcer()
    engine.add_coincident_anchors(("A", "center"), ("B", "center"))

    shapes.set_position("A", (100, 0))

    assert _pos(shapes, "A") == (100.0, 0.0)
    assert _pos(shapes, "B") == pytest.approx((100.0, 0.0), abs=1e-4)

    shapes.set_position("B", (-5, -5))
    assert _pos(shapes, "B") == (-5.0, -5.0)
    assert _pos(shapes, "A") == pytest.approx((-5.0, -5.0), abs=1e-4)


def test_rotation_edit_counts_as_change():
    shapes = _scene()
    engine = ConstraintEngine(shapes)
    engine.install_live_enforcer()
    engine.add_coincident_anchors(("A", "rect_tr"), ("B", "center"), fixed_shape="B")

    shapes.set_rotation("A", 90)

    assert shapes.get("A").transform.rotation == 90
    tr = engine.get_anchor_world("A", "rect_tr")
    b = _pos(shapes, "B")
    assert (tr.x, tr.y) == pytest.approx(b, abs=1e-4)


def test_engine_moves_do_not_reenter():
    shapes = _scene()
    engine = ConstraintEngine(shapes)
    engine.install_live_enforcer()
    engine.add_coincident_anchors(("A", "center"), ("B", "center"))

    calls = []
    original = engine.apply_all_constraints

    def counting(fixed_shape=None):
        calls.append(fixed_shape)
        return original(fixed_shape)

    engine.apply_all_constraints = counting
    shapes.set_position("A", (50, 50))
    assert calls == ["A"]
    assert not engine.applying


def test_live_enforce_off_leaves_shapes_alone():
    shapes = _scene()
    engine = ConstraintEngine(shapes)
    engine.install_live_enforcer()
    engine.add_coincident_anchors(("A", "center"), ("B", "center"), fixed_shape="B")
    engine.set_live_enforce(False)

    shapes.set_position("A", (100, 0))
    assert _pos(shapes, "B") == (10.0, 20.0)


def test_deleting_a_shape_prunes_its_constraints():
    shapes = _scene()
    shapes.add_shape("C", {"type": "circle", "params": {"radius": 2}, "transform": {"position": [0, 50]}})
    engine = ConstraintEngine(shapes)
    engine.install_live_enforcer()
    engine.add_horizontal(("A", "center"), ("B", "center"))
    engine.add_vertical(("A", "center"), ("C", "center"))
    seen = []
    engine.on_list_changed(lambda entries: seen.append([e.id for e in entries]))

    shapes.remove_shape("B")

    assert [entry.id for entry in engine.get_constraint_list()] == ["c2"]
    assert seen == [["c2"]]
    assert engine.prune_constraints_for_shapes(["nothing"]) == 0


def test_handler_errors_are_logged(caplog):
    shapes = _scene()
    engine = ConstraintEngine(shapes)
    engine.install_live_enforcer()
    engine.add_coincident_anchors(("A", "center"), ("B", "center"))

    def boom(name, shape):
        raise RuntimeError("listener failed")

    engine.on_shape_changed = boom
    with caplog.at_level(logging.ERROR, logger="geoconstraints.engine"):
        shapes.set_position("A", (30, 30))
    assert "Constraint enforce error" in caplog.text
    assert not engine.applying


def test_uninstall_stops_enforcement():
    shapes = _scene()
    engine = ConstraintEngine(shapes)
    engine.install_live_enforcer()
    engine.install_live_enforcer()
    engine.add_coincident_anchors(("A", "center"), ("B", "center"), fixed_shape="B")
    engine.uninstall_live_enforcer()

    shapes.set_position("A", (70, 70))
    assert _pos(shapes, "B") == (10.0, 20.0)
