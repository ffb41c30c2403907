import pytest

from geoconstraints import AnchorLookupError, ConstraintEngine, ShapeCollection, parse_constraints


def _collection(**positions):
    shapes = {
        "A": {"type": "rectangle", "params": {"width": 100, "height": 50}, "transform": {"position": [0, 0]}},
        "B": {"type": "circle", "params": {"radius": 5}, "transform": {"position": [10, 20]}},
        "C": {"type": "circle", "params": {"radius": 5}, "transform": {"position": [50, 130]}},
    }
    for name, pos in positions.items():
        shapes[name]["transform"]["position"] = list(pos)
    return ShapeCollection(shapes)


def _pos(collection, name):
    return collection.get(name).transform.position


def test_coincident_moves_free_anchor_onto_fixed_one():
    shapes = _collection()
    engine = ConstraintEngine(shapes)
    handle = engine.add_coincident_anchors(("A", "center"), ("B", "center"), fixed_shape="B")
    assert handle.id == "c1"
    assert handle.label == "Coincident  A:center ↦ B:center"
    assert _pos(shapes, "A") == pytest.approx((10.0, 20.0), abs=1e-4)
    assert _pos(shapes, "B") == (10.0, 20.0)


def test_coincident_without_fixed_shape_meets_in_between():
    shapes = _collection()
    engine = ConstraintEngine(shapes)
    engine.add_coincident_anchors("A.center", "B.center")
    a, b = _pos(shapes, "A"), _pos(shapes, "B")
    assert a == pytest.approx(b, abs=1e-4)


def test_distance_reaches_target():
    shapes = _collection(B=(40, 0))
    engine = ConstraintEngine(shapes)
    engine.add_distance(("A", "center"), ("B", "center"), 100)
    (ax, ay), (bx, by) = _pos(shapes, "A"), _pos(shapes, "B")
    assert ((bx - ax) ** 2 + (by - ay) ** 2) ** 0.5 == pytest.approx(100.0, abs=1e-4)


def test_horizontal_and_vertical_only_touch_one_axis():
    shapes = _collection(B=(30, 15))
    engine = ConstraintEngine(shapes)
    engine.add_horizontal(("A", "center"), ("B", "center"), fixed_shape="A")
    assert _pos(shapes, "B") == pytest.approx((30.0, 0.0), abs=1e-4)
    engine.add_vertical(("A", "center"), ("C", "center"), fixed_shape="A")
    assert _pos(shapes, "C") == pytest.approx((0.0, 130.0), abs=1e-4)


def test_rotated_shape_is_translated_not_rotated():
    shapes = _collection(B=(0, 0))
    shapes.set_rotation("A", 90)
    engine = ConstraintEngine(shapes)
    engine.add_coincident_anchors(("A", "rect_tr"), ("B", "center"), fixed_shape="B")
    assert _pos(shapes, "A") == pytest.approx((25.0, -50.0), abs=1e-4)
    assert shapes.get("A").transform.rotation == 90
    world = engine.get_anchor_world("A", "rect_tr")
    assert (world.x, world.y) == pytest.approx((0.0, 0.0), abs=1e-4)


def test_parallel_and_perpendicular():
    shapes = _collection(B=(0, 100))
    engine = ConstraintEngine(shapes)
    engine.add_parallel((("A", "rect_tl"), ("A", "rect_tr")), (("B", "center"), ("C", "center")), fixed_shape="A")
    (_, by), (_, cy) = _pos(shapes, "B"), _pos(shapes, "C")
    assert cy - by == pytest.approx(0.0, abs=1e-4)

    engine.add_perpendicular((("A", "rect_tl"), ("A", "rect_tr")), (("B", "center"), ("C", "center")), fixed_shape="A")
    (bx, _), (cx, _) = _pos(shapes, "B"), _pos(shapes, "C")
    assert cx - bx == pytest.approx(0.0, abs=1e-4)


def test_ids_labels_and_removal():
    engine = ConstraintEngine(_collection())
    engine.add_distance(("A", "center"), ("B", "center"), 100)
    engine.add_horizontal(("A", "center"), ("C", "center"))
    listing = engine.get_constraint_list()
    assert [entry.id for entry in listing] == ["c1", "c2"]
    assert listing[0].label == "Distance(100)  A:center ↦ B:center"

    assert engine.remove_constraint("c1") is True
    assert engine.remove_constraint("c1") is False
    assert [entry.id for entry in engine.get_constraint_list()] == ["c2"]

    engine.add_vertical(("A", "center"), ("B", "center"))
    assert engine.get_constraint_list()[-1].id == "c3"

    engine.clear_all_constraints()
    assert engine.get_constraint_list() == []


def test_snapshot_is_a_copy():
    engine = ConstraintEngine(_collection())
    engine.add_distance(("A", "center"), ("B", "center"), 100)
    snapshot = engine.get_constraint_snapshot()
    snapshot[0].dist = 5.0
    assert engine.constraints[0].dist == 100.0


def test_missing_anchor():
    shapes = _collection()
    engine = ConstraintEngine(shapes)
    with pytest.raises(AnchorLookupError):
        engine.add_coincident_anchors(("A", "nope"), ("B", "center"))
    with pytest.raises(KeyError):
        engine.add_coincident_anchors(("Z", "center"), ("B", "center"))
    assert engine.get_constraint_list() == []
    assert engine.add_horizontal(("A", "center"), ("B", "center")).id == "c1"

    world = engine.get_anchor_world("A", "nope")
    assert (world.x, world.y, world.ok) == (0.0, 0.0, False)
    assert engine.get_anchor_world("Z", "center").ok is False


@pytest.mark.parametrize("dist", [-1.0, float("nan"), float("inf"), "far"])
def test_bad_distance(dist):
    engine = ConstraintEngine(_collection())
    with pytest.raises(ValueError):
        engine.add_distance(("A", "center"), ("B", "center"), dist)


def test_identical_anchors_rejected():
    engine = ConstraintEngine(_collection())
    with pytest.raises(ValueError):
        engine.add_coincident_anchors(("A", "center"), ("A", "center"))


def test_anchor_listing():
    engine = ConstraintEngine(_collection())
    keys = [info.key for info in engine.get_anchors_for_shape("B")]
    assert keys == ["center", "circ_e", "circ_n", "circ_w", "circ_s"]
    assert [tuple(info) for info in engine.get_anchors_for_shape("missing")] == [("center", "Center")]


def test_constraint_geometry():
    engine = ConstraintEngine(_collection())
    engine.add_horizontal(("A", "center"), ("B", "center"), fixed_shape="A")
    geometry = engine.get_constraint_geometry(engine.constraints[0])
    assert geometry.a.ok and geometry.b.ok
    assert geometry.mid == pytest.approx((5.0, 0.0), abs=1e-4)


def test_apply_all_respects_fixed_shape_and_order():
    shapes = _collection()
    engine = ConstraintEngine(shapes)
    engine.add_coincident_anchors(("A", "center"), ("B", "center"), fixed_shape="B")
    shapes.set_position("B", (-7, 3))
    outcomes = engine.apply_all_constraints(fixed_shape="B")
    assert [o.id for o in outcomes] == ["c1"]
    assert outcomes[0].satisfied == [True, True]
    assert outcomes[0].moved == ["A"]
    assert _pos(shapes, "A") == pytest.approx((-7.0, 3.0), abs=1e-4)


def test_apply_all_noops():
    engine = ConstraintEngine(_collection())
    assert engine.apply_all_constraints() == []
    engine.add_horizontal(("A", "center"), ("B", "center"))
    engine.set_live_enforce(False)
    assert engine.apply_all_constraints() == []


def test_apply_all_skips_constraints_with_missing_anchors(caplog):
    shapes = _collection()
    engine = ConstraintEngine(shapes)
    engine.add_horizontal(("A", "center"), ("B", "center"))
    engine.add_vertical(("A", "center"), ("C", "center"))
    shapes.shapes.pop("B")
    outcomes = engine.apply_all_constraints()
    assert [o.id for o in outcomes] == ["c2"]
    assert "Skipping constraint c1" in caplog.text


def test_list_listeners_and_suspension():
    engine = ConstraintEngine(_collection())
    seen = []
    unsubscribe = engine.on_list_changed(lambda entries: seen.append([e.id for e in entries]))

    engine.add_horizontal(("A", "center"), ("B", "center"))
    assert seen == [["c1"]]

    with engine.suspend_list_events():
        engine.add_vertical(("A", "center"), ("C", "center"))
        engine.remove_constraint("c1")
    assert seen == [["c1"], ["c2"]]

    unsubscribe()
    engine.clear_all_constraints()
    assert seen == [["c1"], ["c2"]]


def test_add_spec_dispatch():
    shapes = _collection(B=(0, 100))
    engine = ConstraintEngine(shapes)
    specs = parse_constraints(
        "constraints {\n"
        "  distance A.center B.center 30\n"
        "  parallel A.rect_tl A.rect_tr B.center C.center\n"
        "}"
    )
    handles = [engine.add_spec(spec, fixed_shape="A") for spec in specs]
    assert [h.id for h in handles] == ["c1", "c2"]
    assert engine.constraints[0].dist == 30.0
    assert len(engine.constraints[1].anchors) == 4


def test_on_shape_changed_callback():
    calls = []
    shapes = _collection()
    engine = ConstraintEngine(shapes, on_shape_changed=lambda name, shape: calls.append(name))
    engine.add_coincident_anchors(("A", "center"), ("B", "center"), fixed_shape="B")
    assert calls == ["A"]


def test_anchor_lookup_sees_added_and_edited_shapes():
    shapes = _collection()
    engine = ConstraintEngine(shapes)
    assert engine.get_anchor_world("A", "rect_tr")[:2] == pytest.approx((50.0, 25.0))

    shapes.add_shape("D", {"type": "circle", "params": {"radius": 2}, "transform": {"position": [5, 5]}})
    shapes.update_shape("A", {"width": 40})

    assert engine.get_anchor_world("D", "center") == (5.0, 5.0, True)
    assert engine.get_anchor_world("A", "rect_tr")[:2] == pytest.approx((20.0, 25.0))


def test_geometry_follows_parameter_edits():
    shapes = _collection(B=(0, 0))
    engine = ConstraintEngine(shapes)
    engine.add_horizontal(("A", "rect_mr"), ("B", "center"), fixed_shape="A")
    shapes.update_shape("A", {"width": 10})
    geometry = engine.get_constraint_geometry(engine.constraints[0])
    assert (geometry.a.x, geometry.a.y) == pytest.approx((5.0, 0.0))


def test_distance_from_coincident_start_cannot_move():
    shapes = _collection(B=(0, 0))
    engine = ConstraintEngine(shapes)
    engine.add_distance(("A", "center"), ("B", "center"), 100)
    (outcome,) = engine.apply_all_constraints()
    assert outcome.satisfied == [False]
    assert outcome.moved == []
    assert _pos(shapes, "A") == _pos(shapes, "B") == (0.0, 0.0)
