from pathlib import Path

import pytest

import geoconstraints.__main__ as cli
from geoconstraints import ConstraintEngine, ShapeCollection, parse_constraints, print_constraints, validate

EXAMPLE = Path(__file__).resolve().parent.parent / "examples" / "two_boxes.json"


def test_example_scene_end_to_end(tmp_path, capsys):
    out_path = tmp_path / "solved.json"
    cli.main([str(EXAMPLE), "--fixed", "Base", "--explain", "--output", str(out_path)])
    stdout = capsys.readouterr().out
    assert "Shapes:" in stdout
    assert "c3: Horizontal  Lid:center ↦ Knob:center" in stdout
    assert out_path.exists()


def test_sequential_application_last_constraint_wins():
    import json

    scene = json.loads(EXAMPLE.read_text(encoding="utf-8"))
    shapes = ShapeCollection(scene["shapes"])
    specs = parse_constraints(scene["constraints"])
    validate(specs, shapes)

    engine = ConstraintEngine(shapes)
    for spec in specs:
        engine.add_spec(spec, fixed_shape="Base")
    engine.apply_all_constraints("Base")

    assert shapes.get("Base").transform.position == (0.0, 0.0)
    lid_y = shapes.get("Lid").transform.position[1]
    knob_y = shapes.get("Knob").transform.position[1]
    assert lid_y == pytest.approx(knob_y, abs=1e-4)
    assert print_constraints(engine.get_constraint_snapshot()) == scene["constraints"]
