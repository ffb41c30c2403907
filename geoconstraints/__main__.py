import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from geoconstraints import (
    ConstraintEngine,
    ParseError,
    ShapeCollection,
    ValidationError,
    parse_constraints,
    print_constraints,
    validate,
)
from geoconstraints.engine import ConstraintOutcome

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _load_scene(path: str) -> dict:
    with open(path, encoding="utf-8") as fin:
        scene = json.load(fin)
    if not isinstance(scene, dict) or not isinstance(scene.get("shapes"), dict):
        raise ValueError(f"{path}: scene must be a JSON object with a 'shapes' mapping")
    return scene


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Enforce anchor constraints on a 2D scene")
    parser.add_argument("path", help="Path to the scene JSON file")
    parser.add_argument(
        "--constraints",
        help="Read the constraints block from this file instead of the scene",
    )
    parser.add_argument(
        "--fixed",
        help="Shape that stays put while constraints are enforced",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--output",
        help="Write the updated scene JSON to the given path",
    )
    parser.add_argument(
        "--list-anchors",
        action="store_true",
        help="Print every shape's anchors with world coordinates",
    )
    parser.add_argument(
        "--explain",
        action="store_true",
        help="Print the constraint list and which equations are satisfied",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    logger.info("Loading scene from %s", args.path)
    scene = _load_scene(args.path)
    collection = ShapeCollection(scene["shapes"])

    if args.constraints:
        text = Path(args.constraints).read_text(encoding="utf-8")
    else:
        text = scene.get("constraints") or ""

    if args.fixed and args.fixed not in collection:
        logger.error("Fixed shape %r is not in the scene", args.fixed)
        raise SystemExit(1)

    try:
        specs = parse_constraints(text)
        validate(specs, collection)
    except (ParseError, ValidationError) as exc:
        logger.error("Invalid constraints:\n%s", exc)
        raise SystemExit(1)
    logger.info("Parsed %d constraint(s)", len(specs))

    engine = ConstraintEngine(collection)
    with engine.suspend_list_events():
        for spec in specs:
            engine.add_spec(spec, fixed_shape=args.fixed)
    outcomes: List[ConstraintOutcome] = engine.apply_all_constraints(args.fixed)

    print("Shapes:")
    for name, shape in collection.shapes.items():
        x, y = shape.transform.position
        print(f"  {name}: ({x:.6f}, {y:.6f}) rot={shape.transform.rotation:g}")

    if args.list_anchors:
        print("Anchors:")
        for name in collection.shapes:
            print(f"  {name}:")
            for info in engine.get_anchors_for_shape(name):
                world = engine.get_anchor_world(name, info.key)
                print(f"    {info.key} ({info.label}): ({world.x:.6f}, {world.y:.6f})")

    if args.explain:
        print("Constraints:")
        by_id = {outcome.id: outcome for outcome in outcomes}
        entries = engine.get_constraint_list()
        if not entries:
            print("  (none)")
        for entry in entries:
            outcome = by_id.get(entry.id)
            if outcome is None:
                print(f"  {entry.id}: {entry.label} [skipped]")
                continue
            state = "ok" if all(outcome.satisfied) else "unsatisfied"
            print(f"  {entry.id}: {entry.label} [{state}, {outcome.status}]")
        block = print_constraints(engine.get_constraint_snapshot())
        if block:
            print(block, end="")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Writing scene to %s", output_path)
        updated = dict(scene)
        updated["shapes"] = collection.to_dict()
        updated["constraints"] = print_constraints(engine.get_constraint_snapshot())
        output_path.write_text(json.dumps(updated, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        print(f"Scene written to {output_path}")


if __name__ == "__main__":
    main(sys.argv[1:])
