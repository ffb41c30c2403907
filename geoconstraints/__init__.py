from .parser import parse_constraints, parse_expression
from .lexer import ParseError
from .validate import validate, ValidationError
from .printer import print_constraints, format_constraint, format_expression, format_literal
from .ast import AnchorRef, ConstraintSpec
from .autodiff import Dual
from .evaluate import CompiledEquation, UnknownVariableError, compile_equation, evaluate, evaluate_system
from .shapes import Shape, ShapeCollection, ShapeEvent, Transform
from .anchors import Anchor, AnchorCatalog, AnchorWorld, anchor_world, anchors_for, sym
from .constraints import CONSTRAINT_TYPES, Constraint, label
from .engine import (
    AnchorInfo,
    AnchorLookupError,
    ConstraintEngine,
    ConstraintGeometry,
    ConstraintHandle,
    ConstraintLabel,
    ConstraintOutcome,
)
from .solver import (
    LMResult,
    SolverOptions,
    SolverStalledError,
    SystemSolution,
    get_solver_options,
    levenberg_marquardt,
    lu_solve,
    set_solver_options,
    solve_system,
)

__all__ = [
    'parse_constraints',
    'parse_expression',
    'ParseError',
    'validate',
    'ValidationError',
    'print_constraints',
    'format_constraint',
    'format_expression',
    'format_literal',
    'AnchorRef',
    'ConstraintSpec',
    'Dual',
    'CompiledEquation',
    'UnknownVariableError',
    'compile_equation',
    'evaluate',
    'evaluate_system',
    'Shape',
    'ShapeCollection',
    'ShapeEvent',
    'Transform',
    'Anchor',
    'AnchorCatalog',
    'AnchorWorld',
    'anchor_world',
    'anchors_for',
    'sym',
    'CONSTRAINT_TYPES',
    'Constraint',
    'label',
    'AnchorInfo',
    'AnchorLookupError',
    'ConstraintEngine',
    'ConstraintGeometry',
    'ConstraintHandle',
    'ConstraintLabel',
    'ConstraintOutcome',
    'LMResult',
    'SolverOptions',
    'SolverStalledError',
    'SystemSolution',
    'get_solver_options',
    'levenberg_marquardt',
    'lu_solve',
    'set_solver_options',
    'solve_system',
]
