"""Solve a list of equations, degrading gracefully when they conflict."""

from __future__ import annotations

import logging
import math
from typing import List, Mapping, Optional, Sequence, Tuple

from ..evaluate import CompiledEquation, Equation, UnknownVariableError, as_compiled, evaluate
from ..logging_utils import apply_debug_logging
from .config import resolve_options
from .lm import levenberg_marquardt, solution_bindings
from .model import Bindings, LMResult, SolverOptions, SystemSolution, SystemStatus

logger = logging.getLogger(__name__)


def _check_symbols(
    equations: Sequence[CompiledEquation], unknowns: Mapping[str, float], known: Mapping[str, float]
) -> None:
    for eq in equations:
        for name in eq.symbols:
            if name not in unknowns and name not in known:
                raise UnknownVariableError(name, eq.text)


def _score(eq: CompiledEquation, unknowns: Mapping[str, float], known: Mapping[str, float]) -> float:
    try:
        value = evaluate(eq, unknowns, known).value
    except (ArithmeticError, ValueError):
        return math.inf
    return value * value


def score_equations(
    equations: Sequence[Equation],
    variables: Mapping[str, float],
    known: Optional[Mapping[str, float]] = None,
) -> List[float]:
    """Squared residual of each equation at ``variables``."""

    known = known or {}
    return [_score(as_compiled(eq), variables, known) for eq in equations]


def _solve(
    equations: List[CompiledEquation],
    unknowns: Bindings,
    known: Bindings,
    options: SolverOptions,
) -> Tuple[List[bool], Bindings, List[int], SystemStatus]:
    if not equations:
        return [], {**unknowns, **known}, [], "empty"

    status: SystemStatus
    try:
        result = levenberg_marquardt(equations, unknowns, options, known=known)
        status = result.status
    except Exception:
        logger.exception("levenberg_marquardt failed, falling back to the input variables")
        result = LMResult(variables=dict(unknowns), status="stalled", iterations=0, cost=math.inf)
        status = "fallback"
    solved = result.variables

    threshold = math.sqrt(options.epsilon)
    satisfied = [_score(eq, solved, known) < threshold for eq in equations]
    if all(satisfied):
        return satisfied, solution_bindings(result, known), [], status

    idx = satisfied.index(False)
    logger.debug("dropping unsatisfied equation %d: %s", idx, equations[idx].text)
    reduced = equations[:idx] + equations[idx + 1:]
    sat_rest, out, dropped_rest, status_rest = _solve(reduced, solved, known, options)

    flags = sat_rest[:idx] + [False] + sat_rest[idx:]
    dropped = sorted([idx] + [d if d < idx else d + 1 for d in dropped_rest])
    return flags, out, dropped, status if status_rest == "empty" else status_rest


def solve_system(
    equations: Sequence[Equation],
    variables: Mapping[str, float],
    forward_substitutions: Optional[Mapping[str, float]] = None,
    options: Optional[SolverOptions] = None,
) -> SystemSolution:
    """Solve ``equations`` for ``variables`` in the least-squares sense.

    Names in ``forward_substitutions`` are fixed to the given values and
    excluded from the unknowns; they are still present in the returned
    bindings. When the equations cannot all be satisfied, the first
    unsatisfied equation is dropped and the rest re-solved until what is
    left is consistent, so the result is always usable.
    """

    opts = resolve_options(options)
    compiled = [as_compiled(eq) for eq in equations]
    known: Bindings = {name: float(value) for name, value in (forward_substitutions or {}).items()}
    unknowns: Bindings = {
        name: float(value) for name, value in variables.items() if name not in known
    }

    if not compiled:
        return SystemSolution(satisfied=[], variables=dict(variables), status="empty")

    _check_symbols(compiled, unknowns, known)
    texts = [eq.substituted_text(known) for eq in compiled]
    logger.debug("solving %d equation(s) for %d unknown(s): %s", len(compiled), len(unknowns), texts)

    satisfied, solved, dropped, status = _solve(compiled, unknowns, known, opts)
    if dropped:
        logger.info(
            "Constraint system over-determined; dropped %d of %d equation(s): %s",
            len(dropped),
            len(compiled),
            [texts[i] for i in dropped],
        )
    return SystemSolution(
        satisfied=satisfied,
        variables=solved,
        equations=texts,
        dropped=dropped,
        status=status,
    )


apply_debug_logging(globals(), logger=logger)


__all__ = ["score_equations", "solve_system"]
