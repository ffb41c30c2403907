"""Damped nonlinear least squares (Levenberg–Marquardt)."""

from __future__ import annotations

import logging
import math
from typing import Mapping, Optional, Sequence

import numpy as np

from ..evaluate import Equation, as_compiled, evaluate_system
from ..logging_utils import apply_debug_logging
from .config import resolve_options
from .linalg import lu_solve
from .model import Bindings, LMResult, SolverOptions, SolverStalledError

logger = logging.getLogger(__name__)


def total_error(residuals: np.ndarray) -> float:
    """Half the sum of squared residuals."""

    return 0.5 * float(residuals @ residuals)


def levenberg_marquardt(
    equations: Sequence[Equation],
    variables: Mapping[str, float],
    options: Optional[SolverOptions] = None,
    *,
    known: Optional[Mapping[str, float]] = None,
    raise_on_stall: bool = False,
) -> LMResult:
    """Minimise the squared residuals of ``equations`` over ``variables``.

    Every name in ``variables`` is an unknown; names in ``known`` are held
    constant. The Jacobian (and with it ``JᵀJ`` and ``Jᵀr``) is only
    recomputed after an accepted step. Stops on a small cost, a vanishing
    Jacobian or a negligible cost change, whichever comes first; after
    ``max_iterations`` the result is marked ``"stalled"`` and carries the
    best accepted point.
    """

    opts = resolve_options(options)
    compiled = [as_compiled(eq) for eq in equations]
    names = list(variables.keys())
    x = np.array([float(variables[name]) for name in names], dtype=float)

    if not names:
        return LMResult(variables={}, status="converged", iterations=0, cost=0.0)

    def evaluate_at(vec: np.ndarray):
        return evaluate_system(compiled, dict(zip(names, vec.tolist())), known)

    residual, jacobian = evaluate_at(x)
    cost = total_error(residual)
    if not math.isfinite(cost):
        raise ValueError(f"non-finite residuals at the initial point (cost={cost})")

    tol = opts.tolerance
    lam = opts.lambda_init
    identity = np.eye(len(names))
    stale = True
    hessian = gradient = None

    for iteration in range(1, opts.max_iterations + 1):
        if stale:
            transposed = jacobian.T
            hessian = transposed @ jacobian
            gradient = transposed @ residual
            stale = False

        delta = lu_solve(hessian + lam * identity, gradient, fast=opts.fast)
        trial = x - delta

        try:
            new_residual, new_jacobian = evaluate_at(trial)
            new_cost = total_error(new_residual)
        except (ArithmeticError, ValueError):
            new_residual = new_jacobian = None
            new_cost = math.inf
        if not math.isfinite(new_cost):
            new_cost = math.inf

        converged = (
            new_cost < tol
            or (new_jacobian is not None and bool(np.all(np.abs(new_jacobian) < tol)))
            or abs(cost - new_cost) < tol
        )

        accepted = new_cost < cost
        if accepted:
            x, residual, jacobian, cost = trial, new_residual, new_jacobian, new_cost
            lam /= opts.lambda_down
            stale = True
        else:
            lam *= opts.lambda_up

        logger.debug(
            "iteration=%d cost=%.6g lambda=%.3g accepted=%s", iteration, cost, lam, accepted
        )

        if converged:
            return LMResult(
                variables=dict(zip(names, x.tolist())),
                status="converged",
                iterations=iteration,
                cost=cost,
            )

    result = LMResult(
        variables=dict(zip(names, x.tolist())),
        status="stalled",
        iterations=opts.max_iterations,
        cost=cost,
    )
    logger.warning(
        "Levenberg-Marquardt stalled after %d iterations with cost %.3e", result.iterations, cost
    )
    if raise_on_stall:
        raise SolverStalledError(result)
    return result


def solution_bindings(result: LMResult, known: Optional[Mapping[str, float]] = None) -> Bindings:
    merged: Bindings = dict(result.variables)
    if known:
        merged.update({name: float(value) for name, value in known.items()})
    return merged


apply_debug_logging(globals(), logger=logger)


__all__ = ["levenberg_marquardt", "solution_bindings", "total_error"]
