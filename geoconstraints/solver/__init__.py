"""Solver façade: Levenberg–Marquardt plus the equation-dropping system solver."""

from __future__ import annotations

import logging

from .config import get_solver_options, set_solver_options
from .linalg import lu_solve
from .lm import levenberg_marquardt, solution_bindings, total_error
from .model import (
    Bindings,
    LMResult,
    SolverOptions,
    SolverStalledError,
    SystemSolution,
)
from .system import score_equations, solve_system

logger = logging.getLogger(__name__)

if not logging.getLogger().handlers:  # pragma: no cover - depends on host application
    logging.basicConfig(level=logging.INFO)


__all__ = [
    "Bindings",
    "LMResult",
    "SolverOptions",
    "SolverStalledError",
    "SystemSolution",
    "get_solver_options",
    "levenberg_marquardt",
    "lu_solve",
    "score_equations",
    "set_solver_options",
    "solution_bindings",
    "solve_system",
    "total_error",
]
