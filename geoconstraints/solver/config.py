"""Configuration helpers for solver components."""

from __future__ import annotations

import copy
from typing import Optional

from .model import SolverOptions

_SOLVER_OPTIONS = SolverOptions()


def get_solver_options() -> SolverOptions:
    return copy.deepcopy(_SOLVER_OPTIONS)


def set_solver_options(options: SolverOptions) -> None:
    global _SOLVER_OPTIONS
    _SOLVER_OPTIONS = copy.deepcopy(options)


def resolve_options(options: Optional[SolverOptions] = None) -> SolverOptions:
    return options if options is not None else get_solver_options()
