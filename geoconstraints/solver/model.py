"""Data structures shared by the numeric solvers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal

VariableName = str
Bindings = Dict[VariableName, float]

LMStatus = Literal["converged", "stalled"]
SystemStatus = Literal["empty", "converged", "stalled", "fallback"]


@dataclass
class SolverOptions:
    """Levenberg–Marquardt and equation-scoring parameters.

    ``epsilon`` decides whether an equation counts as satisfied (squared
    residual below ``sqrt(epsilon)``). ``tolerance`` drives the
    Levenberg–Marquardt stopping tests on the cost, the cost change and the
    Jacobian entries.
    """

    lambda_init: float = 10.0
    lambda_up: float = 10.0
    lambda_down: float = 10.0
    epsilon: float = 1e-5
    tolerance: float = 1e-12
    max_iterations: int = 200
    fast: bool = False

    def __post_init__(self) -> None:
        if self.lambda_init <= 0:
            raise ValueError("lambda_init must be positive")
        if self.lambda_up <= 1 or self.lambda_down <= 1:
            raise ValueError("lambda_up and lambda_down must be greater than 1")
        if self.epsilon <= 0 or self.tolerance <= 0:
            raise ValueError("epsilon and tolerance must be positive")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")


@dataclass
class LMResult:
    variables: Bindings
    status: LMStatus
    iterations: int
    cost: float

    @property
    def converged(self) -> bool:
        return self.status == "converged"


@dataclass
class SystemSolution:
    """Outcome of :func:`solve_system`.

    ``satisfied`` is aligned with the input equations; ``equations`` holds
    their text after forward substitution.
    """

    satisfied: List[bool]
    variables: Bindings
    equations: List[str] = field(default_factory=list)
    dropped: List[int] = field(default_factory=list)
    status: SystemStatus = "converged"

    @property
    def all_satisfied(self) -> bool:
        return all(self.satisfied)


class SolverStalledError(RuntimeError):
    """Raised when Levenberg–Marquardt hits its iteration bound."""

    def __init__(self, result: LMResult):
        super().__init__(
            f"Levenberg-Marquardt stalled after {result.iterations} iterations (cost {result.cost:.3e})"
        )
        self.result = result
