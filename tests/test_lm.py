import pytest

from geoconstraints.solver import SolverOptions, SolverStalledError, levenberg_marquardt, solution_bindings


def test_linear_single_variable():
    result = levenberg_marquardt(["x - 5"], {"x": 0.0})
    assert result.converged
    assert result.variables["x"] == pytest.approx(5.0, abs=1e-6)


def test_nonlinear_root():
    result = levenberg_marquardt(["x^2 - 4"], {"x": 1.0})
    assert result.variables["x"] == pytest.approx(2.0, abs=1e-6)


def test_two_equations_two_unknowns():
    result = levenberg_marquardt(["x + y - 3", "x - y - 1"], {"x": 0.0, "y": 0.0})
    assert result.variables["x"] == pytest.approx(2.0, abs=1e-6)
    assert result.variables["y"] == pytest.approx(1.0, abs=1e-6)


def test_known_values_are_held():
    result = levenberg_marquardt(["x - y"], {"x": 0.0}, known={"y": 4.0})
    assert set(result.variables) == {"x"}
    assert result.variables["x"] == pytest.approx(4.0, abs=1e-6)
    assert solution_bindings(result, {"y": 4.0})["y"] == 4.0


def test_least_squares_compromise():
    result = levenberg_marquardt(["x - 5", "x - 10"], {"x": 0.0})
    assert result.variables["x"] == pytest.approx(7.5, abs=1e-5)


def test_no_unknowns_is_immediately_converged():
    result = levenberg_marquardt(["3 - 3"], {})
    assert result.converged
    assert result.iterations == 0
    assert result.variables == {}


def test_iteration_cap_reports_stall():
    options = SolverOptions(max_iterations=1)
    result = levenberg_marquardt(["x^2 - 4"], {"x": 10.0}, options)
    assert result.status == "stalled"
    assert not result.converged
    # the committed point improved on the start
    assert abs(result.variables["x"] - 2.0) < 8.0


def test_stall_can_raise():
    options = SolverOptions(max_iterations=1)
    with pytest.raises(SolverStalledError) as excinfo:
        levenberg_marquardt(["x^2 - 4"], {"x": 10.0}, options, raise_on_stall=True)
    assert excinfo.value.result.status == "stalled"


def test_non_finite_start_is_rejected():
    with pytest.raises(ValueError):
        levenberg_marquardt(["log(x)"], {"x": -1.0})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"lambda_init": 0.0},
        {"lambda_up": 1.0},
        {"epsilon": -1.0},
        {"max_iterations": 0},
    ],
)
def test_options_validation(kwargs):
    with pytest.raises(ValueError):
        SolverOptions(**kwargs)


@pytest.mark.parametrize(
    "equations, start",
    [
        (["atan(x) - 1.2", "x - y^2"], {"x": -5.0, "y": 0.3}),
        (["x^3 - 27", "y^2 - x"], {"x": 1.0, "y": 0.5}),
    ],
)
def test_fast_mode_follows_the_same_path(equations, start):
    robust = levenberg_marquardt(equations, start, SolverOptions(lambda_init=1e-3))
    fast = levenberg_marquardt(equations, start, SolverOptions(lambda_init=1e-3, fast=True))
    assert fast.status == robust.status
    assert fast.iterations == robust.iterations
    for name in start:
        assert fast.variables[name] == pytest.approx(robust.variables[name], abs=1e-12)
