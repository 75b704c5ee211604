import numpy as np
import pytest

from arucokit.levmarq import LevMarq


def rosenbrock(z):
    return np.array([10.0 * (z[1] - z[0] ** 2), 1.0 - z[0]])


def rosenbrock_jac(z):
    return np.array([[-20.0 * z[0], 10.0], [-1.0, 0.0]])


def linear_problem():
    a = np.array([[1.0, 2.0], [3.0, -1.0], [0.5, 4.0]])
    z_true = np.array([0.7, -1.3])
    b = a @ z_true
    return (lambda z: a @ z - b), (lambda z: a), z_true


def test_linear_problem_converges_to_exact_solution():
    f, jac, z_true = linear_problem()
    solver = LevMarq()
    z, err = solver.solve(np.zeros(2), f, jac)
    np.testing.assert_allclose(z, z_true, atol=1e-6)
    assert 0.0 <= err < 1e-8


def test_rosenbrock_with_analytic_jacobian():
    solver = LevMarq()
    z, err = solver.solve(np.array([-1.2, 1.0]), rosenbrock, rosenbrock_jac)
    np.testing.assert_allclose(z, [1.0, 1.0], atol=1e-4)
    assert err < 1e-6


def test_rosenbrock_with_numeric_jacobian():
    solver = LevMarq()
    z, _ = solver.solve(np.array([0.0, 0.0]), rosenbrock)
    np.testing.assert_allclose(z, [1.0, 1.0], atol=1e-3)


def test_calc_derivatives_matches_analytic_jacobian_for_quadratics():
    solver = LevMarq()
    z = np.array([0.3, -2.0])
    np.testing.assert_allclose(
        solver.calc_derivatives(z, rosenbrock), rosenbrock_jac(z), atol=1e-9
    )


def test_zero_iterations_returns_initial_point_and_error():
    f, jac, _ = linear_problem()
    solver = LevMarq()
    solver.set_params(0, 0.0)
    start = np.array([1.0, 1.0])
    z, err = solver.solve(start, f, jac)
    np.testing.assert_array_equal(z, start)
    residual = f(start)
    assert err == pytest.approx(float(residual @ residual))


def test_init_sets_current_solution():
    f, _, _ = linear_problem()
    solver = LevMarq()
    start = np.array([2.0, -1.0])
    solver.init(start, f)
    z, err = solver.current_solution()
    np.testing.assert_array_equal(z, start)
    residual = f(start)
    assert err == pytest.approx(float(residual @ residual))


def test_step_reduces_error():
    solver = LevMarq()
    start = np.array([-1.2, 1.0])
    solver.init(start, rosenbrock)
    initial = float(rosenbrock(start) @ rosenbrock(start))
    accepted = solver.step(rosenbrock, rosenbrock_jac)
    z, _ = solver.current_solution()
    r = rosenbrock(z)
    assert accepted is True
    assert float(r @ r) < initial


def test_step_before_init_raises():
    with pytest.raises(RuntimeError):
        LevMarq().step(rosenbrock, rosenbrock_jac)


def test_wrong_jacobian_shape_raises():
    solver = LevMarq()
    solver.init(np.zeros(2), rosenbrock)
    with pytest.raises(ValueError):
        solver.step(rosenbrock, lambda z: np.zeros((3, 2)))


def test_stop_function_and_callback():
    solver = LevMarq()
    seen = []
    solver.step_callback = seen.append
    solver.stop_function = lambda z: len(seen) >= 3
    solver.solve(np.array([-1.2, 1.0]), rosenbrock, rosenbrock_jac)
    assert len(seen) == 3


def test_max_iters_bounds_callback_count():
    solver = LevMarq(max_iters=2)
    seen = []
    solver.step_callback = seen.append
    solver.solve(np.array([-1.2, 1.0]), rosenbrock, rosenbrock_jac)
    assert 1 <= len(seen) <= 2