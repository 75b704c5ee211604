"""Levenberg-Marquardt minimisation of sum-of-squares residual functions."""

from __future__ import annotations

import sys
from typing import Callable, Optional

import numpy as np

Residual = Callable[[np.ndarray], np.ndarray]
Jacobian = Callable[[np.ndarray], np.ndarray]


def _solve_linear(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    try:
        return np.linalg.solve(a, b)
    except np.linalg.LinAlgError:
        return np.linalg.lstsq(a, b, rcond=None)[0]


class LevMarq:
    """Minimises ||f(z)||^2 with an adaptive damping factor.

    ``f`` maps a parameter vector to a residual vector; ``jac`` maps a
    parameter vector to the Jacobian of ``f`` (rows: residuals, columns:
    parameters). When no Jacobian is given it is estimated by central
    differences.
    """

    def __init__(
        self,
        max_iters: int = 1000,
        min_error: float = 0.0,
        min_step_error_diff: float = 0.0,
        tau: float = 1.0,
        der_epsilon: float = 1e-3,
    ) -> None:
        self.set_params(max_iters, min_error, min_step_error_diff, tau, der_epsilon)
        self.verbose = False
        self.step_callback: Optional[Callable[[np.ndarray], None]] = None
        self.stop_function: Optional[Callable[[np.ndarray], bool]] = None
        self._v = 5.0
        self._mu = -1.0
        self._z = np.zeros(0)
        self._x = np.zeros(0)
        self._curr_err = 0.0
        self._prev_err = 0.0
        self._min_err = 0.0
        self._initialised = False

    def set_params(
        self,
        max_iters: int,
        min_error: float,
        min_step_error_diff: float = 0.0,
        tau: float = 1.0,
        der_epsilon: float = 1e-3,
    ) -> None:
        """Sets the stopping criteria, the initial damping scale and the derivative step."""
        self.max_iters = int(max_iters)
        self.min_error = float(min_error)
        self.min_step_error_diff = float(min_step_error_diff)
        self.tau = float(tau)
        self.der_epsilon = float(der_epsilon)

    def calc_derivatives(self, z, f: Residual) -> np.ndarray:
        """Returns the Jacobian of ``f`` at ``z`` estimated by central differences."""
        z = np.asarray(z, dtype=float).ravel()
        columns = []
        for i in range(z.size):
            zp = z.copy()
            zm = z.copy()
            zp[i] += self.der_epsilon
            zm[i] -= self.der_epsilon
            xp = np.asarray(f(zp), dtype=float).ravel()
            xm = np.asarray(f(zm), dtype=float).ravel()
            columns.append((xp - xm) / (2.0 * self.der_epsilon))
        if not columns:
            return np.zeros((np.asarray(f(z)).size, 0))
        return np.column_stack(columns)

    def init(self, z, f: Residual) -> None:
        """Starts a step-by-step search from ``z``."""
        self._z = np.array(z, dtype=float).ravel()
        self._x = np.asarray(f(self._z), dtype=float).ravel()
        err = float(self._x @ self._x)
        self._min_err = self._curr_err = self._prev_err = err
        self._mu = -1.0
        self._initialised = True

    def step(self, f: Residual, jac: Optional[Jacobian] = None) -> bool:
        """Performs one damped step; returns whether a step was accepted."""
        if not self._initialised:
            raise RuntimeError("init() must be called before step()")
        if jac is None:
            def jac(z, _f=f):
                return self.calc_derivatives(z, _f)

        j = np.asarray(jac(self._z), dtype=float)
        expected = (self._x.size, self._z.size)
        if j.shape != expected:
            raise ValueError(f"Jacobian has shape {j.shape}, expected {expected}")
        jtj = j.T @ j
        b = -j.T @ self._x

        if self._mu < 0:
            diag = np.diag(jtj)
            self._mu = float(diag[int(np.argmax(diag))]) * self.tau

        gain = 0.0
        prev_mu = 0.0
        tries = 0
        accepted = False
        diag_idx = np.diag_indices_from(jtj)
        while True:
            jtj[diag_idx] += self._mu - prev_mu
            prev_mu = self._mu
            delta = _solve_linear(jtj, b)
            estimated = self._z + delta
            self._x = np.asarray(f(estimated), dtype=float).ravel()
            err = float(self._x @ self._x)
            predicted = 0.5 * float(delta @ (self._mu * delta - b))
            with np.errstate(divide="ignore", invalid="ignore"):
                gain = float(np.float64(err - self._prev_err) / np.float64(predicted))
            if gain > 0:
                self._mu *= max(0.33, 1.0 - (2.0 * gain - 1.0) ** 3)
                self._v = 5.0
                self._curr_err = err
                self._z = estimated
                accepted = True
            else:
                self._mu *= self._v
                self._v *= 5.0
            if not gain <= 0 or tries >= 5:
                break
            tries += 1

        if self.verbose:
            print(
                f"Curr Error={self._curr_err:.5g} "
                f"AErr(prev-curr)={self._prev_err - self._curr_err:.5g} "
                f"gain={gain:.5g} dumping factor={self._mu:.5g}"
            )
        if self._curr_err < self._prev_err:
            self._curr_err, self._prev_err = self._prev_err, self._curr_err
        return accepted

    def current_solution(self) -> tuple[np.ndarray, float]:
        """Returns a copy of the current parameters and their error."""
        return self._z.copy(), self._curr_err

    def solve(self, z, f: Residual, jac: Optional[Jacobian] = None) -> tuple[np.ndarray, float]:
        """Runs the search from ``z``; returns the final parameters and error."""
        self.init(z, f)
        if self.stop_function is not None:
            while True:
                self.step(f, jac)
                if self.step_callback is not None:
                    self.step_callback(self._z.copy())
                if self.stop_function(self._z.copy()):
                    break
        else:
            for i in range(self.max_iters):
                if self.verbose:
                    print(f"iteration {i}/{self.max_iters}  ", end="", file=sys.stderr)
                accepted = self.step(f, jac)
                must_exit = False
                if self._curr_err < self.min_error:
                    must_exit = True
                if abs(self._prev_err - self._curr_err) <= self.min_step_error_diff or not accepted:
                    must_exit = True
                if self._curr_err < self._prev_err:
                    must_exit = True
                if self.step_callback is not None:
                    self.step_callback(self._z.copy())
                if must_exit:
                    break
        return self.current_solution()