# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Iterative Linear Quadratic Regulator (iLQR) solver.

Each iteration expands the cost and the dynamics around the current
trajectory, runs a regularized Riccati backward pass and rolls the local
feedback policy out with a backtracking line search:

    u_k = u_bar_k + alpha d_k + K_k (x_k - x_bar_k)

A step is accepted when the ratio of the actual to the expected cost
decrease lies in [line_search_lower_bound, line_search_upper_bound]. When
no step length is accepted the regularization is increased and the iterate
is kept.

The same solver runs the inner loop of the augmented Lagrangian solver,
where the cost includes the conic penalty terms of the constraints.
"""

import time
from typing import NamedTuple, Optional

import jax.numpy as jnp
import numpy as np
from absl import logging

from altrax.core.problem import Problem
from altrax.core.types import SolverStatus
from altrax.lqr.riccati import backward_pass
from altrax.solvers.base import SolverBase
from altrax.solvers.expansions import Duals, Penalties, make_solver_functions
from altrax.solvers.options import SolverOptions
from altrax.solvers.stats import SolverStats


class InnerResult(NamedTuple):
    """Outcome of an inner iLQR solve.

    Attributes:
        status: SOLVE_SUCCEEDED when the inner tolerances were met,
            MAX_ITERATIONS when an iteration cap was hit, or a failure.
        cost: Final cost including augmented Lagrangian terms.
        dJ: Cost decrease of the last iteration.
        gradient: Gradient metric of the last iteration.
        iterations: Number of iterations taken.
    """
    status: SolverStatus
    cost: float
    dJ: float
    gradient: float
    iterations: int


def gradient_metric(d, U) -> float:
    """Mean over knot points of max_i |d_k[i]| / (|u_k[i]| + 1)."""
    return float(jnp.mean(jnp.max(jnp.abs(d) / (jnp.abs(U) + 1.0), axis=1)))


def accept_step(J: float, J_new: float, expected: float, options: SolverOptions) -> bool:
    """Line search acceptance test for a trial step.

    A step whose expected decrease is below expected_decrease_tolerance is
    accepted only if it does not increase the cost. Otherwise the ratio of
    actual to expected decrease must lie within the line search bounds.
    """
    if not np.isfinite(J_new):
        return False
    if expected < options.expected_decrease_tolerance:
        return J_new <= J
    ratio = (J - J_new) / expected
    return options.line_search_lower_bound <= ratio <= options.line_search_upper_bound


class ILQRSolver(SolverBase):
    """iLQR solver operating on a Problem in place.

    Args:
        problem: The problem.
        options: Solver options.
        include_constraints: Add the augmented Lagrangian terms of the
            problem's constraints to the cost. Standalone iLQR ignores
            constraints.
        stats: Statistics object to record into; shared with an outer solver.
        **overrides: Individual option overrides.

    Example:
        >>> solver = ILQRSolver(problem, cost_tolerance=1e-6)
        >>> status = solver.solve()
        >>> X, U = problem.Z.X, problem.Z.U
    """

    name = "ilqr"

    def __init__(
        self,
        problem: Problem,
        options: Optional[SolverOptions] = None,
        *,
        include_constraints: bool = False,
        stats: Optional[SolverStats] = None,
        **overrides,
    ):
        super().__init__(problem, options, **overrides)
        if stats is not None:
            self.stats = stats
        self.include_constraints = include_constraints
        self.functions = make_solver_functions(problem, include_constraints)
        self.regularization = self.options.bp_reg_initial

    def _increase_regularization(self) -> None:
        opts = self.options
        self.regularization = max(
            self.regularization * opts.bp_reg_increase_factor, opts.bp_reg_min
        )

    def _decrease_regularization(self) -> None:
        opts = self.options
        self.regularization /= opts.bp_reg_increase_factor
        if self.regularization < opts.bp_reg_min:
            self.regularization = 0.0

    def solve_inner(
        self,
        duals: Duals = (),
        penalties: Penalties = (),
        cost_tolerance: Optional[float] = None,
        gradient_tolerance: Optional[float] = None,
        max_iterations: Optional[int] = None,
    ) -> InnerResult:
        """Run iLQR iterations on problem.Z until the given tolerances are met.

        The total iteration cap of the options is enforced through the shared
        statistics object. The final iterate is written back to problem.Z.
        """
        opts = self.options
        cost_tolerance = opts.cost_tolerance if cost_tolerance is None else cost_tolerance
        gradient_tolerance = (
            opts.gradient_tolerance if gradient_tolerance is None else gradient_tolerance
        )
        max_iterations = opts.iterations_inner if max_iterations is None else max_iterations

        fns = self.functions
        problem = self.problem
        Z = problem.Z
        times = Z.times
        params = problem.objective.params

        X = fns.rollout(problem.x0, Z.U, times)
        U = Z.U
        if not bool(jnp.all(jnp.isfinite(X))):
            logging.warning("Initial rollout produced non-finite states.")
            return InnerResult(SolverStatus.NAN_ENCOUNTERED, float('nan'), 0.0, float('inf'), 0)
        Z.set_states(X)
        J = float(fns.cost(X, U, params, duals, penalties))

        status = SolverStatus.MAX_ITERATIONS
        dJ = 0.0
        grad = float('inf')
        iterations = 0
        while iterations < max_iterations:
            if self.stats.iterations >= opts.iterations:
                status = SolverStatus.MAX_ITERATIONS
                break

            exp = fns.expansion(X, U, times, params, duals, penalties)
            bp = backward_pass(*exp, self.regularization)
            while not bool(bp.ok):
                self._increase_regularization()
                if self.regularization > opts.bp_reg_max:
                    break
                bp = backward_pass(*exp, self.regularization)
            if not bool(bp.ok):
                status = SolverStatus.MAX_REGULARIZATION
                break

            dV = np.asarray(bp.dV)
            alpha = 1.0
            accepted = False
            # the full step predicts no decrease: the iterate is stationary
            stationary = False
            for _ in range(opts.iterations_linesearch):
                X_new, U_new = fns.policy_rollout(X, U, bp.K, bp.d, alpha, times)
                if bool(jnp.all(jnp.isfinite(X_new))) and float(jnp.max(jnp.abs(X_new))) < opts.max_state_value:
                    J_new = float(fns.cost(X_new, U_new, params, duals, penalties))
                    expected = -alpha * (dV[0] + alpha * dV[1])
                    accepted = accept_step(J, J_new, expected, opts)
                    if not accepted and alpha == 1.0:
                        stationary = expected < opts.expected_decrease_tolerance
                if accepted or stationary:
                    break
                alpha *= 0.5

            iterations += 1
            grad = gradient_metric(bp.d, U)
            line_search_failed = not (accepted or stationary)
            if accepted:
                dJ = J - J_new
                X, U, J = X_new, U_new, J_new
                self._decrease_regularization()
            elif stationary:
                dJ = 0.0
            else:
                dJ = 0.0
                self._increase_regularization()

            c_max = 0.0
            if self.include_constraints:
                c_max = float(fns.max_violation(X, U))
            penalty_max = max((float(jnp.max(p)) for p in penalties), default=0.0)
            self.stats.record_iteration(J, dJ, grad, c_max, penalty_max)

            msg = (
                f"iter {self.stats.iterations:4d}  cost {J:.6e}  dJ {dJ:.3e}  "
                f"grad {grad:.3e}  alpha {alpha if accepted else 0.0:.4f}  "
                f"reg {self.regularization:.2e}"
            )
            if self.include_constraints:
                msg += f"  c_max {c_max:.3e}"
            if opts.verbose >= 2:
                logging.info(msg)
            else:
                logging.vlog(2, msg)

            if line_search_failed:
                if self.regularization > opts.bp_reg_max:
                    status = SolverStatus.MAX_REGULARIZATION
                    break
                continue
            if abs(dJ) < cost_tolerance and grad < gradient_tolerance:
                status = SolverStatus.SOLVE_SUCCEEDED
                break

        Z.set_states(X)
        Z.set_controls(U)
        return InnerResult(status, J, dJ, grad, iterations)

    def solve(self) -> SolverStatus:
        """Solve the problem without constraints.

        Returns:
            SOLVE_SUCCEEDED, MAX_ITERATIONS, MAX_REGULARIZATION or
            NAN_ENCOUNTERED.
        """
        if self.problem.has_constraints and not self.include_constraints:
            logging.warning("ILQRSolver ignores the %d constraints of the problem; "
                            "use ALSolver to enforce them.", len(self.problem.constraints))
        start = time.perf_counter()
        self.stats.reset()
        self.regularization = self.options.bp_reg_initial
        result = self.solve_inner(max_iterations=min(self.options.iterations_inner,
                                                     self.options.iterations))
        self.stats.status = result.status
        self.stats.solve_time = time.perf_counter() - start
        if self.options.verbose >= 1:
            logging.info("iLQR finished: %s after %d iterations, cost %.6e",
                         result.status.name, result.iterations, result.cost)
        return result.status
