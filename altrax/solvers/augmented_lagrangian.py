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

"""Augmented Lagrangian iLQR (AL-iLQR) for conic constraints.

The outer loop keeps one dual vector and one penalty weight per constraint
and knot point. Each outer iteration minimizes the augmented Lagrangian with
iLQR and then updates

    lambda <- clip(Pi_K*(lambda - rho c), -dual_max, dual_max)
    rho    <- min(penalty_scaling * rho, penalty_max)

While the constraints are violated the inner solves use the intermediate
tolerances; once the violation drops below constraint_tolerance, or every
penalty has reached penalty_max, the final tolerances apply. At the penalty
limit the dual updates continue until the violation stops shrinking by
violation_decrease_ratio per outer iteration, which ends the solve with
MAX_PENALTY.
"""

import time
from typing import List, Optional

import jax.numpy as jnp
from absl import logging
from jax import Array

from altrax.core.problem import Problem
from altrax.core.types import SolverStatus
from altrax.solvers.base import SolverBase
from altrax.solvers.ilqr import ILQRSolver
from altrax.solvers.options import SolverOptions


class ALSolver(SolverBase):
    """Augmented Lagrangian solver with an iLQR inner loop.

    Duals and penalties persist between calls to `solve()` unless
    `reset_duals` is set in the options, which lets the MPC loop warm start
    them together with the trajectory (see `shift_duals`).

    Attributes:
        duals: One (len(indices), output_dim) array per constraint.
        penalties: One (len(indices),) array per constraint.
        ilqr: The inner solver, sharing statistics with this one.

    Example:
        >>> solver = ALSolver(problem, constraint_tolerance=1e-6, verbose=1)
        >>> status = solver.solve()
        >>> assert status.succeeded
        >>> solver.max_violation()
    """

    name = "altro"

    def __init__(
        self,
        problem: Problem,
        options: Optional[SolverOptions] = None,
        **overrides,
    ):
        super().__init__(problem, options, **overrides)
        self.ilqr = ILQRSolver(
            problem, self.options, include_constraints=True, stats=self.stats
        )
        self.functions = self.ilqr.functions
        self.duals: List[Array] = []
        self.penalties: List[Array] = []
        self.reset_duals()

    def reset_duals(self) -> None:
        """Set duals to zero and penalties to penalty_initial."""
        dtype = self.problem.x0.dtype
        self.duals = [
            jnp.zeros((inds.size, con.output_dim), dtype=dtype)
            for con, inds in self.problem.constraints
        ]
        self.penalties = [
            jnp.full((inds.size,), self.options.penalty_initial, dtype=dtype)
            for _, inds in self.problem.constraints
        ]

    def shift_duals(self) -> None:
        """Advance duals and penalties one knot point, duplicating the last entry."""
        self.duals = [jnp.concatenate([lam[1:], lam[-1:]]) for lam in self.duals]
        self.penalties = [jnp.concatenate([rho[1:], rho[-1:]]) for rho in self.penalties]

    def max_violation(self) -> float:
        Z = self.problem.Z
        return float(self.functions.max_violation(Z.X, Z.U))

    def _penalty_max(self) -> float:
        return max((float(jnp.max(rho)) for rho in self.penalties), default=0.0)

    def _penalties_saturated(self) -> bool:
        return all(bool(jnp.all(rho >= self.options.penalty_max)) for rho in self.penalties)

    def _log(self, msg: str, *args) -> None:
        if self.options.verbose >= 1:
            logging.info(msg, *args)
        else:
            logging.vlog(1, msg, *args)

    def solve(self) -> SolverStatus:
        """Solve the constrained problem in place.

        Returns:
            The termination status. Failure is not fatal: problem.Z holds the
            last iterate either way.
        """
        opts = self.options
        start = time.perf_counter()
        self.stats.reset()
        self.ilqr.regularization = opts.bp_reg_initial
        if opts.reset_duals:
            self.reset_duals()

        status = SolverStatus.MAX_ITERATIONS_OUTER
        c_max = float('inf')
        for _ in range(opts.iterations_outer):
            saturated = self._penalties_saturated()
            if c_max < opts.constraint_tolerance or saturated:
                cost_tol, grad_tol = opts.cost_tolerance, opts.gradient_tolerance
            else:
                cost_tol = opts.cost_tolerance_intermediate
                grad_tol = opts.gradient_tolerance_intermediate
            max_iter = min(opts.iterations_inner, opts.iterations - self.stats.iterations)

            inner = self.ilqr.solve_inner(
                tuple(self.duals), tuple(self.penalties), cost_tol, grad_tol, max_iter
            )
            if inner.status in (SolverStatus.NAN_ENCOUNTERED, SolverStatus.MAX_REGULARIZATION):
                status = inner.status
                break

            Z = self.problem.Z
            c_max_prev = c_max
            c_max = float(self.functions.max_violation(Z.X, Z.U))
            self.stats.record_outer(c_max, self._penalty_max())
            self._log(
                "outer %3d  iters %4d  cost %.6e  dJ %.3e  grad %.3e  c_max %.3e  penalty %.1e",
                self.stats.iterations_outer, self.stats.iterations, inner.cost,
                inner.dJ, inner.gradient, c_max, self._penalty_max(),
            )

            if (
                c_max < opts.constraint_tolerance
                and abs(inner.dJ) < opts.cost_tolerance
                and inner.gradient < opts.gradient_tolerance
            ):
                status = SolverStatus.SOLVE_SUCCEEDED
                break
            if self.stats.iterations >= opts.iterations:
                status = SolverStatus.MAX_ITERATIONS
                break
            # at the penalty limit only dual updates reduce the violation
            if (
                saturated
                and c_max >= opts.constraint_tolerance
                and c_max > opts.violation_decrease_ratio * c_max_prev
            ):
                status = SolverStatus.MAX_PENALTY
                break

            self.duals = list(self.functions.dual_update(
                Z.X, Z.U, tuple(self.duals), tuple(self.penalties), opts.dual_max
            ))
            self.penalties = [
                jnp.minimum(opts.penalty_scaling * rho, opts.penalty_max)
                for rho in self.penalties
            ]

        self.stats.status = status
        self.stats.solve_time = time.perf_counter() - start
        if status.succeeded:
            self._log("AL-iLQR converged in %d iterations (%d outer), %.3f s",
                      self.stats.iterations, self.stats.iterations_outer, self.stats.solve_time)
        else:
            logging.warning(
                "AL-iLQR terminated with %s after %d iterations, c_max %.3e",
                status.name, self.stats.iterations, c_max,
            )
        return status
