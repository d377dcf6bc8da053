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

"""Tests for the augmented Lagrangian solver."""

from absl.testing import absltest
from absl.testing import parameterized

import jax.numpy as jnp
from jax import config
import numpy as np

from altrax.constraints.constraint_list import ConstraintList
from altrax.constraints.library import BoundConstraint, GoalConstraint, NormConstraint
from altrax.core.dynamics import LinearAffineModel
from altrax.core.objective import TrackingObjective
from altrax.core.problem import Problem
from altrax.core.types import ConeSense, SolverStatus
from altrax.solvers.augmented_lagrangian import ALSolver
from altrax.solvers.base import get_solver
from altrax.solvers.ilqr import ILQRSolver

config.update('jax_enable_x64', True)

DT = 0.1
N = 31


def double_integrator_problem(u_max=None, xf=(0.0, 0.0), goal=True):
    model = LinearAffineModel.from_continuous(
        jnp.array([[0.0, 1.0], [0.0, 0.0]]), jnp.array([[0.0], [1.0]]), None, dt=DT)
    objective = TrackingObjective(
        Q=1.0, R=0.1, Qf=10.0, xref=jnp.zeros(2), uref=jnp.zeros(1), num_knots=N)
    cons = ConstraintList(2, 1, N)
    if goal:
        cons.add(GoalConstraint(jnp.asarray(xf)), N - 1)
    if u_max is not None:
        cons.add(BoundConstraint(2, 1, u_min=-u_max, u_max=u_max))
    return Problem(model, objective, jnp.array([1.0, 0.0]), tf=DT * (N - 1),
                   constraints=cons)


class ALSolverTest(parameterized.TestCase):

    def test_goal_and_bounds(self):
        problem = double_integrator_problem(u_max=1.5)
        solver = ALSolver(problem)
        status = solver.solve()
        self.assertEqual(status, SolverStatus.SOLVE_SUCCEEDED)
        self.assertLess(solver.max_violation(), 1e-6)
        self.assertLess(problem.max_violation(), 1e-6)
        np.testing.assert_allclose(problem.Z.X[-1], [0.0, 0.0], atol=1e-6)
        self.assertLessEqual(float(jnp.max(jnp.abs(problem.Z.U))), 1.5 + 1e-5)
        # the bound is active somewhere
        self.assertGreater(float(jnp.max(jnp.abs(problem.Z.U))), 1.4)
        self.assertGreater(solver.stats.iterations_outer, 1)
        self.assertEqual(solver.stats.c_max[-1], solver.max_violation())

    def test_inactive_constraint_matches_unconstrained_solution(self):
        constrained = double_integrator_problem(u_max=100.0, goal=False)
        unconstrained = double_integrator_problem(goal=False)
        self.assertEqual(ALSolver(constrained).solve(), SolverStatus.SOLVE_SUCCEEDED)
        self.assertEqual(ILQRSolver(unconstrained).solve(), SolverStatus.SOLVE_SUCCEEDED)
        np.testing.assert_allclose(constrained.Z.U, unconstrained.Z.U, atol=1e-8)
        np.testing.assert_allclose(constrained.Z.X, unconstrained.Z.X, atol=1e-8)

    def test_second_order_cone_control_limit(self):
        model = LinearAffineModel.from_continuous(
            jnp.zeros((2, 2)), jnp.eye(2), None, dt=DT)
        objective = TrackingObjective(
            Q=0.0, R=0.01, Qf=0.0, xref=jnp.zeros(2), uref=jnp.zeros(2), num_knots=N)
        cons = ConstraintList(2, 2, N)
        cons.add(GoalConstraint(jnp.array([1.0, 1.0])), N - 1)
        cons.add(NormConstraint(2, 2, 0.6, ConeSense.SECOND_ORDER_CONE, 'control'))
        problem = Problem(model, objective, jnp.zeros(2), tf=DT * (N - 1), constraints=cons)
        self.assertEqual(ALSolver(problem).solve(), SolverStatus.SOLVE_SUCCEEDED)
        norms = jnp.linalg.norm(problem.Z.U, axis=1)
        self.assertLessEqual(float(jnp.max(norms)), 0.6 + 1e-5)
        np.testing.assert_allclose(problem.Z.X[-1], [1.0, 1.0], atol=1e-6)

    def test_warm_resolve_keeps_duals(self):
        problem = double_integrator_problem(u_max=1.5)
        solver = ALSolver(problem, reset_duals=False)
        self.assertTrue(solver.solve().succeeded)
        duals = [lam for lam in solver.duals]
        self.assertTrue(solver.solve().succeeded)
        self.assertLessEqual(solver.stats.iterations, 3)
        for before, after in zip(duals, solver.duals):
            np.testing.assert_allclose(after, before, atol=1e-6)

    def test_reset_duals(self):
        problem = double_integrator_problem(u_max=1.5)
        solver = ALSolver(problem)
        solver.solve()
        self.assertGreater(float(jnp.max(solver.penalties[0])), 1.0)
        solver.reset_duals()
        for lam, rho in zip(solver.duals, solver.penalties):
            np.testing.assert_array_equal(lam, jnp.zeros_like(lam))
            np.testing.assert_array_equal(rho, jnp.ones_like(rho))

    def test_shift_duals(self):
        problem = double_integrator_problem(u_max=1.5)
        solver = ALSolver(problem)
        solver.duals[1] = jnp.arange(2.0 * (N - 1)).reshape(N - 1, 2)
        solver.penalties[1] = jnp.arange(N - 1.0)
        solver.shift_duals()
        self.assertEqual(solver.duals[1].shape, (N - 1, 2))
        np.testing.assert_array_equal(solver.duals[1][0], [2.0, 3.0])
        np.testing.assert_array_equal(solver.duals[1][-1], solver.duals[1][-2])
        np.testing.assert_array_equal(solver.penalties[1][:3], [1.0, 2.0, 3.0])
        self.assertEqual(float(solver.penalties[1][-1]), N - 2.0)
        self.assertEqual(solver.duals[0].shape, (1, 2))

    def test_total_iteration_cap(self):
        problem = double_integrator_problem(u_max=1.5)
        solver = ALSolver(problem, iterations=1)
        self.assertEqual(solver.solve(), SolverStatus.MAX_ITERATIONS)
        self.assertEqual(solver.stats.iterations, 1)

    def test_infeasible_problem_saturates_penalty(self):
        problem = double_integrator_problem(u_max=0.01, xf=(10.0, 0.0))
        # clipped duals stall the violation once the penalty is saturated
        solver = ALSolver(problem, penalty_max=1e3, dual_max=1e4, iterations=5000)
        self.assertEqual(solver.solve(), SolverStatus.MAX_PENALTY)
        self.assertLess(solver.stats.iterations_outer, 30)
        for rho in solver.penalties:
            np.testing.assert_allclose(rho, 1e3)
        self.assertGreater(solver.max_violation(), 1.0)

    def test_saturated_penalty_converges_with_dual_updates(self):
        problem = double_integrator_problem(u_max=1.5)
        solver = ALSolver(problem, penalty_max=10.0, iterations_outer=60)
        self.assertEqual(solver.solve(), SolverStatus.SOLVE_SUCCEEDED)
        self.assertLess(solver.max_violation(), 1e-6)
        for rho in solver.penalties:
            np.testing.assert_allclose(rho, 10.0)
        # the penalty saturates after the first outer iteration
        self.assertGreater(solver.stats.iterations_outer, 2)
        self.assertEqual(max(solver.stats.penalty_max), 10.0)

    def test_outer_iteration_cap(self):
        problem = double_integrator_problem(u_max=1.5)
        solver = ALSolver(problem, iterations_outer=1)
        self.assertEqual(solver.solve(), SolverStatus.MAX_ITERATIONS_OUTER)
        self.assertEqual(solver.stats.iterations_outer, 1)

    def test_stats_history(self):
        problem = double_integrator_problem(u_max=1.5)
        solver = ALSolver(problem)
        solver.solve()
        stats = solver.stats
        self.assertLen(stats.cost, stats.iterations)
        self.assertLen(stats.iteration_outer, stats.iterations)
        self.assertTrue(np.all(np.diff(stats.iteration_outer) >= 0))
        self.assertEqual(stats.to_dict()['status'], 'SOLVE_SUCCEEDED')
        self.assertGreater(stats.solve_time, 0.0)

    @parameterized.parameters('altro', 'al_ilqr')
    def test_get_solver(self, name):
        self.assertIsInstance(get_solver(name, double_integrator_problem()), ALSolver)


if __name__ == '__main__':
    absltest.main()
