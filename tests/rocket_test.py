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

"""End-to-end tests on the rocket landing problem."""

from absl.testing import absltest

import jax.numpy as jnp
from jax import config
import numpy as np

from altrax.core.types import SolverStatus
from altrax.models.rocket import RocketModel, landing_problem
from altrax.mpc.config import CostConfig, MPCConfig
from altrax.mpc.controller import MPCController
from altrax.mpc.disturbance import PercentNormDisturbance
from altrax.solvers.augmented_lagrangian import ALSolver

config.update('jax_enable_x64', True)


class RocketModelTest(absltest.TestCase):

    def test_hover_balances_gravity(self):
        rocket = RocketModel(mass=10.0)
        np.testing.assert_allclose(rocket.hover_thrust, [0.0, 0.0, 98.1])
        x = jnp.array([1.0, 2.0, 3.0, 0.5, -0.5, 1.0])
        np.testing.assert_allclose(
            rocket.continuous_dynamics(x, rocket.hover_thrust, 0.0),
            [0.5, -0.5, 1.0, 0.0, 0.0, 0.0], atol=1e-12)

    def test_landing_problem_structure(self):
        problem = landing_problem(num_knots=51, dt=0.1)
        self.assertEqual(problem.num_knots, 51)
        self.assertLen(problem.constraints, 4)
        goal, _, _, glideslope = problem.constraints.constraints
        np.testing.assert_array_equal(problem.constraints[0][1], [50])
        self.assertFalse(goal.depends_on_control)
        self.assertFalse(glideslope.depends_on_control)
        self.assertLen(problem.constraints[3][1], 51)
        self.assertLen(problem.constraints[1][1], 50)
        np.testing.assert_allclose(problem.Z.U, jnp.tile(jnp.array([0.0, 0.0, 98.1]), (50, 1)))


class RocketLandingTest(absltest.TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.problem = landing_problem()
        cls.solver = ALSolver(cls.problem)
        cls.status = cls.solver.solve()

    def test_reference_solve_succeeds(self):
        self.assertEqual(self.status, SolverStatus.SOLVE_SUCCEEDED)
        self.assertLess(self.solver.max_violation(), 1e-6)
        self.assertLess(float(jnp.max(jnp.abs(self.problem.Z.X[-1]))), 1e-5)

    def test_reference_respects_cones(self):
        X, U = self.problem.Z.X, self.problem.Z.U
        tol = 1e-5
        thrust = jnp.linalg.norm(U, axis=1)
        max_thrust = 2.0 * 98.1
        self.assertLessEqual(float(jnp.max(thrust)), max_thrust + tol)
        angle_margin = jnp.tan(np.deg2rad(30.0)) * U[:, 2] - jnp.linalg.norm(U[:, :2], axis=1)
        self.assertGreaterEqual(float(jnp.min(angle_margin)), -tol)
        glide_margin = X[:, 2] - jnp.linalg.norm(X[:, :2], axis=1)
        self.assertGreaterEqual(float(jnp.min(glide_margin)), -tol)

    def test_mpc_tracks_reference_under_disturbance(self):
        Z = self.problem.Z
        mpc_config = MPCConfig(
            horizon=21,
            num_iterations=20,
            seed=0,
            cost=CostConfig(Q=10.0, R=1e-2, Q_terminal=100.0),
            solver={'constraint_tolerance': 1e-4, 'cost_tolerance': 1e-3},
        )
        controller = MPCController.from_reference(
            self.problem, Z.X, Z.U, mpc_config, PercentNormDisturbance(0.02, 1e-3))
        result = controller.run()
        self.assertEqual(result.num_steps, 20)
        self.assertGreater(float(jnp.max(jnp.abs(result.X - Z.X[:21]))), 0.0)
        # bounded noise keeps the closed loop near the reference
        self.assertLess(float(jnp.max(jnp.linalg.norm(result.X[:, :3] - Z.X[:21, :3], axis=1))), 5.0)
        thrust = jnp.linalg.norm(result.U, axis=1)
        self.assertLessEqual(float(jnp.max(thrust)), 2.0 * 98.1 + 1.0)


if __name__ == '__main__':
    absltest.main()
