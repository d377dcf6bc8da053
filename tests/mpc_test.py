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

"""Tests for the MPC subproblem, disturbance and controller."""

from absl.testing import absltest
from absl.testing import parameterized

import jax
import jax.numpy as jnp
from jax import config
import numpy as np

from altrax.constraints.constraint_list import ConstraintList
from altrax.constraints.library import BoundConstraint, GoalConstraint
from altrax.core.dynamics import LinearAffineModel
from altrax.core.objective import TrackingObjective
from altrax.core.problem import Problem
from altrax.mpc.config import CostConfig, MPCConfig
from altrax.mpc.controller import MPCController, run_mpc
from altrax.mpc.disturbance import NoDisturbance, PercentNormDisturbance
from altrax.mpc.problem import reference_window, tracking_subproblem
from altrax.solvers.augmented_lagrangian import ALSolver

config.update('jax_enable_x64', True)

DT = 0.1
N_REF = 41
HORIZON = 11


def reference_problem():
    model = LinearAffineModel.from_continuous(
        jnp.array([[0.0, 1.0], [0.0, 0.0]]), jnp.array([[0.0], [1.0]]), None, dt=DT)
    objective = TrackingObjective(
        Q=1.0, R=0.1, Qf=10.0, xref=jnp.zeros(2), uref=jnp.zeros(1), num_knots=N_REF)
    cons = ConstraintList(2, 1, N_REF)
    cons.add(GoalConstraint(jnp.zeros(2)), N_REF - 1)
    cons.add(BoundConstraint(2, 1, u_min=-10.0, u_max=10.0))
    return Problem(model, objective, jnp.array([1.0, 0.5]), tf=DT * (N_REF - 1),
                   constraints=cons)


class ReferenceWindowTest(absltest.TestCase):

    def test_window_inside(self):
        reference = jnp.arange(10.0).reshape(5, 2)
        np.testing.assert_array_equal(reference_window(reference, 1, 2), reference[1:3])

    def test_window_holds_last_row(self):
        reference = jnp.arange(10.0).reshape(5, 2)
        window = reference_window(reference, 3, 4)
        np.testing.assert_array_equal(window[:2], reference[3:])
        np.testing.assert_array_equal(window[2:], jnp.tile(reference[-1], (2, 1)))


class TrackingSubproblemTest(parameterized.TestCase):

    def setUp(self):
        super().setUp()
        self.problem = reference_problem()
        self.Xref = jnp.linspace(0.0, 1.0, N_REF)[:, None] * jnp.ones(2)
        self.Uref = jnp.ones((N_REF - 1, 1))

    def test_subproblem_at_start(self):
        sub = tracking_subproblem(self.problem, self.Xref, self.Uref, 0, HORIZON, 1.0, 0.1)
        self.assertEqual(sub.num_knots, HORIZON)
        self.assertIs(sub.model, self.problem.model)
        np.testing.assert_array_equal(sub.x0, self.Xref[0])
        np.testing.assert_array_equal(sub.Z.X, self.Xref[:HORIZON])
        np.testing.assert_array_equal(sub.objective.uref, self.Uref[:HORIZON - 1])
        # the terminal goal lies outside the window
        self.assertLen(sub.constraints, 1)
        self.assertAlmostEqual(sub.tf, DT * (HORIZON - 1))

    def test_subproblem_at_end_keeps_goal(self):
        start = N_REF - HORIZON
        sub = tracking_subproblem(self.problem, self.Xref, self.Uref, start, HORIZON, 1.0, 0.1)
        self.assertLen(sub.constraints, 2)
        np.testing.assert_array_equal(sub.constraints[0][1], [HORIZON - 1])
        self.assertAlmostEqual(sub.t0, start * DT)

    @parameterized.named_parameters(
        ('start', dict(start=N_REF)),
        ('horizon', dict(horizon=1)),
        ('Uref', dict(Uref=jnp.ones((N_REF, 1)))),
        ('Xref', dict(Xref=jnp.ones((N_REF, 3)))),
    )
    def test_invalid_arguments(self, overrides):
        kwargs = dict(Xref=self.Xref, Uref=self.Uref, start=0, horizon=HORIZON, Q=1.0, R=0.1)
        kwargs.update(overrides)
        with self.assertRaises(ValueError):
            tracking_subproblem(self.problem, **kwargs)


class DisturbanceTest(absltest.TestCase):

    def test_no_disturbance(self):
        x = jnp.arange(6.0)
        np.testing.assert_array_equal(NoDisturbance()(x, jax.random.PRNGKey(0)), x)

    def test_percent_norm_bounds(self):
        disturbance = PercentNormDisturbance(0.1, 0.01)
        x = jnp.array([10.0, -20.0, 5.0, 1.0, 2.0, -4.0])
        for seed in range(5):
            dx = disturbance(x, jax.random.PRNGKey(seed)) - x
            self.assertLessEqual(float(jnp.max(jnp.abs(dx[:3]))), 0.1 * 20.0)
            self.assertLessEqual(float(jnp.max(jnp.abs(dx[3:]))), 0.01 * 4.0)
            self.assertGreater(float(jnp.max(jnp.abs(dx))), 0.0)

    def test_reproducible_from_key(self):
        disturbance = PercentNormDisturbance(0.1, 0.01, (0,), (1,))
        x = jnp.array([1.0, 1.0])
        key = jax.random.PRNGKey(3)
        np.testing.assert_array_equal(disturbance(x, key), disturbance(x, key))
        self.assertFalse(np.allclose(disturbance(x, key), disturbance(x, jax.random.PRNGKey(4))))

    def test_negative_fraction(self):
        with self.assertRaises(ValueError):
            PercentNormDisturbance(-0.1, 0.0)


class MPCConfigTest(absltest.TestCase):

    def test_nested_dicts(self):
        cfg = MPCConfig(cost={'Q': 2.0}, solver={'cost_tolerance': 1e-3})
        self.assertIsInstance(cfg.cost, CostConfig)
        self.assertEqual(cfg.cost.Q_terminal, 20.0)
        self.assertEqual(cfg.solver.cost_tolerance, 1e-3)
        self.assertFalse(cfg.solver.reset_duals)
        self.assertEqual(cfg.to_dict()['solver']['cost_tolerance'], 1e-3)

    def test_invalid(self):
        with self.assertRaises(ValueError):
            MPCConfig(horizon=1)
        with self.assertRaises(ValueError):
            MPCConfig(num_iterations=-1)
        with self.assertRaises(ValueError):
            MPCConfig(solver={'not_an_option': 1})


class MPCControllerTest(parameterized.TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.reference = reference_problem()
        status = ALSolver(cls.reference).solve()
        assert status.succeeded, status
        cls.Xref = cls.reference.Z.X
        cls.Uref = cls.reference.Z.U

    def controller(self, disturbance=None, **config):
        config.setdefault('horizon', HORIZON)
        return MPCController.from_reference(
            self.reference, self.Xref, self.Uref, MPCConfig(**config), disturbance)

    @parameterized.parameters(True, False)
    def test_undisturbed_loop_reproduces_reference(self, warm_start):
        controller = self.controller(warm_start=warm_start)
        self.assertEqual(controller.default_num_iterations, N_REF - HORIZON)
        result = controller.run(10)
        self.assertEqual(result.X.shape, (11, 2))
        self.assertEqual(result.U.shape, (10, 1))
        self.assertLen(result.statuses, 11)
        self.assertTrue(result.all_succeeded)
        np.testing.assert_allclose(result.X, self.Xref[:11], atol=1e-6)
        np.testing.assert_allclose(result.U, self.Uref[:10], atol=1e-6)
        np.testing.assert_allclose(jnp.diff(result.times), DT * jnp.ones(10), atol=1e-12)
        self.assertEqual(controller.state.step_count, 10)
        self.assertIn('10 MPC steps', result.summary())

    def test_step_advances_window(self):
        controller = self.controller()
        controller.run(0)
        info = controller.step()
        self.assertEqual(info.step, 1)
        self.assertAlmostEqual(info.t, DT)
        np.testing.assert_allclose(controller.problem.objective.xref, self.Xref[1:HORIZON + 1])
        np.testing.assert_allclose(controller.problem.x0, info.x)
        self.assertAlmostEqual(float(controller.problem.Z.times[0]), DT)

    def test_disturbed_run_is_reproducible(self):
        def run(seed):
            disturbance = PercentNormDisturbance(0.02, 0.01, (0,), (1,))
            return self.controller(disturbance, seed=seed).run(5)

        first, second, other = run(0), run(0), run(1)
        np.testing.assert_array_equal(first.X, second.X)
        self.assertFalse(np.allclose(first.X, other.X))
        self.assertGreater(float(jnp.max(jnp.abs(first.X - self.Xref[:6]))), 0.0)

    def test_full_run_defaults_to_reference_length(self):
        result = run_mpc(self.reference, self.Xref, self.Uref, MPCConfig(horizon=HORIZON))
        self.assertEqual(result.num_steps, N_REF - HORIZON)
        np.testing.assert_allclose(result.X[-1], self.Xref[N_REF - HORIZON], atol=1e-6)

    def test_invalid_controller(self):
        sub = tracking_subproblem(self.reference, self.Xref, self.Uref, 0, HORIZON, 1.0, 0.1)
        with self.assertRaises(ValueError):
            MPCController(sub, self.Xref, self.Uref, MPCConfig(horizon=HORIZON + 1))
        with self.assertRaises(ValueError):
            MPCController(sub, self.Xref[:5], self.Uref[:4], MPCConfig(horizon=HORIZON))
        with self.assertRaises(ValueError):
            MPCController(sub, self.Xref, self.Uref, MPCConfig(horizon=HORIZON),
                          solver=ALSolver(self.reference))


if __name__ == '__main__':
    absltest.main()
