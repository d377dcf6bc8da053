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

"""Tests for open- and closed-loop rollouts."""

from absl.testing import absltest

import jax.numpy as jnp
from jax import config
import numpy as np

from altrax.utils.rollout import policy_rollout, rollout

config.update('jax_enable_x64', True)


def scalar_dynamics(x, u, t, dt):
    return x + dt * (u + t)


class RolloutTest(absltest.TestCase):

    def test_rollout_passes_time(self):
        times = jnp.arange(4.0)
        U = jnp.ones((3, 1))
        X = rollout(scalar_dynamics, U, jnp.zeros(1), times, 1.0)
        # x[k+1] = x[k] + 1 + t[k]
        np.testing.assert_allclose(X[:, 0], [0.0, 1.0, 3.0, 6.0])

    def test_policy_rollout_with_zero_step_reproduces_nominal(self):
        times = jnp.arange(4.0)
        U = jnp.array([[1.0], [-1.0], [2.0]])
        X = rollout(scalar_dynamics, U, jnp.array([0.5]), times, 1.0)
        K = jnp.ones((3, 1, 1))
        d = jnp.ones((3, 1))
        X_new, U_new = policy_rollout(scalar_dynamics, X, U, K, d, 0.0, times, 1.0)
        np.testing.assert_allclose(X_new, X)
        np.testing.assert_allclose(U_new, U)

    def test_policy_rollout_feedback(self):
        times = jnp.zeros(3)
        X = jnp.zeros((3, 1))
        U = jnp.zeros((2, 1))
        K = -jnp.ones((2, 1, 1))
        d = jnp.ones((2, 1))
        X_new, U_new = policy_rollout(scalar_dynamics, X, U, K, d, 0.5, times, 1.0)
        # u0 = 0.5, x1 = 0.5, u1 = 0.5 - 0.5 = 0
        np.testing.assert_allclose(U_new[:, 0], [0.5, 0.0])
        np.testing.assert_allclose(X_new[:, 0], [0.0, 0.5, 0.5])


if __name__ == '__main__':
    absltest.main()
