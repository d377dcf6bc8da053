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

"""Tests for cone projections."""

from absl.testing import absltest
from absl.testing import parameterized

import jax
import jax.numpy as jnp
from jax import config
import numpy as np

from altrax.constraints import cones
from altrax.core.types import ConeSense

config.update('jax_enable_x64', True)


class SOCProjectionTest(parameterized.TestCase):
    """Tests for projection onto the second-order cone."""

    def test_interior_point_unchanged(self):
        z = jnp.array([0.3, -0.4, 1.0])
        np.testing.assert_allclose(cones.soc_projection(z), z)

    def test_polar_cone_maps_to_zero(self):
        z = jnp.array([0.3, 0.4, -1.0])
        np.testing.assert_allclose(cones.soc_projection(z), jnp.zeros(3))

    def test_outside_point_lands_on_boundary(self):
        z = jnp.array([3.0, 4.0, 0.0])
        p = cones.soc_projection(z)
        np.testing.assert_allclose(p, jnp.array([1.5, 2.0, 2.5]))
        self.assertAlmostEqual(float(jnp.linalg.norm(p[:-1])), float(p[-1]))

    @parameterized.parameters(
        ([3.0, 4.0, 0.0],),
        ([1.0, -2.0, 0.5],),
        ([0.2, 0.1, 5.0],),
        ([1.0, 1.0, -10.0],),
    )
    def test_projection_is_idempotent(self, z):
        p = cones.soc_projection(jnp.array(z))
        np.testing.assert_allclose(cones.soc_projection(p), p, atol=1e-12)

    @parameterized.parameters(
        ([3.0, 4.0, 0.0],),
        ([1.0, -2.0, 0.5],),
        ([0.2, 0.1, 5.0],),
        ([1.0, 1.0, -10.0],),
    )
    def test_jacobian_matches_autodiff(self, z):
        z = jnp.array(z)
        expected = jax.jacfwd(cones.soc_projection)(z)
        np.testing.assert_allclose(cones.soc_projection_jacobian(z), expected, atol=1e-10)


class ConeTest(parameterized.TestCase):
    """Tests for sense dispatch, violation and membership."""

    def test_equality_projections(self):
        z = jnp.array([1.0, -2.0])
        np.testing.assert_allclose(cones.project(ConeSense.EQUALITY, z), jnp.zeros(2))
        np.testing.assert_allclose(cones.project_dual(ConeSense.EQUALITY, z), z)
        np.testing.assert_allclose(
            cones.dual_projection_jacobian(ConeSense.EQUALITY, z), jnp.eye(2))

    def test_inequality_projection(self):
        z = jnp.array([1.0, -2.0, 0.0])
        np.testing.assert_allclose(
            cones.project(ConeSense.INEQUALITY, z), jnp.array([0.0, -2.0, 0.0]))
        np.testing.assert_allclose(
            cones.dual_projection_jacobian(ConeSense.INEQUALITY, z),
            jnp.diag(jnp.array([0.0, 1.0, 0.0])))

    @parameterized.named_parameters(
        ('equality', ConeSense.EQUALITY, [0.5, -2.0], 2.0),
        ('inequality', ConeSense.INEQUALITY, [1.0, -2.0], 1.0),
        ('soc_outside', ConeSense.SECOND_ORDER_CONE, [3.0, 4.0, 0.0], 2.5),
        ('soc_inside', ConeSense.SECOND_ORDER_CONE, [3.0, 4.0, 6.0], 0.0),
    )
    def test_violation(self, sense, c, expected):
        self.assertAlmostEqual(float(cones.violation(sense, jnp.array(c))), expected)

    def test_in_cone(self):
        soc = ConeSense.SECOND_ORDER_CONE
        self.assertTrue(bool(cones.in_cone(soc, jnp.array([0.0, 0.0, 1.0]))))
        self.assertTrue(bool(cones.in_cone(soc, jnp.array([0.0, 0.0, 0.0]))))
        self.assertFalse(bool(cones.in_cone(soc, jnp.array([0.0, 0.0, -1.0]))))
        self.assertTrue(bool(cones.in_cone(ConeSense.INEQUALITY, jnp.array([1e-9]), tol=1e-8)))


if __name__ == '__main__':
    absltest.main()
