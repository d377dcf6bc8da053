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

"""Tests for the vectorized derivative helpers."""

from absl.testing import absltest

import jax.numpy as jnp
from jax import config
import numpy as np

from altrax.utils.linearize import linearize, pad, quadratize, vectorize

config.update('jax_enable_x64', True)


def stage(x, u, k, scale):
    return scale * (x[0] * u[0] + x[1] ** 2 * u[0] ** 2) + k


class LinearizeTest(absltest.TestCase):

    def setUp(self):
        super().setUp()
        self.X = jnp.array([[1.0, 2.0], [3.0, -1.0]])
        self.U = jnp.array([[0.5], [2.0]])
        self.ks = jnp.arange(2)

    def test_vectorize_leaves_trailing_arguments_unbatched(self):
        values = vectorize(stage)(self.X, self.U, self.ks, 2.0)
        np.testing.assert_allclose(values, [2.0 * (0.5 + 1.0), 2.0 * (6.0 + 4.0) + 1.0])

    def test_linearize(self):
        lx, lu = linearize(stage)(self.X, self.U, self.ks, 1.0)
        self.assertEqual(lx.shape, (2, 2))
        self.assertEqual(lu.shape, (2, 1))
        # d/dx = [u0, 2 x1 u0^2], d/du = x0 + 2 x1^2 u0
        np.testing.assert_allclose(lx[0], [0.5, 1.0])
        np.testing.assert_allclose(lu[1], [3.0 + 4.0])

    def test_quadratize(self):
        lxx, luu, lxu = quadratize(stage)(self.X, self.U, self.ks, 1.0)
        self.assertEqual(lxx.shape, (2, 2, 2))
        self.assertEqual(luu.shape, (2, 1, 1))
        self.assertEqual(lxu.shape, (2, 2, 1))
        np.testing.assert_allclose(lxx[0], [[0.0, 0.0], [0.0, 0.5]])
        np.testing.assert_allclose(luu[0], [[8.0]])
        # d2/dxdu = [1, 4 x1 u0]
        np.testing.assert_allclose(lxu[1], [[1.0], [-8.0]])

    def test_pad(self):
        padded = pad(self.U)
        self.assertEqual(padded.shape, (3, 1))
        np.testing.assert_array_equal(padded[-1], [0.0])


if __name__ == '__main__':
    absltest.main()
