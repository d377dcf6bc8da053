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

"""Disturbances applied to the simulated state in the MPC loop.

A disturbance maps the propagated state and a `jax.random` key to the
perturbed state. The controller owns the key, so runs are reproducible from
the seed in MPCConfig.
"""

from typing import Protocol, Sequence

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array


class Disturbance(Protocol):
    """Protocol for state disturbances.

    Signature: disturbance(x, key) -> x_perturbed
    """
    def __call__(self, x: Array, key: Array) -> Array:
        ...


class NoDisturbance:
    """Returns the state unchanged."""

    def __call__(self, x: Array, key: Array) -> Array:
        return x


class PercentNormDisturbance:
    """Bounded uniform noise proportional to the size of the state.

        r <- r + position_fraction * ||r||_inf * w_r
        v <- v + velocity_fraction * ||v||_inf * w_v

    with w_r, w_v drawn uniformly from [-1, 1].

    Args:
        position_fraction: Noise level relative to the position magnitude.
        velocity_fraction: Noise level relative to the velocity magnitude.
        position_indices: State indices of the position.
        velocity_indices: State indices of the velocity.

    Example:
        >>> disturbance = PercentNormDisturbance(0.02, 1e-3)
        >>> x_next = disturbance(x_next, jax.random.PRNGKey(0))
    """

    def __init__(
        self,
        position_fraction: float,
        velocity_fraction: float,
        position_indices: Sequence[int] = (0, 1, 2),
        velocity_indices: Sequence[int] = (3, 4, 5),
    ):
        if position_fraction < 0 or velocity_fraction < 0:
            raise ValueError("Disturbance fractions must be nonnegative")
        self.position_fraction = position_fraction
        self.velocity_fraction = velocity_fraction
        self.position_indices = np.asarray(position_indices, dtype=int)
        self.velocity_indices = np.asarray(velocity_indices, dtype=int)

    def __call__(self, x: Array, key: Array) -> Array:
        key_r, key_v = jax.random.split(key)
        r = x[self.position_indices]
        v = x[self.velocity_indices]
        w_r = jax.random.uniform(key_r, r.shape, dtype=x.dtype, minval=-1.0, maxval=1.0)
        w_v = jax.random.uniform(key_v, v.shape, dtype=x.dtype, minval=-1.0, maxval=1.0)
        x = x.at[self.position_indices].add(self.position_fraction * jnp.max(jnp.abs(r)) * w_r)
        return x.at[self.velocity_indices].add(self.velocity_fraction * jnp.max(jnp.abs(v)) * w_v)
