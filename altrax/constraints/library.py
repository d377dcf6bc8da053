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

"""Commonly used constraints."""

from typing import Optional, Sequence

import jax.numpy as jnp
import numpy as np
from jax import Array

from altrax.core.types import ConeSense
from altrax.constraints.base import (
    IndexSelector,
    SelectorConstraint,
    StageConstraint,
    StateConstraint,
)


class GoalConstraint(StateConstraint):
    """Terminal goal x[inds] == xf[inds].

    Args:
        xf: Goal state (n,).
        inds: State indices to constrain; all of them by default.
    """

    sense = ConeSense.EQUALITY

    def __init__(self, xf: Array, inds: Optional[Sequence[int]] = None):
        xf = jnp.asarray(xf)
        super().__init__(state_dim=xf.shape[0])
        self.inds = np.arange(xf.shape[0]) if inds is None else np.asarray(inds, dtype=int)
        if self.inds.size == 0 or self.inds.min() < 0 or self.inds.max() >= xf.shape[0]:
            raise ValueError(f"Goal indices {self.inds.tolist()} out of range for n={xf.shape[0]}")
        self.xf = xf

    @property
    def output_dim(self) -> int:
        return int(self.inds.size)

    def evaluate(self, x: Array, u: Array) -> Array:
        return x[self.inds] - self.xf[self.inds]

    def jacobian(self, x: Array, u: Array) -> Array:
        n = x.shape[0]
        J = jnp.zeros((self.output_dim, n + u.shape[0]), dtype=x.dtype)
        return J.at[np.arange(self.output_dim), self.inds].set(1.0)


class BoundConstraint(StageConstraint):
    """Box constraints x_min <= x <= x_max, u_min <= u <= u_max.

    Infinite bounds are dropped from the output, which stacks
    [x - x_max; x_min - x; u - u_max; u_min - u] over the finite entries.
    """

    sense = ConeSense.INEQUALITY

    def __init__(
        self,
        state_dim: int,
        control_dim: int,
        x_min: Optional[Array] = None,
        x_max: Optional[Array] = None,
        u_min: Optional[Array] = None,
        u_max: Optional[Array] = None,
    ):
        super().__init__(state_dim, control_dim)

        def as_bound(b, dim, fill, name):
            b = np.full(dim, fill) if b is None else np.broadcast_to(np.asarray(b, dtype=float), (dim,))
            if b.shape != (dim,):
                raise ValueError(f"{name} must have shape ({dim},), got {b.shape}")
            return b

        x_min = as_bound(x_min, state_dim, -np.inf, 'x_min')
        x_max = as_bound(x_max, state_dim, np.inf, 'x_max')
        u_min = as_bound(u_min, control_dim, -np.inf, 'u_min')
        u_max = as_bound(u_max, control_dim, np.inf, 'u_max')
        if np.any(x_min > x_max) or np.any(u_min > u_max):
            raise ValueError("Lower bounds must not exceed upper bounds")

        lower = np.concatenate([x_min, u_min])
        upper = np.concatenate([x_max, u_max])
        self._upper_inds = np.flatnonzero(np.isfinite(upper))
        self._lower_inds = np.flatnonzero(np.isfinite(lower))
        if self._upper_inds.size + self._lower_inds.size == 0:
            raise ValueError("BoundConstraint needs at least one finite bound")
        self._upper = jnp.asarray(upper[self._upper_inds])
        self._lower = jnp.asarray(lower[self._lower_inds])
        self.depends_on_state = bool(
            np.any(self._upper_inds < state_dim) or np.any(self._lower_inds < state_dim))
        self.depends_on_control = bool(
            np.any(self._upper_inds >= state_dim) or np.any(self._lower_inds >= state_dim))

    @property
    def output_dim(self) -> int:
        return int(self._upper_inds.size + self._lower_inds.size)

    def evaluate(self, x: Array, u: Array) -> Array:
        z = jnp.concatenate([x, u])
        return jnp.concatenate([z[self._upper_inds] - self._upper, self._lower - z[self._lower_inds]])

    def jacobian(self, x: Array, u: Array) -> Array:
        nz = self.state_dim + self.control_dim
        n_up = self._upper_inds.size
        J = jnp.zeros((self.output_dim, nz), dtype=x.dtype)
        J = J.at[np.arange(n_up), self._upper_inds].set(1.0)
        return J.at[n_up + np.arange(self._lower_inds.size), self._lower_inds].set(-1.0)


class NormConstraint(SelectorConstraint):
    """Norm bound ||z_s||_2 <= max_norm on a selected sub-block.

    With sense SECOND_ORDER_CONE the output is [z_s; max_norm]; with
    INEQUALITY it is the scalar ||z_s||^2 - max_norm^2.

    Example:
        >>> max_thrust = NormConstraint(6, 3, 150.0, ConeSense.SECOND_ORDER_CONE, 'control')
    """

    def __init__(
        self,
        state_dim: int,
        control_dim: int,
        max_norm: float,
        sense: ConeSense = ConeSense.SECOND_ORDER_CONE,
        selector: IndexSelector = 'control',
    ):
        if sense not in (ConeSense.SECOND_ORDER_CONE, ConeSense.INEQUALITY):
            raise ValueError(f"NormConstraint supports SECOND_ORDER_CONE or INEQUALITY, got {sense}")
        if max_norm < 0:
            raise ValueError(f"max_norm must be nonnegative, got {max_norm}")
        super().__init__(state_dim, control_dim, selector)
        self.sense = sense
        self.max_norm = float(max_norm)

    @property
    def output_dim(self) -> int:
        if self.sense is ConeSense.SECOND_ORDER_CONE:
            return int(self.inds.size) + 1
        return 1

    def evaluate(self, x: Array, u: Array) -> Array:
        z = self.select(x, u)
        if self.sense is ConeSense.SECOND_ORDER_CONE:
            return jnp.concatenate([z, jnp.full((1,), self.max_norm, dtype=z.dtype)])
        return jnp.atleast_1d(z @ z - self.max_norm**2)

    def jacobian(self, x: Array, u: Array) -> Array:
        if self.sense is ConeSense.SECOND_ORDER_CONE:
            k = self.inds.size
            J = jnp.zeros((k + 1, k), dtype=x.dtype).at[:k].set(jnp.eye(k, dtype=x.dtype))
            return self.embed(J)
        return self.embed(2.0 * self.select(x, u)[None, :])


class LinearSOC(SelectorConstraint):
    """Linear second-order cone constraint ||A z_s||_2 <= c' z_s.

    The output is the stacked vector [A z_s; c' z_s], which must lie in the
    second-order cone. The Jacobian is constant: [A; c'] placed at the
    selected columns of z = [x; u], zero elsewhere.

    Args:
        state_dim: State dimension n.
        control_dim: Control dimension m.
        A: Projection matrix (p, k) applied to the selected block.
        c: Linear functional (k,) giving the cone's scalar part.
        selector: 'state', 'control', or explicit indices into [x; u];
            must select k entries.

    Example:
        >>> # Glideslope: ||r_xy|| <= tan(angle) * r_z
        >>> A = jnp.array([[1.0, 0, 0], [0, 1.0, 0]])
        >>> c = jnp.array([0.0, 0.0, jnp.tan(angle)])
        >>> glideslope = LinearSOC(6, 3, A, c, selector=[0, 1, 2])
    """

    sense = ConeSense.SECOND_ORDER_CONE

    def __init__(
        self,
        state_dim: int,
        control_dim: int,
        A: Array,
        c: Array,
        selector: IndexSelector = 'state',
    ):
        super().__init__(state_dim, control_dim, selector)
        A = jnp.asarray(A)
        c = jnp.asarray(c)
        k = self.inds.size
        if A.ndim != 2 or A.shape[1] != k:
            raise ValueError(f"A must have shape (p, {k}) for the selected block, got {A.shape}")
        if c.shape != (k,):
            raise ValueError(f"c must have shape ({k},), got {c.shape}")
        self.A = A
        self.c = c

    @property
    def output_dim(self) -> int:
        return self.A.shape[0] + 1

    def evaluate(self, x: Array, u: Array) -> Array:
        z = self.select(x, u)
        return jnp.concatenate([self.A @ z, jnp.atleast_1d(self.c @ z)])

    def jacobian(self, x: Array, u: Array) -> Array:
        return self.embed(jnp.vstack([self.A, self.c[None, :]]))


class LinearConstraint(SelectorConstraint):
    """Affine constraint A z_s - b with EQUALITY (== 0) or INEQUALITY (<= 0) sense."""

    def __init__(
        self,
        state_dim: int,
        control_dim: int,
        A: Array,
        b: Array,
        sense: ConeSense = ConeSense.INEQUALITY,
        selector: IndexSelector = 'state',
    ):
        if sense not in (ConeSense.EQUALITY, ConeSense.INEQUALITY):
            raise ValueError(f"LinearConstraint supports EQUALITY or INEQUALITY, got {sense}")
        super().__init__(state_dim, control_dim, selector)
        A = jnp.atleast_2d(jnp.asarray(A))
        b = jnp.atleast_1d(jnp.asarray(b))
        if A.shape[1] != self.inds.size or b.shape != (A.shape[0],):
            raise ValueError(
                f"A must be (p, {self.inds.size}) and b (p,), got {A.shape} and {b.shape}"
            )
        self.sense = sense
        self.A = A
        self.b = b

    @property
    def output_dim(self) -> int:
        return self.A.shape[0]

    def evaluate(self, x: Array, u: Array) -> Array:
        return self.A @ self.select(x, u) - self.b

    def jacobian(self, x: Array, u: Array) -> Array:
        return self.embed(self.A)
