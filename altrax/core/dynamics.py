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

"""Discrete-time dynamics models.

A model maps (x, u, t, dt) to the next state and provides the Jacobians of
that map. Models are pure: `step` and `jacobian` have no side effects, so
they can be traced by `jax.jit` and mapped with `jax.vmap`.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

import jax
import jax.numpy as jnp
import jax.scipy as jsp
from jax import Array

from altrax.utils.integrators import get_integrator


class DynamicsModel(ABC):
    """Abstract base class for discrete dynamics models.

    Attributes:
        state_dim: Dimension of the state vector (n).
        control_dim: Dimension of the control vector (m).
        dt: Time step the model was discretized for, or None when the model
            accepts any time step.
    """

    state_dim: int
    control_dim: int
    dt: Optional[float] = None

    @abstractmethod
    def step(self, x: Array, u: Array, t: float, dt: float) -> Array:
        """Return the state at the next knot point."""

    def jacobian(self, x: Array, u: Array, t: float, dt: float) -> Tuple[Array, Array]:
        """Return (A, B) = (dx'/dx, dx'/du) by forward-mode autodiff."""
        A = jax.jacfwd(self.step, argnums=0)(x, u, t, dt)
        B = jax.jacfwd(self.step, argnums=1)(x, u, t, dt)
        return A, B


class LinearAffineModel(DynamicsModel):
    """Linear affine discrete dynamics x' = A x + B u + d.

    The Jacobians are the constant matrices A and B.

    Example:
        >>> model = LinearAffineModel.from_continuous(Ac, Bc, dc, dt=0.05)
        >>> x_next = model.step(x, u, 0.0, 0.05)
    """

    def __init__(
        self,
        A: Array,
        B: Array,
        d: Optional[Array] = None,
        dt: Optional[float] = None,
    ):
        A = jnp.asarray(A)
        B = jnp.asarray(B)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise ValueError(f"A must be square, got shape {A.shape}")
        if B.ndim != 2 or B.shape[0] != A.shape[0]:
            raise ValueError(
                f"B must have shape ({A.shape[0]}, m), got {B.shape}"
            )
        d = jnp.zeros(A.shape[0], dtype=A.dtype) if d is None else jnp.asarray(d)
        if d.shape != (A.shape[0],):
            raise ValueError(f"d must have shape ({A.shape[0]},), got {d.shape}")

        self.A = A
        self.B = B
        self.d = d
        self.dt = dt
        self.state_dim = A.shape[0]
        self.control_dim = B.shape[1]

    @classmethod
    def from_continuous(
        cls,
        Ac: Array,
        Bc: Array,
        dc: Optional[Array],
        dt: float,
    ) -> 'LinearAffineModel':
        """Exact zero-order-hold discretization of x_dot = Ac x + Bc u + dc.

        Uses the matrix exponential of the augmented system
            [[Ac, Bc, dc],
             [ 0,  0,  0]] * dt
        whose top block row is [A, B, d].
        """
        Ac = jnp.asarray(Ac)
        Bc = jnp.asarray(Bc)
        n, m = Bc.shape
        dc = jnp.zeros(n, dtype=Ac.dtype) if dc is None else jnp.asarray(dc)

        M = jnp.zeros((n + m + 1, n + m + 1), dtype=Ac.dtype)
        M = M.at[:n, :n].set(Ac)
        M = M.at[:n, n:n + m].set(Bc)
        M = M.at[:n, -1].set(dc)
        E = jsp.linalg.expm(M * dt)
        return cls(E[:n, :n], E[:n, n:n + m], E[:n, -1], dt=dt)

    def step(self, x: Array, u: Array, t: float, dt: float) -> Array:
        return self.A @ x + self.B @ u + self.d

    def jacobian(self, x: Array, u: Array, t: float, dt: float) -> Tuple[Array, Array]:
        return self.A, self.B


class ContinuousModel(DynamicsModel):
    """Continuous dynamics x_dot = f(x, u, t) discretized by an integrator.

    Subclasses override `continuous_dynamics`; alternatively pass the
    function to the constructor.

    Args:
        dynamics_fn: Continuous dynamics (x, u, t) -> x_dot. Optional when
            a subclass implements `continuous_dynamics`.
        state_dim: State dimension.
        control_dim: Control dimension.
        integrator: Name of an explicit integrator ('euler', 'midpoint',
            'heun', 'rk4').
    """

    def __init__(
        self,
        dynamics_fn: Optional[Callable] = None,
        state_dim: int = 0,
        control_dim: int = 0,
        integrator: str = 'rk4',
    ):
        if state_dim < 1:
            raise ValueError(f"state_dim must be >= 1, got {state_dim}")
        if control_dim < 1:
            raise ValueError(f"control_dim must be >= 1, got {control_dim}")
        self.state_dim = state_dim
        self.control_dim = control_dim
        self._dynamics_fn = dynamics_fn
        self.integrator = integrator
        self._discrete = get_integrator(integrator)(self.continuous_dynamics)

    def continuous_dynamics(self, x: Array, u: Array, t: float) -> Array:
        if self._dynamics_fn is None:
            raise NotImplementedError(
                "Pass dynamics_fn or override continuous_dynamics()."
            )
        return self._dynamics_fn(x, u, t)

    def step(self, x: Array, u: Array, t: float, dt: float) -> Array:
        return self._discrete(x, u, t, dt)
