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

"""Per-knot-point cost models.

Costs follow the "build once, pass parameters" pattern: the stage and
terminal costs are pure functions of (x, u, k, params), and everything that
changes between solves (tracking references, weights) lives in the `params`
PyTree. Updating a reference therefore never triggers recompilation.
"""

from abc import ABC, abstractmethod
from typing import Optional

import jax
import jax.numpy as jnp
from jax import Array

from altrax.core.types import PyTree


class Objective(ABC):
    """Sum of stage costs over knot points 0..N-2 plus a terminal cost.

    Attributes:
        state_dim: State dimension n.
        control_dim: Control dimension m.
        num_knots: Number of knot points N.
    """

    state_dim: int
    control_dim: int
    num_knots: int

    @property
    @abstractmethod
    def params(self) -> PyTree:
        """Current cost parameters."""

    @abstractmethod
    def stage_cost(self, x: Array, u: Array, k: int, params: PyTree) -> Array:
        ...

    @abstractmethod
    def terminal_cost(self, x: Array, params: PyTree) -> Array:
        ...

    def cost(self, X: Array, U: Array) -> float:
        """Evaluate the total cost of a state/control trajectory."""
        ks = jnp.arange(U.shape[0])
        params = self.params
        stage = jax.vmap(self.stage_cost, in_axes=(0, 0, 0, None))(X[:-1], U, ks, params)
        return float(jnp.sum(stage) + self.terminal_cost(X[-1], params))


def _as_weight(W: Array, dim: int, name: str) -> Array:
    W = jnp.asarray(W)
    if W.ndim == 0:
        W = W * jnp.eye(dim)
    elif W.ndim == 1:
        W = jnp.diag(W)
    if W.shape != (dim, dim):
        raise ValueError(f"{name} must be ({dim}, {dim}) or its diagonal, got {W.shape}")
    return W


class TrackingObjective(Objective):
    """Quadratic tracking cost.

        stage:    0.5 (x - xref[k])' Q (x - xref[k]) + 0.5 (u - uref[k])' R (u - uref[k])
        terminal: 0.5 (x - xref[N-1])' Qf (x - xref[N-1])

    Args:
        Q: State weight, (n, n) matrix, its diagonal (n,), or a scalar.
        R: Control weight, (m, m) matrix, its diagonal (m,), or a scalar.
        Qf: Terminal state weight; defaults to Q.
        xref: Reference states, (N, n) or a constant (n,) target.
        uref: Reference controls, (N-1, m) or a constant (m,).
        num_knots: Number of knot points; required when xref is constant.

    Example:
        >>> objective = TrackingObjective(
        ...     Q=1e-2 * jnp.ones(6), R=1e-2 * jnp.ones(3), Qf=100.0 * jnp.ones(6),
        ...     xref=jnp.zeros(6), uref=hover, num_knots=301)
    """

    def __init__(
        self,
        Q: Array,
        R: Array,
        Qf: Optional[Array] = None,
        xref: Optional[Array] = None,
        uref: Optional[Array] = None,
        num_knots: Optional[int] = None,
    ):
        Q = jnp.asarray(Q)
        R = jnp.asarray(R)
        n = Q.shape[0] if Q.ndim > 0 else None
        m = R.shape[0] if R.ndim > 0 else None
        if xref is not None:
            n = jnp.shape(xref)[-1]
        if uref is not None:
            m = jnp.shape(uref)[-1]
        if n is None or m is None:
            raise ValueError("Cannot infer dimensions from scalar weights without references")

        if xref is not None and jnp.ndim(xref) == 2:
            N = jnp.shape(xref)[0]
            if num_knots is not None and num_knots != N:
                raise ValueError(f"xref has {N} rows but num_knots={num_knots}")
        elif num_knots is not None:
            N = num_knots
        elif uref is not None and jnp.ndim(uref) == 2:
            N = jnp.shape(uref)[0] + 1
        else:
            raise ValueError("num_knots is required when references are constant")
        if N < 2:
            raise ValueError(f"num_knots must be >= 2, got {N}")

        self.state_dim = n
        self.control_dim = m
        self.num_knots = N

        self._Q = _as_weight(Q, n, 'Q')
        self._R = _as_weight(R, m, 'R')
        self._Qf = self._Q if Qf is None else _as_weight(Qf, n, 'Qf')
        self._xref = jnp.zeros((N, n))
        self._uref = jnp.zeros((N - 1, m))
        self.set_reference(
            xref if xref is not None else jnp.zeros(n),
            uref if uref is not None else jnp.zeros(m),
        )

    @property
    def params(self) -> PyTree:
        return {
            'Q': self._Q,
            'R': self._R,
            'Qf': self._Qf,
            'xref': self._xref,
            'uref': self._uref,
        }

    @property
    def xref(self) -> Array:
        return self._xref

    @property
    def uref(self) -> Array:
        return self._uref

    def stage_cost(self, x: Array, u: Array, k: int, params: PyTree) -> Array:
        dx = x - params['xref'][k]
        du = u - params['uref'][k]
        return 0.5 * (dx @ params['Q'] @ dx + du @ params['R'] @ du)

    def terminal_cost(self, x: Array, params: PyTree) -> Array:
        dx = x - params['xref'][-1]
        return 0.5 * dx @ params['Qf'] @ dx

    def set_reference(
        self,
        xref: Optional[Array] = None,
        uref: Optional[Array] = None,
    ) -> None:
        """Replace the tracked reference; constant references are broadcast."""
        n, m, N = self.state_dim, self.control_dim, self.num_knots
        if xref is not None:
            xref = jnp.asarray(xref)
            if xref.shape == (n,):
                xref = jnp.tile(xref, (N, 1))
            if xref.shape != (N, n):
                raise ValueError(f"xref must have shape ({N}, {n}) or ({n},), got {xref.shape}")
            self._xref = xref
        if uref is not None:
            uref = jnp.asarray(uref)
            if uref.shape == (m,):
                uref = jnp.tile(uref, (N - 1, 1))
            if uref.shape != (N - 1, m):
                raise ValueError(
                    f"uref must have shape ({N - 1}, {m}) or ({m},), got {uref.shape}"
                )
            self._uref = uref

    def shift_reference(
        self,
        x_next: Optional[Array] = None,
        u_next: Optional[Array] = None,
    ) -> None:
        """Advance the reference window by one knot point.

        The new last entries are x_next / u_next; when omitted, the previous
        last entries are held.
        """
        x_next = self._xref[-1] if x_next is None else jnp.asarray(x_next)
        u_next = self._uref[-1] if u_next is None else jnp.asarray(u_next)
        self._xref = jnp.vstack([self._xref[1:], x_next[None]])
        self._uref = jnp.vstack([self._uref[1:], u_next[None]])
