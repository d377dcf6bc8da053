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

"""Knot point and trajectory data structures."""

from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional

import jax.numpy as jnp
from jax import Array


class KnotPoint(NamedTuple):
    """One discrete time sample of a trajectory.

    Attributes:
        x: State vector (n,).
        u: Control vector (m,), or None at the terminal knot point.
        t: Time of the sample.
        dt: Time step to the next knot point (0.0 at the terminal one).
    """
    x: Array
    u: Optional[Array]
    t: float
    dt: float

    @property
    def is_terminal(self) -> bool:
        return self.u is None


@dataclass
class Trajectory:
    """Ordered sequence of N knot points stored as arrays.

    The storage is array based: states X[k], controls U[k] and times[k]
    describe knot point k. The last knot point carries no control, so U has
    one row less than X. Arrays are only replaced through the explicit
    setters and `shift`, never aliased.

    Attributes:
        X: State trajectory of shape (N, n).
        U: Control trajectory of shape (N-1, m).
        times: Knot point times of shape (N,).

    Example:
        >>> Z = Trajectory.uniform(X, U, tf=5.0)
        >>> Z[0].x, Z[0].u, Z[0].dt
        >>> Z_next = Z.shift()  # warm start for the next MPC solve
    """

    X: Array
    U: Array
    times: Array

    def __post_init__(self):
        self.X = jnp.asarray(self.X)
        self.U = jnp.asarray(self.U)
        self.times = jnp.asarray(self.times, dtype=self.X.dtype)
        if self.X.ndim != 2 or self.U.ndim != 2:
            raise ValueError(
                f"X and U must be 2-D, got shapes {self.X.shape} and {self.U.shape}"
            )
        if self.X.shape[0] < 2:
            raise ValueError(f"A trajectory needs at least 2 knot points, got {self.X.shape[0]}")
        if self.U.shape[0] != self.X.shape[0] - 1:
            raise ValueError(
                f"U must have N-1={self.X.shape[0] - 1} rows, got {self.U.shape[0]}"
            )
        if self.times.shape != (self.X.shape[0],):
            raise ValueError(
                f"times must have shape ({self.X.shape[0]},), got {self.times.shape}"
            )

    @classmethod
    def uniform(
        cls,
        X: Array,
        U: Array,
        tf: float,
        t0: float = 0.0,
    ) -> 'Trajectory':
        """Create a trajectory with uniformly spaced knot points on [t0, t0 + tf]."""
        N = jnp.asarray(X).shape[0]
        return cls(X=X, U=U, times=t0 + jnp.linspace(0.0, tf, N))

    @property
    def num_knots(self) -> int:
        """Return the number of knot points N."""
        return self.X.shape[0]

    @property
    def state_dim(self) -> int:
        return self.X.shape[1]

    @property
    def control_dim(self) -> int:
        return self.U.shape[1]

    @property
    def dt(self) -> Array:
        """Time steps between consecutive knot points, shape (N-1,)."""
        return jnp.diff(self.times)

    @property
    def horizon(self) -> float:
        """Total time spanned by the trajectory."""
        return float(self.times[-1] - self.times[0])

    def __len__(self) -> int:
        return self.num_knots

    def __getitem__(self, k: int) -> KnotPoint:
        N = self.num_knots
        if k < 0:
            k += N
        if not 0 <= k < N:
            raise IndexError(f"knot point index {k} out of range for N={N}")
        if k == N - 1:
            return KnotPoint(x=self.X[k], u=None, t=float(self.times[k]), dt=0.0)
        return KnotPoint(
            x=self.X[k],
            u=self.U[k],
            t=float(self.times[k]),
            dt=float(self.times[k + 1] - self.times[k]),
        )

    def __iter__(self) -> Iterator[KnotPoint]:
        for k in range(self.num_knots):
            yield self[k]

    def set_states(self, X: Array) -> None:
        X = jnp.asarray(X)
        if X.shape != self.X.shape:
            raise ValueError(f"Expected states of shape {self.X.shape}, got {X.shape}")
        self.X = X

    def set_controls(self, U: Array) -> None:
        U = jnp.asarray(U)
        if U.shape != self.U.shape:
            raise ValueError(f"Expected controls of shape {self.U.shape}, got {U.shape}")
        self.U = U

    def set_initial_state(self, x0: Array) -> None:
        x0 = jnp.asarray(x0)
        if x0.shape != (self.state_dim,):
            raise ValueError(f"Expected state of shape ({self.state_dim},), got {x0.shape}")
        self.X = self.X.at[0].set(x0)

    def set_times(self, t0: float) -> None:
        """Move the time origin to t0, keeping the time steps."""
        self.times = self.times - self.times[0] + t0

    def shift(self) -> 'Trajectory':
        """Shift the trajectory one knot point to the left for warm starting.

        Drops the first knot point and duplicates the last state and control,
        so the length N is preserved and X_new[k] = X[k+1] for k < N-1.
        Times advance by the last time step.

        Returns:
            New Trajectory with shifted X, U and times.
        """
        X_shifted = jnp.vstack([self.X[1:], self.X[-1:]])
        U_shifted = jnp.vstack([self.U[1:], self.U[-1:]])
        t_last = self.times[-1] + (self.times[-1] - self.times[-2])
        times_shifted = jnp.concatenate([self.times[1:], t_last[None]])
        return Trajectory(X=X_shifted, U=U_shifted, times=times_shifted)

    def copy(self) -> 'Trajectory':
        return Trajectory(X=self.X, U=self.U, times=self.times)
