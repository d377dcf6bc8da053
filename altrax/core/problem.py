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

"""Trajectory optimization problem specification."""

from __future__ import annotations

from typing import Optional

import jax.numpy as jnp
from jax import Array

from altrax.constraints.constraint_list import ConstraintList
from altrax.core.dynamics import DynamicsModel
from altrax.core.objective import Objective
from altrax.core.trajectory import Trajectory
from altrax.utils.rollout import rollout


class Problem:
    """Constrained trajectory optimization problem.

        min  sum_{k=0}^{N-2} stage_cost(x_k, u_k, k) + terminal_cost(x_{N-1})
        s.t. x_{k+1} = model.step(x_k, u_k, t_k, dt),  x_0 = x0
             c_i(x_k, u_k) in K_i  for each constraint i and knot point k

    The problem owns the current trajectory guess `Z`. Solvers write their
    iterates back into it and the MPC loop shifts it between solves, so it
    always holds the best known trajectory.

    Args:
        model: Discrete dynamics model.
        objective: Cost; its num_knots defines N unless given explicitly.
        x0: Initial state (n,).
        tf: Final time, measured from t0.
        constraints: Constraint list over the same N knot points.
        num_knots: Number of knot points N.
        t0: Time origin.
        X0: Initial state trajectory guess (N, n); rolled out from U0 if omitted.
        U0: Initial control guess (N-1, m), or a constant (m,); zeros if omitted.

    Raises:
        ValueError: If dimensions of the model, objective, constraints and
            x0 disagree, N < 2, tf <= 0, or the model was discretized with a
            different time step.

    Example:
        >>> problem = Problem(model, objective, x0, tf=15.0, constraints=cons)
        >>> solver = ALSolver(problem)
        >>> solver.solve()
        >>> X, U = problem.Z.X, problem.Z.U
    """

    def __init__(
        self,
        model: DynamicsModel,
        objective: Objective,
        x0: Array,
        tf: float,
        constraints: Optional[ConstraintList] = None,
        num_knots: Optional[int] = None,
        t0: float = 0.0,
        X0: Optional[Array] = None,
        U0: Optional[Array] = None,
    ):
        n, m = model.state_dim, model.control_dim
        N = objective.num_knots if num_knots is None else num_knots

        if N < 2:
            raise ValueError(f"num_knots must be >= 2, got {N}")
        if tf <= 0:
            raise ValueError(f"tf must be positive, got {tf}")
        if objective.state_dim != n or objective.control_dim != m:
            raise ValueError(
                f"Objective dimensions (n={objective.state_dim}, m={objective.control_dim}) "
                f"do not match the model (n={n}, m={m})"
            )
        if objective.num_knots != N:
            raise ValueError(f"Objective has {objective.num_knots} knot points, expected {N}")

        constraints = ConstraintList(n, m, N) if constraints is None else constraints
        if constraints.state_dim != n or constraints.control_dim != m:
            raise ValueError(
                f"Constraint list dimensions (n={constraints.state_dim}, "
                f"m={constraints.control_dim}) do not match the model (n={n}, m={m})"
            )
        if constraints.num_knots != N:
            raise ValueError(
                f"Constraint list has {constraints.num_knots} knot points, expected {N}"
            )

        dt = tf / (N - 1)
        if model.dt is not None and abs(model.dt - dt) > 1e-10 * max(1.0, dt):
            raise ValueError(
                f"Model was discretized with dt={model.dt}, but tf/(N-1) = {dt}"
            )

        x0 = jnp.asarray(x0)
        if x0.shape != (n,):
            raise ValueError(f"x0 must have shape ({n},), got {x0.shape}")

        self.model = model
        self.objective = objective
        self.constraints = constraints
        self.x0 = x0
        self.tf = float(tf)
        self.t0 = float(t0)
        self.num_knots = N
        self.dt = dt

        U = self.initial_controls(U0)
        times = self.t0 + dt * jnp.arange(N)
        if X0 is None:
            X = rollout(model.step, U, x0, times, dt)
        else:
            X = jnp.asarray(X0)
            if X.shape != (N, n):
                raise ValueError(f"X0 must have shape ({N}, {n}), got {X.shape}")
            X = X.at[0].set(x0)
        self.Z = Trajectory(X=X, U=U, times=times)

    @property
    def state_dim(self) -> int:
        return self.model.state_dim

    @property
    def control_dim(self) -> int:
        return self.model.control_dim

    @property
    def has_constraints(self) -> bool:
        return len(self.constraints) > 0

    def initial_controls(self, U0: Optional[Array] = None) -> Array:
        """Broadcast a control guess to shape (N-1, m); zeros when omitted."""
        N, m = self.num_knots, self.control_dim
        if U0 is None:
            return jnp.zeros((N - 1, m), dtype=self.x0.dtype)
        U0 = jnp.asarray(U0)
        if U0.shape == (m,):
            U0 = jnp.tile(U0, (N - 1, 1))
        if U0.shape != (N - 1, m):
            raise ValueError(f"U0 must have shape ({N - 1}, {m}) or ({m},), got {U0.shape}")
        return U0

    def set_initial_state(self, x0: Array) -> None:
        x0 = jnp.asarray(x0)
        if x0.shape != (self.state_dim,):
            raise ValueError(f"x0 must have shape ({self.state_dim},), got {x0.shape}")
        self.x0 = x0
        self.Z.set_initial_state(x0)

    def set_time_origin(self, t0: float) -> None:
        self.t0 = float(t0)
        self.Z.set_times(self.t0)

    def set_trajectory(self, Z: Trajectory) -> None:
        """Replace the trajectory guess, e.g. with a shifted warm start."""
        if Z.X.shape != self.Z.X.shape or Z.U.shape != self.Z.U.shape:
            raise ValueError(
                f"Trajectory shapes {Z.X.shape}, {Z.U.shape} do not match "
                f"{self.Z.X.shape}, {self.Z.U.shape}"
            )
        self.Z = Z

    def rollout(self) -> Array:
        """Simulate the controls of Z from x0 and store the resulting states."""
        X = rollout(self.model.step, self.Z.U, self.x0, self.Z.times, self.dt)
        self.Z.set_states(X)
        return X

    def cost(self, Z: Optional[Trajectory] = None) -> float:
        Z = self.Z if Z is None else Z
        return self.objective.cost(Z.X, Z.U)

    def max_violation(self, Z: Optional[Trajectory] = None) -> float:
        Z = self.Z if Z is None else Z
        return self.constraints.max_violation(Z.X, Z.U)

    def __repr__(self) -> str:
        return (
            f"Problem(n={self.state_dim}, m={self.control_dim}, N={self.num_knots}, "
            f"tf={self.tf}, constraints={len(self.constraints)})"
        )
