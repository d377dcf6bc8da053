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

"""Point-mass rocket model and the powered landing problem.

State x = [r; v] (position and velocity, 6), control u = thrust force (3):

    r_dot = v
    v_dot = u / mass + gravity
"""

from typing import Optional, Sequence

import jax.numpy as jnp
import numpy as np
from jax import Array

from altrax.constraints.constraint_list import ConstraintList
from altrax.constraints.library import GoalConstraint, LinearSOC, NormConstraint
from altrax.core.dynamics import ContinuousModel, LinearAffineModel
from altrax.core.objective import TrackingObjective
from altrax.core.problem import Problem
from altrax.core.types import ConeSense


class RocketModel(ContinuousModel):
    """Three-dimensional point-mass rocket.

    Args:
        mass: Vehicle mass.
        gravity: Gravity vector (3,).
        integrator: Integrator for `step`; `discretize` is exact instead.
    """

    def __init__(
        self,
        mass: float = 10.0,
        gravity: Sequence[float] = (0.0, 0.0, -9.81),
        integrator: str = 'rk4',
    ):
        if mass <= 0:
            raise ValueError(f"mass must be positive, got {mass}")
        super().__init__(state_dim=6, control_dim=3, integrator=integrator)
        self.mass = float(mass)
        self.gravity = jnp.asarray(gravity)
        if self.gravity.shape != (3,):
            raise ValueError(f"gravity must have shape (3,), got {self.gravity.shape}")

    def continuous_dynamics(self, x: Array, u: Array, t: float) -> Array:
        return jnp.concatenate([x[3:], u / self.mass + self.gravity])

    @property
    def hover_thrust(self) -> Array:
        """Thrust that balances gravity."""
        return -self.mass * self.gravity

    def linear_matrices(self):
        """Continuous-time (Ac, Bc, dc) of x_dot = Ac x + Bc u + dc."""
        Ac = jnp.zeros((6, 6)).at[:3, 3:].set(jnp.eye(3))
        Bc = jnp.zeros((6, 3)).at[3:, :].set(jnp.eye(3) / self.mass)
        dc = jnp.concatenate([jnp.zeros(3), self.gravity])
        return Ac, Bc, dc

    def discretize(self, dt: float) -> LinearAffineModel:
        """Exact zero-order-hold discrete model for time step dt."""
        return LinearAffineModel.from_continuous(*self.linear_matrices(), dt=dt)


def landing_problem(
    num_knots: int = 301,
    dt: float = 0.05,
    x0: Sequence[float] = (4.0, 2.0, 20.0, -3.0, 2.0, -5.0),
    mass: float = 10.0,
    gravity: Sequence[float] = (0.0, 0.0, -9.81),
    max_thrust: Optional[float] = None,
    max_thrust_angle: float = np.deg2rad(30.0),
    glideslope_angle: float = np.deg2rad(45.0),
    Q: float = 1e-2,
    R: float = 1e-2,
    Qf: float = 100.0,
) -> Problem:
    """Powered descent to the origin.

    Constraints:
        - goal: x_{N-1} = 0
        - max thrust: ||u|| <= max_thrust (second-order cone)
        - thrust angle: ||u_xy|| <= tan(max_thrust_angle) u_z
        - glideslope: ||r_xy|| <= tan(glideslope_angle) r_z

    The cost tracks the origin and the hover thrust, and the initial
    control guess is hover.

    Args:
        num_knots: Number of knot points N.
        dt: Time step.
        x0: Initial state [r; v].
        mass: Vehicle mass.
        gravity: Gravity vector.
        max_thrust: Thrust magnitude limit; twice the hover thrust by default.
        max_thrust_angle: Largest angle of the thrust from vertical (rad).
        glideslope_angle: Largest angle of the position from vertical (rad).
        Q, R, Qf: Diagonal weights of the tracking cost.

    Returns:
        The landing Problem on the exact discretization of RocketModel.
    """
    rocket = RocketModel(mass, gravity)
    model = rocket.discretize(dt)
    n, m, N = model.state_dim, model.control_dim, num_knots
    hover = rocket.hover_thrust
    if max_thrust is None:
        max_thrust = 2.0 * float(jnp.linalg.norm(hover))

    xf = jnp.zeros(n)
    cons = ConstraintList(n, m, N)
    cons.add(GoalConstraint(xf), N - 1)
    cons.add(NormConstraint(n, m, max_thrust, ConeSense.SECOND_ORDER_CONE, 'control'))
    cons.add(LinearSOC(
        n, m,
        A=jnp.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]),
        c=jnp.array([0.0, 0.0, jnp.tan(max_thrust_angle)]),
        selector='control',
    ))
    cons.add(LinearSOC(
        n, m,
        A=jnp.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]),
        c=jnp.array([0.0, 0.0, jnp.tan(glideslope_angle)]),
        selector=[0, 1, 2],
    ))

    objective = TrackingObjective(
        Q=Q * jnp.ones(n),
        R=R * jnp.ones(m),
        Qf=Qf * jnp.ones(n),
        xref=xf,
        uref=hover,
        num_knots=N,
    )
    return Problem(
        model,
        objective,
        x0=jnp.asarray(x0),
        tf=dt * (N - 1),
        constraints=cons,
        num_knots=N,
        U0=hover,
    )
