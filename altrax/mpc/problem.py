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

"""Fixed-horizon tracking subproblems of a reference trajectory."""

from typing import Optional

import jax.numpy as jnp
import numpy as np
from jax import Array

from altrax.core.objective import TrackingObjective
from altrax.core.problem import Problem


def reference_window(reference: Array, start: int, length: int) -> Array:
    """Rows start..start+length-1 of a reference, holding the last row past its end.

    Args:
        reference: Reference trajectory (K, d).
        start: First row of the window.
        length: Number of rows.

    Returns:
        Array of shape (length, d).
    """
    reference = jnp.asarray(reference)
    inds = np.clip(start + np.arange(length), 0, reference.shape[0] - 1)
    return reference[inds]


def tracking_subproblem(
    problem: Problem,
    Xref: Array,
    Uref: Array,
    start: int,
    horizon: int,
    Q: Array,
    R: Array,
    Qf: Optional[Array] = None,
) -> Problem:
    """Build a horizon-long problem tracking a reference from knot point `start`.

    The subproblem shares the model of `problem` and inherits its
    constraints restricted to the window; constraints that fall outside the
    window, such as a terminal goal, are dropped. Its initial state and
    trajectory guess are taken from the reference.

    Args:
        problem: Full-length problem the reference was computed for.
        Xref: Reference states (N_ref, n).
        Uref: Reference controls (N_ref - 1, m).
        start: Reference knot index of the first knot point of the window.
        horizon: Number of knot points of the subproblem.
        Q, R, Qf: Tracking cost weights.

    Returns:
        A new Problem with `horizon` knot points.

    Raises:
        ValueError: If the window does not start inside the reference or
            the reference does not match the problem.
    """
    Xref = jnp.asarray(Xref)
    Uref = jnp.asarray(Uref)
    n, m = problem.state_dim, problem.control_dim
    if Xref.ndim != 2 or Xref.shape[1] != n:
        raise ValueError(f"Xref must have shape (N, {n}), got {Xref.shape}")
    if Uref.shape != (Xref.shape[0] - 1, m):
        raise ValueError(f"Uref must have shape ({Xref.shape[0] - 1}, {m}), got {Uref.shape}")
    if not 0 <= start < Xref.shape[0]:
        raise ValueError(f"start={start} outside the reference of length {Xref.shape[0]}")
    if horizon < 2:
        raise ValueError(f"horizon must be >= 2, got {horizon}")

    xref = reference_window(Xref, start, horizon)
    uref = reference_window(Uref, start, horizon - 1)
    objective = TrackingObjective(Q, R, Qf, xref=xref, uref=uref)
    constraints = problem.constraints.clipped(horizon, start)
    return Problem(
        problem.model,
        objective,
        x0=xref[0],
        tf=problem.dt * (horizon - 1),
        constraints=constraints,
        num_knots=horizon,
        t0=problem.t0 + start * problem.dt,
        X0=xref,
        U0=uref,
    )
