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

"""Rollout utilities for simulating trajectories through discrete dynamics."""

from typing import Callable, Tuple

import jax.numpy as jnp
from jax import Array, lax


def rollout(
    dynamics: Callable,
    U: Array,
    x0: Array,
    times: Array,
    dt: float,
) -> Array:
    """Roll out dynamics: x[k+1] = dynamics(x[k], U[k], times[k], dt).

    Args:
        dynamics: Discrete dynamics (x, u, t, dt) -> x_next.
        U: Control sequence of shape (N-1, m).
        x0: Initial state of shape (n,).
        times: Knot point times of shape (N,).
        dt: Time step.

    Returns:
        X: State trajectory of shape (N, n).
    """
    def dynamics_for_scan(x, ut):
        u, t = ut
        x_next = dynamics(x, u, t, dt)
        return x_next, x_next

    _, X_rest = lax.scan(dynamics_for_scan, x0, (U, times[:-1]))
    return jnp.vstack((x0, X_rest))


def policy_rollout(
    dynamics: Callable,
    X: Array,
    U: Array,
    K: Array,
    d: Array,
    alpha: float,
    times: Array,
    dt: float,
) -> Tuple[Array, Array]:
    """Closed-loop rollout of the local feedback policy from a backward pass.

        u_new[k] = U[k] + alpha * d[k] + K[k] @ (x_new[k] - X[k])
        x_new[k+1] = dynamics(x_new[k], u_new[k], times[k], dt)

    The rollout starts from X[0], so the new trajectory shares the initial
    state of the nominal one.

    Args:
        dynamics: Discrete dynamics (x, u, t, dt) -> x_next.
        X: Nominal state trajectory of shape (N, n).
        U: Nominal control sequence of shape (N-1, m).
        K: Feedback gains of shape (N-1, m, n).
        d: Feedforward terms of shape (N-1, m).
        alpha: Line search step length in (0, 1].
        times: Knot point times of shape (N,).
        dt: Time step.

    Returns:
        X_new: Updated state trajectory of shape (N, n).
        U_new: Updated control sequence of shape (N-1, m).
    """
    def body(x, inputs):
        x_bar, u_bar, K_k, d_k, t = inputs
        u = u_bar + alpha * d_k + K_k @ (x - x_bar)
        x_next = dynamics(x, u, t, dt)
        return x_next, (x_next, u)

    _, (X_rest, U_new) = lax.scan(body, X[0], (X[:-1], U, K, d, times[:-1]))
    return jnp.vstack((X[0], X_rest)), U_new
