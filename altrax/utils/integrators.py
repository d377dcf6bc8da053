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

"""Explicit integrators turning continuous dynamics into discrete dynamics.

The solvers work with discrete dynamics x[k+1] = f(x[k], u[k], t[k], dt).
Continuous dynamics dx/dt = f_cont(x, u, t) are discretized with one of the
explicit schemes below, holding the control constant over the step.
"""

from typing import Callable, Dict


def euler(dynamics_continuous: Callable) -> Callable:
    """Forward Euler: x[k+1] = x[k] + dt * f(x[k], u[k], t[k]).

    Args:
        dynamics_continuous: Continuous dynamics (x, u, t) -> dx/dt.

    Returns:
        Discrete dynamics (x, u, t, dt) -> x_next.
    """
    def dynamics_discrete(x, u, t, dt):
        return x + dt * dynamics_continuous(x, u, t)

    return dynamics_discrete


def midpoint(dynamics_continuous: Callable) -> Callable:
    """Explicit midpoint rule (second order)."""
    def dynamics_discrete(x, u, t, dt):
        k1 = dynamics_continuous(x, u, t)
        k2 = dynamics_continuous(x + 0.5 * dt * k1, u, t + 0.5 * dt)
        return x + dt * k2

    return dynamics_discrete


def heun(dynamics_continuous: Callable) -> Callable:
    """Heun's method (explicit trapezoidal, second order)."""
    def dynamics_discrete(x, u, t, dt):
        k1 = dynamics_continuous(x, u, t)
        k2 = dynamics_continuous(x + dt * k1, u, t + dt)
        return x + 0.5 * dt * (k1 + k2)

    return dynamics_discrete


def rk4(dynamics_continuous: Callable) -> Callable:
    """Classic fourth-order Runge-Kutta with zero-order-hold control.

        k1 = f(x, u, t)
        k2 = f(x + dt/2 * k1, u, t + dt/2)
        k3 = f(x + dt/2 * k2, u, t + dt/2)
        k4 = f(x + dt * k3, u, t + dt)
        x[k+1] = x[k] + dt/6 * (k1 + 2*k2 + 2*k3 + k4)

    Exact for dynamics whose solution is polynomial of degree <= 4 in time,
    e.g. a point mass under constant thrust.

    Example:
        >>> step = rk4(lambda x, u, t: jnp.array([x[1], u[0]]))
        >>> x_next = step(x, u, 0.0, 0.1)
    """
    def dynamics_discrete(x, u, t, dt):
        k1 = dynamics_continuous(x, u, t)
        k2 = dynamics_continuous(x + 0.5 * dt * k1, u, t + 0.5 * dt)
        k3 = dynamics_continuous(x + 0.5 * dt * k2, u, t + 0.5 * dt)
        k4 = dynamics_continuous(x + dt * k3, u, t + dt)
        return x + dt / 6.0 * (k1 + 2.0 * k2 + 2.0 * k3 + k4)

    return dynamics_discrete


INTEGRATORS: Dict[str, Callable] = {
    'euler': euler,
    'midpoint': midpoint,
    'heun': heun,
    'rk4': rk4,
}


def get_integrator(name: str) -> Callable:
    """Look up an integrator by name.

    Raises:
        ValueError: If the name is not one of INTEGRATORS.
    """
    try:
        return INTEGRATORS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown integrator: {name}. Available: {list(INTEGRATORS)}"
        ) from None
