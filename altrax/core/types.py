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

"""Type definitions for constrained trajectory optimization."""

from __future__ import annotations

from enum import Enum, auto
from typing import Any, Protocol

from jax import Array


# Shapes used throughout the package
# State: (n,) array
# Control: (m,) array
# StateTrajectory: (N, n) array, N knot points
# ControlTrajectory: (N-1, m) array, the terminal knot point has no control

PyTree = Any


class SolverStatus(Enum):
    """Status codes reported by the solvers."""
    UNSOLVED = auto()              # No solve attempted yet
    SOLVE_SUCCEEDED = auto()       # All tolerances met
    MAX_ITERATIONS = auto()        # Total iteration cap reached
    MAX_ITERATIONS_OUTER = auto()  # Augmented Lagrangian iteration cap reached
    MAX_PENALTY = auto()           # Every penalty saturated, still infeasible
    MAX_REGULARIZATION = auto()    # Backward pass / line search cannot progress
    NAN_ENCOUNTERED = auto()       # Rollout or cost produced NaN

    @property
    def succeeded(self) -> bool:
        return self is SolverStatus.SOLVE_SUCCEEDED


class ConeSense(Enum):
    """Cone a constraint output is required to lie in.

    EQUALITY:           c == 0 (the zero cone)
    INEQUALITY:         c <= 0 (the nonpositive orthant)
    SECOND_ORDER_CONE:  c = [v; s] with ||v||_2 <= s
    """
    EQUALITY = auto()
    INEQUALITY = auto()
    SECOND_ORDER_CONE = auto()


# Function type protocols

class DynamicsFn(Protocol):
    """Protocol for discrete dynamics functions.

    Signature: dynamics(x, u, t, dt) -> x_next

    Args:
        x: State vector (n,)
        u: Control vector (m,)
        t: Time of the knot point (scalar)
        dt: Time step (scalar)

    Returns:
        x_next: Next state vector (n,)
    """
    def __call__(self, x: Array, u: Array, t: float, dt: float) -> Array:
        ...


class StageCostFn(Protocol):
    """Protocol for stage cost functions.

    Signature: cost(x, u, k, params) -> scalar

    Args:
        x: State vector (n,)
        u: Control vector (m,)
        k: Knot point index (scalar int)
        params: Cost parameters (PyTree), e.g. tracking references

    Returns:
        cost: Scalar cost value
    """
    def __call__(self, x: Array, u: Array, k: int, params: PyTree) -> float:
        ...


class TerminalCostFn(Protocol):
    """Protocol for terminal cost functions.

    Signature: terminal_cost(x, params) -> scalar
    """
    def __call__(self, x: Array, params: PyTree) -> float:
        ...
