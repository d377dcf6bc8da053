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

"""Constraint base classes.

Every constraint maps a knot point (x, u) to an output c that must lie in the
cone of its ConeSense. Constraints come in three kinds:

- StateConstraint:   depends on x only, may apply to the terminal knot point
- ControlConstraint: depends on u only
- StageConstraint:   depends on x and u

All of them share the capability set {output_dim, sense, evaluate, jacobian}
with a uniform (x, u) signature, so a constraint can be mapped over its
knot points with `jax.vmap`. Jacobians are always taken with respect to the
concatenated vector z = [x; u] and have shape (output_dim, n + m).
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from altrax.core.types import ConeSense


IndexSelector = Union[str, Sequence[int]]


def resolve_indices(selector: IndexSelector, state_dim: int, control_dim: int) -> np.ndarray:
    """Resolve a symbolic index selector to indices into z = [x; u].

    Args:
        selector: 'state', 'control', or an explicit sequence of indices
            into the concatenated state/control vector.
        state_dim: State dimension n.
        control_dim: Control dimension m.

    Returns:
        Integer index array, in the order given.

    Raises:
        ValueError: For an unknown tag, an empty set, duplicates, or
            indices outside [0, n + m).
    """
    if isinstance(selector, str):
        if selector == 'state':
            return np.arange(state_dim)
        if selector == 'control':
            return np.arange(state_dim, state_dim + control_dim)
        raise ValueError(f"Unknown index selector '{selector}', expected 'state' or 'control'")

    inds = np.asarray(selector, dtype=int).reshape(-1)
    if inds.size == 0:
        raise ValueError("Index selector is empty")
    if len(np.unique(inds)) != inds.size:
        raise ValueError(f"Index selector has duplicates: {inds.tolist()}")
    if inds.min() < 0 or inds.max() >= state_dim + control_dim:
        raise ValueError(
            f"Index selector {inds.tolist()} out of range for n + m = {state_dim + control_dim}"
        )
    return inds


class Constraint(ABC):
    """Base class for all constraints.

    Attributes:
        sense: Cone the output must lie in.
        state_dim: State dimension, or None if not fixed by the constraint.
        control_dim: Control dimension, or None if not fixed by the constraint.
        depends_on_state: Whether the output depends on x.
        depends_on_control: Whether the output depends on u. Constraints
            depending on u cannot be attached to the terminal knot point.
    """

    sense: ConeSense = ConeSense.INEQUALITY
    depends_on_state: bool = True
    depends_on_control: bool = True

    def __init__(self, state_dim: Optional[int] = None, control_dim: Optional[int] = None):
        self.state_dim = state_dim
        self.control_dim = control_dim

    @property
    @abstractmethod
    def output_dim(self) -> int:
        """Length of the constraint output."""

    @abstractmethod
    def evaluate(self, x: Array, u: Array) -> Array:
        """Evaluate the constraint output at a knot point."""

    def jacobian(self, x: Array, u: Array) -> Array:
        """Jacobian with respect to [x; u], shape (output_dim, n + m)."""
        n = x.shape[0]

        def fun(z):
            return self.evaluate(z[:n], z[n:])

        return jax.jacfwd(fun)(jnp.concatenate([x, u]))

    def check_dims(self, state_dim: int, control_dim: int) -> None:
        """Raise ValueError if the constraint does not fit the given model."""
        if self.state_dim is not None and self.state_dim != state_dim:
            raise ValueError(
                f"{type(self).__name__} expects state dimension {self.state_dim}, "
                f"model has {state_dim}"
            )
        if self.control_dim is not None and self.control_dim != control_dim:
            raise ValueError(
                f"{type(self).__name__} expects control dimension {self.control_dim}, "
                f"model has {control_dim}"
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(sense={self.sense.name}, output_dim={self.output_dim})"


class StateConstraint(Constraint):
    """Constraint on the state only; u is accepted and ignored."""

    depends_on_state = True
    depends_on_control = False


class ControlConstraint(Constraint):
    """Constraint on the control only; x is accepted and ignored."""

    depends_on_state = False
    depends_on_control = True


class StageConstraint(Constraint):
    """Constraint on both state and control."""

    depends_on_state = True
    depends_on_control = True


class SelectorConstraint(StageConstraint):
    """Stage constraint acting on a selected sub-block z_s of z = [x; u].

    The selector is resolved once at construction. Whether the constraint
    depends on the state and/or the control follows from the resolved
    indices, so a selector of 'state' yields a constraint that may apply to
    the terminal knot point.
    """

    def __init__(self, state_dim: int, control_dim: int, selector: IndexSelector):
        super().__init__(state_dim, control_dim)
        self.inds = resolve_indices(selector, state_dim, control_dim)
        self.depends_on_state = bool(np.any(self.inds < state_dim))
        self.depends_on_control = bool(np.any(self.inds >= state_dim))

    def select(self, x: Array, u: Array) -> Array:
        return jnp.concatenate([x, u])[self.inds]

    def embed(self, J_selected: Array) -> Array:
        """Place columns for z_s into a zero (p, n + m) Jacobian."""
        p = J_selected.shape[0]
        J = jnp.zeros((p, self.state_dim + self.control_dim), dtype=J_selected.dtype)
        return J.at[:, self.inds].set(J_selected)
