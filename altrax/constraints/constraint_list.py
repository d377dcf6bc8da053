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

"""Ordered set of constraints, each attached to a range of knot points."""

from typing import Iterator, List, Optional, Sequence, Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from altrax.constraints import cones
from altrax.constraints.base import Constraint
from altrax.utils.linearize import pad


KnotIndices = Union[range, Sequence[int], int]


class ConstraintList:
    """Constraints of a trajectory optimization problem.

    Knot point indices are 0-based. A constraint that depends only on the
    state may be attached to knot points 0..N-1; one that depends on the
    control only to 0..N-2, since the terminal knot point has no control.

    Args:
        state_dim: State dimension n.
        control_dim: Control dimension m.
        num_knots: Number of knot points N.

    Example:
        >>> cons = ConstraintList(6, 3, 301)
        >>> cons.add(GoalConstraint(xf), 300)
        >>> cons.add(NormConstraint(6, 3, u_max), range(300))
    """

    def __init__(self, state_dim: int, control_dim: int, num_knots: int):
        if num_knots < 2:
            raise ValueError(f"num_knots must be >= 2, got {num_knots}")
        self.state_dim = state_dim
        self.control_dim = control_dim
        self.num_knots = num_knots
        self._constraints: List[Constraint] = []
        self._indices: List[np.ndarray] = []

    def max_index(self, constraint: Constraint) -> int:
        """Largest knot point index the constraint may be attached to."""
        if constraint.depends_on_control:
            return self.num_knots - 2
        return self.num_knots - 1

    def add(self, constraint: Constraint, indices: Optional[KnotIndices] = None) -> 'ConstraintList':
        """Attach a constraint to a set of knot points.

        Args:
            constraint: The constraint.
            indices: A range, a sequence of knot indices or a single index.
                Defaults to every knot point the constraint may apply to.

        Returns:
            self, so calls can be chained.

        Raises:
            ValueError: On a dimension mismatch, or for empty, duplicate or
                out-of-range indices.
        """
        constraint.check_dims(self.state_dim, self.control_dim)
        kmax = self.max_index(constraint)
        if indices is None:
            inds = np.arange(kmax + 1)
        else:
            inds = np.atleast_1d(np.asarray(indices))
        if inds.ndim != 1 or inds.size == 0:
            raise ValueError("Knot indices must be a non-empty 1-D set")
        if not np.issubdtype(inds.dtype, np.integer):
            raise ValueError(f"Knot indices must be integers, got dtype {inds.dtype}")
        if len(np.unique(inds)) != inds.size:
            raise ValueError(f"Duplicate knot indices for {constraint!r}")
        if inds.min() < 0 or inds.max() > kmax:
            raise ValueError(
                f"Knot indices [{inds.min()}, {inds.max()}] out of range [0, {kmax}] "
                f"for {constraint!r} with N={self.num_knots}"
            )
        self._constraints.append(constraint)
        self._indices.append(inds.astype(int))
        return self

    def __len__(self) -> int:
        return len(self._constraints)

    def __iter__(self) -> Iterator[Tuple[Constraint, np.ndarray]]:
        return iter(zip(self._constraints, self._indices))

    def __getitem__(self, i: int) -> Tuple[Constraint, np.ndarray]:
        return self._constraints[i], self._indices[i]

    @property
    def constraints(self) -> List[Constraint]:
        return list(self._constraints)

    @property
    def indices(self) -> List[np.ndarray]:
        return list(self._indices)

    @property
    def total_dim(self) -> int:
        """Total number of scalar constraint outputs over all knot points."""
        return sum(c.output_dim * inds.size for c, inds in self)

    def clipped(self, num_knots: int, offset: int = 0) -> 'ConstraintList':
        """Restrict the constraints to a window of the trajectory.

        Indices are shifted by -offset and those outside the valid range of a
        `num_knots` long trajectory are dropped, together with constraints
        that are left without any knot point.

        Args:
            num_knots: Number of knot points of the window.
            offset: Knot index of the original trajectory at which the window
                starts.

        Returns:
            A new ConstraintList sharing the constraint objects.
        """
        clipped = ConstraintList(self.state_dim, self.control_dim, num_knots)
        for con, inds in self:
            shifted = inds - offset
            keep = shifted[(shifted >= 0) & (shifted <= clipped.max_index(con))]
            if keep.size:
                clipped.add(con, keep)
        return clipped

    def evaluate(self, X: Array, U: Array) -> List[Array]:
        """Evaluate every constraint over its knot points.

        Returns:
            List of arrays of shape (len(inds), output_dim), in insertion order.
        """
        U_pad = pad(U)
        return [jax.vmap(con.evaluate)(X[inds], U_pad[inds]) for con, inds in self]

    def violations(self, X: Array, U: Array) -> List[Array]:
        """Per-constraint maximum cone violation."""
        return [
            jnp.max(jax.vmap(lambda c, con=con: cones.violation(con.sense, c))(vals))
            for (con, _), vals in zip(self, self.evaluate(X, U))
        ]

    def max_violation(self, X: Array, U: Array) -> float:
        """Largest infinity-norm distance of any constraint from its cone."""
        if not len(self):
            return 0.0
        return float(jnp.max(jnp.stack(self.violations(X, U))))

    def __repr__(self) -> str:
        lines = [f"ConstraintList(n={self.state_dim}, m={self.control_dim}, N={self.num_knots})"]
        for con, inds in self:
            lines.append(f"  {con!r} at {inds.size} knot points [{inds.min()}..{inds.max()}]")
        return "\n".join(lines)
