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

"""Base class and factory for trajectory optimization solvers.

Solvers operate on a Problem in place: `solve()` starts from the trajectory
guess stored in `problem.Z` and writes the best iterate back into it, so the
caller can read the result even when the solve fails.
"""

import dataclasses
from abc import ABC, abstractmethod
from typing import Optional

from altrax.core.problem import Problem
from altrax.core.trajectory import Trajectory
from altrax.core.types import SolverStatus
from altrax.solvers.options import SolverOptions
from altrax.solvers.stats import SolverStats


class SolverBase(ABC):
    """Abstract base class for solvers.

    Args:
        problem: The problem to solve; owned by the caller and updated in place.
        options: Solver options; defaults to SolverOptions().
        **overrides: Individual option overrides, applied on top of options.

    Example:
        >>> solver = ALSolver(problem, verbose=1, constraint_tolerance=1e-6)
        >>> status = solver.solve()
    """

    name: str = "base"

    def __init__(
        self,
        problem: Problem,
        options: Optional[SolverOptions] = None,
        **overrides,
    ):
        options = SolverOptions() if options is None else options
        if overrides:
            options = dataclasses.replace(options, **overrides)
        self.problem = problem
        self.options = options
        self.stats = SolverStats()

    @property
    def status(self) -> SolverStatus:
        return self.stats.status

    @abstractmethod
    def solve(self) -> SolverStatus:
        """Solve the problem in place and return the termination status."""

    def get_trajectory(self) -> Trajectory:
        """Return a copy of the current iterate."""
        return self.problem.Z.copy()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.problem!r}, status={self.status.name})"


def get_solver(name: str, problem: Problem, options: Optional[SolverOptions] = None, **overrides) -> SolverBase:
    """Factory function to create a solver by name.

    Args:
        name: Solver name ('ilqr', 'altro' or 'al_ilqr').
        problem: The problem to solve.
        options: Solver options.
        **overrides: Individual option overrides.

    Raises:
        ValueError: If the solver name is not recognized.
    """
    from altrax.solvers.augmented_lagrangian import ALSolver
    from altrax.solvers.ilqr import ILQRSolver

    _SOLVERS = {
        'ilqr': ILQRSolver,
        'altro': ALSolver,
        'al_ilqr': ALSolver,
    }

    name_lower = name.lower()
    if name_lower not in _SOLVERS:
        available = list(_SOLVERS.keys())
        raise ValueError(
            f"Unknown solver: {name}. Available: {available}"
        )

    return _SOLVERS[name_lower](problem, options, **overrides)
