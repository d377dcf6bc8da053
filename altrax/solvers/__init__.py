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

"""Trajectory optimization solvers.

- ILQRSolver: unconstrained iLQR with a regularized Riccati backward pass
- ALSolver: augmented Lagrangian iLQR for equality, inequality and
  second-order cone constraints

Example:
    >>> from altrax.solvers import ALSolver
    >>> solver = ALSolver(problem, verbose=1)
    >>> status = solver.solve()
"""

from altrax.solvers.options import SolverOptions
from altrax.solvers.stats import SolverStats

from altrax.solvers.base import (
    SolverBase,
    get_solver,
)

from altrax.solvers.expansions import (
    CostExpansion,
    SolverFunctions,
    make_solver_functions,
)

from altrax.solvers.ilqr import (
    ILQRSolver,
    InnerResult,
    gradient_metric,
)

from altrax.solvers.augmented_lagrangian import ALSolver

__all__ = [
    # Configuration
    'SolverOptions',
    'SolverStats',
    # Base
    'SolverBase',
    'get_solver',
    # Kernels
    'CostExpansion',
    'SolverFunctions',
    'make_solver_functions',
    # Solvers
    'ILQRSolver',
    'InnerResult',
    'gradient_metric',
    'ALSolver',
]
