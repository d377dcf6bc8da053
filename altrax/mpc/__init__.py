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

"""Model Predictive Control (MPC) driver.

Key components:
- tracking_subproblem: fixed-horizon tracking problem of a reference
- MPCConfig / CostConfig: configuration of the loop, its cost and solver
- MPCController: receding horizon loop with shifted warm starts
- Disturbance: pluggable, seeded perturbation of the simulated state

Example:
    >>> from altrax.mpc import MPCConfig, MPCController, PercentNormDisturbance
    >>>
    >>> # Reference solve
    >>> ALSolver(problem).solve()
    >>> Xref, Uref = problem.Z.X, problem.Z.U
    >>>
    >>> # Track it
    >>> config = MPCConfig(
    ...     horizon=21,
    ...     cost=CostConfig(Q=10.0, R=1e-2, Q_terminal=100.0),
    ...     solver={'constraint_tolerance': 1e-4},
    ... )
    >>> controller = MPCController.from_reference(
    ...     problem, Xref, Uref, config, PercentNormDisturbance(0.02, 1e-3))
    >>> result = controller.run()
"""

from altrax.mpc.problem import (
    reference_window,
    tracking_subproblem,
)
from altrax.mpc.config import (
    CostConfig,
    MPCConfig,
)
from altrax.mpc.disturbance import (
    Disturbance,
    NoDisturbance,
    PercentNormDisturbance,
)
from altrax.mpc.controller import (
    MPCController,
    MPCResult,
    MPCState,
    MPCStepInfo,
    run_mpc,
)

__all__ = [
    # Problem
    'reference_window',
    'tracking_subproblem',
    # Configuration
    'CostConfig',
    'MPCConfig',
    # Disturbances
    'Disturbance',
    'NoDisturbance',
    'PercentNormDisturbance',
    # Controller
    'MPCController',
    'MPCResult',
    'MPCState',
    'MPCStepInfo',
    'run_mpc',
]
