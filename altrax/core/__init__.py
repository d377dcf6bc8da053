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

"""Core abstractions for constrained trajectory optimization.

- Problem: model, objective, constraints, initial state and horizon
- Trajectory / KnotPoint: array storage of the solution
- DynamicsModel: discrete dynamics with Jacobians
- Objective: per-knot stage cost plus terminal cost
- Status codes, cone senses and function protocols
"""

from altrax.core.types import (
    ConeSense,
    DynamicsFn,
    PyTree,
    SolverStatus,
    StageCostFn,
    TerminalCostFn,
)

from altrax.core.trajectory import (
    KnotPoint,
    Trajectory,
)

from altrax.core.dynamics import (
    ContinuousModel,
    DynamicsModel,
    LinearAffineModel,
)

from altrax.core.objective import (
    Objective,
    TrackingObjective,
)

# Imported last: the problem depends on altrax.constraints, which in turn
# needs the types above.
from altrax.core.problem import Problem

__all__ = [
    # Types
    'ConeSense',
    'DynamicsFn',
    'PyTree',
    'SolverStatus',
    'StageCostFn',
    'TerminalCostFn',
    # Data structures
    'KnotPoint',
    'Trajectory',
    # Models and costs
    'ContinuousModel',
    'DynamicsModel',
    'LinearAffineModel',
    'Objective',
    'TrackingObjective',
    # Problem
    'Problem',
]
