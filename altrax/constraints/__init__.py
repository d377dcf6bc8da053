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

"""Conic constraints and cone projections."""

from altrax.constraints.base import (
    Constraint,
    ControlConstraint,
    IndexSelector,
    SelectorConstraint,
    StageConstraint,
    StateConstraint,
    resolve_indices,
)
from altrax.constraints.cones import (
    dual_projection_jacobian,
    in_cone,
    project,
    project_dual,
    soc_projection,
    violation,
)
from altrax.constraints.constraint_list import ConstraintList
from altrax.constraints.library import (
    BoundConstraint,
    GoalConstraint,
    LinearConstraint,
    LinearSOC,
    NormConstraint,
)

__all__ = [
    "Constraint",
    "ControlConstraint",
    "IndexSelector",
    "SelectorConstraint",
    "StageConstraint",
    "StateConstraint",
    "resolve_indices",
    "dual_projection_jacobian",
    "in_cone",
    "project",
    "project_dual",
    "soc_projection",
    "violation",
    "ConstraintList",
    "BoundConstraint",
    "GoalConstraint",
    "LinearConstraint",
    "LinearSOC",
    "NormConstraint",
]
