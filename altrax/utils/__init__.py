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

"""Computational building blocks used by the solvers.

- Linearization and quadratization of stage functions along a trajectory
- Open- and closed-loop rollouts
- Explicit integrators for continuous-time dynamics
"""

# Linearization utilities
from altrax.utils.linearize import (
    vectorize,
    linearize,
    quadratize,
    pad,
)

# Rollout utilities
from altrax.utils.rollout import (
    rollout,
    policy_rollout,
)

# Integrators
from altrax.utils.integrators import (
    euler,
    rk4,
    midpoint,
    heun,
    get_integrator,
)

__all__ = [
    # Linearization
    'vectorize',
    'linearize',
    'quadratize',
    'pad',
    # Rollout
    'rollout',
    'policy_rollout',
    # Integrators
    'euler',
    'rk4',
    'midpoint',
    'heun',
    'get_integrator',
]
