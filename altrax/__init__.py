"""altrax: conic augmented Lagrangian trajectory optimization and MPC in JAX.

Main modules:
- altrax.core: Problem, Trajectory, dynamics models and objectives
- altrax.constraints: cones, constraint library and constraint lists
- altrax.solvers: iLQR and augmented Lagrangian iLQR
- altrax.lqr: Riccati backward pass
- altrax.mpc: receding horizon controller
- altrax.models: rocket model and landing problem
- altrax.utils: linearization, rollout and integrators
"""

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

# core first: altrax.constraints depends on altrax.core.types
from . import core
from . import constraints
from . import utils
from . import lqr
from . import solvers
from . import mpc
from . import models

__version__ = "0.1.0"
