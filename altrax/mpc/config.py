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

"""Configuration classes for the MPC controller.

Provides nested dataclass configuration for the receding-horizon loop, its
tracking cost and its solver.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from jax import Array

from altrax.solvers.options import SolverOptions


@dataclass
class CostConfig:
    """Weights of the quadratic tracking cost of the MPC subproblem.

    Cost: 0.5 (x - x_ref)' Q (x - x_ref) + 0.5 (u - u_ref)' R (u - u_ref)

    Each weight is a scalar, a diagonal or a full matrix.

    Attributes:
        Q: State cost weight.
        R: Control cost weight.
        Q_terminal: Terminal state cost weight; defaults to 10 Q.
    """
    Q: Union[float, Array] = 1.0
    R: Union[float, Array] = 0.1
    Q_terminal: Optional[Union[float, Array]] = None

    def __post_init__(self):
        if self.Q_terminal is None:
            self.Q_terminal = self.Q * 10.0


@dataclass
class MPCConfig:
    """Configuration for the MPC controller.

    Attributes:
        horizon: Number of knot points of each subproblem.
        num_iterations: Number of MPC steps; defaults to the reference length
            minus the horizon.
        warm_start: Start each solve from the shifted previous solution
            instead of the reference.
        shift_duals: Shift the solver's duals and penalties along with the
            trajectory. Only meaningful with warm_start.
        seed: Seed of the disturbance random stream.
        cost: Tracking cost weights.
        solver: Solver options. Duals are always kept between solves, so
            reset_duals is forced to False.
    """
    horizon: int = 21
    num_iterations: Optional[int] = None
    warm_start: bool = True
    shift_duals: bool = True
    seed: int = 0
    cost: CostConfig = field(default_factory=CostConfig)
    solver: SolverOptions = field(default_factory=SolverOptions)

    def __post_init__(self):
        """Convert nested dicts to their dataclasses."""
        if isinstance(self.cost, dict):
            self.cost = CostConfig(**self.cost)
        if isinstance(self.solver, dict):
            self.solver = SolverOptions.from_dict(self.solver)
        if self.solver.reset_duals:
            self.solver = dataclasses.replace(self.solver, reset_duals=False)
        if self.horizon < 2:
            raise ValueError(f"horizon must be >= 2, got {self.horizon}")
        if self.num_iterations is not None and self.num_iterations < 0:
            raise ValueError(f"num_iterations must be nonnegative, got {self.num_iterations}")

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)
