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

"""Per-solve statistics."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from altrax.core.types import SolverStatus


@dataclass
class SolverStats:
    """Iteration history of the last solve.

    The per-iteration lists share one entry per iLQR iteration; `iteration_outer`
    records the outer augmented Lagrangian iteration each entry belongs to.
    """

    iterations: int = 0
    iterations_outer: int = 0
    status: SolverStatus = SolverStatus.UNSOLVED
    solve_time: float = 0.0

    cost: List[float] = field(default_factory=list)
    dJ: List[float] = field(default_factory=list)
    gradient: List[float] = field(default_factory=list)
    c_max: List[float] = field(default_factory=list)
    penalty_max: List[float] = field(default_factory=list)
    iteration_outer: List[int] = field(default_factory=list)

    def reset(self) -> None:
        self.iterations = 0
        self.iterations_outer = 0
        self.status = SolverStatus.UNSOLVED
        self.solve_time = 0.0
        for name in ('cost', 'dJ', 'gradient', 'c_max', 'penalty_max', 'iteration_outer'):
            getattr(self, name).clear()

    def record_iteration(
        self,
        cost: float,
        dJ: float,
        gradient: float,
        c_max: float = 0.0,
        penalty_max: float = 0.0,
    ) -> None:
        self.iterations += 1
        self.cost.append(cost)
        self.dJ.append(dJ)
        self.gradient.append(gradient)
        self.c_max.append(c_max)
        self.penalty_max.append(penalty_max)
        self.iteration_outer.append(self.iterations_outer)

    def record_outer(self, c_max: float, penalty_max: float) -> None:
        """Close an outer iteration, overwriting the c_max of its last entry."""
        self.iterations_outer += 1
        if self.c_max:
            self.c_max[-1] = c_max
            self.penalty_max[-1] = penalty_max

    @property
    def last_cost(self) -> float:
        return self.cost[-1] if self.cost else float('nan')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'iterations': self.iterations,
            'iterations_outer': self.iterations_outer,
            'status': self.status.name,
            'solve_time': self.solve_time,
            'cost': list(self.cost),
            'dJ': list(self.dJ),
            'gradient': list(self.gradient),
            'c_max': list(self.c_max),
            'penalty_max': list(self.penalty_max),
            'iteration_outer': list(self.iteration_outer),
        }
