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

"""Solver options."""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict


@dataclass(frozen=True)
class SolverOptions:
    """Tunables of the iLQR and augmented Lagrangian solvers.

    Options are read-only once a solver is constructed; derive modified
    copies with `dataclasses.replace` or `SolverOptions.from_dict`.

    Attributes:
        constraint_tolerance: Max cone violation for convergence.
        cost_tolerance: Cost decrease |dJ| for convergence.
        cost_tolerance_intermediate: Cost tolerance of inner solves while
            the constraints are still violated.
        gradient_tolerance: Gradient metric for convergence.
        gradient_tolerance_intermediate: Gradient tolerance of inner solves
            while the constraints are still violated.
        expected_decrease_tolerance: A step is accepted without the ratio
            test when the model predicts a smaller decrease than this and
            the cost does not increase.
        iterations_inner: Cap on iLQR iterations per inner solve.
        iterations_outer: Cap on augmented Lagrangian updates.
        iterations: Cap on the total number of iLQR iterations.
        iterations_linesearch: Cap on step halvings per line search.
        penalty_initial: Initial penalty weight rho.
        penalty_scaling: Geometric penalty growth factor phi > 1.
        penalty_max: Upper limit on the penalty.
        dual_max: Magnitude limit on the dual variables.
        violation_decrease_ratio: Once every penalty is at penalty_max the
            solve continues with dual updates while the violation shrinks by
            at least this factor per outer iteration.
        bp_reg_initial: Initial backward pass regularization.
        bp_reg_increase_factor: Multiplicative regularization change.
        bp_reg_min: Regularization below this value is set to zero.
        bp_reg_max: Solver reports MAX_REGULARIZATION above this value.
        line_search_lower_bound: Minimum ratio of actual to expected decrease.
        line_search_upper_bound: Maximum ratio of actual to expected decrease.
        max_state_value: States larger in magnitude abort the rollout.
        reset_duals: Reset duals and penalties at the start of each solve.
        verbose: 0 silent, 1 per outer iteration, 2 per inner iteration.
    """

    # Tolerances
    constraint_tolerance: float = 1e-6
    cost_tolerance: float = 1e-4
    cost_tolerance_intermediate: float = 1e-3
    gradient_tolerance: float = 10.0
    gradient_tolerance_intermediate: float = 10.0
    expected_decrease_tolerance: float = 1e-10

    # Iteration caps
    iterations_inner: int = 300
    iterations_outer: int = 30
    iterations: int = 1000
    iterations_linesearch: int = 20

    # Augmented Lagrangian
    penalty_initial: float = 1.0
    penalty_scaling: float = 10.0
    penalty_max: float = 1e8
    dual_max: float = 1e8
    violation_decrease_ratio: float = 0.9

    # Backward pass regularization
    bp_reg_initial: float = 0.0
    bp_reg_increase_factor: float = 1.6
    bp_reg_min: float = 1e-8
    bp_reg_max: float = 1e8

    # Line search
    line_search_lower_bound: float = 1e-8
    line_search_upper_bound: float = 10.0

    max_state_value: float = 1e8
    reset_duals: bool = True
    verbose: int = 0

    def __post_init__(self):
        positive = (
            'constraint_tolerance', 'cost_tolerance', 'cost_tolerance_intermediate',
            'gradient_tolerance', 'gradient_tolerance_intermediate',
            'penalty_initial', 'penalty_max', 'dual_max', 'bp_reg_max',
            'max_state_value',
        )
        for name in positive:
            if not getattr(self, name) > 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ('iterations_inner', 'iterations_outer', 'iterations', 'iterations_linesearch'):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.expected_decrease_tolerance < 0:
            raise ValueError("expected_decrease_tolerance must be nonnegative")
        if self.penalty_scaling <= 1:
            raise ValueError(f"penalty_scaling must be > 1, got {self.penalty_scaling}")
        if self.penalty_initial > self.penalty_max:
            raise ValueError("penalty_initial must not exceed penalty_max")
        if not 0 < self.violation_decrease_ratio <= 1:
            raise ValueError(
                f"violation_decrease_ratio must be in (0, 1], got {self.violation_decrease_ratio}"
            )
        if self.bp_reg_increase_factor <= 1:
            raise ValueError(
                f"bp_reg_increase_factor must be > 1, got {self.bp_reg_increase_factor}"
            )
        if self.bp_reg_initial < 0 or self.bp_reg_min < 0:
            raise ValueError("Regularization values must be nonnegative")
        if not 0 <= self.line_search_lower_bound < self.line_search_upper_bound:
            raise ValueError(
                "Line search bounds must satisfy 0 <= lower < upper, got "
                f"({self.line_search_lower_bound}, {self.line_search_upper_bound})"
            )
        if self.verbose < 0:
            raise ValueError(f"verbose must be nonnegative, got {self.verbose}")

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> 'SolverOptions':
        """Build options from a dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ValueError(f"Unknown solver options: {sorted(unknown)}")
        return cls(**options)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
