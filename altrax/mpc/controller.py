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

"""MPC controller with receding horizon control.

The controller tracks a long reference trajectory by repeatedly solving a
fixed-horizon tracking subproblem. One step of the loop

1. advances the time origin by one time step,
2. propagates the state with the first planned control and applies the
   disturbance,
3. records the new state,
4. advances the tracked reference window by one knot point,
5. shifts the trajectory guess and the solver's duals and penalties,
6. re-solves from the new state.
"""

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional

import jax
import jax.numpy as jnp
import numpy as np
from absl import logging
from jax import Array

from altrax.core.objective import TrackingObjective
from altrax.core.problem import Problem
from altrax.core.types import SolverStatus
from altrax.mpc.config import MPCConfig
from altrax.mpc.disturbance import Disturbance, NoDisturbance
from altrax.mpc.problem import reference_window, tracking_subproblem
from altrax.solvers.augmented_lagrangian import ALSolver
from altrax.solvers.base import SolverBase


@dataclass
class MPCState:
    """Controller state between steps.

    Attributes:
        step_count: Number of executed steps; also the reference index of
            the first knot point of the current window.
        t: Current time.
        x: Current (simulated) state.
        key: Random key of the disturbance stream.
    """
    step_count: int
    t: float
    x: Array
    key: Array


class MPCStepInfo(NamedTuple):
    step: int
    t: float
    x: Array
    u: Array
    iterations: int
    solve_time: float
    status: SolverStatus


@dataclass
class MPCResult:
    """History of an MPC run.

    The solve statistics contain one entry for the initial solve followed by
    one per step, so they are one longer than U.

    Attributes:
        times: Times of the recorded states (K+1,).
        X: Simulated states (K+1, n), starting with the initial state.
        U: Applied controls (K, m).
        iterations: Solver iterations per solve.
        solve_times: Wall time per solve in seconds.
        statuses: Termination status per solve.
    """
    times: Array
    X: Array
    U: Array
    iterations: List[int] = field(default_factory=list)
    solve_times: List[float] = field(default_factory=list)
    statuses: List[SolverStatus] = field(default_factory=list)

    @property
    def num_steps(self) -> int:
        return self.U.shape[0]

    @property
    def all_succeeded(self) -> bool:
        return all(s.succeeded for s in self.statuses)

    def summary(self) -> str:
        iters = np.asarray(self.iterations)
        times = 1e3 * np.asarray(self.solve_times)
        return (
            f"{self.num_steps} MPC steps, "
            f"{sum(s.succeeded for s in self.statuses)}/{len(self.statuses)} solves succeeded, "
            f"iterations mean {iters.mean():.1f} max {iters.max()}, "
            f"solve time mean {times.mean():.2f} ms max {times.max():.2f} ms"
        )


class MPCController:
    """Receding horizon tracking controller.

    Args:
        problem: Horizon-length tracking problem; its objective must be a
            TrackingObjective whose reference window starts at reference
            index 0. Mutated in place by the loop.
        Xref: Full reference states (N_ref, n).
        Uref: Full reference controls (N_ref - 1, m).
        config: MPC configuration.
        disturbance: Applied to each propagated state; none by default.
        solver: Solver bound to `problem`; an ALSolver with the configured
            options by default.

    Example:
        >>> controller = MPCController.from_reference(
        ...     reference_problem, Xref, Uref, MPCConfig(horizon=21),
        ...     disturbance=PercentNormDisturbance(0.02, 1e-3))
        >>> result = controller.run()
        >>> result.summary()
    """

    def __init__(
        self,
        problem: Problem,
        Xref: Array,
        Uref: Array,
        config: Optional[MPCConfig] = None,
        disturbance: Optional[Disturbance] = None,
        solver: Optional[SolverBase] = None,
    ):
        self.config = config or MPCConfig()
        if not isinstance(problem.objective, TrackingObjective):
            raise ValueError("MPC requires a TrackingObjective")
        if problem.num_knots != self.config.horizon:
            raise ValueError(
                f"Problem has {problem.num_knots} knot points, config horizon is "
                f"{self.config.horizon}"
            )
        Xref = jnp.asarray(Xref)
        Uref = jnp.asarray(Uref)
        if Xref.shape[0] < self.config.horizon:
            raise ValueError(
                f"Reference of length {Xref.shape[0]} is shorter than the horizon "
                f"{self.config.horizon}"
            )
        if solver is not None and solver.problem is not problem:
            raise ValueError("The solver must be bound to the MPC problem")

        self.problem = problem
        self.Xref = Xref
        self.Uref = Uref
        self.disturbance = disturbance or NoDisturbance()
        self.solver = solver or ALSolver(problem, self.config.solver)
        self._step_fn = jax.jit(problem.model.step)
        self.state = MPCState(
            step_count=0,
            t=problem.t0,
            x=problem.x0,
            key=jax.random.PRNGKey(self.config.seed),
        )

    @classmethod
    def from_reference(
        cls,
        reference_problem: Problem,
        Xref: Array,
        Uref: Array,
        config: Optional[MPCConfig] = None,
        disturbance: Optional[Disturbance] = None,
    ) -> 'MPCController':
        """Build the tracking subproblem of a reference solve and its controller."""
        config = config or MPCConfig()
        problem = tracking_subproblem(
            reference_problem, Xref, Uref, 0, config.horizon,
            config.cost.Q, config.cost.R, config.cost.Q_terminal,
        )
        return cls(problem, Xref, Uref, config, disturbance)

    @property
    def default_num_iterations(self) -> int:
        return self.Xref.shape[0] - self.config.horizon

    def _log(self, msg: str, *args) -> None:
        if self.config.solver.verbose >= 1:
            logging.info(msg, *args)
        else:
            logging.vlog(1, msg, *args)

    def _solve(self) -> tuple[int, float, SolverStatus]:
        status = self.solver.solve()
        stats = self.solver.stats
        return stats.iterations, stats.solve_time, status

    def step(self) -> MPCStepInfo:
        """Advance the closed loop by one time step and re-solve."""
        problem = self.problem
        state = self.state
        dt = problem.dt

        # 1. advance time
        t = state.t + dt

        # 2. propagate with the first planned control
        u = problem.Z.U[0]
        x = self._step_fn(state.x, u, state.t, dt)
        key, subkey = jax.random.split(state.key)
        x = self.disturbance(x, subkey)

        # 3. record
        k = state.step_count + 1
        self.state = MPCState(step_count=k, t=t, x=x, key=key)

        # 4. reference window now starts at k
        H = self.config.horizon
        x_next = reference_window(self.Xref, k + H - 1, 1)[0]
        u_next = reference_window(self.Uref, k + H - 2, 1)[0]
        problem.objective.shift_reference(x_next, u_next)

        # 5. warm start
        if self.config.warm_start:
            problem.set_trajectory(problem.Z.shift())
            if self.config.shift_duals and hasattr(self.solver, 'shift_duals'):
                self.solver.shift_duals()
        else:
            problem.Z.set_states(reference_window(self.Xref, k, H))
            problem.Z.set_controls(reference_window(self.Uref, k, H - 1))
        problem.set_time_origin(t)
        problem.set_initial_state(x)

        # 6. re-solve
        iterations, solve_time, status = self._solve()
        self._log("MPC step %4d  t %.3f  iters %3d  %.2f ms  %s",
                  k, t, iterations, 1e3 * solve_time, status.name)
        return MPCStepInfo(k, t, x, u, iterations, solve_time, status)

    def run(self, num_iterations: Optional[int] = None) -> MPCResult:
        """Run the closed loop.

        Args:
            num_iterations: Number of steps; defaults to config.num_iterations,
                then to the reference length minus the horizon.

        Returns:
            MPCResult with the state, control and solve histories.
        """
        if num_iterations is None:
            num_iterations = self.config.num_iterations
        if num_iterations is None:
            num_iterations = self.default_num_iterations

        iterations, solve_time, status = self._solve()
        result = MPCResult(
            times=jnp.zeros(0), X=jnp.zeros(0), U=jnp.zeros(0),
            iterations=[iterations], solve_times=[solve_time], statuses=[status],
        )
        times = [self.state.t]
        X = [self.state.x]
        U = []
        for _ in range(num_iterations):
            info = self.step()
            times.append(info.t)
            X.append(info.x)
            U.append(info.u)
            result.iterations.append(info.iterations)
            result.solve_times.append(info.solve_time)
            result.statuses.append(info.status)

        result.times = jnp.asarray(times)
        result.X = jnp.stack(X)
        result.U = jnp.stack(U) if U else jnp.zeros((0, self.problem.control_dim))
        self._log("MPC run finished: %s", result.summary())
        return result


def run_mpc(
    reference_problem: Problem,
    Xref: Array,
    Uref: Array,
    config: Optional[MPCConfig] = None,
    disturbance: Optional[Disturbance] = None,
    num_iterations: Optional[int] = None,
) -> MPCResult:
    """Track a reference trajectory with MPC; see MPCController."""
    controller = MPCController.from_reference(
        reference_problem, Xref, Uref, config, disturbance
    )
    return controller.run(num_iterations)
