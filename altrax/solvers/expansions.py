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

"""Compiled cost, constraint and dynamics kernels of a problem.

`make_solver_functions` closes over the static structure of a Problem (the
model, the cost functions, the constraints and their knot indices) and
returns jitted kernels that take everything that changes between iterations
and solves as arguments: the trajectory, the cost parameters, and the dual
variables and penalties of the augmented Lagrangian. The kernels are built
once per solver; updating references or warm starts never recompiles.

The conic augmented Lagrangian of a constraint c in K with dual lambda and
penalty rho is

    L(c) = (||Pi_K*(lambda - rho c)||^2 - ||lambda||^2) / (2 rho)

with gradient dL/dc = -Pi_K*(lambda - rho c) and Gauss-Newton Hessian
rho dPi_K*' dPi_K* ~ rho dPi_K*.
"""

from typing import Callable, NamedTuple, Tuple

import jax
import jax.numpy as jnp
from jax import Array

from altrax.constraints import cones
from altrax.core.problem import Problem
from altrax.utils.linearize import linearize, pad, quadratize, vectorize
from altrax.utils.rollout import policy_rollout, rollout

Duals = Tuple[Array, ...]
Penalties = Tuple[Array, ...]


class CostExpansion(NamedTuple):
    """Second-order expansion of the augmented Lagrangian and the dynamics.

    Cost terms are given on all N knot points (control terms of the terminal
    one are zero), dynamics Jacobians on the N-1 transitions.
    """
    lxx: Array
    luu: Array
    lxu: Array
    lx: Array
    lu: Array
    A: Array
    B: Array


class SolverFunctions(NamedTuple):
    rollout: Callable
    policy_rollout: Callable
    cost: Callable
    expansion: Callable
    constraint_values: Callable
    violations: Callable
    max_violation: Callable
    dual_update: Callable


def make_solver_functions(problem: Problem, include_constraints: bool = True) -> SolverFunctions:
    """Build the jitted kernels for a problem.

    Args:
        problem: The problem. Only its static structure is captured.
        include_constraints: Whether to add augmented Lagrangian terms to the
            cost. Without them the kernels describe the unconstrained
            problem and the dual arguments are ignored.

    Returns:
        SolverFunctions with the signatures

            rollout(x0, U, times) -> X
            policy_rollout(X, U, K, d, alpha, times) -> (X, U)
            cost(X, U, params, duals, penalties) -> J
            expansion(X, U, times, params, duals, penalties) -> CostExpansion
            constraint_values(X, U) -> tuple of (K_i, p_i) arrays
            violations(X, U) -> (num_constraints,) max violation per constraint
            max_violation(X, U) -> scalar
            dual_update(X, U, duals, penalties, dual_max) -> duals
    """
    model = problem.model
    objective = problem.objective
    constraints = list(problem.constraints) if include_constraints else []
    dt = problem.dt
    n = problem.state_dim

    def _objective_cost(X, U, params):
        ks = jnp.arange(U.shape[0])
        stage = vectorize(objective.stage_cost)(X[:-1], U, ks, params)
        return jnp.sum(stage) + objective.terminal_cost(X[-1], params)

    def _constraint_values(X, U):
        U_pad = pad(U)
        return tuple(
            jax.vmap(con.evaluate)(X[inds], U_pad[inds]) for con, inds in constraints
        )

    def _projected_duals(values, duals, penalties):
        return tuple(
            jax.vmap(lambda z, con=con: cones.project_dual(con.sense, z))(
                lam - rho[:, None] * c
            )
            for (con, _), c, lam, rho in zip(constraints, values, duals, penalties)
        )

    def cost(X, U, params, duals, penalties):
        J = _objective_cost(X, U, params)
        if not constraints:
            return J
        values = _constraint_values(X, U)
        for proj, lam, rho in zip(_projected_duals(values, duals, penalties), duals, penalties):
            J += jnp.sum(
                (jnp.sum(proj**2, axis=1) - jnp.sum(lam**2, axis=1)) / (2.0 * rho)
            )
        return J

    def expansion(X, U, times, params, duals, penalties):
        ks = jnp.arange(U.shape[0])
        lx, lu = linearize(objective.stage_cost)(X[:-1], U, ks, params)
        lxx, luu, lxu = quadratize(objective.stage_cost)(X[:-1], U, ks, params)
        x_N = X[-1]
        lx = jnp.vstack([lx, jax.grad(objective.terminal_cost)(x_N, params)[None]])
        lxx = jnp.concatenate([lxx, jax.hessian(objective.terminal_cost)(x_N, params)[None]])
        lu, luu, lxu = pad(lu), pad(luu), pad(lxu)

        if constraints:
            U_pad = pad(U)
            values = _constraint_values(X, U)
            projected = _projected_duals(values, duals, penalties)
            for (con, inds), c, lam, rho, proj in zip(
                constraints, values, duals, penalties, projected
            ):
                J = jax.vmap(con.jacobian)(X[inds], U_pad[inds])
                dproj = jax.vmap(
                    lambda z, con=con: cones.dual_projection_jacobian(con.sense, z)
                )(lam - rho[:, None] * c)
                g = -jnp.einsum('kpz,kp->kz', J, proj)
                H = rho[:, None, None] * jnp.einsum('kpz,kpq,kqw->kzw', J, dproj, J)
                lx = lx.at[inds].add(g[:, :n])
                lu = lu.at[inds].add(g[:, n:])
                lxx = lxx.at[inds].add(H[:, :n, :n])
                luu = luu.at[inds].add(H[:, n:, n:])
                lxu = lxu.at[inds].add(H[:, :n, n:])

        A, B = jax.vmap(model.jacobian, in_axes=(0, 0, 0, None))(X[:-1], U, times[:-1], dt)
        return CostExpansion(lxx=lxx, luu=luu, lxu=lxu, lx=lx, lu=lu, A=A, B=B)

    def violations(X, U):
        values = _constraint_values(X, U)
        if not values:
            return jnp.zeros((0,), dtype=X.dtype)
        return jnp.stack([
            jnp.max(jax.vmap(lambda z, con=con: cones.violation(con.sense, z))(c))
            for (con, _), c in zip(constraints, values)
        ])

    def max_violation(X, U):
        v = violations(X, U)
        return jnp.max(v) if v.size else jnp.zeros((), dtype=X.dtype)

    def dual_update(X, U, duals, penalties, dual_max):
        values = _constraint_values(X, U)
        return tuple(
            jnp.clip(proj, -dual_max, dual_max)
            for proj in _projected_duals(values, duals, penalties)
        )

    return SolverFunctions(
        rollout=jax.jit(lambda x0, U, times: rollout(model.step, U, x0, times, dt)),
        policy_rollout=jax.jit(
            lambda X, U, K, d, alpha, times: policy_rollout(
                model.step, X, U, K, d, alpha, times, dt
            )
        ),
        cost=jax.jit(cost),
        expansion=jax.jit(expansion),
        constraint_values=jax.jit(_constraint_values),
        violations=jax.jit(violations),
        max_violation=jax.jit(max_violation),
        dual_update=jax.jit(dual_update),
    )
