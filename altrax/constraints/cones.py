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

"""Euclidean projections onto the constraint cones and their Jacobians.

A constraint output c must lie in a cone K determined by its ConeSense:

    EQUALITY            K = {0},                    K* = R^p
    INEQUALITY          K = {c : c <= 0},           K* = K
    SECOND_ORDER_CONE   K = {[v; s] : ||v|| <= s},  K* = K

The augmented Lagrangian uses projections onto the dual cone K* for the
multiplier estimates and projections onto K to measure violation. The
sense is a Python value, so the dispatch below happens at trace time.
"""

import jax.numpy as jnp
from jax import Array

from altrax.core.types import ConeSense


def soc_projection(z: Array) -> Array:
    """Project z = [v; s] onto the second-order cone ||v|| <= s.

        ||v|| <= s    ->  z
        ||v|| <= -s   ->  0
        otherwise     ->  (s + ||v||) / (2 ||v||) * [v; ||v||]
    """
    v, s = z[:-1], z[-1]
    a = jnp.sqrt(jnp.sum(v * v))
    a_safe = jnp.where(a > 0.0, a, 1.0)
    scale = 0.5 * (s + a) / a_safe
    outside = jnp.concatenate([scale * v, jnp.atleast_1d(0.5 * (s + a))])
    return jnp.where(
        a <= s,
        z,
        jnp.where(a <= -s, jnp.zeros_like(z), outside),
    )


def soc_projection_jacobian(z: Array) -> Array:
    """Jacobian of `soc_projection` at z, shape (p, p).

    In the interior it is the identity, in the polar cone zero; otherwise

        d Pi_v / dv = (1/2 + s / (2a)) I - s / (2a^3) v v'
        d Pi_v / ds = v / (2a)
        d Pi_s / dv = v' / (2a)
        d Pi_s / ds = 1/2
    """
    p = z.shape[0]
    v, s = z[:-1], z[-1]
    a = jnp.sqrt(jnp.sum(v * v))
    a_safe = jnp.where(a > 0.0, a, 1.0)

    Jvv = (0.5 + 0.5 * s / a_safe) * jnp.eye(p - 1) - 0.5 * s / a_safe**3 * jnp.outer(v, v)
    Jvs = 0.5 * v / a_safe
    outside = jnp.zeros((p, p), dtype=z.dtype)
    outside = outside.at[:-1, :-1].set(Jvv)
    outside = outside.at[:-1, -1].set(Jvs)
    outside = outside.at[-1, :-1].set(Jvs)
    outside = outside.at[-1, -1].set(0.5)
    return jnp.where(
        a <= s,
        jnp.eye(p, dtype=z.dtype),
        jnp.where(a <= -s, jnp.zeros((p, p), dtype=z.dtype), outside),
    )


def project(sense: ConeSense, z: Array) -> Array:
    """Project z onto the cone K of the given sense."""
    if sense is ConeSense.EQUALITY:
        return jnp.zeros_like(z)
    if sense is ConeSense.INEQUALITY:
        return jnp.minimum(z, 0.0)
    if sense is ConeSense.SECOND_ORDER_CONE:
        return soc_projection(z)
    raise ValueError(f"Unknown cone sense: {sense}")


def project_dual(sense: ConeSense, z: Array) -> Array:
    """Project z onto the dual cone K* of the given sense."""
    if sense is ConeSense.EQUALITY:
        return z
    return project(sense, z)


def dual_projection_jacobian(sense: ConeSense, z: Array) -> Array:
    """Jacobian of `project_dual` at z, shape (p, p)."""
    p = z.shape[0]
    if sense is ConeSense.EQUALITY:
        return jnp.eye(p, dtype=z.dtype)
    if sense is ConeSense.INEQUALITY:
        return jnp.diag((z < 0.0).astype(z.dtype))
    if sense is ConeSense.SECOND_ORDER_CONE:
        return soc_projection_jacobian(z)
    raise ValueError(f"Unknown cone sense: {sense}")


def violation(sense: ConeSense, c: Array) -> Array:
    """Infinity-norm distance of c from its cone, ||c - Pi_K(c)||_inf."""
    return jnp.max(jnp.abs(c - project(sense, c)))


def in_cone(sense: ConeSense, c: Array, tol: float = 0.0) -> Array:
    """Return True if c lies in the cone up to tol."""
    return violation(sense, c) <= tol
