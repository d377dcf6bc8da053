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

"""Vectorized derivatives of stage functions along a trajectory.

Stage functions take (x, u, k, *args); the helpers here map them over the
knot points of a trajectory with `vmap`, leaving trailing arguments (cost
parameters, time steps) unbatched.
"""

from typing import Callable

import jax
import jax.numpy as jnp
from jax import Array, hessian, jacobian, vmap


def vectorize(fun: Callable, argnums: int = 3) -> Callable:
    """Vectorize the first `argnums` arguments of fun over axis 0.

    Args:
        fun: A function f(*args) to be mapped over.
        argnums: Number of leading arguments of fun to vectorize.

    Returns:
        Batched function with the signature of fun; the first argnums
        arguments carry an extra leading knot point axis, the remaining
        ones are passed through unchanged.

    Example:
        >>> costs = vectorize(objective.stage_cost)(X[:-1], U, ks, params)
    """
    def vfun(*args):
        _fun = lambda tup, *margs: fun(*(margs + tup))
        return vmap(
            _fun, in_axes=(None,) + (0,) * argnums
        )(args[argnums:], *args[:argnums])

    return vfun


def linearize(fun: Callable, argnums: int = 3) -> Callable:
    """Vectorized first derivatives with respect to x and u.

    For a scalar stage cost this returns the gradients (q, r); for a vector
    valued function the Jacobians (dfun/dx, dfun/du).

    Example:
        >>> q, r = linearize(objective.stage_cost)(X[:-1], U, ks, params)
    """
    jacobian_x = jacobian(fun)
    jacobian_u = jacobian(fun, argnums=1)

    def linearizer(*args):
        return jacobian_x(*args), jacobian_u(*args)

    return vectorize(linearizer, argnums)


def quadratize(fun: Callable, argnums: int = 3) -> Callable:
    """Vectorized Hessian operator for a scalar stage function.

    Returns:
        A function evaluating (Q, R, M) along a trajectory, where
        Q = d2f/dx2 of shape (K, n, n), R = d2f/du2 of shape (K, m, m) and
        M = d2f/dxdu of shape (K, n, m).
    """
    hessian_x = hessian(fun)
    hessian_u = hessian(fun, argnums=1)
    hessian_x_u = jacobian(jax.grad(fun), argnums=1)

    def quadratizer(*args):
        return hessian_x(*args), hessian_u(*args), hessian_x_u(*args)

    return vectorize(quadratizer, argnums)


def pad(A: Array) -> Array:
    """Pad array with a row of zeros at the end.

    Aligns controls with states: X has shape (N, n), U has shape (N-1, m),
    pad(U) has shape (N, m).
    """
    return jnp.vstack((A, jnp.zeros((1,) + A.shape[1:], dtype=A.dtype)))
