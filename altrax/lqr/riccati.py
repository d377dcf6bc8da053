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

"""Regularized Riccati recursion for the iLQR backward pass.

The recursion propagates a quadratic model of the cost-to-go

    V_k(dx) = 0.5 dx' S_k dx + s_k' dx

backward along the trajectory and returns the local feedback policy
du = K_k dx + d_k at every knot point. Positive definiteness of the control
Hessian is detected through the Cholesky factorization: a factor containing
NaN marks a failed step, which the caller answers by increasing the
regularization.
"""

from typing import NamedTuple

import jax.numpy as jnp
import jax.scipy as jsp
from jax import Array, jit, lax


class BackwardPassResult(NamedTuple):
    """Output of `backward_pass`.

    Attributes:
        K: Feedback gains (N-1, m, n).
        d: Feedforward terms (N-1, m).
        dV: Expected decrease terms [sum d'Qu, 0.5 sum d'Quu d]; the model
            predicts a cost change of alpha dV[0] + alpha^2 dV[1] for a step
            of length alpha.
        ok: False if the control Hessian was not positive definite at some
            knot point.
    """
    K: Array
    d: Array
    dV: Array
    ok: Array


def symmetrize(S: Array) -> Array:
    return 0.5 * (S + S.T)


@jit
def riccati_step(
    S: Array,
    s: Array,
    lxx: Array,
    luu: Array,
    lxu: Array,
    lx: Array,
    lu: Array,
    A: Array,
    B: Array,
    reg: float,
) -> tuple[Array, Array, Array, Array, Array, Array]:
    """Single backward step of the regularized Riccati recursion.

    Args:
        S: Cost-to-go Hessian at the next knot point (n, n).
        s: Cost-to-go gradient at the next knot point (n,).
        lxx: Stage cost Hessian d2l/dx2 (n, n).
        luu: Stage cost Hessian d2l/du2 (m, m).
        lxu: Stage cost cross term d2l/dxdu (n, m).
        lx: Stage cost gradient dl/dx (n,).
        lu: Stage cost gradient dl/du (m,).
        A: Dynamics Jacobian dx'/dx (n, n).
        B: Dynamics Jacobian dx'/du (n, m).
        reg: Regularization added to the control Hessian.

    Returns:
        Tuple of:
            - S_prev: Cost-to-go Hessian (n, n)
            - s_prev: Cost-to-go gradient (n,)
            - K: Feedback gain (m, n)
            - d: Feedforward term (m,)
            - dV: Expected decrease terms (2,)
            - ok: Whether the regularized Quu was positive definite
    """
    Qx = lx + A.T @ s
    Qu = lu + B.T @ s
    BtS = B.T @ S
    Qxx = lxx + A.T @ S @ A
    Quu = symmetrize(luu + BtS @ B)
    Qux = lxu.T + BtS @ A

    m = Quu.shape[0]
    L = jnp.linalg.cholesky(Quu + reg * jnp.eye(m, dtype=Quu.dtype))
    ok = jnp.all(jnp.isfinite(L))

    K_d = -jsp.linalg.cho_solve((L, True), jnp.column_stack([Qux, Qu[:, None]]))
    K = K_d[:, :-1]
    d = K_d[:, -1]

    S_prev = symmetrize(Qxx + K.T @ Quu @ K + K.T @ Qux + Qux.T @ K)
    s_prev = Qx + K.T @ Quu @ d + K.T @ Qu + Qux.T @ d
    dV = jnp.array([d @ Qu, 0.5 * d @ Quu @ d])
    return S_prev, s_prev, K, d, dV, ok


@jit
def backward_pass(
    lxx: Array,
    luu: Array,
    lxu: Array,
    lx: Array,
    lu: Array,
    A: Array,
    B: Array,
    reg: float,
) -> BackwardPassResult:
    """Time-varying Riccati backward pass.

    Cost expansions are given on all N knot points, with the control terms of
    the terminal knot point unused; dynamics Jacobians on the N-1 transitions.

    Args:
        lxx: State Hessians (N, n, n).
        luu: Control Hessians (N, m, m).
        lxu: Cross terms (N, n, m).
        lx: State gradients (N, n).
        lu: Control gradients (N, m).
        A: State Jacobians (N-1, n, n).
        B: Control Jacobians (N-1, n, m).
        reg: Control Hessian regularization.

    Returns:
        BackwardPassResult with the policy and expected decrease.
    """
    def body(carry, inputs):
        S, s, dV, ok = carry
        S, s, K, d, dV_k, ok_k = riccati_step(S, s, *inputs, reg)
        return (S, s, dV + dV_k, ok & ok_k), (K, d)

    init = (lxx[-1], lx[-1], jnp.zeros(2, dtype=lx.dtype), jnp.array(True))
    inputs = (lxx[:-1], luu[:-1], lxu[:-1], lx[:-1], lu[:-1], A, B)
    (_, _, dV, ok), (K, d) = lax.scan(body, init, inputs, reverse=True)
    return BackwardPassResult(K=K, d=d, dV=dV, ok=ok)
