"""Numba JIT-compiled Gauss-Newton fit of sigmoid-polynomial spectra.

Each target RGB triple is fitted independently, so the kernels hold no
shared state. They are compiled with ``nogil=True`` so a thread pool can
run several rows of the chromaticity grid at once.

The wavelength axis is normalized: node i of the basis sits at
i / (n - 1) in [0, 1].
"""

from __future__ import annotations

import numba
import numpy as np


@numba.njit(cache=True, nogil=True)
def sigmoid(x):
    return 0.5 * x / np.sqrt(1.0 + x * x) + 0.5


@numba.njit(cache=True, nogil=True)
def clamp_coeffs(coeffs, limit):
    """Rescale in place so the largest magnitude is at most ``limit``."""
    m = max(abs(coeffs[0]), max(abs(coeffs[1]), abs(coeffs[2])))
    if m > limit:
        for j in range(3):
            coeffs[j] *= limit / m


@numba.njit(cache=True, nogil=True)
def eval_residual(coeffs, target, basis, residual):
    """residual = target - RGB of sigmoid(A t^2 + B t + C) under ``basis``."""
    n = basis.shape[1]
    out0 = 0.0
    out1 = 0.0
    out2 = 0.0
    for i in range(n):
        t = i / (n - 1.0)
        s = sigmoid((coeffs[0] * t + coeffs[1]) * t + coeffs[2])
        out0 += basis[0, i] * s
        out1 += basis[1, i] * s
        out2 += basis[2, i] * s
    residual[0] = target[0] - out0
    residual[1] = target[1] - out1
    residual[2] = target[2] - out2


@numba.njit(cache=True, nogil=True)
def eval_jacobian(coeffs, target, basis, eps, jac):
    """Central-difference Jacobian, jac[j, i] = d residual_j / d coeff_i."""
    tmp = np.empty(3)
    r0 = np.empty(3)
    r1 = np.empty(3)
    for i in range(3):
        for k in range(3):
            tmp[k] = coeffs[k]
        tmp[i] = coeffs[i] - eps
        eval_residual(tmp, target, basis, r0)
        tmp[i] = coeffs[i] + eps
        eval_residual(tmp, target, basis, r1)
        for j in range(3):
            jac[j, i] = (r1[j] - r0[j]) / (2.0 * eps)


@numba.njit(cache=True, nogil=True)
def lup_decompose(a, perm, tol):
    """In-place LU decomposition with partial pivoting.

    Returns False if a pivot falls below ``tol`` (singular matrix).
    """
    n = a.shape[0]
    for i in range(n):
        perm[i] = i

    for i in range(n):
        max_a = 0.0
        imax = i
        for k in range(i, n):
            v = abs(a[k, i])
            if v > max_a:
                max_a = v
                imax = k
        if max_a < tol:
            return False

        if imax != i:
            p = perm[i]
            perm[i] = perm[imax]
            perm[imax] = p
            for k in range(n):
                v = a[i, k]
                a[i, k] = a[imax, k]
                a[imax, k] = v

        for j in range(i + 1, n):
            a[j, i] /= a[i, i]
            for k in range(i + 1, n):
                a[j, k] -= a[j, i] * a[i, k]
    return True


@numba.njit(cache=True, nogil=True)
def lup_solve(a, perm, b, x):
    """Solve A x = b given the output of :func:`lup_decompose`."""
    n = a.shape[0]
    for i in range(n):
        x[i] = b[perm[i]]
        for k in range(i):
            x[i] -= a[i, k] * x[k]
    for i in range(n - 1, -1, -1):
        for k in range(i + 1, n):
            x[i] -= a[i, k] * x[k]
        x[i] /= a[i, i]


@numba.njit(cache=True, nogil=True)
def gauss_newton(target, basis, coeffs, max_iter, eps, pivot_tol, tol, limit):
    """Fit ``coeffs`` in place to reproduce ``target``.

    Returns:
        (residual_norm, ok, iterations). ``ok`` is False when the Jacobian
        became singular; ``coeffs`` then holds the last iterate.
    """
    residual = np.empty(3)
    jac = np.empty((3, 3))
    delta = np.empty(3)
    perm = np.empty(3, dtype=np.int64)

    r = 0.0
    it = 0
    while it < max_iter:
        it += 1
        clamp_coeffs(coeffs, limit)
        eval_residual(coeffs, target, basis, residual)
        eval_jacobian(coeffs, target, basis, eps, jac)

        if not lup_decompose(jac, perm, pivot_tol):
            return np.sqrt(r), False, it

        lup_solve(jac, perm, residual, delta)

        r = 0.0
        for j in range(3):
            coeffs[j] -= delta[j]
            r += residual[j] * residual[j]

        if r < tol:
            break

    return np.sqrt(r), True, it


@numba.njit(cache=True, nogil=True)
def fit_targets(targets, basis, init, max_iter, eps, pivot_tol, tol, limit):
    """Fit every row of an (M, 3) target array.

    Returns:
        (coeffs (M, 3), residual (M,), ok (M,), iterations (M,)).
    """
    m = targets.shape[0]
    coeffs = np.empty((m, 3))
    residual = np.zeros(m)
    ok = np.zeros(m, dtype=np.bool_)
    iterations = np.zeros(m, dtype=np.int64)

    c = np.empty(3)
    for k in range(m):
        for j in range(3):
            c[j] = init[j]
        res, good, it = gauss_newton(
            targets[k], basis, c, max_iter, eps, pivot_tol, tol, limit
        )
        for j in range(3):
            coeffs[k, j] = c[j]
        residual[k] = res
        ok[k] = good
        iterations[k] = it
    return coeffs, residual, ok, iterations
