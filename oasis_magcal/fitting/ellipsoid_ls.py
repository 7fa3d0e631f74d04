################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Least-squares ellipsoid specific fitting.

Implements the constrained fit from Li, Qingde, and John G. Griffiths. "Least
squares ellipsoid specific fitting." Geometric Modeling and Processing, 2004.

The quadric is parameterized as

    a x^2 + b y^2 + c z^2 + 2f yz + 2g xz + 2h xy + 2p x + 2q y + 2r z + d = 0

with u1 = [a, b, c, f, g, h] and u2 = [p, q, r, d]. Minimizing |D u|^2 subject
to u1^T C1 u1 = 1 reduces to the generalized eigenproblem M u1 = lambda C1 u1
where M = S11 - S12 S22^-1 S21 is the reduced scatter matrix.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from oasis_magcal.calibration.magcal_errors import DegenerateFitError
from oasis_magcal.fitting.eig_sort import IMAG_RTOL
from oasis_magcal.fitting.eig_sort import EigenPair
from oasis_magcal.fitting.eig_sort import sort_eigen_pair
from oasis_magcal.magcal_types import QuadricModel
from oasis_magcal.math_utils.validation import as_point_array


# Minimum number of points for a 10-parameter quadric under one constraint
MIN_FIT_POINTS: int = 9

# Ellipsoid specificity parameter, 4J - I^2 > 0
ELLIPSOID_K: float = 4.0

# Largest accepted condition number of the linear-term scatter block
MAX_S22_CONDITION: float = 1e12


def constraint_matrix(k: float = ELLIPSOID_K) -> NDArray[np.float64]:
    """Return the 6x6 constraint matrix C1 for u1^T C1 u1 = k J - I^2."""
    C1: NDArray[np.float64] = np.zeros((6, 6), dtype=np.float64)
    C1[:3, :3] = 0.5 * k - 1.0
    np.fill_diagonal(C1[:3, :3], -1.0)
    C1[3:, 3:] = -k * np.eye(3, dtype=np.float64)
    return C1


def design_matrix(points: NDArray[np.float64]) -> NDArray[np.float64]:
    """Return the (N, 10) matrix of quadratic monomials per point."""
    x: NDArray[np.float64] = points[:, 0]
    y: NDArray[np.float64] = points[:, 1]
    z: NDArray[np.float64] = points[:, 2]
    return np.column_stack(
        [
            x * x,
            y * y,
            z * z,
            2.0 * y * z,
            2.0 * x * z,
            2.0 * x * y,
            2.0 * x,
            2.0 * y,
            2.0 * z,
            np.ones_like(x),
        ]
    )


def _denormalize(
    model: QuadricModel, offset: NDArray[np.float64], scale: float
) -> QuadricModel:
    """Map a model fitted on (x - offset) / scale back to raw coordinates."""
    Q: NDArray[np.float64] = model.Q / (scale * scale)
    ub_scaled: NDArray[np.float64] = model.ub / scale
    ub: NDArray[np.float64] = ub_scaled - 2.0 * (Q @ offset)
    k: float = float(offset @ Q @ offset - ub_scaled @ offset + model.k)
    return QuadricModel(Q=Q, ub=ub, k=k)


def fit_ellipsoid(points: NDArray[np.float64]) -> QuadricModel:
    """Fit an ellipsoid to at least nine 3D points.

    Raises:
        DegenerateFitError: If the points cannot determine a closed ellipsoid
    """
    try:
        pts: NDArray[np.float64] = as_point_array(points, "points")
    except ValueError as exc:
        raise DegenerateFitError(str(exc)) from exc

    if pts.shape[0] < MIN_FIT_POINTS:
        raise DegenerateFitError(
            f"Ellipsoid fit needs at least {MIN_FIT_POINTS} points, "
            f"got {pts.shape[0]}"
        )

    # Condition the problem around the centroid at unit RMS radius
    offset: NDArray[np.float64] = np.mean(pts, axis=0)
    centered: NDArray[np.float64] = pts - offset
    scale: float = float(np.sqrt(np.mean(np.sum(centered * centered, axis=1))))
    if not np.isfinite(scale) or scale <= 0.0:
        raise DegenerateFitError("Points are coincident")

    D: NDArray[np.float64] = design_matrix(centered / scale)
    S: NDArray[np.float64] = D.T @ D
    S11: NDArray[np.float64] = S[:6, :6]
    S12: NDArray[np.float64] = S[:6, 6:]
    S22: NDArray[np.float64] = S[6:, 6:]

    if np.linalg.cond(S22) > MAX_S22_CONDITION:
        raise DegenerateFitError("Points are coplanar or collinear")

    try:
        T: NDArray[np.float64] = -np.linalg.solve(S22, S12.T)
    except np.linalg.LinAlgError as exc:
        raise DegenerateFitError("Linear-term scatter matrix is singular") from exc

    M: NDArray[np.float64] = S11 + S12 @ T
    M = 0.5 * (M + M.T)

    C1: NDArray[np.float64] = constraint_matrix()
    eigvals: NDArray
    eigvecs: NDArray
    try:
        eigvals, eigvecs = np.linalg.eig(np.linalg.solve(C1, M))
    except np.linalg.LinAlgError as exc:
        raise DegenerateFitError(f"Eigen-decomposition failed: {exc}") from exc

    # Complex pairs cannot satisfy the real constraint
    eig_scale: float = max(1.0, float(np.max(np.abs(eigvals))))
    real: NDArray[np.bool_] = np.abs(np.imag(eigvals)) <= IMAG_RTOL * eig_scale
    try:
        pair: EigenPair = sort_eigen_pair(eigvals[real], eigvecs[:, real])
    except ValueError as exc:
        raise DegenerateFitError(f"Unstable eigen-decomposition: {exc}") from exc

    # Smallest residual among eigenvectors satisfying u1^T C1 u1 > 0
    u1: NDArray[np.float64] | None = None
    for index in range(pair.values.shape[0]):
        candidate: NDArray[np.float64] = pair.vectors[:, index]
        if float(candidate @ C1 @ candidate) > 0.0:
            u1 = candidate / np.linalg.norm(candidate)
            break

    if u1 is None:
        raise DegenerateFitError("No eigenvector satisfies the ellipsoid constraint")

    u2: NDArray[np.float64] = T @ u1
    coeffs: NDArray[np.float64] = np.concatenate([u1, u2])
    if np.trace(QuadricModel.from_coefficients(coeffs).Q) < 0.0:
        coeffs = -coeffs

    model: QuadricModel = _denormalize(
        QuadricModel.from_coefficients(coeffs), offset, scale
    )

    try:
        is_ellipsoid: bool = model.is_ellipsoid()
    except ValueError as exc:
        raise DegenerateFitError(str(exc)) from exc
    if not is_ellipsoid:
        raise DegenerateFitError("Fitted quadric is not a closed ellipsoid")

    return model
