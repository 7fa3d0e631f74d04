################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Soft-iron and hard-iron extraction from a fitted ellipsoid.

Follows Section 5.3 of Renaudin, Valerie, Muhammad Haris Afzal, and Gerard
Lachapelle. "Complete triaxis magnetometer calibration in the magnetic
domain." Journal of Sensors 2010.

For an ellipsoid (x - b)^T Q (x - b) = s, the symmetric matrix

    A = V diag(sqrt(lambda_i R^2 / s)) V^T

satisfies |A (x - b)| = R for every point on the surface.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from oasis_magcal.calibration.magcal_errors import IllConditionedModelError
from oasis_magcal.calibration.magcal_errors import InvalidReferenceStrengthError
from oasis_magcal.config.magcal_params import EXTRACTION_MAX_CONDITION_NUMBER
from oasis_magcal.fitting.eig_sort import EigenPair
from oasis_magcal.fitting.eig_sort import sort_eigen_pair
from oasis_magcal.magcal_types import QuadricModel


_LOG: logging.Logger = logging.getLogger(__name__)


def extract_calibration(
    model: QuadricModel,
    reference_field_strength: float,
    *,
    max_condition_number: float = EXTRACTION_MAX_CONDITION_NUMBER,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Return (A, b) mapping the ellipsoid onto a sphere of the reference radius.

    Raises:
        InvalidReferenceStrengthError: If the reference strength is not positive
        IllConditionedModelError: If the quadratic form is not safely invertible
    """
    R: float = float(reference_field_strength)
    if not np.isfinite(R) or R <= 0.0:
        raise InvalidReferenceStrengthError(
            f"Reference field strength must be positive, got {reference_field_strength}"
        )

    Q: NDArray[np.float64] = model.Q
    ub: NDArray[np.float64] = model.ub
    k: float = model.k
    if np.trace(Q) < 0.0:
        Q, ub, k = -Q, -ub, -k

    w: NDArray[np.float64]
    V: NDArray[np.float64]
    try:
        w, V = np.linalg.eigh(Q)
    except np.linalg.LinAlgError as exc:
        raise IllConditionedModelError(
            f"Eigen-decomposition of the quadratic form failed: {exc}"
        ) from exc

    pair: EigenPair = sort_eigen_pair(w, V)
    eigvals: NDArray[np.float64] = pair.values
    eigvecs: NDArray[np.float64] = pair.vectors

    if eigvals[0] <= 0.0:
        raise IllConditionedModelError(
            f"Quadratic form is not positive-definite, eigenvalues {eigvals}"
        )
    condition: float = float(eigvals[-1] / eigvals[0])
    if condition > max_condition_number:
        raise IllConditionedModelError(
            f"Quadratic form condition number {condition:.3g} exceeds "
            f"{max_condition_number:.3g}"
        )

    # Center from the eigen-decomposition: b = -Q^-1 ub / 2
    b: NDArray[np.float64] = -0.5 * (eigvecs @ ((eigvecs.T @ ub) / eigvals))

    level: float = float(b @ Q @ b - k)
    if not np.isfinite(level) or level <= 0.0:
        raise IllConditionedModelError("Quadric encloses no volume")

    scales: NDArray[np.float64] = np.sqrt(eigvals * (R * R) / level)
    A: NDArray[np.float64] = eigvecs @ np.diag(scales) @ eigvecs.T
    A = 0.5 * (A + A.T)

    if not np.all(np.isfinite(A)) or not np.all(np.isfinite(b)):
        raise IllConditionedModelError("Calibration parameters are not finite")

    _LOG.debug("Extracted hard-iron bias %s, axis scales %s", b, scales)

    return A, b
