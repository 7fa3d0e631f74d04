################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Validation helpers for magnetometer calibration inputs."""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray


# Relative tolerance for treating a matrix as symmetric
SYMMETRY_RTOL: float = 1e-9
SYMMETRY_ATOL: float = 1e-12


def as_float_array(
    value: Any, name: str, shape: tuple[int, ...]
) -> NDArray[np.float64]:
    """Coerce a value to a finite float64 numpy array with a specific shape."""
    array: NDArray[np.float64] = np.asarray(value, dtype=np.float64)
    if array.shape != shape:
        raise ValueError(f"{name} must have shape {shape}")
    if not np.all(np.isfinite(array)):
        raise ValueError(f"{name} must contain finite values")
    return array


def as_point_array(points: Any, name: str) -> NDArray[np.float64]:
    """Coerce a point set to a finite float64 array with shape (N, 3)."""
    array: NDArray[np.float64] = np.asarray(points, dtype=np.float64)
    if array.ndim != 2 or array.shape[1] != 3:
        raise ValueError(f"{name} must have shape (N, 3)")
    if not np.all(np.isfinite(array)):
        raise ValueError(f"{name} must contain finite values")
    return array


def symmetrize(matrix: NDArray[np.float64], name: str) -> NDArray[np.float64]:
    """Return the symmetric part of a nearly symmetric square matrix."""
    if not np.allclose(matrix, matrix.T, rtol=SYMMETRY_RTOL, atol=SYMMETRY_ATOL):
        raise ValueError(f"{name} must be symmetric")

    return 0.5 * (matrix + matrix.T)
