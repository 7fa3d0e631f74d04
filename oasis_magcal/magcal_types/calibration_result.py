################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Soft-iron and hard-iron calibration result."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from oasis_magcal.math_utils.validation import as_float_array


# Logical parameter keys in push order
PARAMETER_KEYS: tuple[str, ...] = (
    "a11",
    "a12",
    "a13",
    "a21",
    "a22",
    "a23",
    "a31",
    "a32",
    "a33",
    "bx",
    "by",
    "bz",
)


@dataclass(frozen=True)
class CalibrationResult:
    """Affine magnetometer correction m_corr = A (m_raw - b).

    Attributes:
        A: Soft-iron correction matrix, shape (3, 3)
        b: Hard-iron bias in sensor units, shape (3,)
        reference_field_strength: Radius the correction maps samples onto
        inlier_count: Number of samples supporting the final ellipsoid fit
        sample_count: Number of samples collected during the session
    """

    A: NDArray[np.float64]
    b: NDArray[np.float64]
    reference_field_strength: float
    inlier_count: int = 0
    sample_count: int = 0

    def __post_init__(self) -> None:
        """Validate shapes and freeze the arrays."""
        A: NDArray[np.float64] = as_float_array(self.A, "A", (3, 3)).copy()
        b: NDArray[np.float64] = as_float_array(self.b, "b", (3,)).copy()
        A.setflags(write=False)
        b.setflags(write=False)
        object.__setattr__(self, "A", A)
        object.__setattr__(self, "b", b)

        strength: float = float(self.reference_field_strength)
        if not np.isfinite(strength) or strength <= 0.0:
            raise ValueError("reference_field_strength must be positive")
        object.__setattr__(self, "reference_field_strength", strength)

    @property
    def a11(self) -> float:
        return float(self.A[0, 0])

    @property
    def a12(self) -> float:
        return float(self.A[0, 1])

    @property
    def a13(self) -> float:
        return float(self.A[0, 2])

    @property
    def a21(self) -> float:
        return float(self.A[1, 0])

    @property
    def a22(self) -> float:
        return float(self.A[1, 1])

    @property
    def a23(self) -> float:
        return float(self.A[1, 2])

    @property
    def a31(self) -> float:
        return float(self.A[2, 0])

    @property
    def a32(self) -> float:
        return float(self.A[2, 1])

    @property
    def a33(self) -> float:
        return float(self.A[2, 2])

    @property
    def bx(self) -> float:
        return float(self.b[0])

    @property
    def by(self) -> float:
        return float(self.b[1])

    @property
    def bz(self) -> float:
        return float(self.b[2])

    def correct(self, measurement: NDArray[np.float64]) -> NDArray[np.float64]:
        """Apply the correction to one sample (3,) or a batch (N, 3)."""
        m: NDArray[np.float64] = np.asarray(measurement, dtype=np.float64)
        if m.shape == (3,):
            return self.A @ (m - self.b)
        if m.ndim == 2 and m.shape[1] == 3:
            return (m - self.b) @ self.A.T
        raise ValueError("measurement must have shape (3,) or (N, 3)")

    def as_parameters(self) -> dict[str, float]:
        """Return the twelve named scalars in push order."""
        return {key: float(getattr(self, key)) for key in PARAMETER_KEYS}
