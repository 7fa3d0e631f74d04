################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Magnetometer measurement type for calibration sessions."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from oasis_magcal.math_utils.validation import as_float_array


@dataclass(frozen=True)
class MagMeasurement:
    """Single three-axis magnetic field reading.

    Attributes:
        field: Raw magnetic field vector in sensor units, shape (3,)
    """

    field: NDArray[np.float64]

    def __post_init__(self) -> None:
        """Validate and coerce the field vector."""
        field: NDArray[np.float64] = as_float_array(self.field, "field", (3,)).copy()
        field.setflags(write=False)
        object.__setattr__(self, "field", field)

    @classmethod
    def from_xyz(cls, x: float, y: float, z: float) -> MagMeasurement:
        """Build a measurement from scalar components."""
        return cls(field=np.array([x, y, z], dtype=np.float64))

    def magnitude(self) -> float:
        """Return the magnitude of the raw field vector."""
        return float(np.linalg.norm(self.field))

    def matches(self, other: MagMeasurement, tolerance: float) -> bool:
        """Return True if every component is within tolerance of another reading."""
        return bool(np.max(np.abs(self.field - other.field)) <= tolerance)
