################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Type definitions for magnetometer calibration."""

from __future__ import annotations

from oasis_magcal.magcal_types.calibration_result import PARAMETER_KEYS
from oasis_magcal.magcal_types.calibration_result import CalibrationResult
from oasis_magcal.magcal_types.mag_measurement import MagMeasurement
from oasis_magcal.magcal_types.quadric_model import QuadricModel


__all__ = [
    "CalibrationResult",
    "MagMeasurement",
    "PARAMETER_KEYS",
    "QuadricModel",
]
