################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Helpers for feeding MagneticField messages into a calibration session"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from oasis_magcal.calibration.parameter_sink import MeasurementHandler
from oasis_magcal.magcal_types import MagMeasurement


if TYPE_CHECKING:
    from sensor_msgs.msg import MagneticField as MagneticFieldMsg


_LOG: logging.Logger = logging.getLogger(__name__)


def build_mag_measurement(message: MagneticFieldMsg) -> MagMeasurement:
    field = message.magnetic_field

    return MagMeasurement(
        field=np.array([field.x, field.y, field.z], dtype=np.float64),
    )


class MagMessageSource:
    """
    Measurement source fed by a MagneticField subscription callback
    """

    def __init__(self) -> None:
        self._handler: MeasurementHandler | None = None

        # Statistics
        self._received: int = 0
        self._accepted: int = 0
        self._dropped_invalid: int = 0

    def connect(self, handler: MeasurementHandler) -> None:
        self._handler = handler

    def on_message(self, message: MagneticFieldMsg) -> bool:
        self._received += 1

        if self._handler is None:
            return False

        try:
            measurement: MagMeasurement = build_mag_measurement(message)
        except ValueError as exc:
            _LOG.debug("Dropping magnetometer sample: %s", exc)
            self._dropped_invalid += 1
            return False

        accepted: bool = self._handler(measurement)
        if accepted:
            self._accepted += 1

        return accepted

    @property
    def received(self) -> int:
        return self._received

    @property
    def accepted(self) -> int:
        return self._accepted

    @property
    def dropped_invalid(self) -> int:
        return self._dropped_invalid
