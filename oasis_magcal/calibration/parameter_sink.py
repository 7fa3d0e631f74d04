################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Collaborator interfaces for sample ingress and parameter egress."""

from __future__ import annotations

import logging
from typing import Callable
from typing import Mapping
from typing import Protocol

from oasis_magcal.calibration.magcal_errors import ParameterPushFailedError
from oasis_magcal.magcal_types import PARAMETER_KEYS
from oasis_magcal.magcal_types import CalibrationResult
from oasis_magcal.magcal_types import MagMeasurement


_LOG: logging.Logger = logging.getLogger(__name__)


MeasurementHandler = Callable[[MagMeasurement], bool]


class MeasurementSource(Protocol):
    """Pushes magnetometer samples to a registered handler."""

    def connect(self, handler: MeasurementHandler) -> None:
        """Register the handler that receives every arriving sample."""
        ...


class ParameterSink(Protocol):
    """Remote key/value store receiving calibration parameters."""

    def set_param(self, name: str, value: float) -> bool:
        """Set one parameter, returning False or raising when rejected."""
        ...


def push_calibration(
    sink: ParameterSink,
    result: CalibrationResult,
    names: Mapping[str, str],
) -> list[ParameterPushFailedError]:
    """Push the twelve calibration scalars, returning one error per failure.

    Every parameter is attempted; a failure does not stop later pushes nor roll
    back earlier ones.
    """
    values: dict[str, float] = result.as_parameters()
    failures: list[ParameterPushFailedError] = []

    for key in PARAMETER_KEYS:
        name: str = names[key]
        value: float = values[key]
        try:
            accepted: bool = bool(sink.set_param(name, value))
        except Exception as exc:
            failures.append(ParameterPushFailedError(name, value, str(exc)))
            _LOG.warning("Setting %s raised: %s", name, exc)
            continue

        if not accepted:
            failures.append(ParameterPushFailedError(name, value))
            _LOG.warning("Parameter sink rejected %s=%g", name, value)

    return failures
