################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""High-level configuration wrapper for magnetometer calibration."""

from __future__ import annotations

from dataclasses import dataclass

from .magcal_params import MagCalParams
from .magcal_params import MagCalParamsError


class MagCalConfigError(Exception):
    """Raised when calibration configuration validation fails."""


@dataclass(frozen=True)
class MagCalConfig:
    """Convenience wrapper around calibration parameters."""

    params: MagCalParams

    def __init__(self, params: MagCalParams) -> None:
        """Initialize the configuration wrapper and validate."""
        object.__setattr__(self, "params", params)
        self.validate()

    @classmethod
    def defaults(cls) -> MagCalConfig:
        """Return a configuration built from default parameters."""
        return cls(MagCalParams.defaults())

    def validate(self) -> None:
        """Validate parameter invariants and cross-namespace policies."""
        try:
            self.params.validate()
        except MagCalParamsError as exc:
            raise MagCalConfigError(str(exc)) from exc

        names: list[str] = list(self.params.param_names.as_mapping().values())
        if len(set(names)) != len(names):
            raise MagCalConfigError("param_names must be distinct")

        if (
            self.params.ransac.inlier_threshold is None
            and self.params.ransac.inlier_threshold_frac >= 1.0
        ):
            raise MagCalConfigError(
                "ransac.inlier_threshold_frac must be below 1 when "
                "ransac.inlier_threshold is unset"
            )

    def calibration_time_sec(self) -> float:
        """Return the configured collection window in seconds."""
        return self.params.session.calibration_time_sec

    def inlier_threshold(self, sample_radius: float) -> float:
        """Return the absolute RANSAC inlier distance for a sample radius."""
        return self.params.ransac.threshold_for(sample_radius)

    def param_names(self) -> dict[str, str]:
        """Return logical key to firmware parameter name, in push order."""
        return self.params.param_names.as_mapping()
