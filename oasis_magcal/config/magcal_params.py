################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Structured configuration schema for magnetometer calibration."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import fields
from dataclasses import replace
from typing import Any
from typing import Mapping

import numpy as np


# Collection window duration in seconds
SESSION_CALIBRATION_TIME_SEC: float = 60.0
# Samples dropped between two recorded samples
SESSION_MEASUREMENT_SKIP: int = 20
# Max per-axis difference for a sample to count as a repeat, in sensor units
SESSION_DUPLICATE_TOLERANCE: float = 0.0

# Number of RANSAC rounds
RANSAC_ITERATIONS: int = 100
# Absolute inlier distance in sensor units (None derives it from the samples)
RANSAC_INLIER_THRESHOLD: float | None = None
# Inlier distance as a fraction of the samples' RMS radius about their centroid
RANSAC_INLIER_THRESHOLD_FRAC: float = 0.1
# Minimum inliers accepted for the final refit
RANSAC_MIN_INLIERS: int = 10
# Seed for subset draws (None draws fresh OS entropy)
RANSAC_SEED: int | None = None

# Largest accepted condition number of the quadratic form
EXTRACTION_MAX_CONDITION_NUMBER: float = 1e8

# Firmware parameter names for the soft-iron matrix
PARAM_NAME_A11: str = "MAG_A11_COMP"
PARAM_NAME_A12: str = "MAG_A12_COMP"
PARAM_NAME_A13: str = "MAG_A13_COMP"
PARAM_NAME_A21: str = "MAG_A21_COMP"
PARAM_NAME_A22: str = "MAG_A22_COMP"
PARAM_NAME_A23: str = "MAG_A23_COMP"
PARAM_NAME_A31: str = "MAG_A31_COMP"
PARAM_NAME_A32: str = "MAG_A32_COMP"
PARAM_NAME_A33: str = "MAG_A33_COMP"
# Firmware parameter names for the hard-iron bias
PARAM_NAME_BX: str = "MAG_X_BIAS"
PARAM_NAME_BY: str = "MAG_Y_BIAS"
PARAM_NAME_BZ: str = "MAG_Z_BIAS"

# Smallest inlier count that can support a refit
_MIN_FIT_POINTS: int = 9


class MagCalParamsError(Exception):
    """Raised when calibration parameter validation fails."""


def _require_positive(value: float, name: str) -> None:
    """Require a finite positive value."""
    if not np.isfinite(value) or value <= 0.0:
        raise MagCalParamsError(f"{name} must be positive")


def _require_non_negative(value: float, name: str) -> None:
    """Require a finite non-negative value."""
    if not np.isfinite(value) or value < 0.0:
        raise MagCalParamsError(f"{name} must be non-negative")


def _require_int(value: Any, name: str) -> None:
    """Require a plain integer."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise MagCalParamsError(f"{name} must be an int")


def _validate_optional_positive(value: float | None, name: str) -> None:
    """Validate an optional positive parameter."""
    if value is None:
        return
    _require_positive(value, name)


@dataclass(frozen=True)
class SessionParams:
    """Sample collection parameters."""

    # Collection window duration in seconds
    calibration_time_sec: float = SESSION_CALIBRATION_TIME_SEC
    # Samples dropped between two recorded samples
    measurement_skip: int = SESSION_MEASUREMENT_SKIP
    # Max per-axis difference for a repeated sample, in sensor units
    duplicate_tolerance: float = SESSION_DUPLICATE_TOLERANCE


@dataclass(frozen=True)
class RansacParams:
    """Robust ellipsoid estimation parameters."""

    # Number of RANSAC rounds
    iterations: int = RANSAC_ITERATIONS
    # Absolute inlier distance in sensor units
    inlier_threshold: float | None = RANSAC_INLIER_THRESHOLD
    # Inlier distance as a fraction of the samples' RMS radius
    inlier_threshold_frac: float = RANSAC_INLIER_THRESHOLD_FRAC
    # Minimum inliers accepted for the final refit
    min_inliers: int = RANSAC_MIN_INLIERS
    # Seed for subset draws
    seed: int | None = RANSAC_SEED

    def threshold_for(self, sample_radius: float) -> float:
        """Return the absolute inlier distance for samples of a given radius.

        The radius is measured in raw sensor units, so the derived threshold
        follows the units of the magnetometer feed.
        """
        if self.inlier_threshold is not None:
            return float(self.inlier_threshold)
        return float(self.inlier_threshold_frac * sample_radius)


@dataclass(frozen=True)
class ExtractionParams:
    """Calibration parameter extraction limits."""

    # Largest accepted condition number of the quadratic form
    max_condition_number: float = EXTRACTION_MAX_CONDITION_NUMBER


@dataclass(frozen=True)
class ParamNamesParams:
    """Firmware parameter names receiving the calibration."""

    a11: str = PARAM_NAME_A11
    a12: str = PARAM_NAME_A12
    a13: str = PARAM_NAME_A13
    a21: str = PARAM_NAME_A21
    a22: str = PARAM_NAME_A22
    a23: str = PARAM_NAME_A23
    a31: str = PARAM_NAME_A31
    a32: str = PARAM_NAME_A32
    a33: str = PARAM_NAME_A33
    bx: str = PARAM_NAME_BX
    by: str = PARAM_NAME_BY
    bz: str = PARAM_NAME_BZ

    def as_mapping(self) -> dict[str, str]:
        """Return logical key to firmware name, in push order."""
        return {field.name: getattr(self, field.name) for field in fields(self)}


@dataclass(frozen=True)
class MagCalParams:
    """Complete configuration tree for magnetometer calibration."""

    session: SessionParams
    ransac: RansacParams
    extraction: ExtractionParams
    param_names: ParamNamesParams

    @classmethod
    def defaults(cls) -> MagCalParams:
        """Return the default calibration parameter tree."""
        return cls(
            session=SessionParams(),
            ransac=RansacParams(),
            extraction=ExtractionParams(),
            param_names=ParamNamesParams(),
        )

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> MagCalParams:
        """Construct parameters from a nested mapping, rejecting unknown keys."""
        if not isinstance(params, Mapping):
            raise MagCalParamsError("params must be a mapping")

        defaults: MagCalParams = cls.defaults()
        namespaces: dict[str, Any] = {
            field.name: getattr(defaults, field.name) for field in fields(cls)
        }
        unknown_namespaces: list[str] = sorted(set(params) - set(namespaces))
        if unknown_namespaces:
            raise MagCalParamsError(f"unknown namespace: {unknown_namespaces[0]}")

        for name, overrides in params.items():
            if not isinstance(overrides, Mapping):
                raise MagCalParamsError(f"{name} must be a mapping")
            current: Any = namespaces[name]
            known: set[str] = {field.name for field in fields(current)}
            unknown_keys: list[str] = sorted(set(overrides) - known)
            if unknown_keys:
                raise MagCalParamsError(f"unknown parameter: {name}.{unknown_keys[0]}")
            namespaces[name] = replace(current, **dict(overrides))

        result: MagCalParams = cls(**namespaces)
        result.validate()
        return result

    def validate(self) -> None:
        """Validate parameter invariants and constraints."""
        _require_positive(
            self.session.calibration_time_sec, "session.calibration_time_sec"
        )
        _require_int(self.session.measurement_skip, "session.measurement_skip")
        if self.session.measurement_skip < 0:
            raise MagCalParamsError("session.measurement_skip must be non-negative")
        _require_non_negative(
            self.session.duplicate_tolerance, "session.duplicate_tolerance"
        )

        _require_int(self.ransac.iterations, "ransac.iterations")
        if self.ransac.iterations <= 0:
            raise MagCalParamsError("ransac.iterations must be positive")
        _validate_optional_positive(
            self.ransac.inlier_threshold, "ransac.inlier_threshold"
        )
        _require_positive(
            self.ransac.inlier_threshold_frac, "ransac.inlier_threshold_frac"
        )
        _require_int(self.ransac.min_inliers, "ransac.min_inliers")
        if self.ransac.min_inliers <= _MIN_FIT_POINTS:
            raise MagCalParamsError(
                f"ransac.min_inliers must exceed {_MIN_FIT_POINTS}"
            )
        if self.ransac.seed is not None:
            _require_int(self.ransac.seed, "ransac.seed")
            if self.ransac.seed < 0:
                raise MagCalParamsError("ransac.seed must be non-negative")

        _require_positive(
            self.extraction.max_condition_number, "extraction.max_condition_number"
        )
        if self.extraction.max_condition_number < 1.0:
            raise MagCalParamsError("extraction.max_condition_number must be >= 1")

        for key, name in self.param_names.as_mapping().items():
            if not isinstance(name, str) or not name:
                raise MagCalParamsError(f"param_names.{key} must be set")

    def replace(self, **namespace_overrides: Any) -> MagCalParams:
        """Return a modified copy of the parameters."""
        return replace(self, **namespace_overrides)

    def as_nested_dict(self) -> dict[str, Any]:
        """Return a nested dict representation for debugging."""
        return _dataclass_to_dict(self)


def _dataclass_to_dict(value: Any) -> Any:
    """Convert dataclasses into plain Python values."""
    if hasattr(value, "__dataclass_fields__"):
        return {
            field.name: _dataclass_to_dict(getattr(value, field.name))
            for field in fields(value)
        }
    return value
