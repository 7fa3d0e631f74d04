################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Error types raised by the magnetometer calibration core."""

from __future__ import annotations


class MagCalError(Exception):
    """Base class for magnetometer calibration failures."""


class DegenerateFitError(MagCalError):
    """Raised when a least-squares fit does not yield a closed ellipsoid."""


class InsufficientSupportError(MagCalError):
    """Raised when RANSAC finds no ellipsoid with an adequate inlier set."""


class IllConditionedModelError(MagCalError):
    """Raised when calibration parameters cannot be extracted stably."""


class InvalidReferenceStrengthError(MagCalError):
    """Raised when a session is started with a non-positive field strength."""


class AlreadyCalibratingError(MagCalError):
    """Raised when a session is requested while one is in progress."""


class ParameterPushFailedError(MagCalError):
    """Raised or reported when the parameter sink rejects a value."""

    def __init__(self, name: str, value: float, reason: str = "rejected") -> None:
        """Record the rejected parameter and the reason."""
        super().__init__(f"Failed to set {name}={value:g}: {reason}")
        self.name: str = name
        self.value: float = value
        self.reason: str = reason
