################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Throttled, duplicate-filtered sample storage for a calibration session."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from oasis_magcal.magcal_types import MagMeasurement


class SampleBuffer:
    """Accumulate magnetometer samples while a session is active.

    A counter advances on every sample offered during a session. A sample is
    considered only when the counter reaches measurement_skip, after which the
    counter restarts, so a skip of zero considers every sample. A considered
    sample is stored unless it repeats the previously considered one within
    duplicate_tolerance, which happens when a sensor feed stalls.
    """

    def __init__(self, *, measurement_skip: int, duplicate_tolerance: float) -> None:
        """Create an inactive buffer."""
        if not isinstance(measurement_skip, int) or isinstance(measurement_skip, bool):
            raise ValueError("measurement_skip must be an int")
        if measurement_skip < 0:
            raise ValueError("measurement_skip must be non-negative")
        if not np.isfinite(duplicate_tolerance) or duplicate_tolerance < 0.0:
            raise ValueError("duplicate_tolerance must be non-negative")

        self._measurement_skip: int = measurement_skip
        self._duplicate_tolerance: float = float(duplicate_tolerance)

        self._active: bool = False
        self._throttle: int = 0
        self._previous: MagMeasurement | None = None
        self._samples: list[NDArray[np.float64]] = []

        # Statistics
        self._offered: int = 0
        self._decimated: int = 0
        self._duplicates: int = 0

    @property
    def active(self) -> bool:
        return self._active

    def __len__(self) -> int:
        return len(self._samples)

    def start(self) -> None:
        """Clear stored samples and counters and begin accepting."""
        self._active = True
        self._throttle = 0
        self._previous = None
        self._samples = []
        self._offered = 0
        self._decimated = 0
        self._duplicates = 0

    def accept(self, measurement: MagMeasurement) -> bool:
        """Offer a sample, returning True if it was stored."""
        if not self._active:
            return False

        self._offered += 1

        if self._throttle != self._measurement_skip:
            self._throttle += 1
            self._decimated += 1
            return False
        self._throttle = 0

        previous: MagMeasurement | None = self._previous
        self._previous = measurement
        if previous is not None and measurement.matches(
            previous, self._duplicate_tolerance
        ):
            self._duplicates += 1
            return False

        self._samples.append(measurement.field)
        return True

    def take(self) -> NDArray[np.float64]:
        """Stop accepting and hand off the stored samples as an (N, 3) array."""
        samples: list[NDArray[np.float64]] = self._samples
        self._samples = []
        self._active = False
        self._previous = None
        if not samples:
            return np.zeros((0, 3), dtype=np.float64)
        return np.stack(samples, axis=0)

    def stop(self) -> None:
        """Stop accepting and discard stored samples."""
        self._active = False
        self._previous = None
        self._samples = []

    def stats(self) -> dict[str, int]:
        """Return counters for the current session."""
        return {
            "offered": self._offered,
            "stored": len(self._samples),
            "decimated": self._decimated,
            "duplicates": self._duplicates,
        }
