################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Calibration session phases and their payloads."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union


class CalibrationPhase(enum.Enum):
    """
    Phases of a calibration session

    Attributes:
        IDLE: No session is active
        COLLECTING: Samples are being recorded for the collection window
        COMPUTING: The fitting pipeline is running on the recorded samples
    """

    IDLE = "idle"
    COLLECTING = "collecting"
    COMPUTING = "computing"


@dataclass(frozen=True)
class IdleState:
    """
    Payload while no session is active
    """

    @property
    def phase(self) -> CalibrationPhase:
        return CalibrationPhase.IDLE


@dataclass(frozen=True)
class CollectingState:
    """
    Payload while samples are being recorded

    Fields:
        start_time_sec: Clock reading when the session started, in seconds
        reference_field_strength: Radius the calibration maps samples onto
    """

    start_time_sec: float
    reference_field_strength: float

    @property
    def phase(self) -> CalibrationPhase:
        return CalibrationPhase.COLLECTING

    def elapsed_sec(self, now_sec: float) -> float:
        return now_sec - self.start_time_sec


@dataclass(frozen=True)
class ComputingState:
    """
    Payload while the fitting pipeline runs

    Fields:
        start_time_sec: Clock reading when the session started, in seconds
        reference_field_strength: Radius the calibration maps samples onto
        sample_count: Number of samples handed to the pipeline
    """

    start_time_sec: float
    reference_field_strength: float
    sample_count: int

    @property
    def phase(self) -> CalibrationPhase:
        return CalibrationPhase.COMPUTING


SessionState = Union[
    IdleState,
    CollectingState,
    ComputingState,
]
