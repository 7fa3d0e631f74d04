################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Magnetometer calibration session orchestration."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from oasis_magcal.calibration.magcal_errors import AlreadyCalibratingError
from oasis_magcal.calibration.magcal_errors import InvalidReferenceStrengthError
from oasis_magcal.calibration.magcal_errors import MagCalError
from oasis_magcal.calibration.magcal_errors import ParameterPushFailedError
from oasis_magcal.calibration.parameter_extractor import extract_calibration
from oasis_magcal.calibration.parameter_sink import MeasurementSource
from oasis_magcal.calibration.parameter_sink import ParameterSink
from oasis_magcal.calibration.parameter_sink import push_calibration
from oasis_magcal.calibration.sample_buffer import SampleBuffer
from oasis_magcal.calibration.session_state import CalibrationPhase
from oasis_magcal.calibration.session_state import CollectingState
from oasis_magcal.calibration.session_state import ComputingState
from oasis_magcal.calibration.session_state import IdleState
from oasis_magcal.calibration.session_state import SessionState
from oasis_magcal.config.magcal_config import MagCalConfig
from oasis_magcal.config.magcal_params import MagCalParams
from oasis_magcal.fitting.ellipsoid_ransac import EllipsoidEstimate
from oasis_magcal.fitting.ellipsoid_ransac import estimate_ellipsoid
from oasis_magcal.fitting.ellipsoid_ransac import sample_radius
from oasis_magcal.magcal_types import CalibrationResult
from oasis_magcal.magcal_types import MagMeasurement


_LOG: logging.Logger = logging.getLogger(__name__)


Clock = Callable[[], float]


@dataclass(frozen=True)
class CalibrationOutcome:
    """Terminal outcome of one calibration session.

    Attributes:
        result: Calibration produced by the session, or None on failure
        error: Failure that aborted the pipeline, or None on success
        push_failures: Parameters the sink did not accept
        sample_count: Number of samples handed to the pipeline
    """

    result: CalibrationResult | None
    error: MagCalError | None
    push_failures: tuple[ParameterPushFailedError, ...]
    sample_count: int

    @property
    def succeeded(self) -> bool:
        return self.result is not None


class MagCalibrator:
    """Collect magnetometer samples for a fixed window and calibrate them.

    Samples arrive through accept(). Once the collection window has elapsed the
    next accept() or poll() runs RANSAC ellipsoid fitting and parameter
    extraction synchronously, pushes the parameters to the sink and returns to
    idle. A failed session leaves the previous result in place.
    """

    def __init__(
        self,
        config: MagCalConfig,
        *,
        clock: Clock = time.monotonic,
        parameter_sink: ParameterSink | None = None,
        measurement_source: MeasurementSource | None = None,
        rng: np.random.Generator | None = None,
        on_complete: Callable[[CalibrationOutcome], None] | None = None,
    ) -> None:
        """Initialize an idle calibrator and connect its collaborators."""
        if not isinstance(config, MagCalConfig):
            raise TypeError("config must be a MagCalConfig")

        self._config: MagCalConfig = config
        self._params: MagCalParams = config.params
        self._clock: Clock = clock
        self._sink: ParameterSink | None = parameter_sink
        self._on_complete: Callable[[CalibrationOutcome], None] | None = on_complete
        self._rng: np.random.Generator = (
            rng if rng is not None else np.random.default_rng(self._params.ransac.seed)
        )

        self._buffer: SampleBuffer = SampleBuffer(
            measurement_skip=self._params.session.measurement_skip,
            duplicate_tolerance=self._params.session.duplicate_tolerance,
        )
        self._state: SessionState = IdleState()
        self._result: CalibrationResult | None = None
        self._last_outcome: CalibrationOutcome | None = None

        if measurement_source is not None:
            measurement_source.connect(self.accept)

    @property
    def phase(self) -> CalibrationPhase:
        return self._state.phase

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def result(self) -> CalibrationResult | None:
        """Most recent successful calibration."""
        return self._result

    @property
    def last_outcome(self) -> CalibrationOutcome | None:
        return self._last_outcome

    @property
    def sample_count(self) -> int:
        """Samples recorded in the active session."""
        return len(self._buffer)

    def is_calibrating(self) -> bool:
        """Return True while a session is collecting or computing."""
        return self._state.phase is not CalibrationPhase.IDLE

    def start(self, reference_field_strength: float) -> None:
        """Begin a calibration session.

        Raises:
            AlreadyCalibratingError: If a session is already in progress
            InvalidReferenceStrengthError: If the strength is not positive
        """
        if self.is_calibrating():
            raise AlreadyCalibratingError(
                f"Calibration already {self._state.phase.value}"
            )

        strength: float = float(reference_field_strength)
        if not np.isfinite(strength) or strength <= 0.0:
            raise InvalidReferenceStrengthError(
                "Reference field strength must be positive, "
                f"got {reference_field_strength}"
            )

        self._buffer.start()
        self._state = CollectingState(
            start_time_sec=float(self._clock()),
            reference_field_strength=strength,
        )

        _LOG.info(
            "Magnetometer calibration started, rotate the sensor through all "
            "orientations for %g seconds",
            self._config.calibration_time_sec(),
        )

    def accept(self, measurement: MagMeasurement) -> bool:
        """Offer a sample, returning True if it was recorded.

        The first sample arriving after the collection window ends is not
        recorded; it triggers the calibration pipeline instead.
        """
        state: SessionState = self._state
        if not isinstance(state, CollectingState):
            return False

        if self._window_elapsed(state):
            self._finish(state)
            return False

        return self._buffer.accept(measurement)

    def poll(self) -> CalibrationOutcome | None:
        """Run the pipeline if the collection window has elapsed."""
        state: SessionState = self._state
        if isinstance(state, CollectingState) and self._window_elapsed(state):
            return self._finish(state)
        return None

    def abort(self) -> bool:
        """Discard an in-progress collection, returning True if one was active."""
        if not isinstance(self._state, CollectingState):
            return False

        self._buffer.stop()
        self._state = IdleState()
        _LOG.info("Magnetometer calibration aborted")
        return True

    def _window_elapsed(self, state: CollectingState) -> bool:
        elapsed_sec: float = state.elapsed_sec(float(self._clock()))
        return elapsed_sec > self._config.calibration_time_sec()

    def _finish(self, state: CollectingState) -> CalibrationOutcome:
        stats: dict[str, int] = self._buffer.stats()
        samples: NDArray[np.float64] = self._buffer.take()
        self._state = ComputingState(
            start_time_sec=state.start_time_sec,
            reference_field_strength=state.reference_field_strength,
            sample_count=samples.shape[0],
        )

        _LOG.info(
            "Collected %d measurements (%d offered, %d decimated, %d repeated), "
            "fitting ellipsoid",
            samples.shape[0],
            stats["offered"],
            stats["decimated"],
            stats["duplicates"],
        )

        try:
            outcome: CalibrationOutcome = self._compute(
                samples, state.reference_field_strength
            )
        finally:
            self._state = IdleState()

        self._last_outcome = outcome
        if self._on_complete is not None:
            self._on_complete(outcome)

        return outcome

    def _compute(
        self, samples: NDArray[np.float64], reference_field_strength: float
    ) -> CalibrationOutcome:
        sample_count: int = samples.shape[0]

        try:
            inlier_threshold: float = self._config.inlier_threshold(
                sample_radius(samples)
            )
            estimate: EllipsoidEstimate = estimate_ellipsoid(
                samples,
                self._params.ransac.iterations,
                inlier_threshold,
                min_inliers=self._params.ransac.min_inliers,
                rng=self._rng,
            )
            _LOG.info("Computing calibration parameters")
            A: NDArray[np.float64]
            b: NDArray[np.float64]
            A, b = extract_calibration(
                estimate.model,
                reference_field_strength,
                max_condition_number=self._params.extraction.max_condition_number,
            )
        except MagCalError as exc:
            _LOG.warning("Magnetometer calibration failed: %s", exc)
            return CalibrationOutcome(
                result=None,
                error=exc,
                push_failures=(),
                sample_count=sample_count,
            )

        result: CalibrationResult = CalibrationResult(
            A=A,
            b=b,
            reference_field_strength=reference_field_strength,
            inlier_count=estimate.inlier_count,
            sample_count=sample_count,
        )
        self._result = result

        _LOG.info(
            "Magnetometer calibration complete with %d/%d inliers, bias %s",
            estimate.inlier_count,
            sample_count,
            result.b,
        )

        failures: list[ParameterPushFailedError] = []
        if self._sink is not None:
            failures = push_calibration(self._sink, result, self._config.param_names())
            if failures:
                _LOG.warning(
                    "Failed to set %d of %d calibration parameters",
                    len(failures),
                    len(result.as_parameters()),
                )
            else:
                _LOG.info("Calibration parameters set on the flight controller")

        return CalibrationOutcome(
            result=result,
            error=None,
            push_failures=tuple(failures),
            sample_count=sample_count,
        )
