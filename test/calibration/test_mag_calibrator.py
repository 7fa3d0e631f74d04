################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for the magnetometer calibration session orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Optional

import numpy as np
import pytest

from oasis_magcal.calibration.mag_calibrator import CalibrationOutcome
from oasis_magcal.calibration.mag_calibrator import MagCalibrator
from oasis_magcal.calibration.magcal_errors import AlreadyCalibratingError
from oasis_magcal.calibration.magcal_errors import InsufficientSupportError
from oasis_magcal.calibration.magcal_errors import InvalidReferenceStrengthError
from oasis_magcal.calibration.parameter_sink import MeasurementHandler
from oasis_magcal.calibration.session_state import CalibrationPhase
from oasis_magcal.calibration.session_state import CollectingState
from oasis_magcal.config.magcal_config import MagCalConfig
from oasis_magcal.config.magcal_params import MagCalParams
from oasis_magcal.magcal_types import CalibrationResult
from oasis_magcal.magcal_types import MagMeasurement


REFERENCE_FIELD: float = 50.0
CALIBRATION_TIME_SEC: float = 10.0
BIAS: np.ndarray = np.array([2.0, -1.0, 3.0])


@dataclass
class _FakeClock:
    now_sec: float = 0.0

    def __call__(self) -> float:
        return self.now_sec


@dataclass
class _FakeSink:
    rejected: set[str] = field(default_factory=set)
    raising: set[str] = field(default_factory=set)
    calls: list[tuple[str, float]] = field(default_factory=list)

    def set_param(self, name: str, value: float) -> bool:
        self.calls.append((name, value))
        if name in self.raising:
            raise RuntimeError("service unavailable")
        return name not in self.rejected


@dataclass
class _FakeSource:
    handler: Optional[MeasurementHandler] = None

    def connect(self, handler: MeasurementHandler) -> None:
        self.handler = handler

    def push(self, sample: np.ndarray) -> bool:
        assert self.handler is not None
        return self.handler(MagMeasurement(field=sample))


@dataclass
class _Harness:
    calibrator: MagCalibrator
    clock: _FakeClock
    sink: _FakeSink
    source: _FakeSource
    outcomes: list[CalibrationOutcome]


def _config(**ransac: Any) -> MagCalConfig:
    return MagCalConfig(
        MagCalParams.from_dict(
            {
                "session": {
                    "calibration_time_sec": CALIBRATION_TIME_SEC,
                    "measurement_skip": 0,
                },
                "ransac": {"seed": 7, **ransac},
            }
        )
    )


def _harness(sink: Optional[_FakeSink] = None, **ransac: Any) -> _Harness:
    clock: _FakeClock = _FakeClock()
    source: _FakeSource = _FakeSource()
    outcomes: list[CalibrationOutcome] = []
    resolved_sink: _FakeSink = sink if sink is not None else _FakeSink()
    calibrator: MagCalibrator = MagCalibrator(
        _config(**ransac),
        clock=clock,
        parameter_sink=resolved_sink,
        measurement_source=source,
        on_complete=outcomes.append,
    )
    return _Harness(calibrator, clock, resolved_sink, source, outcomes)


def _collect(harness: _Harness, samples: np.ndarray) -> None:
    for index, sample in enumerate(samples):
        harness.clock.now_sec = 0.1 * index
        harness.source.push(sample)


def _run_session(
    harness: _Harness,
    samples: np.ndarray,
    reference_field_strength: float = REFERENCE_FIELD,
) -> CalibrationOutcome:
    harness.clock.now_sec = 0.0
    harness.calibrator.start(reference_field_strength)
    _collect(harness, samples)
    harness.clock.now_sec = CALIBRATION_TIME_SEC + 1.0
    outcome: Optional[CalibrationOutcome] = harness.calibrator.poll()
    assert outcome is not None
    return outcome


def test_start_enters_collecting() -> None:
    """Starting should record the clock and enter the collecting phase."""
    harness: _Harness = _harness()
    harness.clock.now_sec = 3.5

    harness.calibrator.start(REFERENCE_FIELD)

    assert harness.calibrator.phase is CalibrationPhase.COLLECTING
    assert harness.calibrator.is_calibrating()
    state = harness.calibrator.state
    assert isinstance(state, CollectingState)
    assert state.start_time_sec == 3.5
    assert state.reference_field_strength == REFERENCE_FIELD


def test_idle_calibrator_ignores_samples() -> None:
    """Samples offered while idle should be dropped."""
    harness: _Harness = _harness()

    assert not harness.source.push(np.array([1.0, 2.0, 3.0]))
    assert harness.calibrator.sample_count == 0


@pytest.mark.parametrize("strength", [0.0, -1.0, float("nan"), float("inf")])
def test_invalid_reference_strength(strength: float) -> None:
    """A non-positive strength should not start a session."""
    harness: _Harness = _harness()

    with pytest.raises(InvalidReferenceStrengthError):
        harness.calibrator.start(strength)

    assert harness.calibrator.phase is CalibrationPhase.IDLE
    assert not harness.source.push(np.array([1.0, 2.0, 3.0]))


def test_start_while_collecting_leaves_session(distorted_sphere) -> None:
    """A second start should fail without touching the active session."""
    harness: _Harness = _harness()
    harness.clock.now_sec = 1.0
    harness.calibrator.start(REFERENCE_FIELD)
    for sample in distorted_sphere(3):
        harness.source.push(sample)

    harness.clock.now_sec = 2.0
    with pytest.raises(AlreadyCalibratingError):
        harness.calibrator.start(REFERENCE_FIELD)

    assert harness.calibrator.sample_count == 3
    state = harness.calibrator.state
    assert isinstance(state, CollectingState)
    assert state.start_time_sec == 1.0


def test_full_session_recovers_calibration(distorted_sphere) -> None:
    """Fifty distorted samples should calibrate onto the reference sphere."""
    harness: _Harness = _harness()
    samples: np.ndarray = distorted_sphere(50)

    outcome: CalibrationOutcome = _run_session(harness, samples)

    assert outcome.succeeded
    assert outcome.error is None
    assert outcome.sample_count == 50
    result: Optional[CalibrationResult] = harness.calibrator.result
    assert result is outcome.result
    assert result is not None
    np.testing.assert_allclose(result.b, BIAS, atol=1e-6)
    radii: np.ndarray = np.linalg.norm(result.correct(samples), axis=1)
    np.testing.assert_allclose(radii, REFERENCE_FIELD, rtol=0.01)
    assert result.inlier_count == 50
    assert result.reference_field_strength == REFERENCE_FIELD

    assert harness.calibrator.phase is CalibrationPhase.IDLE
    assert harness.calibrator.last_outcome is outcome
    assert harness.outcomes == [outcome]
    assert [name for name, _ in harness.sink.calls][-3:] == [
        "MAG_X_BIAS",
        "MAG_Y_BIAS",
        "MAG_Z_BIAS",
    ]
    assert [value for _, value in harness.sink.calls] == list(
        result.as_parameters().values()
    )


def test_noisy_rotated_session(distorted_sphere, tilted_rotation) -> None:
    """Noisy samples with rotated soft iron should stay within one percent."""
    harness: _Harness = _harness()
    samples: np.ndarray = distorted_sphere(
        90, rotation=tilted_rotation, noise=0.05, seed=9
    )

    outcome: CalibrationOutcome = _run_session(harness, samples)

    assert outcome.result is not None
    clean: np.ndarray = distorted_sphere(90, rotation=tilted_rotation, seed=9)
    radii: np.ndarray = np.linalg.norm(outcome.result.correct(clean), axis=1)
    np.testing.assert_allclose(radii, REFERENCE_FIELD, rtol=0.01)


def test_sample_after_window_triggers_pipeline(distorted_sphere) -> None:
    """The first sample past the window should run the pipeline unrecorded."""
    harness: _Harness = _harness()
    harness.calibrator.start(REFERENCE_FIELD)
    _collect(harness, distorted_sphere(30))

    harness.clock.now_sec = CALIBRATION_TIME_SEC + 0.5
    recorded: bool = harness.source.push(np.array([100.0, 100.0, 100.0]))

    assert not recorded
    assert harness.calibrator.phase is CalibrationPhase.IDLE
    outcome: Optional[CalibrationOutcome] = harness.calibrator.last_outcome
    assert outcome is not None
    assert outcome.sample_count == 30
    assert outcome.succeeded


def test_poll_before_window_does_nothing(distorted_sphere) -> None:
    """Polling inside the window should not end the session."""
    harness: _Harness = _harness()
    harness.calibrator.start(REFERENCE_FIELD)
    _collect(harness, distorted_sphere(10))

    harness.clock.now_sec = CALIBRATION_TIME_SEC
    assert harness.calibrator.poll() is None
    assert harness.calibrator.phase is CalibrationPhase.COLLECTING


def test_failure_keeps_previous_result(distorted_sphere) -> None:
    """A failed session should keep the last successful calibration."""
    harness: _Harness = _harness()
    first: CalibrationOutcome = _run_session(harness, distorted_sphere(50))
    pushed: int = len(harness.sink.calls)

    second: CalibrationOutcome = _run_session(harness, distorted_sphere(5, seed=2))

    assert not second.succeeded
    assert isinstance(second.error, InsufficientSupportError)
    assert second.sample_count == 5
    assert harness.calibrator.result is first.result
    assert harness.calibrator.last_outcome is second
    assert len(harness.sink.calls) == pushed
    assert harness.calibrator.phase is CalibrationPhase.IDLE


def test_push_failures_are_reported(distorted_sphere) -> None:
    """Sink failures should be collected without aborting the push."""
    sink: _FakeSink = _FakeSink(rejected={"MAG_A22_COMP"}, raising={"MAG_Y_BIAS"})
    harness: _Harness = _harness(sink)

    outcome: CalibrationOutcome = _run_session(harness, distorted_sphere(50))

    assert outcome.succeeded
    assert len(sink.calls) == 12
    assert [failure.name for failure in outcome.push_failures] == [
        "MAG_A22_COMP",
        "MAG_Y_BIAS",
    ]


def test_session_restarts_after_completion(distorted_sphere) -> None:
    """A completed session should allow a new one to start."""
    harness: _Harness = _harness()
    _run_session(harness, distorted_sphere(50))

    harness.calibrator.start(REFERENCE_FIELD)

    assert harness.calibrator.phase is CalibrationPhase.COLLECTING
    assert harness.calibrator.sample_count == 0


def test_abort_discards_collection(distorted_sphere) -> None:
    """abort should drop the samples and return to idle without an outcome."""
    harness: _Harness = _harness()
    harness.calibrator.start(REFERENCE_FIELD)
    _collect(harness, distorted_sphere(10))

    assert harness.calibrator.abort()

    assert harness.calibrator.phase is CalibrationPhase.IDLE
    assert harness.calibrator.sample_count == 0
    assert harness.calibrator.last_outcome is None
    assert harness.outcomes == []
    assert not harness.calibrator.abort()


def test_without_sink(distorted_sphere) -> None:
    """A calibrator without a sink should still produce a result."""
    clock: _FakeClock = _FakeClock()
    calibrator: MagCalibrator = MagCalibrator(_config(), clock=clock)
    calibrator.start(REFERENCE_FIELD)
    for sample in distorted_sphere(50):
        calibrator.accept(MagMeasurement(field=sample))

    clock.now_sec = CALIBRATION_TIME_SEC + 1.0
    outcome: Optional[CalibrationOutcome] = calibrator.poll()

    assert outcome is not None
    assert outcome.succeeded
    assert outcome.push_failures == ()


def test_rejects_non_config() -> None:
    """The calibrator should require a validated configuration."""
    with pytest.raises(TypeError):
        MagCalibrator(MagCalParams.defaults())  # type: ignore[arg-type]


def test_tesla_scale_session_rejects_outliers(
    distorted_sphere, tilted_rotation
) -> None:
    """Default inlier thresholds should follow the units of the raw samples."""
    harness: _Harness = _harness()
    radius: float = 5e-5
    bias: tuple[float, float, float] = (2e-6, -1e-6, 3e-6)
    clean: np.ndarray = distorted_sphere(
        80, radius=radius, bias=bias, rotation=tilted_rotation, noise=1e-8, seed=12
    )
    center: np.ndarray = np.asarray(bias)
    outliers: np.ndarray = center + 1.5 * (
        distorted_sphere(
            20, radius=radius, bias=bias, rotation=tilted_rotation, seed=13
        )
        - center
    )

    outcome: CalibrationOutcome = _run_session(
        harness, np.vstack([clean, outliers]), reference_field_strength=1.0
    )

    assert outcome.result is not None
    assert outcome.sample_count == 100
    assert outcome.result.inlier_count == 80
    surface: np.ndarray = distorted_sphere(
        80, radius=radius, bias=bias, rotation=tilted_rotation, seed=12
    )
    radii: np.ndarray = np.linalg.norm(outcome.result.correct(surface), axis=1)
    np.testing.assert_allclose(radii, 1.0, rtol=0.01)


def test_solver_failure_ends_session(
    distorted_sphere, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A failing eigen solver should yield a failed outcome, not an exception."""

    def fail_to_converge(matrix: np.ndarray) -> None:
        raise np.linalg.LinAlgError("Eigenvalues did not converge")

    harness: _Harness = _harness()
    monkeypatch.setattr(np.linalg, "eig", fail_to_converge)

    outcome: CalibrationOutcome = _run_session(harness, distorted_sphere(50))

    assert not outcome.succeeded
    assert isinstance(outcome.error, InsufficientSupportError)
    assert harness.calibrator.phase is CalibrationPhase.IDLE
    assert harness.calibrator.last_outcome is outcome
    assert harness.sink.calls == []
