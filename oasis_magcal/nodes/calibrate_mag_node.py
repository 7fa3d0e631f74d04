################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

from typing import Optional

import rclpy.node
import rclpy.qos
import rclpy.subscription
from sensor_msgs.msg import MagneticField as MagneticFieldMsg

from oasis_magcal.calibration.mag_calibrator import CalibrationOutcome
from oasis_magcal.calibration.mag_calibrator import MagCalibrator
from oasis_magcal.calibration.magcal_errors import MagCalError
from oasis_magcal.calibration.magcal_errors import ParameterPushFailedError
from oasis_magcal.calibration.parameter_sink import push_calibration
from oasis_magcal.config.magcal_config import MagCalConfig
from oasis_magcal.config.magcal_params import MagCalParams
from oasis_magcal.ros.mag_source import MagMessageSource
from oasis_magcal.ros.param_set_client import ParamSetClient


################################################################################
# ROS parameters
################################################################################


NODE_NAME: str = "calibrate_mag"

# ROS topics
MAG_TOPIC: str = "magnetometer"

# ROS parameters
PARAM_REFERENCE_FIELD_STRENGTH: str = "reference_field_strength"
PARAM_CALIBRATION_TIME: str = "calibration_time"
PARAM_MEASUREMENT_SKIP: str = "measurement_skip"
PARAM_RANSAC_ITERS: str = "ransac_iters"
PARAM_INLIER_THRESH: str = "inlier_thresh"

# Default strength of the local magnetic field, normalized units
DEFAULT_REFERENCE_FIELD_STRENGTH: float = 1.0

# Period for checking whether the collection window has elapsed
POLL_PERIOD_SEC: float = 0.5


################################################################################
# ROS node
################################################################################


class CalibrateMagNode(rclpy.node.Node):
    def __init__(self) -> None:
        """
        Initialize resources
        """

        super().__init__(NODE_NAME)

        defaults: MagCalParams = MagCalParams.defaults()

        # ROS parameters
        self.declare_parameter(
            PARAM_REFERENCE_FIELD_STRENGTH, DEFAULT_REFERENCE_FIELD_STRENGTH
        )
        self.declare_parameter(
            PARAM_CALIBRATION_TIME, defaults.session.calibration_time_sec
        )
        self.declare_parameter(
            PARAM_MEASUREMENT_SKIP, defaults.session.measurement_skip
        )
        self.declare_parameter(PARAM_RANSAC_ITERS, defaults.ransac.iterations)
        self.declare_parameter(PARAM_INLIER_THRESH, 0.0)

        self._reference_field_strength: float = float(
            self.get_parameter(PARAM_REFERENCE_FIELD_STRENGTH).value
        )

        inlier_thresh: float = float(self.get_parameter(PARAM_INLIER_THRESH).value)
        params: MagCalParams = MagCalParams.from_dict(
            {
                "session": {
                    "calibration_time_sec": float(
                        self.get_parameter(PARAM_CALIBRATION_TIME).value
                    ),
                    "measurement_skip": int(
                        self.get_parameter(PARAM_MEASUREMENT_SKIP).value
                    ),
                },
                "ransac": {
                    "iterations": int(self.get_parameter(PARAM_RANSAC_ITERS).value),
                    "inlier_threshold": inlier_thresh if inlier_thresh > 0.0 else None,
                },
            }
        )
        self._config: MagCalConfig = MagCalConfig(params)

        # Calibration core
        self._mag_source: MagMessageSource = MagMessageSource()
        self._param_set_client: ParamSetClient = ParamSetClient(self)
        self._calibrator: MagCalibrator = MagCalibrator(
            self._config,
            clock=self._now_sec,
            measurement_source=self._mag_source,
            on_complete=self._on_complete,
        )
        self._outcome: Optional[CalibrationOutcome] = None

        # QoS profile
        qos_profile: rclpy.qos.QoSProfile = (
            rclpy.qos.QoSPresetProfiles.SENSOR_DATA.value
        )

        # ROS Subscribers
        self._mag_sub: rclpy.subscription.Subscription = self.create_subscription(
            msg_type=MagneticFieldMsg,
            topic=MAG_TOPIC,
            callback=self._mag_source.on_message,
            qos_profile=qos_profile,
        )

        # ROS timers
        self._poll_timer: rclpy.node.Timer = self.create_timer(
            timer_period_sec=POLL_PERIOD_SEC,
            callback=self._calibrator.poll,
        )

        self.get_logger().info("Mag calibration node initialized")

    def stop(self) -> None:
        self.get_logger().info("Mag calibration node deinitialized")

        self.destroy_node()

    def initialize(self) -> bool:
        self._param_set_client.wait_for_service()

        try:
            self._calibrator.start(self._reference_field_strength)
        except MagCalError as exc:
            self.get_logger().error(f"Failed to start calibration: {exc}")
            return False

        self.get_logger().info(
            "Calibrating mag, do the mag dance for "
            f"{self._config.calibration_time_sec():g} seconds!"
        )

        return True

    def is_calibrating(self) -> bool:
        return self._calibrator.is_calibrating()

    def push_result(self) -> bool:
        """
        Push the calibration to the flight controller after spinning stops
        """
        if self._outcome is None or self._outcome.result is None:
            self.get_logger().error("No magnetometer calibration to set")
            return False

        failures: list[ParameterPushFailedError] = push_calibration(
            self._param_set_client,
            self._outcome.result,
            self._config.param_names(),
        )
        for failure in failures:
            self.get_logger().error(str(failure))

        if failures:
            self.get_logger().error("Failed to set some mag calibration parameters")
            return False

        self.get_logger().info(
            "SUCCESS! Magnetometer calibration parameters set on board"
        )

        return True

    def _now_sec(self) -> float:
        return self.get_clock().now().nanoseconds * 1e-9

    def _on_complete(self, outcome: CalibrationOutcome) -> None:
        self._outcome = outcome

        if outcome.result is None:
            self.get_logger().error(f"Mag calibration failed: {outcome.error}")
            return

        for name, value in outcome.result.as_parameters().items():
            self.get_logger().info(f"  {name} = {value:.6g}")

