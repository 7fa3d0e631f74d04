################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

#
# Parameter sink backed by the flight controller's param_set service
#

import rclpy
import rclpy.client
import rclpy.node
import rclpy.task

from rosflight_msgs.srv import ParamSet as ParamSetSvc


################################################################################
# ROS parameters
################################################################################


# Service clients
CLIENT_PARAM_SET = "param_set"

# Seconds to wait for each service response
PARAM_SET_TIMEOUT_SEC: float = 5.0


################################################################################
# Parameter sink
################################################################################


class ParamSetClient:
    """
    Sets flight controller parameters one at a time over a ROS service
    """

    def __init__(
        self,
        node: rclpy.node.Node,
        timeout_sec: float = PARAM_SET_TIMEOUT_SEC,
    ) -> None:
        """
        Initialize resources.
        """
        self._node: rclpy.node.Node = node
        self._logger = node.get_logger()
        self._timeout_sec: float = timeout_sec

        # Service clients
        self._param_set_client: rclpy.client.Client = self._node.create_client(
            srv_type=ParamSetSvc, srv_name=CLIENT_PARAM_SET
        )

    def wait_for_service(self) -> None:
        self._logger.info(f'Waiting for service "{CLIENT_PARAM_SET}"')
        while not self._param_set_client.wait_for_service(timeout_sec=1.0):
            self._logger.info(f'Service "{CLIENT_PARAM_SET}" not available yet')

    def set_param(self, name: str, value: float) -> bool:
        # Create message
        param_set_svc = ParamSetSvc.Request()
        param_set_svc.name = name
        param_set_svc.value = float(value)

        # Call service
        future: rclpy.task.Future = self._param_set_client.call_async(param_set_svc)

        # Wait for result
        rclpy.spin_until_future_complete(
            self._node, future, timeout_sec=self._timeout_sec
        )
        if not future.done():
            self._logger.error(f"Timed out setting parameter {name}")
            return False

        response = future.result()
        if response is None:
            self._logger.error(f"Exception while calling service: {future.exception()}")
            return False

        if not response.exists:
            self._logger.error(f"Parameter {name} does not exist on the board")
            return False

        self._logger.debug(f"Set parameter {name} to {value}")

        return True
