################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""
ROS entry point for the magnetometer calibration node
"""

import sys
from typing import Optional

import rclpy

from oasis_magcal.nodes.calibrate_mag_node import CalibrateMagNode


################################################################################
# ROS entry point
################################################################################


def main(args: Optional[list[str]] = None) -> None:
    rclpy.init(args=args)

    node: CalibrateMagNode = CalibrateMagNode()

    success: bool = False
    try:
        if node.initialize():
            while rclpy.ok() and node.is_calibrating():
                rclpy.spin_once(node, timeout_sec=0.1)
            success = node.push_result()
    except KeyboardInterrupt:
        pass
    finally:
        node.stop()
        rclpy.shutdown()

    if not success:
        sys.exit(1)
