################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Shared synthetic magnetometer data for calibration tests."""

from __future__ import annotations

from typing import Callable

import numpy as np
import pytest
from numpy.typing import NDArray

from oasis_magcal.magcal_types import QuadricModel


# Earth field magnitude used by the synthetic scenarios, arbitrary units
EARTH_FIELD: float = 50.0

# Soft-iron per-axis scale and hard-iron bias of the synthetic sensor
SOFT_IRON_SCALES: tuple[float, float, float] = (1.1, 0.9, 1.0)
HARD_IRON_BIAS: tuple[float, float, float] = (2.0, -1.0, 3.0)


def rotation_matrix(axis: NDArray[np.float64], angle_rad: float) -> NDArray[np.float64]:
    """Return the rotation about an axis by an angle (Rodrigues formula)."""
    u: NDArray[np.float64] = np.asarray(axis, dtype=np.float64)
    u = u / np.linalg.norm(u)
    K: NDArray[np.float64] = np.array(
        [
            [0.0, -u[2], u[1]],
            [u[2], 0.0, -u[0]],
            [-u[1], u[0], 0.0],
        ],
        dtype=np.float64,
    )
    return np.eye(3) + np.sin(angle_rad) * K + (1.0 - np.cos(angle_rad)) * (K @ K)


def distortion_matrix(
    scales: tuple[float, float, float], rotation: NDArray[np.float64] | None
) -> NDArray[np.float64]:
    """Return the symmetric soft-iron distortion R diag(scales) R^T."""
    R: NDArray[np.float64] = np.eye(3) if rotation is None else rotation
    return R @ np.diag(np.asarray(scales, dtype=np.float64)) @ R.T


def unit_sphere(count: int, rng: np.random.Generator) -> NDArray[np.float64]:
    """Return directions drawn uniformly from the unit sphere."""
    directions: NDArray[np.float64] = rng.normal(size=(count, 3))
    return directions / np.linalg.norm(directions, axis=1, keepdims=True)


DistortedSphere = Callable[..., NDArray[np.float64]]
EllipsoidModel = Callable[..., QuadricModel]


@pytest.fixture
def distorted_sphere() -> DistortedSphere:
    """Factory for raw samples m = W u + b with |u| = radius."""

    def _make(
        count: int,
        *,
        radius: float = EARTH_FIELD,
        scales: tuple[float, float, float] = SOFT_IRON_SCALES,
        bias: tuple[float, float, float] = HARD_IRON_BIAS,
        rotation: NDArray[np.float64] | None = None,
        noise: float = 0.0,
        seed: int = 0,
    ) -> NDArray[np.float64]:
        rng: np.random.Generator = np.random.default_rng(seed)
        W: NDArray[np.float64] = distortion_matrix(scales, rotation)
        samples: NDArray[np.float64] = (
            radius * unit_sphere(count, rng)
        ) @ W.T + np.asarray(bias, dtype=np.float64)
        if noise > 0.0:
            samples = samples + rng.normal(scale=noise, size=samples.shape)
        return samples

    return _make


@pytest.fixture
def ellipsoid_model() -> EllipsoidModel:
    """Factory for the quadric of the distorted sphere."""

    def _make(
        *,
        radius: float = EARTH_FIELD,
        scales: tuple[float, float, float] = SOFT_IRON_SCALES,
        bias: tuple[float, float, float] = HARD_IRON_BIAS,
        rotation: NDArray[np.float64] | None = None,
    ) -> QuadricModel:
        W_inv: NDArray[np.float64] = np.linalg.inv(distortion_matrix(scales, rotation))
        Q: NDArray[np.float64] = W_inv.T @ W_inv
        b: NDArray[np.float64] = np.asarray(bias, dtype=np.float64)
        return QuadricModel(Q=Q, ub=-2.0 * (Q @ b), k=float(b @ Q @ b - radius**2))

    return _make


@pytest.fixture
def tilted_rotation() -> NDArray[np.float64]:
    """A rotation that mixes all three sensor axes."""
    return rotation_matrix(np.array([1.0, 2.0, -0.5]), 0.7)
