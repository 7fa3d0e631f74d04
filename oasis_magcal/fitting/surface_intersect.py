################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Radial intersection of samples with an ellipsoid surface."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from oasis_magcal.calibration.magcal_errors import DegenerateFitError
from oasis_magcal.magcal_types import QuadricModel
from oasis_magcal.math_utils.validation import as_float_array
from oasis_magcal.math_utils.validation import as_point_array


# Ray length below which a sample is treated as sitting on the center
CENTER_EPS: float = 1e-12

# Ray direction used for samples at the center
FALLBACK_DIRECTION: NDArray[np.float64] = np.array([1.0, 0.0, 0.0], dtype=np.float64)


def _unit_directions(
    points: NDArray[np.float64], center: NDArray[np.float64]
) -> NDArray[np.float64]:
    rays: NDArray[np.float64] = points - center
    norms: NDArray[np.float64] = np.linalg.norm(rays, axis=1)
    tol: float = CENTER_EPS * max(1.0, float(np.linalg.norm(center)))
    at_center: NDArray[np.bool_] = norms <= tol
    directions: NDArray[np.float64] = np.empty_like(rays)
    directions[~at_center] = rays[~at_center] / norms[~at_center, None]
    directions[at_center] = FALLBACK_DIRECTION
    return directions


def _surface_points(
    points: NDArray[np.float64],
    center: NDArray[np.float64],
    Q: NDArray[np.float64],
    ub: NDArray[np.float64],
    k: float,
) -> NDArray[np.float64]:
    m: NDArray[np.float64] = _unit_directions(points, center)

    # Quadratic a t^2 + b t + c = 0 for center + t m on the surface
    a: NDArray[np.float64] = np.einsum("ni,ij,nj->n", m, Q, m)
    b: NDArray[np.float64] = 2.0 * (m @ (Q @ center)) + m @ ub
    c: float = float(center @ Q @ center + ub @ center + k)

    disc: NDArray[np.float64] = b * b - 4.0 * a * c
    if np.any(a <= 0.0) or np.any(disc < 0.0):
        raise DegenerateFitError("Ray does not cross the quadric surface")

    t: NDArray[np.float64] = (-b + np.sqrt(disc)) / (2.0 * a)
    if np.any(t <= 0.0):
        raise DegenerateFitError("Quadric surface lies behind the center")

    return center + t[:, None] * m


def intersect(
    sample: NDArray[np.float64],
    center: NDArray[np.float64],
    Q: NDArray[np.float64],
    ub: NDArray[np.float64],
    k: float,
) -> NDArray[np.float64]:
    """Return where the ray from center through sample meets the surface."""
    r_m: NDArray[np.float64] = as_float_array(sample, "sample", (3,))
    r_e: NDArray[np.float64] = as_float_array(center, "center", (3,))
    Q_mat: NDArray[np.float64] = as_float_array(Q, "Q", (3, 3))
    ub_vec: NDArray[np.float64] = as_float_array(ub, "ub", (3,))
    return _surface_points(r_m[None, :], r_e, Q_mat, ub_vec, float(k))[0]


def radial_distances(
    points: NDArray[np.float64], model: QuadricModel
) -> NDArray[np.float64]:
    """Return each sample's distance to the surface along its center ray."""
    pts: NDArray[np.float64] = as_point_array(points, "points")
    try:
        center: NDArray[np.float64] = model.center()
    except ValueError as exc:
        raise DegenerateFitError(str(exc)) from exc

    surface: NDArray[np.float64] = _surface_points(
        pts, center, model.Q, model.ub, model.k
    )
    return np.linalg.norm(pts - surface, axis=1)
