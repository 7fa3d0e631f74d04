################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""RANSAC wrapper around the least-squares ellipsoid fit."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from oasis_magcal.calibration.magcal_errors import DegenerateFitError
from oasis_magcal.calibration.magcal_errors import InsufficientSupportError
from oasis_magcal.fitting.ellipsoid_ls import MIN_FIT_POINTS
from oasis_magcal.fitting.ellipsoid_ls import fit_ellipsoid
from oasis_magcal.fitting.surface_intersect import radial_distances
from oasis_magcal.magcal_types import QuadricModel
from oasis_magcal.math_utils.validation import as_point_array


_LOG: logging.Logger = logging.getLogger(__name__)


# Points drawn per RANSAC round
SUBSET_SIZE: int = MIN_FIT_POINTS

# Smallest inlier set accepted for the final refit
DEFAULT_MIN_INLIERS: int = MIN_FIT_POINTS + 1


@dataclass(frozen=True)
class EllipsoidEstimate:
    """Outcome of a RANSAC ellipsoid estimate.

    Attributes:
        model: Ellipsoid refitted on the best inlier set
        inlier_mask: Boolean mask over the input points of the best inlier set
        inlier_count: Number of points in the best inlier set
        best_round: Zero-based round that produced the best candidate
        usable_rounds: Number of rounds that produced an ellipsoid
    """

    model: QuadricModel
    inlier_mask: NDArray[np.bool_]
    inlier_count: int
    best_round: int
    usable_rounds: int


def sample_radius(points: NDArray[np.float64]) -> float:
    """Return the RMS distance of samples from their centroid, in sensor units.

    Raises:
        InsufficientSupportError: If there are fewer samples than a minimal
            subset or they all coincide
    """
    pts: NDArray[np.float64] = as_point_array(points, "points")
    if pts.shape[0] < SUBSET_SIZE:
        raise InsufficientSupportError(
            f"Need at least {SUBSET_SIZE} samples, have {pts.shape[0]}"
        )

    centered: NDArray[np.float64] = pts - np.mean(pts, axis=0)
    radius: float = float(np.sqrt(np.mean(np.sum(centered * centered, axis=1))))
    if not np.isfinite(radius) or radius <= 0.0:
        raise InsufficientSupportError("Samples are coincident")

    return radius


def estimate_ellipsoid(
    points: NDArray[np.float64],
    iterations: int,
    inlier_threshold: float,
    *,
    min_inliers: int = DEFAULT_MIN_INLIERS,
    rng: np.random.Generator | None = None,
) -> EllipsoidEstimate:
    """Robustly fit an ellipsoid by minimal-subset consensus.

    Args:
        points: Samples with shape (N, 3)
        iterations: Number of random minimal subsets to try
        inlier_threshold: Radial distance below which a sample supports a model
        min_inliers: Smallest best-support count accepted, must exceed nine
        rng: Random generator for subset draws

    Raises:
        InsufficientSupportError: If no round produced an ellipsoid, the best
            candidate has fewer than min_inliers supporters, or the refit on
            the best inlier set is degenerate
    """
    if not isinstance(iterations, int) or isinstance(iterations, bool):
        raise ValueError("iterations must be an int")
    if iterations <= 0:
        raise ValueError("iterations must be positive")
    if not np.isfinite(inlier_threshold) or inlier_threshold <= 0.0:
        raise ValueError("inlier_threshold must be positive")
    if min_inliers <= MIN_FIT_POINTS:
        raise ValueError(f"min_inliers must exceed {MIN_FIT_POINTS}")

    pts: NDArray[np.float64] = as_point_array(points, "points")
    num_points: int = pts.shape[0]
    if num_points < SUBSET_SIZE:
        raise InsufficientSupportError(
            f"Need at least {SUBSET_SIZE} samples, have {num_points}"
        )

    generator: np.random.Generator = rng if rng is not None else np.random.default_rng()

    best_mask: NDArray[np.bool_] | None = None
    best_count: int = 0
    best_round: int = -1
    usable_rounds: int = 0

    for round_index in range(iterations):
        subset: NDArray[np.intp] = generator.choice(
            num_points, size=SUBSET_SIZE, replace=False
        )
        try:
            candidate: QuadricModel = fit_ellipsoid(pts[subset])
            distances: NDArray[np.float64] = radial_distances(pts, candidate)
        except DegenerateFitError as exc:
            _LOG.debug("RANSAC round %d skipped: %s", round_index, exc)
            continue

        usable_rounds += 1
        mask: NDArray[np.bool_] = distances < inlier_threshold
        count: int = int(np.count_nonzero(mask))

        # Strictly greater keeps the earliest round on ties
        if best_mask is None or count > best_count:
            best_mask = mask
            best_count = count
            best_round = round_index

    if best_mask is None:
        raise InsufficientSupportError(
            f"No ellipsoid found in {iterations} RANSAC rounds"
        )

    _LOG.debug(
        "RANSAC best round %d with %d/%d inliers (%d usable rounds)",
        best_round,
        best_count,
        num_points,
        usable_rounds,
    )

    if best_count < min_inliers:
        raise InsufficientSupportError(
            f"Best ellipsoid has {best_count} inliers, need {min_inliers}; "
            "try a larger inlier threshold"
        )

    try:
        model: QuadricModel = fit_ellipsoid(pts[best_mask])
    except DegenerateFitError as exc:
        raise InsufficientSupportError(
            f"Best inlier set does not support an ellipsoid: {exc}"
        ) from exc

    return EllipsoidEstimate(
        model=model,
        inlier_mask=best_mask,
        inlier_count=best_count,
        best_round=best_round,
        usable_rounds=usable_rounds,
    )
