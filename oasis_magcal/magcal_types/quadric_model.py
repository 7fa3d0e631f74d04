################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Quadric surface representation of a fitted ellipsoid."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from oasis_magcal.math_utils.validation import as_float_array
from oasis_magcal.math_utils.validation import symmetrize


# Number of algebraic coefficients in a general quadric
QUADRIC_COEFF_COUNT: int = 10

# Relative eigenvalue floor for a positive-definite quadratic form
PD_RTOL: float = 1e-12


@dataclass(frozen=True)
class QuadricModel:
    """General quadric surface x^T Q x + ub^T x + k = 0.

    Attributes:
        Q: Symmetric 3x3 quadratic-form matrix
        ub: Linear term, shape (3,)
        k: Scalar offset
    """

    Q: NDArray[np.float64]
    ub: NDArray[np.float64]
    k: float

    def __post_init__(self) -> None:
        """Validate shapes and symmetrize the quadratic form."""
        Q: NDArray[np.float64] = symmetrize(as_float_array(self.Q, "Q", (3, 3)), "Q")
        ub: NDArray[np.float64] = as_float_array(self.ub, "ub", (3,))
        k: float = float(self.k)
        if not np.isfinite(k):
            raise ValueError("k must be finite")

        object.__setattr__(self, "Q", Q)
        object.__setattr__(self, "ub", ub)
        object.__setattr__(self, "k", k)

    @classmethod
    def from_coefficients(cls, coeffs: NDArray[np.float64]) -> QuadricModel:
        """Build a model from [a, b, c, f, g, h, p, q, r, d] coefficients.

        The coefficients describe
        a x^2 + b y^2 + c z^2 + 2f yz + 2g xz + 2h xy + 2p x + 2q y + 2r z + d = 0
        """
        u: NDArray[np.float64] = as_float_array(
            coeffs, "coeffs", (QUADRIC_COEFF_COUNT,)
        )
        a, b, c, f, g, h, p, q, r, d = (float(value) for value in u)
        Q: NDArray[np.float64] = np.array(
            [
                [a, h, g],
                [h, b, f],
                [g, f, c],
            ],
            dtype=np.float64,
        )
        ub: NDArray[np.float64] = 2.0 * np.array([p, q, r], dtype=np.float64)
        return cls(Q=Q, ub=ub, k=d)

    def coefficients(self) -> NDArray[np.float64]:
        """Return the [a, b, c, f, g, h, p, q, r, d] coefficient vector."""
        Q: NDArray[np.float64] = self.Q
        return np.array(
            [
                Q[0, 0],
                Q[1, 1],
                Q[2, 2],
                Q[1, 2],
                Q[0, 2],
                Q[0, 1],
                0.5 * self.ub[0],
                0.5 * self.ub[1],
                0.5 * self.ub[2],
                self.k,
            ],
            dtype=np.float64,
        )

    def center(self) -> NDArray[np.float64]:
        """Return the quadric center -Q^-1 ub / 2."""
        try:
            return -0.5 * np.linalg.solve(self.Q, self.ub)
        except np.linalg.LinAlgError as exc:
            raise ValueError("Q is singular; quadric has no center") from exc

    def level(self) -> float:
        """Return c^T Q c - k, the right-hand side of the centered form."""
        c: NDArray[np.float64] = self.center()
        return float(c @ self.Q @ c - self.k)

    def evaluate(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        """Return the algebraic residual x^T Q x + ub^T x + k per point."""
        pts: NDArray[np.float64] = np.atleast_2d(np.asarray(points, dtype=np.float64))
        return np.einsum("ni,ij,nj->n", pts, self.Q, pts) + pts @ self.ub + self.k

    def is_ellipsoid(self) -> bool:
        """Return True for a positive-definite form enclosing a real volume."""
        eigvals: NDArray[np.float64] = np.linalg.eigvalsh(self.Q)
        scale: float = float(np.max(np.abs(eigvals)))
        if not np.isfinite(scale) or scale <= 0.0:
            return False
        if float(eigvals[0]) <= PD_RTOL * scale:
            return False
        return self.level() > 0.0

    def normalized(self) -> QuadricModel:
        """Return the model scaled so the centered form has unit level."""
        level: float = self.level()
        if level == 0.0:
            raise ValueError("quadric level is zero; cannot normalize")
        return QuadricModel(Q=self.Q / level, ub=self.ub / level, k=self.k / level)
