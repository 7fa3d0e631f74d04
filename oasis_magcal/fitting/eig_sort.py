################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Deterministic ordering of eigen-decompositions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np
from numpy.typing import NDArray


# Largest imaginary part tolerated relative to the eigenvalue scale
IMAG_RTOL: float = 1e-9


@dataclass(frozen=True)
class EigenPair:
    """Eigenvalues with matching eigenvectors stored as columns.

    Attributes:
        values: Eigenvalues in ascending order, shape (n,)
        vectors: Eigenvectors where column i belongs to values[i], shape (m, n)
    """

    values: NDArray[np.float64]
    vectors: NDArray[np.float64]

    def __iter__(self) -> Iterator[NDArray[np.float64]]:
        """Unpack as (values, vectors)."""
        return iter((self.values, self.vectors))


def _as_real(array: NDArray, name: str) -> NDArray[np.float64]:
    if not np.iscomplexobj(array):
        return np.asarray(array, dtype=np.float64)

    scale: float = max(float(np.max(np.abs(array), initial=0.0)), 1.0)
    if float(np.max(np.abs(array.imag), initial=0.0)) > IMAG_RTOL * scale:
        raise ValueError(f"{name} has non-negligible imaginary parts")

    return np.asarray(array.real, dtype=np.float64)


def sort_eigen_pair(eigenvalues: NDArray, eigenvectors: NDArray) -> EigenPair:
    """Sort eigenvalues ascending and permute eigenvector columns to match.

    Ties keep their original relative order, so sorting an already sorted pair
    returns it unchanged.
    """
    w: NDArray[np.float64] = _as_real(np.asarray(eigenvalues), "eigenvalues")
    v: NDArray[np.float64] = _as_real(np.asarray(eigenvectors), "eigenvectors")
    if w.ndim != 1:
        raise ValueError("eigenvalues must be one-dimensional")
    if v.ndim != 2 or v.shape[1] != w.shape[0]:
        raise ValueError("eigenvectors must have one column per eigenvalue")
    if not np.all(np.isfinite(w)) or not np.all(np.isfinite(v)):
        raise ValueError("eigen-decomposition must be finite")

    order: NDArray[np.intp] = np.argsort(w, kind="stable")
    return EigenPair(values=w[order].copy(), vectors=v[:, order].copy())
