"""Gauss quadrature rules for reference-element integration.

Two families of rules are provided:

- ``line``, ``quad`` and ``hex`` share the 1-D Gauss-Legendre rules on
  [-1, 1] (1 to 5 points). The caller combines them across dimensions, or
  asks for the flattened form which returns the full tensor product.
- ``tri`` uses symmetric rules on the reference triangle (0,0), (1,0), (0,1)
  with 1, 3, 4 or 7 points. Weights sum to the triangle area, 1/2.

Tetrahedral rules are not available.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
from numpy.typing import NDArray

from .errors import UnsupportedElementError, UnsupportedOrderError

# Number of reference dimensions of the tensor-product kinds
TENSOR_KINDS = {"line": 1, "quad": 2, "hex": 3}
SIMPLEX_KINDS = {"tri": 2, "tet": 3}

_A4 = np.sqrt((3 - 2 * np.sqrt(6 / 5)) / 7)
_B4 = np.sqrt((3 + 2 * np.sqrt(6 / 5)) / 7)
_A5 = np.sqrt(5 - 2 * np.sqrt(10 / 7)) / 3
_B5 = np.sqrt(5 + 2 * np.sqrt(10 / 7)) / 3

# Pre-computed 1-D Gauss-Legendre points and weights (cached at module level)
_GAUSS_LINE = {
    1: (np.array([0.0]), np.array([2.0])),
    2: (np.array([-1.0 / np.sqrt(3), 1.0 / np.sqrt(3)]), np.array([1.0, 1.0])),
    3: (np.array([0.0, -np.sqrt(3 / 5), np.sqrt(3 / 5)]), np.array([8 / 9, 5 / 9, 5 / 9])),
    4: (
        np.array([-_A4, _A4, -_B4, _B4]),
        np.array([
            (18 + np.sqrt(30)) / 36,
            (18 + np.sqrt(30)) / 36,
            (18 - np.sqrt(30)) / 36,
            (18 - np.sqrt(30)) / 36,
        ]),
    ),
    5: (
        np.array([0.0, -_A5, _A5, -_B5, _B5]),
        np.array([
            128 / 225,
            (322 + 13 * np.sqrt(70)) / 900,
            (322 + 13 * np.sqrt(70)) / 900,
            (322 - 13 * np.sqrt(70)) / 900,
            (322 - 13 * np.sqrt(70)) / 900,
        ]),
    ),
}

# Dunavant degree-5 rule constants
_T7_A, _T7_B = 0.101286507323456, 0.797426985353087
_T7_C, _T7_D = 0.470142064105115, 0.059715871789770
_T7_WA, _T7_WB = 0.125939180544827 / 2, 0.132394152788506 / 2

# Triangle rules (points in (xi, eta), weights scaled to the area 1/2)
_GAUSS_TRI = {
    1: (np.array([[1 / 3, 1 / 3]]), np.array([0.5])),
    3: (
        np.array([[1 / 6, 1 / 6], [2 / 3, 1 / 6], [1 / 6, 2 / 3]]),
        np.array([1 / 6, 1 / 6, 1 / 6]),
    ),
    4: (
        np.array([[1 / 3, 1 / 3], [3 / 5, 1 / 5], [1 / 5, 3 / 5], [1 / 5, 1 / 5]]),
        np.array([-27 / 96, 25 / 96, 25 / 96, 25 / 96]),
    ),
    7: (
        np.array([
            [_T7_A, _T7_A],
            [_T7_B, _T7_A],
            [_T7_A, _T7_B],
            [_T7_C, _T7_D],
            [_T7_C, _T7_C],
            [_T7_D, _T7_C],
            [1 / 3, 1 / 3],
        ]),
        np.array([_T7_WA, _T7_WA, _T7_WA, _T7_WB, _T7_WB, _T7_WB, 0.1125]),
    ),
}


@dataclass(frozen=True)
class QuadratureRule:
    """Flattened quadrature rule: one row of ``points`` per weight."""

    kind: str
    order: int
    points: NDArray[np.float64]
    weights: NDArray[np.float64]

    @property
    def n_points(self) -> int:
        return len(self.weights)

    def __iter__(self):
        return iter(zip(self.points, self.weights))


def rules(
    kind: str, order: int, flatten: bool = False
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Return the quadrature points and weights of a reference element.

    Parameters
    ----------
    kind : {'line', 'quad', 'hex', 'tri', 'tet'}
        Reference element family.
    order : int
        Number of points per direction (tensor kinds) or total number of
        points (triangles).
    flatten : bool
        If True, tensor kinds are expanded into the full list of points
        (shape ``(n, dim)``) with product weights; triangle rules are
        returned unchanged. The first coordinate varies fastest.

    Returns
    -------
    points, weights : ndarray
    """
    kind = kind.lower()
    if kind in TENSOR_KINDS:
        if order not in _GAUSS_LINE:
            raise UnsupportedOrderError(
                f"Unsupported {kind} quadrature order {order}. Use 1, 2, 3, 4 or 5."
            )
        pts, wts = _GAUSS_LINE[order]
        if flatten:
            return _tensor_product(pts, wts, TENSOR_KINDS[kind])
    elif kind == "tri":
        if order not in _GAUSS_TRI:
            raise UnsupportedOrderError(
                f"Unsupported tri quadrature order {order}. Use 1, 3, 4 or 7."
            )
        pts, wts = _GAUSS_TRI[order]
    elif kind == "tet":
        raise UnsupportedElementError("Tetrahedral quadrature is not implemented")
    else:
        raise ValueError(f"Unknown quadrature type '{kind}'")
    return pts.copy(), wts.copy()


def _tensor_product(
    pts: NDArray[np.float64], wts: NDArray[np.float64], dim: int
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Combine a 1-D rule ``dim`` times (first index fastest)."""
    idx = np.array(
        [combo[::-1] for combo in itertools.product(range(len(pts)), repeat=dim)],
        dtype=np.int64,
    )
    return pts[idx], np.prod(wts[idx], axis=1)


@lru_cache(maxsize=None)
def quadrature_rule(kind: str, order: int) -> QuadratureRule:
    """Cached flattened rule used by the assembly loops."""
    points, weights = rules(kind, order, flatten=True)
    points.flags.writeable = False
    weights.flags.writeable = False
    return QuadratureRule(kind.lower(), order, points, weights)
