"""Concrete reference element families.

Node numbering follows the usual counter-clockwise convention::

    Quad4              Tri3 / Tri6          Line2 / Beam2     Line3

    4-------3          3                    1-------2         1---3---2
    |       |          | \\
    |       |          6   5
    |       |          |     \\
    1-------2          1---4---2

Sides are numbered from the first node, so for Quad4 side 0 is the bottom,
1 the right, 2 the top and 3 the left side of the reference square.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from .base import ElementFamily


class Point(ElementFamily):
    """Single node; the 'side' of a one dimensional element."""

    name = "Point"
    n_nodes = 1
    n_dim = 0

    def basis(self, nodes, xi):
        return np.ones(1)

    def local_grad_basis(self, nodes, xi):
        return np.zeros((0, 1))

    def jacobian(self, nodes, xi):
        return np.ones((0, 0))

    def grad_basis(self, nodes, xi):
        return np.zeros((0, 1))


class Line2(ElementFamily):
    """Linear 2-node line on [-1, 1]."""

    name = "Line2"
    n_nodes = 2
    n_dim = 1
    side_dof = ((0,), (1,))
    side_type = "Point"
    quadrature = ("line", 2)

    def basis(self, nodes, xi):
        x = xi[0]
        return np.array([0.5 * (1 - x), 0.5 * (1 + x)])

    def local_grad_basis(self, nodes, xi):
        return np.array([[-0.5, 0.5]])


class Line3(ElementFamily):
    """Quadratic 3-node line, nodes at xi = -1, 1, 0 (midpoint last)."""

    name = "Line3"
    n_nodes = 3
    n_dim = 1
    side_dof = ((0,), (1,))
    side_type = "Point"
    quadrature = ("line", 3)

    def basis(self, nodes, xi):
        x = xi[0]
        return np.array([0.5 * x * (x - 1), 0.5 * x * (x + 1), 1 - x**2])

    def local_grad_basis(self, nodes, xi):
        x = xi[0]
        return np.array([[x - 0.5, x + 0.5, -2 * x]])


class Quad4(ElementFamily):
    """Bilinear 4-node quadrilateral on [-1, 1]^2."""

    name = "Quad4"
    n_nodes = 4
    n_dim = 2
    side_dof = ((0, 1), (1, 2), (2, 3), (3, 0))
    side_type = "Line2"
    quadrature = ("quad", 2)

    # Reference coordinates of the corners
    _XI = np.array([-1.0, 1.0, 1.0, -1.0])
    _ETA = np.array([-1.0, -1.0, 1.0, 1.0])

    def basis(self, nodes, xi):
        x, e = xi[0], xi[1]
        return 0.25 * (1 + x * self._XI) * (1 + e * self._ETA)

    def local_grad_basis(self, nodes, xi):
        x, e = xi[0], xi[1]
        return np.array([
            0.25 * self._XI * (1 + e * self._ETA),
            0.25 * self._ETA * (1 + x * self._XI),
        ])


class Tri3(ElementFamily):
    """Linear 3-node triangle on (0,0), (1,0), (0,1)."""

    name = "Tri3"
    n_nodes = 3
    n_dim = 2
    side_dof = ((0, 1), (1, 2), (2, 0))
    side_type = "Line2"
    quadrature = ("tri", 3)

    def basis(self, nodes, xi):
        x, e = xi[0], xi[1]
        return np.array([1 - x - e, x, e])

    def local_grad_basis(self, nodes, xi):
        return np.array([[-1.0, 1.0, 0.0], [-1.0, 0.0, 1.0]])


class Tri6(ElementFamily):
    """Quadratic 6-node triangle: corners first, then the mid-side nodes 1-2, 2-3, 3-1."""

    name = "Tri6"
    n_nodes = 6
    n_dim = 2
    side_dof = ((0, 1, 3), (1, 2, 4), (2, 0, 5))
    side_type = "Line3"
    quadrature = ("tri", 7)

    def basis(self, nodes, xi):
        L2, L3 = xi[0], xi[1]
        L1 = 1 - L2 - L3
        return np.array([
            L1 * (2 * L1 - 1),
            L2 * (2 * L2 - 1),
            L3 * (2 * L3 - 1),
            4 * L1 * L2,
            4 * L2 * L3,
            4 * L3 * L1,
        ])

    def local_grad_basis(self, nodes, xi):
        L2, L3 = xi[0], xi[1]
        L1 = 1 - L2 - L3
        return np.array([
            [-(4 * L1 - 1), 4 * L2 - 1, 0.0, 4 * (L1 - L2), 4 * L3, -4 * L3],
            [-(4 * L1 - 1), 0.0, 4 * L3 - 1, -4 * L2, 4 * L2, 4 * (L1 - L3)],
        ])


class Beam2(ElementFamily):
    """
    Euler-Bernoulli beam with Hermite cubic basis.

    Each node carries a deflection and a rotation, so the basis already spans
    all four dofs and is never expanded. The derivative primitive is the
    second derivative in physical coordinates (curvature), which turns the
    weak form ``B'*EI*B`` into the classical beam stiffness matrix.
    """

    name = "Beam2"
    n_nodes = 2
    n_dim = 1
    side_dof = ((0,), (1,))
    side_type = "Point"
    quadrature = ("line", 2)
    dof_per_node = 2

    @staticmethod
    def length(nodes: NDArray[np.float64]) -> float:
        return float(np.linalg.norm(nodes[1] - nodes[0]))

    def basis(self, nodes, xi):
        x = xi[0]
        L = self.length(nodes)
        return np.array([
            0.25 * (1 - x) ** 2 * (2 + x),
            L / 8 * (1 - x) ** 2 * (1 + x),
            0.25 * (1 + x) ** 2 * (2 - x),
            L / 8 * (1 + x) ** 2 * (x - 1),
        ])

    def local_grad_basis(self, nodes, xi):
        # Derivative of the linear geometry map
        return np.array([[-0.5, 0.5]])

    def jacobian(self, nodes, xi):
        return np.array([[0.5 * self.length(nodes)]])

    def grad_basis(self, nodes, xi):
        x = xi[0]
        L = self.length(nodes)
        return np.array([[6 * x / L**2, (3 * x - 1) / L, -6 * x / L**2, (3 * x + 1) / L]])

    def geometry_basis(self, nodes, xi):
        x = xi[0]
        return np.array([0.5 * (1 - x), 0.5 * (1 + x)])


FAMILIES: dict[str, ElementFamily] = {
    cls.name: cls() for cls in (Point, Line2, Line3, Quad4, Tri3, Tri6, Beam2)
}


def get_family(family: str | ElementFamily) -> ElementFamily:
    """Look up a family instance by name (case-insensitive)."""
    if isinstance(family, ElementFamily):
        return family
    for name, instance in FAMILIES.items():
        if name.lower() == str(family).lower():
            return instance
    raise ValueError(f"Unknown element family '{family}'. Available: {', '.join(FAMILIES)}")
