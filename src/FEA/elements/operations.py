"""Element operations derived from the three family primitives.

All functions take an :class:`~FEA.elements.base.Element` and a reference
point ``xi`` (sequence of length ``local_n_dim``; ``None`` for point
elements).
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..errors import DegenerateElementError, UnsupportedElementError
from .base import Element
from .families import get_family


def _as_point(xi: ArrayLike | None) -> NDArray[np.float64]:
    if xi is None:
        return np.zeros(0)
    return np.atleast_1d(np.asarray(xi, dtype=np.float64))


def _expands(elem: Element, n_basis: int) -> bool:
    """True if the scalar basis must be spread over the nodal components."""
    return elem.n_dof_node > 1 and n_basis != elem.n_dof


# =============================================================================
# Shape functions
# =============================================================================
def shape(elem: Element, xi: ArrayLike | None = None) -> NDArray[np.float64]:
    """
    Shape function matrix N at ``xi``.

    Scalar spaces give the basis as a (1, n_nodes) row. Spaces with ``d``
    dofs per node give a (d, d * n_nodes) matrix with the basis interleaved
    so that ``N @ u_e`` returns each physical component.
    """
    n = elem.family.basis(elem.nodes, _as_point(xi))
    if not _expands(elem, n.size):
        return n[np.newaxis, :]

    r = elem.n_dof_node
    N = np.zeros((r, r * n.size))
    for i in range(r):
        N[i, i::r] = n
    return N


def shape_deriv(elem: Element, xi: ArrayLike | None = None) -> NDArray[np.float64]:
    """
    Shape function derivatives B in physical coordinates at ``xi``.

    For vector spaces this is the strain operator in engineering notation:
    rows (xx, yy, xy) in 2-D and (xx, yy, zz, yz, xz, xy) in 3-D.
    """
    b = elem.family.grad_basis(elem.nodes, _as_point(xi))
    if not _expands(elem, b.shape[1]):
        return b

    r, dim, n = elem.n_dof_node, b.shape[0], b.shape[1]
    if r != dim:
        raise UnsupportedElementError(
            f"No derivative operator for {r} dofs per node in a {dim}-D element"
        )
    if dim == 2:
        B = np.zeros((3, 2 * n))
        B[0, 0::2] = b[0]
        B[1, 1::2] = b[1]
        B[2, 0::2] = b[1]
        B[2, 1::2] = b[0]
        return B

    B = np.zeros((6, 3 * n))
    B[0, 0::3] = b[0]
    B[1, 1::3] = b[1]
    B[2, 2::3] = b[2]
    B[3, 1::3], B[3, 2::3] = b[2], b[1]
    B[4, 0::3], B[4, 2::3] = b[2], b[0]
    B[5, 0::3], B[5, 1::3] = b[1], b[0]
    return B


# =============================================================================
# Geometry
# =============================================================================
def jacobian(elem: Element, xi: ArrayLike | None = None) -> NDArray[np.float64]:
    return elem.family.jacobian(elem.nodes, _as_point(xi))


def detJ(elem: Element, xi: ArrayLike | None = None) -> float:
    """Determinant of the Jacobian; raises DegenerateElementError if not positive."""
    J = np.atleast_2d(jacobian(elem, xi))
    if J.size == 0:
        return 1.0
    if J.shape[0] == J.shape[1]:
        det = float(np.linalg.det(J))
    else:
        # Measure of an element embedded in a higher dimensional space
        det = float(np.sqrt(np.linalg.det(J @ J.T)))
    if not det > 0.0:
        raise DegenerateElementError(elem.id, det)
    return det


def get_position(elem: Element, xi: ArrayLike | None = None) -> NDArray[np.float64]:
    """Physical coordinates of the reference point ``xi``."""
    node = elem.side_nodes if elem.is_side else elem.nodes
    return elem.family.geometry_basis(elem.nodes, _as_point(xi)) @ node


def get_normal(elem: Element, xi: ArrayLike | None = None) -> NDArray[np.float64]:
    """Outward unit normal of a side element."""
    if not elem.is_side:
        raise ValueError("Normals are only available for side elements, see build_side")

    if elem.local_n_dim == 0:
        n = elem.side_nodes[0] - elem.parent_center
        return n / np.linalg.norm(n)

    if elem.local_n_dim == 1 and elem.side_nodes.shape[1] == 2:
        # Tangent rotated by -90 degrees; sides are traversed counter-clockwise
        t = (elem.family.local_grad_basis(elem.nodes, _as_point(xi)) @ elem.side_nodes).ravel()
        return np.array([t[1], -t[0]]) / np.linalg.norm(t)

    raise UnsupportedElementError(
        f"Normals of {elem.local_n_dim}-D sides in {elem.side_nodes.shape[1]}-D space "
        "are not supported"
    )


def build_side(elem: Element, s: int) -> Element:
    """
    Build the lower dimensional element of side ``s`` (0-based).

    The side is parameterized by arc length from its first node, its true
    coordinates are kept in ``side_nodes``. It shares the dofs per node of
    the parent.
    """
    if elem.local_n_dim >= 3:
        raise UnsupportedElementError("Side elements of 3-D elements are not supported")
    if elem.family.side_type is None:
        raise UnsupportedElementError(f"{elem.family.name} elements have no sides")

    local = list(elem.family.side_dof[s])
    node = elem.nodes[local]
    family = get_family(elem.family.side_type)

    if family.n_dim == 0:
        mapped = np.zeros((1, 0))
    else:
        mapped = np.linalg.norm(node - node[0], axis=1)[:, np.newaxis]

    return Element(
        id=elem.id,
        family=family,
        nodes=mapped,
        node_ids=elem.node_ids[local],
        n_dof_node=elem.n_dof_node,
        is_side=True,
        side_nodes=node,
        parent_center=elem.nodes.mean(axis=0),
    )


# =============================================================================
# Degrees of freedom
# =============================================================================
def transform_dof(d: ArrayLike, n: int) -> NDArray[np.int64]:
    """
    Expand 1-based scalar dofs into ``n`` consecutive 1-based vector dofs.

    ``D[i-1::n] = d*n - (n-i)`` for ``i = 1..n``, so node dof ``d`` owns
    ``d*n - n + 1 .. d*n``.
    """
    d = np.asarray(d, dtype=np.int64).ravel()
    D = np.zeros(n * len(d), dtype=np.int64)
    for i in range(1, n + 1):
        D[i - 1 :: n] = d * n - (n - i)
    return D


def inverse_transform_dof(D: ArrayLike, n: int) -> NDArray[np.int64]:
    """Inverse of :func:`transform_dof`."""
    D = np.asarray(D, dtype=np.int64).ravel()
    return (D[0::n] + n - 1) // n


def get_dof(elem: Element) -> NDArray[np.int64]:
    """Global dof indices (0-based) of the element, in local matrix order."""
    if elem.n_dof_node == 1:
        return elem.global_dof - 1
    return transform_dof(elem.global_dof, elem.n_dof_node) - 1


def get_side_dof(elem: Element, s: int) -> NDArray[np.int64]:
    """Local dof indices (0-based) of side ``s`` within the element vector."""
    local = np.asarray(elem.family.side_dof[s], dtype=np.int64) + 1
    if elem.n_dof_node == 1:
        return local - 1
    return transform_dof(local, elem.n_dof_node) - 1
