"""Element integration and global sparse assembly.

Local blocks are integrated as ``sum_q w_q * kernel(elem, xi_q) * detJ(xi_q)``
with the element family's quadrature rule. Global matrices are assembled
with one of two equivalent strategies:

- ``direct``: accumulate each block into a ``lil_matrix`` at its dof rows
  and columns.
- ``triplet``: collect (row, col, value) triplets into preallocated flat
  arrays and build the CSR matrix once, summing duplicates.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Callable, Iterator

import numpy as np
from numba import njit
from numpy.typing import NDArray
from scipy.sparse import csr_matrix, lil_matrix

from .datastructures import Mesh
from .elements import Element, build_side, detJ, get_dof, get_side_dof
from .errors import DimensionMismatchError, NotFoundError
from .quadrature import QuadratureRule, quadrature_rule

KernelFn = Callable[[Element, NDArray[np.float64]], NDArray[np.float64]]


def element_rule(elem: Element) -> QuadratureRule | None:
    """Quadrature rule of the element family (None for point elements)."""
    if elem.family.quadrature is None:
        return None
    return quadrature_rule(*elem.family.quadrature)


def _integrate(kernel: KernelFn, elem: Element) -> NDArray[np.float64]:
    rule = element_rule(elem)
    if rule is None:
        # Point: the kernel value itself
        return np.asarray(kernel(elem, None), dtype=np.float64)

    total = None
    for xi, w in rule:
        det = detJ(elem, xi)
        term = w * det * np.asarray(kernel(elem, xi), dtype=np.float64)
        total = term if total is None else total + term
    return total


def local_matrix(kernel: KernelFn, elem: Element) -> NDArray[np.float64]:
    """Element matrix (n_dof, n_dof)."""
    Ke = np.atleast_2d(_integrate(kernel, elem))
    if Ke.shape != (elem.n_dof, elem.n_dof):
        raise DimensionMismatchError("element matrix (entries)", elem.n_dof**2, Ke.size)
    return Ke


def local_vector(kernel: KernelFn, elem: Element) -> NDArray[np.float64]:
    """Element vector (n_dof,)."""
    fe = _integrate(kernel, elem).ravel()
    if fe.size != elem.n_dof:
        raise DimensionMismatchError("element vector", elem.n_dof, fe.size)
    return fe


def _side_blocks(
    mesh: Mesh, kernel: KernelFn, boundary: int, matrix: bool
) -> Iterator[tuple[NDArray[np.int64], NDArray[np.float64]]]:
    """Side integrals over boundary ``boundary``, summed per parent element."""
    region = mesh.tags.get(boundary)
    if region is None or region.kind != "boundary":
        raise NotFoundError(f"No boundary is tagged {boundary}")

    sides = defaultdict(list)
    for eid, s in region.sides:
        sides[eid].append(s)

    for eid, elem_sides in sides.items():
        elem = mesh.element(eid)
        shape = (elem.n_dof, elem.n_dof) if matrix else (elem.n_dof,)
        block = np.zeros(shape)
        for s in elem_sides:
            side = build_side(elem, s)
            idx = get_side_dof(elem, s)
            if matrix:
                block[np.ix_(idx, idx)] += local_matrix(kernel, side)
            else:
                block[idx] += local_vector(kernel, side)
        yield get_dof(elem), block


def local_blocks(
    mesh: Mesh, kernel: KernelFn, boundary: int | None = None, matrix: bool = True
) -> Iterator[tuple[NDArray[np.int64], NDArray[np.float64]]]:
    """Yield ``(global dofs, local block)`` for every element (or tagged side)."""
    if boundary is not None:
        yield from _side_blocks(mesh, kernel, boundary, matrix)
        return
    local = local_matrix if matrix else local_vector
    for elem in mesh.elements:
        yield get_dof(elem), local(kernel, elem)


@njit
def _triplet_indices(dof, ptr):
    """Row/column index of every local entry, element blocks stored row-major."""
    n_entries = 0
    for e in range(len(ptr) - 1):
        n = ptr[e + 1] - ptr[e]
        n_entries += n * n

    rows = np.empty(n_entries, dtype=np.int64)
    cols = np.empty(n_entries, dtype=np.int64)
    k = 0
    for e in range(len(ptr) - 1):
        for i in range(ptr[e], ptr[e + 1]):
            for j in range(ptr[e], ptr[e + 1]):
                rows[k] = dof[i]
                cols[k] = dof[j]
                k += 1
    return rows, cols


def assemble_matrix(
    mesh: Mesh, kernel: KernelFn, boundary: int | None = None, method: str = "triplet"
) -> csr_matrix:
    """
    Assemble a global (n_dof, n_dof) sparse matrix.

    Parameters
    ----------
    mesh : Mesh
        Initialized mesh.
    kernel : callable
        ``kernel(elem, xi)`` returning the local integrand.
    boundary : int, optional
        Integrate over the sides of this boundary tag only.
    method : {'triplet', 'direct'}
    """
    n = mesh.n_dof
    blocks = local_blocks(mesh, kernel, boundary, matrix=True)

    if method == "direct":
        A = lil_matrix((n, n))
        for dof, Ke in blocks:
            A[np.ix_(dof, dof)] += Ke
        return A.tocsr()

    if method != "triplet":
        raise ValueError(f"Unknown assembly method '{method}'")

    dofs, values = [], []
    for dof, Ke in blocks:
        dofs.append(dof)
        values.append(Ke.ravel())
    if not dofs:
        return csr_matrix((n, n))

    ptr = np.zeros(len(dofs) + 1, dtype=np.int64)
    np.cumsum([len(d) for d in dofs], out=ptr[1:])
    rows, cols = _triplet_indices(np.concatenate(dofs).astype(np.int64), ptr)
    return csr_matrix((np.concatenate(values), (rows, cols)), shape=(n, n))


def assemble_vector(mesh: Mesh, kernel: KernelFn, boundary: int | None = None) -> NDArray[np.float64]:
    """Assemble a global vector of length n_dof."""
    f = np.zeros(mesh.n_dof)
    for dof, fe in local_blocks(mesh, kernel, boundary, matrix=False):
        np.add.at(f, dof, fe)
    return f
