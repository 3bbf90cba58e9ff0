from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
from numpy.typing import NDArray

from .datastructures import Mesh
from .errors import DimensionMismatchError


@dataclass
class EssentialBoundary:
    """Prescribed value on the nodes of a tag.

    ``value`` is a constant, one constant per component, or a callable
    ``value(x, y, ..., [t])`` returning one value per node (or an
    (n_nodes, n_components) array).
    """

    tag: int
    value: Any = 0.0
    component: int | None = None


def _components(mesh: Mesh, component: int | None) -> NDArray[np.int64]:
    if component is None:
        return np.arange(mesh.n_dof_node)
    if not 0 <= component < mesh.n_dof_node:
        raise ValueError(
            f"Component {component} is out of range for {mesh.n_dof_node} dofs per node"
        )
    return np.array([component])


def _node_values(
    value: Any, coords: NDArray[np.float64], n_comp: int, t: float | None
) -> NDArray[np.float64]:
    """Values of shape (n_nodes, n_comp)."""
    n_nodes = len(coords)
    if callable(value):
        args = list(coords.T) + ([t] if t is not None else [])
        v = np.asarray(value(*args), dtype=np.float64)
        if v.ndim == 1 and v.size == n_nodes:
            v = v[:, np.newaxis]
    else:
        v = np.asarray(value, dtype=np.float64)
        if v.ndim == 1:
            if v.size != n_comp:
                raise DimensionMismatchError("boundary value per component", n_comp, v.size)
            v = v[np.newaxis, :]
    try:
        return np.broadcast_to(v, (n_nodes, n_comp))
    except ValueError:
        raise DimensionMismatchError(
            "boundary value array (entries)", n_nodes * n_comp, v.size
        ) from None


def essential_values(
    mesh: Mesh, boundary: EssentialBoundary, t: float | None = None
) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
    """Global dofs (0-based) and prescribed values of one essential boundary."""
    ids = mesh.get_node_ids(boundary.tag)
    comps = _components(mesh, boundary.component)
    dof = (ids[:, np.newaxis] - 1) * mesh.n_dof_node + comps[np.newaxis, :]
    values = _node_values(boundary.value, mesh.coords[ids - 1], len(comps), t)
    return dof.ravel(), values.ravel()


def apply_essential(
    mesh: Mesh,
    u: NDArray[np.float64],
    boundaries: Sequence[EssentialBoundary],
    t: float | None = None,
) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    """
    Overwrite the essential dofs of ``u`` in place.

    Dofs of essential mesh boundaries without a registered value are set to
    zero; registered boundaries are applied in order, later ones winning.

    Returns
    -------
    u : ndarray
    ess : ndarray of bool
        Essential dof mask.
    """
    ess = mesh.get_dof(mode="essential")
    u[ess] = 0.0
    for boundary in boundaries:
        dof, values = essential_values(mesh, boundary, t)
        u[dof] = values
        ess[dof] = True
    return u, ess
