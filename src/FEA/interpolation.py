from __future__ import annotations

from typing import Callable

import numpy as np
from numpy.typing import NDArray

from .assembly import element_rule
from .datastructures import Mesh
from .elements import Element, detJ, get_dof, get_position, shape
from .errors import DimensionMismatchError


def _check_length(mesh: Mesh, u: NDArray[np.float64]) -> NDArray[np.float64]:
    u = np.asarray(u, dtype=np.float64).ravel()
    if u.size != mesh.n_dof:
        raise DimensionMismatchError("solution vector", mesh.n_dof, u.size)
    return u


def evaluate(elem: Element, u: NDArray[np.float64], xi) -> NDArray[np.float64]:
    """Finite element field of the global vector ``u`` at reference point ``xi``."""
    return shape(elem, xi) @ u[get_dof(elem)]


def l2_error(mesh: Mesh, u: NDArray[np.float64], exact: Callable[..., float]) -> float:
    """
    L2 norm of ``u_h - exact`` by element quadrature.

    ``exact(x, y, ...)`` returns the field value (one entry per component for
    vector spaces).
    """
    u = _check_length(mesh, u)
    total = 0.0
    for elem in mesh.elements:
        for xi, w in element_rule(elem):
            e = evaluate(elem, u, xi) - np.asarray(exact(*get_position(elem, xi)), dtype=np.float64)
            total += w * detJ(elem, xi) * float(np.sum(e**2))
    return float(np.sqrt(total))


def linf_error(mesh: Mesh, u: NDArray[np.float64], exact: Callable[..., float]) -> float:
    """Maximum nodal error of a scalar field."""
    u = _check_length(mesh, u)
    if mesh.n_dof_node != 1:
        raise ValueError("linf_error() compares nodal values of scalar fields only")
    x = mesh.coords
    u_ex = np.broadcast_to(np.asarray(exact(*x.T), dtype=np.float64), u.shape)
    return float(np.max(np.abs(u - u_ex)))
