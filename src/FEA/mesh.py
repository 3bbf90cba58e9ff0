"""Regular grid generators.

Nodes are numbered with x varying fastest and elements are listed row by
row with counter-clockwise node order. The returned mesh is populated but
not initialized, so callers may still add nodes and elements.
"""

from __future__ import annotations

import numpy as np

from .datastructures import Mesh
from .elements import get_family

GRID_ELEMENTS = ("Quad4", "Tri3", "Tri6")
LINE_ELEMENTS = ("Line2", "Line3", "Beam2")


def _check_extent(lo: float, hi: float, n: int, axis: str) -> None:
    if not hi > lo:
        raise ValueError(f"Empty {axis} range [{lo}, {hi}]")
    if n < 1:
        raise ValueError(f"Need at least one element along {axis}, got {n}")


def _add_lattice(mesh: Mesh, x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Add the nodes of a tensor lattice, return their ids indexed [j, i]."""
    XX, YY = np.meshgrid(x, y)
    ids = [mesh.add_node([xv, yv]) for xv, yv in zip(XX.ravel(), YY.ravel())]
    return np.asarray(ids, dtype=np.int64).reshape(len(y), len(x))


def grid(
    xmin: float,
    xmax: float,
    ymin: float,
    ymax: float,
    nx: int,
    ny: int,
    element: str = "Quad4",
    space: str | int = "scalar",
) -> Mesh:
    """
    Structured mesh of the rectangle [xmin, xmax] x [ymin, ymax].

    Parameters
    ----------
    nx, ny : int
        Number of cells per direction. Triangular elements split every cell
        along its lower-left to upper-right diagonal.
    element : {'Quad4', 'Tri3', 'Tri6'}
    space : {'scalar', 'vector'} or int

    Returns
    -------
    Mesh
        Populated, not yet initialized.
    """
    _check_extent(xmin, xmax, nx, "x")
    _check_extent(ymin, ymax, ny, "y")
    name = get_family(element).name
    if name not in GRID_ELEMENTS:
        raise ValueError(f"grid() supports {GRID_ELEMENTS}, not {name}")

    mesh = Mesh(space=space)
    if name == "Tri6":
        ids = _add_lattice(
            mesh, np.linspace(xmin, xmax, 2 * nx + 1), np.linspace(ymin, ymax, 2 * ny + 1)
        )
        for j in range(ny):
            for i in range(nx):
                c, r = 2 * i, 2 * j
                a, b, cc, d = ids[r, c], ids[r, c + 2], ids[r + 2, c + 2], ids[r + 2, c]
                diag = ids[r + 1, c + 1]
                mesh.add_element(name, [a, b, cc, ids[r, c + 1], ids[r + 1, c + 2], diag])
                mesh.add_element(name, [a, cc, d, diag, ids[r + 2, c + 1], ids[r + 1, c]])
        return mesh

    ids = _add_lattice(mesh, np.linspace(xmin, xmax, nx + 1), np.linspace(ymin, ymax, ny + 1))
    for j in range(ny):
        for i in range(nx):
            n1, n2, n3, n4 = ids[j, i], ids[j, i + 1], ids[j + 1, i + 1], ids[j + 1, i]
            if name == "Quad4":
                mesh.add_element(name, [n1, n2, n3, n4])
            else:
                mesh.add_element(name, [n1, n2, n3])
                mesh.add_element(name, [n1, n3, n4])
    return mesh


def line_grid(
    xmin: float, xmax: float, nx: int, element: str = "Line2", space: str | int | None = None
) -> Mesh:
    """
    Uniform mesh of the interval [xmin, xmax] with ``nx`` elements.

    Beam elements default to two dofs per node (deflection, rotation).
    """
    _check_extent(xmin, xmax, nx, "x")
    family = get_family(element)
    if family.name not in LINE_ELEMENTS:
        raise ValueError(f"line_grid() supports {LINE_ELEMENTS}, not {family.name}")
    if space is None:
        space = family.dof_per_node or "scalar"

    mesh = Mesh(space=space)
    if family.name == "Line3":
        ids = [mesh.add_node([x]) for x in np.linspace(xmin, xmax, 2 * nx + 1)]
        for i in range(nx):
            mesh.add_element(family, [ids[2 * i], ids[2 * i + 2], ids[2 * i + 1]])
        return mesh

    ids = [mesh.add_node([x]) for x in np.linspace(xmin, xmax, nx + 1)]
    for i in range(nx):
        mesh.add_element(family, [ids[i], ids[i + 1]])
    return mesh
