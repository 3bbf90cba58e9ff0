import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.tri import Triangulation

from .datastructures import Mesh
from .errors import DimensionMismatchError, UnsupportedElementError

log = logging.getLogger(__name__)

# Local triangles used to draw each 2-D family
_SUBTRIANGLES = {
    "Tri3": [(0, 1, 2)],
    "Quad4": [(0, 1, 2), (0, 2, 3)],
    "Tri6": [(0, 3, 5), (3, 1, 4), (5, 4, 2), (3, 4, 5)],
}


def triangulation(mesh: Mesh) -> Triangulation:
    """Matplotlib triangulation of a 2-D mesh (higher order and quad elements are split)."""
    triangles = []
    for elem in mesh.elements:
        if elem.family.name not in _SUBTRIANGLES:
            raise UnsupportedElementError(f"Cannot triangulate {elem.family.name} elements")
        ids = elem.node_ids - 1
        triangles.extend(ids[list(t)] for t in _SUBTRIANGLES[elem.family.name])
    return Triangulation(mesh.coords[:, 0], mesh.coords[:, 1], np.asarray(triangles))


def plot_field(mesh: Mesh, u, ax=None, component: int = 0, colorbar: bool = True):
    """
    Plot one nodal component of ``u`` over a 1-D or 2-D mesh.

    Returns
    -------
    ax : matplotlib Axes
    """
    u = np.asarray(u, dtype=np.float64).ravel()
    if u.size != mesh.n_dof:
        raise DimensionMismatchError("solution vector", mesh.n_dof, u.size)
    values = u.reshape(mesh.n_nodes, mesh.n_dof_node)[:, component]

    if ax is None:
        _, ax = plt.subplots()

    if mesh.n_dim == 1:
        order = np.argsort(mesh.coords[:, 0])
        ax.plot(mesh.coords[order, 0], values[order], "-o", markersize=3)
        ax.set_xlabel("$x$")
        return ax

    if mesh.n_dim != 2:
        raise UnsupportedElementError("Only 1-D and 2-D meshes can be plotted")
    c = ax.tripcolor(triangulation(mesh), values, shading="gouraud")
    if colorbar:
        plt.colorbar(c, ax=ax)
    ax.set_aspect("equal")
    ax.set_xlabel("$x$")
    ax.set_ylabel("$y$")
    return ax


def save_figure(fig, filename: str | Path) -> Path:
    """
    Save figure to the specified path.
    """
    filepath = Path(filename)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(filepath, bbox_inches="tight")
    log.info(f"Saved: {filepath}")
    return filepath
