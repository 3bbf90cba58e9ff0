"""Element records and the reference-element family interface.

A family implements three primitives, ``basis``, ``local_grad_basis`` and
``jacobian``; everything else (vector expansion, physical derivatives,
determinants, sides, normals) is derived from them by the free functions in
:mod:`FEA.elements.operations`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

import numpy as np
from numpy.typing import NDArray

from ..errors import DimensionMismatchError


class ElementFamily(ABC):
    """Reference element of a fixed topology (stateless, one instance per family)."""

    name: ClassVar[str]
    n_nodes: ClassVar[int]
    n_dim: ClassVar[int]  # reference (local) dimension
    side_dof: ClassVar[tuple[tuple[int, ...], ...]] = ()  # local nodes of each side
    side_type: ClassVar[str | None] = None
    quadrature: ClassVar[tuple[str, int] | None] = None  # (kind, order)
    dof_per_node: ClassVar[int | None] = None  # fixed by the family (e.g. beams)

    @property
    def n_sides(self) -> int:
        return len(self.side_dof)

    @abstractmethod
    def basis(self, nodes: NDArray[np.float64], xi: NDArray[np.float64]) -> NDArray[np.float64]:
        """Basis row vector at ``xi``."""

    @abstractmethod
    def local_grad_basis(
        self, nodes: NDArray[np.float64], xi: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        """Basis derivatives in reference coordinates, shape (n_dim, n_basis)."""

    def jacobian(self, nodes: NDArray[np.float64], xi: NDArray[np.float64]) -> NDArray[np.float64]:
        """Reference-to-physical Jacobian, ``dN/dxi @ nodes``."""
        return self.local_grad_basis(nodes, xi) @ nodes

    def grad_basis(self, nodes: NDArray[np.float64], xi: NDArray[np.float64]) -> NDArray[np.float64]:
        """Basis derivatives in physical coordinates (chain rule)."""
        G = self.local_grad_basis(nodes, xi)
        J = self.jacobian(nodes, xi)
        if J.shape[0] == J.shape[1]:
            return np.linalg.solve(J, G)
        # Element embedded in a higher dimensional space (e.g. a line in 2-D)
        return np.linalg.pinv(J) @ G

    def geometry_basis(self, nodes: NDArray[np.float64], xi: NDArray[np.float64]) -> NDArray[np.float64]:
        """Interpolation of the node coordinates; the basis itself for Lagrange families."""
        return self.basis(nodes, xi)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def resolve_dof_per_node(space: str | int, n_dim: int) -> int:
    """Number of dofs per node for a 'scalar', 'vector' or explicit integer space."""
    if isinstance(space, (int, np.integer)) and not isinstance(space, bool):
        if space < 1:
            raise ValueError(f"The number of dofs per node must be positive, got {space}")
        return int(space)
    if str(space).lower() == "scalar":
        return 1
    if str(space).lower() == "vector":
        return n_dim
    raise ValueError(f"The element space '{space}' was not recognized")


@dataclass
class Side:
    """Boundary bookkeeping for one side of an element."""

    dof: tuple[int, ...]  # local node indices (0-based)
    boundary_ids: set[int] = field(default_factory=set)
    on_boundary: bool = False
    location: str | None = None  # 'bottom', 'right', 'top', 'left' on 2-D meshes
    neighbor: int | None = None  # id of the element sharing this side
    neighbor_side: int | None = None


@dataclass(eq=False)
class Element:
    """
    Finite element instance.

    Attributes
    ----------
    id : int
        Element id (1-based), shared with the parent for side elements.
    family : ElementFamily
        Reference element providing the basis.
    nodes : ndarray (n_nodes, n_dim)
        Node coordinates used by the reference map. For side elements these
        are the arc-length coordinates of the side, see ``side_nodes``.
    node_ids : ndarray (n_nodes,)
        Global node ids (1-based), also the raw scalar dofs of the element.
    n_dof_node : int
        Degrees of freedom per node.
    """

    id: int
    family: ElementFamily
    nodes: NDArray[np.float64]
    node_ids: NDArray[np.int64]
    n_dof_node: int = 1
    is_side: bool = False
    side_nodes: NDArray[np.float64] | None = field(default=None, repr=False)
    parent_center: NDArray[np.float64] | None = field(default=None, repr=False)
    sides: list[Side] = field(init=False, repr=False)
    boundary_ids: set[int] = field(default_factory=set, repr=False)
    subdomain_ids: set[int] = field(default_factory=set, repr=False)

    def __post_init__(self) -> None:
        nodes = np.asarray(self.nodes, dtype=np.float64)
        if nodes.ndim == 1:
            nodes = nodes.reshape(self.family.n_nodes, -1)
        self.nodes = nodes
        self.node_ids = np.asarray(self.node_ids, dtype=np.int64).ravel()
        if self.nodes.shape[0] != self.family.n_nodes:
            raise DimensionMismatchError(
                f"{self.family.name} node list", self.family.n_nodes, self.nodes.shape[0]
            )
        if len(self.node_ids) != self.family.n_nodes:
            raise DimensionMismatchError(
                f"{self.family.name} node id list", self.family.n_nodes, len(self.node_ids)
            )
        fixed = self.family.dof_per_node
        if fixed is not None and self.n_dof_node != fixed:
            raise ValueError(
                f"{self.family.name} elements carry {fixed} dofs per node, not {self.n_dof_node}"
            )
        self.sides = [Side(dof=tuple(d)) for d in self.family.side_dof]

    @property
    def global_dof(self) -> NDArray[np.int64]:
        """Raw (scalar, 1-based) global dofs: the node ids."""
        return self.node_ids

    @property
    def n_nodes(self) -> int:
        return self.family.n_nodes

    @property
    def n_dim(self) -> int:
        """Spatial dimension of the node coordinates."""
        return self.nodes.shape[1]

    @property
    def local_n_dim(self) -> int:
        return self.family.n_dim

    @property
    def n_dof(self) -> int:
        return self.n_nodes * self.n_dof_node

    @property
    def n_sides(self) -> int:
        return len(self.sides)

    @property
    def on_boundary(self) -> bool:
        return any(s.on_boundary for s in self.sides)
