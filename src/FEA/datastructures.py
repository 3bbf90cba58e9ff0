"""Mesh, degree-of-freedom bookkeeping and component configuration.

Lifecycle of a :class:`Mesh`::

    mesh = Mesh(space="vector")
    a = mesh.add_node([0, 0]); ...          # append-only
    mesh.add_element("Quad4", [a, b, c, d])
    mesh.initialize()                       # dofs, sides, neighbours
    mesh.add_boundary(1, "left")            # tags (after initialize)
    mask = mesh.get_dof(1)                  # boolean mask over all dofs

Node and element ids are 1-based and assigned in insertion order. Global dof
indices are 0-based: node ``k`` owns dofs ``(k-1)*n_dof_node .. k*n_dof_node-1``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray
from omegaconf import OmegaConf

from .elements import Element, ElementFamily, get_family, resolve_dof_per_node
from .errors import DimensionMismatchError, InvalidParameterError, MeshStateError, NotFoundError

log = logging.getLogger(__name__)

# Boundary side locations (classified by bounding box on 1-D and 2-D meshes)
LEFT, RIGHT, BOTTOM, TOP = "left", "right", "bottom", "top"
LOCATIONS = (LEFT, RIGHT, BOTTOM, TOP)

# Tolerance for boundary node detection (relative to the mesh extent)
BOUNDARY_TOL = 1e-10

DOF_MODES = ("essential", "nonessential", "all")


@dataclass
class Node:
    """Mesh vertex."""

    id: int
    coord: NDArray[np.float64]

    def __post_init__(self) -> None:
        self.coord = np.atleast_1d(np.asarray(self.coord, dtype=np.float64)).ravel()
        if not 1 <= len(self.coord) <= 3:
            raise ValueError(f"Node coordinates must have 1 to 3 components, got {len(self.coord)}")


@dataclass
class Tag:
    """Boundary or subdomain region registered on a mesh."""

    id: int
    kind: str  # 'boundary' or 'subdomain'
    essential: bool = False
    sides: list[tuple[int, int]] = field(default_factory=list)  # (element id, side)
    elements: list[int] = field(default_factory=list)


@dataclass(eq=False)
class Mesh:
    """
    Node/element container and dof manager.

    Parameters
    ----------
    space : {'scalar', 'vector'} or int
        Field space; 'vector' gives one dof per spatial dimension per node.
    """

    space: str | int = "scalar"

    nodes: list[Node] = field(default_factory=list, init=False, repr=False)
    elements: list[Element] = field(default_factory=list, init=False, repr=False)
    tags: dict[int, Tag] = field(default_factory=dict, init=False, repr=False)

    # Computed by initialize()
    initialized: bool = field(default=False, init=False)
    n_dim: int = field(default=0, init=False)
    n_dof_node: int = field(default=0, init=False)
    n_dof: int = field(default=0, init=False)
    coords: NDArray[np.float64] = field(init=False, repr=False)

    _connectivity: list[tuple[ElementFamily, NDArray[np.int64]]] = field(
        default_factory=list, init=False, repr=False
    )

    # =========================================================================
    # Construction
    # =========================================================================
    def _check_open(self) -> None:
        if self.initialized:
            raise MeshStateError("The mesh is frozen after initialize(); create a new mesh")

    def add_node(self, coord: ArrayLike) -> int:
        """Append a node and return its id."""
        self._check_open()
        node = Node(len(self.nodes) + 1, coord)
        self.nodes.append(node)
        return node.id

    def add_element(self, family: str | ElementFamily, node_ids: Sequence[int]) -> int:
        """Append an element over existing (or later added) node ids and return its id."""
        self._check_open()
        family = get_family(family)
        ids = np.asarray(node_ids, dtype=np.int64).ravel()
        if len(ids) != family.n_nodes:
            raise DimensionMismatchError(f"{family.name} node id list", family.n_nodes, len(ids))
        self._connectivity.append((family, ids))
        return len(self._connectivity)

    def initialize(self) -> None:
        """Freeze the mesh: build elements, number the dofs and find the exterior sides."""
        self._check_open()
        if not self.nodes or not self._connectivity:
            raise MeshStateError("Cannot initialize a mesh without nodes and elements")

        n_nodes = len(self.nodes)
        self.n_dim = max(len(node.coord) for node in self.nodes)
        self.coords = np.zeros((n_nodes, self.n_dim))
        for node in self.nodes:
            self.coords[node.id - 1, : len(node.coord)] = node.coord
        self.n_dof_node = resolve_dof_per_node(self.space, self.n_dim)

        elements = []
        for eid, (family, ids) in enumerate(self._connectivity, start=1):
            unknown = ids[(ids < 1) | (ids > n_nodes)]
            if len(unknown):
                raise MeshStateError(
                    f"Element {eid} references unregistered node(s) {unknown.tolist()}"
                )
            elements.append(Element(eid, family, self.coords[ids - 1], ids, self.n_dof_node))
        self.elements = elements

        self.n_dof = n_nodes * self.n_dof_node
        self._connect_sides()
        self._classify_sides()
        self.initialized = True
        log.info(
            f"Initialized mesh: {n_nodes} nodes, {len(self.elements)} elements, "
            f"{self.n_dof} dofs ({self.n_dof_node} per node)"
        )

    def _connect_sides(self) -> None:
        """Sides owned by one element are exterior; shared sides record their neighbour."""
        owners: dict[frozenset, list[tuple[Element, int]]] = defaultdict(list)
        for elem in self.elements:
            for s, side in enumerate(elem.sides):
                owners[frozenset(elem.node_ids[list(side.dof)].tolist())].append((elem, s))

        for shared in owners.values():
            if len(shared) == 1:
                elem, s = shared[0]
                elem.sides[s].on_boundary = True
            elif len(shared) == 2:
                (a, sa), (b, sb) = shared
                a.sides[sa].neighbor, a.sides[sa].neighbor_side = b.id, sb
                b.sides[sb].neighbor, b.sides[sb].neighbor_side = a.id, sa

    def _classify_sides(self) -> None:
        if self.n_dim > 2:
            return
        lo, hi = self.coords.min(axis=0), self.coords.max(axis=0)
        tol = BOUNDARY_TOL * max(1.0, float(np.max(hi - lo)))
        checks = [(0, lo[0], LEFT), (0, hi[0], RIGHT)]
        if self.n_dim == 2:
            checks += [(1, lo[1], BOTTOM), (1, hi[1], TOP)]

        for elem in self.elements:
            for side in elem.sides:
                if not side.on_boundary:
                    continue
                x = elem.nodes[list(side.dof)]
                for axis, value, name in checks:
                    if np.all(np.abs(x[:, axis] - value) <= tol):
                        side.location = name
                        break

    # =========================================================================
    # Tagging
    # =========================================================================
    def _check_initialized(self) -> None:
        if not self.initialized:
            raise MeshStateError("The mesh must be initialized first, see Mesh.initialize")

    def _new_tag(self, tag: int, kind: str, essential: bool = False) -> Tag:
        existing = self.tags.get(tag)
        if existing is not None and existing.kind != kind:
            raise ValueError(f"Tag {tag} is already used by a {existing.kind}")
        if existing is None:
            existing = self.tags[tag] = Tag(tag, kind)
        existing.essential = essential
        return existing

    def add_boundary(
        self, tag: int, *where: str | Callable[..., bool], essential: bool = True
    ) -> None:
        """
        Tag exterior sides as boundary ``tag``.

        Parameters
        ----------
        tag : int
            Boundary id.
        *where : str or callable
            Side locations ('left', 'right', 'bottom', 'top') and/or
            predicates ``f(x, y, ...) -> bool`` that every node of a side must
            satisfy. Without arguments the whole exterior is tagged.
        essential : bool
            Whether the boundary enters the essential dof mask.
        """
        self._check_initialized()
        for w in where:
            if isinstance(w, str) and w.lower() not in LOCATIONS:
                raise ValueError(f"Unknown boundary location '{w}'. Use one of {LOCATIONS}")

        region = self._new_tag(tag, "boundary", essential)
        found = set(region.sides)
        for elem in self.elements:
            for s, side in enumerate(elem.sides):
                if not side.on_boundary or not self._side_matches(elem, side, where):
                    continue
                side.boundary_ids.add(tag)
                elem.boundary_ids.add(tag)
                if (elem.id, s) not in found:
                    region.sides.append((elem.id, s))
                    found.add((elem.id, s))

        if not region.sides:
            log.warning(f"Boundary {tag} does not contain any side")

    @staticmethod
    def _side_matches(elem: Element, side, where) -> bool:
        if not where:
            return True
        x = elem.nodes[list(side.dof)]
        for w in where:
            if isinstance(w, str):
                if side.location == w.lower():
                    return True
            elif all(bool(w(*p)) for p in x):
                return True
        return False

    def add_subdomain(self, tag: int, predicate: Callable[..., bool]) -> None:
        """Tag the elements whose nodes all satisfy ``predicate(x, y, ...)``."""
        self._check_initialized()
        region = self._new_tag(tag, "subdomain")
        for elem in self.elements:
            if elem.id not in region.elements and all(bool(predicate(*p)) for p in elem.nodes):
                elem.subdomain_ids.add(tag)
                region.elements.append(elem.id)

        if not region.elements:
            log.warning(f"Subdomain {tag} does not contain any element")

    def _get_tag(self, tag: int) -> Tag:
        if tag not in self.tags:
            raise NotFoundError(f"No boundary or subdomain is tagged {tag}")
        return self.tags[tag]

    # =========================================================================
    # Queries
    # =========================================================================
    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def n_elements(self) -> int:
        return len(self.elements) if self.initialized else len(self._connectivity)

    def element(self, id: int) -> Element:
        return self.elements[id - 1]

    def get_elements(self, tag: int | None = None) -> list[Element]:
        """All elements, those with a side on boundary ``tag`` or those in subdomain ``tag``."""
        self._check_initialized()
        if tag is None:
            return list(self.elements)
        region = self._get_tag(tag)
        if region.kind == "subdomain":
            return [self.element(i) for i in region.elements]
        ids = dict.fromkeys(eid for eid, _ in region.sides)
        return [self.element(i) for i in ids]

    def get_node_ids(self, tag: int | None = None) -> NDArray[np.int64]:
        """Sorted node ids (1-based) of a tag, or all node ids."""
        self._check_initialized()
        if tag is None:
            return np.arange(1, self.n_nodes + 1)
        region = self._get_tag(tag)
        if region.kind == "subdomain":
            ids = [self.element(i).node_ids for i in region.elements]
        else:
            ids = [
                self.element(e).node_ids[list(self.element(e).sides[s].dof)]
                for e, s in region.sides
            ]
        if not ids:
            return np.zeros(0, dtype=np.int64)
        return np.unique(np.concatenate(ids))

    def get_nodes(self, tag: int | None = None) -> NDArray[np.float64]:
        """Coordinates (n, n_dim) of the nodes of a tag, ordered by node id."""
        return self.coords[self.get_node_ids(tag) - 1]

    def node_dof(self, node_ids: ArrayLike, component: int | None = None) -> NDArray[np.int64]:
        """Global (0-based) dofs of the given nodes, optionally for one component only."""
        ids = np.asarray(node_ids, dtype=np.int64).ravel()
        n = self.n_dof_node
        if component is None:
            return ((ids[:, np.newaxis] - 1) * n + np.arange(n)).ravel()
        self._check_component(component)
        return (ids - 1) * n + component

    def _check_component(self, component: int) -> None:
        if not 0 <= component < self.n_dof_node:
            raise ValueError(
                f"Component {component} is out of range for {self.n_dof_node} dofs per node"
            )

    def get_dof(
        self, tag: int | None = None, mode: str = "essential", component: int | None = None
    ) -> NDArray[np.bool_]:
        """
        Boolean mask over all global dofs.

        Parameters
        ----------
        tag : int, optional
            Restrict to one boundary/subdomain. If omitted, 'essential' and
            'nonessential' use the union of every essential boundary and
            'all' selects every dof.
        mode : {'essential', 'nonessential', 'all'}
            'nonessential' returns the complement of the 'essential' mask.
        component : int, optional
            Restrict the selection to one nodal component (0-based).

        Returns
        -------
        ndarray of bool, shape (n_dof,)
        """
        self._check_initialized()
        if mode not in DOF_MODES:
            raise ValueError(f"Unknown dof mode '{mode}'. Use one of {DOF_MODES}")

        mask = np.zeros(self.n_dof, dtype=bool)
        if tag is not None:
            mask[self.node_dof(self.get_node_ids(tag))] = True
        elif mode == "all":
            mask[:] = True
        else:
            for region in self.tags.values():
                if region.essential:
                    mask[self.node_dof(self.get_node_ids(region.id))] = True

        if component is not None:
            self._check_component(component)
            mask &= np.arange(self.n_dof) % self.n_dof_node == component

        return ~mask if mode == "nonessential" else mask


# =============================================================================
# Configuration
# =============================================================================
class _FromConfig:
    """Build a parameter dataclass from a dict or OmegaConf config."""

    @classmethod
    def from_config(cls, cfg: Any = None, **overrides):
        schema = OmegaConf.structured(cls)
        merged = OmegaConf.merge(schema, cfg if cfg is not None else {}, overrides)
        return OmegaConf.to_object(merged)


ASSEMBLY_METHODS = ("triplet", "direct")


@dataclass
class AssemblyParameters(_FromConfig):
    """Global assembly strategy: 'triplet' (deferred COO) or 'direct' (indexed)."""

    method: str = "triplet"

    def __post_init__(self) -> None:
        if self.method not in ASSEMBLY_METHODS:
            raise InvalidParameterError(
                f"Unknown assembly method '{self.method}'. Use one of {ASSEMBLY_METHODS}"
            )


def _check_names(params, *names: str) -> None:
    for name in names:
        value = getattr(params, name)
        if not isinstance(value, str) or not value:
            raise InvalidParameterError(f"'{name}' must be a non-empty system name, got {value!r}")


@dataclass
class TransientParameters(_FromConfig):
    """
    Theta-scheme configuration.

    theta: 0 forward Euler, 0.5 Crank-Nicolson, 2/3 Galerkin, 1 backward Euler.
    ``theta`` and ``dt`` are range checked when solving.
    """

    mass: str = "M"
    stiffness: str = "K"
    force: str = "f"
    theta: float = 0.5
    dt: Optional[float] = None
    t0: float = 0.0
    disable_mass: bool = False
    disable_stiffness: bool = False
    disable_force: bool = False
    disable_all: bool = False

    def __post_init__(self) -> None:
        _check_names(self, "mass", "stiffness", "force")


@dataclass
class LinearParameters(_FromConfig):
    """Steady ``K u = f`` configuration."""

    stiffness: str = "K"
    force: str = "f"
    disable_force: bool = False

    def __post_init__(self) -> None:
        _check_names(self, "stiffness", "force")
