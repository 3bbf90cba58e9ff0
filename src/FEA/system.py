"""Named constants, weak-form kernels and their assembled matrices/vectors."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np
from numpy.typing import ArrayLike
from scipy.sparse import csr_matrix

from .assembly import assemble_matrix, assemble_vector
from .datastructures import AssemblyParameters, Mesh
from .equations import Kernel, check_name, evaluate_constant
from .errors import MeshStateError, NotFoundError

log = logging.getLogger(__name__)


@dataclass
class Entry:
    """Registered matrix or vector: its kernel, boundary restriction and last assembled value."""

    kind: str  # 'matrix' or 'vector'
    kernel: Kernel
    boundary: int | None = None
    value: Any = None


class System:
    """
    Equation compiler and storage of the assembled system.

    Examples
    --------
    >>> sys = System(mesh)
    >>> sys.add_constant("D", 1 / (2 * np.pi**2))
    >>> sys.add_matrix("M", "N'*N")
    >>> sys.add_matrix("K", "B'*D*B")
    >>> sys.add_vector("f", "0*N'")
    >>> sys.assemble("K")
    """

    def __init__(self, mesh: Mesh, params: AssemblyParameters | None = None, **kwargs):
        if not mesh.initialized:
            raise MeshStateError("The mesh must be initialized before building a system")
        self.mesh = mesh
        self.params = params if params is not None else AssemblyParameters(**kwargs)
        self.constants: dict[str, Any] = {}
        self.entries: dict[str, Entry] = {}

    def _definitions(self) -> dict[str, Any]:
        """Names an expression may reference, in definition order."""
        names = dict(self.constants)
        names.update((name, entry.kernel) for name, entry in self.entries.items())
        return names

    def _check_new(self, name: str, kind: str) -> None:
        check_name(name)
        current = "constant" if name in self.constants else getattr(self.entries.get(name), "kind", None)
        if current is not None and current != kind:
            raise ValueError(f"'{name}' is already defined as a {current}")

    def add_constant(self, name: str, value: str | float | ArrayLike) -> None:
        """
        Define a constant: a number, an array, or an expression over
        previously defined constants (e.g. ``"E/(1-v^2)"``).
        """
        self._check_new(name, "constant")
        if isinstance(value, str):
            value = evaluate_constant(value, self.constants)
        elif not np.isscalar(value):
            value = np.asarray(value, dtype=np.float64)
        self.constants[name] = value

    def _add(self, kind: str, name: str, eqn: str | Callable, boundary: int | None) -> None:
        self._check_new(name, kind)
        if boundary is not None:
            region = self.mesh.tags.get(boundary)
            if region is None or region.kind != "boundary":
                raise NotFoundError(f"No boundary is tagged {boundary}")
        self.entries[name] = Entry(kind, Kernel(name, eqn, self._definitions()), boundary)

    def add_matrix(self, name: str, eqn: str | Callable, boundary: int | None = None) -> None:
        """Register a matrix weak form, optionally integrated over boundary ``boundary`` only."""
        self._add("matrix", name, eqn, boundary)

    def add_vector(self, name: str, eqn: str | Callable, boundary: int | None = None) -> None:
        """Register a vector weak form, optionally integrated over boundary ``boundary`` only."""
        self._add("vector", name, eqn, boundary)

    def has(self, name: str) -> bool:
        return name in self.constants or name in self.entries

    def kind(self, name: str) -> str:
        if name in self.constants:
            return "constant"
        return self._entry(name).kind

    def _entry(self, name: str) -> Entry:
        if name not in self.entries:
            raise NotFoundError(f"No matrix or vector named '{name}'")
        return self.entries[name]

    def assemble(self, name: str) -> csr_matrix | np.ndarray:
        """Rebuild the named matrix or vector from scratch and return it."""
        entry = self._entry(name)
        entry.value = None

        start = time.time()
        if entry.kind == "matrix":
            entry.value = assemble_matrix(
                self.mesh, entry.kernel, entry.boundary, method=self.params.method
            )
        else:
            entry.value = assemble_vector(self.mesh, entry.kernel, entry.boundary)
        log.debug(
            f"Assembled {entry.kind} '{name}' ({self.params.method}) "
            f"in {time.time() - start:.3f}s"
        )
        return entry.value

    def get(self, name: str) -> Any:
        """Current value of a constant, matrix or vector (None if never assembled)."""
        if name in self.constants:
            return self.constants[name]
        if name in self.entries:
            return self.entries[name].value
        raise NotFoundError(f"'{name}' is not a registered constant, matrix or vector")
