"""Steady and theta-scheme transient linear solvers.

Both partition the dofs by the essential mask and solve the reduced system
on the free dofs with ``scipy.sparse.linalg.spsolve``::

    A[free, free] u[free] = b[free] - A[free, ess] u[ess]
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
import scipy.sparse.linalg as spla
from numpy.typing import ArrayLike, NDArray
from scipy.sparse import csr_matrix, issparse

from .boundary import EssentialBoundary, apply_essential
from .datastructures import LinearParameters, Mesh, TransientParameters
from .errors import (
    DimensionMismatchError,
    InvalidParameterError,
    NotFoundError,
    NotInitializedError,
)
from .system import System

log = logging.getLogger(__name__)

COMPONENTS = ("mass", "stiffness", "force")


def _solve_partitioned(A, b, u, ess) -> NDArray[np.float64]:
    """Solve for the free dofs of ``u`` given its essential values."""
    free = np.flatnonzero(~ess)
    fixed = np.flatnonzero(ess)
    if len(free) == 0:
        return u
    A = A.tocsr()
    A_free = A[free]
    rhs = b[free] - A_free[:, fixed] @ u[fixed]
    u[free] = np.atleast_1d(spla.spsolve(A_free[:, free].tocsc(), rhs))
    return u


class _Solver:
    """Shared source handling, component lookup and essential boundaries."""

    Parameters: type = LinearParameters

    def __init__(self, source: System | Mesh, params=None, **kwargs):
        if isinstance(source, System):
            self.system, self.mesh = source, source.mesh
        else:
            self.system, self.mesh = None, source
        self.params = params if params is not None else self.Parameters(**kwargs)
        self.boundaries: list[EssentialBoundary] = []
        self._explicit: dict[str, Any] = {}
        self.u: NDArray[np.float64] | None = None

    def add_essential_boundary(
        self, tag: int, value: Any = 0.0, component: int | None = None
    ) -> None:
        """Prescribe ``value`` on the nodes of ``tag`` (all components or one)."""
        self.mesh.get_node_ids(tag)  # raises NotFoundError for unknown tags
        self.boundaries.append(EssentialBoundary(tag, value, component))

    def set_components(self, **components: ArrayLike) -> None:
        """Provide matrices/vectors explicitly, e.g. ``set_components(force=f)``."""
        n = self.mesh.n_dof
        for which, value in components.items():
            if which not in COMPONENTS:
                raise ValueError(f"Unknown component '{which}'. Use one of {COMPONENTS}")
            if value is None:
                self._explicit.pop(which, None)
                continue
            if which == "force":
                value = np.asarray(value, dtype=np.float64).ravel()
                if value.size != n:
                    raise DimensionMismatchError("force vector", n, value.size)
            else:
                value = csr_matrix(value)
                if value.shape != (n, n):
                    raise DimensionMismatchError(
                        f"{which} matrix (entries)", n * n, value.shape[0] * value.shape[1]
                    )
            self._explicit[which] = value

    def _disabled(self, which: str) -> bool:
        return getattr(self.params, "disable_all", False) or getattr(
            self.params, f"disable_{which}", False
        )

    def component(self, which: str):
        """Mass/stiffness matrix or force vector: explicit, disabled (zero) or from the system."""
        n = self.mesh.n_dof
        if self._disabled(which):
            return np.zeros(n) if which == "force" else csr_matrix((n, n))
        if which in self._explicit:
            return self._explicit[which]

        name = getattr(self.params, which)
        if self.system is None:
            raise NotFoundError(f"No {which} was provided and the solver has no system")
        value = self.system.get(name)
        if value is None:
            value = self.system.assemble(name)
        if which == "force":
            value = np.asarray(value, dtype=np.float64).ravel()
        elif not issparse(value):
            value = csr_matrix(value)
        self._explicit[which] = value
        return value


class LinearSolver(_Solver):
    """
    Steady solver for ``K u = f``.

    After :meth:`solve`, ``reactions`` holds ``K u - f``, the forces needed
    to enforce the essential boundaries (zero on the free dofs).
    """

    Parameters = LinearParameters

    def __init__(self, source: System | Mesh, params: LinearParameters | None = None, *,
                 stiffness=None, force=None, **kwargs):
        super().__init__(source, params, **kwargs)
        self.set_components(stiffness=stiffness, force=force)
        self.reactions: NDArray[np.float64] | None = None

    def solve(self) -> NDArray[np.float64]:
        K = self.component("stiffness")
        f = self.component("force")
        u, ess = apply_essential(self.mesh, np.zeros(self.mesh.n_dof), self.boundaries)
        self.u = _solve_partitioned(K, f, u, ess)
        self.reactions = K @ self.u - f
        log.info(f"Solved linear system with {int((~ess).sum())} free dofs")
        return self.u


class TransientLinearSolver(_Solver):
    """
    Theta-scheme integration of ``M du/dt + K u = f``.

    Each :meth:`solve` advances one step of size ``dt``::

        K_hat = M + theta*dt*K
        f_hat = dt*(theta*f + (1-theta)*f_old) + (M - (1-theta)*dt*K) u_old

    with the essential values evaluated at the new time.
    """

    Parameters = TransientParameters

    def __init__(self, source: System | Mesh, params: TransientParameters | None = None, *,
                 mass=None, stiffness=None, force=None, **kwargs):
        super().__init__(source, params, **kwargs)
        self.set_components(mass=mass, stiffness=stiffness, force=force)
        self.time = self.params.t0
        self.u_old: NDArray[np.float64] | None = None
        self.f_old: NDArray[np.float64] | None = None
        self.initialized = False

    def init(self, u0: ArrayLike | str) -> NDArray[np.float64]:
        """
        Set the initial solution: a vector of length n_dof or the name of a
        system vector/constant. Essential values at ``t0`` overwrite it.
        """
        n = self.mesh.n_dof
        if isinstance(u0, str):
            if self.system is None:
                raise NotFoundError(f"Cannot look up '{u0}' without a system")
            value = self.system.get(u0)
            if value is None:
                value = self.system.assemble(u0)
            value = np.asarray(value, dtype=np.float64).ravel()
            if value.size not in (1, n):
                raise DimensionMismatchError("solution vector", n, value.size)
            u = np.zeros(n)
            u[:] = value
        else:
            u = np.array(u0, dtype=np.float64).ravel()
            if u.size != n:
                raise DimensionMismatchError("solution vector", n, u.size)

        self.time = self.params.t0
        self.u_old, _ = apply_essential(self.mesh, u, self.boundaries, self.time)
        self.f_old = self.component("force")
        self.u = self.u_old.copy()
        self.initialized = True
        log.info(f"Initialized transient solver at t = {self.time:g} ({n} dofs)")
        return self.u

    def _check_parameters(self) -> tuple[float, float]:
        theta, dt = self.params.theta, self.params.dt
        if theta is None or not 0.0 <= theta <= 1.0:
            raise InvalidParameterError(f"theta must be in [0, 1], got {theta}")
        if dt is None or not dt > 0.0:
            raise InvalidParameterError(f"dt must be a positive time step, got {dt}")
        return theta, dt

    def solve(self) -> NDArray[np.float64]:
        """Advance one time step and return the new solution."""
        if not self.initialized:
            raise NotInitializedError("The solver must be initialized with init() before solve()")
        theta, dt = self._check_parameters()

        M = self.component("mass")
        K = self.component("stiffness")
        f = self.component("force")

        t = self.time + dt
        K_hat = M + theta * dt * K
        f_hat = dt * (theta * f + (1 - theta) * self.f_old) + (M - (1 - theta) * dt * K) @ self.u_old

        u, ess = apply_essential(self.mesh, np.zeros(self.mesh.n_dof), self.boundaries, t)
        u = _solve_partitioned(K_hat, f_hat, u, ess)

        self.u_old, self.f_old = u, f
        self.u, self.time = u.copy(), t
        log.debug(f"Step to t = {t:.6g} (theta = {theta}, dt = {dt})")
        return self.u
