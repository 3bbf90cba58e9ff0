"""FEA package: finite element assembly from symbolic weak forms.

Main components:
- quadrature: Gauss rules for line/quad/hex and triangle reference elements
- elements: reference families (Quad4, Tri3, Tri6, Line2, Beam2, ...) and
  the shape/derivative/Jacobian operations derived from them
- Mesh, grid: node/element container, dof numbering and boundary tags
- System: weak-form strings (e.g. "B'*D*B") compiled into element kernels
  and assembled into sparse matrices and vectors
- LinearSolver, TransientLinearSolver: steady and theta-scheme solvers

Example
-------
>>> from FEA import grid, System, TransientLinearSolver
>>> mesh = grid(0, 1, 0, 1, 32, 32, "Quad4")
>>> mesh.initialize()
>>> mesh.add_boundary(1)
>>> sys = System(mesh)
>>> sys.add_matrix("M", "N'*N")
>>> sys.add_matrix("K", "B'*B")
>>> sys.add_vector("f", "0*N'")
>>> solver = TransientLinearSolver(sys, dt=0.1)
>>> solver.init(u0)
>>> u = solver.solve()

Plotting helpers live in :mod:`FEA.plotting`.
"""

from .quadrature import QuadratureRule, quadrature_rule, rules
from .elements import (
    Element,
    build_side,
    detJ,
    get_dof,
    get_family,
    get_normal,
    get_position,
    jacobian,
    shape,
    shape_deriv,
    transform_dof,
    inverse_transform_dof,
)
from .datastructures import (
    Mesh,
    Node,
    LEFT,
    RIGHT,
    BOTTOM,
    TOP,
    BOUNDARY_TOL,
    AssemblyParameters,
    LinearParameters,
    TransientParameters,
)
from .mesh import grid, line_grid
from .equations import Kernel, parse
from .assembly import assemble_matrix, assemble_vector, local_matrix, local_vector
from .system import System
from .boundary import EssentialBoundary, apply_essential
from .solvers import LinearSolver, TransientLinearSolver
from .interpolation import l2_error, linf_error
from .errors import (
    FEAError,
    UnsupportedOrderError,
    UnsupportedElementError,
    DegenerateElementError,
    DimensionMismatchError,
    ReservedNameError,
    UnknownConstantError,
    NotFoundError,
    InvalidParameterError,
    NotInitializedError,
    MeshStateError,
    ExpressionSyntaxError,
)

__all__ = [
    # Quadrature
    "QuadratureRule",
    "quadrature_rule",
    "rules",
    # Elements
    "Element",
    "get_family",
    "shape",
    "shape_deriv",
    "jacobian",
    "detJ",
    "get_position",
    "get_normal",
    "build_side",
    "get_dof",
    "transform_dof",
    "inverse_transform_dof",
    # Mesh
    "Mesh",
    "Node",
    "grid",
    "line_grid",
    "LEFT",
    "RIGHT",
    "BOTTOM",
    "TOP",
    "BOUNDARY_TOL",
    # Equations and assembly
    "Kernel",
    "parse",
    "System",
    "assemble_matrix",
    "assemble_vector",
    "local_matrix",
    "local_vector",
    # Boundary conditions and solvers
    "EssentialBoundary",
    "apply_essential",
    "LinearSolver",
    "TransientLinearSolver",
    # Configuration
    "AssemblyParameters",
    "LinearParameters",
    "TransientParameters",
    # Error norms
    "l2_error",
    "linf_error",
    # Errors
    "FEAError",
    "UnsupportedOrderError",
    "UnsupportedElementError",
    "DegenerateElementError",
    "DimensionMismatchError",
    "ReservedNameError",
    "UnknownConstantError",
    "NotFoundError",
    "InvalidParameterError",
    "NotInitializedError",
    "MeshStateError",
    "ExpressionSyntaxError",
]
