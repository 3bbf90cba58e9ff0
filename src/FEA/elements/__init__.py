"""Reference elements, element records and the operations derived from them."""

from .base import Element, ElementFamily, Side, resolve_dof_per_node
from .families import FAMILIES, Beam2, Line2, Line3, Point, Quad4, Tri3, Tri6, get_family
from .operations import (
    build_side,
    detJ,
    get_dof,
    get_normal,
    get_position,
    get_side_dof,
    inverse_transform_dof,
    jacobian,
    shape,
    shape_deriv,
    transform_dof,
)

__all__ = [
    # Records
    "Element",
    "ElementFamily",
    "Side",
    "resolve_dof_per_node",
    # Families
    "FAMILIES",
    "Point",
    "Line2",
    "Line3",
    "Quad4",
    "Tri3",
    "Tri6",
    "Beam2",
    "get_family",
    # Operations
    "shape",
    "shape_deriv",
    "jacobian",
    "detJ",
    "get_position",
    "get_normal",
    "build_side",
    "get_dof",
    "get_side_dof",
    "transform_dof",
    "inverse_transform_dof",
]
