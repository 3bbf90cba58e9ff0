"""Tests for field evaluation and error norms."""

import numpy as np
import pytest

from FEA import grid, l2_error, line_grid, linf_error
from FEA.errors import DimensionMismatchError
from FEA.interpolation import evaluate


def _interpolate(mesh, f):
    return f(*mesh.coords.T)


def _sines(x, y):
    return np.sin(np.pi * x) * np.sin(np.pi * y)


class TestNorms:
    """L2 and nodal maximum errors."""

    @pytest.mark.parametrize("element", ["Quad4", "Tri3", "Tri6"])
    def test_linear_field_is_exact(self, element):
        mesh = grid(0, 2, 0, 1, 3, 2, element)
        mesh.initialize()
        u = _interpolate(mesh, lambda x, y: x + 2 * y)
        assert l2_error(mesh, u, lambda x, y: x + 2 * y) < 1e-12
        assert linf_error(mesh, u, lambda x, y: x + 2 * y) < 1e-12

    def test_second_order_convergence(self):
        """Halving h reduces the bilinear interpolation error about four times."""
        errors = []
        for n in (8, 16):
            mesh = grid(0, 1, 0, 1, n, n, "Quad4")
            mesh.initialize()
            errors.append(l2_error(mesh, _interpolate(mesh, _sines), _sines))
        assert errors[0] / errors[1] > 3.5

    def test_constant_offset(self):
        """A unit offset over a 2 x 1 domain has L2 norm sqrt(2)."""
        mesh = grid(0, 2, 0, 1, 2, 2)
        mesh.initialize()
        u = np.ones(mesh.n_dof)
        assert np.isclose(l2_error(mesh, u, lambda x, y: 0.0), np.sqrt(2.0))
        assert np.isclose(linf_error(mesh, u, lambda x, y: 0.0), 1.0)

    def test_vector_field(self):
        mesh = grid(0, 1, 0, 1, 2, 2, space="vector")
        mesh.initialize()
        x, y = mesh.coords.T
        u = np.column_stack([x, -y]).ravel()
        assert l2_error(mesh, u, lambda x, y: [x, -y]) < 1e-12

    def test_linf_scalar_only(self):
        mesh = grid(0, 1, 0, 1, 1, 1, space="vector")
        mesh.initialize()
        with pytest.raises(ValueError, match="scalar"):
            linf_error(mesh, np.zeros(8), lambda x, y: 0.0)

    def test_length_checked(self):
        mesh = line_grid(0, 1, 4)
        mesh.initialize()
        with pytest.raises(DimensionMismatchError):
            l2_error(mesh, np.zeros(3), lambda x: x)


class TestEvaluate:
    """Point evaluation inside an element."""

    def test_center_value(self):
        mesh = grid(0, 1, 0, 1, 1, 1)
        mesh.initialize()
        u = np.array([1.0, 2.0, 3.0, 4.0])
        assert np.allclose(evaluate(mesh.element(1), u, [0.0, 0.0]), 2.5)

    def test_vector_components(self):
        mesh = grid(0, 1, 0, 1, 1, 1, space="vector")
        mesh.initialize()
        u = np.tile([1.0, -3.0], 4)
        assert np.allclose(evaluate(mesh.element(1), u, [0.5, -0.5]), [1.0, -3.0])
