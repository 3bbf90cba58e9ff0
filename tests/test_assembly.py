"""Tests for element integration and global assembly."""

import numpy as np
import pytest

from FEA import AssemblyParameters, Mesh, System, grid, line_grid
from FEA.assembly import assemble_matrix, assemble_vector
from FEA.equations import Kernel
from FEA.errors import DegenerateElementError, InvalidParameterError, NotFoundError


def _system(element="Quad4", n=4, space="scalar", **kwargs):
    mesh = grid(0, 1, 0, 1, n, n, element, space=space)
    mesh.initialize()
    return System(mesh, **kwargs)


class TestStrategies:
    """Direct and triplet assembly are interchangeable."""

    @pytest.mark.parametrize("element", ["Quad4", "Tri3", "Tri6"])
    def test_scalar_equivalence(self, element):
        sys = _system(element)
        kernel = Kernel("K", "B'*B + N'*N")
        A = assemble_matrix(sys.mesh, kernel, method="direct").toarray()
        B = assemble_matrix(sys.mesh, kernel, method="triplet").toarray()
        assert np.allclose(A, B, rtol=1e-12, atol=1e-14)

    def test_vector_equivalence(self):
        sys = _system(space="vector")
        kernel = Kernel("K", "B'*D*B", {"D": np.array([[2.0, 1.0, 0.0], [1.0, 2.0, 0.0], [0.0, 0.0, 0.5]])})
        A = assemble_matrix(sys.mesh, kernel, method="direct").toarray()
        B = assemble_matrix(sys.mesh, kernel, method="triplet").toarray()
        assert A.shape == (50, 50)
        assert np.allclose(A, B, rtol=1e-12, atol=1e-14)

    @pytest.mark.parametrize("element", ["Quad4", "Tri6"])
    def test_boundary_equivalence(self, element):
        """Side-restricted matrices agree too; the total is twice the tagged edge length."""
        sys = _system(element, n=3, space="vector")
        sys.mesh.add_boundary(2, "top", "right", essential=False)
        kernel = Kernel("R", "N'*N")
        A = assemble_matrix(sys.mesh, kernel, boundary=2, method="direct").toarray()
        B = assemble_matrix(sys.mesh, kernel, boundary=2, method="triplet").toarray()
        assert np.allclose(A, B, rtol=1e-12, atol=1e-14)
        assert np.isclose(A.sum(), 2 * 2.0)

    def test_system_uses_configured_method(self):
        direct = _system(params=AssemblyParameters(method="direct"))
        triplet = _system(method="triplet")
        for s in (direct, triplet):
            s.add_matrix("K", "B'*B")
        assert np.allclose(direct.assemble("K").toarray(), triplet.assemble("K").toarray())

    def test_invalid_method(self):
        with pytest.raises(InvalidParameterError):
            AssemblyParameters(method="parallel")


class TestMatrices:
    """Properties of assembled mass and stiffness matrices."""

    @pytest.mark.parametrize("element", ["Quad4", "Tri3", "Tri6"])
    def test_mass_sums_to_area(self, element):
        sys = _system(element, n=3)
        sys.add_matrix("M", "N'*N")
        assert np.isclose(sys.assemble("M").sum(), 1.0)

    @pytest.mark.parametrize("element", ["Quad4", "Tri3", "Tri6"])
    def test_stiffness_kernel(self, element):
        """Constants are in the null space and K is symmetric."""
        sys = _system(element, n=3)
        sys.add_matrix("K", "B'*B")
        K = sys.assemble("K").toarray()
        assert np.allclose(K @ np.ones(len(K)), 0.0, atol=1e-12)
        assert np.allclose(K, K.T)

    def test_assemble_rebuilds(self):
        sys = _system()
        sys.add_matrix("M", "N'*N")
        first = sys.assemble("M").toarray()
        assert np.allclose(sys.assemble("M").toarray(), first)
        assert sys.get("M") is not None

    def test_degenerate_element_aborts(self):
        mesh = Mesh()
        for p in ([0, 0], [0, 1], [1, 1], [1, 0]):  # clockwise
            mesh.add_node(p)
        mesh.add_element("Quad4", [1, 2, 3, 4])
        mesh.initialize()
        sys = System(mesh)
        sys.add_matrix("K", "B'*B")
        with pytest.raises(DegenerateElementError):
            sys.assemble("K")
        assert sys.get("K") is None

    def test_wrong_kernel_shape(self):
        sys = _system()
        sys.add_matrix("K", "N*N'")
        with pytest.raises(ValueError):
            sys.assemble("K")


class TestBoundaryIntegrals:
    """Vectors and matrices restricted to tagged sides."""

    def test_edge_load(self):
        sys = _system(n=2)
        sys.mesh.add_boundary(2, "top", essential=False)
        sys.add_vector("q", "N'", boundary=2)
        q = sys.assemble("q")
        assert np.isclose(q.sum(), 1.0)
        assert np.allclose(q[6:], [0.25, 0.5, 0.25])
        assert np.allclose(q[:6], 0.0)

    def test_boundary_matrix(self):
        sys = _system(n=2)
        sys.mesh.add_boundary(2, "left", "right", essential=False)
        sys.add_matrix("R", "N'*N", boundary=2)
        R = sys.assemble("R").toarray()
        assert np.isclose(R.sum(), 2.0)
        assert np.allclose(R[4], 0.0)

    def test_corner_element_sides_accumulate(self):
        """An element with two tagged sides contributes both."""
        sys = _system(n=1)
        sys.mesh.add_boundary(1)
        sys.add_vector("p", "N'", boundary=1)
        assert np.allclose(sys.assemble("p"), [1.0, 1.0, 1.0, 1.0])

    def test_point_side(self):
        """Sides of line elements are evaluated without integration."""
        mesh = line_grid(0, 1, 4)
        mesh.initialize()
        mesh.add_boundary(1, "right", essential=False)
        f = assemble_vector(mesh, Kernel("p", "3*N'"), boundary=1)
        assert np.allclose(f, [0, 0, 0, 0, 3.0])

    def test_traction_on_vector_space(self):
        sys = _system(n=1, space="vector")
        sys.mesh.add_boundary(2, "top", essential=False)
        sys.add_vector("t", "N'*[0; -20]", boundary=2)
        t = sys.assemble("t")
        assert np.allclose(t, [0, 0, 0, 0, 0, -10, 0, -10])

    def test_unknown_boundary(self):
        sys = _system()
        with pytest.raises(NotFoundError):
            sys.add_vector("q", "N'", boundary=9)
