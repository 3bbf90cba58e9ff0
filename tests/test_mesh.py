"""Tests for the mesh lifecycle, dof numbering and boundary tagging."""

import numpy as np
import pytest

from FEA import grid, line_grid
from FEA.assembly import local_matrix
from FEA.datastructures import Mesh
from FEA.equations import Kernel
from FEA.errors import DimensionMismatchError, MeshStateError, NotFoundError


@pytest.fixture
def mesh():
    """2x2 Quad4 grid of the unit square, initialized."""
    m = grid(0, 1, 0, 1, 2, 2, "Quad4")
    m.initialize()
    return m


@pytest.fixture
def vector_mesh():
    m = grid(0, 1, 0, 1, 2, 2, "Quad4", space="vector")
    m.initialize()
    return m


class TestConstruction:
    """Append-only construction and initialization."""

    def test_sequential_ids(self):
        m = Mesh()
        assert [m.add_node([0, 0]), m.add_node([1, 0]), m.add_node([0, 1])] == [1, 2, 3]
        assert m.add_element("Tri3", [1, 2, 3]) == 1

    def test_grid_counts(self):
        m = grid(0, 2, 0, 1, 4, 3, "Quad4")
        assert m.n_nodes == 20
        assert m.n_elements == 12
        m = grid(0, 1, 0, 1, 2, 2, "Tri3")
        assert m.n_elements == 8
        m = grid(0, 1, 0, 1, 2, 2, "Tri6")
        assert m.n_nodes == 25
        assert m.n_elements == 8

    def test_grid_positive_orientation(self):
        """Every generated element has a positive Jacobian."""
        from FEA.elements import detJ

        for element in ("Quad4", "Tri3", "Tri6"):
            m = grid(-1, 1, 0, 2, 3, 2, element)
            m.initialize()
            for elem in m.elements:
                assert detJ(elem, [0.25, 0.25]) > 0

    def test_dof_count(self, mesh, vector_mesh):
        assert mesh.n_dof == 9 and mesh.n_dof_node == 1
        assert vector_mesh.n_dof == 18 and vector_mesh.n_dof_node == 2

    def test_beam_grid_has_two_dofs(self):
        m = line_grid(0, 1, 4, "Beam2")
        m.initialize()
        assert m.n_dof == 10

    def test_initialize_twice(self, mesh):
        with pytest.raises(MeshStateError):
            mesh.initialize()

    def test_frozen_after_initialize(self, mesh):
        with pytest.raises(MeshStateError):
            mesh.add_node([2.0, 2.0])
        with pytest.raises(MeshStateError):
            mesh.add_element("Tri3", [1, 2, 3])

    def test_unregistered_node(self):
        m = Mesh()
        for p in ([0, 0], [1, 0], [0, 1]):
            m.add_node(p)
        m.add_element("Tri3", [1, 2, 5])
        with pytest.raises(MeshStateError, match="unregistered"):
            m.initialize()

    def test_wrong_node_count(self):
        m = Mesh()
        with pytest.raises(DimensionMismatchError):
            m.add_element("Quad4", [1, 2, 3])

    def test_empty_mesh(self):
        with pytest.raises(MeshStateError):
            Mesh().initialize()

    def test_tagging_requires_initialize(self):
        m = grid(0, 1, 0, 1, 1, 1)
        with pytest.raises(MeshStateError):
            m.add_boundary(1)


class TestSides:
    """Exterior side detection, neighbours and locations."""

    def test_exterior_sides(self, mesh):
        n_exterior = sum(s.on_boundary for e in mesh.elements for s in e.sides)
        assert n_exterior == 8

    def test_neighbours(self, mesh):
        e1 = mesh.element(1)
        assert e1.sides[1].neighbor == 2 and e1.sides[1].neighbor_side == 3
        assert e1.sides[2].neighbor == 3 and e1.sides[2].neighbor_side == 0
        assert e1.sides[0].neighbor is None

    def test_locations(self, mesh):
        e1, e4 = mesh.element(1), mesh.element(4)
        assert e1.sides[0].location == "bottom"
        assert e1.sides[3].location == "left"
        assert e4.sides[1].location == "right"
        assert e4.sides[2].location == "top"
        assert e1.sides[1].location is None

    def test_line_locations(self):
        m = line_grid(0, 1, 3)
        m.initialize()
        assert m.element(1).sides[0].location == "left"
        assert m.element(3).sides[1].location == "right"


class TestDofMasks:
    """Boolean dof masks by tag, mode and component."""

    def test_whole_boundary(self, mesh):
        mesh.add_boundary(1)
        mask = mesh.get_dof(1)
        assert mask.dtype == bool and mask.shape == (9,)
        assert mask.sum() == 8
        assert np.array_equal(mesh.get_dof(), mask)
        assert np.flatnonzero(mesh.get_dof(mode="nonessential")).tolist() == [4]

    def test_modes(self, mesh):
        mesh.add_boundary(1, "left")
        mesh.add_boundary(2, "right", essential=False)
        assert mesh.get_dof().sum() == 3
        assert mesh.get_dof(mode="all").all()
        assert mesh.get_dof(2, mode="all").sum() == 3
        assert mesh.get_dof(mode="nonessential").sum() == 6

    def test_predicate(self, mesh):
        mesh.add_boundary(3, lambda x, y: x > 0.99)
        assert np.flatnonzero(mesh.get_dof(3)).tolist() == [2, 5, 8]

    def test_multiple_locations(self, mesh):
        mesh.add_boundary(1, "left", "bottom")
        assert np.flatnonzero(mesh.get_dof(1)).tolist() == [0, 1, 2, 3, 6]

    def test_component(self, vector_mesh):
        vector_mesh.add_boundary(1, "left")
        assert vector_mesh.get_dof(1).sum() == 6
        assert np.flatnonzero(vector_mesh.get_dof(1, component=1)).tolist() == [1, 7, 13]
        assert vector_mesh.get_dof(1, mode="nonessential", component=0).sum() == 15

    def test_component_out_of_range(self, vector_mesh):
        vector_mesh.add_boundary(1)
        with pytest.raises(ValueError):
            vector_mesh.get_dof(1, component=2)

    def test_unknown_tag(self, mesh):
        with pytest.raises(NotFoundError):
            mesh.get_dof(42)
        with pytest.raises(KeyError):
            mesh.get_nodes(42)

    def test_unknown_mode(self, mesh):
        with pytest.raises(ValueError, match="dof mode"):
            mesh.get_dof(mode="some")

    def test_unknown_location(self, mesh):
        with pytest.raises(ValueError, match="location"):
            mesh.add_boundary(1, "front")

    def test_deterministic(self, vector_mesh):
        vector_mesh.add_boundary(1, "top")
        assert np.array_equal(vector_mesh.get_dof(1), vector_mesh.get_dof(1))


class TestRegions:
    """Subdomains and element/node queries."""

    def test_subdomain(self, mesh):
        mesh.add_subdomain(5, lambda x, y: x <= 0.5)
        assert [e.id for e in mesh.get_elements(5)] == [1, 3]
        assert len(mesh.get_nodes(5)) == 6
        assert np.all(mesh.get_nodes(5)[:, 0] <= 0.5)
        assert 5 in mesh.element(1).subdomain_ids

    def test_boundary_elements(self, mesh):
        mesh.add_boundary(1, "bottom")
        assert [e.id for e in mesh.get_elements(1)] == [1, 2]
        assert np.allclose(mesh.get_nodes(1)[:, 1], 0.0)
        assert 1 in mesh.element(1).sides[0].boundary_ids

    def test_all_elements(self, mesh):
        assert len(mesh.get_elements()) == 4
        assert mesh.get_nodes().shape == (9, 2)

    def test_tag_kind_conflict(self, mesh):
        mesh.add_boundary(1)
        with pytest.raises(ValueError, match="already used"):
            mesh.add_subdomain(1, lambda x, y: True)


class TestMixedDimensions:
    """Line and quad elements in one mesh (regression for the mixed case)."""

    @pytest.fixture
    def mixed(self):
        m = Mesh()
        for p in ([0, 0], [1, 0], [1, 1], [0, 1], [2, 0]):
            m.add_node(p)
        m.add_element("Quad4", [1, 2, 3, 4])
        m.add_element("Line2", [2, 5])
        m.initialize()
        return m

    def test_numbering(self, mixed):
        assert mixed.n_dim == 2
        assert mixed.n_dof == 5
        assert mixed.element(2).nodes.shape == (2, 2)

    def test_sides_do_not_mix(self, mixed):
        """The quad keeps four exterior sides; the line adds its free end point."""
        quad, line = mixed.element(1), mixed.element(2)
        assert all(s.on_boundary for s in quad.sides)
        assert line.sides[1].on_boundary

    def test_embedded_line_stiffness(self, mixed):
        Ke = local_matrix(Kernel("K", "B'*B"), mixed.element(2))
        assert np.allclose(Ke, [[1.0, -1.0], [-1.0, 1.0]])

    def test_coordinates_padded(self):
        m = Mesh()
        m.add_node([0.0, 0.0])
        m.add_node([1.0])
        m.add_node([1.0, 1.0])
        m.add_element("Tri3", [1, 2, 3])
        m.initialize()
        assert np.allclose(m.get_nodes()[1], [1.0, 0.0])
