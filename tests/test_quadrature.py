"""Tests for the Gauss quadrature rules.

Run with: pytest tests/test_quadrature.py -v
"""

import numpy as np
import pytest

from FEA.errors import UnsupportedElementError, UnsupportedOrderError
from FEA.quadrature import quadrature_rule, rules


class TestWeights:
    """Weights sum to the measure of the reference element."""

    @pytest.mark.parametrize("order", [1, 2, 3, 4, 5])
    def test_line(self, order):
        _, w = rules("line", order)
        assert np.isclose(w.sum(), 2.0)

    @pytest.mark.parametrize("order", [1, 2, 3, 4, 5])
    def test_quad_flattened(self, order):
        pts, w = rules("quad", order, flatten=True)
        assert pts.shape == (order**2, 2)
        assert np.isclose(w.sum(), 4.0)

    @pytest.mark.parametrize("order", [1, 2, 3])
    def test_hex_flattened(self, order):
        pts, w = rules("hex", order, flatten=True)
        assert pts.shape == (order**3, 3)
        assert np.isclose(w.sum(), 8.0)

    @pytest.mark.parametrize("order", [1, 3, 4, 7])
    def test_triangle(self, order):
        pts, w = rules("tri", order)
        assert pts.shape == (order, 2)
        assert np.isclose(w.sum(), 0.5)


class TestExactness:
    """Polynomials up to the rule's degree are integrated exactly."""

    @pytest.mark.parametrize("order", [1, 2, 3, 4, 5])
    def test_line_degree(self, order):
        """An n-point rule is exact up to degree 2n-1."""
        x, w = rules("line", order)
        for k in range(2 * order):
            exact = 2.0 / (k + 1) if k % 2 == 0 else 0.0
            assert np.isclose(np.sum(w * x**k), exact, atol=1e-13), f"Failed for k={k}"

    def test_line_not_exact_beyond_degree(self):
        x, w = rules("line", 2)
        assert not np.isclose(np.sum(w * x**4), 2.0 / 5)

    def test_quad_product(self):
        """Integral of x^2 y^2 over [-1, 1]^2 is 4/9."""
        pts, w = rules("quad", 2, flatten=True)
        assert np.isclose(np.sum(w * pts[:, 0] ** 2 * pts[:, 1] ** 2), 4 / 9)

    @pytest.mark.parametrize(
        "order, a, b",
        [(1, 1, 0), (3, 2, 0), (3, 1, 1), (4, 2, 1), (7, 2, 2), (7, 5, 0), (7, 3, 2)],
    )
    def test_triangle_monomials(self, order, a, b):
        """Integral of x^a y^b over the reference triangle is a! b! / (a+b+2)!."""
        from math import factorial

        pts, w = rules("tri", order)
        exact = factorial(a) * factorial(b) / factorial(a + b + 2)
        assert np.isclose(np.sum(w * pts[:, 0] ** a * pts[:, 1] ** b), exact, rtol=1e-10)


class TestLayout:
    """Point ordering of flattened rules."""

    def test_first_coordinate_fastest(self):
        pts, w = rules("quad", 2, flatten=True)
        g = 1 / np.sqrt(3)
        assert np.allclose(pts, [[-g, -g], [g, -g], [-g, g], [g, g]])
        assert np.allclose(w, 1.0)

    def test_line_flattened_is_column(self):
        pts, w = rules("line", 3, flatten=True)
        assert pts.shape == (3, 1)

    def test_triangle_flatten_passthrough(self):
        a = rules("tri", 4)
        b = rules("tri", 4, flatten=True)
        assert np.array_equal(a[0], b[0]) and np.array_equal(a[1], b[1])

    def test_cached_rule_read_only(self):
        rule = quadrature_rule("quad", 2)
        assert rule is quadrature_rule("quad", 2)
        assert rule.n_points == 4
        with pytest.raises(ValueError):
            rule.weights[0] = 0.0

    def test_rules_return_copies(self):
        _, w = rules("line", 2)
        w[0] = 100.0
        assert rules("line", 2)[1][0] == 1.0


class TestErrors:
    """Unsupported requests fail immediately."""

    @pytest.mark.parametrize("kind, order", [("line", 6), ("quad", 0), ("hex", 7), ("tri", 2)])
    def test_unsupported_order(self, kind, order):
        with pytest.raises(UnsupportedOrderError):
            rules(kind, order)

    def test_unsupported_order_is_value_error(self):
        with pytest.raises(ValueError):
            rules("tri", 5)

    def test_tetrahedron_not_implemented(self):
        with pytest.raises(UnsupportedElementError):
            rules("tet", 1)
        with pytest.raises(NotImplementedError):
            rules("tet", 4)

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown quadrature"):
            rules("prism", 2)
