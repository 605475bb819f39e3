"""Test module for curvemap.quadrature

The tests are run using pytest.
"""

import numpy as np
import pytest

from curvemap.common import CurveError, QuadratureOrderOutOfRangeError
from curvemap.quadrature import GaussLegendre


class TestGaussLegendre:
    """Test the Gauss-Legendre tables and integrator."""

    @pytest.mark.parametrize("order", [4, 30, 0, -1])
    def test_order_out_of_range(self, order):
        """Orders outside 5..29 are rejected"""
        with pytest.raises(QuadratureOrderOutOfRangeError):
            GaussLegendre.coefficients(order)

    def test_error_is_curve_error(self):
        """Quadrature order errors belong to the curve error family"""
        with pytest.raises(CurveError):
            GaussLegendre.coefficients(100)

    @pytest.mark.parametrize("order", [5, 17, 29])
    def test_table_shape(self, order):
        """Each table has order nodes and weights summing to 2"""
        abscissae, weights = GaussLegendre.coefficients(order)
        assert abscissae.shape == (order,)
        assert weights.shape == (order,)
        assert np.sum(weights) == pytest.approx(2.0)

    def test_tables_read_only(self):
        """Tables cannot be modified by callers"""
        abscissae, weights = GaussLegendre.coefficients(5)
        with pytest.raises(ValueError):
            abscissae[0] = 0.0
        with pytest.raises(ValueError):
            weights[0] = 0.0

    def test_polynomial_exact(self):
        """Order 5 integrates polynomials up to degree 9 exactly"""
        result = GaussLegendre.integrate(lambda x: x**4, 0.0, 2.0, 5)
        assert result == pytest.approx(32.0 / 5.0, rel=1e-12)

    def test_smooth_function(self):
        """A smooth non-polynomial integrand converges"""
        result = GaussLegendre.integrate(np.sin, 0.0, np.pi, 24)
        assert result == pytest.approx(2.0, rel=1e-12)

    def test_empty_interval(self):
        """An empty interval integrates to 0"""
        assert GaussLegendre.integrate(lambda x: x + 1.0, 0.3, 0.3, 5) == 0.0
