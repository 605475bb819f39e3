"""Gauss-Legendre quadrature tables and integration."""

from __future__ import annotations

from typing import Callable, Dict, Tuple

import numpy as np
from numpy.polynomial.legendre import leggauss
from numpy.typing import NDArray

from curvemap.common import QuadratureOrderOutOfRangeError
from curvemap.consts import MAX_QUADRATURE_ORDER, MIN_QUADRATURE_ORDER

GaussLegendreTable = Tuple[NDArray[np.float64], NDArray[np.float64]]  # (abscissae, weights)


def _build_tables() -> Dict[int, GaussLegendreTable]:
    tables = {}
    for order in range(MIN_QUADRATURE_ORDER, MAX_QUADRATURE_ORDER + 1):
        abscissae, weights = leggauss(order)
        abscissae.flags.writeable = False
        weights.flags.writeable = False
        tables[order] = (abscissae, weights)
    return tables


# Read-only node/weight tables on [-1, 1], indexed by order
_GAUSS_LEGENDRE_TABLES: Dict[int, GaussLegendreTable] = _build_tables()


class GaussLegendre:
    """Access to the Gauss-Legendre tables and a fixed-order integrator."""

    @staticmethod
    def coefficients(order: int) -> GaussLegendreTable:
        """
        Return the (abscissae, weights) pair of the given quadrature order.

        Raises:
            QuadratureOrderOutOfRangeError: If the order is outside the supported table range.
        """
        table = _GAUSS_LEGENDRE_TABLES.get(order)
        if table is None:
            raise QuadratureOrderOutOfRangeError(
                f"Quadrature order {order} is not in range [{MIN_QUADRATURE_ORDER}, {MAX_QUADRATURE_ORDER}]"
            )
        return table

    @classmethod
    def integrate(
        cls,
        func: Callable[[NDArray[np.float64]], NDArray[np.float64]],
        t0: float,
        t1: float,
        order: int,
    ) -> float:
        """Integrate a vectorized *func* over [t0, t1] with the given order."""
        if t0 == t1:
            return 0.0
        abscissae, weights = cls.coefficients(order)
        half = (t1 - t0) * 0.5
        nodes = half * abscissae + half + t0
        return float(half * np.dot(weights, func(nodes)))
