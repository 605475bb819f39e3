"""Spline segment geometry and per-axis cubic coefficients.

A segment is one cubic piece of the curve between two real control points,
shaped by two neighbouring (real or extrapolated) context points. Its
coefficients are stored per axis as (c3, c2, c1, c0) so that the axis value
at local time t in [0, 1] is c0 + t*(c1 + t*(c2 + t*c3)).
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from curvemap.common import InvalidSegmentIndexError
from curvemap.consts import COINCIDENT_KNOT_EPS, INTERSECTION_EPS
from curvemap.roots import RootSolver

ControlPoints = Tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]

UNIFORM_KNOTS: Tuple[float, float, float, float] = (0.0, 1.0, 2.0, 3.0)


class SplineSegment:
    """Segment geometry, coefficient calculation and cubic evaluation."""

    ###########################################################################
    # Geometry
    ###########################################################################

    @staticmethod
    def control_points(index: int, points: NDArray[np.float64], closed: bool) -> ControlPoints:
        """
        Return the four control points (p1, p2, p3, p4) of segment *index* (0-based).

        Closed curves wrap around the point list. Open curves extrapolate the
        missing context points at both ends by reflection: 2*p2 - p3 before the
        first point and 2*p3 - p2 after the last one.

        Raises:
            InvalidSegmentIndexError: If the segment does not exist.
        """
        count = len(points)
        segment_count = count if closed else count - 1
        if not 0 <= index < segment_count:
            raise InvalidSegmentIndexError(
                f"There is no segment at index {index} on a {'closed' if closed else 'open'} curve "
                f"with {segment_count} segments"
            )

        if closed:
            return (
                points[(index - 1) % count],
                points[index],
                points[(index + 1) % count],
                points[(index + 2) % count],
            )

        p2, p3 = points[index], points[index + 1]
        p1 = points[index - 1] if index > 0 else 2.0 * p2 - p3
        p4 = points[index + 2] if index < count - 2 else 2.0 * p3 - p2
        return p1, p2, p3, p4

    @staticmethod
    def knot_sequence(
        p1: NDArray[np.float64],
        p2: NDArray[np.float64],
        p3: NDArray[np.float64],
        p4: NDArray[np.float64],
        softness: float,
    ) -> Tuple[float, float, float, float]:
        """
        Knot sequence used to weight the segment tangents.

        softness = 0 gives uniform knots, 0.5 centripetal and 1 chordal spacing.
        """
        if softness == 0:
            return UNIFORM_KNOTS

        exponent = 0.5 * softness  # distances below are squared
        knot1 = float(np.sum((p2 - p1) ** 2)) ** exponent
        knot2 = float(np.sum((p3 - p2) ** 2)) ** exponent + knot1
        knot3 = float(np.sum((p4 - p3) ** 2)) ** exponent + knot2
        return 0.0, knot1, knot2, knot3

    ###########################################################################
    # Coefficients
    ###########################################################################

    @staticmethod
    def axis_coefficients(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        v1: float,
        v2: float,
        v3: float,
        v4: float,
        knots: Optional[Sequence[float]],
        curviness: float,
    ) -> Tuple[float, float, float, float]:
        """
        Hermite-to-power-basis coefficients (c3, c2, c1, c0) of one axis.

        Without knots the tangents use the uniform closed form. With knots the
        tangents are divided differences; a zero knot gap leaves the affected
        tangent at 0.
        """
        u = 0.0
        v = 0.0
        if knots is None:
            u = curviness * (v3 - v1) * 0.5
            v = curviness * (v4 - v2) * 0.5
        else:
            k1, k2, k3, k4 = knots
            if abs(k2 - k3) > COINCIDENT_KNOT_EPS:
                scale = curviness * (k3 - k2)
                if abs(k1 - k2) > COINCIDENT_KNOT_EPS and abs(k1 - k3) > COINCIDENT_KNOT_EPS:
                    u = scale * ((v1 - v2) / (k1 - k2) - (v1 - v3) / (k1 - k3) + (v2 - v3) / (k2 - k3))
                if abs(k2 - k4) > COINCIDENT_KNOT_EPS and abs(k3 - k4) > COINCIDENT_KNOT_EPS:
                    v = scale * ((v2 - v3) / (k2 - k3) - (v2 - v4) / (k2 - k4) + (v3 - v4) / (k3 - k4))

        return (
            2.0 * v2 - 2.0 * v3 + u + v,
            -3.0 * v2 + 3.0 * v3 - 2.0 * u - v,
            u,
            v2,
        )

    @classmethod
    def coefficients_per_axis(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        cls,
        p1: NDArray[np.float64],
        p2: NDArray[np.float64],
        p3: NDArray[np.float64],
        p4: NDArray[np.float64],
        curviness: float,
        softness: float,
    ) -> NDArray[np.float64]:
        """
        Coefficients of all three axes as an array of shape (3, 4).

        Row i holds (c3, c2, c1, c0) of axis i (X, Y, Z).
        """
        knots = cls.knot_sequence(p1, p2, p3, p4, softness) if softness > 0 else None
        return np.array(
            [cls.axis_coefficients(p1[axis], p2[axis], p3[axis], p4[axis], knots, curviness) for axis in range(3)],
            dtype=np.float64,
        )

    ###########################################################################
    # Evaluation (Horner's method)
    #
    # The processors accept a single axis row (4,) or an axis matrix (3, 4);
    # t may be a scalar or an array shaped to broadcast against the rows.
    ###########################################################################

    @staticmethod
    def value_at(t: Union[float, NDArray[np.float64]], coefficients: NDArray[np.float64]):
        """Axis value(s) at segment time *t*."""
        c = coefficients
        return c[..., 3] + t * (c[..., 2] + t * (c[..., 1] + t * c[..., 0]))

    @staticmethod
    def derivative_at(t: Union[float, NDArray[np.float64]], coefficients: NDArray[np.float64]):
        """First derivative value(s) at segment time *t*."""
        c = coefficients
        return c[..., 2] + t * (2.0 * c[..., 1] + t * 3.0 * c[..., 0])

    @staticmethod
    def second_derivative_at(t: Union[float, NDArray[np.float64]], coefficients: NDArray[np.float64]):
        """Second derivative value(s) at segment time *t*."""
        c = coefficients
        return 6.0 * c[..., 0] * t + 2.0 * c[..., 1]

    ###########################################################################
    # Intersections
    ###########################################################################

    @staticmethod
    def time_intersections_on_axis(value: float, axis_coefficients: NDArray[np.float64]) -> List[float]:
        """
        Segment times in [0, 1] where the axis polynomial equals *value*, sorted ascending.

        A segment that is constant at *value* matches everywhere and yields [0.0].
        """
        c3, c2, c1, c0 = (float(c) for c in axis_coefficients)
        delta = c0 - value
        if c3 == 0 and c2 == 0 and c1 == 0 and delta == 0:
            return [0.0]

        roots = [
            min(max(root, 0.0), 1.0)
            for root in RootSolver.solve_cubic(c3, c2, c1, delta)
            if -INTERSECTION_EPS < root <= 1.0 + INTERSECTION_EPS
        ]
        roots.sort()
        return roots
