"""Curve interpolation through 3D control points, queryable by time and progress.

"Time" and "progress" are both normalized to [0, 1]. Time moves uniformly
over the segments of the curve, no matter how long each segment is.
Progress moves uniformly over the length of the curve. At 50% of the time a
curve with a long first segment may already have covered 75% of its length.
"Distance" is the arc length that corresponds to a progress.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import KDTree

from curvemap.common import (
    Axis,
    CurveMath,
    DegenerateLookupTableError,
    OutOfRangeParameterError,
    PointLike,
    PointsLike,
)
from curvemap.consts import (
    DEFAULT_CURVINESS,
    DEFAULT_INVERSE_SAMPLES,
    DEFAULT_QUADRATURE_ORDER,
    DEFAULT_SEARCH_STEPS,
    DEFAULT_SEARCH_THRESHOLD,
    DEFAULT_SOFTNESS,
    SAMPLES_PER_SEGMENT,
)
from curvemap.mapper import BaseCurveMapper
from curvemap.mapper_numerical import NumericalCurveMapper
from curvemap.mapper_segmented import SegmentedCurveMapper
from curvemap.segment import SplineSegment

logger = logging.getLogger(__name__)

LookupTable = Dict[float, Any]  # progress -> value


###############################################################################
# Options and results
###############################################################################


@dataclass(frozen=True)
class CurveOptions:
    """
    Construction options of a CurveInterpolator.

    Attributes:
        curviness: 0 = linear, 1 = Catmull-Rom.
        softness: 0 = uniform, 0.5 = centripetal, 1 = chordal.
        closed: Whether the last point connects back to the first.
        intersection_margin: Widening of the per-segment axis range used by the
            intersection search; None follows the current curviness.
        arc_divisions: If set, use the SegmentedCurveMapper with this many
            subdivisions instead of the NumericalCurveMapper.
        quadrature_order: Gauss-Legendre order of the NumericalCurveMapper.
        inverse_samples: Length/time samples per segment of the NumericalCurveMapper.
    """

    curviness: float = DEFAULT_CURVINESS
    softness: float = DEFAULT_SOFTNESS
    closed: bool = False
    intersection_margin: Optional[float] = None
    arc_divisions: Optional[int] = None
    quadrature_order: int = DEFAULT_QUADRATURE_ORDER
    inverse_samples: int = DEFAULT_INVERSE_SAMPLES


@dataclass(frozen=True)
class CurvatureDetails:
    """Unsigned curvature at a curve position with radius, unit tangent and unit normal."""

    curvature: float
    radius: float
    tangent: NDArray[np.float64]
    normal: NDArray[np.float64]


@dataclass(frozen=True)
class ClosestDetails:
    """Closest position on a curve to a query point."""

    progress: float
    time: float
    point: NDArray[np.float64]
    distance: float


###############################################################################
# CurveInterpolator
###############################################################################


class CurveInterpolator:
    """
    Cardinal/Catmull-Rom spline through a sequence of 3D points.

    The arc length strategy is chosen once at construction: a
    SegmentedCurveMapper if `arc_divisions` is given, else a
    NumericalCurveMapper. Memoized lookup tables are dropped whenever the
    points or shape parameters change.
    """

    def __init__(self, points: PointsLike, options: Optional[CurveOptions] = None):
        """
        Initialize the interpolator.

        Args:
            points: Sequence of at least 2 points (x, y, z).
            options: Construction options, defaults to CurveOptions().
        """
        self._options = options if options is not None else CurveOptions()
        self._lookup_tables: Dict[Hashable, LookupTable] = {}
        self._kd_trees: Dict[int, Tuple[List[float], KDTree]] = {}

        opts = self._options
        self._mapper: BaseCurveMapper
        if opts.arc_divisions is not None:
            self._mapper = SegmentedCurveMapper(
                points,
                opts.curviness,
                opts.softness,
                opts.closed,
                self._on_cache_update,
                sub_divisions=opts.arc_divisions,
            )
        else:
            self._mapper = NumericalCurveMapper(
                points,
                opts.curviness,
                opts.softness,
                opts.closed,
                self._on_cache_update,
                quadrature_order=opts.quadrature_order,
                inverse_samples=opts.inverse_samples,
            )

    def _on_cache_update(self, _mapper: BaseCurveMapper) -> None:
        self._lookup_tables = {}
        self._kd_trees = {}

    ###########################################################################
    # State
    ###########################################################################

    @property
    def mapper(self) -> BaseCurveMapper:
        """The arc length strategy owning the curve state."""
        return self._mapper

    @property
    def options(self) -> CurveOptions:
        """The options given at construction."""
        return self._options

    @property
    def points(self) -> NDArray[np.float64]:
        """The control points as a read-only array of shape (n, 3)."""
        return self._mapper.points

    @points.setter
    def points(self, points: PointsLike) -> None:
        self.set_points(points)

    @property
    def closed(self) -> bool:
        """Whether the curve connects its last point back to the first."""
        return self._mapper.closed

    @closed.setter
    def closed(self, closed: bool) -> None:
        self.set_closed(closed)

    @property
    def curviness(self) -> float:
        """Tension analog: 0 = linear, 1 = Catmull-Rom."""
        return self._mapper.curviness

    @curviness.setter
    def curviness(self, curviness: float) -> None:
        self.set_curviness(curviness)

    @property
    def softness(self) -> float:
        """Knot spacing: 0 = uniform, 0.5 = centripetal, 1 = chordal."""
        return self._mapper.softness

    @softness.setter
    def softness(self, softness: float) -> None:
        self.set_softness(softness)

    @property
    def intersection_margin(self) -> float:
        """Default margin of the axis intersection search."""
        margin = self._options.intersection_margin
        return self._mapper.curviness if margin is None else margin

    def set_points(self, points: PointsLike) -> None:
        """Replace all control points (at least 2)."""
        self._mapper.set_points(points)

    def set_curviness(self, curviness: float) -> None:
        """Set the curviness in [0, 1]."""
        self._mapper.set_curviness(curviness)

    def set_softness(self, softness: float) -> None:
        """Set the softness in [0, 1]."""
        self._mapper.set_softness(softness)

    def set_closed(self, closed: bool) -> None:
        """Open or close the curve."""
        self._mapper.set_closed(closed)

    ###########################################################################
    # Time / progress / distance
    ###########################################################################

    def time_from_progress(self, progress: float) -> float:
        """Curve time at which *progress* of the total length is covered."""
        return self._mapper.time_from_progress(progress)

    def progress_from_time(self, time: float) -> float:
        """Fraction of the total length covered at curve *time*."""
        return self._mapper.progress_from_time(time)

    def distance_from_progress(self, progress: float) -> float:
        """Arc length covered at *progress*."""
        return self._mapper.distance_from_progress(progress)

    @property
    def total_length(self) -> float:
        """Approximated length of the whole curve."""
        return self._mapper.total_length

    ###########################################################################
    # Point, tangent, normal, curvature
    ###########################################################################

    def point_at_time(self, time: float) -> NDArray[np.float64]:
        """Point on the curve at *time*."""
        CurveMath.assert_in_range(time, "time")
        points = self._mapper.points
        if time == 0:
            return points[0].copy()
        if time == 1:
            return points[0].copy() if self._mapper.closed else points[-1].copy()
        return self._mapper.evaluate_at(SplineSegment.value_at, time)

    def point_at_progress(self, progress: float) -> NDArray[np.float64]:
        """Point on the curve at *progress*."""
        return self.point_at_time(self.time_from_progress(progress))

    def tangent_at_time(self, time: float) -> NDArray[np.float64]:
        """Unit tangent at *time* (zero vector where the curve stands still)."""
        return CurveMath.normalize(self._mapper.evaluate_at(SplineSegment.derivative_at, time))

    def tangent_at_progress(self, progress: float) -> NDArray[np.float64]:
        """Unit tangent at *progress*."""
        return self.tangent_at_time(self.time_from_progress(progress))

    def normal_at_time(self, time: float) -> NDArray[np.float64]:
        """
        Unit normal at *time*: the part of the second derivative orthogonal to the tangent.

        Straight parts of the curve have no defined normal and return a zero vector.
        """
        derivative = self._mapper.evaluate_at(SplineSegment.derivative_at, time)
        second_derivative = self._mapper.evaluate_at(SplineSegment.second_derivative_at, time)
        return CurveMath.normalize(np.cross(np.cross(derivative, second_derivative), derivative))

    def normal_at_progress(self, progress: float) -> NDArray[np.float64]:
        """Unit normal at *progress*."""
        return self.normal_at_time(self.time_from_progress(progress))

    def curvature_at_time(self, time: float) -> CurvatureDetails:
        """
        Unsigned curvature at *time*.

        curvature = |d x d2| / |d|^3 and radius = 1 / curvature; both are 0
        where they are undefined. The normal points towards the center of the
        osculating circle.
        """
        derivative = self._mapper.evaluate_at(SplineSegment.derivative_at, time)
        second_derivative = self._mapper.evaluate_at(SplineSegment.second_derivative_at, time)
        speed = float(np.linalg.norm(derivative))
        cross = np.cross(derivative, second_derivative)

        curvature = float(np.linalg.norm(cross)) / speed**3 if speed > 0 else 0.0
        return CurvatureDetails(
            curvature=curvature,
            radius=1.0 / curvature if curvature > 0 else 0.0,
            tangent=CurveMath.normalize(derivative),
            normal=CurveMath.normalize(np.cross(cross, derivative)),
        )

    def curvature_at_progress(self, progress: float) -> CurvatureDetails:
        """Unsigned curvature at *progress*."""
        return self.curvature_at_time(self.time_from_progress(progress))

    ###########################################################################
    # Lookup tables
    ###########################################################################

    def lookup_table(self, generator: Callable[[float], Any], samples: int, cache_key: str) -> LookupTable:
        """
        Memoized table of generator(progress) at *samples* uniform progress values.

        The table stays cached under *cache_key* until the curve changes.

        Raises:
            DegenerateLookupTableError: If fewer than 2 samples are requested.
        """
        return self._memoized_table(generator, samples, cache_key)

    def _memoized_table(self, generator: Callable[[float], Any], samples: int, cache_key: Hashable) -> LookupTable:
        # internal tables use tuple keys, which never collide with the str keys of lookup_table
        if samples < 2:
            raise DegenerateLookupTableError(f"A lookup table needs at least 2 samples, got {samples}")

        table = self._lookup_tables.get(cache_key)
        if table is None:
            table = {float(progress): generator(float(progress)) for progress in np.linspace(0.0, 1.0, samples)}
            self._lookup_tables[cache_key] = table
            logger.debug("created lookup table %r with %d samples", cache_key, samples)
        return table

    def _nearest_sample_tree(self, samples: int) -> Tuple[List[float], KDTree]:
        entry = self._kd_trees.get(samples)
        if entry is None:
            table = self._memoized_table(self.point_at_progress, samples, ("closest", samples))
            entry = (list(table.keys()), KDTree(np.array(list(table.values()))))
            self._kd_trees[samples] = entry
        return entry

    def sample_points(self, count: int) -> NDArray[np.float64]:
        """*count* points evenly spaced by progress, as an array of shape (count, 3)."""
        table = self._memoized_table(self.point_at_progress, count, ("points", count))
        return np.array(list(table.values()), dtype=np.float64)

    def bounding_box(self, samples: Optional[int] = None) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Approximate axis-aligned bounds (minimum, maximum) of the curve from sampled points."""
        if samples is None:
            samples = self._mapper.segment_count * SAMPLES_PER_SEGMENT + 1
        points = self.sample_points(samples)
        return points.min(axis=0), points.max(axis=0)

    ###########################################################################
    # Closest point
    ###########################################################################

    def closest_to_point(
        self,
        point: PointLike,
        threshold: float = DEFAULT_SEARCH_THRESHOLD,
        samples: Optional[int] = None,
    ) -> ClosestDetails:
        """
        Find the position on the curve closest to *point*.

        The nearest of *samples* uniform progress samples is refined by probing
        one step before and after the current best time; the step is halved
        whenever neither probe comes closer, until it drops to *threshold*.
        The result is an approximation whose precision depends on *threshold*.

        Args:
            point: Query point (x, y, z).
            threshold: Smallest probe step, must be positive.
            samples: Lookup table size, defaults to (point_count - 1) * 10.

        Returns:
            ClosestDetails: progress, time, point on the curve and its distance.
        """
        if threshold <= 0:
            raise OutOfRangeParameterError(f"threshold ({threshold}) must be positive")
        if samples is None:
            samples = (self._mapper.point_count - 1) * SAMPLES_PER_SEGMENT
        target = CurveMath.as_point(point)

        progresses, tree = self._nearest_sample_tree(samples)
        _, nearest = tree.query(target)

        best_time = self.time_from_progress(progresses[int(nearest)])
        best_point = self.point_at_time(best_time)
        best_distance = float(np.linalg.norm(best_point - target))

        def probe(time: float) -> bool:
            nonlocal best_time, best_point, best_distance
            if not 0.0 <= time <= 1.0:
                return False
            candidate = self.point_at_time(time)
            distance = float(np.linalg.norm(candidate - target))
            if distance < best_distance:
                best_time, best_point, best_distance = time, candidate, distance
                return True
            return False

        step = 1.0 / DEFAULT_SEARCH_STEPS
        while step > threshold:
            if not probe(best_time - step) and not probe(best_time + step):
                step /= 2.0

        return ClosestDetails(
            progress=self.progress_from_time(best_time),
            time=best_time,
            point=best_point,
            distance=best_distance,
        )

    ###########################################################################
    # Axis intersections
    ###########################################################################

    def time_intersections_on_axis(
        self, value: float, axis: Union[Axis, int], margin: Optional[float] = None
    ) -> List[float]:
        """
        Curve times where the given axis coordinate equals *value*, in curve order.

        Only segments whose two real control points span *value* (widened by
        *margin*, default `intersection_margin`) are solved.
        """
        if margin is None:
            margin = self.intersection_margin
        column = CurveMath.axis_index(axis)
        mapper = self._mapper
        segment_count = mapper.segment_count

        intersections: List[float] = []
        for index in range(segment_count):
            _, start, end, _ = SplineSegment.control_points(index, mapper.points, mapper.closed)
            axis_min = min(start[column], end[column])
            axis_max = max(start[column], end[column])
            if value + margin < axis_min or value - margin > axis_max:
                continue

            for segment_time in SplineSegment.time_intersections_on_axis(value, mapper.coefficients[index, column]):
                intersections.append(CurveMath.iteration_progress(index + segment_time, segment_count))

        return intersections

    def progress_intersections_on_axis(
        self, value: float, axis: Union[Axis, int], margin: Optional[float] = None
    ) -> List[float]:
        """Progress values where the given axis coordinate equals *value*."""
        return [self.progress_from_time(time) for time in self.time_intersections_on_axis(value, axis, margin)]

    def point_intersections_on_axis(
        self, value: float, axis: Union[Axis, int], margin: Optional[float] = None
    ) -> List[NDArray[np.float64]]:
        """Points where the given axis coordinate equals *value*."""
        return [self.point_at_time(time) for time in self.time_intersections_on_axis(value, axis, margin)]
