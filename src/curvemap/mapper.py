"""Curve state, coefficient cache and the arc length strategy interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from curvemap.common import CoefficientsProcessor, CurveMath, OutOfRangeParameterError, PointsLike
from curvemap.consts import DEFAULT_CURVINESS, DEFAULT_SOFTNESS
from curvemap.segment import SplineSegment

logger = logging.getLogger(__name__)

CacheListener = Callable[["BaseCurveMapper"], None]


class BaseCurveMapper(ABC):
    """
    Owns the points, shape parameters and per-segment coefficients of a curve.

    Every mutator validates its input, leaves the state untouched when the
    value does not change and otherwise commits the value and rebuilds the
    complete coefficient cache. After each rebuild the strategy hook
    `_on_cache_update` recomputes the arc length data, then the optional
    `on_cache_update` listener is notified.

    Subclasses implement the mapping between "time" (non-linear, uniform per
    segment) and "progress" (linear in arc length).
    """

    def __init__(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        points: PointsLike,
        curviness: float = DEFAULT_CURVINESS,
        softness: float = DEFAULT_SOFTNESS,
        closed: bool = False,
        on_cache_update: Optional[CacheListener] = None,
    ):
        """
        Initialize the mapper and build all caches.

        Args:
            points: Sequence of at least 2 points (x, y, z).
            curviness: 0 = linear, 1 = Catmull-Rom.
            softness: 0 = uniform, 0.5 = centripetal, 1 = chordal.
            closed: Whether the last point connects back to the first one.
            on_cache_update: Called with the mapper after every rebuild.
        """
        self._points = CurveMath.as_points(points)
        self._curviness = CurveMath.assert_in_range(curviness, "curviness")
        self._softness = CurveMath.assert_in_range(softness, "softness")
        self._closed = bool(closed)
        self._on_cache_update_listener = on_cache_update
        self._coefficients: NDArray[np.float64] = np.empty((0, 3, 4), dtype=np.float64)
        self._rebuilding = False
        self._rebuild_count = 0

    def _initialize(self) -> None:
        """Build the caches once the subclass has set up its own configuration."""
        self._rebuild()

    ###########################################################################
    # State
    ###########################################################################

    @property
    def points(self) -> NDArray[np.float64]:
        """The control points as a read-only array of shape (n, 3)."""
        return self._points

    @points.setter
    def points(self, points: PointsLike) -> None:
        self.set_points(points)

    @property
    def point_count(self) -> int:
        """Number of control points."""
        return len(self._points)

    @property
    def segment_count(self) -> int:
        """Number of cubic segments (n for closed, n-1 for open curves)."""
        return len(self._points) if self._closed else len(self._points) - 1

    @property
    def closed(self) -> bool:
        """Whether the curve connects its last point back to the first."""
        return self._closed

    @closed.setter
    def closed(self, closed: bool) -> None:
        self.set_closed(closed)

    @property
    def curviness(self) -> float:
        """Tension analog: 0 = linear, 1 = Catmull-Rom."""
        return self._curviness

    @curviness.setter
    def curviness(self, curviness: float) -> None:
        self.set_curviness(curviness)

    @property
    def softness(self) -> float:
        """Knot spacing: 0 = uniform, 0.5 = centripetal, 1 = chordal."""
        return self._softness

    @softness.setter
    def softness(self, softness: float) -> None:
        self.set_softness(softness)

    @property
    def coefficients(self) -> NDArray[np.float64]:
        """Read-only coefficient cache of shape (segment_count, 3, 4)."""
        return self._coefficients

    @property
    def rebuild_count(self) -> int:
        """Number of cache rebuilds performed since construction (including the initial one)."""
        return self._rebuild_count

    ###########################################################################
    # Mutators
    ###########################################################################

    def set_points(self, points: PointsLike) -> None:
        """Replace all control points (at least 2)."""
        new_points = CurveMath.as_points(points)
        if np.array_equal(new_points, self._points):
            return
        self._commit("_points", new_points)

    def set_curviness(self, curviness: float) -> None:
        """Set the curviness in [0, 1]."""
        CurveMath.assert_in_range(curviness, "curviness")
        if curviness == self._curviness:
            return
        self._commit("_curviness", curviness)

    def set_softness(self, softness: float) -> None:
        """Set the softness in [0, 1]."""
        CurveMath.assert_in_range(softness, "softness")
        if softness == self._softness:
            return
        self._commit("_softness", softness)

    def set_closed(self, closed: bool) -> None:
        """Open or close the curve."""
        closed = bool(closed)
        if closed == self._closed:
            return
        self._commit("_closed", closed)

    def _commit(self, attribute: str, value) -> None:
        """Store a validated value and rebuild; refused while a rebuild is running."""
        self._assert_not_rebuilding()
        setattr(self, attribute, value)
        self._rebuild()

    def _assert_not_rebuilding(self) -> None:
        if self._rebuilding:
            raise RuntimeError("Curve caches cannot be rebuilt while a rebuild is running")

    def _rebuild(self) -> None:
        self._assert_not_rebuilding()
        self._rebuilding = True
        try:
            coefficients = np.empty((self.segment_count, 3, 4), dtype=np.float64)
            for index in range(self.segment_count):
                p1, p2, p3, p4 = SplineSegment.control_points(index, self._points, self._closed)
                coefficients[index] = SplineSegment.coefficients_per_axis(
                    p1, p2, p3, p4, self._curviness, self._softness
                )
            coefficients.flags.writeable = False
            self._coefficients = coefficients

            self._on_cache_update()
            self._rebuild_count += 1
            logger.debug(
                "%s rebuilt %d segments (curviness=%s, softness=%s, closed=%s)",
                type(self).__name__,
                self.segment_count,
                self._curviness,
                self._softness,
                self._closed,
            )
            if self._on_cache_update_listener is not None:
                self._on_cache_update_listener(self)
        finally:
            self._rebuilding = False

    ###########################################################################
    # Evaluation
    ###########################################################################

    def segment_coefficients(self, index: int) -> NDArray[np.float64]:
        """Coefficients (3, 4) of segment *index*."""
        return self._coefficients[index]

    def segment_index_and_weight(self, time: float) -> Tuple[int, float]:
        """
        Map a curve time in [0, 1] onto (segment index, segment time).

        time = 1 lands on the end of the last segment instead of a
        non-existent segment after it.
        """
        CurveMath.assert_in_range(time, "time")
        segment_count = self.segment_count
        if time == 1.0:
            return segment_count - 1, 1.0
        scaled = segment_count * time
        index = int(scaled)
        return index, scaled - index

    def evaluate_at(self, processor: CoefficientsProcessor, time: float) -> NDArray[np.float64]:
        """Apply a coefficient processor (value, derivative, ...) to all axes at curve *time*."""
        index, weight = self.segment_index_and_weight(time)
        return np.asarray(processor(weight, self._coefficients[index]), dtype=np.float64)

    def evaluate_many(self, processor: CoefficientsProcessor, times: NDArray[np.float64]) -> NDArray[np.float64]:
        """Vectorized `evaluate_at` for an array of curve times; returns shape (len(times), 3)."""
        times = np.asarray(times, dtype=np.float64)
        if times.size and (times.min() < 0.0 or times.max() > 1.0):
            raise OutOfRangeParameterError("times must be in range [0, 1]")
        segment_count = self.segment_count
        scaled = times * segment_count
        indices = np.minimum(np.floor(scaled).astype(np.int64), segment_count - 1)
        weights = scaled - indices
        return np.asarray(processor(weights[:, None], self._coefficients[indices]), dtype=np.float64)

    ###########################################################################
    # Arc length strategy
    ###########################################################################

    @abstractmethod
    def _on_cache_update(self) -> None:
        """Recompute the strategy's arc length data from the fresh coefficients."""

    @property
    @abstractmethod
    def arc_lengths(self) -> NDArray[np.float64]:
        """Cumulative, non-decreasing arc length table; its last entry is the total length."""

    @abstractmethod
    def time_from_progress(self, progress: float) -> float:
        """Curve time at which the given fraction of the total length is reached."""

    @abstractmethod
    def progress_from_time(self, time: float) -> float:
        """Fraction of the total length covered at curve *time*."""

    @property
    def total_length(self) -> float:
        """Approximated length of the whole curve."""
        return float(self.arc_lengths[-1])

    def distance_from_progress(self, progress: float) -> float:
        """Arc length covered at *progress*."""
        return CurveMath.assert_in_range(progress, "progress") * self.total_length
