"""Arc length approximation by uniform polyline subdivision."""

from __future__ import annotations

import math
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from curvemap.common import CurveError, CurveMath, PointsLike
from curvemap.consts import DEFAULT_CURVINESS, DEFAULT_SOFTNESS, DEFAULT_SUB_DIVISIONS
from curvemap.mapper import BaseCurveMapper, CacheListener
from curvemap.segment import SplineSegment


class SegmentedCurveMapper(BaseCurveMapper):
    """
    Approximate the curve by `sub_divisions` straight pieces of equal time.

    The cumulative lengths of those pieces map between "time" and "progress"
    by binary search and linear interpolation.
    """

    def __init__(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        points: PointsLike,
        curviness: float = DEFAULT_CURVINESS,
        softness: float = DEFAULT_SOFTNESS,
        closed: bool = False,
        on_cache_update: Optional[CacheListener] = None,
        sub_divisions: int = DEFAULT_SUB_DIVISIONS,
    ):
        super().__init__(points, curviness, softness, closed, on_cache_update)
        if sub_divisions < 1:
            raise CurveError(f"sub_divisions must be at least 1, got {sub_divisions}")
        self._sub_divisions = int(sub_divisions)
        self._arc_lengths: NDArray[np.float64] = np.zeros(1, dtype=np.float64)
        self._initialize()

    @property
    def sub_divisions(self) -> int:
        """Number of straight pieces used to approximate the curve."""
        return self._sub_divisions

    @property
    def arc_lengths(self) -> NDArray[np.float64]:
        """Cumulative lengths at the sub_divisions + 1 sample times."""
        return self._arc_lengths

    def _on_cache_update(self) -> None:
        times = np.linspace(0.0, 1.0, self._sub_divisions + 1)
        samples = self.evaluate_many(SplineSegment.value_at, times)
        distances = np.linalg.norm(np.diff(samples, axis=0), axis=1)
        lengths = np.concatenate(([0.0], np.cumsum(distances)))
        lengths.flags.writeable = False
        self._arc_lengths = lengths

    def time_from_progress(self, progress: float) -> float:
        CurveMath.assert_in_range(progress, "progress")
        if progress in (0.0, 1.0):
            return float(progress)

        lengths = self._arc_lengths
        total_length = lengths[-1]
        if total_length == 0:
            return float(progress)

        target = progress * total_length
        index = CurveMath.binary_search(target, lengths)
        if lengths[index] == target:
            return CurveMath.iteration_progress(index, self._sub_divisions)

        length_before = lengths[index]
        length_after = lengths[index + 1]
        fraction = (target - length_before) / (length_after - length_before)
        return CurveMath.iteration_progress(index + fraction, self._sub_divisions)

    def progress_from_time(self, time: float) -> float:
        CurveMath.assert_in_range(time, "time")
        if time in (0.0, 1.0):
            return float(time)

        lengths = self._arc_lengths
        total_length = lengths[-1]
        if total_length == 0:
            return float(time)

        scaled = time * self._sub_divisions
        index = math.floor(scaled)
        if scaled == index:
            return float(lengths[index] / total_length)

        sample_time = index / self._sub_divisions
        sample_point = self.evaluate_at(SplineSegment.value_at, sample_time)
        point = self.evaluate_at(SplineSegment.value_at, time)
        length = lengths[index] + np.linalg.norm(point - sample_point)
        return min(float(length / total_length), 1.0)
