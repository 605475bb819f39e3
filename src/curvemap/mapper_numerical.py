"""Arc length approximation by Gauss-Legendre quadrature with a monotone cubic inverse."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from numpy.typing import NDArray

from curvemap.common import CurveError, CurveMath, PointsLike
from curvemap.consts import (
    DEFAULT_CURVINESS,
    DEFAULT_INVERSE_SAMPLES,
    DEFAULT_QUADRATURE_ORDER,
    DEFAULT_SOFTNESS,
    NEAR_LINEAR_CURVINESS,
)
from curvemap.mapper import BaseCurveMapper, CacheListener
from curvemap.quadrature import GaussLegendre
from curvemap.segment import SplineSegment


###############################################################################
# InverseSamples
###############################################################################


@dataclass(frozen=True)
class InverseSamples:
    """
    Length/time samples of one segment and the interpolant that inverts them.

    Attributes:
        lengths: Arc length from the segment start at each uniform sample time.
        slopes: Reciprocal speed (dt/dl) at each sample time.
        degree2: Quadratic coefficient of each interval's cubic in (l - lengths[i]).
        degree3: Cubic coefficient of each interval's cubic in (l - lengths[i]).
    """

    lengths: NDArray[np.float64]
    slopes: NDArray[np.float64]
    degree2: NDArray[np.float64]
    degree3: NDArray[np.float64]

    @property
    def length(self) -> float:
        """Total length of the segment."""
        return float(self.lengths[-1])


###############################################################################
# NumericalCurveMapper
###############################################################################


class NumericalCurveMapper(BaseCurveMapper):
    """
    Integrate the speed of every segment with Gauss-Legendre quadrature.

    Per segment, `inverse_samples` uniform times are integrated once on each
    cache update and a monotone piecewise cubic Hermite interpolant through
    the (length, time) pairs, with slopes dt/dl, inverts a length back to a
    segment time without integrating again.
    """

    def __init__(
        # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        points: PointsLike,
        curviness: float = DEFAULT_CURVINESS,
        softness: float = DEFAULT_SOFTNESS,
        closed: bool = False,
        on_cache_update: Optional[CacheListener] = None,
        quadrature_order: int = DEFAULT_QUADRATURE_ORDER,
        inverse_samples: int = DEFAULT_INVERSE_SAMPLES,
    ):
        super().__init__(points, curviness, softness, closed, on_cache_update)
        GaussLegendre.coefficients(quadrature_order)  # validates the order
        if inverse_samples < 2:
            raise CurveError(f"inverse_samples must be at least 2, got {inverse_samples}")
        self._quadrature_order = int(quadrature_order)
        self._inverse_samples = int(inverse_samples)
        self._arc_lengths: NDArray[np.float64] = np.zeros(1, dtype=np.float64)
        self._samples: List[InverseSamples] = []
        self._initialize()

    @property
    def quadrature_order(self) -> int:
        """Order of the Gauss-Legendre quadrature."""
        return self._quadrature_order

    @property
    def inverse_samples(self) -> int:
        """Number of length/time samples per segment."""
        return self._inverse_samples

    @property
    def arc_lengths(self) -> NDArray[np.float64]:
        """Cumulative lengths at the segment_count + 1 segment boundaries."""
        return self._arc_lengths

    def segment_samples(self, index: int) -> InverseSamples:
        """Inverse samples of segment *index*."""
        return self._samples[index]

    ###########################################################################
    # Cache update
    ###########################################################################

    def _on_cache_update(self) -> None:
        self._samples = [self._compute_samples(index) for index in range(self.segment_count)]
        lengths = np.concatenate(([0.0], np.cumsum([samples.length for samples in self._samples])))
        lengths.flags.writeable = False
        self._arc_lengths = lengths

    def segment_arc_length(self, index: int, t0: float = 0.0, t1: float = 1.0) -> float:
        """Length of segment *index* between the segment times t0 and t1."""
        coefficients = self._coefficients[index]

        def speed(nodes: NDArray[np.float64]) -> NDArray[np.float64]:
            return np.linalg.norm(SplineSegment.derivative_at(nodes[:, None], coefficients), axis=1)

        return GaussLegendre.integrate(speed, t0, t1, self._quadrature_order)

    def _compute_samples(self, index: int) -> InverseSamples:
        count = self._inverse_samples
        coefficients = self._coefficients[index]
        times = np.linspace(0.0, 1.0, count)

        lengths = np.array([self.segment_arc_length(index, 0.0, t) for t in times], dtype=np.float64)

        speeds = np.linalg.norm(SplineSegment.derivative_at(times[:, None], coefficients), axis=1)
        slopes = np.zeros(count, dtype=np.float64)
        np.divide(1.0, speeds, out=slopes, where=speeds != 0)
        if self._curviness < NEAR_LINEAR_CURVINESS:
            # near linear segments have extreme slopes at their end points
            slopes = np.clip(slopes, -1.0, 1.0)

        # Hermite interval coefficients in the length delta, see inverse lookup
        step = 1.0 / (count - 1)
        length_diffs = np.diff(lengths)
        valid = length_diffs > 0
        safe_diffs = np.where(valid, length_diffs, 1.0)
        secants = step / safe_diffs
        slopes = self._limit_slopes(slopes, secants, valid)
        degree3 = np.where(valid, (slopes[:-1] + slopes[1:] - 2.0 * secants) / safe_diffs**2, 0.0)
        degree2 = np.where(valid, (3.0 * secants - 2.0 * slopes[:-1] - slopes[1:]) / safe_diffs, 0.0)

        for arr in (lengths, slopes, degree2, degree3):
            arr.flags.writeable = False
        return InverseSamples(lengths, slopes, degree2, degree3)

    @staticmethod
    def _limit_slopes(
        slopes: NDArray[np.float64], secants: NDArray[np.float64], valid: NDArray[np.bool_]
    ) -> NDArray[np.float64]:
        """Fritsch-Carlson limiter: keep each interval's cubic monotone."""
        slopes = slopes.copy()
        for i in np.flatnonzero(valid):
            secant = secants[i]
            alpha = slopes[i] / secant
            beta = slopes[i + 1] / secant
            radius = alpha * alpha + beta * beta
            if radius > 9.0:
                tau = 3.0 / math.sqrt(radius)
                slopes[i] = tau * alpha * secant
                slopes[i + 1] = tau * beta * secant
        return slopes

    ###########################################################################
    # Conversions
    ###########################################################################

    def segment_time_from_length(self, index: int, length: float) -> float:
        """Segment time at which segment *index* has covered *length*."""
        samples = self._samples[index]
        lengths = samples.lengths
        if length >= lengths[-1]:
            return 1.0
        if length <= 0:
            return 0.0

        i = CurveMath.binary_search(length, lengths)
        sample_time = i / (self._inverse_samples - 1)
        if lengths[i] == length:
            return sample_time

        delta = length - lengths[i]
        time = ((samples.degree3[i] * delta + samples.degree2[i]) * delta + samples.slopes[i]) * delta + sample_time
        return min(max(float(time), 0.0), 1.0)

    def time_from_progress(self, progress: float) -> float:
        CurveMath.assert_in_range(progress, "progress")
        if progress in (0.0, 1.0):
            return float(progress)

        lengths = self._arc_lengths
        total_length = lengths[-1]
        if total_length == 0:
            return float(progress)

        segment_count = self.segment_count
        target = progress * total_length
        index = CurveMath.binary_search(target, lengths)
        if lengths[index] == target:
            return CurveMath.iteration_progress(index, segment_count)

        fraction = self.segment_time_from_length(index, target - lengths[index])
        return CurveMath.iteration_progress(index + fraction, segment_count)

    def progress_from_time(self, time: float) -> float:
        CurveMath.assert_in_range(time, "time")
        if time in (0.0, 1.0):
            return float(time)

        lengths = self._arc_lengths
        total_length = lengths[-1]
        if total_length == 0:
            return float(time)

        scaled = time * self.segment_count
        index = math.floor(scaled)
        if scaled == index:
            return float(lengths[index] / total_length)

        partial = self.segment_arc_length(index, 0.0, scaled - index)
        return min(float((lengths[index] + partial) / total_length), 1.0)
