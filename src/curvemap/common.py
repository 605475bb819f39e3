"""Shared types, errors and small helpers used across the curve modules."""

from __future__ import annotations

from typing import Callable, Literal, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

###############################################################################
# Types
###############################################################################

Axis = Literal["X", "Y", "Z"]  # Type-Definition for coordinate axes

PointLike = Union[Sequence[float], NDArray[np.float64]]
PointsLike = Union[Sequence[Sequence[float]], NDArray[np.float64]]

# Evaluates one axis row (4,) or all axis rows (3, 4) of cubic coefficients at a segment time
CoefficientsProcessor = Callable[[float, NDArray[np.float64]], Union[float, NDArray[np.float64]]]

AXIS_INDEX = {"X": 0, "Y": 1, "Z": 2}


###############################################################################
# Errors
###############################################################################


class CurveError(ValueError):
    """Base class of all curve validation failures."""


class InvalidPointCountError(CurveError):
    """Raised when a curve is given fewer than 2 points."""


class OutOfRangeParameterError(CurveError):
    """Raised when curviness, softness, time, progress or a threshold is out of range."""


class InvalidSegmentIndexError(CurveError, IndexError):
    """Raised when a segment index does not exist on the curve."""


class QuadratureOrderOutOfRangeError(CurveError):
    """Raised when no Gauss-Legendre table exists for the requested order."""


class DegenerateLookupTableError(CurveError):
    """Raised when a lookup table is requested with fewer than 2 samples."""


###############################################################################
# CurveMath
###############################################################################


class CurveMath:
    """Static helpers for range checks, index mapping and vector handling."""

    @staticmethod
    def assert_in_range(value: float, name: str = "value") -> float:
        """Return *value* unchanged if it lies in [0, 1].

        Raises:
            OutOfRangeParameterError: If the value is outside [0, 1] or NaN.
        """
        if not 0.0 <= value <= 1.0:
            raise OutOfRangeParameterError(f"{name} ({value}) is not in range [0, 1]")
        return value

    @staticmethod
    def wrap_index(index: int, count: int) -> int:
        """Wrap an index into 0..count-1 (negative indices wrap from the end)."""
        return index % count

    @staticmethod
    def binary_search(target: float, sorted_values: NDArray[np.float64]) -> int:
        """Index *i* of the last value <= *target* in a non-decreasing array.

        Targets at or beyond the last value return the last index, targets
        below the first value return 0.
        """
        last = len(sorted_values) - 1
        if target >= sorted_values[last]:
            return last
        if target <= sorted_values[0]:
            return 0
        return int(np.searchsorted(sorted_values, target, side="right")) - 1

    @staticmethod
    def axis_index(axis: Union[Axis, int]) -> int:
        """Translate an axis name ("X", "Y", "Z") or number (0, 1, 2) into a column index."""
        if isinstance(axis, str):
            try:
                return AXIS_INDEX[axis.upper()]
            except KeyError as err:
                raise CurveError(f"Unknown axis '{axis}', expected one of X, Y, Z") from err
        if axis not in (0, 1, 2):
            raise CurveError(f"Unknown axis {axis}, expected one of 0, 1, 2")
        return int(axis)

    @staticmethod
    def as_point(point: PointLike) -> NDArray[np.float64]:
        """Convert a 3-sequence into a float64 array of shape (3,)."""
        arr = np.asarray(point, dtype=np.float64)
        if arr.shape != (3,):
            raise CurveError(f"point must have shape (3,), got {arr.shape}")
        return arr

    @staticmethod
    def as_points(points: PointsLike) -> NDArray[np.float64]:
        """Convert a sequence of points into a read-only float64 array of shape (n, 3).

        Raises:
            InvalidPointCountError: If fewer than 2 points are given.
        """
        arr = np.array(points, dtype=np.float64)
        if arr.size == 0:
            arr = arr.reshape((0, 3))
        if arr.ndim != 2 or arr.shape[1] != 3:
            raise CurveError(f"points must have shape (n, 3), got {arr.shape}")
        if arr.shape[0] < 2:
            raise InvalidPointCountError(f"A curve needs at least 2 points, got {arr.shape[0]}")
        arr.flags.writeable = False
        return arr

    @staticmethod
    def normalize(vector: NDArray[np.float64]) -> NDArray[np.float64]:
        """Return the unit vector of *vector*, or a zero vector if its length is 0."""
        length = float(np.linalg.norm(vector))
        if length == 0.0:
            return np.zeros_like(vector)
        return vector / length

    @staticmethod
    def iteration_progress(iteration: float, total: int) -> float:
        """Map a 0-based (possibly fractional) iteration onto [0, 1] over *total* steps."""
        return min(max(iteration / total, 0.0), 1.0)
