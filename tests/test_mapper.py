"""Test module for curvemap.mapper (shared curve state and cache lifecycle)

The tests are run using pytest.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from curvemap.common import CurveError, InvalidPointCountError, OutOfRangeParameterError
from curvemap.mapper import BaseCurveMapper
from curvemap.mapper_numerical import NumericalCurveMapper
from curvemap.mapper_segmented import SegmentedCurveMapper
from curvemap.segment import SplineSegment

POINTS = [[0.0, 0.0, 0.0], [1.0, 2.0, 0.0], [3.0, 2.0, 1.0], [4.0, 0.0, 1.0]]


class CallCounter:
    """Cache listener recording every notification."""

    def __init__(self):
        self.calls = 0

    def __call__(self, mapper):
        self.calls += 1


###############################################################################
# Construction
###############################################################################


class TestConstruction:
    """Test validation at construction."""

    def test_base_mapper_is_abstract(self):
        """The base mapper needs a concrete arc length strategy"""
        with pytest.raises(TypeError):
            BaseCurveMapper(POINTS)  # pylint: disable=abstract-class-instantiated

    @pytest.mark.parametrize("points", [[], [[1.0, 2.0, 3.0]]])
    def test_too_few_points(self, points):
        """At least 2 points are needed"""
        with pytest.raises(InvalidPointCountError):
            SegmentedCurveMapper(points)

    def test_wrong_point_shape(self):
        """Points must be 3D"""
        with pytest.raises(CurveError):
            SegmentedCurveMapper([[0.0, 0.0], [1.0, 1.0]])

    @pytest.mark.parametrize("curviness,softness", [(-0.1, 0.0), (1.1, 0.0), (0.5, -0.5), (0.5, 2.0)])
    def test_shape_parameters_out_of_range(self, curviness, softness):
        """Curviness and softness must be in [0, 1]"""
        with pytest.raises(OutOfRangeParameterError):
            NumericalCurveMapper(POINTS, curviness=curviness, softness=softness)

    def test_initial_build_notifies_once(self):
        """Construction builds the caches and notifies exactly once"""
        counter = CallCounter()
        mapper = SegmentedCurveMapper(POINTS, on_cache_update=counter, sub_divisions=20)
        assert counter.calls == 1
        assert mapper.rebuild_count == 1

    def test_points_are_read_only_copy(self):
        """The mapper keeps its own read-only copy of the points"""
        source = np.array(POINTS)
        mapper = SegmentedCurveMapper(source, sub_divisions=20)
        source[0, 0] = 99.0
        assert mapper.points[0, 0] == 0.0
        with pytest.raises(ValueError):
            mapper.points[0, 0] = 1.0


###############################################################################
# Mutation lifecycle
###############################################################################


class TestMutation:
    """Every changing mutator rebuilds and notifies exactly once."""

    def setup_method(self):
        """Create a fresh mapper with a counting listener"""
        self.counter = CallCounter()
        self.mapper = SegmentedCurveMapper(POINTS, on_cache_update=self.counter, sub_divisions=20)

    def test_unchanged_values_do_not_rebuild(self):
        """Setting the current values is a no-op"""
        self.mapper.set_curviness(self.mapper.curviness)
        self.mapper.set_softness(self.mapper.softness)
        self.mapper.set_closed(self.mapper.closed)
        self.mapper.set_points([list(point) for point in POINTS])
        assert self.counter.calls == 1
        assert self.mapper.rebuild_count == 1

    @pytest.mark.parametrize(
        "attribute,value",
        [
            ("curviness", 0.9),
            ("softness", 0.5),
            ("closed", True),
            ("points", [[0.0, 0.0, 0.0], [5.0, 0.0, 0.0], [5.0, 5.0, 0.0]]),
        ],
    )
    def test_change_rebuilds_once(self, attribute, value):
        """Each changing call rebuilds and notifies exactly once"""
        before = self.mapper.coefficients
        setattr(self.mapper, attribute, value)
        assert self.counter.calls == 2
        assert self.mapper.rebuild_count == 2
        assert self.mapper.coefficients is not before

    def test_closing_adds_a_segment(self):
        """Closed curves have one segment per point"""
        assert self.mapper.segment_count == 3
        self.mapper.closed = True
        assert self.mapper.segment_count == 4
        assert self.mapper.coefficients.shape == (4, 3, 4)

    def test_invalid_curviness_keeps_state(self):
        """A rejected value leaves the previous state untouched"""
        coefficients = self.mapper.coefficients
        with pytest.raises(OutOfRangeParameterError):
            self.mapper.set_curviness(1.5)
        assert self.mapper.curviness == 0.5
        assert self.mapper.coefficients is coefficients
        assert self.counter.calls == 1

    def test_invalid_points_keep_state(self):
        """Rejected points leave the previous points in place"""
        with pytest.raises(InvalidPointCountError):
            self.mapper.set_points([[1.0, 1.0, 1.0]])
        assert_allclose(self.mapper.points, POINTS)
        assert self.counter.calls == 1

    def test_reentrant_rebuild_rejected(self):
        """Mutating the curve from its own cache listener is a usage error"""
        with pytest.raises(RuntimeError):
            SegmentedCurveMapper(POINTS, on_cache_update=lambda mapper: mapper.set_curviness(0.9), sub_divisions=20)

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda mapper: mapper.set_points([[0.0, 0.0, 0.0], [100.0, 0.0, 0.0]]),
            lambda mapper: mapper.set_curviness(0.1),
            lambda mapper: mapper.set_softness(1.0),
            lambda mapper: mapper.set_closed(True),
        ],
        ids=["points", "curviness", "softness", "closed"],
    )
    def test_reentrant_mutation_leaves_state_consistent(self, mutate):
        """A mutation refused inside a rebuild does not change the curve"""
        notifications = []

        def listener(mapper):
            notifications.append(mapper.rebuild_count)
            if len(notifications) == 2:
                mutate(mapper)

        mapper = NumericalCurveMapper(POINTS, on_cache_update=listener)
        with pytest.raises(RuntimeError):
            mapper.set_curviness(0.9)

        expected = NumericalCurveMapper(POINTS, curviness=0.9)
        assert_allclose(mapper.points, POINTS)
        assert mapper.curviness == 0.9
        assert mapper.softness == 0.0
        assert not mapper.closed
        assert mapper.segment_count == 3
        assert_allclose(mapper.coefficients, expected.coefficients)
        assert_allclose(mapper.arc_lengths, expected.arc_lengths)
        assert_allclose(mapper.evaluate_at(SplineSegment.value_at, 1.0), POINTS[-1], atol=1e-12)

        # the mapper stays usable once the listener is quiet
        mapper.set_softness(0.5)
        assert mapper.softness == 0.5

    def test_coefficients_read_only(self):
        """The coefficient cache is a read-only snapshot"""
        with pytest.raises(ValueError):
            self.mapper.coefficients[0, 0, 0] = 1.0


###############################################################################
# Evaluation
###############################################################################


class TestEvaluateAt:
    """Test mapping of curve time onto segments."""

    def setup_method(self):
        """Create a mapper with three segments"""
        self.mapper = SegmentedCurveMapper(POINTS, curviness=0.8, softness=0.5, sub_divisions=30)

    @pytest.mark.parametrize(
        "time,expected", [(0.0, (0, 0.0)), (0.5, (1, 0.5)), (1.0, (2, 1.0)), (0.25, (0, 0.75))]
    )
    def test_segment_index_and_weight(self, time, expected):
        """Time is scaled linearly over the segments, time 1 ends the last one"""
        index, weight = self.mapper.segment_index_and_weight(time)
        assert index == expected[0]
        assert weight == pytest.approx(expected[1], abs=1e-12)

    @pytest.mark.parametrize("time", [-0.01, 1.01])
    def test_time_out_of_range(self, time):
        """Times outside [0, 1] are rejected"""
        with pytest.raises(OutOfRangeParameterError):
            self.mapper.evaluate_at(SplineSegment.value_at, time)

    @pytest.mark.parametrize("time", [0.05, 0.3, 0.61, 0.99])
    def test_value_matches_segment_coefficients(self, time):
        """evaluate_at equals the direct cubic of the addressed segment"""
        index, weight = self.mapper.segment_index_and_weight(time)
        coefficients = self.mapper.segment_coefficients(index)
        expected = [
            c3 * weight**3 + c2 * weight**2 + c1 * weight + c0 for c3, c2, c1, c0 in coefficients
        ]
        assert_allclose(self.mapper.evaluate_at(SplineSegment.value_at, time), expected)

    @pytest.mark.parametrize("time", [0.1, 0.45, 0.8])
    def test_derivative_matches_finite_difference(self, time):
        """The derivative per unit segment time equals the numeric derivative over curve time"""
        h = 1e-7
        numeric = (
            self.mapper.evaluate_at(SplineSegment.value_at, time + h)
            - self.mapper.evaluate_at(SplineSegment.value_at, time - h)
        ) / (2 * h)
        derivative = self.mapper.evaluate_at(SplineSegment.derivative_at, time)
        assert_allclose(derivative * self.mapper.segment_count, numeric, rtol=1e-5, atol=1e-6)

    def test_single_segment_derivative_matches_finite_difference(self):
        """On a single segment curve time and segment time coincide"""
        mapper = NumericalCurveMapper(POINTS[:2], curviness=1.0)
        h = 1e-7
        numeric = (
            mapper.evaluate_at(SplineSegment.value_at, 0.3 + h) - mapper.evaluate_at(SplineSegment.value_at, 0.3 - h)
        ) / (2 * h)
        assert_allclose(mapper.evaluate_at(SplineSegment.derivative_at, 0.3), numeric, rtol=1e-5, atol=1e-6)

    def test_open_end_points(self):
        """Open curves start at the first and end at the last point"""
        assert_allclose(self.mapper.evaluate_at(SplineSegment.value_at, 0.0), POINTS[0])
        assert_allclose(self.mapper.evaluate_at(SplineSegment.value_at, 1.0), POINTS[-1], atol=1e-12)

    def test_closed_end_points(self):
        """Closed curves return to the first point"""
        self.mapper.closed = True
        assert_allclose(self.mapper.evaluate_at(SplineSegment.value_at, 1.0), POINTS[0], atol=1e-12)

    def test_passes_through_control_points(self):
        """Segment boundaries hit the control points"""
        for index, point in enumerate(POINTS):
            time = index / 3.0
            assert_allclose(self.mapper.evaluate_at(SplineSegment.value_at, time), point, atol=1e-12)

    def test_evaluate_many_matches_evaluate_at(self):
        """Vectorized evaluation agrees with scalar evaluation"""
        times = np.linspace(0.0, 1.0, 13)
        values = self.mapper.evaluate_many(SplineSegment.value_at, times)
        assert values.shape == (13, 3)
        for time, value in zip(times, values):
            assert_allclose(value, self.mapper.evaluate_at(SplineSegment.value_at, time), atol=1e-12)
