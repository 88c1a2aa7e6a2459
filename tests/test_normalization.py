"""
Unit Tests for qmgraph/analysis/normalization.py
"""

import pytest

from qmgraph.analysis import check_bounds, clamp, measure_magnitude, measure_utility, normalize
from qmgraph.core import NO_DATA, MeasureType, StructuralError, StructuralErrorKind, as_findings
from qmgraph.core import model_builder as qm


def increasing(lower=0.0, upper=10.0):
    return qm.linear_increasing().lower_bound(lower).upper_bound(upper).create()


def decreasing(lower=0.0, upper=10.0):
    return qm.linear_decreasing().lower_bound(lower).upper_bound(upper).create()


class TestLinearFunctions:
    """Endpoints, monotonicity and saturation."""

    def test_increasing_endpoints(self):
        fn = increasing(2, 6)
        assert normalize(fn, 2) == 0.0
        assert normalize(fn, 6) == 1.0
        assert normalize(fn, 3) == pytest.approx(0.25)

    def test_decreasing_endpoints(self):
        fn = decreasing(2, 6)
        assert normalize(fn, 2) == 1.0
        assert normalize(fn, 6) == 0.0
        assert normalize(fn, 3) == pytest.approx(0.75)

    @pytest.mark.parametrize("factory,direction", [(increasing, 1), (decreasing, -1)])
    def test_monotonic_across_bounds(self, factory, direction):
        fn = factory(0, 10)
        utilities = [normalize(fn, x / 4) for x in range(0, 41)]
        pairs = list(zip(utilities, utilities[1:]))
        assert all(direction * (b - a) >= 0 for a, b in pairs)

    def test_saturation_outside_bounds(self):
        assert normalize(increasing(), -5) == 0.0
        assert normalize(increasing(), 50) == 1.0
        assert normalize(decreasing(), -5) == 1.0
        assert normalize(decreasing(), 50) == 0.0

    def test_no_data_passthrough(self):
        assert normalize(increasing(), NO_DATA) is NO_DATA
        assert normalize(increasing(), float("nan")) is NO_DATA

    def test_clamp(self):
        assert clamp(-0.1) == 0.0
        assert clamp(1.2) == 1.0
        assert clamp(0.3) == 0.3


class TestBounds:
    """Functions with inverted or missing bounds are rejected."""

    @pytest.mark.parametrize("factory", [increasing, decreasing])
    def test_inverted_bounds(self, factory):
        fn = factory(10, 5)
        with pytest.raises(StructuralError) as exc:
            normalize(fn, 7)
        assert exc.value.kind is StructuralErrorKind.INVERTED_BOUNDS
        assert exc.value.element_id == fn.identifier

    def test_equal_bounds_rejected(self):
        with pytest.raises(StructuralError):
            check_bounds(increasing(5, 5))

    def test_missing_bounds(self):
        fn = qm.linear_increasing().lower_bound(0).create()
        with pytest.raises(StructuralError) as exc:
            check_bounds(fn)
        assert exc.value.kind is StructuralErrorKind.MISSING_BOUNDS


class TestMeasureUtility:
    """Findings counting and normalizer measures."""

    def test_findings_count_as_locations(self):
        assert measure_magnitude(as_findings(["a", "b", "c"])) == 3.0

    def test_normalizer_divides_magnitude(self):
        assert measure_magnitude(as_findings(["a", "b"]), 4.0) == 0.5

    @pytest.mark.parametrize("normalizer", [0.0, NO_DATA, as_findings(["x"])])
    def test_unusable_normalizer_is_no_data(self, normalizer):
        assert measure_magnitude(12.0, normalizer) is NO_DATA

    def test_measure_utility_with_normalizer(self):
        loc = qm.measure("KLOC", "kloc").measure_type(MeasureType.NUMBER).create()
        fn = decreasing(0, 10)
        measure = (qm.measure("Findings", "findings").measure_type(MeasureType.FINDINGS)
                   .function(fn).normalizer(loc).create())
        values = {"findings": as_findings(["a", "b", "c", "d"]), "kloc": 2.0}
        assert measure_utility(measure, fn, values) == pytest.approx(0.8)

    def test_measure_without_function_has_no_utility(self):
        measure = qm.measure("M", "m").measure_type(MeasureType.NUMBER).create()
        assert measure_utility(measure, None, {"m": 3.0}) is NO_DATA
