"""
Normalization Layer

Maps aggregated measure values to utilities in [0, 1].

    LinearIncreasing: clamp((raw - lower) / (upper - lower))
    LinearDecreasing: clamp((upper - raw) / (upper - lower))

Values at or beyond the bounds saturate at 0 or 1. NO_DATA maps to NO_DATA.
"""

import math
from typing import Callable, Dict, Mapping, Optional, Union

from qmgraph.core.enums import FunctionKind, StructuralErrorKind
from qmgraph.core.errors import StructuralError
from qmgraph.core.quality_model import Function, Measure
from qmgraph.core.values import NO_DATA, MeasureValue, NoData

Utility = Union[float, NoData]


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _linear_increasing(raw: float, lower: float, upper: float) -> float:
    return clamp((raw - lower) / (upper - lower))


def _linear_decreasing(raw: float, lower: float, upper: float) -> float:
    return clamp((upper - raw) / (upper - lower))


_FUNCTIONS: Dict[FunctionKind, Callable[[float, float, float], float]] = {
    FunctionKind.LINEAR_INCREASING: _linear_increasing,
    FunctionKind.LINEAR_DECREASING: _linear_decreasing,
}


def check_bounds(function: Function) -> None:
    """Raise StructuralError unless lower_bound < upper_bound"""
    if not function.has_bounds:
        raise StructuralError(
            StructuralErrorKind.MISSING_BOUNDS,
            f"{function.kind.value} function requires both bounds",
            function.identifier,
        )
    if not function.lower_bound < function.upper_bound:
        raise StructuralError(
            StructuralErrorKind.INVERTED_BOUNDS,
            f"{function.kind.value} function lower bound {function.lower_bound} "
            f"must be below upper bound {function.upper_bound}",
            function.identifier,
        )


def normalize(function: Function, raw: Union[float, NoData]) -> Utility:
    """Map a raw value to its utility under `function`; NO_DATA stays NO_DATA"""
    check_bounds(function)
    if raw is NO_DATA or raw is None:
        return NO_DATA
    raw = float(raw)
    if math.isnan(raw):
        return NO_DATA
    return _FUNCTIONS[function.kind](raw, function.lower_bound, function.upper_bound)


def measure_magnitude(value: MeasureValue,
                      normalizer_value: Optional[MeasureValue] = None) -> Union[float, NoData]:
    """
    Numeric magnitude of a measure value.

    Findings count as their number of distinct locations. When a normalizer
    value is given the magnitude is divided by it (findings per KLOC, ...);
    a zero or missing normalizer yields NO_DATA.
    """
    if value is NO_DATA:
        return NO_DATA
    magnitude = float(len(value)) if isinstance(value, frozenset) else float(value)
    if normalizer_value is None:
        return magnitude
    if normalizer_value is NO_DATA or isinstance(normalizer_value, frozenset):
        return NO_DATA
    if normalizer_value == 0:
        return NO_DATA
    return magnitude / float(normalizer_value)


def measure_utility(measure: Measure, function: Optional[Function],
                    values: Mapping[str, MeasureValue]) -> Utility:
    """Utility of one measure given every measure's aggregated value"""
    if function is None:
        return NO_DATA
    normalizer = values.get(measure.normalizer_id, NO_DATA) if measure.normalizer_id else None
    return normalize(function, measure_magnitude(values.get(measure.identifier, NO_DATA), normalizer))
