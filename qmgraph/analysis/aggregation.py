"""
Aggregation Engine

Reduces the raw inputs of a measure to a single value.

Findings strategies work on sets of findings compared by location:
    FindingsIntersection: findings reported by every input
    FindingsUnion:        findings reported by any input

Number strategies work on multisets of reals:
    NumberMean, NumberSum, NumberMedian, NumberMin, NumberMax
    NumberVariance: population variance (ddof=0) unless configured as
                    sample variance (ddof=1)

Every strategy is order-independent: number inputs are reduced in sorted
order so results are bit-identical however the inputs were supplied. An
empty input yields NO_DATA, never zero.
"""

from __future__ import annotations

import logging
import math
from functools import reduce
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union

import networkx as nx
import numpy as np

from qmgraph.core.enums import AggregationKind, MeasureType, StructuralErrorKind
from qmgraph.core.errors import CycleError, StructuralError
from qmgraph.core.quality_model import Measure, MeasureAggregation, QualityModel
from qmgraph.core.values import NO_DATA, FindingSet, MeasureValue, NoData, RawInput, as_findings

logger = logging.getLogger(__name__)

Strategy = Union[MeasureAggregation, AggregationKind, str]
RawInputs = Mapping[str, Iterable]


# =============================================================================
# Input coercion
# =============================================================================

def _input_value(raw) -> Union[FindingSet, float, NoData]:
    """Unwrap a RawInput (or bare value) into a finding set or a float"""
    value = raw.value if isinstance(raw, RawInput) else raw
    if value is NO_DATA or value is None:
        return NO_DATA
    if isinstance(value, frozenset):
        return as_findings(value)
    if isinstance(value, bool):
        raise TypeError(f"Boolean is not a measure value: {value!r}")
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)
    if isinstance(value, (set, list, tuple)):
        return as_findings(value)
    raise TypeError(f"Unsupported measure input: {value!r}")


# =============================================================================
# Reducers
# =============================================================================

def _findings_intersection(sets: List[FindingSet]) -> FindingSet:
    return reduce(lambda a, b: a & b, sets)


def _findings_union(sets: List[FindingSet]) -> FindingSet:
    return frozenset().union(*sets)


def _number_variance(values: np.ndarray, ddof: int) -> Union[float, NoData]:
    if len(values) <= ddof:
        return NO_DATA
    return float(np.var(values, ddof=ddof))


_FINDINGS_REDUCERS: Dict[AggregationKind, Callable[[List[FindingSet]], FindingSet]] = {
    AggregationKind.FINDINGS_INTERSECTION: _findings_intersection,
    AggregationKind.FINDINGS_UNION: _findings_union,
}

_NUMBER_REDUCERS: Dict[AggregationKind, Callable[[np.ndarray, int], Union[float, NoData]]] = {
    AggregationKind.NUMBER_MEAN: lambda v, ddof: float(np.mean(v)),
    AggregationKind.NUMBER_SUM: lambda v, ddof: float(np.sum(v)),
    AggregationKind.NUMBER_VARIANCE: _number_variance,
    AggregationKind.NUMBER_MEDIAN: lambda v, ddof: float(np.median(v)),
    AggregationKind.NUMBER_MIN: lambda v, ddof: float(np.min(v)),
    AggregationKind.NUMBER_MAX: lambda v, ddof: float(np.max(v)),
}


def aggregate(strategy: Strategy, inputs: Iterable, ddof: int = 0,
              element_id: Optional[str] = None) -> MeasureValue:
    """
    Reduce inputs with an aggregation strategy.

    Args:
        strategy: MeasureAggregation element or AggregationKind
        inputs: RawInput objects or bare values (numbers, finding sets);
                NO_DATA entries are ignored
        ddof: delta degrees of freedom for NumberVariance
        element_id: identifier reported in errors (defaults to the strategy's)

    Returns:
        A frozenset of findings, a float, or NO_DATA for empty input
    """
    if isinstance(strategy, MeasureAggregation):
        kind = strategy.kind
        element_id = element_id or strategy.identifier
    else:
        kind = AggregationKind(strategy)

    values = [v for v in (_input_value(raw) for raw in inputs) if v is not NO_DATA]

    if kind.input_type is MeasureType.FINDINGS:
        if any(not isinstance(v, frozenset) for v in values):
            raise StructuralError(
                StructuralErrorKind.TYPE_MISMATCH,
                f"{kind.value} aggregation received a number input",
                element_id,
            )
        if not values:
            return NO_DATA
        return _FINDINGS_REDUCERS[kind](values)

    if any(isinstance(v, frozenset) for v in values):
        raise StructuralError(
            StructuralErrorKind.TYPE_MISMATCH,
            f"{kind.value} aggregation received a findings input",
            element_id,
        )
    numbers = [v for v in values if not math.isnan(v)]
    if len(numbers) < len(values):
        logger.warning(f"Discarded {len(values) - len(numbers)} NaN input(s) for {element_id or kind.value}")
    if not numbers:
        return NO_DATA
    return _NUMBER_REDUCERS[kind](np.array(sorted(numbers), dtype=float), ddof)


# =============================================================================
# Measure Aggregator
# =============================================================================

class MeasureAggregator:
    """
    Computes the value of every measure in a model.

    A measure's inputs are its raw inputs plus the values of the sub-measures
    refining it. Measures are evaluated in refinement order, each once.
    """

    def __init__(self, model: QualityModel, ddof: int = 0,
                 default_findings: AggregationKind = AggregationKind.FINDINGS_UNION,
                 default_number: AggregationKind = AggregationKind.NUMBER_MEAN):
        self.model = model
        self.ddof = ddof
        self.default_findings = default_findings
        self.default_number = default_number
        self.logger = logging.getLogger(__name__)

    def evaluation_order(self) -> List[str]:
        """Measure identifiers with every sub-measure before its parent"""
        G = self.model.measure_graph()
        try:
            return list(nx.lexicographical_topological_sort(G))
        except nx.NetworkXUnfeasible:
            cyclic = [c for c in nx.strongly_connected_components(G) if len(c) > 1]
            cyclic += [{n} for n in nx.nodes_with_selfloops(G)]
            raise CycleError(sorted(cyclic, key=min)[0], "Cyclic measure refinement")

    def strategy_for(self, measure: Measure) -> AggregationKind:
        declared = self.model.aggregation_for(measure.identifier)
        if declared is not None:
            return declared.kind
        if measure.measure_type is MeasureType.FINDINGS:
            return self.default_findings
        return self.default_number

    def aggregate_all(self, raw_inputs: Optional[RawInputs] = None) -> Dict[str, MeasureValue]:
        raw_inputs = raw_inputs or {}
        unknown = sorted(set(raw_inputs) - set(self.model.measures))
        if unknown:
            self.logger.warning(f"Ignoring raw inputs for {len(unknown)} unknown measure(s): {', '.join(unknown)}")

        values: Dict[str, MeasureValue] = {}
        for mid in self.evaluation_order():
            measure = self.model.measures[mid]
            values[mid] = self.aggregate_measure(measure, raw_inputs.get(mid, ()), values)

        with_data = sum(1 for v in values.values() if v is not NO_DATA)
        self.logger.info(f"Aggregated {len(values)} measures ({with_data} with data)")
        return values

    def aggregate_measure(self, measure: Measure, raw: Iterable,
                          computed: Mapping[str, MeasureValue]) -> MeasureValue:
        raw = list(raw or ())
        if measure.measure_type is MeasureType.NONE:
            if raw:
                self.logger.debug(f"Measure '{measure.name}' has type NONE; ignoring {len(raw)} input(s)")
            return NO_DATA

        inputs = raw + [
            computed.get(sub.identifier, NO_DATA)
            for sub in self.model.sub_measures(measure.identifier)
        ]
        value = aggregate(self.strategy_for(measure), inputs, self.ddof, measure.identifier)
        if value is not NO_DATA:
            measure.lock_type()
        self.logger.debug(f"Measure '{measure.name}' = {_describe(value)}")
        return value


def _describe(value: MeasureValue) -> str:
    if isinstance(value, frozenset):
        return f"{len(value)} finding(s)"
    return repr(value)
