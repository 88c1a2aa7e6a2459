"""
Enumerations for the quality model.

The variant families (factor kinds, aggregation kinds, function kinds) are
closed sets; each entity carries its kind as one of these enums and the
engines dispatch on it through exhaustive lookup tables.
"""

from enum import Enum


class MeasureType(str, Enum):
    """Currency a measure produces"""
    NONE = "NONE"
    FINDINGS = "FINDINGS"
    NUMBER = "NUMBER"


class InfluenceEffect(str, Enum):
    """Direction of an impact on its target factor"""
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"

    @property
    def sign(self) -> int:
        return 1 if self is InfluenceEffect.POSITIVE else -1


class FactorKind(str, Enum):
    """Factor variants"""
    FACTOR = "Factor"
    PRODUCT_FACTOR = "ProductFactor"
    QUALITY_ASPECT = "QualityAspect"
    QUALITY_IN_USE_ATTRIBUTE = "QualityInUseAttribute"
    REQUIREMENT = "Requirement"


class AggregationKind(str, Enum):
    """Measure aggregation strategies, grouped by the input they consume"""
    FINDINGS_INTERSECTION = "FindingsIntersection"
    FINDINGS_UNION = "FindingsUnion"
    NUMBER_MEAN = "NumberMean"
    NUMBER_SUM = "NumberSum"
    NUMBER_VARIANCE = "NumberVariance"
    NUMBER_MEDIAN = "NumberMedian"
    NUMBER_MIN = "NumberMin"
    NUMBER_MAX = "NumberMax"

    @property
    def input_type(self) -> MeasureType:
        """Measure type this strategy is allowed to aggregate"""
        if self in (AggregationKind.FINDINGS_INTERSECTION, AggregationKind.FINDINGS_UNION):
            return MeasureType.FINDINGS
        return MeasureType.NUMBER


class FunctionKind(str, Enum):
    """Normalization function variants"""
    LINEAR_INCREASING = "LinearIncreasing"
    LINEAR_DECREASING = "LinearDecreasing"


class CombinationPolicy(str, Enum):
    """How incoming impacts are folded into a factor's composite score"""
    WEIGHTED_AVERAGE = "weighted_average"
    BOUNDED_SUM = "bounded_sum"


class CyclePolicy(str, Enum):
    """What the propagation engine does with cyclic impact graphs"""
    FIXED_POINT = "fixed_point"
    REJECT = "reject"


class StructuralErrorKind(str, Enum):
    """Categories reported by the validation pass"""
    DANGLING_REFERENCE = "dangling_reference"
    MISSING_TARGET = "missing_target"
    MISSING_JUSTIFICATION = "missing_justification"
    MISSING_EFFECT = "missing_effect"
    MISSING_ORIGIN = "missing_origin"
    TYPE_MISMATCH = "type_mismatch"
    AMBIGUOUS_AGGREGATION = "ambiguous_aggregation"
    INVERTED_BOUNDS = "inverted_bounds"
    MISSING_BOUNDS = "missing_bounds"
    MISSING_FUNCTION = "missing_function"
    SELF_REFINEMENT = "self_refinement"
    CYCLIC_REFINEMENT = "cyclic_refinement"
