"""
Model Builder - fluent construction of quality model elements

Each element kind has a dedicated builder:
- mandatory identity fields are taken when the builder is created
- optional fields are set through chained setters
- multi-valued edges are added through chained adders with set semantics
  (adding None or an already present edge is a silent no-op)
- create() returns the wired element; a builder can be consumed only once

Edges that touch other elements (refines, measures, target, origin, ...)
are recorded while building and applied on create(), so a build that fails
leaves the referenced elements untouched. create() does not check graph
structure; run the validation pass for that.

Usage:
    from qmgraph.core import model_builder as qm

    analysability = qm.quality_aspect("Analysability").create()
    complexity = (qm.measure("Cyclomatic complexity")
                  .measure_type(MeasureType.NUMBER)
                  .measures(analysability)
                  .function(qm.linear_decreasing().lower_bound(1).upper_bound(20).create())
                  .create())
"""

from typing import Callable, List, Optional

from .elements import Annotation, Entity, Source, Tag
from .enums import AggregationKind, FactorKind, FunctionKind, InfluenceEffect, MeasureType
from .errors import ConstructionError
from .quality_model import Factor, Function, Impact, Measure, MeasureAggregation


# =============================================================================
# Base Builders
# =============================================================================

class _Builder:
    """Single-use builder holding one element under construction"""

    def __init__(self, element):
        self._element = element
        self._pending: List[Callable[[], None]] = []

    def _open(self):
        if self._element is None:
            raise ConstructionError(f"{type(self).__name__} has already produced its element")
        return self._element

    def _defer(self, action: Callable[[], None]) -> '_Builder':
        self._open()
        self._pending.append(action)
        return self

    def _check_mandatory(self, element) -> None:
        """Raise ConstructionError when a mandatory field is missing"""

    def create(self):
        element = self._open()
        self._check_mandatory(element)
        for action in self._pending:
            action()
        self._pending.clear()
        self._element = None
        return element

    # Shared optional fields
    def tagged_by(self, tag: Optional[Tag]):
        element = self._open()
        return self._defer(lambda: element.add_tag(tag))

    def annotation(self, annotation: Optional[Annotation]):
        element = self._open()
        return self._defer(lambda: element.add_annotation(annotation))

    def title(self, title: str):
        self._open().title = title
        return self

    def description(self, description: str):
        self._open().description = description
        return self


class _ProvenanceBuilder(_Builder):
    """Builder for elements that can cite Sources"""

    def originates_from(self, source: Optional[Source]):
        element = self._open()
        return self._defer(lambda: element.add_originates_from(source))


class _NamedBuilder(_ProvenanceBuilder):

    def _check_mandatory(self, element) -> None:
        if not isinstance(element.name, str) or not element.name.strip():
            raise ConstructionError(f"{type(element).__name__} requires a non-empty name", element.identifier)


# =============================================================================
# Provenance Builders
# =============================================================================

class SourceBuilder(_Builder):
    """Sources are provenance roots: there is no originates_from adder"""

    def __init__(self, name: str, identifier: Optional[str] = None):
        super().__init__(Source(name, identifier))

    def _check_mandatory(self, element) -> None:
        if not isinstance(element.name, str) or not element.name.strip():
            raise ConstructionError("Source requires a non-empty name", element.identifier)


class EntityBuilder(_NamedBuilder):

    def __init__(self, name: str, identifier: Optional[str] = None):
        super().__init__(Entity(name, identifier))


# =============================================================================
# Factor Builder
# =============================================================================

class FactorBuilder(_NamedBuilder):
    """Builds any factor variant"""

    def __init__(self, name: str, kind: FactorKind = FactorKind.FACTOR, identifier: Optional[str] = None):
        super().__init__(Factor(name, FactorKind(kind), identifier))

    def characterizes(self, entity: Optional[Entity]) -> 'FactorBuilder':
        element = self._open()
        if entity is not None:
            self._defer(lambda: element.set_characterizes(entity))
        return self

    def refines(self, factor: Optional[Factor]) -> 'FactorBuilder':
        element = self._open()
        return self._defer(lambda: element.add_refines(factor))

    def impacts(self, impact: Optional[Impact]) -> 'FactorBuilder':
        """Add an outgoing impact originating from the factor being built"""
        element = self._open()
        return self._defer(lambda: element.add_impact(impact))


# =============================================================================
# Measure Builder
# =============================================================================

class MeasureBuilder(_NamedBuilder):

    def __init__(self, name: str, identifier: Optional[str] = None):
        super().__init__(Measure(name, identifier))

    def measure_type(self, measure_type: MeasureType) -> 'MeasureBuilder':
        self._open().measure_type = measure_type
        return self

    def characterizes(self, entity: Optional[Entity]) -> 'MeasureBuilder':
        element = self._open()
        if entity is not None:
            self._defer(lambda: element.set_characterizes(entity))
        return self

    def refines(self, measure: Optional[Measure]) -> 'MeasureBuilder':
        element = self._open()
        return self._defer(lambda: element.add_refines(measure))

    def measures(self, factor: Optional[Factor]) -> 'MeasureBuilder':
        element = self._open()
        return self._defer(lambda: element.add_measures(factor))

    def function(self, function: Optional[Function]) -> 'MeasureBuilder':
        element = self._open()
        if function is not None:
            self._defer(lambda: element.set_function(function))
        return self

    def normalizer(self, measure: Optional[Measure]) -> 'MeasureBuilder':
        element = self._open()
        if measure is not None:
            self._defer(lambda: element.set_normalizer(measure))
        return self


# =============================================================================
# Impact Builder
# =============================================================================

class ImpactBuilder(_ProvenanceBuilder):
    """Nothing is mandatory at creation; validation checks target and justification"""

    def __init__(self, identifier: Optional[str] = None):
        super().__init__(Impact(identifier))
        self._target: Optional[Factor] = None
        self._origin: Optional[Factor] = None

    def target(self, factor: Optional[Factor]) -> 'ImpactBuilder':
        element = self._open()
        if factor is not None:
            previous, self._target = self._target, factor
            self._defer(lambda: element.set_target(factor, previous))
        return self

    def origin(self, factor: Optional[Factor]) -> 'ImpactBuilder':
        """The last origin given wins; earlier ones are detached on create()"""
        element = self._open()
        if factor is not None:
            previous, self._origin = self._origin, factor
            self._defer(lambda: factor.add_impact(element, previous))
        return self

    def effect(self, effect: InfluenceEffect) -> 'ImpactBuilder':
        self._open().effect = InfluenceEffect(effect)
        return self

    def justification(self, justification: str) -> 'ImpactBuilder':
        self._open().justification = justification
        return self

    def severity(self, severity: int) -> 'ImpactBuilder':
        self._open().severity = severity
        return self

    def future_target(self, factor_name: str) -> 'ImpactBuilder':
        self._open().future_target = factor_name
        return self


# =============================================================================
# Aggregation & Function Builders
# =============================================================================

class AggregationBuilder(_ProvenanceBuilder):

    def __init__(self, kind: AggregationKind, identifier: Optional[str] = None):
        super().__init__(MeasureAggregation(AggregationKind(kind), identifier))

    def aggregates(self, measure: Optional[Measure]) -> 'AggregationBuilder':
        element = self._open()
        return self._defer(lambda: element.add_aggregate(measure))


class FunctionBuilder(_ProvenanceBuilder):

    def __init__(self, kind: FunctionKind, identifier: Optional[str] = None):
        super().__init__(Function(FunctionKind(kind), identifier))

    def lower_bound(self, value: float) -> 'FunctionBuilder':
        self._open().lower_bound = float(value)
        return self

    def upper_bound(self, value: float) -> 'FunctionBuilder':
        self._open().upper_bound = float(value)
        return self


# =============================================================================
# Entry Points
# =============================================================================

def source(name: str, identifier: Optional[str] = None) -> SourceBuilder:
    return SourceBuilder(name, identifier)


def entity(name: str, identifier: Optional[str] = None) -> EntityBuilder:
    return EntityBuilder(name, identifier)


def factor(name: str, identifier: Optional[str] = None) -> FactorBuilder:
    return FactorBuilder(name, FactorKind.FACTOR, identifier)


def product_factor(name: str, identifier: Optional[str] = None) -> FactorBuilder:
    return FactorBuilder(name, FactorKind.PRODUCT_FACTOR, identifier)


def quality_aspect(name: str, identifier: Optional[str] = None) -> FactorBuilder:
    return FactorBuilder(name, FactorKind.QUALITY_ASPECT, identifier)


def quality_in_use_attribute(name: str, identifier: Optional[str] = None) -> FactorBuilder:
    return FactorBuilder(name, FactorKind.QUALITY_IN_USE_ATTRIBUTE, identifier)


def requirement(name: str, identifier: Optional[str] = None) -> FactorBuilder:
    return FactorBuilder(name, FactorKind.REQUIREMENT, identifier)


def measure(name: str, identifier: Optional[str] = None) -> MeasureBuilder:
    return MeasureBuilder(name, identifier)


def impact(identifier: Optional[str] = None) -> ImpactBuilder:
    return ImpactBuilder(identifier)


def findings_intersection(identifier: Optional[str] = None) -> AggregationBuilder:
    return AggregationBuilder(AggregationKind.FINDINGS_INTERSECTION, identifier)


def findings_union(identifier: Optional[str] = None) -> AggregationBuilder:
    return AggregationBuilder(AggregationKind.FINDINGS_UNION, identifier)


def number_mean(identifier: Optional[str] = None) -> AggregationBuilder:
    return AggregationBuilder(AggregationKind.NUMBER_MEAN, identifier)


def number_sum(identifier: Optional[str] = None) -> AggregationBuilder:
    return AggregationBuilder(AggregationKind.NUMBER_SUM, identifier)


def number_variance(identifier: Optional[str] = None) -> AggregationBuilder:
    return AggregationBuilder(AggregationKind.NUMBER_VARIANCE, identifier)


def number_median(identifier: Optional[str] = None) -> AggregationBuilder:
    return AggregationBuilder(AggregationKind.NUMBER_MEDIAN, identifier)


def number_min(identifier: Optional[str] = None) -> AggregationBuilder:
    return AggregationBuilder(AggregationKind.NUMBER_MIN, identifier)


def number_max(identifier: Optional[str] = None) -> AggregationBuilder:
    return AggregationBuilder(AggregationKind.NUMBER_MAX, identifier)


def linear_increasing(identifier: Optional[str] = None) -> FunctionBuilder:
    return FunctionBuilder(FunctionKind.LINEAR_INCREASING, identifier)


def linear_decreasing(identifier: Optional[str] = None) -> FunctionBuilder:
    return FunctionBuilder(FunctionKind.LINEAR_DECREASING, identifier)
