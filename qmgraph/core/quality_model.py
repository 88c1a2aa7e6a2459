"""
Quality Model - Entity Graph

Typed nodes of the quality model and the arena that owns them:

Nodes:
- Factor: {name, kind, title, description, characterizes, refines, measured_by, impacts}
- Measure: {name, type, refines, measures, function, normalizer}
- MeasureAggregation: {kind, aggregates}
- Function: {kind, lower_bound, upper_bound}
- Impact: {justification, effect, target, origin, severity, future_target}

Edges:
- REFINES (Factor -> Factor, Measure -> Measure)
- MEASURES (Measure -> Factor)
- AGGREGATES (MeasureAggregation -> Measure)
- IMPACTS (Factor -> Impact -> target Factor)

Entities reference each other by identifier only; the QualityModel resolves
identifiers to entities, so the logical graph may be cyclic while ownership
stays with the model.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple, Union

import networkx as nx

from .elements import Annotated, Entity, ProvenanceHolder, Source, add_unique
from .enums import AggregationKind, FactorKind, FunctionKind, InfluenceEffect, MeasureType
from .errors import ConstructionError

logger = logging.getLogger(__name__)

MIN_SEVERITY = 1
MAX_SEVERITY = 5


# =============================================================================
# Factor
# =============================================================================

class Factor(ProvenanceHolder):
    """A quality attribute, aspect or requirement whose degree is assessed"""

    def __init__(self, name: str, kind: FactorKind = FactorKind.FACTOR, identifier: Optional[str] = None):
        super().__init__(identifier)
        self.name = name
        self.kind = kind
        self.title: Optional[str] = None
        self.description: Optional[str] = None
        self.characterizes: Optional[str] = None
        self._refines: List[str] = []
        self._refined_by: List[str] = []
        self._measured_by: List[str] = []
        self._impacts: List[str] = []
        self._influenced_by: List[str] = []

    @classmethod
    def builder(cls, name: str, kind: FactorKind = FactorKind.FACTOR, identifier: Optional[str] = None):
        from .model_builder import FactorBuilder
        return FactorBuilder(name, kind, identifier)

    @property
    def refines(self) -> Tuple[str, ...]:
        return tuple(self._refines)

    @property
    def refined_by(self) -> Tuple[str, ...]:
        return tuple(self._refined_by)

    @property
    def measured_by(self) -> Tuple[str, ...]:
        return tuple(self._measured_by)

    @property
    def impacts(self) -> Tuple[str, ...]:
        """Identifiers of outgoing impacts"""
        return tuple(self._impacts)

    @property
    def influenced_by(self) -> Tuple[str, ...]:
        """Identifiers of incoming impacts"""
        return tuple(self._influenced_by)

    def set_characterizes(self, entity: Optional[Entity]) -> None:
        self.characterizes = entity.identifier if entity is not None else None

    def add_refines(self, factor: Optional['Factor']) -> None:
        """Register this factor as refining `factor` (and `factor` as refined by this one)"""
        if factor is None:
            return
        if add_unique(self._refines, factor.identifier):
            add_unique(factor._refined_by, self.identifier)

    def remove_refines(self, factor: 'Factor') -> None:
        if factor.identifier in self._refines:
            self._refines.remove(factor.identifier)
            if self.identifier in factor._refined_by:
                factor._refined_by.remove(self.identifier)

    def add_impact(self, impact: Optional['Impact'], previous_origin: Optional['Factor'] = None) -> None:
        """
        Register an outgoing impact and record this factor as its origin.

        When the impact already leaves previous_origin, it is detached from
        that factor first so an impact has exactly one origin.
        """
        if impact is None:
            return
        if (previous_origin is not None and previous_origin is not self
                and impact.origin_id == previous_origin.identifier):
            previous_origin.remove_impact(impact)
        if add_unique(self._impacts, impact.identifier):
            impact.origin_id = self.identifier
            impact.origin_name = self.name

    def remove_impact(self, impact: 'Impact') -> None:
        if impact.identifier in self._impacts:
            self._impacts.remove(impact.identifier)
            impact.origin_id = None
            impact.origin_name = None

    def _register_measured_by(self, measure_id: str) -> None:
        add_unique(self._measured_by, measure_id)

    def _unregister_measured_by(self, measure_id: str) -> None:
        if measure_id in self._measured_by:
            self._measured_by.remove(measure_id)

    def _register_influenced_by(self, impact_id: str) -> None:
        add_unique(self._influenced_by, impact_id)

    def _unregister_influenced_by(self, impact_id: str) -> None:
        if impact_id in self._influenced_by:
            self._influenced_by.remove(impact_id)

    def to_dict(self) -> Dict:
        data = self._provenance_dict()
        data.update({
            'name': self.name,
            'kind': self.kind.value,
            'title': self.title,
            'description': self.description,
            'characterizes': self.characterizes,
            'refines': list(self._refines),
            'refined_by': list(self._refined_by),
            'measured_by': list(self._measured_by),
            'impacts': list(self._impacts),
            'influenced_by': list(self._influenced_by),
        })
        return data

    def __repr__(self) -> str:
        return f"{self.kind.value}(name={self.name!r}, id={self.identifier!r})"


# =============================================================================
# Impact
# =============================================================================

class Impact(ProvenanceHolder):
    """
    A directed, justified influence of one factor on another.

    Severity ranges from 1 (most severe) to 5 (least severe). Assigning a
    value outside that range is ignored and the previous value is kept.
    """

    def __init__(self, identifier: Optional[str] = None):
        super().__init__(identifier)
        self.justification: Optional[str] = None
        self.effect: Optional[InfluenceEffect] = None
        self.target_id: Optional[str] = None
        self.origin_id: Optional[str] = None
        self.origin_name: Optional[str] = None
        self.future_target: Optional[str] = None
        self._severity: Optional[int] = None

    @classmethod
    def builder(cls, identifier: Optional[str] = None):
        from .model_builder import ImpactBuilder
        return ImpactBuilder(identifier)

    @property
    def severity(self) -> Optional[int]:
        return self._severity

    @severity.setter
    def severity(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            logger.debug(f"Impact {self.identifier}: ignoring non-integer severity {value!r}")
            return
        if MIN_SEVERITY <= value <= MAX_SEVERITY:
            self._severity = value
        else:
            logger.debug(f"Impact {self.identifier}: ignoring out-of-range severity {value}")

    def set_target(self, factor: Optional[Factor], previous: Optional[Factor] = None) -> None:
        """Point the impact at factor, dropping the back-reference held by previous"""
        if factor is None:
            return
        if previous is not None and previous is not factor and previous.identifier == self.target_id:
            previous._unregister_influenced_by(self.identifier)
        self.target_id = factor.identifier
        factor._register_influenced_by(self.identifier)

    @property
    def is_inert(self) -> bool:
        """An impact without a live target does not take part in propagation"""
        return self.target_id is None

    def to_dict(self) -> Dict:
        data = self._provenance_dict()
        data.update({
            'justification': self.justification,
            'effect': self.effect.value if self.effect else None,
            'target': self.target_id,
            'origin': self.origin_id,
            'origin_name': self.origin_name,
            'severity': self._severity,
            'future_target': self.future_target,
        })
        return data

    def __repr__(self) -> str:
        effect = self.effect.value if self.effect else None
        return (f"Impact(id={self.identifier!r}, effect={effect}, origin={self.origin_id!r}, "
                f"target={self.target_id!r}, severity={self._severity})")


# =============================================================================
# Measure
# =============================================================================

class Measure(ProvenanceHolder):
    """
    Quantifies one or more factors.

    A measure is fed by raw inputs and by the values of the sub-measures that
    refine it. Its type is locked once a value has flowed through it.
    """

    def __init__(self, name: str, identifier: Optional[str] = None):
        super().__init__(identifier)
        self.name = name
        self.title: Optional[str] = None
        self.description: Optional[str] = None
        self.characterizes: Optional[str] = None
        self.function_id: Optional[str] = None
        self.normalizer_id: Optional[str] = None
        self._type: MeasureType = MeasureType.NONE
        self._type_locked = False
        self._refines: List[str] = []
        self._refined_by: List[str] = []
        self._measures: List[str] = []

    @classmethod
    def builder(cls, name: str, identifier: Optional[str] = None):
        from .model_builder import MeasureBuilder
        return MeasureBuilder(name, identifier)

    @property
    def measure_type(self) -> MeasureType:
        return self._type

    @measure_type.setter
    def measure_type(self, value: MeasureType) -> None:
        value = MeasureType(value)
        if self._type_locked and value is not self._type:
            raise ConstructionError(
                f"Measure type is fixed at {self._type.value} once values have flowed through it",
                self.identifier,
            )
        self._type = value

    @property
    def type_locked(self) -> bool:
        return self._type_locked

    def lock_type(self) -> None:
        self._type_locked = True

    @property
    def refines(self) -> Tuple[str, ...]:
        return tuple(self._refines)

    @property
    def refined_by(self) -> Tuple[str, ...]:
        """Sub-measures whose values feed this measure"""
        return tuple(self._refined_by)

    @property
    def measures(self) -> Tuple[str, ...]:
        """Identifiers of the factors this measure quantifies"""
        return tuple(self._measures)

    def set_characterizes(self, entity: Optional[Entity]) -> None:
        self.characterizes = entity.identifier if entity is not None else None

    def set_function(self, function: Optional['Function']) -> None:
        self.function_id = function.identifier if function is not None else None

    def set_normalizer(self, measure: Optional['Measure']) -> None:
        self.normalizer_id = measure.identifier if measure is not None else None

    def add_refines(self, measure: Optional['Measure']) -> None:
        if measure is None:
            return
        if add_unique(self._refines, measure.identifier):
            add_unique(measure._refined_by, self.identifier)

    def remove_refines(self, measure: 'Measure') -> None:
        if measure.identifier in self._refines:
            self._refines.remove(measure.identifier)
            if self.identifier in measure._refined_by:
                measure._refined_by.remove(self.identifier)

    def add_measures(self, factor: Optional[Factor]) -> None:
        if factor is None:
            return
        if add_unique(self._measures, factor.identifier):
            factor._register_measured_by(self.identifier)

    def remove_measures(self, factor: Factor) -> None:
        if factor.identifier in self._measures:
            self._measures.remove(factor.identifier)
            factor._unregister_measured_by(self.identifier)

    def to_dict(self) -> Dict:
        data = self._provenance_dict()
        data.update({
            'name': self.name,
            'title': self.title,
            'description': self.description,
            'type': self._type.value,
            'characterizes': self.characterizes,
            'refines': list(self._refines),
            'refined_by': list(self._refined_by),
            'measures': list(self._measures),
            'function': self.function_id,
            'normalizer': self.normalizer_id,
        })
        return data

    def __repr__(self) -> str:
        return f"Measure(name={self.name!r}, type={self._type.value}, id={self.identifier!r})"


# =============================================================================
# Measure Aggregation
# =============================================================================

class MeasureAggregation(ProvenanceHolder):
    """Strategy reducing the inputs of the measures it aggregates to one value each"""

    def __init__(self, kind: AggregationKind, identifier: Optional[str] = None):
        super().__init__(identifier)
        self.kind = kind
        self.title: Optional[str] = None
        self.description: Optional[str] = None
        self._aggregates: List[str] = []

    @classmethod
    def builder(cls, kind: AggregationKind, identifier: Optional[str] = None):
        from .model_builder import AggregationBuilder
        return AggregationBuilder(kind, identifier)

    @property
    def input_type(self) -> MeasureType:
        return self.kind.input_type

    @property
    def aggregates(self) -> Tuple[str, ...]:
        return tuple(self._aggregates)

    def add_aggregate(self, measure: Optional[Measure]) -> None:
        if measure is None:
            return
        add_unique(self._aggregates, measure.identifier)

    def remove_aggregate(self, measure: Measure) -> None:
        if measure.identifier in self._aggregates:
            self._aggregates.remove(measure.identifier)

    def to_dict(self) -> Dict:
        data = self._provenance_dict()
        data.update({
            'kind': self.kind.value,
            'title': self.title,
            'description': self.description,
            'aggregates': list(self._aggregates),
        })
        return data

    def __repr__(self) -> str:
        return f"{self.kind.value}Aggregation(id={self.identifier!r}, aggregates={len(self._aggregates)})"


# =============================================================================
# Function
# =============================================================================

class Function(ProvenanceHolder):
    """Maps a raw aggregated value to a utility in [0, 1]"""

    def __init__(self, kind: FunctionKind, identifier: Optional[str] = None):
        super().__init__(identifier)
        self.kind = kind
        self.title: Optional[str] = None
        self.description: Optional[str] = None
        self.lower_bound: Optional[float] = None
        self.upper_bound: Optional[float] = None

    @classmethod
    def builder(cls, kind: FunctionKind, identifier: Optional[str] = None):
        from .model_builder import FunctionBuilder
        return FunctionBuilder(kind, identifier)

    @property
    def has_bounds(self) -> bool:
        return self.lower_bound is not None and self.upper_bound is not None

    @property
    def has_valid_bounds(self) -> bool:
        return self.has_bounds and self.lower_bound < self.upper_bound

    def to_dict(self) -> Dict:
        data = self._provenance_dict()
        data.update({
            'kind': self.kind.value,
            'title': self.title,
            'description': self.description,
            'lower_bound': self.lower_bound,
            'upper_bound': self.upper_bound,
        })
        return data

    def __repr__(self) -> str:
        return f"{self.kind.value}(lower={self.lower_bound}, upper={self.upper_bound}, id={self.identifier!r})"


Element = Union[Factor, Measure, MeasureAggregation, Function, Impact, Entity, Source]


# =============================================================================
# Quality Model
# =============================================================================

class QualityModel:
    """Arena owning every element of a quality model, indexed by identifier"""

    _STORES = (
        (Factor, 'factors'),
        (Measure, 'measures'),
        (MeasureAggregation, 'aggregations'),
        (Function, 'functions'),
        (Impact, 'impacts'),
        (Entity, 'entities'),
        (Source, 'sources'),
    )

    def __init__(self, name: str = "", elements: Iterable[Element] = ()):
        self.name = name
        self.factors: Dict[str, Factor] = {}
        self.measures: Dict[str, Measure] = {}
        self.aggregations: Dict[str, MeasureAggregation] = {}
        self.functions: Dict[str, Function] = {}
        self.impacts: Dict[str, Impact] = {}
        self.entities: Dict[str, Entity] = {}
        self.sources: Dict[str, Source] = {}
        self.metadata: Dict = {}
        if elements:
            self.add(*elements)

    # Element operations
    def _store_for(self, element) -> Dict:
        for cls, attr in self._STORES:
            if isinstance(element, cls):
                return getattr(self, attr)
        raise ConstructionError(f"Cannot register {type(element).__name__} in a quality model")

    def add(self, *elements: Element) -> 'QualityModel':
        """
        Register elements with the model.

        All elements are checked before any is stored, so a duplicate
        identifier leaves the model unchanged.
        """
        pending: Dict[str, Annotated] = {}
        for element in elements:
            if element is None:
                continue
            self._store_for(element)
            existing = self.get(element.identifier) or pending.get(element.identifier)
            if existing is element:
                continue
            if existing is not None:
                raise ConstructionError("Identifier is not unique within the model", element.identifier)
            pending[element.identifier] = element
        for element in pending.values():
            self._store_for(element)[element.identifier] = element
        return self

    def get(self, identifier: Optional[str]) -> Optional[Element]:
        if identifier is None:
            return None
        for _, attr in self._STORES:
            store = getattr(self, attr)
            if identifier in store:
                return store[identifier]
        return None

    def contains(self, identifier: str) -> bool:
        return self.get(identifier) is not None

    def factor_by_name(self, name: str) -> Optional[Factor]:
        for factor in self.factors.values():
            if factor.name == name:
                return factor
        return None

    def measure_by_name(self, name: str) -> Optional[Measure]:
        for measure in self.measures.values():
            if measure.name == name:
                return measure
        return None

    # Relation queries
    def incoming_impacts(self, factor_id: str) -> List[Impact]:
        """Live impacts targeting a factor, sorted by identifier"""
        return sorted(
            (i for i in self.impacts.values() if i.target_id == factor_id),
            key=lambda i: i.identifier,
        )

    def outgoing_impacts(self, factor_id: str) -> List[Impact]:
        return sorted(
            (i for i in self.impacts.values() if i.origin_id == factor_id),
            key=lambda i: i.identifier,
        )

    def measures_of(self, factor_id: str) -> List[Measure]:
        """Measures quantifying a factor, sorted by identifier"""
        return sorted(
            (m for m in self.measures.values() if factor_id in m.measures),
            key=lambda m: m.identifier,
        )

    def refining_factors(self, factor_id: str) -> List[Factor]:
        return sorted(
            (f for f in self.factors.values() if factor_id in f.refines and f.identifier != factor_id),
            key=lambda f: f.identifier,
        )

    def sub_measures(self, measure_id: str) -> List[Measure]:
        return sorted(
            (m for m in self.measures.values() if measure_id in m.refines and m.identifier != measure_id),
            key=lambda m: m.identifier,
        )

    def aggregations_for(self, measure_id: str) -> List[MeasureAggregation]:
        return sorted(
            (a for a in self.aggregations.values() if measure_id in a.aggregates),
            key=lambda a: a.identifier,
        )

    def aggregation_for(self, measure_id: str) -> Optional[MeasureAggregation]:
        """The strategy declared for a measure, if exactly one claims it"""
        found = self.aggregations_for(measure_id)
        return found[0] if len(found) == 1 else None

    # Graph views
    def factor_graph(self, include_refinements: bool = True) -> nx.DiGraph:
        """
        Dependency graph over factors.

        An edge u -> v means v's score depends on u's: u impacts v, or u
        refines v when refinements are included.
        """
        G = nx.DiGraph()
        for fid in sorted(self.factors):
            G.add_node(fid)
        for impact in self.impacts.values():
            if impact.is_inert or impact.origin_id is None:
                continue
            if impact.origin_id in self.factors and impact.target_id in self.factors:
                G.add_edge(impact.origin_id, impact.target_id)
        if include_refinements:
            for factor in self.factors.values():
                for parent_id in factor.refines:
                    if parent_id in self.factors and parent_id != factor.identifier:
                        G.add_edge(factor.identifier, parent_id)
        return G

    def measure_graph(self) -> nx.DiGraph:
        """Edge sub -> parent for every measure refinement (sub feeds parent)"""
        G = nx.DiGraph()
        for mid in sorted(self.measures):
            G.add_node(mid)
        for measure in self.measures.values():
            for parent_id in measure.refines:
                if parent_id in self.measures:
                    G.add_edge(measure.identifier, parent_id)
        return G

    def get_statistics(self) -> Dict:
        kinds = defaultdict(int)
        for factor in self.factors.values():
            kinds[factor.kind.value] += 1
        return {
            'num_factors': len(self.factors),
            'num_measures': len(self.measures),
            'num_aggregations': len(self.aggregations),
            'num_functions': len(self.functions),
            'num_impacts': len(self.impacts),
            'num_entities': len(self.entities),
            'num_sources': len(self.sources),
            'factor_kinds': dict(kinds),
        }

    def summary(self) -> str:
        stats = self.get_statistics()
        lines = [f"Quality Model: {self.name or '<unnamed>'}", "=" * 40]
        lines.append(f"Factors:      {stats['num_factors']}")
        for kind, count in sorted(stats['factor_kinds'].items()):
            lines.append(f"  {kind}: {count}")
        lines.append(f"Measures:     {stats['num_measures']}")
        lines.append(f"Aggregations: {stats['num_aggregations']}")
        lines.append(f"Functions:    {stats['num_functions']}")
        lines.append(f"Impacts:      {stats['num_impacts']}")
        return '\n'.join(lines)

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'metadata': self.metadata,
            'factors': [f.to_dict() for f in self.factors.values()],
            'measures': [m.to_dict() for m in self.measures.values()],
            'aggregations': [a.to_dict() for a in self.aggregations.values()],
            'functions': [f.to_dict() for f in self.functions.values()],
            'impacts': [i.to_dict() for i in self.impacts.values()],
            'entities': [e.to_dict() for e in self.entities.values()],
            'sources': [s.to_dict() for s in self.sources.values()],
        }

    def __repr__(self) -> str:
        return f"QualityModel(name={self.name!r}, factors={len(self.factors)}, measures={len(self.measures)})"
