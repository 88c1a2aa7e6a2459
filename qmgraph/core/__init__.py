"""
Quality Model Graph Core Module - Version 1.0

Entity graph, construction layer and value types for Quamoco-style quality
models.

Graph Model:
    Nodes: Factor (Factor, ProductFactor, QualityAspect,
           QualityInUseAttribute, Requirement), Measure, MeasureAggregation,
           Function, Impact
    Provenance: Source, Tag, Annotation, Entity
    Edges: REFINES, MEASURES, AGGREGATES, IMPACTS

Usage:
    from qmgraph.core import QualityModel, MeasureType, InfluenceEffect
    from qmgraph.core import model_builder as qm

    maintainability = qm.quality_aspect("Maintainability").create()
    cohesion = qm.product_factor("Cohesion").create()
    impact = (qm.impact().origin(cohesion).target(maintainability)
              .effect(InfluenceEffect.POSITIVE).severity(2)
              .justification("Cohesive classes are easier to change").create())

    model = QualityModel("demo", [maintainability, cohesion, impact])
    print(model.summary())
"""

from .enums import (
    MeasureType,
    InfluenceEffect,
    FactorKind,
    AggregationKind,
    FunctionKind,
    CombinationPolicy,
    CyclePolicy,
    StructuralErrorKind,
)

from .errors import (
    QualityModelError,
    ConstructionError,
    StructuralError,
    CycleError,
    NonConvergenceError,
    InvalidModelError,
)

from .elements import (
    Tag,
    Annotation,
    Source,
    Entity,
    new_identifier,
)

from .values import (
    NO_DATA,
    NoData,
    Finding,
    RawInput,
    is_no_data,
    as_findings,
)

from .quality_model import (
    Factor,
    Measure,
    MeasureAggregation,
    Function,
    Impact,
    QualityModel,
)

from . import model_builder

__all__ = [
    # Enums
    "MeasureType",
    "InfluenceEffect",
    "FactorKind",
    "AggregationKind",
    "FunctionKind",
    "CombinationPolicy",
    "CyclePolicy",
    "StructuralErrorKind",
    # Errors
    "QualityModelError",
    "ConstructionError",
    "StructuralError",
    "CycleError",
    "NonConvergenceError",
    "InvalidModelError",
    # Provenance
    "Tag",
    "Annotation",
    "Source",
    "Entity",
    "new_identifier",
    # Values
    "NO_DATA",
    "NoData",
    "Finding",
    "RawInput",
    "is_no_data",
    "as_findings",
    # Entities
    "Factor",
    "Measure",
    "MeasureAggregation",
    "Function",
    "Impact",
    "QualityModel",
    # Builders
    "model_builder",
]

__version__ = "1.0.0"
