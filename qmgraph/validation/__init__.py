"""
Quality Model Validation Module

Structural checks run before evaluation.

Usage:
    from qmgraph.validation import ModelValidator, validate

    result = ModelValidator(model).validate()
    if not result.is_valid:
        print(result.summary())

    errors = validate(model)   # List[StructuralError]
"""

from .model_validator import (
    ValidationResult,
    ModelValidator,
    validate,
)

__all__ = [
    "ValidationResult",
    "ModelValidator",
    "validate",
]

__version__ = "1.0.0"
