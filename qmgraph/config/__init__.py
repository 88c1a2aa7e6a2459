"""
Configuration Package

Evaluation settings. The dependency injection container lives in
qmgraph.config.container, which depends on the analysis package:

    from qmgraph.config import Settings
    from qmgraph.config.container import Container

    container = Container.from_settings(Settings.from_yaml("evaluation.yaml"))
    result = container.evaluator(model).evaluate(raw_inputs)
"""

from .settings import Settings, default_severity_weights

__all__ = [
    "Settings",
    "default_severity_weights",
]
