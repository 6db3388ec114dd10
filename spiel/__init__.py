"""
spiel: hand a callback an object's methods, either as an argument or ambiently.

    class Config(DSL):
        def __init__(self):
            self.items = []

        def add_item(self, item):
            self.items.append(item)

    def configure(callback):
        config = Config()
        invoke(callback, config)
        return config

    configure(lambda c: c.add_item(1))
    configure(lambda: add_item(1))
"""

from spiel.spiel_builder import Builder
from spiel.spiel_descriptors import (
    DSL, DSLType, Descriptor, bulk_expose, declare_dsl_capable, descriptor_of,
    expose, expose_method, hide, method_added, set_auto_expose,
)
from spiel.spiel_errors import BlockParameterError, DslMissingError, MissingCallbackError, SpielError
from spiel.spiel_invoke import activation, ainvoke, invoke
from spiel.spiel_registry import REGISTRY, current_execution_id
from spiel.spiel_overlay import OVERLAYS

__version__ = "0.1.0"

__all__ = [
    "Builder", "DSL", "DSLType", "Descriptor",
    "bulk_expose", "declare_dsl_capable", "descriptor_of", "expose", "expose_method",
    "hide", "method_added", "set_auto_expose",
    "BlockParameterError", "DslMissingError", "MissingCallbackError", "SpielError",
    "activation", "ainvoke", "invoke",
    "REGISTRY", "OVERLAYS", "current_execution_id",
]
