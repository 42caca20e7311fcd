"""Module contract and built-in modules."""

from .base import BaseModule, InFlightRegistry, Module, ModuleRegistry, Presenter
from .static_login import StaticLoginModule

__all__ = [
    "BaseModule",
    "InFlightRegistry",
    "Module",
    "ModuleRegistry",
    "Presenter",
    "StaticLoginModule",
]
