"""
Componentry - Core Module

Foundational pieces shared by every other package. Currently this is the
unified error hierarchy raised by the container.

Usage:
    from core import ContainerError, CycleError, StateError

    try:
        container.init()
    except CycleError as e:
        print(e.cycles)
"""

from core.errors import (
    ComponentLookupError,
    ConfigurationError,
    ContainerError,
    CycleError,
    ErrorContext,
    ErrorSeverity,
    MissingPropertyError,
    StateError,
    format_cycles,
)

__all__ = [
    # Base
    "ContainerError",
    "ErrorContext",
    "ErrorSeverity",
    # Taxonomy
    "StateError",
    "ConfigurationError",
    "CycleError",
    "ComponentLookupError",
    "MissingPropertyError",
    # Helpers
    "format_cycles",
]
