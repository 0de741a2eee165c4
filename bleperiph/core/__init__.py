"""
Core package initialisation for bleperiph.

Deliberately kept lightweight: configuration, logging and the error
taxonomy only.  D-Bus objects live in ``bleperiph.dbuslayer``.
"""

from bleperiph.core.errors import (
    PeripheralError,
    AdapterNotFoundError,
    ReferenceLostError,
    InvalidStateError,
    ConfigurationError,
    UnknownInterfaceError,
)

__all__ = [
    "PeripheralError",
    "AdapterNotFoundError",
    "ReferenceLostError",
    "InvalidStateError",
    "ConfigurationError",
    "UnknownInterfaceError",
]
