"""
D-Bus layer for bleperiph.
Objects exported to BlueZ and the lifecycle that publishes them.
"""

from .advertisement import Advertisement, AdvertisementType
from .service import Service
from .characteristic import (
    Characteristic,
    CharacteristicFlag,
    StaticValueProvider,
    ValueProvider,
)
from .adapter import Adapter, find_adapter_path
from .signals import ApplicationListener, AtomicFlag, ConnectionTracker
from .registration import RegistrationOutcome, RegistrationReport
from .application import Application, ApplicationState

__all__ = [
    "Adapter",
    "Advertisement",
    "AdvertisementType",
    "Application",
    "ApplicationListener",
    "ApplicationState",
    "AtomicFlag",
    "Characteristic",
    "CharacteristicFlag",
    "ConnectionTracker",
    "RegistrationOutcome",
    "RegistrationReport",
    "Service",
    "StaticValueProvider",
    "ValueProvider",
    "find_adapter_path",
]
