"""
Adapter lookup and control.

An adapter can host a peripheral only if it exposes both
``org.bluez.GattManager1`` and ``org.bluez.LEAdvertisingManager1``; this module
finds such an adapter in BlueZ's managed-object graph and wraps the few
adapter calls the application needs.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping, Optional

import dbus

from bleperiph.bt_ref.constants import (
    ADAPTER_INTERFACE,
    ADVERTISING_MANAGER_INTERFACE,
    BLUEZ_OM_PATH,
    BLUEZ_SERVICE_NAME,
    DBUS_OM_IFACE,
    DBUS_PROPERTIES,
    GATT_MANAGER_INTERFACE,
)
from bleperiph.bt_ref.utils import dbus_to_python
from bleperiph.core.errors import AdapterNotFoundError, map_dbus_error
from bleperiph.core.log import get_logger

__all__ = [
    "Adapter",
    "find_adapter_path",
    "get_managed_objects",
    "iter_peripheral_adapters",
]

logger = get_logger(__name__)

_REQUIRED_INTERFACES = (GATT_MANAGER_INTERFACE, ADVERTISING_MANAGER_INTERFACE)


def _is_peripheral_capable(interfaces: Mapping[str, Any]) -> bool:
    return all(iface in interfaces for iface in _REQUIRED_INTERFACES)


def iter_peripheral_adapters(managed_objects: Optional[Mapping]) -> Iterator[str]:
    """Yield every object path exposing both manager interfaces, in graph order."""
    if not managed_objects:
        return
    for path, interfaces in managed_objects.items():
        if _is_peripheral_capable(interfaces):
            yield str(path)


def find_adapter_path(managed_objects: Optional[Mapping]) -> Optional[str]:
    """Return the first peripheral-capable adapter path, or None.

    The graph is scanned in the order it is presented; when several adapters
    qualify, whichever the transport lists first wins.
    """
    return next(iter_peripheral_adapters(managed_objects), None)


def get_managed_objects(bus) -> Dict:
    """Fetch BlueZ's managed-object graph.

    Raises AdapterNotFoundError when BlueZ cannot be queried at all (daemon
    not running, no permission), since no adapter can be found either way.
    """
    try:
        object_manager = dbus.Interface(
            bus.get_object(BLUEZ_SERVICE_NAME, BLUEZ_OM_PATH), DBUS_OM_IFACE
        )
        return object_manager.GetManagedObjects()
    except dbus.exceptions.DBusException as e:
        logger.error(f"Failed to get managed objects: {e}")
        raise AdapterNotFoundError(str(map_dbus_error(e, "GetManagedObjects"))) from e


class Adapter:
    """Thin wrapper around one BlueZ adapter object and its managers."""

    def __init__(self, bus, adapter_path: str):
        self.bus = bus
        self.adapter_path = adapter_path
        adapter_object = bus.get_object(BLUEZ_SERVICE_NAME, adapter_path)
        self.adapter_properties = dbus.Interface(adapter_object, DBUS_PROPERTIES)
        self.gatt_manager = dbus.Interface(adapter_object, GATT_MANAGER_INTERFACE)
        self.advertising_manager = dbus.Interface(
            adapter_object, ADVERTISING_MANAGER_INTERFACE
        )

    @classmethod
    def locate(cls, bus) -> "Adapter":
        """Find the peripheral-capable adapter on *bus* or raise AdapterNotFoundError."""
        adapter_path = find_adapter_path(get_managed_objects(bus))
        if adapter_path is None:
            raise AdapterNotFoundError(
                f"no object exposes both {GATT_MANAGER_INTERFACE} and "
                f"{ADVERTISING_MANAGER_INTERFACE}"
            )
        logger.info(f"Using adapter {adapter_path}")
        return cls(bus, adapter_path)

    def power_on(self) -> None:
        try:
            self.adapter_properties.Set(ADAPTER_INTERFACE, "Powered", dbus.Boolean(True))
        except dbus.exceptions.DBusException as e:
            raise map_dbus_error(e, f"power on {self.adapter_path}") from e

    def set_alias(self, alias: str) -> None:
        try:
            self.adapter_properties.Set(ADAPTER_INTERFACE, "Alias", dbus.String(alias))
        except dbus.exceptions.DBusException as e:
            raise map_dbus_error(e, f"set alias on {self.adapter_path}") from e

    def get_property(self, name: str):
        """Return adapter property *name* as a plain Python value (None on failure)."""
        try:
            return dbus_to_python(self.adapter_properties.Get(ADAPTER_INTERFACE, name))
        except dbus.exceptions.DBusException as e:
            logger.debug(f"Adapter property {name} unavailable: {e}")
            return None
