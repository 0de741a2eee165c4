"""GATT service object exported for ``org.bluez.GattService1``."""

from __future__ import annotations

from typing import Any, Dict, List

import dbus
import dbus.service

from bleperiph.bt_ref.constants import DBUS_PROPERTIES, GATT_SERVICE_INTERFACE
from bleperiph.core.errors import UnknownInterfaceError

__all__ = ["Service"]


class Service(dbus.service.Object):
    """A GATT service and its ordered characteristics.

    Only the first primary service of an application may lend its UUID to the
    advertisement.
    """

    SUPPORTS_MULTIPLE_CONNECTIONS = True

    def __init__(self, path: str, uuid: str, primary: bool = True):
        dbus.service.Object.__init__(self)
        self.path = path
        self.uuid = uuid
        self.primary = bool(primary)
        self.characteristics: List = []
        self._bus = None

    def add_characteristic(self, characteristic) -> None:
        self.characteristics.append(characteristic)

    def remove_characteristic(self, characteristic) -> None:
        self.characteristics.remove(characteristic)

    def get_characteristics(self) -> List:
        return list(self.characteristics)

    def get_characteristic_paths(self) -> List[dbus.ObjectPath]:
        return [chrc.get_path() for chrc in self.characteristics]

    def is_primary(self) -> bool:
        return self.primary

    # ------------------------------------------------------------------
    # Exportable
    # ------------------------------------------------------------------
    def get_path(self) -> dbus.ObjectPath:
        return dbus.ObjectPath(self.path)

    def export(self, bus) -> None:
        self.add_to_connection(bus, self.path)
        self._bus = bus

    def unexport(self) -> None:
        self.remove_from_connection()
        self._bus = None

    def is_exported(self) -> bool:
        return self._bus is not None

    def get_properties(self) -> Dict[str, Dict[str, Any]]:
        return {
            GATT_SERVICE_INTERFACE: {
                "UUID": dbus.String(self.uuid),
                "Primary": dbus.Boolean(self.primary),
                "Characteristics": dbus.Array(
                    self.get_characteristic_paths(), signature="o"
                ),
            }
        }

    @dbus.service.method(DBUS_PROPERTIES, in_signature="s", out_signature="a{sv}")
    def GetAll(self, interface):
        if interface != GATT_SERVICE_INTERFACE:
            raise UnknownInterfaceError(interface)
        return self.get_properties()[GATT_SERVICE_INTERFACE]
