"""LE advertisement object exported for ``org.bluez.LEAdvertisingManager1``.

BlueZ reads the advertisement through ``org.freedesktop.DBus.Properties.GetAll``
right after ``RegisterAdvertisement``; the property dictionary is rebuilt on
every query so late changes (e.g. the primary service UUID copied in by the
application) are always visible.
"""

from __future__ import annotations

import enum
from typing import Any, Dict, List, Mapping, Optional, Union

import dbus
import dbus.service

from bleperiph.bt_ref.constants import (
    ADVERTISEMENT_INTERFACE,
    ADVERTISEMENT_TYPE_PROPERTY_KEY,
    ADVERTISEMENT_SERVICE_UUIDS_PROPERTY_KEY,
    ADVERTISEMENT_SOLICIT_UUIDS_PROPERTY_KEY,
    ADVERTISEMENT_MANUFACTURER_DATA_PROPERTY_KEY,
    ADVERTISEMENT_SERVICE_DATA_PROPERTY_KEY,
    ADVERTISEMENT_INCLUDE_TX_POWER_PROPERTY_KEY,
    DBUS_PROPERTIES,
)
from bleperiph.bt_ref.utils import payload_to_dbus_bytes
from bleperiph.core.errors import UnknownInterfaceError
from bleperiph.core.log import get_logger

__all__ = ["Advertisement", "AdvertisementType"]

logger = get_logger(__name__)

Payload = Union[int, bytes, bytearray]


class AdvertisementType(str, enum.Enum):
    BROADCAST = "broadcast"
    PERIPHERAL = "peripheral"


class Advertisement(dbus.service.Object):
    """Advertisement payload published at a fixed object path.

    Parameters
    ----------
    ad_type : AdvertisementType | str
        ``broadcast`` or ``peripheral``
    path : str
        Absolute object path; owned applications use ``<app path>/advertisement``
    """

    # dbus-python remembers the first connection even after
    # remove_from_connection(); a restart exports on a fresh private bus.
    SUPPORTS_MULTIPLE_CONNECTIONS = True

    def __init__(self, ad_type: Union[AdvertisementType, str], path: str):
        dbus.service.Object.__init__(self)
        self.ad_type = AdvertisementType(ad_type)
        self.path = path
        self.service_uuids: List[str] = []
        self.solicit_uuids: List[str] = []
        self.manufacturer_data: Optional[Dict[int, Payload]] = None
        self.service_data: Optional[Dict[str, Payload]] = None
        self.include_tx_power = True
        self._bus = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def add_service(self, service) -> None:
        """Advertise *service*'s UUID."""
        self.service_uuids.append(service.uuid)

    def add_solicited(self, service) -> None:
        """Solicit *service*'s UUID."""
        self.solicit_uuids.append(service.uuid)

    def set_type(self, ad_type: Union[AdvertisementType, str]) -> None:
        self.ad_type = AdvertisementType(ad_type)

    def set_manufacturer_data(self, manufacturer_data: Optional[Mapping[int, Payload]]) -> None:
        self.manufacturer_data = None if manufacturer_data is None else dict(manufacturer_data)

    def set_service_data(self, service_data: Optional[Mapping[str, Payload]]) -> None:
        self.service_data = None if service_data is None else dict(service_data)

    def set_include_tx_power(self, include_tx_power: bool) -> None:
        self.include_tx_power = bool(include_tx_power)

    def has_services(self) -> bool:
        return bool(self.service_uuids)

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
        properties: Dict[str, Any] = {
            ADVERTISEMENT_TYPE_PROPERTY_KEY: dbus.String(self.ad_type.value),
        }
        if self.service_uuids:
            properties[ADVERTISEMENT_SERVICE_UUIDS_PROPERTY_KEY] = dbus.Array(
                self.service_uuids, signature="s"
            )
        if self.solicit_uuids:
            properties[ADVERTISEMENT_SOLICIT_UUIDS_PROPERTY_KEY] = dbus.Array(
                self.solicit_uuids, signature="s"
            )
        if self.manufacturer_data is not None:
            properties[ADVERTISEMENT_MANUFACTURER_DATA_PROPERTY_KEY] = dbus.Dictionary(
                {
                    dbus.UInt16(company_id): payload_to_dbus_bytes(payload)
                    for company_id, payload in self.manufacturer_data.items()
                },
                signature="qv",
            )
        if self.service_data is not None:
            properties[ADVERTISEMENT_SERVICE_DATA_PROPERTY_KEY] = dbus.Dictionary(
                {
                    dbus.String(uuid): payload_to_dbus_bytes(payload)
                    for uuid, payload in self.service_data.items()
                },
                signature="sv",
            )
        properties[ADVERTISEMENT_INCLUDE_TX_POWER_PROPERTY_KEY] = dbus.Boolean(
            self.include_tx_power
        )
        return {ADVERTISEMENT_INTERFACE: properties}

    # Single-key access is not supported by this object; BlueZ only uses GetAll.
    def get_property(self, interface: str, name: str):
        return None

    def set_property(self, interface: str, name: str, value) -> None:
        return None

    # ------------------------------------------------------------------
    # D-Bus methods
    # ------------------------------------------------------------------
    @dbus.service.method(DBUS_PROPERTIES, in_signature="s", out_signature="a{sv}")
    def GetAll(self, interface):
        if interface != ADVERTISEMENT_INTERFACE:
            raise UnknownInterfaceError(interface)
        return self.get_properties()[ADVERTISEMENT_INTERFACE]

    @dbus.service.method(DBUS_PROPERTIES, in_signature="ssv", out_signature="")
    def Set(self, interface, name, value):
        self.set_property(interface, name, value)

    @dbus.service.method(ADVERTISEMENT_INTERFACE, in_signature="", out_signature="")
    def Release(self):
        logger.info(f"Advertisement released: {self.path}")
