"""GATT characteristic object exported under a service path.

The characteristic does not store its value: reads and writes are delegated
to a host supplied *value provider* (anything with ``get_value()`` and
``set_value(bytes)``), notifications re-read the provider and are emitted as
``PropertiesChanged`` on ``org.bluez.GattCharacteristic1``.
"""

from __future__ import annotations

import enum
import threading
from typing import Any, Dict, Iterable, List, Protocol, Union, runtime_checkable

import dbus
import dbus.service

from bleperiph.bt_ref.constants import (
    DBUS_PROPERTIES,
    GATT_CHARACTERISTIC_INTERFACE,
)
from bleperiph.bt_ref.utils import bytes_to_hex
from bleperiph.core.errors import (
    FailedException,
    InvalidOffsetException,
    NotPermittedException,
    NotSupportedException,
    UnknownInterfaceError,
)
from bleperiph.core.log import get_logger

__all__ = [
    "Characteristic",
    "CharacteristicFlag",
    "StaticValueProvider",
    "ValueProvider",
]

logger = get_logger(__name__)


@runtime_checkable
class ValueProvider(Protocol):
    """Source and sink of a characteristic's value, implemented by the host."""

    def get_value(self) -> bytes:
        ...

    def set_value(self, value: bytes) -> None:
        ...


class StaticValueProvider:
    """In-memory value provider; what is written is what is read back."""

    def __init__(self, value: Union[bytes, bytearray, str] = b""):
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._value = bytes(value)
        self._lock = threading.Lock()

    def get_value(self) -> bytes:
        with self._lock:
            return self._value

    def set_value(self, value: bytes) -> None:
        with self._lock:
            self._value = bytes(value)


class CharacteristicFlag(str, enum.Enum):
    BROADCAST = "broadcast"
    READ = "read"
    WRITE_WITHOUT_RESPONSE = "write-without-response"
    WRITE = "write"
    NOTIFY = "notify"
    INDICATE = "indicate"
    AUTHENTICATED_SIGNED_WRITES = "authenticated-signed-writes"
    EXTENDED_PROPERTIES = "extended-properties"
    RELIABLE_WRITE = "reliable-write"
    WRITABLE_AUXILIARIES = "writable-auxiliaries"
    ENCRYPT_READ = "encrypt-read"
    ENCRYPT_WRITE = "encrypt-write"
    ENCRYPT_AUTHENTICATED_READ = "encrypt-authenticated-read"
    ENCRYPT_AUTHENTICATED_WRITE = "encrypt-authenticated-write"
    SECURE_READ = "secure-read"
    SECURE_WRITE = "secure-write"
    AUTHORIZE = "authorize"


_READ_FLAGS = {
    CharacteristicFlag.READ,
    CharacteristicFlag.ENCRYPT_READ,
    CharacteristicFlag.ENCRYPT_AUTHENTICATED_READ,
    CharacteristicFlag.SECURE_READ,
}
_WRITE_FLAGS = {
    CharacteristicFlag.WRITE,
    CharacteristicFlag.WRITE_WITHOUT_RESPONSE,
    CharacteristicFlag.AUTHENTICATED_SIGNED_WRITES,
    CharacteristicFlag.RELIABLE_WRITE,
    CharacteristicFlag.ENCRYPT_WRITE,
    CharacteristicFlag.ENCRYPT_AUTHENTICATED_WRITE,
    CharacteristicFlag.SECURE_WRITE,
}
_NOTIFY_FLAGS = {CharacteristicFlag.NOTIFY, CharacteristicFlag.INDICATE}


def _offset(options) -> int:
    return int(options.get("offset", 0)) if options else 0


class Characteristic(dbus.service.Object):
    """A GATT characteristic.

    Parameters
    ----------
    path : str
        Object path, normally below the owning service's path
    service : Service
        Owning service (used for the ``Service`` property only)
    flags : iterable of CharacteristicFlag | str
        BlueZ characteristic flags
    uuid : str
        Characteristic UUID
    provider : ValueProvider
        Host object supplying and accepting the value
    """

    SUPPORTS_MULTIPLE_CONNECTIONS = True

    def __init__(
        self,
        path: str,
        service,
        flags: Iterable[Union[CharacteristicFlag, str]],
        uuid: str,
        provider: ValueProvider,
    ):
        dbus.service.Object.__init__(self)
        self.path = path
        self.service = service
        self.flags: List[CharacteristicFlag] = [CharacteristicFlag(f) for f in flags]
        self.uuid = uuid
        self.provider = provider
        self.notifying = False
        self._bus = None

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
        self.notifying = False

    def is_exported(self) -> bool:
        return self._bus is not None

    def get_properties(self) -> Dict[str, Dict[str, Any]]:
        return {
            GATT_CHARACTERISTIC_INTERFACE: {
                "Service": self.service.get_path(),
                "UUID": dbus.String(self.uuid),
                "Flags": dbus.Array([f.value for f in self.flags], signature="s"),
            }
        }

    # ------------------------------------------------------------------
    # Host helpers
    # ------------------------------------------------------------------
    def has_flag(self, flag: Union[CharacteristicFlag, str]) -> bool:
        return CharacteristicFlag(flag) in self.flags

    def send_notification(self) -> bool:
        """Push the provider's current value to a subscribed central.

        Returns False (and sends nothing) when no central enabled
        notifications or the characteristic is not exported.
        """
        if not self.notifying or not self.is_exported():
            return False
        value = dbus.Array(self.provider.get_value(), signature="y")
        self.PropertiesChanged(GATT_CHARACTERISTIC_INTERFACE, {"Value": value}, [])
        return True

    # ------------------------------------------------------------------
    # D-Bus methods
    # ------------------------------------------------------------------
    @dbus.service.method(DBUS_PROPERTIES, in_signature="s", out_signature="a{sv}")
    def GetAll(self, interface):
        if interface != GATT_CHARACTERISTIC_INTERFACE:
            raise UnknownInterfaceError(interface)
        return self.get_properties()[GATT_CHARACTERISTIC_INTERFACE]

    @dbus.service.method(GATT_CHARACTERISTIC_INTERFACE, in_signature="a{sv}", out_signature="ay")
    def ReadValue(self, options):
        if not _READ_FLAGS.intersection(self.flags):
            raise NotPermittedException("Read not permitted")
        try:
            value = bytes(self.provider.get_value())
        except Exception as exc:
            logger.error(f"Value provider read failed for {self.uuid}: {exc}")
            raise FailedException(str(exc))
        offset = _offset(options)
        if offset > len(value):
            raise InvalidOffsetException(f"Offset {offset} beyond value length {len(value)}")
        return dbus.Array(value[offset:], signature="y")

    @dbus.service.method(GATT_CHARACTERISTIC_INTERFACE, in_signature="aya{sv}", out_signature="")
    def WriteValue(self, value, options):
        if not _WRITE_FLAGS.intersection(self.flags):
            raise NotPermittedException("Write not permitted")
        data = bytes(value)
        offset = _offset(options)
        try:
            if offset:
                current = bytes(self.provider.get_value())
                if offset > len(current):
                    raise InvalidOffsetException(
                        f"Offset {offset} beyond value length {len(current)}"
                    )
                data = current[:offset] + data
            self.provider.set_value(data)
            logger.debug(f"Wrote {bytes_to_hex(data)} to {self.uuid}")
        except dbus.exceptions.DBusException:
            raise
        except Exception as exc:
            logger.error(f"Value provider write failed for {self.uuid}: {exc}")
            raise FailedException(str(exc))

    @dbus.service.method(GATT_CHARACTERISTIC_INTERFACE, in_signature="", out_signature="")
    def StartNotify(self):
        if not _NOTIFY_FLAGS.intersection(self.flags):
            raise NotSupportedException("Notify not supported")
        if self.notifying:
            return
        self.notifying = True
        logger.debug(f"Notifications enabled on {self.path}")

    @dbus.service.method(GATT_CHARACTERISTIC_INTERFACE, in_signature="", out_signature="")
    def StopNotify(self):
        if not self.notifying:
            return
        self.notifying = False
        logger.debug(f"Notifications disabled on {self.path}")

    @dbus.service.signal(DBUS_PROPERTIES, signature="sa{sv}as")
    def PropertiesChanged(self, interface, changed, invalidated):
        pass
