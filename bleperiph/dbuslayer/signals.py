"""Connection tracking from BlueZ ObjectManager signals.

BlueZ announces device objects with ``InterfacesAdded`` and retires them with
``InterfacesRemoved`` on its root object manager.  ``ConnectionTracker``
listens to both (scoped to the unique bus name currently owning
``org.bluez``) and folds them into one global *connected* flag.

Signal callbacks run on the GLib main loop.  They only flip the flag inline;
host listener callbacks are handed to a scheduler (``GLib.idle_add`` by
default) so a slow listener never blocks signal dispatch.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, List, Optional, Protocol, runtime_checkable

import dbus
from gi.repository import GLib

from bleperiph.bt_ref.constants import (
    BLUEZ_OM_PATH,
    BLUEZ_SERVICE_NAME,
    DBUS_OM_IFACE,
    DEVICE_ADDRESS_PROPERTY_KEY,
    DEVICE_INTERFACE,
)
from bleperiph.bt_ref.utils import dbus_to_python
from bleperiph.core.log import get_logger, print_and_log, LOG__CONNECTION, LOG__DEBUG

__all__ = ["ApplicationListener", "AtomicFlag", "ConnectionTracker"]

logger = get_logger(__name__)

Scheduler = Callable[..., Any]


@runtime_checkable
class ApplicationListener(Protocol):
    """Host callbacks for central connect/disconnect events."""

    def device_connected(self, address: str) -> None:
        ...

    def device_disconnected(self, identifier: str) -> None:
        ...


class AtomicFlag:
    """Boolean cell safe to read and write from any thread."""

    def __init__(self, value: bool = False):
        self._value = bool(value)
        self._lock = threading.Lock()

    def get(self) -> bool:
        with self._lock:
            return self._value

    def set(self, value: bool) -> bool:
        """Store *value* and return the previous one."""
        with self._lock:
            previous = self._value
            self._value = bool(value)
            return previous

    def __bool__(self) -> bool:
        return self.get()

    def __repr__(self) -> str:
        return f"AtomicFlag({self.get()})"


def _glib_idle_scheduler(func, *args):
    GLib.idle_add(func, *args)


class ConnectionTracker:
    """Derives connected/disconnected state from BlueZ object signals.

    Parameters
    ----------
    state : AtomicFlag
        Cell receiving the connected flag; owned by the application
    listener : ApplicationListener, optional
        Receives ``device_connected(address)`` / ``device_disconnected(identifier)``
    scheduler : callable, optional
        ``scheduler(func, *args)`` queues a listener invocation; defaults to
        ``GLib.idle_add`` on the default main context
    """

    def __init__(
        self,
        state: AtomicFlag,
        listener: Optional[ApplicationListener] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self._state = state
        self._listener = listener
        self._scheduler = scheduler or _glib_idle_scheduler
        self._matches: List = []
        self._lock = threading.Lock()
        self.last_identifier: Optional[str] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def connected(self) -> bool:
        return self._state.get()

    def is_subscribed(self) -> bool:
        return bool(self._matches)

    def subscribe(self, bus) -> None:
        """Attach InterfacesAdded/InterfacesRemoved receivers on *bus*."""
        if self._matches:
            return
        sender = self._bluez_owner(bus)
        print_and_log(
            f"[DEBUG] Connection tracker listening to {sender} on {BLUEZ_OM_PATH}", LOG__DEBUG
        )
        match_added = bus.add_signal_receiver(
            self._interfaces_added,
            dbus_interface=DBUS_OM_IFACE,
            signal_name="InterfacesAdded",
            bus_name=sender,
            path=BLUEZ_OM_PATH,
        )
        try:
            match_removed = bus.add_signal_receiver(
                self._interfaces_removed,
                dbus_interface=DBUS_OM_IFACE,
                signal_name="InterfacesRemoved",
                bus_name=sender,
                path=BLUEZ_OM_PATH,
            )
        except Exception:
            match_added.remove()
            raise
        self._matches.extend([match_added, match_removed])

    def unsubscribe(self) -> None:
        """Detach both receivers; the connected flag is left untouched."""
        for match in self._matches:
            try:
                match.remove()
            except Exception as e:
                logger.debug(f"Removing signal match failed: {e}")
        self._matches.clear()

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def _interfaces_added(self, object_path, interfaces):
        properties = interfaces.get(DEVICE_INTERFACE)
        if properties is None:
            return
        address = dbus_to_python(properties.get(DEVICE_ADDRESS_PROPERTY_KEY))
        if address is None:
            logger.warning(f"Device {object_path} announced without an Address, ignored")
            return
        with self._lock:
            self._state.set(True)
            self.last_identifier = address
        print_and_log(f"[+] Device connected: {address} ({object_path})", LOG__CONNECTION)
        self._dispatch("device_connected", address)

    def _interfaces_removed(self, object_path, interfaces):
        for interface in interfaces:
            if interface != DEVICE_INTERFACE:
                continue
            identifier = str(interface)
            with self._lock:
                self._state.set(False)
                self.last_identifier = identifier
            print_and_log(f"[-] Device disconnected: {object_path}", LOG__CONNECTION)
            self._dispatch("device_disconnected", identifier)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _bluez_owner(bus) -> str:
        try:
            return str(bus.get_name_owner(BLUEZ_SERVICE_NAME))
        except dbus.exceptions.DBusException as e:
            # dbus-python resolves well-known names itself once BlueZ shows up.
            logger.warning(f"Could not resolve owner of {BLUEZ_SERVICE_NAME}: {e}")
            return BLUEZ_SERVICE_NAME

    def _dispatch(self, callback_name: str, argument) -> None:
        if self._listener is None:
            return
        callback = getattr(self._listener, callback_name)
        self._scheduler(self._invoke, callback, argument)

    @staticmethod
    def _invoke(callback, argument):
        try:
            callback(argument)
        except Exception as e:
            logger.error(f"Listener callback {getattr(callback, '__name__', callback)} failed: {e}")
        # One-shot when scheduled through GLib.idle_add
        return False
