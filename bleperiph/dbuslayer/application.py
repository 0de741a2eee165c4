"""
Peripheral application: lifecycle of one published GATT tree.

An :class:`Application` owns exactly one advertisement (at
``<path>/advertisement``) and an ordered list of services.  ``start()`` finds
an adapter, exports everything on a private system-bus connection, registers
with BlueZ's LE advertising and GATT managers and starts tracking centrals;
``stop()`` undoes all of it in reverse.

Registration is best-effort: when BlueZ rejects either registration the
objects stay exported, the application is RUNNING and a
:class:`~bleperiph.core.errors.ReferenceLostError` is raised afterwards.
"""

from __future__ import annotations

import enum
from typing import Any, Callable, Dict, List, Optional

import dbus
import dbus.service

from bleperiph.bt_ref.constants import DBUS_OM_IFACE
from bleperiph.core.config import ADVERTISEMENT_PATH_SUFFIX, DEFAULT_APPLICATION_PATH
from bleperiph.core.errors import InvalidStateError, ReferenceLostError
from bleperiph.core.log import get_logger, print_and_log, LOG__DEBUG, LOG__GENERAL
from bleperiph.dbuslayer.adapter import Adapter
from bleperiph.dbuslayer.advertisement import Advertisement, AdvertisementType
from bleperiph.dbuslayer.exportable import export_all, unexport_all
from bleperiph.dbuslayer.registration import RegistrationReport, call_async, wait_for
from bleperiph.dbuslayer.service import Service
from bleperiph.dbuslayer.signals import ApplicationListener, AtomicFlag, ConnectionTracker

__all__ = ["Application", "ApplicationState"]

logger = get_logger(__name__)


class ApplicationState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


def _system_bus():
    # Private so that close() on stop never tears down a connection shared
    # with other code in the process.
    return dbus.SystemBus(private=True)


def _empty_options() -> dbus.Dictionary:
    return dbus.Dictionary({}, signature="sv")


class Application(dbus.service.Object):
    """A BLE peripheral: advertisement, GATT services and connection state.

    Parameters
    ----------
    path : str
        Root object path of the application
    listener : ApplicationListener, optional
        Notified when a central connects or disconnects
    ad_type : AdvertisementType | str
        Type of the owned advertisement (``peripheral`` by default)
    bus_factory : callable, optional
        Returns a new bus connection for each ``start()``
    scheduler : callable, optional
        Dispatches listener callbacks; see :class:`ConnectionTracker`
    """

    SUPPORTS_MULTIPLE_CONNECTIONS = True

    def __init__(
        self,
        path: str = DEFAULT_APPLICATION_PATH,
        listener: Optional[ApplicationListener] = None,
        ad_type=AdvertisementType.PERIPHERAL,
        bus_factory: Optional[Callable[[], Any]] = None,
        scheduler: Optional[Callable[..., Any]] = None,
    ):
        dbus.service.Object.__init__(self)
        self.path = path
        self.listener = listener
        self.advertisement = Advertisement(ad_type, path + ADVERTISEMENT_PATH_SUFFIX)
        self.adapter_path: Optional[str] = None
        self._services: List[Service] = []
        self._adapter_alias: Optional[str] = None
        self._bus_factory = bus_factory or _system_bus
        self._bus = None
        self._adapter: Optional[Adapter] = None
        self._exported: List = []
        self._published = False
        self._state = ApplicationState.IDLE
        self._connected = AtomicFlag(False)
        self._tracker = ConnectionTracker(self._connected, listener, scheduler)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    @property
    def state(self) -> ApplicationState:
        return self._state

    @property
    def adapter_alias(self) -> Optional[str]:
        return self._adapter_alias

    @adapter_alias.setter
    def adapter_alias(self, alias: Optional[str]) -> None:
        self._adapter_alias = alias

    def set_adapter_alias(self, alias: Optional[str]) -> None:
        """Name shown to scanning centrals; applied on the next ``start()``."""
        self._adapter_alias = alias

    @property
    def services(self) -> List[Service]:
        return list(self._services)

    def add_service(self, service: Service) -> None:
        if self._state is ApplicationState.RUNNING:
            raise InvalidStateError("add_service", self._state.value)
        self._services.append(service)

    def remove_service(self, service: Service) -> None:
        if self._state is ApplicationState.RUNNING:
            raise InvalidStateError("remove_service", self._state.value)
        self._services.remove(service)

    def get_advertisement(self) -> Advertisement:
        return self.advertisement

    @property
    def connected(self) -> bool:
        return self._connected.get()

    def has_device_connected(self) -> bool:
        return self._connected.get()

    # ------------------------------------------------------------------
    # Exported tree
    # ------------------------------------------------------------------
    def get_path(self) -> dbus.ObjectPath:
        return dbus.ObjectPath(self.path)

    def export(self, bus) -> None:
        self.add_to_connection(bus, self.path)
        self._published = True

    def unexport(self) -> None:
        self.remove_from_connection()
        self._published = False

    def is_exported(self) -> bool:
        return self._published

    def get_properties(self) -> Dict[str, Dict[str, Any]]:
        return {}

    def managed_objects(self) -> Dict[dbus.ObjectPath, Dict[str, Dict[str, Any]]]:
        """Every service and characteristic path mapped to its properties."""
        response = {}
        for service in self._services:
            response[service.get_path()] = service.get_properties()
            for characteristic in service.get_characteristics():
                response[characteristic.get_path()] = characteristic.get_properties()
        return response

    def exportables(self) -> List:
        """Objects published by ``start()``, in export order."""
        objects: List = [self.advertisement]
        for service in self._services:
            objects.append(service)
            objects.extend(service.get_characteristics())
        objects.append(self)
        return objects

    @dbus.service.method(DBUS_OM_IFACE, out_signature="a{oa{sa{sv}}}")
    def GetManagedObjects(self):
        print_and_log(f"[DEBUG] GetManagedObjects on {self.path}", LOG__DEBUG)
        return self.managed_objects()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> RegistrationReport:
        """Publish the application and register it with BlueZ.

        Raises
        ------
        AdapterNotFoundError
            No adapter exposes both manager interfaces; nothing was exported
        ReferenceLostError
            A registration failed; the application is running regardless
        """
        if self._state is ApplicationState.RUNNING:
            raise InvalidStateError("start", self._state.value)

        bus = self._bus_factory()
        try:
            adapter = Adapter.locate(bus)
            adapter.power_on()
            if self._adapter_alias is not None:
                adapter.set_alias(self._adapter_alias)
        except Exception:
            bus.close()
            raise

        if not self.advertisement.has_services():
            self.update_advertisement()

        try:
            self._exported = export_all(self.exportables(), bus)
        except Exception:
            bus.close()
            raise

        self._bus = bus
        self._adapter = adapter
        self.adapter_path = adapter.adapter_path

        report = RegistrationReport("register")
        try:
            wait_for(
                call_async(
                    adapter.advertising_manager.RegisterAdvertisement,
                    (self.advertisement.get_path(), _empty_options()),
                    report.advertisement,
                    "RegisterAdvertisement",
                )
            )
            wait_for(
                call_async(
                    adapter.gatt_manager.RegisterApplication,
                    (self.get_path(), _empty_options()),
                    report.application,
                    "RegisterApplication",
                )
            )
            self._tracker.subscribe(bus)
        except BaseException:
            logger.error(f"Starting {self.path} failed after export, tearing down")
            self._teardown()
            raise

        self._state = ApplicationState.RUNNING
        print_and_log(f"[+] Peripheral {self.path} started on {self.adapter_path}", LOG__GENERAL)

        if not report.ok:
            raise ReferenceLostError("register", report)
        return report

    def stop(self) -> Optional[RegistrationReport]:
        """Unregister and unpublish; a no-op when never started.

        Raises
        ------
        ReferenceLostError
            An unregistration failed; teardown completed regardless
        """
        if self.adapter_path is None:
            return None

        adapter = self._adapter
        report = RegistrationReport("unregister")
        try:
            wait_for(
                call_async(
                    adapter.advertising_manager.UnregisterAdvertisement,
                    (self.advertisement.get_path(),),
                    report.advertisement,
                    "UnregisterAdvertisement",
                )
            )
            wait_for(
                call_async(
                    adapter.gatt_manager.UnregisterApplication,
                    (self.get_path(),),
                    report.application,
                    "UnregisterApplication",
                )
            )
        finally:
            self._teardown()
        print_and_log(f"[+] Peripheral {self.path} stopped", LOG__GENERAL)

        if not report.ok:
            raise ReferenceLostError("unregister", report)
        return report

    def _teardown(self) -> None:
        """Unexport, unsubscribe and close; always ends IDLE with no bus."""
        try:
            unexport_all(self._exported)
        finally:
            self._exported = []
            self._tracker.unsubscribe()
            if self._bus is not None:
                self._bus.close()
            self._bus = None
            self._adapter = None
            self.adapter_path = None
            self._state = ApplicationState.IDLE

    def update_advertisement(self) -> None:
        """Advertise the UUID of the first primary service, if any."""
        for service in self._services:
            if service.is_primary():
                self.advertisement.add_service(service)
                logger.debug(f"Advertising primary service {service.uuid}")
                return
