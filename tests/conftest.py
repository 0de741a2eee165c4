from __future__ import annotations

import os
import tempfile

# Log files and config directories go to a scratch location during tests.
_SCRATCH = tempfile.mkdtemp(prefix="bleperiph-tests-")
os.environ.setdefault("XDG_DATA_HOME", os.path.join(_SCRATCH, "data"))
os.environ.setdefault("XDG_CONFIG_HOME", os.path.join(_SCRATCH, "config"))

import dbus  # noqa: E402
import pytest  # noqa: E402
from gi.repository import GLib  # noqa: E402

from bleperiph.bt_ref.constants import (  # noqa: E402
    ADAPTER_INTERFACE,
    ADVERTISING_MANAGER_INTERFACE,
    DEVICE_INTERFACE,
    GATT_MANAGER_INTERFACE,
)
from bleperiph.dbuslayer.application import Application  # noqa: E402
from bleperiph.dbuslayer.characteristic import Characteristic, StaticValueProvider  # noqa: E402
from bleperiph.dbuslayer.service import Service  # noqa: E402

ADAPTER_PATH = "/org/bluez/hci0"
PRIMARY_UUID = "13333333-3333-3333-3333-333333333001"
CHAR_UUID = "13333333-3333-3333-3333-333333333002"


class FakeMatch:
    def __init__(self, bus, entry):
        self.bus = bus
        self.entry = entry

    def remove(self):
        self.bus.receivers.remove(self.entry)


class FakeMethod:
    def __init__(self, proxy, member, interface):
        self.proxy = proxy
        self.member = member
        self.interface = interface

    def __call__(self, *args, reply_handler=None, error_handler=None, **kwargs):
        bus = self.proxy.bus
        bus.calls.append((self.proxy.path, self.interface, self.member, args))
        error = bus.errors.get(self.member)
        if reply_handler is None and error_handler is None:
            if error is not None:
                raise error
            return bus.responses.get(self.member)
        if bus.defer_replies:
            # Delivered by whoever iterates the default main context.
            GLib.idle_add(_deliver, reply_handler, error_handler, error)
        else:
            _deliver(reply_handler, error_handler, error)
        return None


def _deliver(reply_handler, error_handler, error):
    if error is not None:
        error_handler(error)
    else:
        reply_handler()
    return False


class FakeProxy:
    def __init__(self, bus, service, path):
        self.bus = bus
        self.service = service
        self.path = path

    def get_dbus_method(self, member, dbus_interface=None):
        return FakeMethod(self, member, dbus_interface)


class FakeBus:
    """Just enough of a dbus-python connection for exporting and calling."""

    def __init__(self, managed_objects=None, owner=":1.42"):
        self.owner = owner
        self.exported = {}
        self.receivers = []
        self.calls = []
        self.sent = []
        self.errors = {}
        self.responses = {"GetManagedObjects": managed_objects or {}}
        self.defer_replies = False
        self.closed = False

    # dbus.service.Object hooks
    def _register_object_path(self, path, on_message, on_unregister=None, fallback=False):
        if path in self.exported:
            raise KeyError(f"Can't register the object-path handler for '{path}': there is already a handler")
        self.exported[path] = (on_message, on_unregister)

    def _unregister_object_path(self, path):
        del self.exported[path]

    def send_message(self, message):
        self.sent.append(message)

    # client side
    def get_object(self, service, path):
        return FakeProxy(self, service, path)

    def get_name_owner(self, name):
        return self.owner

    def add_signal_receiver(self, handler, signal_name=None, dbus_interface=None,
                            bus_name=None, path=None, **kwargs):
        entry = {
            "handler": handler,
            "signal_name": signal_name,
            "dbus_interface": dbus_interface,
            "bus_name": bus_name,
            "path": path,
        }
        self.receivers.append(entry)
        return FakeMatch(self, entry)

    def emit(self, signal_name, *args):
        for entry in list(self.receivers):
            if entry["signal_name"] == signal_name:
                entry["handler"](*args)

    def close(self):
        self.closed = True

    def called(self, member):
        return [call for call in self.calls if call[2] == member]


class RecordingListener:
    def __init__(self):
        self.connected = []
        self.disconnected = []

    def device_connected(self, address):
        self.connected.append(address)

    def device_disconnected(self, identifier):
        self.disconnected.append(identifier)


def immediate(func, *args):
    func(*args)


def adapter_graph(*extra):
    graph = {
        dbus.ObjectPath("/org/bluez"): {"org.bluez.AgentManager1": {}},
        dbus.ObjectPath(ADAPTER_PATH): {
            ADAPTER_INTERFACE: {"Address": dbus.String("00:11:22:33:44:55")},
            GATT_MANAGER_INTERFACE: {},
            ADVERTISING_MANAGER_INTERFACE: {},
        },
    }
    for path, interfaces in extra:
        graph[dbus.ObjectPath(path)] = interfaces
    return graph


def device_interfaces(address="AA:BB:CC:DD:EE:FF"):
    return dbus.Dictionary(
        {DEVICE_INTERFACE: dbus.Dictionary({"Address": dbus.String(address)}, signature="sv")},
        signature="sa{sv}",
    )


@pytest.fixture
def bus():
    return FakeBus(adapter_graph())


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def make_app(bus, listener):
    def _make(path="/test", with_service=True, target_bus=None):
        factory_bus = target_bus if target_bus is not None else bus
        app = Application(path, listener, bus_factory=lambda: factory_bus, scheduler=immediate)
        if with_service:
            service = Service(f"{path}/s", PRIMARY_UUID, True)
            service.add_characteristic(
                Characteristic(
                    f"{path}/s/c",
                    service,
                    ["read", "write", "notify"],
                    CHAR_UUID,
                    StaticValueProvider("hello"),
                )
            )
            app.add_service(service)
        return app

    return _make
