from __future__ import annotations

import dbus
import pytest

from bleperiph.bt_ref.constants import (
    ADAPTER_INTERFACE,
    ADVERTISING_MANAGER_INTERFACE,
    GATT_MANAGER_INTERFACE,
)
from bleperiph.core.errors import AdapterNotFoundError, NotPermittedError
from bleperiph.dbuslayer.adapter import (
    Adapter,
    find_adapter_path,
    get_managed_objects,
    iter_peripheral_adapters,
)

from conftest import ADAPTER_PATH, FakeBus, adapter_graph


def test_finds_adapter_with_both_managers():
    assert find_adapter_path(adapter_graph()) == ADAPTER_PATH


def test_one_manager_is_not_enough():
    graph = {
        "/org/bluez/hci0": {GATT_MANAGER_INTERFACE: {}},
        "/org/bluez/hci1": {ADVERTISING_MANAGER_INTERFACE: {}},
    }
    assert find_adapter_path(graph) is None


@pytest.mark.parametrize("graph", [None, {}])
def test_empty_graph_is_not_found(graph):
    assert find_adapter_path(graph) is None


def test_first_qualifying_adapter_in_graph_order_wins():
    both = {GATT_MANAGER_INTERFACE: {}, ADVERTISING_MANAGER_INTERFACE: {}}
    graph = {"/org/bluez/hci1": dict(both), "/org/bluez/hci0": dict(both)}
    assert find_adapter_path(graph) == "/org/bluez/hci1"
    assert list(iter_peripheral_adapters(graph)) == ["/org/bluez/hci1", "/org/bluez/hci0"]


def test_get_managed_objects_maps_dbus_failure():
    bus = FakeBus()
    bus.errors["GetManagedObjects"] = dbus.exceptions.DBusException(
        "not running", name="org.freedesktop.DBus.Error.ServiceUnknown"
    )
    with pytest.raises(AdapterNotFoundError):
        get_managed_objects(bus)


def test_locate_raises_when_no_adapter():
    with pytest.raises(AdapterNotFoundError):
        Adapter.locate(FakeBus({}))


def test_power_on_and_alias():
    bus = FakeBus(adapter_graph())
    adapter = Adapter.locate(bus)
    adapter.power_on()
    adapter.set_alias("bench")

    sets = bus.called("Set")
    assert [(c[0], c[3][0], c[3][1]) for c in sets] == [
        (ADAPTER_PATH, ADAPTER_INTERFACE, "Powered"),
        (ADAPTER_PATH, ADAPTER_INTERFACE, "Alias"),
    ]
    assert sets[1][3][2] == "bench"


def test_power_on_failure_is_mapped():
    bus = FakeBus(adapter_graph())
    bus.errors["Set"] = dbus.exceptions.DBusException(
        "rfkill", name="org.bluez.Error.NotPermitted"
    )
    adapter = Adapter(bus, ADAPTER_PATH)
    with pytest.raises(NotPermittedError):
        adapter.power_on()


def test_get_property_returns_none_on_failure():
    bus = FakeBus(adapter_graph())
    bus.responses["Get"] = dbus.String("hci0-alias")
    adapter = Adapter(bus, ADAPTER_PATH)
    assert adapter.get_property("Alias") == "hci0-alias"

    bus.errors["Get"] = dbus.exceptions.DBusException("gone", name="org.freedesktop.DBus.Error.UnknownObject")
    assert adapter.get_property("Alias") is None
