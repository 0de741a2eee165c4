from __future__ import annotations

import dbus
import pytest

from bleperiph.bt_ref.constants import ADVERTISEMENT_INTERFACE
from bleperiph.core.errors import UnknownInterfaceError
from bleperiph.dbuslayer.advertisement import Advertisement, AdvertisementType
from bleperiph.dbuslayer.exportable import Exportable
from bleperiph.dbuslayer.service import Service

from conftest import FakeBus, PRIMARY_UUID


def _props(adv):
    return adv.get_properties()[ADVERTISEMENT_INTERFACE]


@pytest.mark.parametrize("ad_type", ["broadcast", "peripheral"])
@pytest.mark.parametrize("include_tx_power", [True, False])
@pytest.mark.parametrize("uuids", [[], [PRIMARY_UUID], [PRIMARY_UUID, "180f"]])
def test_type_and_tx_power_always_present(ad_type, include_tx_power, uuids):
    adv = Advertisement(ad_type, "/app/advertisement")
    adv.set_include_tx_power(include_tx_power)
    adv.service_uuids.extend(uuids)

    props = _props(adv)

    assert props["Type"] == ad_type
    assert props["IncludeTxPower"] is not None
    assert bool(props["IncludeTxPower"]) is include_tx_power
    assert ("ServiceUUIDs" in props) == bool(uuids)
    if uuids:
        assert list(props["ServiceUUIDs"]) == uuids


def test_minimal_advertisement_has_only_type_and_tx_power():
    adv = Advertisement(AdvertisementType.PERIPHERAL, "/app/advertisement")
    assert set(_props(adv)) == {"Type", "IncludeTxPower"}
    assert bool(_props(adv)["IncludeTxPower"]) is True


def test_solicit_uuids_only_when_non_empty():
    adv = Advertisement("peripheral", "/app/advertisement")
    assert "SolicitUUIDs" not in _props(adv)
    adv.add_solicited(Service("/app/s", "180d"))
    assert list(_props(adv)["SolicitUUIDs"]) == ["180d"]


def test_empty_manufacturer_data_is_still_published():
    adv = Advertisement("peripheral", "/app/advertisement")
    assert "ManufacturerData" not in _props(adv)
    adv.set_manufacturer_data({})
    props = _props(adv)
    assert "ManufacturerData" in props
    assert len(props["ManufacturerData"]) == 0


def test_manufacturer_and_service_data_encoding():
    adv = Advertisement("peripheral", "/app/advertisement")
    adv.set_manufacturer_data({0xFFFF: 0x0102, 0x004C: b"\x00"})
    adv.set_service_data({"180f": 100})

    props = _props(adv)
    manufacturer = props["ManufacturerData"]
    assert manufacturer.signature == "qv"
    assert bytes(manufacturer[0xFFFF]) == b"\x01\x02"
    assert bytes(manufacturer[0x004C]) == b"\x00"
    assert bytes(props["ServiceData"]["180f"]) == b"\x64"


def test_zero_payload_encodes_as_single_byte():
    adv = Advertisement("peripheral", "/app/advertisement")
    adv.set_service_data({"180f": 0})
    assert bytes(_props(adv)["ServiceData"]["180f"]) == b"\x00"


def test_properties_are_rebuilt_on_every_query():
    adv = Advertisement("peripheral", "/app/advertisement")
    first = _props(adv)
    adv.add_service(Service("/app/s", PRIMARY_UUID))
    assert "ServiceUUIDs" not in first
    assert list(_props(adv)["ServiceUUIDs"]) == [PRIMARY_UUID]
    assert adv.has_services()


def test_get_all_for_advertisement_interface():
    adv = Advertisement("broadcast", "/app/advertisement")
    assert adv.GetAll(ADVERTISEMENT_INTERFACE) == _props(adv)


@pytest.mark.parametrize(
    "interface",
    ["org.bluez.GattService1", "org.freedesktop.DBus.Properties", "", "org.bluez.LEAdvertisement2"],
)
def test_get_all_rejects_other_interfaces(interface):
    adv = Advertisement("peripheral", "/app/advertisement")
    with pytest.raises(UnknownInterfaceError) as excinfo:
        adv.GetAll(interface)
    assert excinfo.value.get_dbus_name() == "org.freedesktop.DBus.Error.InvalidArgs"
    assert interface in str(excinfo.value)


def test_single_key_access_is_a_no_op():
    adv = Advertisement("peripheral", "/app/advertisement")
    assert adv.get_property(ADVERTISEMENT_INTERFACE, "Type") is None
    adv.set_property(ADVERTISEMENT_INTERFACE, "Type", "broadcast")
    adv.Set(ADVERTISEMENT_INTERFACE, "Type", dbus.String("broadcast"))
    assert _props(adv)["Type"] == "peripheral"


def test_export_and_unexport():
    bus = FakeBus()
    adv = Advertisement("peripheral", "/app/advertisement")
    assert isinstance(adv, Exportable)
    assert not adv.is_exported()

    adv.export(bus)
    assert "/app/advertisement" in bus.exported
    assert adv.is_exported()

    adv.unexport()
    assert bus.exported == {}
    assert not adv.is_exported()


def test_invalid_type_rejected():
    with pytest.raises(ValueError):
        Advertisement("scanner", "/app/advertisement")
