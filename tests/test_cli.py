from __future__ import annotations

import json

import dbus
import pytest

from bleperiph import cli
from bleperiph.core.errors import ReferenceLostError

from conftest import ADAPTER_PATH, FakeBus, adapter_graph

DEFINITION = """\
path: /tango
services:
  - uuid: 13333333-3333-3333-3333-333333333001
    characteristics:
      - uuid: 13333333-3333-3333-3333-333333333002
        flags: [read, notify]
        value: hi
"""


@pytest.fixture
def definition_file(tmp_path):
    path = tmp_path / "peripheral.yaml"
    path.write_text(DEFINITION, encoding="utf-8")
    return path


def test_show_prints_tree_without_bus(definition_file, capsys, monkeypatch):
    monkeypatch.setattr(cli, "_system_bus", lambda: pytest.fail("bus opened"))
    assert cli.main(["show", str(definition_file)]) == 0

    out = json.loads(capsys.readouterr().out)
    adv = out["advertisement"]["/tango/advertisement"]["org.bluez.LEAdvertisement1"]
    assert adv["ServiceUUIDs"] == ["13333333-3333-3333-3333-333333333001"]
    assert adv["IncludeTxPower"] is True
    assert set(out["managed_objects"]) == {"/tango/service0", "/tango/service0/char0"}


def test_adapters_lists_capable_adapters(capsys, monkeypatch):
    bus = FakeBus(adapter_graph())
    bus.responses["Get"] = dbus.String("hci0")
    monkeypatch.setattr(cli, "_system_bus", lambda: bus)
    assert cli.main(["adapters"]) == 0
    assert ADAPTER_PATH in capsys.readouterr().out


def test_adapters_reports_none(capsys, monkeypatch):
    monkeypatch.setattr(cli, "_system_bus", lambda: FakeBus({}))
    assert cli.main(["adapters"]) == 1
    assert "No adapter" in capsys.readouterr().err


def test_serve_starts_runs_and_stops(definition_file, monkeypatch):
    events = []

    class StubApp:
        path = "/tango"

        def set_adapter_alias(self, alias):
            events.append(("alias", alias))

        def start(self):
            events.append("start")

        def stop(self):
            events.append("stop")

    monkeypatch.setattr(cli, "load_peripheral", lambda path, listener=None: StubApp())
    monkeypatch.setattr(cli, "_run_main_loop", lambda: events.append("loop"))

    assert cli.main(["serve", str(definition_file), "--alias", "bench"]) == 0
    assert events == [("alias", "bench"), "start", "loop", "stop"]


def test_serve_keeps_running_after_reference_lost(definition_file, monkeypatch, capsys):
    events = []

    class StubApp:
        path = "/tango"

        def start(self):
            raise ReferenceLostError("register")

        def stop(self):
            events.append("stop")

    monkeypatch.setattr(cli, "load_peripheral", lambda path, listener=None: StubApp())
    monkeypatch.setattr(cli, "_run_main_loop", lambda: events.append("loop"))

    assert cli.main(["serve", str(definition_file)]) == 0
    assert events == ["loop", "stop"]
    assert "Reference to D-Bus invalid" in capsys.readouterr().err


def test_bad_definition_exits_non_zero(tmp_path, capsys):
    path = tmp_path / "bad.yaml"
    path.write_text("path: nope\n", encoding="utf-8")
    assert cli.main(["show", str(path)]) == 1
    assert "Invalid peripheral definition" in capsys.readouterr().err


def test_no_mode_is_an_error(capsys):
    assert cli.main([]) == 1
