"""
Command-line interface for bleperiph.
"""

import argparse
import json
import sys

# Ensure logging subsystem is initialised immediately
import bleperiph.core.log  # noqa: F401  # side-effect import creates log files

from . import __version__
from bleperiph.bt_ref.utils import dbus_to_python
from bleperiph.core.config import DEFAULT_PERIPHERAL_FILE, LOG_LEVEL_ENV
from bleperiph.core.errors import ReferenceLostError
from bleperiph.core.log import print_and_log, LOG__CONNECTION, LOG__GENERAL
from bleperiph.core.peripheral_config import load_peripheral


class _ConsoleListener:
    """Reports central connect/disconnect events on stdout and the connection log."""

    def device_connected(self, address):
        print_and_log(f"[+] Central connected: {address}", LOG__CONNECTION)

    def device_disconnected(self, identifier):
        print_and_log(f"[-] Central disconnected ({identifier})", LOG__CONNECTION)


def _system_bus():
    import dbus

    return dbus.SystemBus()


def _run_main_loop():
    from gi.repository import GLib

    loop = GLib.MainLoop()
    try:
        loop.run()
    except KeyboardInterrupt:
        print("\n[*] Stopping peripheral")
    finally:
        if loop.is_running():
            loop.quit()


def _dump(obj) -> str:
    return json.dumps(dbus_to_python(obj), indent=2, ensure_ascii=False, default=str)


def parse_args(args=None):
    parser = argparse.ArgumentParser(
        description="bleperiph - publish a BLE GATT peripheral through BlueZ"
    )
    parser.add_argument("--version", action="version", version=f"bleperiph {__version__}")

    subparsers = parser.add_subparsers(dest="mode", help="Operation mode")

    serve_parser = subparsers.add_parser("serve", help="Publish a peripheral until Ctrl+C")
    serve_parser.add_argument(
        "file", nargs="?", default=str(DEFAULT_PERIPHERAL_FILE), help="Peripheral YAML definition"
    )
    serve_parser.add_argument("--alias", help="Override the adapter alias from the definition")

    subparsers.add_parser("adapters", help="List adapters able to host a peripheral")

    show_parser = subparsers.add_parser("show", help="Print the objects a definition would publish")
    show_parser.add_argument(
        "file", nargs="?", default=str(DEFAULT_PERIPHERAL_FILE), help="Peripheral YAML definition"
    )

    return parser.parse_args(args)


def _serve(args) -> int:
    app = load_peripheral(args.file, listener=_ConsoleListener())
    if args.alias:
        app.set_adapter_alias(args.alias)

    try:
        app.start()
    except ReferenceLostError as e:
        print(f"[!] {e}", file=sys.stderr)

    print_and_log(f"[*] Serving {app.path} (Ctrl+C to stop)", LOG__GENERAL)
    try:
        _run_main_loop()
    finally:
        try:
            app.stop()
        except ReferenceLostError as e:
            print(f"[!] {e}", file=sys.stderr)
    return 0


def _adapters() -> int:
    from bleperiph.dbuslayer.adapter import Adapter, get_managed_objects, iter_peripheral_adapters

    bus = _system_bus()
    found = False
    for adapter_path in iter_peripheral_adapters(get_managed_objects(bus)):
        found = True
        adapter = Adapter(bus, adapter_path)
        address = adapter.get_property("Address")
        alias = adapter.get_property("Alias")
        print(f"{adapter_path}\t{address or '-'}\t{alias or '-'}")
    if not found:
        print("[-] No adapter exposes GATT and LE advertising managers", file=sys.stderr)
        return 1
    return 0


def _show(args) -> int:
    app = load_peripheral(args.file)
    advertisement = app.get_advertisement()
    if not advertisement.has_services():
        app.update_advertisement()
    print(
        _dump(
            {
                "application": app.path,
                "advertisement": {advertisement.path: advertisement.get_properties()},
                "managed_objects": app.managed_objects(),
            }
        )
    )
    return 0


def main(args=None):
    """Main entry point for bleperiph."""
    args = parse_args(args)

    # Optional: honour BLEPERIPH_LOG_LEVEL env var so users can tweak verbosity
    import logging as _logging, os as _os

    _lvl = _os.getenv(LOG_LEVEL_ENV)
    if _lvl:
        _logging.getLogger("bleperiph").setLevel(_lvl.upper())

    try:
        if args.mode == "serve":
            return _serve(args)
        elif args.mode == "adapters":
            return _adapters()
        elif args.mode == "show":
            return _show(args)
        else:
            print("[-] No mode given, see --help", file=sys.stderr)
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
