"""
bleperiph - publish a BLE GATT peripheral through BlueZ over D-Bus
"""

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Initialise logging on *package import* so every code path (even when the
# CLI is not used) writes to the per-type log files.
# ---------------------------------------------------------------------------
import importlib as _importlib

_importlib.import_module("bleperiph.core.log")  # noqa: F401 - side-effect import
