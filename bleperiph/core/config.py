"""
Core configuration settings for bleperiph.
"""

import os
from pathlib import Path

# Base paths
DATA_DIR = Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local/share")) / "bleperiph"
CONFIG_DIR = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config")) / "bleperiph"

# Ensure directories exist
for directory in [DATA_DIR, CONFIG_DIR]:
    directory.mkdir(parents=True, exist_ok=True)

# Logging configuration
LOG_DIR = DATA_DIR / "logs"
LOG_DIR.mkdir(exist_ok=True)

# Log types
LOG__GENERAL = "GENERAL"
LOG__DEBUG = "DEBUG"
LOG__CONNECTION = "CONNECTION"

# Environment variable consulted by the CLI to change verbosity
LOG_LEVEL_ENV = "BLEPERIPH_LOG_LEVEL"

# Default object paths exported by a peripheral
DEFAULT_APPLICATION_PATH = "/org/bleperiph"
ADVERTISEMENT_PATH_SUFFIX = "/advertisement"

# Default peripheral definition (used by the CLI when no file is given)
DEFAULT_PERIPHERAL_FILE = CONFIG_DIR / "peripheral.yaml"

## D-Bus Configurations

import dbus.mainloop.glib

# Exported method calls, BlueZ signals and registration replies are all
# dispatched from the GLib default main context; the loop integration must
# be the default before the first bus connection is opened.
if hasattr(dbus.mainloop.glib, "threads_init"):
    dbus.mainloop.glib.threads_init()
dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
