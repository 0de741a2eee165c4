from setuptools import setup, find_packages

# Check if PyGObject (gi) is already available system-wide
# This prevents pip from trying to build PyGObject from source when it's
# already installed via system package manager (apt, pacman, etc.)
_HAS_PYGOBJECT = False
try:
    import gi
    gi.require_version('GLib', '2.0')
    from gi.repository import GLib
    _HAS_PYGOBJECT = True
except (ImportError, ValueError, AttributeError):
    _HAS_PYGOBJECT = False

# Base requirements - always needed
install_requires = [
    "dbus-python>=1.2.0",
    "PyYAML>=6.0",
]

# PyGObject drives the GLib main loop that dispatches exported methods,
# BlueZ signals and registration replies.
# If not system-installed, add it to install_requires
# If system-installed, add it to extras_require for users who want to manage via pip
if not _HAS_PYGOBJECT:
    install_requires.append("PyGObject>=3.48.0")
    _extras = {
        "glib": [],  # No-op since it's already in install_requires
    }
else:
    _extras = {
        "glib": ["PyGObject>=3.48.0"],  # Optional for pip users
    }

_extras["test"] = ["pytest>=8.0.0"]

setup(
    name="bleperiph",
    version="0.1.0",
    description="Publish a BLE GATT peripheral through BlueZ over D-Bus",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=install_requires,
    extras_require=_extras,
    entry_points={
        'console_scripts': [
            'bleperiph=bleperiph.cli:main',
        ],
    },
    python_requires='>=3.8',
)
