"""Capability shared by every object bleperiph publishes on the bus.

Advertisement, services, characteristics and the application root are
unrelated D-Bus objects; what they have in common is a fixed object path, a
per-interface property dictionary and the ability to be (un)exported on a
bus connection.  That contract is expressed as a structural protocol rather
than a shared base class.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, runtime_checkable

import dbus

from bleperiph.core.log import get_logger

__all__ = ["Exportable", "export_all", "unexport_all"]

logger = get_logger(__name__)


@runtime_checkable
class Exportable(Protocol):
    path: str

    def get_path(self) -> dbus.ObjectPath:
        ...

    def get_properties(self) -> Dict[str, Dict[str, Any]]:
        ...

    def export(self, bus) -> None:
        ...

    def unexport(self) -> None:
        ...

    def is_exported(self) -> bool:
        ...


def export_all(objects, bus) -> list:
    """Export *objects* in order and return the ones that made it.

    If an export fails, the objects exported so far are unexported again in
    reverse order before the error propagates.
    """
    exported = []
    try:
        for obj in objects:
            obj.export(bus)
            exported.append(obj)
    except Exception:
        unexport_all(exported)
        raise
    return exported


def unexport_all(objects) -> None:
    """Unexport *objects* in reverse order, skipping ones that are not exported.

    Every object is attempted; the first failure is re-raised afterwards.
    """
    first_error = None
    for obj in reversed(list(objects)):
        if not obj.is_exported():
            continue
        try:
            obj.unexport()
        except Exception as e:
            logger.error(f"Unexporting {obj.path} failed: {e}")
            if first_error is None:
                first_error = e
    if first_error is not None:
        raise first_error
