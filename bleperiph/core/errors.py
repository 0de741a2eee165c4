#!/usr/bin/python3

"""Core error classes for bleperiph.

Two families live here:

* ``PeripheralError`` and its subclasses are raised *to the host program*
  (lifecycle failures, configuration problems, mapped BlueZ errors).
* ``dbus.exceptions.DBusException`` subclasses are raised *from exported
  objects*; dbus-python turns them into error replies carrying
  ``_dbus_error_name`` so BlueZ sees the error name it expects.
"""

from __future__ import annotations

import re
from typing import Optional

import dbus.exceptions

from bleperiph.bt_ref.constants import *

# Regex to pull method & interface names from D-Bus error strings (best-effort)
_METHOD_CALL_INTERFACE_RX = re.compile(
    r"method '(?P<method>[^']+)'[\s\S]*interface '(?P<iface>[^']+)'"
)


class PeripheralError(Exception):
    """Base exception for everything bleperiph raises to its caller.

    The `.code` attribute maps to the RESULT_* values in
    ``bleperiph.bt_ref.constants``.
    """

    def __init__(self, message: str, code: int = RESULT_ERR):
        super().__init__(message)
        self.code = code


class AdapterNotFoundError(PeripheralError):
    """Raised when no adapter exposes both GATT and LE advertising managers."""

    def __init__(self, reason: Optional[str] = None):
        msg = "No BLE adapter found"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, RESULT_ERR_NO_ADAPTER)
        self.reason = reason


class ReferenceLostError(PeripheralError):
    """Non-fatal: one or both BlueZ manager (un)registrations failed.

    Raised *after* the lifecycle call finished its side effects.  On start
    the objects are exported and the application is running; on stop the
    application is fully torn down, but BlueZ may keep a stale registration.
    The per-manager outcomes are available through ``report``.
    """

    def __init__(self, action: str, report=None):
        if action == "register":
            msg = (
                "Reference to D-Bus invalid. Cannot register advertisement or "
                "application. Nevertheless, BLE application was started successfully."
            )
        else:
            msg = (
                "Reference to D-Bus invalid. Cannot unregister advertisement or "
                "application. Nevertheless, BLE application was stopped successfully."
            )
        if report is not None:
            failures = ", ".join(str(o) for o in report.failures())
            if failures:
                msg += f" ({failures})"
        super().__init__(msg, RESULT_ERR_REFERENCE_LOST)
        self.action = action
        self.report = report


class InvalidStateError(PeripheralError):
    """Raised when an operation is not allowed in the current lifecycle state."""

    def __init__(self, operation: str, state: str):
        super().__init__(
            f"Operation not allowed while {state}: {operation}", RESULT_ERR_WRONG_STATE
        )
        self.operation = operation
        self.state = state


class ConfigurationError(PeripheralError):
    """Raised when a peripheral definition cannot be turned into objects."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"Invalid peripheral definition {source}: {reason}", RESULT_ERR_BAD_CONFIG)
        self.source = source
        self.reason = reason


class NotSupportedError(PeripheralError):
    """Raised when BlueZ reports an operation as unsupported."""

    def __init__(self, operation: str):
        super().__init__(
            f"Operation not supported: {operation}", RESULT_ERR_NOT_SUPPORTED
        )
        self.operation = operation


class NotPermittedError(PeripheralError):
    """Raised when BlueZ refuses an operation."""

    def __init__(self, operation: str, reason: str = None):
        message = f"Operation not permitted: {operation}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, RESULT_ERR_NOT_PERMITTED)
        self.operation = operation
        self.reason = reason


class AlreadyExistsError(PeripheralError):
    """Raised when an object is already registered with a BlueZ manager."""

    def __init__(self, operation: str):
        super().__init__(f"Already registered: {operation}", RESULT_ERR_ALREADY_EXISTS)
        self.operation = operation


class DoesNotExistError(PeripheralError):
    """Raised when BlueZ does not know the object being unregistered."""

    def __init__(self, operation: str):
        super().__init__(f"Not registered: {operation}", RESULT_ERR_DOES_NOT_EXIST)
        self.operation = operation


class OperationInProgressError(PeripheralError):
    """Raised when an operation is already in progress."""

    def __init__(self, operation: str):
        super().__init__(
            f"Operation already in progress: {operation}", RESULT_ERR_ACTION_IN_PROGRESS
        )
        self.operation = operation


class OperationTimeoutError(PeripheralError):
    """Raised when a D-Bus call got no reply."""

    def __init__(self, operation: str):
        super().__init__(f"Operation timed out: {operation}", RESULT_ERR_NO_REPLY)
        self.operation = operation


class InvalidArgumentError(PeripheralError):
    """Raised when invalid arguments are provided."""

    def __init__(self, argument: str, reason: str = None):
        message = f"Invalid argument: {argument}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, RESULT_ERR_BAD_ARGS)
        self.argument = argument
        self.reason = reason


# ---------------------------------------------------------------------------
# Errors raised from exported D-Bus objects
# ---------------------------------------------------------------------------


class UnknownInterfaceError(dbus.exceptions.DBusException):
    """Property query for an interface the object does not implement."""

    _dbus_error_name = DBUS_ERROR_INVALID_ARGS

    def __init__(self, interface: str):
        super().__init__(f"Wrong interface [interface_name={interface}]")
        self.interface = interface


class NotPermittedException(dbus.exceptions.DBusException):
    _dbus_error_name = BLUEZ_ERROR_NOT_PERMITTED


class NotSupportedException(dbus.exceptions.DBusException):
    _dbus_error_name = BLUEZ_ERROR_NOT_SUPPORTED


class InvalidOffsetException(dbus.exceptions.DBusException):
    _dbus_error_name = BLUEZ_ERROR_INVALID_OFFSET


class FailedException(dbus.exceptions.DBusException):
    _dbus_error_name = BLUEZ_ERROR_FAILED


_DBUS_ERROR_NAME_MAP = {
    "org.freedesktop.DBus.Error.NoReply": RESULT_ERR_NO_REPLY,
    "org.freedesktop.DBus.Error.UnknownObject": RESULT_ERR_UNKNOWN_OBJECT,
    "org.freedesktop.DBus.Error.UnknownMethod": RESULT_ERR_METHOD_SIGNATURE_NOT_EXIST,
    "org.freedesktop.DBus.Error.ServiceUnknown": RESULT_ERR_UNKNOWN_SERVCE,
    "org.freedesktop.DBus.Error.InvalidArgs": RESULT_ERR_BAD_ARGS,
    "org.bluez.Error.Failed": RESULT_ERR,
    "org.bluez.Error.NotPermitted": RESULT_ERR_NOT_PERMITTED,
    "org.bluez.Error.NotAuthorized": RESULT_ERR_NOT_AUTHORIZED,
    "org.bluez.Error.NotSupported": RESULT_ERR_NOT_SUPPORTED,
    "org.bluez.Error.InProgress": RESULT_ERR_ACTION_IN_PROGRESS,
    "org.bluez.Error.InvalidArguments": RESULT_ERR_BAD_ARGS,
    "org.bluez.Error.AlreadyExists": RESULT_ERR_ALREADY_EXISTS,
    "org.bluez.Error.DoesNotExist": RESULT_ERR_DOES_NOT_EXIST,
}


def decode_dbus_error(exc: dbus.exceptions.DBusException) -> int:
    """Return the RESULT_ERR_* constant matching *exc* (RESULT_ERR when unknown)."""
    return _DBUS_ERROR_NAME_MAP.get(exc.get_dbus_name(), RESULT_ERR)


def map_dbus_error(
    exc: dbus.exceptions.DBusException, operation: str = "D-Bus operation"
) -> PeripheralError:
    """Return a PeripheralError instance for the given D-Bus exception.

    Parameters
    ----------
    exc : dbus.exceptions.DBusException
        The D-Bus exception to map
    operation : str
        Human readable name of the call that failed, used in the message

    Returns
    -------
    PeripheralError
        A PeripheralError instance with the appropriate error code and message
    """
    name = exc.get_dbus_name()
    msg = exc.get_dbus_message() or ""

    if name == "org.bluez.Error.AlreadyExists":
        return AlreadyExistsError(operation)
    if name == "org.bluez.Error.DoesNotExist":
        return DoesNotExistError(operation)
    if name == "org.bluez.Error.NotPermitted":
        return NotPermittedError(operation, msg or None)
    if name == "org.bluez.Error.NotSupported":
        return NotSupportedError(operation)
    if name == "org.bluez.Error.InProgress":
        return OperationInProgressError(operation)
    if name == "org.freedesktop.DBus.Error.NoReply":
        return OperationTimeoutError(operation)
    if name in ("org.bluez.Error.InvalidArguments", "org.freedesktop.DBus.Error.InvalidArgs"):
        return InvalidArgumentError(operation, msg or None)

    # Method-call signature error regex
    m = _METHOD_CALL_INTERFACE_RX.search(msg)
    if m:
        return InvalidArgumentError(
            f"Method:{m.group('method')} Interface:{m.group('iface')}",
            f"D-Bus call: {msg}",
        )

    # Default fall-back
    return PeripheralError(f"{operation}: {name}", decode_dbus_error(exc))


__all__ = [
    "PeripheralError",
    "AdapterNotFoundError",
    "ReferenceLostError",
    "InvalidStateError",
    "ConfigurationError",
    "NotSupportedError",
    "NotPermittedError",
    "AlreadyExistsError",
    "DoesNotExistError",
    "OperationInProgressError",
    "OperationTimeoutError",
    "InvalidArgumentError",
    "UnknownInterfaceError",
    "NotPermittedException",
    "NotSupportedException",
    "InvalidOffsetException",
    "FailedException",
    "decode_dbus_error",
    "map_dbus_error",
]
