"""
Bluetooth/D-Bus value helpers.
"""

import dbus

__all__ = [
    "bytes_to_hex",
    "dbus_to_python",
    "payload_to_dbus_bytes",
]

_SCALARS = (
    (dbus.Boolean, bool),
    ((dbus.String, dbus.ObjectPath, dbus.Signature), str),
    ((dbus.Byte, dbus.Int16, dbus.Int32, dbus.Int64,
      dbus.UInt16, dbus.UInt32, dbus.UInt64), int),
    (dbus.Double, float),
)


def bytes_to_hex(data) -> str:
    """Upper-case hex rendering of a byte sequence, as printed in logs."""
    return "".join("%02X" % b for b in data)


def dbus_to_python(data):
    """Recursively unwrap dbus-python values into plain Python ones."""
    for dbus_types, convert in _SCALARS:
        if isinstance(data, dbus_types):
            return convert(data)
    if isinstance(data, dict):
        return {dbus_to_python(k): dbus_to_python(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [dbus_to_python(v) for v in data]
    return data


def payload_to_dbus_bytes(payload) -> dbus.Array:
    """Return *payload* as a D-Bus byte array (signature ``ay``).

    Integers are written big-endian using the fewest bytes that hold them
    (never fewer than one); bytes-like values and lists of ints pass through.
    """
    if isinstance(payload, bool):
        raise TypeError("payload must be an int or bytes, not bool")
    if isinstance(payload, int):
        if payload < 0:
            raise ValueError(f"payload must be non-negative, got {payload}")
        length = max(1, (payload.bit_length() + 7) // 8)
        payload = payload.to_bytes(length, "big")
    return dbus.Array([dbus.Byte(b) for b in bytes(payload)], signature="y")
