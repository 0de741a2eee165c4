"""
Peripheral definitions loaded from YAML.

A definition describes one application: its object path, adapter alias,
advertisement options and the GATT services to publish.  Characteristic
values are held by :class:`~bleperiph.dbuslayer.characteristic.StaticValueProvider`.

Example::

    path: /org/bleperiph
    alias: my-peripheral
    advertisement:
      type: peripheral
      include_tx_power: true
      manufacturer_data: {0xffff: 1}
      service_data: {"180f": "64"}
    services:
      - uuid: 13333333-3333-3333-3333-333333333001
        primary: true
        characteristics:
          - uuid: 13333333-3333-3333-3333-333333333002
            flags: [read, write, notify]
            value: hello

Advertisement payloads are either integers or hex strings.  Service and
characteristic paths default to ``<app>/service<N>`` and
``<service>/char<M>``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml as _yaml

from bleperiph.core.config import DEFAULT_APPLICATION_PATH
from bleperiph.core.errors import ConfigurationError
from bleperiph.core.log import get_logger

__all__ = ["build_application", "load_peripheral", "parse_peripheral"]

logger = get_logger(__name__)


def _payload(source: str, value) -> Union[int, bytes]:
    if isinstance(value, bool):
        raise ConfigurationError(source, f"payload must be an integer or hex string, got {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ConfigurationError(source, f"payload must be non-negative, got {value}")
        return value
    if isinstance(value, str):
        try:
            return bytes.fromhex(value)
        except ValueError as e:
            raise ConfigurationError(source, f"invalid hex payload {value!r}") from e
    raise ConfigurationError(source, f"payload must be an integer or hex string, got {value!r}")


def _company_id(source: str, key) -> int:
    try:
        company_id = int(key, 0) if isinstance(key, str) else int(key)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(source, f"invalid company id {key!r}") from e
    if not 0 <= company_id <= 0xFFFF:
        raise ConfigurationError(source, f"company id out of range: {company_id}")
    return company_id


def _mapping(source: str, value, what: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise ConfigurationError(source, f"{what} must be a mapping")
    return value


def _object_path(source: str, value, what: str) -> str:
    if not isinstance(value, str) or not value.startswith("/") or (
        len(value) > 1 and value.endswith("/")
    ):
        raise ConfigurationError(source, f"{what} is not a valid object path: {value!r}")
    return value


def parse_peripheral(data: Any, source: str = "<string>") -> Dict[str, Any]:
    """Validate a loaded definition and return it in normalised form."""
    if data is None:
        data = {}
    data = _mapping(source, data, "definition")

    path = _object_path(source, data.get("path", DEFAULT_APPLICATION_PATH), "path")
    alias = data.get("alias")
    if alias is not None and not isinstance(alias, str):
        raise ConfigurationError(source, "alias must be a string")

    adv = _mapping(source, data.get("advertisement") or {}, "advertisement")
    ad_type = adv.get("type", "peripheral")
    if ad_type not in ("peripheral", "broadcast"):
        raise ConfigurationError(source, f"unknown advertisement type {ad_type!r}")
    manufacturer_data = adv.get("manufacturer_data")
    if manufacturer_data is not None:
        manufacturer_data = {
            _company_id(source, k): _payload(source, v)
            for k, v in _mapping(source, manufacturer_data, "manufacturer_data").items()
        }
    service_data = adv.get("service_data")
    if service_data is not None:
        service_data = {
            str(k): _payload(source, v)
            for k, v in _mapping(source, service_data, "service_data").items()
        }

    services = []
    raw_services = data.get("services") or []
    if not isinstance(raw_services, list):
        raise ConfigurationError(source, "services must be a list")
    for index, raw_service in enumerate(raw_services):
        raw_service = _mapping(source, raw_service, f"services[{index}]")
        if "uuid" not in raw_service:
            raise ConfigurationError(source, f"services[{index}] has no uuid")
        service_path = _object_path(
            source, raw_service.get("path", f"{path}/service{index}"), f"services[{index}].path"
        )
        characteristics = []
        raw_chars = raw_service.get("characteristics") or []
        if not isinstance(raw_chars, list):
            raise ConfigurationError(source, f"services[{index}].characteristics must be a list")
        for char_index, raw_char in enumerate(raw_chars):
            where = f"services[{index}].characteristics[{char_index}]"
            raw_char = _mapping(source, raw_char, where)
            if "uuid" not in raw_char:
                raise ConfigurationError(source, f"{where} has no uuid")
            value = raw_char.get("value", "")
            if not isinstance(value, str):
                raise ConfigurationError(source, f"{where}.value must be a string")
            flags = raw_char.get("flags") or ["read"]
            if not isinstance(flags, list):
                raise ConfigurationError(source, f"{where}.flags must be a list")
            characteristics.append(
                {
                    "uuid": str(raw_char["uuid"]),
                    "path": _object_path(
                        source, raw_char.get("path", f"{service_path}/char{char_index}"), f"{where}.path"
                    ),
                    "flags": [str(f) for f in flags],
                    "value": value,
                }
            )
        services.append(
            {
                "uuid": str(raw_service["uuid"]),
                "path": service_path,
                "primary": bool(raw_service.get("primary", True)),
                "characteristics": characteristics,
            }
        )

    return {
        "path": path,
        "alias": alias,
        "advertisement": {
            "type": ad_type,
            "include_tx_power": bool(adv.get("include_tx_power", True)),
            "manufacturer_data": manufacturer_data,
            "service_data": service_data,
            "service_uuids": [str(u) for u in adv.get("service_uuids") or []],
            "solicit_uuids": [str(u) for u in adv.get("solicit_uuids") or []],
        },
        "services": services,
    }


def build_application(definition: Mapping[str, Any], listener=None, source: str = "<string>", **kwargs):
    """Create an :class:`Application` from a normalised definition."""
    # Lazy import to keep core free of D-Bus object classes
    from bleperiph.dbuslayer.application import Application
    from bleperiph.dbuslayer.characteristic import (
        Characteristic,
        CharacteristicFlag,
        StaticValueProvider,
    )
    from bleperiph.dbuslayer.service import Service

    app = Application(
        definition["path"],
        listener=listener,
        ad_type=definition["advertisement"]["type"],
        **kwargs,
    )
    if definition.get("alias"):
        app.set_adapter_alias(definition["alias"])

    adv_def = definition["advertisement"]
    advertisement = app.get_advertisement()
    advertisement.set_include_tx_power(adv_def["include_tx_power"])
    advertisement.set_manufacturer_data(adv_def["manufacturer_data"])
    advertisement.set_service_data(adv_def["service_data"])
    advertisement.service_uuids.extend(adv_def.get("service_uuids", []))
    advertisement.solicit_uuids.extend(adv_def.get("solicit_uuids", []))

    for service_def in definition["services"]:
        service = Service(service_def["path"], service_def["uuid"], service_def["primary"])
        for char_def in service_def["characteristics"]:
            try:
                flags = [CharacteristicFlag(f) for f in char_def["flags"]]
            except ValueError as e:
                raise ConfigurationError(source, f"{char_def['uuid']}: {e}") from e
            service.add_characteristic(
                Characteristic(
                    char_def["path"],
                    service,
                    flags,
                    char_def["uuid"],
                    StaticValueProvider(char_def["value"]),
                )
            )
        app.add_service(service)
    return app


def load_peripheral(path: Union[str, Path], listener=None, **kwargs):
    """Read a YAML definition from *path* and build its application."""
    source = str(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = _yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(source, str(e)) from e
    except _yaml.YAMLError as e:
        raise ConfigurationError(source, f"YAML error: {e}") from e
    definition = parse_peripheral(data, source)
    logger.debug(f"Loaded peripheral definition {source}: {len(definition['services'])} service(s)")
    return build_application(definition, listener=listener, source=source, **kwargs)
