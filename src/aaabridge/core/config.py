"""Configuration helpers for AAABridge.

Two YAML files are read here: the NAS inventory (``config/devices.yml``) and
the records file holding packages and subscribers handed over by the
management application.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

from aaabridge.core.models import (
    DEFAULT_API_PORT,
    DEFAULT_API_SSL_PORT,
    DEFAULT_TIMEOUT,
    SERVICE_TYPES,
    DeviceAuth,
    NasDevice,
    Package,
    ServiceType,
    Subscriber,
)

SUBSCRIBER_STATUSES = ("Active", "Suspended", "Inactive")
MIN_TIMEOUT = 1.0
MAX_TIMEOUT = 60.0


class DevicesConfigError(ValueError):
    """Raised when devices.yml cannot be parsed or validated."""


class RecordsConfigError(ValueError):
    """Raised when the records file cannot be parsed or validated."""


def _require_string(
    mapping: Mapping[str, Any], field: str, context: str, error: type[ValueError] = DevicesConfigError
) -> str:
    value = mapping.get(field)
    if value is None or value == "":
        raise error(f"{context}: missing required field '{field}'.")
    if not isinstance(value, str):
        raise error(f"{context}: field '{field}' must be a string.")
    return value


def _optional_string(
    mapping: Mapping[str, Any], field: str, context: str, error: type[ValueError] = RecordsConfigError
) -> str | None:
    value = mapping.get(field)
    if value is None or value == "":
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise error(f"{context}: field '{field}' must be a string when provided.")
    return str(value)


def _optional_rate(mapping: Mapping[str, Any], field: str, context: str) -> float | None:
    value = mapping.get(field)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise RecordsConfigError(f"{context}: field '{field}' must be a non-negative number of Mbps.")
    return value


def _require_rate(mapping: Mapping[str, Any], field: str, context: str) -> float:
    value = _optional_rate(mapping, field, context)
    if value is None:
        raise RecordsConfigError(f"{context}: missing required field '{field}'.")
    return value


def _optional_number(mapping: Mapping[str, Any], field: str, context: str) -> int | None:
    value = mapping.get(field)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise RecordsConfigError(f"{context}: field '{field}' must be a non-negative number.")
    if isinstance(value, float) and not value.is_integer():
        raise RecordsConfigError(f"{context}: field '{field}' must be a whole number.")
    return int(value)


def _validate_service_type(value: Any, context: str, error: type[ValueError] = DevicesConfigError) -> ServiceType:
    if value is None:
        return "pppoe"
    if value not in SERVICE_TYPES:
        raise error(f"{context}: invalid service_type '{value}'. Allowed values: pppoe, hotspot.")
    return value  # type: ignore[return-value]


def _validate_port(value: Any, use_ssl: bool, context: str) -> int:
    if value is None:
        return DEFAULT_API_SSL_PORT if use_ssl else DEFAULT_API_PORT
    if isinstance(value, bool) or not isinstance(value, int):
        raise DevicesConfigError(f"{context}: port must be an integer.")
    if value <= 0 or value > 65535:
        raise DevicesConfigError(f"{context}: port must be between 1 and 65535.")
    return value


def _validate_timeout(value: Any, context: str) -> float:
    if value is None:
        return DEFAULT_TIMEOUT
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DevicesConfigError(f"{context}: timeout must be a number of seconds.")
    if value < MIN_TIMEOUT or value > MAX_TIMEOUT:
        raise DevicesConfigError(
            f"{context}: timeout must be between {MIN_TIMEOUT:g} and {MAX_TIMEOUT:g} seconds."
        )
    return float(value)


def _parse_device(raw_device: Mapping[str, Any], context: str) -> NasDevice:
    name = _require_string(raw_device, "name", context)
    host = _require_string(raw_device, "host", f"{context} '{name}'")
    username = _require_string(raw_device, "username", f"{context} '{name}'")

    use_ssl = raw_device.get("use_ssl", False)
    if not isinstance(use_ssl, bool):
        raise DevicesConfigError(f"{context} '{name}': use_ssl must be a boolean.")
    port = _validate_port(raw_device.get("port"), use_ssl, f"{context} '{name}'")
    timeout = _validate_timeout(raw_device.get("timeout"), f"{context} '{name}'")
    service_type = _validate_service_type(raw_device.get("service_type"), f"{context} '{name}'")

    auth_raw = raw_device.get("auth")
    if not isinstance(auth_raw, Mapping):
        raise DevicesConfigError(f"{context} '{name}': auth must be a mapping.")
    secret_ref = _require_string(auth_raw, "secret_ref", f"{context} '{name}' auth")
    if "password" in raw_device or "password" in auth_raw:
        raise DevicesConfigError(
            f"{context} '{name}': password must not be stored in devices.yml. Use config/secrets.yml."
        )

    description = raw_device.get("description")
    if description is not None and not isinstance(description, str):
        raise DevicesConfigError(f"{context} '{name}': description must be a string when provided.")

    return NasDevice(
        name=name,
        host=host,
        username=username,
        auth=DeviceAuth(secret_ref=secret_ref),
        port=port,
        use_ssl=use_ssl,
        timeout=timeout,
        service_type=service_type,
        description=description,
    )


def _load_yaml_mapping(path: Path, label: str, error: type[ValueError]) -> Mapping[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"{label} not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as handle:
            raw_data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise error(f"Unable to parse {label}: {path}") from exc

    if not isinstance(raw_data, dict):
        raise error(f"Top-level {label} structure must be a mapping.")
    return raw_data


def load_devices(path: Path, logger: logging.Logger | None = None) -> list[NasDevice]:
    """Load and validate devices.yml according to the project schema."""

    logger = logger or logging.getLogger(__name__)
    raw_data = _load_yaml_mapping(path, "devices.yml", DevicesConfigError)

    raw_devices = raw_data.get("devices")
    if raw_devices is None:
        raise DevicesConfigError("devices.yml must contain a 'devices' list.")
    if not isinstance(raw_devices, list):
        raise DevicesConfigError("The 'devices' field must be a list of device entries.")

    devices: list[NasDevice] = []
    seen_names: set[str] = set()

    for index, raw_device in enumerate(raw_devices, start=1):
        context = f"device #{index}"
        if not isinstance(raw_device, dict):
            logger.error("%s: each device must be a mapping.", context, extra={"device": "-"})
            continue

        provisional_name = raw_device.get("name") or "-"
        log_extra = {"device": provisional_name}
        try:
            device = _parse_device(raw_device, context)
        except DevicesConfigError as exc:
            logger.error("%s", exc, extra=log_extra)
            continue

        if device.name in seen_names:
            logger.error(
                "%s '%s': device name must be unique. Duplicate ignored.",
                context,
                device.name,
                extra=log_extra,
            )
            continue

        seen_names.add(device.name)
        devices.append(device)
        logger.debug(
            "device=%s host=%s port=%s ssl=%s timeout=%s service=%s",
            device.name,
            device.host,
            device.port,
            device.use_ssl,
            device.timeout,
            device.service_type,
            extra={"device": device.name},
        )

    return devices


def select_device(devices: list[NasDevice], name: str | None) -> NasDevice:
    """Return the device called ``name``, or the only configured device."""

    if name is None:
        if len(devices) == 1:
            return devices[0]
        raise DevicesConfigError("Several devices are configured; select one by name.")
    for device in devices:
        if device.name == name:
            return device
    raise DevicesConfigError(f"Device '{name}' not found in devices.yml.")


def _parse_package(raw: Mapping[str, Any], context: str) -> Package:
    name = _require_string(raw, "name", context, RecordsConfigError)
    context = f"{context} '{name}'"
    burst_enabled = raw.get("burst_enabled", False)
    if not isinstance(burst_enabled, bool):
        raise RecordsConfigError(f"{context}: burst_enabled must be a boolean.")

    return Package(
        name=name,
        download_mbps=_require_rate(raw, "download_mbps", context),
        upload_mbps=_require_rate(raw, "upload_mbps", context),
        validity_days=_optional_number(raw, "validity_days", context),
        description=_optional_string(raw, "description", context),
        burst_enabled=burst_enabled,
        burst_download_mbps=_optional_rate(raw, "burst_download_mbps", context),
        burst_upload_mbps=_optional_rate(raw, "burst_upload_mbps", context),
        burst_threshold_download_mbps=_optional_rate(raw, "burst_threshold_download_mbps", context),
        burst_threshold_upload_mbps=_optional_rate(raw, "burst_threshold_upload_mbps", context),
        burst_time=_optional_number(raw, "burst_time", context),
        idle_timeout=_optional_number(raw, "idle_timeout", context),
        shared_users=_optional_number(raw, "shared_users", context),
        address_pool=_optional_string(raw, "address_pool", context),
    )


def _parse_subscriber(raw: Mapping[str, Any], context: str) -> Subscriber:
    subscriber_id = _optional_string(raw, "id", context)
    if subscriber_id is None:
        raise RecordsConfigError(f"{context}: missing required field 'id'.")
    context = f"{context} '{subscriber_id}'"

    status = raw.get("status", "Active")
    if status not in SUBSCRIBER_STATUSES:
        raise RecordsConfigError(
            f"{context}: invalid status '{status}'. Allowed values: {', '.join(SUBSCRIBER_STATUSES)}."
        )

    login = _optional_string(raw, "login", context)
    email = _optional_string(raw, "email", context)
    if not login and not email:
        raise RecordsConfigError(f"{context}: either 'login' or 'email' is required.")

    return Subscriber(
        id=subscriber_id,
        name=_require_string(raw, "name", context, RecordsConfigError),
        email=email or "",
        service_package=_require_string(raw, "service_package", context, RecordsConfigError),
        status=status,
        login=login,
        secret=_optional_string(raw, "secret", context),
        mac_address=_optional_string(raw, "mac_address", context),
        ip_address=_optional_string(raw, "ip_address", context),
    )


def load_records(path: Path, logger: logging.Logger | None = None) -> tuple[list[Package], list[Subscriber]]:
    """Load packages and subscribers; invalid entries are logged and skipped."""

    logger = logger or logging.getLogger(__name__)
    raw_data = _load_yaml_mapping(path, "records file", RecordsConfigError)

    sections: dict[str, list[Any]] = {}
    for section in ("packages", "subscribers"):
        value = raw_data.get(section) or []
        if not isinstance(value, list):
            raise RecordsConfigError(f"The '{section}' field must be a list.")
        sections[section] = value

    packages: list[Package] = []
    for index, raw in enumerate(sections["packages"], start=1):
        try:
            if not isinstance(raw, Mapping):
                raise RecordsConfigError(f"package #{index}: each package must be a mapping.")
            packages.append(_parse_package(raw, f"package #{index}"))
        except RecordsConfigError as exc:
            logger.error("%s", exc, extra={"device": "-"})

    subscribers: list[Subscriber] = []
    for index, raw in enumerate(sections["subscribers"], start=1):
        try:
            if not isinstance(raw, Mapping):
                raise RecordsConfigError(f"subscriber #{index}: each subscriber must be a mapping.")
            subscribers.append(_parse_subscriber(raw, f"subscriber #{index}"))
        except RecordsConfigError as exc:
            logger.error("%s", exc, extra={"device": "-"})

    logger.debug("records loaded packages=%d subscribers=%d", len(packages), len(subscribers))
    return packages, subscribers
