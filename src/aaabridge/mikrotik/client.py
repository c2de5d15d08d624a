"""MikroTik RouterOS API client implementation."""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass, field
from typing import Any, Callable

from routeros_api import RouterOsApiPool
from routeros_api import exceptions as routeros_exceptions

from aaabridge.common.results import Result
from aaabridge.core.models import DEFAULT_API_PORT, DEFAULT_API_SSL_PORT, DEFAULT_TIMEOUT, NasDevice
from aaabridge.mikrotik.commands import CommandValidationError, DeviceCommand

Row = dict[str, str]

_DUPLICATE_MARKERS = ("already exists", "already have", "duplicate")
_NOT_FOUND_MARKERS = ("no such item", "not found")


class DeviceError(RuntimeError):
    """Base exception for RouterOS API client errors."""

    kind = "device"


class DeviceConnectionError(DeviceError):
    """Raised when the device is unreachable or the connection timed out."""

    kind = "connection"


class DeviceAuthError(DeviceError):
    """Raised when the device rejects the API credentials."""

    kind = "auth"


class DeviceCommandError(DeviceError):
    """Raised when the device accepts the connection but rejects a command."""

    kind = "command"

    def __init__(self, message: str, command: str | None = None) -> None:
        super().__init__(message)
        self.command = command

    @property
    def duplicate(self) -> bool:
        lowered = str(self).lower()
        return any(marker in lowered for marker in _DUPLICATE_MARKERS)


class DeviceNotFoundError(DeviceCommandError):
    """Raised when the command targets an entity that does not exist."""

    kind = "not_found"


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _device_message(exc: Exception) -> str:
    """Return the device-side text of a RouterOS trap when available."""

    original = getattr(exc, "original_message", None)
    if original:
        return _decode(original)
    return str(exc)


def command_error(message: str, command: str | None = None) -> DeviceCommandError:
    """Build the most specific command error for a device trap message."""

    lowered = message.lower()
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return DeviceNotFoundError(message, command)
    return DeviceCommandError(message, command)


def error_kind(exc: DeviceError) -> str:
    if isinstance(exc, DeviceCommandError) and not isinstance(exc, DeviceNotFoundError) and exc.duplicate:
        return "duplicate"
    return exc.kind


@dataclass(slots=True)
class DeviceClient:
    """RouterOS API client opening one connection per command."""

    host: str
    username: str
    password: str
    port: int = DEFAULT_API_PORT
    timeout: float = DEFAULT_TIMEOUT
    use_ssl: bool = False
    device_name: str = "-"
    pool_factory: Callable[..., Any] = field(default=RouterOsApiPool, repr=False)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__), repr=False)

    @classmethod
    def from_device(cls, device: NasDevice, password: str, **kwargs: Any) -> "DeviceClient":
        """Build a client for an inventory entry with a resolved password."""

        port = device.port
        if device.use_ssl and port == DEFAULT_API_PORT:
            port = DEFAULT_API_SSL_PORT
        return cls(
            host=device.host,
            username=device.username,
            password=password,
            port=port,
            timeout=device.timeout,
            use_ssl=device.use_ssl,
            device_name=device.name,
            **kwargs,
        )

    @property
    def log_extra(self) -> dict[str, str]:
        return {"device": self.device_name}

    def execute(self, command: DeviceCommand) -> list[Row]:
        """Run a single command on a fresh connection and return the reply rows."""

        command.validate()
        arguments = command.arguments()
        queries = command.queries()

        pool = self._connect()
        try:
            api = self._login(pool)
            self.logger.debug(
                "executing routeros command='%s' arguments=%s queries=%s",
                command.name,
                sorted(arguments),
                queries,
                extra=self.log_extra,
            )
            try:
                resource = api.get_resource(command.path)
                reply = resource.call(command.verb, arguments, queries)
            except routeros_exceptions.RouterOsApiCommunicationError as exc:
                message = _device_message(exc)
                self.logger.warning(
                    "routeros command failed command='%s' reason=\"%s\"", command.name, message, extra=self.log_extra
                )
                raise command_error(message, command.name) from exc
            except (routeros_exceptions.RouterOsApiError, OSError) as exc:  # pragma: no cover - network dependent
                raise DeviceConnectionError(f"Connection lost during '{command.name}': {exc}") from exc

            rows = [{_decode(key): _decode(value) for key, value in row.items()} for row in reply or []]
            self.logger.debug("routeros reply command='%s' rows=%d", command.name, len(rows), extra=self.log_extra)
            return rows
        finally:
            self._disconnect(pool)

    def run(self, command: DeviceCommand) -> Result:
        """Run ``command`` and report the outcome as a value instead of raising."""

        try:
            rows = self.execute(command)
        except CommandValidationError as exc:
            self.logger.error("invalid command reason=\"%s\"", exc, extra=self.log_extra)
            return Result.failure(str(exc), error=str(exc), error_kind="validation")
        except DeviceError as exc:
            return Result.failure(str(exc), error=str(exc), error_kind=error_kind(exc))
        return Result.ok(f"{command.name} completed", data=rows)

    def _connect(self) -> Any:
        self.logger.debug(
            "opening api session host=%s port=%s ssl=%s timeout=%s",
            self.host,
            self.port,
            self.use_ssl,
            self.timeout,
            extra=self.log_extra,
        )
        pool = self.pool_factory(
            self.host,
            username=self.username,
            password=self.password,
            port=self.port,
            use_ssl=self.use_ssl,
            plaintext_login=True,
        )
        # read by get_api() when the socket is opened
        pool.socket_timeout = self.timeout
        return pool

    def _login(self, pool: Any) -> Any:
        try:
            api = pool.get_api()
        except routeros_exceptions.RouterOsApiCommunicationError as exc:
            self.logger.error("api login rejected host=%s", self.host, extra=self.log_extra)
            raise DeviceAuthError(f"Authentication failed: {_device_message(exc)}") from exc
        except (routeros_exceptions.RouterOsApiError, socket.error, TimeoutError) as exc:
            self.logger.error(
                "api connection failed host=%s port=%s reason=\"%s\"", self.host, self.port, exc, extra=self.log_extra
            )
            raise DeviceConnectionError(f"Unable to connect to {self.host}:{self.port}: {exc}") from exc

        self.logger.info("api ok host=%s port=%s", self.host, self.port, extra=self.log_extra)
        return api

    def _disconnect(self, pool: Any) -> None:
        try:
            pool.disconnect()
        except (routeros_exceptions.RouterOsApiError, OSError) as exc:  # pragma: no cover - network dependent
            self.logger.warning("api disconnect failed host=%s reason=\"%s\"", self.host, exc, extra=self.log_extra)
