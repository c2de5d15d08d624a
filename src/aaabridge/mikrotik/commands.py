"""Typed RouterOS API commands.

Each command family is a small dataclass that knows its menu path, the API
verb, and how to serialize itself into argument and query words. Commands are
validated before serialization so malformed requests never reach the device.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from aaabridge.core.models import SERVICE_TYPES, AAAAccount, BandwidthProfile, ServiceType


PROFILE_PATHS: Mapping[str, str] = {"pppoe": "/ppp/profile", "hotspot": "/ip/hotspot/user/profile"}
ACCOUNT_PATHS: Mapping[str, str] = {"pppoe": "/ppp/secret", "hotspot": "/ip/hotspot/user"}
SESSION_PATHS: Mapping[str, str] = {"pppoe": "/ppp/active", "hotspot": "/ip/hotspot/active"}
LOG_PATH = "/log"
SYSTEM_RESOURCE_PATH = "/system/resource"


class CommandValidationError(ValueError):
    """Raised when a command cannot be serialized safely."""


def _flag(value: bool) -> str:
    return "yes" if value else "no"


def _require(value: str | None, field_name: str, command: str) -> str:
    if value is None or not str(value).strip():
        raise CommandValidationError(f"{command}: field '{field_name}' is required.")
    return str(value)


def _require_service_type(service_type: str, command: str) -> None:
    if service_type not in SERVICE_TYPES:
        raise CommandValidationError(
            f"{command}: invalid service type '{service_type}'. Allowed values: pppoe, hotspot."
        )


def _compact(words: Mapping[str, object | None]) -> dict[str, str]:
    """Drop unset values and convert the rest to API strings."""

    result: dict[str, str] = {}
    for key, value in words.items():
        if value is None:
            continue
        if isinstance(value, bool):
            result[key] = _flag(value)
        else:
            result[key] = str(value)
    return result


class DeviceCommand:
    """Base class for all command families."""

    verb: str = "print"

    @property
    def path(self) -> str:
        raise NotImplementedError

    @property
    def name(self) -> str:
        return f"{self.path}/{self.verb}"

    def validate(self) -> None:
        """Raise :class:`CommandValidationError` when the command is malformed."""

    def arguments(self) -> dict[str, str]:
        return {}

    def queries(self) -> dict[str, str]:
        return {}


@dataclass(slots=True)
class ProfileCreate(DeviceCommand):
    profile: BandwidthProfile
    service_type: ServiceType
    verb = "add"

    @property
    def path(self) -> str:
        return PROFILE_PATHS[self.service_type]

    def validate(self) -> None:
        _require_service_type(self.service_type, "profile-create")
        _require(self.profile.name, "name", "profile-create")
        _require(self.profile.rate_limit, "rate-limit", "profile-create")
        if self.profile.shared_users < 1:
            raise CommandValidationError("profile-create: shared-users must be at least 1.")

    def arguments(self) -> dict[str, str]:
        profile = self.profile
        if self.service_type == "pppoe":
            return _compact(
                {
                    "name": profile.name,
                    "rate-limit": profile.rate_limit,
                    "session-timeout": profile.session_timeout,
                    "idle-timeout": profile.idle_timeout,
                    "only-one": profile.shared_users == 1,
                    "remote-address": profile.address_pool,
                    "comment": profile.comment,
                }
            )
        return _compact(
            {
                "name": profile.name,
                "rate-limit": profile.rate_limit,
                "session-timeout": profile.session_timeout,
                "idle-timeout": profile.idle_timeout,
                "keepalive-timeout": profile.keepalive_timeout,
                "shared-users": profile.shared_users,
                "address-pool": profile.address_pool,
            }
        )


@dataclass(slots=True)
class ProfileList(DeviceCommand):
    service_type: ServiceType

    @property
    def path(self) -> str:
        return PROFILE_PATHS[self.service_type]

    def validate(self) -> None:
        _require_service_type(self.service_type, "profile-list")


@dataclass(slots=True)
class AccountCreate(DeviceCommand):
    account: AAAAccount
    verb = "add"

    @property
    def path(self) -> str:
        return ACCOUNT_PATHS[self.account.service_type]

    def validate(self) -> None:
        account = self.account
        _require_service_type(account.service_type, "account-create")
        _require(account.username, "name", "account-create")
        _require(account.secret, "password", "account-create")
        _require(account.profile, "profile", "account-create")
        if account.service_type == "pppoe" and (account.mac_address or account.ip_address):
            raise CommandValidationError("account-create: MAC/IP binding is only supported for hotspot accounts.")

    def arguments(self) -> dict[str, str]:
        account = self.account
        words: dict[str, object | None] = {
            "name": account.username,
            "password": account.secret,
            "profile": account.profile,
            "disabled": account.disabled,
            "comment": account.comment,
        }
        if account.service_type == "pppoe":
            words["service"] = "pppoe"
        else:
            words["mac-address"] = account.mac_address
            words["address"] = account.ip_address
        return _compact(words)


@dataclass(slots=True)
class AccountLookup(DeviceCommand):
    """Find an account row by name (first half of a read-then-act sequence)."""

    username: str
    service_type: ServiceType

    @property
    def path(self) -> str:
        return ACCOUNT_PATHS[self.service_type]

    def validate(self) -> None:
        _require_service_type(self.service_type, "account-lookup")
        _require(self.username, "name", "account-lookup")

    def queries(self) -> dict[str, str]:
        return {"name": self.username}


@dataclass(slots=True)
class AccountUpdate(DeviceCommand):
    row_id: str
    service_type: ServiceType
    profile: str | None = None
    disabled: bool | None = None
    comment: str | None = None
    secret: str | None = None
    verb = "set"

    @property
    def path(self) -> str:
        return ACCOUNT_PATHS[self.service_type]

    def validate(self) -> None:
        _require_service_type(self.service_type, "account-update")
        _require(self.row_id, "id", "account-update")
        if not self.arguments().keys() - {"id"}:
            raise CommandValidationError("account-update: nothing to update.")

    def arguments(self) -> dict[str, str]:
        return _compact(
            {
                "id": self.row_id,
                "profile": self.profile,
                "disabled": self.disabled,
                "comment": self.comment,
                "password": self.secret or None,
            }
        )


@dataclass(slots=True)
class AccountRemove(DeviceCommand):
    row_id: str
    service_type: ServiceType
    verb = "remove"

    @property
    def path(self) -> str:
        return ACCOUNT_PATHS[self.service_type]

    def validate(self) -> None:
        _require_service_type(self.service_type, "account-remove")
        _require(self.row_id, "id", "account-remove")

    def arguments(self) -> dict[str, str]:
        return {"id": self.row_id}


@dataclass(slots=True)
class AccountList(DeviceCommand):
    service_type: ServiceType

    @property
    def path(self) -> str:
        return ACCOUNT_PATHS[self.service_type]

    def validate(self) -> None:
        _require_service_type(self.service_type, "account-list")


@dataclass(slots=True)
class SessionList(DeviceCommand):
    service_type: ServiceType

    @property
    def path(self) -> str:
        return SESSION_PATHS[self.service_type]

    def validate(self) -> None:
        _require_service_type(self.service_type, "session-list")


@dataclass(slots=True)
class SessionRemove(DeviceCommand):
    session_id: str
    service_type: ServiceType
    verb = "remove"

    @property
    def path(self) -> str:
        return SESSION_PATHS[self.service_type]

    def validate(self) -> None:
        _require_service_type(self.service_type, "session-remove")
        _require(self.session_id, "id", "session-remove")

    def arguments(self) -> dict[str, str]:
        return {"id": self.session_id}


@dataclass(slots=True)
class LogQuery(DeviceCommand):
    count: int
    topics: tuple[str, ...] = ()
    where: str | None = None

    @property
    def path(self) -> str:
        return LOG_PATH

    def validate(self) -> None:
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 1:
            raise CommandValidationError("log-query: count must be a positive integer.")
        for topic in self.topics:
            if not topic or "," in topic or any(char.isspace() for char in topic):
                raise CommandValidationError(f"log-query: invalid topic '{topic}'.")

    def arguments(self) -> dict[str, str]:
        return _compact(
            {
                "count": self.count,
                "topics": ",".join(self.topics) if self.topics else None,
                "where": self.where or None,
            }
        )


@dataclass(slots=True)
class SystemResource(DeviceCommand):
    @property
    def path(self) -> str:
        return SYSTEM_RESOURCE_PATH
