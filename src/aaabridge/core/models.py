"""Data models for NAS inventory, subscriber records and device-side objects."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Literal, Mapping


ServiceType = Literal["pppoe", "hotspot"]
SubscriberStatus = Literal["Active", "Suspended", "Inactive"]

SERVICE_TYPES: tuple[ServiceType, ...] = ("pppoe", "hotspot")
DEFAULT_API_PORT = 8728
DEFAULT_API_SSL_PORT = 8729
DEFAULT_TIMEOUT = 10.0


@dataclass(slots=True)
class DeviceAuth:
    """Authentication reference for a device."""

    secret_ref: str


@dataclass(slots=True)
class NasDevice:
    """Representation of a network access server reachable over the RouterOS API."""

    name: str
    host: str
    username: str
    auth: DeviceAuth
    port: int = DEFAULT_API_PORT
    use_ssl: bool = False
    timeout: float = DEFAULT_TIMEOUT
    service_type: ServiceType = "pppoe"
    description: str | None = None


@dataclass(slots=True)
class Package:
    """Service package as sold to subscribers."""

    name: str
    download_mbps: float
    upload_mbps: float
    validity_days: int | None = None
    description: str | None = None
    burst_enabled: bool = False
    burst_download_mbps: float | None = None
    burst_upload_mbps: float | None = None
    burst_threshold_download_mbps: float | None = None
    burst_threshold_upload_mbps: float | None = None
    burst_time: int | None = None
    idle_timeout: int | None = None
    shared_users: int | None = None
    address_pool: str | None = None


@dataclass(slots=True)
class Subscriber:
    """Subscriber record owned by the management application."""

    id: str
    name: str
    email: str
    service_package: str
    status: SubscriberStatus = "Active"
    login: str | None = None
    secret: str | None = None
    mac_address: str | None = None
    ip_address: str | None = None

    @property
    def username(self) -> str:
        """Login used on the device; falls back to the e-mail address."""

        return self.login or self.email

    @property
    def is_active(self) -> bool:
        return self.status == "Active"


@dataclass(slots=True)
class BandwidthProfile:
    """Named rate-limit and session timing bundle applied to accounts."""

    name: str
    rate_limit: str
    session_timeout: int | None = None
    idle_timeout: int = 1800
    keepalive_timeout: int = 120
    shared_users: int = 1
    address_pool: str | None = None
    comment: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "rate_limit": self.rate_limit,
            "session_timeout": self.session_timeout,
            "idle_timeout": self.idle_timeout,
            "keepalive_timeout": self.keepalive_timeout,
            "shared_users": self.shared_users,
            "address_pool": self.address_pool,
            "comment": self.comment,
        }


@dataclass(slots=True)
class AAAAccount:
    """Device-side user account (PPP secret or hotspot user)."""

    username: str
    secret: str
    profile: str
    service_type: ServiceType
    disabled: bool
    comment: str
    mac_address: str | None = None
    ip_address: str | None = None


@dataclass(slots=True)
class Session:
    """Active session observed on the device."""

    id: str
    user: str
    address: str | None
    uptime: str | None
    service_type: ServiceType
    caller_id: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "user": self.user,
            "address": self.address,
            "uptime": self.uptime,
            "service_type": self.service_type,
            "caller_id": self.caller_id,
        }


@dataclass(slots=True)
class NatFields:
    """Fields extracted from a firewall/NAT log line."""

    source_ip: str | None = None
    destination_ip: str | None = None
    source_port: str | None = None
    destination_port: str | None = None
    protocol: str | None = None
    action: str | None = None
    nat_type: str | None = None
    in_interface: str | None = None
    out_interface: str | None = None


@dataclass(slots=True)
class AaaFields:
    """Fields extracted from an authentication/accounting log line."""

    username: str | None = None
    client_ip: str | None = None
    nas_ip: str | None = None
    session_id: str | None = None
    auth_result: str | None = None
    service_type: str | None = None
    reason: str | None = None
    calling_station_id: str | None = None
    called_station_id: str | None = None
    nas_port_id: str | None = None
    framed_ip: str | None = None


@dataclass(slots=True)
class LogEvent:
    """Device log line with an optional structured payload."""

    id: str | None
    timestamp: str | None
    topics: tuple[str, ...]
    message: str
    nat: NatFields | None = None
    aaa: AaaFields | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def classified(self) -> bool:
        payload = self.nat if self.nat is not None else self.aaa
        if payload is None:
            return False
        return any(getattr(payload, item.name) is not None for item in fields(payload))

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "topics": list(self.topics),
            "message": self.message,
        }
        for payload in (self.nat, self.aaa):
            if payload is not None:
                data.update({item.name: getattr(payload, item.name) for item in fields(payload)})
        return data
