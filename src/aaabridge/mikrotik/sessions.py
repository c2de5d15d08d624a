"""Active session listing, disconnects and connection checks."""

from __future__ import annotations

import logging

from aaabridge.common.results import Result
from aaabridge.core.models import ServiceType, Session
from aaabridge.mikrotik.client import DeviceClient
from aaabridge.mikrotik.commands import SessionList, SessionRemove, SystemResource


def _optional(row: dict[str, str], *keys: str) -> str | None:
    for key in keys:
        value = row.get(key)
        if value:
            return value
    return None


def session_from_row(row: dict[str, str], service_type: ServiceType) -> Session:
    """Map a ``/ppp/active`` or ``/ip/hotspot/active`` row to a :class:`Session`."""

    return Session(
        id=row.get("id") or row.get(".id") or "",
        user=row.get("name") or row.get("user") or "",
        address=_optional(row, "address"),
        uptime=_optional(row, "uptime"),
        service_type=service_type,
        caller_id=_optional(row, "caller-id", "mac-address"),
    )


class SessionReader:
    """Read live sessions and terminate them by device-assigned id."""

    def __init__(self, client: DeviceClient, logger: logging.Logger | None = None) -> None:
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def list_sessions(self, service_type: ServiceType = "pppoe") -> Result:
        result = self.client.run(SessionList(service_type=service_type))
        if not result.success:
            return result

        sessions = [session_from_row(row, service_type) for row in result.data]
        self.logger.debug(
            "sessions listed service=%s count=%d", service_type, len(sessions), extra=self.client.log_extra
        )
        return Result.ok(f"Retrieved {len(sessions)} active {service_type} sessions", data=sessions)

    def disconnect(self, session_id: str, service_type: ServiceType = "pppoe") -> Result:
        """Remove one active session; an unknown id is reported as a failed result."""

        result = self.client.run(SessionRemove(session_id=session_id, service_type=service_type))
        if not result.success:
            if result.error_kind == "not_found":
                result.message = f"Session {session_id} not found"
            return result

        self.logger.info(
            "session disconnected id=%s service=%s", session_id, service_type, extra=self.client.log_extra
        )
        return Result.ok(
            f"Session {session_id} disconnected", data={"session_id": session_id, "service_type": service_type}
        )

    def test_connection(self) -> Result:
        """Log in and read ``/system/resource`` as a reachability check."""

        result = self.client.run(SystemResource())
        if not result.success:
            result.message = f"Connection failed: {result.message}"
            return result

        system_info = result.data[0] if result.data else None
        return Result.ok("Connection to device successful", data=system_info)
