"""Field extraction tables for firewall/NAT and authentication log lines.

Each field maps to one or more regular expressions; the first pattern that
matches supplies the value from its first group. Fields without a match are
left as ``None``.
"""

from __future__ import annotations

import re
from typing import Mapping

from aaabridge.core.models import AaaFields, NatFields

FieldPatterns = Mapping[str, tuple[re.Pattern[str], ...]]

_IPV4 = r"(\d{1,3}(?:\.\d{1,3}){3})"
_TOKEN = r"([^\s,;]+)"
# key must not be the tail of a longer dashed key (nas-port-id vs id)
_KEY = r"(?<![\w-])"

NAT_PATTERNS: FieldPatterns = {
    "source_ip": (re.compile(rf"src-address={_IPV4}"),),
    "destination_ip": (re.compile(rf"dst-address={_IPV4}"),),
    "source_port": (re.compile(r"src-port=(\d+)"),),
    "destination_port": (re.compile(r"dst-port=(\d+)"),),
    "protocol": (re.compile(r"protocol=(\w+)"),),
    "action": (re.compile(r"(accept|drop|reject|srcnat|dstnat)", re.IGNORECASE),),
    "in_interface": (re.compile(r"in-interface=([^\s,]+)"),),
    "out_interface": (re.compile(r"out-interface=([^\s,]+)"),),
}

AAA_PATTERNS: FieldPatterns = {
    "username": (re.compile(rf"{_KEY}user[=\s]+{_TOKEN}", re.IGNORECASE),),
    "client_ip": (re.compile(rf"{_KEY}(?:client|from)[=\s]+{_IPV4}", re.IGNORECASE),),
    "nas_ip": (re.compile(rf"{_KEY}(?:nas(?:-ip(?:-address)?)?|server)[=\s]+{_IPV4}", re.IGNORECASE),),
    "session_id": (re.compile(rf"{_KEY}(?:acct-session-id|session-id|session|id)[=\s]+{_TOKEN}", re.IGNORECASE),),
    "reason": (
        re.compile(rf"{_KEY}reason[=:\s]+([^,;]+)", re.IGNORECASE),
        re.compile(rf"{_KEY}error[=:\s]+([^,;]+)", re.IGNORECASE),
        re.compile(rf"{_KEY}cause[=:\s]+([^,;]+)", re.IGNORECASE),
    ),
    "calling_station_id": (re.compile(rf"calling-station-id[=:\s]+{_TOKEN}", re.IGNORECASE),),
    "called_station_id": (re.compile(rf"called-station-id[=:\s]+{_TOKEN}", re.IGNORECASE),),
    "nas_port_id": (re.compile(rf"nas-port-id[=:\s]+{_TOKEN}", re.IGNORECASE),),
    "framed_ip": (re.compile(rf"framed-ip(?:-address)?[=:\s]+{_IPV4}", re.IGNORECASE),),
}

# checked in order, first group with a hit decides: "login failed" reads as accept
AUTH_RESULT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("accept", ("accept", "login", "authenticated")),
    ("reject", ("reject", "deny", "failed")),
    ("logout", ("logout", "disconnect")),
)

SERVICE_TYPE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("pppoe", re.compile(r"\bppp(?:oe)?\b", re.IGNORECASE)),
    ("hotspot", re.compile(r"\bhotspot\b", re.IGNORECASE)),
)


def extract_fields(message: str, patterns: FieldPatterns) -> dict[str, str]:
    """Return the values of every field whose pattern matches ``message``."""

    values: dict[str, str] = {}
    for name, candidates in patterns.items():
        for pattern in candidates:
            match = pattern.search(message)
            if match:
                values[name] = match.group(1).strip()
                break
    return values


def nat_type(message: str) -> str | None:
    lowered = message.lower()
    if "srcnat" in lowered:
        return "source"
    if "dstnat" in lowered:
        return "destination"
    return None


def auth_result(message: str) -> str | None:
    lowered = message.lower()
    for result, keywords in AUTH_RESULT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return result
    return None


def service_type(message: str) -> str | None:
    for name, pattern in SERVICE_TYPE_PATTERNS:
        if pattern.search(message):
            return name
    return None


def classify_nat(message: str) -> NatFields:
    """Extract firewall/NAT fields from a log message."""

    values = extract_fields(message, NAT_PATTERNS)
    if "action" in values:
        values["action"] = values["action"].lower()
    return NatFields(nat_type=nat_type(message), **values)


def classify_aaa(message: str) -> AaaFields:
    """Extract authentication fields from a log message."""

    values = extract_fields(message, AAA_PATTERNS)
    return AaaFields(auth_result=auth_result(message), service_type=service_type(message), **values)
