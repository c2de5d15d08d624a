"""Translate service packages into RouterOS rate-limit profiles."""

from __future__ import annotations

import re

from aaabridge.core.models import BandwidthProfile, Package

KBPS_PER_MBPS = 1024
SECONDS_PER_DAY = 24 * 3600
DEFAULT_IDLE_TIMEOUT = 1800
DEFAULT_KEEPALIVE_TIMEOUT = 120
DEFAULT_SHARED_USERS = 1
# trailing slot of the rate-limit string, always emitted after the burst time pair
RATE_LIMIT_TAIL = "8"

_WHITESPACE_RE = re.compile(r"\s+")


def _kbps(mbps: float) -> int:
    return int(mbps * KBPS_PER_MBPS)


def _pair(upload: int, download: int) -> str:
    return f"{upload}k/{download}k"


def _burst_complete(package: Package) -> bool:
    required = (
        package.burst_download_mbps,
        package.burst_upload_mbps,
        package.burst_threshold_download_mbps,
        package.burst_threshold_upload_mbps,
        package.burst_time,
    )
    return all(value is not None for value in required)


def encode_rate_limit(package: Package) -> str:
    """Return the ``rx/tx [burst threshold time tail]`` rate-limit string.

    Burst tokens are emitted only when burst is enabled and every burst field
    is set; otherwise the base ``upload/download`` pair is returned alone.
    """

    base = _pair(_kbps(package.upload_mbps), _kbps(package.download_mbps))
    if not package.burst_enabled or not _burst_complete(package):
        return base

    burst = _pair(_kbps(package.burst_upload_mbps), _kbps(package.burst_download_mbps))
    threshold = _pair(
        _kbps(package.burst_threshold_upload_mbps), _kbps(package.burst_threshold_download_mbps)
    )
    burst_time = f"{package.burst_time}/{package.burst_time}"
    return " ".join((base, burst, threshold, burst_time, RATE_LIMIT_TAIL))


def profile_name(package_name: str, service_type: str) -> str:
    """Derive the device profile name for a package and service type."""

    return f"{_WHITESPACE_RE.sub('_', package_name)}_{service_type}"


def build_profile(package: Package, service_type: str) -> BandwidthProfile:
    """Assemble the full bandwidth profile for ``package``."""

    session_timeout = package.validity_days * SECONDS_PER_DAY if package.validity_days else None
    return BandwidthProfile(
        name=profile_name(package.name, service_type),
        rate_limit=encode_rate_limit(package),
        session_timeout=session_timeout,
        idle_timeout=package.idle_timeout or DEFAULT_IDLE_TIMEOUT,
        keepalive_timeout=DEFAULT_KEEPALIVE_TIMEOUT,
        shared_users=package.shared_users or DEFAULT_SHARED_USERS,
        address_pool=package.address_pool,
        comment=f"AAABridge: {package.description or package.name}",
    )
