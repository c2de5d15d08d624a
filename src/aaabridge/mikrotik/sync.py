"""Synchronize subscribers and packages with device accounts and profiles."""

from __future__ import annotations

import logging
import secrets
import string
from typing import Iterable, Sequence

from aaabridge.common.results import BatchResult, BatchSummaryBuilder, Result, SyncResult
from aaabridge.core.models import AAAAccount, Package, ServiceType, Subscriber
from aaabridge.mikrotik.client import DeviceClient
from aaabridge.mikrotik.commands import (
    AccountCreate,
    AccountList,
    AccountLookup,
    AccountRemove,
    AccountUpdate,
    ProfileCreate,
    ProfileList,
)
from aaabridge.mikrotik.ratelimit import build_profile, profile_name

SECRET_ALPHABET = string.ascii_letters + string.digits
DEFAULT_SECRET_LENGTH = 8


def generate_secret(length: int = DEFAULT_SECRET_LENGTH) -> str:
    """Return a random alphanumeric secret."""

    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(length))


def account_comment(subscriber: Subscriber) -> str:
    return f"Customer: {subscriber.name} (ID: {subscriber.id})"


class AccountSynchronizer:
    """Create-or-update device accounts from subscriber records.

    Profiles are created idempotently: a duplicate reply from the device means
    the profile is already present. Accounts are created first and fall back to
    an update when the device reports that the name is taken. Updates and
    removals look the account up by name and then act on the returned row id;
    the two steps are not atomic against concurrent changes on the device.
    """

    def __init__(self, client: DeviceClient, logger: logging.Logger | None = None) -> None:
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    @property
    def _log_extra(self) -> dict[str, str]:
        return {"device": self.client.device_name}

    def ensure_profile(self, package: Package, service_type: ServiceType) -> Result:
        """Create the bandwidth profile for ``package`` unless it already exists."""

        profile = build_profile(package, service_type)
        result = self.client.run(ProfileCreate(profile=profile, service_type=service_type))
        if result.success:
            self.logger.info("profile created name=%s", profile.name, extra=self._log_extra)
            return Result.ok(f"Profile {profile.name} created", data=profile)
        if result.error_kind == "duplicate":
            self.logger.debug("profile exists name=%s", profile.name, extra=self._log_extra)
            return Result.ok(f"Profile {profile.name} already exists", data=profile)
        return result

    def build_account(
        self, subscriber: Subscriber, package: Package, service_type: ServiceType
    ) -> AAAAccount:
        hotspot = service_type == "hotspot"
        return AAAAccount(
            username=subscriber.username,
            secret=subscriber.secret or generate_secret(),
            profile=profile_name(package.name, service_type),
            service_type=service_type,
            disabled=not subscriber.is_active,
            comment=account_comment(subscriber),
            mac_address=subscriber.mac_address if hotspot else None,
            ip_address=subscriber.ip_address if hotspot else None,
        )

    def create_account(self, subscriber: Subscriber, package: Package, service_type: ServiceType) -> Result:
        account = self.build_account(subscriber, package, service_type)
        return self.client.run(AccountCreate(account=account))

    def find_account(self, username: str, service_type: ServiceType) -> Result:
        """Return the first device row named ``username`` or a not-found failure."""

        result = self.client.run(AccountLookup(username=username, service_type=service_type))
        if not result.success:
            return result
        rows = result.data or []
        if not rows:
            return Result.failure(f"Account {username} not found", error_kind="not_found")
        return Result.ok(f"Account {username} found", data=rows[0])

    def update_account(self, subscriber: Subscriber, package: Package, service_type: ServiceType) -> Result:
        found = self.find_account(subscriber.username, service_type)
        if not found.success:
            return found

        command = AccountUpdate(
            row_id=_row_id(found.data),
            service_type=service_type,
            profile=profile_name(package.name, service_type),
            disabled=not subscriber.is_active,
            comment=account_comment(subscriber),
            secret=subscriber.secret,
        )
        return self.client.run(command)

    def remove_account(self, username: str, service_type: ServiceType) -> Result:
        """Delete a device account by name."""

        found = self.find_account(username, service_type)
        if not found.success:
            return found

        result = self.client.run(AccountRemove(row_id=_row_id(found.data), service_type=service_type))
        if not result.success:
            return result
        self.logger.info("account removed username=%s service=%s", username, service_type, extra=self._log_extra)
        return Result.ok(f"Account {username} removed", data={"username": username, "service_type": service_type})

    def list_profiles(self, service_type: ServiceType) -> Result:
        result = self.client.run(ProfileList(service_type=service_type))
        if result.success:
            result.message = f"Retrieved {len(result.data)} {service_type} profiles"
        return result

    def list_accounts(self, service_type: ServiceType) -> Result:
        result = self.client.run(AccountList(service_type=service_type))
        if result.success:
            result.message = f"Retrieved {len(result.data)} {service_type} accounts"
        return result

    def sync_one(self, subscriber: Subscriber, package: Package, service_type: ServiceType = "pppoe") -> SyncResult:
        """Ensure profile and account for one subscriber."""

        log_extra = {**self._log_extra, "subscriber": subscriber.id}
        profile = self.ensure_profile(package, service_type)
        if not profile.success:
            return SyncResult.failed(
                f"Failed to create/verify profile: {profile.message}", profile.error or profile.message
            )

        created = self.create_account(subscriber, package, service_type)
        if created.success:
            self.logger.info(
                "account created username=%s profile=%s", subscriber.username, profile.data.name, extra=log_extra
            )
            return SyncResult(
                success=True, message=f"Subscriber {subscriber.name} synced successfully", created=1
            )

        if created.error_kind != "duplicate":
            return SyncResult.failed(f"Failed to create user: {created.message}", created.error or created.message)

        updated = self.update_account(subscriber, package, service_type)
        if not updated.success:
            return SyncResult.failed(
                f"Failed to update existing user: {updated.message}", updated.error or updated.message
            )

        self.logger.info(
            "account updated username=%s profile=%s", subscriber.username, profile.data.name, extra=log_extra
        )
        return SyncResult(success=True, message=f"Subscriber {subscriber.name} updated successfully", updated=1)

    def sync_many(
        self,
        subscribers: Iterable[Subscriber],
        packages: Sequence[Package],
        service_type: ServiceType = "pppoe",
    ) -> BatchResult:
        """Synchronize subscribers one after another, isolating failures."""

        builder = BatchSummaryBuilder(service_type=service_type)
        by_name: dict[str, Package] = {}
        for package in packages:
            by_name.setdefault(package.name, package)

        for subscriber in subscribers:
            package = by_name.get(subscriber.service_package)
            if package is None:
                self.logger.error(
                    "package not found package=%s subscriber=%s",
                    subscriber.service_package,
                    subscriber.id,
                    extra=self._log_extra,
                )
                builder.add_missing_package(subscriber.name, subscriber.service_package)
                continue

            try:
                outcome = self.sync_one(subscriber, package, service_type)
            except Exception as exc:
                self.logger.exception("sync failed subscriber=%s", subscriber.id, extra=self._log_extra)
                outcome = SyncResult.failed(f"Sync failed: {exc}", str(exc))
            builder.add_sync(subscriber.name, outcome)

        batch = builder.build()
        self.logger.info(
            "batch sync finished total=%d created=%d updated=%d errors=%d",
            batch.total,
            batch.created,
            batch.updated,
            batch.errors,
            extra=self._log_extra,
        )
        return batch


def _row_id(row: dict[str, str]) -> str:
    return row.get("id") or row.get(".id") or ""
