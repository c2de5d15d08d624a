#!/usr/bin/env python3
"""Entry point for AAABridge."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Mapping

# Ensure src/ is on sys.path for local imports when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from aaabridge.common.results import Result  # noqa: E402
from aaabridge.core.config import load_devices, load_records, select_device  # noqa: E402
from aaabridge.core.logging import setup_logging  # noqa: E402
from aaabridge.core.models import SERVICE_TYPES, NasDevice  # noqa: E402
from aaabridge.core.secrets import SecretNotFoundError, get_password, load_secrets  # noqa: E402
from aaabridge.core.storage import load_local_config, local_setting, resolve_report_dir, save_report  # noqa: E402
from aaabridge.mikrotik.client import DeviceClient  # noqa: E402
from aaabridge.mikrotik.logs import DEFAULT_LOG_COUNT, LogReader  # noqa: E402
from aaabridge.mikrotik.sessions import SessionReader  # noqa: E402
from aaabridge.mikrotik.sync import AccountSynchronizer  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    service_parent = argparse.ArgumentParser(add_help=False)
    service_parent.add_argument(
        "--service-type",
        choices=SERVICE_TYPES,
        default=None,
        help="Account class to act on. Overrides config/local.yml aaa.service_type and the device default.",
    )

    parser = argparse.ArgumentParser(
        description=(
            "Provision PPPoE/hotspot subscribers on a RouterOS NAS and read back "
            "active sessions and classified log lines."
        ),
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=ROOT_DIR / "config" / "devices.yml",
        help="Path to the NAS inventory file (YAML)",
    )
    parser.add_argument(
        "--secrets",
        type=Path,
        default=ROOT_DIR / "config" / "secrets.yml",
        help="Path to the secrets file (YAML)",
    )
    parser.add_argument(
        "--device",
        default=None,
        help="Name of the NAS to use. Optional when the inventory holds a single device.",
    )
    parser.add_argument(
        "--report-dir",
        type=Path,
        default=None,
        help="Directory where JSON reports will be written. Overrides config/local.yml.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging for troubleshooting. Overrides config/local.yml logging.level.",
    )

    subcommands = parser.add_subparsers(dest="command", title="commands")

    subcommands.add_parser("test", help="Check API connectivity and credentials")
    subcommands.add_parser("profiles", help="List bandwidth profiles", parents=[service_parent])
    subcommands.add_parser("users", help="List subscriber accounts", parents=[service_parent])

    records_parent = argparse.ArgumentParser(add_help=False)
    records_parent.add_argument(
        "--records",
        type=Path,
        default=ROOT_DIR / "config" / "records.yml",
        help="Path to the packages/subscribers file (YAML)",
    )
    sync_parser = subcommands.add_parser(
        "sync", help="Provision a single subscriber", parents=[service_parent, records_parent]
    )
    sync_parser.add_argument("--subscriber", required=True, help="Subscriber id from the records file")
    sync_all_parser = subcommands.add_parser(
        "sync-all", help="Provision every subscriber in the records file", parents=[service_parent, records_parent]
    )
    sync_all_parser.add_argument(
        "--save", action="store_true", help="Write the batch summary as a JSON report"
    )

    delete_parser = subcommands.add_parser(
        "delete-user", help="Remove a subscriber account", parents=[service_parent]
    )
    delete_parser.add_argument("username", help="Account name on the device")

    subcommands.add_parser("sessions", help="List active sessions", parents=[service_parent])
    disconnect_parser = subcommands.add_parser(
        "disconnect", help="Terminate an active session", parents=[service_parent]
    )
    disconnect_parser.add_argument("session_id", help="Session id as reported by 'sessions'")

    logs_parser = subcommands.add_parser("logs", help="Fetch and classify device log lines")
    logs_parser.add_argument("kind", choices=("nat", "access", "system"), help="Log family to fetch")
    logs_parser.add_argument("--count", type=int, default=None, help="Maximum number of lines (1-1000)")
    logs_parser.add_argument("--start", default=None, help="Only lines at or after this time")
    logs_parser.add_argument("--end", default=None, help="Only lines at or before this time")
    logs_parser.add_argument("--source-ip", default=None, help="nat: source address substring")
    logs_parser.add_argument("--destination-ip", default=None, help="nat: destination address substring")
    logs_parser.add_argument("--protocol", default=None, help="nat: protocol substring")
    logs_parser.add_argument("--action", default=None, help="nat: action substring")
    logs_parser.add_argument("--username", default=None, help="access: username substring")
    logs_parser.add_argument("--client-ip", default=None, help="access: client address substring")
    logs_parser.add_argument(
        "--auth-status", choices=("accept", "reject"), default=None, help="access: authentication outcome"
    )
    logs_parser.add_argument("--topics", default="", help="system: comma-separated topic list")
    logs_parser.add_argument("--where", default=None, help="system: raw where expression")
    logs_parser.add_argument("--save", action="store_true", help="Write the events as a JSON report")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = setup_logging(cli_level=logging.DEBUG if args.debug else None)

    if args.command is None:
        parser.print_help()
        return 0

    logger.info("AAABridge run started command=%s", args.command)
    try:
        exit_code = _dispatch(args, logger)
    except (OSError, ValueError, SecretNotFoundError) as exc:
        logger.error("%s", exc, extra={"device": args.device or "-"})
        exit_code = 1
    logger.info("AAABridge run finished exit_code=%d", exit_code)
    return exit_code


def _dispatch(args: argparse.Namespace, logger: logging.Logger) -> int:
    local_config = load_local_config(ROOT_DIR / "config" / "local.yml", logger)
    device = select_device(load_devices(Path(args.config), logger), args.device)
    password = get_password(device.auth.secret_ref, load_secrets(Path(args.secrets), logger))
    client = DeviceClient.from_device(device, password, logger=logger)
    service_type = _resolve_service_type(getattr(args, "service_type", None), local_config, device, logger)

    synchronizer = AccountSynchronizer(client, logger)
    reader = SessionReader(client, logger)

    if args.command == "test":
        return _report(reader.test_connection())
    if args.command == "profiles":
        return _report(synchronizer.list_profiles(service_type))
    if args.command == "users":
        return _report(synchronizer.list_accounts(service_type))
    if args.command == "delete-user":
        return _report(synchronizer.remove_account(args.username, service_type))
    if args.command == "sessions":
        return _report(reader.list_sessions(service_type))
    if args.command == "disconnect":
        return _report(reader.disconnect(args.session_id, service_type))
    if args.command == "sync":
        return _run_sync(args, synchronizer, service_type, logger)
    if args.command == "sync-all":
        return _run_sync_all(args, synchronizer, service_type, device, local_config, logger)
    if args.command == "logs":
        return _run_logs(args, LogReader(client, logger), device, local_config, logger)

    raise ValueError(f"Unknown command: {args.command}")


def _run_sync(
    args: argparse.Namespace, synchronizer: AccountSynchronizer, service_type: str, logger: logging.Logger
) -> int:
    packages, subscribers = load_records(Path(args.records), logger)
    subscriber = next((item for item in subscribers if item.id == args.subscriber), None)
    if subscriber is None:
        raise ValueError(f"Subscriber '{args.subscriber}' not found in {args.records}.")
    package = next((item for item in packages if item.name == subscriber.service_package), None)
    if package is None:
        raise ValueError(f"Package {subscriber.service_package} not found")

    outcome = synchronizer.sync_one(subscriber, package, service_type)
    _print_json(outcome.to_dict())
    return 0 if outcome.success else 1


def _run_sync_all(
    args: argparse.Namespace,
    synchronizer: AccountSynchronizer,
    service_type: str,
    device: NasDevice,
    local_config: Mapping[str, Any] | None,
    logger: logging.Logger,
) -> int:
    packages, subscribers = load_records(Path(args.records), logger)
    logger.info(
        "bulk sync started subscribers=%d packages=%d service=%s",
        len(subscribers),
        len(packages),
        service_type,
        extra={"device": device.name},
    )
    batch = synchronizer.sync_many(subscribers, packages, service_type)
    payload = batch.to_dict()
    _print_json(payload)

    if args.save:
        report_dir = resolve_report_dir(args.report_dir, local_config, logger)
        save_report(report_dir, "sync", device.name, f"{_timestamp()}_sync.json", payload, logger)
    return 0 if batch.success else 1


def _run_logs(
    args: argparse.Namespace,
    reader: LogReader,
    device: NasDevice,
    local_config: Mapping[str, Any] | None,
    logger: logging.Logger,
) -> int:
    count = args.count if args.count is not None else _default_log_count(local_config)
    if args.kind == "nat":
        result = reader.fetch_nat_logs(
            count,
            source_ip=args.source_ip,
            destination_ip=args.destination_ip,
            protocol=args.protocol,
            action=args.action,
            start=args.start,
            end=args.end,
        )
    elif args.kind == "access":
        result = reader.fetch_access_logs(
            count,
            username=args.username,
            client_ip=args.client_ip,
            auth_status=args.auth_status,
            start=args.start,
            end=args.end,
        )
    else:
        topics = [topic for topic in args.topics.split(",") if topic]
        result = reader.fetch_logs(topics, args.where, count)

    exit_code = _report(result)
    if args.save and result.success:
        report_dir = resolve_report_dir(args.report_dir, local_config, logger)
        save_report(report_dir, "logs", device.name, f"{_timestamp()}_{args.kind}.json", result.to_dict(), logger)
    return exit_code


def _resolve_service_type(
    cli_value: str | None, local_config: Mapping[str, Any] | None, device: NasDevice, logger: logging.Logger
) -> str:
    """Determine the account class.

    Priority: CLI flag > local.yml > device inventory entry.
    """

    local_value = local_setting(local_config, "aaa", "service_type")
    if cli_value:
        service_type, source = cli_value, "cli"
    elif local_value in SERVICE_TYPES:
        service_type, source = local_value, "local_yml"
    else:
        service_type, source = device.service_type, "devices_yml"

    logger.debug(
        "service_type resolved value=%s source=%s", service_type, source, extra={"device": device.name}
    )
    return service_type


def _default_log_count(local_config: Mapping[str, Any] | None) -> int:
    value = local_setting(local_config, "logs", "default_count")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return DEFAULT_LOG_COUNT


def _report(result: Result) -> int:
    _print_json(result.to_dict())
    return 0 if result.success else 1


def _print_json(payload: Mapping[str, Any]) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _timestamp() -> str:
    from datetime import datetime, timezone

    return datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S")


if __name__ == "__main__":
    raise SystemExit(main())
