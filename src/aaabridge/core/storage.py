"""Storage helpers for writing JSON reports to disk."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[3]
FALLBACK_REPORT_DIR = PROJECT_ROOT / "reports"
DEFAULT_LOCAL_CONFIG = PROJECT_ROOT / "config" / "local.yml"


def ensure_directory(path: Path) -> Path:
    """Ensure the target directory exists and return it."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def save_report(
    report_dir: Path,
    kind: str,
    device_name: str,
    filename: str,
    payload: Mapping[str, Any],
    logger: logging.Logger,
) -> Path:
    """Persist a JSON report to ``<report_dir>/<kind>/<device>/<filename>``."""

    target_dir = ensure_directory(report_dir / kind / device_name)
    report_path = target_dir / filename
    report_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("report saved path=%s", report_path, extra={"device": device_name})
    return report_path


def load_local_config(
    config_path: str | Path | None = None, logger: logging.Logger | None = None
) -> Mapping[str, Any] | None:
    """Load local.yml if it exists and return the mapping."""

    config_file = Path(config_path) if config_path else DEFAULT_LOCAL_CONFIG
    if not config_file.is_absolute():
        config_file = PROJECT_ROOT / config_file

    if logger:
        logger.debug("loading local config from %s", config_file)

    if not config_file.exists():
        if logger:
            logger.debug("local config not found at %s", config_file)
        return None

    try:
        with config_file.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        if logger:
            logger.warning("unable to read local config file=%s reason=\"%s\"", config_file, exc)
        return None

    return data if isinstance(data, Mapping) else None


def local_setting(local_cfg: Mapping[str, Any] | None, section: str, key: str) -> Any:
    """Return ``local_cfg[section][key]`` or ``None`` when any level is missing."""

    if not isinstance(local_cfg, Mapping):
        return None
    section_value = local_cfg.get(section)
    if not isinstance(section_value, Mapping):
        return None
    return section_value.get(key)


def check_writable(path: Path) -> tuple[bool, str | None]:
    """Try to create and write to the directory, returning success and reason."""

    try:
        path.mkdir(parents=True, exist_ok=True)
        test_file = path / ".write-test"
        with test_file.open("w", encoding="utf-8") as handle:
            handle.write("ok")
        test_file.unlink(missing_ok=True)
        return True, None
    except OSError as exc:
        return False, str(exc)


def _extract_local_report_dir(local_cfg: Mapping[str, Any] | None) -> Path | None:
    """Return reports.directory from local.yml mapping when present."""

    directory_value = local_setting(local_cfg, "reports", "directory")
    if not directory_value:
        return None

    candidate = Path(directory_value).expanduser()
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


def resolve_report_dir(
    cli_report_dir: str | Path | None,
    local_cfg: Mapping[str, Any] | None,
    logger: logging.Logger,
    fallback: Path = FALLBACK_REPORT_DIR,
) -> Path:
    """Determine the report directory with priority: CLI > local.yml > fallback."""

    candidates: list[tuple[str, Path]] = []

    if cli_report_dir:
        candidates.append(("cli", Path(cli_report_dir).expanduser()))

    local_candidate = _extract_local_report_dir(local_cfg)
    if local_candidate:
        candidates.append(("local_yml", local_candidate))

    for source, candidate in candidates:
        ok, reason = check_writable(candidate)
        if ok:
            logger.info("report_dir source=%s path=%s", source, candidate)
            return candidate

        logger.warning(
            'report_dir source=%s path=%s fallback=%s reason="%s"',
            source,
            candidate,
            fallback,
            reason or "unavailable",
        )

    ok, fallback_reason = check_writable(fallback)
    if not ok:
        logger.error('report_dir fallback=%s reason="%s"', fallback, fallback_reason or "unavailable")
        raise OSError(f"Unable to use fallback report directory: {fallback}")

    logger.info("report_dir source=fallback path=%s", fallback)
    return fallback
