"""Logging setup for AAABridge.

Settings come from the ``logging`` section of ``config/local.yml``::

    logging:
      directory: /var/log/aaabridge
      filename: aaabridge.log
      level: INFO
      api_level: WARNING

``api_level`` governs the RouterOS API driver, which logs every API sentence
it sends, login words included. Every line names the NAS it concerns and API
passwords or subscriber secrets are masked before a handler sees them.
"""

from __future__ import annotations

import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from aaabridge.core.storage import PROJECT_ROOT, check_writable, load_local_config, local_setting

LOG_FORMAT = "%(asctime)s | %(levelname)s | device=%(device)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
FALLBACK_LOG_DIR = PROJECT_ROOT / "logs"
DRIVER_LOGGERS = ("routeros_api",)


@dataclass(slots=True)
class LogSettings:
    directory: Path = Path("/var/log/aaabridge")
    filename: str = "aaabridge.log"
    level: int = logging.INFO
    api_level: int = logging.WARNING

    @classmethod
    def from_local_config(cls, local_cfg: Mapping[str, Any] | None) -> "LogSettings":
        settings = cls()
        directory = local_setting(local_cfg, "logging", "directory")
        if directory:
            candidate = Path(str(directory)).expanduser()
            settings.directory = candidate if candidate.is_absolute() else PROJECT_ROOT / candidate
        filename = local_setting(local_cfg, "logging", "filename")
        if filename:
            settings.filename = str(filename)
        settings.level = parse_level(local_setting(local_cfg, "logging", "level"), settings.level)
        settings.api_level = parse_level(local_setting(local_cfg, "logging", "api_level"), settings.api_level)
        return settings


def parse_level(value: Any, default: int) -> int:
    """Accept ``"debug"``/``"INFO"`` style names or numeric levels."""

    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        level = logging.getLevelName(value.strip().upper())
        if isinstance(level, int):
            return level
    return default


class DeviceContextFilter(logging.Filter):
    """Give records logged without ``extra={"device": ...}`` a placeholder."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "device", None):
            record.device = "-"
        return True


class SecretMaskFilter(logging.Filter):
    """Replace password, secret and token values with ``***``."""

    # "=password=x" API words, "secret=x" pairs and "token: x" dumps
    PATTERN = re.compile(r"(password|secret|token)(\s*[=:]\s*)([^\s,'\"]+)", re.IGNORECASE)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = self.PATTERN.sub(r"\1\2***", message)
        if masked != message:
            record.msg = masked
            record.args = ()
        return True


def _pick_directory(settings: LogSettings, fallback: Path) -> tuple[Path, str | None]:
    ok, reason = check_writable(settings.directory)
    if ok:
        return settings.directory, None
    fallback_ok, fallback_reason = check_writable(fallback)
    if not fallback_ok:
        raise OSError(f"Unable to use log directory {settings.directory} or fallback {fallback}: {fallback_reason}")
    return fallback, reason or "unavailable"


def _build_handlers(log_path: Path) -> list[logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    # stdout carries the JSON result of a command
    handlers: list[logging.Handler] = [
        logging.FileHandler(log_path, encoding="utf-8"),
        logging.StreamHandler(sys.stderr),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(DeviceContextFilter())
        handler.addFilter(SecretMaskFilter())
    return handlers


def setup_logging(
    config_path: str | Path | None = None,
    cli_level: int | None = None,
    fallback: Path = FALLBACK_LOG_DIR,
) -> logging.Logger:
    """Install file and stderr handlers on the root logger.

    ``cli_level`` (``--debug``) wins over ``logging.level``. The driver
    loggers never go below ``api_level``, whatever the application level is.
    """

    local_cfg = load_local_config(config_path)
    settings = LogSettings.from_local_config(local_cfg)
    if cli_level is not None:
        settings.level = cli_level

    log_dir, fallback_reason = _pick_directory(settings, fallback)
    log_path = log_dir / settings.filename

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(settings.level)
    for handler in _build_handlers(log_path):
        root_logger.addHandler(handler)

    for name in DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(max(settings.level, settings.api_level))

    logger = logging.getLogger("aaabridge")
    logger.setLevel(settings.level)

    if local_cfg is None:
        logger.info("local config not found, logging defaults in use level=%s", logging.getLevelName(settings.level))
    if fallback_reason:
        logger.warning(
            'log_dir path=%s fallback=%s reason="%s"', settings.directory, log_dir, fallback_reason
        )
    logger.info("logging ready path=%s level=%s", log_path, logging.getLevelName(settings.level))
    return logger
