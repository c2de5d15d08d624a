"""Secrets management helpers.

NAS API passwords are loaded from ``config/secrets.yml`` when present and can
be overridden via environment variables. Environment variables take priority,
and a missing secret stops work against the affected device.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml

ENV_PREFIX = "AAABRIDGE_SECRET_"
DEFAULT_SECRETS_PATH = Path("config/secrets.yml")


class SecretsConfigError(ValueError):
    """Raised when the secrets file is missing required structure."""


class SecretNotFoundError(KeyError):
    """Raised when a password cannot be resolved for ``secret_ref``."""


@dataclass(slots=True)
class Secrets:
    """Container for NAS API passwords keyed by secret reference."""

    entries: Mapping[str, str]
    source_path: Path
    missing_source: bool = False

    def get(self, secret_ref: str) -> str | None:
        return self.entries.get(secret_ref)


def _normalize_secret_ref(secret_ref: str) -> str:
    """Convert secret references to ``UPPER_SNAKE_CASE`` for env lookup."""

    normalized = re.sub(r"[^A-Z0-9]+", "_", secret_ref.upper())
    return normalized.strip("_")


def _load_file_secrets(path: Path) -> Secrets:
    """Load secrets from a YAML file.

    The expected structure matches ``config/secrets.yml.example``.
    """

    try:
        with path.open("r", encoding="utf-8") as handle:
            raw_data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise SecretsConfigError(f"Unable to read secrets file: {path}") from exc

    if not isinstance(raw_data, Mapping):
        raise SecretsConfigError("Top-level secrets.yml structure must be a mapping.")

    raw_secrets = raw_data.get("secrets")
    if raw_secrets is None:
        raise SecretsConfigError("Field 'secrets' is required in secrets.yml.")
    if not isinstance(raw_secrets, Mapping):
        raise SecretsConfigError("Field 'secrets' must be a mapping of secret refs.")

    entries: dict[str, str] = {}
    for ref, entry in raw_secrets.items():
        if not isinstance(entry, Mapping):
            raise SecretsConfigError(f"Secret '{ref}' must be a mapping.")

        password = entry.get("password")
        if password is None:
            raise SecretsConfigError(f"Secret '{ref}' is missing required field 'password'.")
        if not isinstance(password, str):
            raise SecretsConfigError(f"Secret '{ref}' field 'password' must be a string.")

        entries[str(ref)] = password

    return Secrets(entries=entries, source_path=path)


def _env_password(secret_ref: str) -> str | None:
    """Return an env-sourced password for the given secret ref if set."""

    return os.getenv(f"{ENV_PREFIX}{_normalize_secret_ref(secret_ref)}")


def load_secrets(path: Path = DEFAULT_SECRETS_PATH, logger: logging.Logger | None = None) -> Secrets:
    """Load secrets from the provided path.

    A missing file is not an error on its own: passwords may still come from
    the environment.
    """

    logger = logger or logging.getLogger(__name__)
    if not path.exists():
        logger.warning("Secrets file not found at %s", path, extra={"device": "-"})
        return Secrets(entries={}, source_path=path, missing_source=True)

    secrets = _load_file_secrets(path)
    logger.debug("Secrets file loaded path=%s entries=%d", path, len(secrets.entries))
    return secrets


def get_password(secret_ref: str, secrets: Secrets | None = None) -> str:
    """Resolve the API password for a device's secret reference.

    Resolution order:
    1. Environment variable ``AAABRIDGE_SECRET_<SECRET_REF>``
    2. ``config/secrets.yml`` (if present)
    """

    env_value = _env_password(secret_ref)
    if env_value is not None:
        return env_value

    secrets = secrets or load_secrets()
    password = secrets.get(secret_ref)
    if password is not None:
        return password

    raise SecretNotFoundError(f"Secret '{secret_ref}' not found.")
