from __future__ import annotations
"""Connection settings for OBS, read from the environment and a JSON file."""

from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from .credentials import KeychainStore
from .errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

MIB = 1024 * 1024
DEFAULT_WRITE_BUFFER_MB = 64
DEFAULT_MAX_ATTEMPTS = 3

ENV_ACCESS_KEY = "OBS_ACCESS_KEY_ID"
ENV_SECRET_KEY = "OBS_SECRET_ACCESS_KEY"
ENV_ENDPOINT = "OBS_ENDPOINT"
ENV_REGION = "OBS_REGION"
ENV_WRITE_BUFFER_MB = "OBS_WRITE_BUFFER_MB"
ENV_LEGACY_WRITE_BUFFER_MB = "DMLC_OBS_WRITE_BUFFER_MB"
ENV_MAX_ATTEMPTS = "OBS_MAX_ATTEMPTS"


@dataclass(frozen=True)
class ObsSettings:
    """Credentials and tuning values, fixed for the lifetime of a session."""

    access_key: str
    secret_key: str
    endpoint: str
    write_buffer_size: int = DEFAULT_WRITE_BUFFER_MB * MIB
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    region: Optional[str] = None


@dataclass
class StoredDefaults:
    """Non-secret defaults persisted between runs."""

    endpoint: str = ""
    access_key: str = ""
    region: str = ""
    write_buffer_mb: int = DEFAULT_WRITE_BUFFER_MB
    max_attempts: int = DEFAULT_MAX_ATTEMPTS


def _positive_int(value: object, default: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


class SettingsStorage:
    """JSON-backed persistence for :class:`StoredDefaults`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pyobsfs_settings.json"
        self._path = Path(storage_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StoredDefaults:
        if not self._path.exists():
            return StoredDefaults()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable settings file %s", self._path)
            return StoredDefaults()
        if not isinstance(data, dict):
            return StoredDefaults()
        return StoredDefaults(
            endpoint=_text(data.get("endpoint")),
            access_key=_text(data.get("access_key")),
            region=_text(data.get("region")),
            write_buffer_mb=_positive_int(data.get("write_buffer_mb"), DEFAULT_WRITE_BUFFER_MB),
            max_attempts=_positive_int(data.get("max_attempts"), DEFAULT_MAX_ATTEMPTS),
        )

    def save(self, defaults: StoredDefaults) -> None:
        payload = {
            "endpoint": defaults.endpoint,
            "access_key": defaults.access_key,
            "region": defaults.region,
            "write_buffer_mb": max(int(defaults.write_buffer_mb), 1),
            "max_attempts": max(int(defaults.max_attempts), 1),
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            LOGGER.warning("Could not write settings file %s", self._path)
            return


def normalize_endpoint(endpoint: str) -> str:
    endpoint = endpoint.strip().rstrip("/")
    if endpoint and "://" not in endpoint:
        endpoint = "https://" + endpoint
    return endpoint


def load_settings(
    environ: Mapping[str, str] | None = None,
    *,
    storage: SettingsStorage | None = None,
    keychain: KeychainStore | None = None,
) -> ObsSettings:
    """Resolve :class:`ObsSettings` from the environment, file and keychain.

    Environment variables win over the settings file. The secret key is
    never stored in the file; when ``OBS_SECRET_ACCESS_KEY`` is unset it is
    looked up in the OS keychain under the access key id.

    Raises:
        ConfigurationError: when the access key, secret key or endpoint
            cannot be resolved.
    """
    env = os.environ if environ is None else environ
    defaults = (storage or SettingsStorage()).load()

    access_key = env.get(ENV_ACCESS_KEY) or defaults.access_key
    if not access_key:
        raise ConfigurationError(f"Need to set environment variable {ENV_ACCESS_KEY} to use OBS")

    secret_key = env.get(ENV_SECRET_KEY) or (keychain or KeychainStore()).get_secret(access_key)
    if not secret_key:
        raise ConfigurationError(f"Need to set environment variable {ENV_SECRET_KEY} to use OBS")

    endpoint = normalize_endpoint(env.get(ENV_ENDPOINT) or defaults.endpoint)
    if not endpoint:
        raise ConfigurationError(f"Need to set environment variable {ENV_ENDPOINT} to use OBS")

    buffer_mb = env.get(ENV_WRITE_BUFFER_MB) or env.get(ENV_LEGACY_WRITE_BUFFER_MB)
    write_buffer_mb = _positive_int(buffer_mb, defaults.write_buffer_mb)
    max_attempts = _positive_int(env.get(ENV_MAX_ATTEMPTS), defaults.max_attempts)

    return ObsSettings(
        access_key=access_key,
        secret_key=secret_key,
        endpoint=endpoint,
        write_buffer_size=write_buffer_mb * MIB,
        max_attempts=max_attempts,
        region=env.get(ENV_REGION) or defaults.region or None,
    )
