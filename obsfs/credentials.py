from __future__ import annotations
"""OS keychain access for OBS secret keys."""
import logging

import keyring
from keyring.errors import KeyringError

LOGGER = logging.getLogger(__name__)

SERVICE_NAME = "pyobsfs"


class KeychainStore:
    """Looks up secret keys in the OS keychain, keyed by access key id."""

    def __init__(self, service_name: str = SERVICE_NAME):
        self._service_name = service_name

    def get_secret(self, access_key: str) -> str:
        if not access_key:
            return ""
        try:
            return keyring.get_password(self._service_name, access_key) or ""
        except KeyringError:
            LOGGER.debug("Keychain lookup failed for '%s'", access_key, exc_info=True)
            return ""

