"""Password storage for remembered connections.

Passwords never go into the connection history file. The OS keyring is
used when available; with the user's consent (``allow_plaintext_credentials``)
an owner-only JSON file is used instead, otherwise passwords are kept in
memory for the session only.
"""

from __future__ import annotations

import logging
import secrets
from abc import ABC, abstractmethod
from pathlib import Path

import keyring

from pglens.shared.core.store import CONFIG_DIR, JSONFileStore

logger = logging.getLogger(__name__)

KEYRING_SERVICE_NAME = "pglens"

ALLOW_PLAINTEXT_CREDENTIALS_SETTING = "allow_plaintext_credentials"


def is_keyring_usable() -> bool:
    """Return True if a usable keyring backend appears to be available."""
    try:
        backend = keyring.get_keyring()
        module_name = getattr(backend, "__module__", "") or ""
        priority = getattr(backend, "priority", None)
        if "keyring.backends.fail" in module_name or "keyring.backends.null" in module_name:
            return False
        if isinstance(priority, (int, float)) and priority <= 0:
            return False

        keyring.get_password(KEYRING_SERVICE_NAME, f"probe:{secrets.token_hex(8)}")
        return True
    except Exception:
        logger.debug("Keyring backend unusable", exc_info=True)
        return False


class CredentialsService(ABC):
    """Stores one password per credential key (``user@host:port/database``)."""

    @abstractmethod
    def get_password(self, key: str) -> str | None: ...

    @abstractmethod
    def set_password(self, key: str, password: str | None) -> None: ...

    @abstractmethod
    def delete_password(self, key: str) -> None: ...

    @property
    def persistent(self) -> bool:
        return True


class KeyringCredentialsService(CredentialsService):
    """Passwords in the OS keyring (Keychain, Credential Locker, Secret Service)."""

    def get_password(self, key: str) -> str | None:
        try:
            value = keyring.get_password(KEYRING_SERVICE_NAME, key)
        except Exception as error:
            logger.warning("Could not read password for %s from keyring: %s", key, error)
            return None
        return value if isinstance(value, str) else None

    def set_password(self, key: str, password: str | None) -> None:
        if password is None:
            self.delete_password(key)
            return
        try:
            keyring.set_password(KEYRING_SERVICE_NAME, key, password)
        except Exception as error:
            logger.warning("Could not store password for %s in keyring: %s", key, error)

    def delete_password(self, key: str) -> None:
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, key)
        except Exception:
            logger.debug("No keyring password to delete for %s", key)


class MemoryCredentialsService(CredentialsService):
    """Session-only storage; nothing is persisted."""

    def __init__(self) -> None:
        self._passwords: dict[str, str] = {}

    @property
    def persistent(self) -> bool:
        return False

    def get_password(self, key: str) -> str | None:
        return self._passwords.get(key)

    def set_password(self, key: str, password: str | None) -> None:
        if password is None:
            self.delete_password(key)
        else:
            self._passwords[key] = password

    def delete_password(self, key: str) -> None:
        self._passwords.pop(key, None)


class PlaintextFileCredentialsService(CredentialsService):
    """Passwords in ~/.pglens/credentials.json (mode 0600)."""

    def __init__(self, file_path: Path | None = None) -> None:
        self._store = JSONFileStore(file_path or CONFIG_DIR / "credentials.json")

    def _read_all(self) -> dict[str, str]:
        data = self._store._read_json()
        return data if isinstance(data, dict) else {}

    def get_password(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_password(self, key: str, password: str | None) -> None:
        if password is None:
            self.delete_password(key)
            return
        data = self._read_all()
        data[key] = password
        self._store._write_json(data)

    def delete_password(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._store._write_json(data)


_credentials_service: CredentialsService | None = None


def get_credentials_service(allow_plaintext: bool | None = None) -> CredentialsService:
    """Return the process-wide credentials service, creating it on first use."""
    global _credentials_service
    if _credentials_service is None:
        if is_keyring_usable():
            _credentials_service = KeyringCredentialsService()
        else:
            if allow_plaintext is None:
                from pglens.domains.shell.store.settings import SettingsStore

                allow_plaintext = bool(SettingsStore.get_instance().get(ALLOW_PLAINTEXT_CREDENTIALS_SETTING))
            if allow_plaintext:
                _credentials_service = PlaintextFileCredentialsService()
            else:
                logger.info("No usable keyring; passwords will not be saved")
                _credentials_service = MemoryCredentialsService()
    return _credentials_service


def set_credentials_service(service: CredentialsService | None) -> None:
    """Replace the process-wide service (None resets it)."""
    global _credentials_service
    _credentials_service = service
