"""Settings store and typed application settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pglens.shared.core.store import CONFIG_DIR, JSONFileStore

logger = logging.getLogger(__name__)

DEFAULT_DISCOVERY_PORTS = [5432, 5433, 5434, 5435]


def _resolve_settings_path() -> Path:
    override = os.environ.get("PGLENS_SETTINGS_PATH", "").strip()
    if override:
        return Path(override).expanduser()
    return CONFIG_DIR / "settings.json"


class SettingsStore(JSONFileStore):
    """Store for application settings.

    Settings are stored as a JSON object in ~/.pglens/settings.json
    """

    _instance: SettingsStore | None = None

    def __init__(self, file_path: Path | None = None) -> None:
        super().__init__(file_path or _resolve_settings_path())

    @classmethod
    def get_instance(cls) -> SettingsStore:
        """Get the singleton instance."""
        if cls._instance is None or cls._instance.file_path != _resolve_settings_path():
            cls._instance = cls()
        return cls._instance

    def load_all(self) -> dict[str, Any]:
        data = self._read_json()
        return data if isinstance(data, dict) else {}

    def save_all(self, settings: dict[str, Any]) -> None:
        self._write_json(settings)

    def get(self, key: str, default: Any = None) -> Any:
        return self.load_all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        settings = self.load_all()
        settings[key] = value
        self.save_all(settings)


def _positive_int(value: Any, default: int, maximum: int | None = None) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number <= 0:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number


def _positive_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dataclass
class AppSettings:
    """Typed view of settings.json with defaults applied."""

    page_size: int = 100
    discovery_ports: list[int] = field(default_factory=lambda: list(DEFAULT_DISCOVERY_PORTS))
    discovery_timeout: float = 5.0
    connect_timeout: float = 10.0
    max_result_tabs: int = 10
    allow_plaintext_credentials: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppSettings:
        defaults = cls()
        ports = data.get("discovery_ports")
        if isinstance(ports, list):
            valid_ports = [
                int(port) for port in ports if isinstance(port, int) and not isinstance(port, bool) and 0 < port < 65536
            ]
        else:
            valid_ports = []
        return cls(
            page_size=_positive_int(data.get("page_size"), defaults.page_size, maximum=10_000),
            discovery_ports=valid_ports or defaults.discovery_ports,
            discovery_timeout=_positive_float(data.get("discovery_timeout"), defaults.discovery_timeout),
            connect_timeout=_positive_float(data.get("connect_timeout"), defaults.connect_timeout),
            max_result_tabs=_positive_int(data.get("max_result_tabs"), defaults.max_result_tabs, maximum=50),
            allow_plaintext_credentials=bool(data.get("allow_plaintext_credentials", False)),
        )

    @classmethod
    def from_store(cls, store: SettingsStore | None = None) -> AppSettings:
        store = store or SettingsStore.get_instance()
        settings = cls.from_dict(store.load_all())
        logger.debug("Loaded settings from %s: %s", store.file_path, settings)
        return settings
