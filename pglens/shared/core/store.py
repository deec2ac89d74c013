"""JSON documents kept in the pglens config directory.

Connection history, query history, favorites, settings and the plaintext
credentials fallback each live in one file that is rewritten whole on
every change.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# PGLENS_CONFIG_DIR relocates every store (the test suite points it at a temp dir).
CONFIG_DIR = Path(os.environ.get("PGLENS_CONFIG_DIR", Path.home() / ".pglens"))


def ensure_config_dir(path: Path | None = None) -> Path:
    """Create ``path`` (default ``CONFIG_DIR``) and restrict it to its owner.

    Failure to create the directory raises OSError. Failure to change its
    mode, as on filesystems without POSIX permissions, is ignored.
    """
    directory = path or CONFIG_DIR
    directory.mkdir(parents=True, exist_ok=True)
    with contextlib.suppress(OSError):
        os.chmod(directory, 0o700)
    return directory


class JSONFileStore:
    """One JSON document on disk: read leniently, replaced atomically."""

    def __init__(self, file_path: Path):
        self._file_path = file_path

    @property
    def file_path(self) -> Path:
        return self._file_path

    def exists(self) -> bool:
        return self._file_path.exists()

    def _ensure_dir(self) -> None:
        ensure_config_dir(self._file_path.parent)

    def _read_json(self) -> Any:
        """The stored document, or None when the file is missing or unusable."""
        try:
            text = self._file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as error:
            logger.warning("Cannot read %s: %s", self._file_path, error)
            return None
        try:
            return json.loads(text)
        except ValueError as error:
            logger.warning("Ignoring %s, it is not valid JSON: %s", self._file_path, error)
            return None

    def _write_json(self, data: Any) -> None:
        """Replace the document with ``data``.

        The new content goes to a sibling temp file that is chmod 0600 and
        then renamed over the old one, so readers never see a partial file.
        """
        self._ensure_dir()
        fd, name = tempfile.mkstemp(dir=self._file_path.parent, prefix=f".{self._file_path.stem}-", suffix=".tmp")
        staged = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)
            staged.chmod(0o600)
            os.replace(staged, self._file_path)
        except BaseException:
            staged.unlink(missing_ok=True)
            raise
