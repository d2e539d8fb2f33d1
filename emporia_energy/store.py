from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

from .const import TOKENS_FILENAME
from .exceptions import StorageReadError, StorageWriteError
from .models import SessionToken

_LOGGER = logging.getLogger(__name__)


class SessionStore:
    """Persists the session token bundle as a single JSON file."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path).expanduser()

    @classmethod
    def for_directory(cls, storage_dir: str | os.PathLike[str]) -> SessionStore:
        return cls(Path(storage_dir) / TOKENS_FILENAME)

    @property
    def path(self) -> Path:
        return self._path

    async def async_load(self) -> SessionToken | None:
        """Return the stored token, or None when nothing has been saved yet.

        Raises StorageReadError when the file exists but cannot be read or parsed.
        """
        return await asyncio.to_thread(self._load)

    async def async_save(self, token: SessionToken) -> None:
        await asyncio.to_thread(self._save, token)

    def _load(self) -> SessionToken | None:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageReadError(f"cannot read {self._path}: {e}") from e

        try:
            return SessionToken.from_dict(json.loads(text))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too.
            raise StorageReadError(f"cannot parse {self._path}: {e}") from e

    def _save(self, token: SessionToken) -> None:
        data = json.dumps(token.to_dict(), indent=2)
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(data + "\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as e:
            raise StorageWriteError(f"cannot write {self._path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    _LOGGER.debug("Could not remove temp token file %s", tmp_name)
        _LOGGER.debug("Saved session token to %s", self._path)
