# src/app/infra/storage/local_provider.py
"""
Local filesystem storage for the recipe collection.
Intended for single-process deployments and development.
"""
from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from src.app.domain.errors import ConcurrentUpdateError, StorageReadError, StorageWriteError
from src.app.domain.models import Recipe, Snapshot
from src.app.infra.storage.base import RecipeStorage

logger = logging.getLogger(__name__)


def _digest(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


class LocalFileStorage(RecipeStorage):
    """
    Stores the collection in a single JSON file.

    The version token is the SHA-256 of the file contents. Writes go through a
    temp file and ``os.replace`` so readers never see a partial document.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        logger.info("LocalFileStorage initialized: path=%s", self.path)

    @property
    def location(self) -> str:
        return str(self.path)

    def _read_bytes(self) -> Optional[bytes]:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error("Failed to read %s: %s", self.path, e)
            raise StorageReadError(self.location, str(e)) from e

    def load(self) -> Snapshot:
        payload = self._read_bytes()
        if payload is None:
            logger.debug("No recipe file at %s yet, starting empty", self.path)
            return Snapshot()
        return Snapshot(recipes=self.decode(payload), version=_digest(payload))

    def save(self, recipes: list[Recipe], expected_version: Optional[str]) -> str:
        payload = self.encode(recipes)
        with self._lock:
            current = self._read_bytes()
            current_version = _digest(current) if current is not None else None
            if current_version != expected_version:
                logger.warning(
                    "Version mismatch on %s: expected=%s, current=%s",
                    self.path,
                    expected_version,
                    current_version,
                )
                raise ConcurrentUpdateError(expected_version)
            self._write_atomic(payload)

        version = _digest(payload)
        logger.info("Saved %d recipes to %s (version=%s)", len(recipes), self.path, version[:12])
        return version

    def _write_atomic(self, payload: bytes) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "wb") as tmp:
                    tmp.write(payload)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("Failed to write %s: %s", self.path, e)
            raise StorageWriteError(self.location, str(e)) from e
