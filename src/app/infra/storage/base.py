# src/app/infra/storage/base.py
"""
Abstract base class for recipe collection storage.
The whole collection is one JSON document; every write replaces it.
This interface allows swapping between the local file and blob backends.
"""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError

from src.app.domain.errors import CorruptDocumentError
from src.app.domain.models import Recipe, Snapshot, dump_recipe, parse_recipe


class RecipeStorage(ABC):
    """
    Abstract interface for whole-document collection storage.

    Implementations:
    - LocalFileStorage: JSON file on the local filesystem
    - R2RecipeStorage: Cloudflare R2 object (S3-compatible)
    """

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable location of the document, for logs and errors."""
        pass

    @abstractmethod
    def load(self) -> Snapshot:
        """
        Read the full collection.

        Returns:
            Snapshot with the records and the document version. A missing
            document yields an empty Snapshot with version None.

        Raises:
            CorruptDocumentError: If the stored document is not a valid
                JSON array of recipes
        """
        pass

    @abstractmethod
    def save(self, recipes: list[Recipe], expected_version: Optional[str]) -> str:
        """
        Replace the full collection if it has not changed since it was read.

        Args:
            recipes: The new collection
            expected_version: Version from the Snapshot the change was based
                on; None means the document must not exist yet

        Returns:
            The version of the newly written document

        Raises:
            ConcurrentUpdateError: If the stored version differs
            StorageWriteError: If the write itself fails
        """
        pass

    def decode(self, payload: bytes | str) -> list[Recipe]:
        """Parse a stored document. An empty document is an empty collection."""
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        if not payload.strip():
            return []
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise CorruptDocumentError(self.location, f"invalid JSON: {e}") from e
        if not isinstance(data, list):
            raise CorruptDocumentError(self.location, "document is not a JSON array")
        try:
            return [parse_recipe(item) for item in data]
        except (ValidationError, AttributeError, TypeError) as e:
            raise CorruptDocumentError(self.location, f"invalid recipe record: {e}") from e

    def encode(self, recipes: list[Recipe]) -> bytes:
        """Serialize as an indented JSON array."""
        document = [dump_recipe(recipe) for recipe in recipes]
        return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")
