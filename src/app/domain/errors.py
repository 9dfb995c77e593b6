from __future__ import annotations


class RecipeBoxError(Exception):
    pass


class RecipeNotFoundError(RecipeBoxError):
    def __init__(self, recipe_id: int):
        super().__init__(f"Recipe not found: {recipe_id}")
        self.recipe_id = recipe_id


class MalformedInputError(RecipeBoxError):
    def __init__(self, message: str = "Malformed input"):
        super().__init__(message)


class ConcurrentUpdateError(RecipeBoxError):
    def __init__(self, expected_version: str | None):
        super().__init__(
            f"Collection changed since it was read (expected version {expected_version or '<none>'})"
        )
        self.expected_version = expected_version


class StorageError(RecipeBoxError):
    pass


class StorageReadError(StorageError):
    def __init__(self, location: str, reason: str = "Read failed"):
        super().__init__(f"Failed to read {location}: {reason}")
        self.location = location
        self.reason = reason


class StorageWriteError(StorageError):
    def __init__(self, location: str, reason: str = "Write failed"):
        super().__init__(f"Failed to write {location}: {reason}")
        self.location = location
        self.reason = reason


class CorruptDocumentError(StorageError):
    def __init__(self, location: str, reason: str):
        super().__init__(f"Corrupt recipe document at {location}: {reason}")
        self.location = location
        self.reason = reason


class StorageUnavailableError(StorageError):
    def __init__(self, location: str):
        super().__init__(f"Recipe document at {location} could not be read; refusing to overwrite it")
        self.location = location


class StorageConfigurationError(StorageError):
    def __init__(self, errors: list[str]):
        super().__init__(f"Storage configuration errors: {', '.join(errors)}")
        self.errors = errors
