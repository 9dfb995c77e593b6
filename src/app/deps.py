# src/app/deps.py (singleton do storage, exposto como dependência)

from __future__ import annotations

import logging

from fastapi import Depends

from src.app.config import Settings, settings
from src.app.domain.errors import StorageConfigurationError
from src.app.infra.storage.base import RecipeStorage
from src.app.infra.storage.local_provider import LocalFileStorage
from src.app.infra.storage.r2_provider import R2RecipeStorage
from src.app.services.recipe_service import RecipeService
from src.app.services.update_coordinator import UpdateCoordinator

logger = logging.getLogger(__name__)

_storage: RecipeStorage | None = None


def build_storage(config: Settings) -> RecipeStorage:
    """Pick the storage backend named by STORAGE_BACKEND."""
    if config.STORAGE_BACKEND == "local":
        return LocalFileStorage(config.DATA_FILE)
    if config.STORAGE_BACKEND == "r2":
        return R2RecipeStorage(
            bucket_name=config.R2_BUCKET_NAME,
            object_key=config.R2_OBJECT_KEY,
            account_id=config.R2_ACCOUNT_ID,
            access_key_id=config.R2_ACCESS_KEY_ID,
            secret_access_key=config.R2_SECRET_ACCESS_KEY,
            read_retries=config.STORAGE_READ_RETRIES,
            read_backoff_seconds=config.STORAGE_READ_BACKOFF_SECONDS,
        )
    raise StorageConfigurationError([f"Unknown STORAGE_BACKEND: {config.STORAGE_BACKEND}"])


def get_storage() -> RecipeStorage:
    global _storage
    if _storage is None:
        _storage = build_storage(settings)
        logger.info("Using %s storage at %s", settings.STORAGE_BACKEND, _storage.location)
    return _storage


def get_coordinator(storage: RecipeStorage = Depends(get_storage)) -> UpdateCoordinator:
    return UpdateCoordinator(storage, max_attempts=settings.UPDATE_MAX_ATTEMPTS)


def get_recipe_service(
    coordinator: UpdateCoordinator = Depends(get_coordinator),
) -> RecipeService:
    return RecipeService(coordinator)
