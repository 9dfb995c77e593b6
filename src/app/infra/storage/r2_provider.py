# src/app/infra/storage/r2_provider.py
"""
Cloudflare R2 storage for the recipe collection.
R2 is S3-compatible, so we use boto3 with custom endpoint.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from src.app.domain.errors import (
    ConcurrentUpdateError,
    StorageConfigurationError,
    StorageWriteError,
)
from src.app.domain.models import Recipe, Snapshot
from src.app.infra.storage.base import RecipeStorage

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
CONFLICT_CODES = {"412", "409", "PreconditionFailed", "ConditionalRequestConflict"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", "Unknown"))


def create_r2_client(account_id: str, access_key_id: str, secret_access_key: str) -> Any:
    return boto3.client(
        "s3",
        endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        config=Config(
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "adaptive"},
        ),
        region_name="auto",  # R2 uses 'auto' as region
    )


class R2RecipeStorage(RecipeStorage):
    """
    Stores the collection as a single R2 object.

    Environment variables used when arguments are omitted:
    - R2_ACCOUNT_ID: Cloudflare account ID
    - R2_ACCESS_KEY_ID: R2 access key ID
    - R2_SECRET_ACCESS_KEY: R2 secret access key
    - R2_BUCKET_NAME: Name of the R2 bucket
    - R2_OBJECT_KEY: Key of the collection document (default: recipes.json)

    Reads are retried with exponential backoff and degrade to an empty,
    flagged Snapshot once retries run out. Writes are conditional on the
    object's ETag (If-Match / If-None-Match), so a stale read can never
    overwrite a newer document.
    """

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        object_key: Optional[str] = None,
        client: Any = None,
        account_id: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        read_retries: int = 3,
        read_backoff_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.bucket_name = bucket_name or os.getenv("R2_BUCKET_NAME")
        self.object_key = object_key or os.getenv("R2_OBJECT_KEY", "recipes.json")
        self.read_retries = max(0, read_retries)
        self.read_backoff_seconds = read_backoff_seconds
        self._sleep = sleep

        if client is None:
            account_id = account_id or os.getenv("R2_ACCOUNT_ID")
            access_key_id = access_key_id or os.getenv("R2_ACCESS_KEY_ID")
            secret_access_key = secret_access_key or os.getenv("R2_SECRET_ACCESS_KEY")
            missing = [
                name
                for name, value in (
                    ("R2_ACCOUNT_ID", account_id),
                    ("R2_ACCESS_KEY_ID", access_key_id),
                    ("R2_SECRET_ACCESS_KEY", secret_access_key),
                    ("R2_BUCKET_NAME", self.bucket_name),
                )
                if not value
            ]
            if missing:
                raise StorageConfigurationError([f"{name} is required" for name in missing])
            client = create_r2_client(account_id, access_key_id, secret_access_key)
        elif not self.bucket_name:
            raise StorageConfigurationError(["R2_BUCKET_NAME is required"])

        self._client = client

        logger.info(
            "R2RecipeStorage initialized: bucket=%s, key=%s, read_retries=%d",
            self.bucket_name,
            self.object_key,
            self.read_retries,
        )

    @property
    def location(self) -> str:
        return f"r2://{self.bucket_name}/{self.object_key}"

    def load(self) -> Snapshot:
        attempts = self.read_retries + 1
        for attempt in range(attempts):
            try:
                response = self._client.get_object(Bucket=self.bucket_name, Key=self.object_key)
                payload = response["Body"].read()
            except ClientError as e:
                if _error_code(e) in NOT_FOUND_CODES:
                    logger.info("No recipe document at %s yet, starting empty", self.location)
                    return Snapshot()
                last_error: Exception = e
            except BotoCoreError as e:
                last_error = e
            else:
                return Snapshot(recipes=self.decode(payload), version=response.get("ETag"))

            if attempt < attempts - 1:
                delay = self.read_backoff_seconds * (2 ** attempt)
                logger.warning(
                    "Read of %s failed (attempt %d/%d), retrying in %.2fs: %s",
                    self.location,
                    attempt + 1,
                    attempts,
                    delay,
                    last_error,
                )
                self._sleep(delay)

        logger.error(
            "Read of %s failed after %d attempts, serving empty collection: %s",
            self.location,
            attempts,
            last_error,
        )
        return Snapshot(degraded=True)

    def save(self, recipes: list[Recipe], expected_version: Optional[str]) -> str:
        params: dict[str, Any] = {
            "Bucket": self.bucket_name,
            "Key": self.object_key,
            "Body": self.encode(recipes),
            "ContentType": "application/json",
        }
        if expected_version is None:
            params["IfNoneMatch"] = "*"
        else:
            params["IfMatch"] = expected_version

        try:
            response = self._client.put_object(**params)
        except ClientError as e:
            if _error_code(e) in CONFLICT_CODES:
                logger.warning(
                    "Conditional write to %s rejected: expected=%s",
                    self.location,
                    expected_version,
                )
                raise ConcurrentUpdateError(expected_version) from e
            logger.error("Failed to write %s: %s", self.location, e)
            raise StorageWriteError(self.location, str(e)) from e
        except BotoCoreError as e:
            logger.error("Failed to write %s: %s", self.location, e)
            raise StorageWriteError(self.location, str(e)) from e

        version = response.get("ETag")
        logger.info("Saved %d recipes to %s (etag=%s)", len(recipes), self.location, version)
        return version
