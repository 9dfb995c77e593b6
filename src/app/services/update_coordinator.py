# src/app/services/update_coordinator.py
"""
Read-modify-write coordination for the recipe collection.

Every mutation loads the freshest snapshot, applies a pure function to a
private copy and writes the result back conditionally on the version it
read. There is no lock: two writers racing on the same version cannot both
win, and the loser gets a ConcurrentUpdateError instead of silently
discarding the other's change.
"""
from __future__ import annotations

import copy
import logging
from typing import Callable, Generic, TypeVar

from src.app.domain.errors import ConcurrentUpdateError, StorageUnavailableError
from src.app.domain.models import Recipe
from src.app.infra.storage.base import RecipeStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MutationResult(Generic[T]):
    """What a mutation hands back: the new collection and the caller's result."""

    __slots__ = ("recipes", "result", "changed")

    def __init__(self, recipes: list[Recipe], result: T, changed: bool = True):
        self.recipes = recipes
        self.result = result
        self.changed = changed


Mutation = Callable[[list[Recipe]], MutationResult[T]]


class UpdateCoordinator:
    """
    Applies mutations to the stored collection.

    Args:
        storage: Backend holding the collection document
        max_attempts: How many load-mutate-save cycles to run before a
            version conflict is reported to the caller (1 = fail on the
            first conflict)
    """

    def __init__(self, storage: RecipeStorage, max_attempts: int = 1):
        self._storage = storage
        self.max_attempts = max(1, max_attempts)

    def read_collection(self) -> list[Recipe]:
        """Read-only path; a degraded read is served as an empty collection."""
        return self._storage.load().recipes

    def perform_update(self, mutation: Mutation[T]) -> T:
        """
        Run ``mutation`` against the current collection and persist its output.

        Domain errors raised by ``mutation`` propagate and nothing is written.

        Raises:
            StorageUnavailableError: If the collection could not be read
            ConcurrentUpdateError: If the document kept changing underneath
                for ``max_attempts`` cycles
        """
        for attempt in range(1, self.max_attempts + 1):
            snapshot = self._storage.load()
            if snapshot.degraded:
                raise StorageUnavailableError(self._storage.location)

            outcome = mutation(copy.deepcopy(snapshot.recipes))
            if not outcome.changed:
                return outcome.result
            if not snapshot.exists:
                logger.info("Creating collection document at %s", self._storage.location)

            try:
                self._storage.save(outcome.recipes, expected_version=snapshot.version)
            except ConcurrentUpdateError:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(
                    "Concurrent update on %s, re-running mutation (attempt %d/%d)",
                    self._storage.location,
                    attempt + 1,
                    self.max_attempts,
                )
                continue
            return outcome.result

        # unreachable: the loop either returns or re-raises
        raise ConcurrentUpdateError(None)
