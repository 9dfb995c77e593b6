"""
Client-side mirror of the recipe collection.

``ClientStore`` owns the cached records (``all_recipes``) and the derived
display list. Records are always addressed by id, never by position, so
responses that arrive out of order still land on the right record.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from src.app.domain.models import Recipe
from src.client.filters import DisplayList, FilterState, apply_filters, platform_options


@dataclass(frozen=True)
class InsertRecipe:
    record: Recipe


@dataclass(frozen=True)
class ReplaceRecipe:
    key: int
    record: Recipe


@dataclass(frozen=True)
class RemoveRecipe:
    key: int


OptimisticMutation = Union[InsertRecipe, ReplaceRecipe, RemoveRecipe]


@dataclass(frozen=True)
class RecordSnapshot:
    """State of one record at a point in time; ``record`` None means absent."""
    key: int
    record: Optional[Recipe]
    index: int


class ClientStore:
    def __init__(self, recipes: Iterable[Recipe] = ()):
        self._recipes: list[Recipe] = []
        self._platform_options: tuple[str, ...] = ()
        self._displayed = DisplayList(recipes=(), total=0)
        self.set_collection(recipes)

    @property
    def all_recipes(self) -> tuple[Recipe, ...]:
        return tuple(self._recipes)

    @property
    def displayed(self) -> DisplayList:
        return self._displayed

    @property
    def platform_options(self) -> tuple[str, ...]:
        return self._platform_options

    def set_collection(self, recipes: Iterable[Recipe]) -> None:
        """Replace the cache wholesale (full reload)."""
        self._recipes = list(recipes)
        self._platform_options = platform_options(self._recipes)

    def recompute(self, filters: FilterState) -> DisplayList:
        self._displayed = DisplayList(
            recipes=tuple(apply_filters(self._recipes, filters)),
            total=len(self._recipes),
            platform_options=self._platform_options,
        )
        return self._displayed

    def get(self, key: int) -> Optional[Recipe]:
        index = self._index_of(key)
        return self._recipes[index] if index != -1 else None

    def get_snapshot(self) -> tuple[Recipe, ...]:
        return self.all_recipes

    def capture(self, key: int) -> RecordSnapshot:
        index = self._index_of(key)
        if index == -1:
            return RecordSnapshot(key=key, record=None, index=len(self._recipes))
        return RecordSnapshot(key=key, record=self._recipes[index], index=index)

    def apply_optimistic(self, mutation: OptimisticMutation) -> RecordSnapshot:
        """Apply a tentative change and return the record's prior state."""
        if isinstance(mutation, InsertRecipe):
            before = self.capture(mutation.record.id)
            self._recipes.append(mutation.record)
        elif isinstance(mutation, ReplaceRecipe):
            before = self.capture(mutation.key)
            self._put(mutation.key, mutation.record, before.index)
        elif isinstance(mutation, RemoveRecipe):
            before = self.capture(mutation.key)
            if before.record is not None:
                del self._recipes[before.index]
        else:
            raise TypeError(f"Unknown mutation: {mutation!r}")
        return before

    def reconcile(self, key: int, record: Recipe) -> bool:
        """
        Replace the record cached under ``key`` with the server's version.

        Returns False if the record is no longer cached (removed locally
        while the request was in flight); nothing is re-added in that case.
        """
        index = self._index_of(key)
        if index == -1:
            return False
        self._recipes[index] = record
        return True

    def rekey(self, old_key: int, new_key: int) -> bool:
        index = self._index_of(old_key)
        if index == -1:
            return False
        self._recipes[index] = self._recipes[index].model_copy(update={"id": new_key})
        return True

    def rollback(self, snapshot: RecordSnapshot) -> None:
        """Restore one record to ``snapshot``, wherever it is now."""
        if snapshot.record is None:
            index = self._index_of(snapshot.key)
            if index != -1:
                del self._recipes[index]
            return
        self._put(snapshot.key, snapshot.record, snapshot.index)

    def _put(self, key: int, record: Recipe, fallback_index: int) -> None:
        index = self._index_of(key)
        if index != -1:
            self._recipes[index] = record
        else:
            self._recipes.insert(min(fallback_index, len(self._recipes)), record)

    def _index_of(self, key: int) -> int:
        for index, recipe in enumerate(self._recipes):
            if recipe.id == key:
                return index
        return -1
