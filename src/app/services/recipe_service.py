# src/app/services/recipe_service.py
"""
Collection operations: list, get, create, update, delete, import, export.
Each write is a load-mutate-save cycle through the UpdateCoordinator.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError

from src.app.domain.errors import MalformedInputError, RecipeNotFoundError
from src.app.domain.models import (
    Recipe,
    dump_recipe,
    parse_recipe,
    with_kind,
)
from src.app.services.update_coordinator import MutationResult, UpdateCoordinator

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def fresh_id(taken: set[int], clock: Callable[[], int] = _now_ms) -> int:
    """Time-derived id, bumped until it does not collide with ``taken``."""
    candidate = clock()
    while candidate in taken:
        candidate += 1
    return candidate


def _coerce_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


def _validate(raw: dict[str, Any]) -> Recipe:
    try:
        return parse_recipe(raw)
    except ValidationError as e:
        raise MalformedInputError(f"Invalid recipe: {e.errors(include_url=False)}") from e


def _index_of(recipes: list[Recipe], recipe_id: int) -> int:
    for index, recipe in enumerate(recipes):
        if recipe.id == recipe_id:
            return index
    return -1


def matches(recipe: Recipe, platform: Optional[str] = None, category: Optional[str] = None) -> bool:
    if platform and recipe.platform != platform:
        return False
    if category and recipe.category != category:
        return False
    return True


class RecipeService:
    """
    Service for the recipe collection.

    Responsibilities:
    - Filter the collection by derived platform and category
    - Assign ids on create and import
    - Merge partial updates while keeping the record's id and variant intact
    """

    def __init__(self, coordinator: UpdateCoordinator, clock: Callable[[], int] = _now_ms):
        self._coordinator = coordinator
        self._clock = clock

    def list_recipes(
        self,
        platform: Optional[str] = None,
        category: Optional[str] = None,
    ) -> list[Recipe]:
        recipes = self._coordinator.read_collection()
        return [r for r in recipes if matches(r, platform=platform, category=category)]

    def get_recipe(self, recipe_id: int) -> Recipe:
        for recipe in self._coordinator.read_collection():
            if recipe.id == recipe_id:
                return recipe
        raise RecipeNotFoundError(recipe_id)

    def export_recipes(self) -> list[dict[str, Any]]:
        return [dump_recipe(r) for r in self._coordinator.read_collection()]

    def create_recipe(self, payload: dict[str, Any]) -> Recipe:
        """
        Append a new recipe.

        A client-suggested ``id`` is honored when it is an integer not yet in
        the collection; otherwise a fresh id is assigned.
        """
        raw = with_kind(payload)

        def mutation(recipes: list[Recipe]) -> MutationResult[Recipe]:
            taken = {r.id for r in recipes}
            suggested = _coerce_id(raw.get("id"))
            recipe_id = suggested if suggested is not None and suggested not in taken else fresh_id(taken, self._clock)
            recipe = _validate({**raw, "id": recipe_id})
            recipes.append(recipe)
            return MutationResult(recipes, recipe)

        created = self._coordinator.perform_update(mutation)
        logger.info("Created recipe id=%s kind=%s", created.id, created.kind)
        return created

    def update_recipe(self, recipe_id: int, patch: dict[str, Any]) -> Recipe:
        """
        Shallow-merge ``patch`` over the stored record.

        The id is always preserved. The resulting variant is the patch's
        ``kind`` if given, else the stored one; fields that do not belong to
        that variant are dropped.
        """

        def mutation(recipes: list[Recipe]) -> MutationResult[Recipe]:
            index = _index_of(recipes, recipe_id)
            if index == -1:
                raise RecipeNotFoundError(recipe_id)
            current = dump_recipe(recipes[index])
            merged = {**current, **patch, "id": recipe_id}
            merged["kind"] = patch.get("kind") or current["kind"]
            updated = _validate(merged)
            dropped = sorted(k for k in patch if k not in type(updated).model_fields)
            if dropped:
                logger.warning(
                    "Ignoring fields %s on %s recipe id=%s", dropped, updated.kind, recipe_id
                )
            recipes[index] = updated
            return MutationResult(recipes, updated)

        updated = self._coordinator.perform_update(mutation)
        logger.info("Updated recipe id=%s fields=%s", recipe_id, sorted(patch))
        return updated

    def delete_recipe(self, recipe_id: int) -> None:
        def mutation(recipes: list[Recipe]) -> MutationResult[None]:
            remaining = [r for r in recipes if r.id != recipe_id]
            return MutationResult(remaining, None, changed=len(remaining) != len(recipes))

        self._coordinator.perform_update(mutation)
        logger.info("Deleted recipe id=%s", recipe_id)

    def import_recipes(self, items: Any) -> list[Recipe]:
        """
        Append a batch of recipe-like objects in a single write.

        Ids that are missing, not integers, or already used (in the
        collection or earlier in the batch) are replaced with fresh ones.
        """
        if not isinstance(items, list):
            raise MalformedInputError("Import body must be a JSON array of recipes")
        if not all(isinstance(item, dict) for item in items):
            raise MalformedInputError("Every imported recipe must be a JSON object")
        raws = [with_kind(item) for item in items]
        # Validate once up front so a bad batch fails before touching storage
        for raw in raws:
            _validate({**raw, "id": 0})

        def mutation(recipes: list[Recipe]) -> MutationResult[list[Recipe]]:
            taken = {r.id for r in recipes}
            imported: list[Recipe] = []
            for raw in raws:
                recipe_id = _coerce_id(raw.get("id"))
                if recipe_id is None or recipe_id in taken:
                    recipe_id = fresh_id(taken, self._clock)
                taken.add(recipe_id)
                imported.append(_validate({**raw, "id": recipe_id}))
            recipes.extend(imported)
            return MutationResult(recipes, imported, changed=bool(imported))

        imported = self._coordinator.perform_update(mutation)
        logger.info("Imported %d recipes", len(imported))
        return imported
