"""
Filter and sort rules for the displayed recipe list.
Pure functions over a sequence of recipes; the store decides when to run them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from src.app.domain.models import Recipe


class SortMode(str, Enum):
    DEFAULT = "default"  # natural order of the cache
    NEWEST = "newest"
    OLDEST = "oldest"


@dataclass(frozen=True)
class FilterState:
    platform: Optional[str] = None
    category: Optional[str] = None
    search: str = ""
    sort: Optional[SortMode] = None  # None behaves like NEWEST

    @property
    def effective_sort(self) -> SortMode:
        return SortMode(self.sort) if self.sort else SortMode.NEWEST


@dataclass(frozen=True)
class DisplayList:
    recipes: tuple[Recipe, ...]
    total: int
    platform_options: tuple[str, ...] = field(default_factory=tuple)

    @property
    def shown(self) -> int:
        return len(self.recipes)

    @property
    def count_label(self) -> str:
        return f"{self.shown} of {self.total}"

    @property
    def is_empty(self) -> bool:
        return not self.recipes


def matches(recipe: Recipe, state: FilterState) -> bool:
    if state.platform and recipe.platform != state.platform:
        return False
    if state.category and recipe.category != state.category:
        return False
    term = state.search.strip().lower()
    if term and term not in recipe.title.lower():
        return False
    return True


def sort_recipes(recipes: Iterable[Recipe], mode: SortMode) -> list[Recipe]:
    ordered = list(recipes)
    if mode is SortMode.NEWEST:
        ordered.sort(key=lambda r: r.id, reverse=True)
    elif mode is SortMode.OLDEST:
        ordered.sort(key=lambda r: r.id)
    return ordered


def apply_filters(recipes: Sequence[Recipe], state: FilterState) -> list[Recipe]:
    """All active filters must match; then order by the active sort mode."""
    return sort_recipes((r for r in recipes if matches(r, state)), state.effective_sort)


def platform_options(recipes: Iterable[Recipe]) -> tuple[str, ...]:
    """Distinct platforms present in ``recipes``, in first-seen order."""
    seen: dict[str, None] = {}
    for recipe in recipes:
        if recipe.platform:
            seen.setdefault(recipe.platform, None)
    return tuple(seen)
