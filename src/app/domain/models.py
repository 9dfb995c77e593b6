# src/app/domain/models.py
"""
Domain models for the recipe collection.
A recipe is an explicit tagged union on ``kind``: a saved link or a custom
free-text recipe. These models carry no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    computed_field,
    field_validator,
)

from src.services.platforms import Platform, detect_platform

RecipeKind = Literal["link", "custom"]
KIND_LINK: RecipeKind = "link"
KIND_CUSTOM: RecipeKind = "custom"

# Fields that belong to exactly one variant
LINK_ONLY_FIELDS = ("link", "category")
CUSTOM_ONLY_FIELDS = ("ingredients",)
DERIVED_FIELDS = {"platform"}


class RecipeBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    thumbnail: str = ""

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @field_validator("thumbnail", mode="before")
    @classmethod
    def _thumbnail_default(cls, value: Any) -> Any:
        return "" if value is None else value


class LinkedRecipe(RecipeBase):
    """A bookmarked video/post. ``platform`` is derived from ``link``."""

    kind: Literal["link"] = KIND_LINK
    link: str = ""
    category: Optional[str] = None

    @field_validator("link", mode="before")
    @classmethod
    def _link_default(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("category", mode="before")
    @classmethod
    def _blank_category_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def platform(self) -> Optional[Platform]:
        return detect_platform(self.link)


class CustomRecipe(RecipeBase):
    """A recipe typed in by the user; ``ingredients`` is free text."""

    kind: Literal["custom"] = KIND_CUSTOM
    ingredients: str = ""

    @field_validator("ingredients", mode="before")
    @classmethod
    def _ingredients_default(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def platform(self) -> None:
        return None

    @property
    def category(self) -> None:
        return None


Recipe = Annotated[Union[LinkedRecipe, CustomRecipe], Field(discriminator="kind")]

RECIPE_ADAPTER: TypeAdapter[Recipe] = TypeAdapter(Recipe)
RECIPE_LIST_ADAPTER: TypeAdapter[list[Recipe]] = TypeAdapter(list[Recipe])


def with_kind(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Tag a record that predates the ``kind`` discriminant.

    Older documents and import files mark custom recipes only by carrying an
    ``ingredients`` key. This is the single place that rule is applied.
    """
    if raw.get("kind"):
        return raw
    tagged = dict(raw)
    tagged["kind"] = KIND_CUSTOM if "ingredients" in raw else KIND_LINK
    return tagged


def strip_foreign_fields(raw: dict[str, Any]) -> dict[str, Any]:
    """Drop fields that do not belong to the record's variant."""
    foreign = LINK_ONLY_FIELDS if raw.get("kind") == KIND_CUSTOM else CUSTOM_ONLY_FIELDS
    return {k: v for k, v in raw.items() if k not in foreign and k not in DERIVED_FIELDS}


def parse_recipe(raw: dict[str, Any]) -> Recipe:
    return RECIPE_ADAPTER.validate_python(strip_foreign_fields(with_kind(raw)))


def dump_recipe(recipe: Recipe) -> dict[str, Any]:
    """Serialize for persistence; derived fields are never stored."""
    return recipe.model_dump(mode="json", exclude=DERIVED_FIELDS)


@dataclass
class Snapshot:
    """A read of the whole collection together with its concurrency token."""
    recipes: list[Recipe] = field(default_factory=list)
    version: Optional[str] = None  # None: document does not exist yet
    degraded: bool = False  # True: read failed and fell back to empty

    @property
    def exists(self) -> bool:
        return self.version is not None
