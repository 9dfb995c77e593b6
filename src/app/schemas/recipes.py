# src/app/schemas/recipes.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from src.app.domain.models import RecipeKind


class RecipeCreate(BaseModel):
    kind: Optional[RecipeKind] = None
    id: Optional[int] = Field(default=None, description="Suggested id; replaced if already used")
    title: str = Field(..., min_length=1, max_length=300)
    thumbnail: Optional[str] = ""
    link: Optional[str] = None
    category: Optional[str] = None
    ingredients: Optional[str] = None


class RecipePatch(BaseModel):
    kind: Optional[RecipeKind] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    thumbnail: Optional[str] = None
    link: Optional[str] = None
    category: Optional[str] = None
    ingredients: Optional[str] = None


class ErrorResponse(BaseModel):
    detail: str
