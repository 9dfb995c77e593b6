# src/app/routers/recipes.py
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse

from src.app.deps import get_recipe_service
from src.app.domain.errors import (
    ConcurrentUpdateError,
    MalformedInputError,
    RecipeNotFoundError,
)
from src.app.domain.models import Recipe
from src.app.schemas.recipes import ErrorResponse, RecipeCreate, RecipePatch
from src.app.services.recipe_service import RecipeService

router = APIRouter(prefix="/api/recipes", tags=["recipes"])

_CONFLICT_DETAIL = "The recipe collection changed while saving. Reload and try again."


@router.get("", response_model=list[Recipe])
def list_recipes(
    platform: Optional[str] = Query(default=None, description="youtube, instagram or tiktok"),
    category: Optional[str] = Query(default=None, description="Exact category match"),
    service: RecipeService = Depends(get_recipe_service),
) -> list[Recipe]:
    return service.list_recipes(platform=platform, category=category)


@router.get("/export")
def export_recipes(service: RecipeService = Depends(get_recipe_service)) -> JSONResponse:
    return JSONResponse(
        content=service.export_recipes(),
        headers={"Content-Disposition": 'attachment; filename="recipes.json"'},
    )


@router.get(
    "/{recipe_id}",
    response_model=Recipe,
    responses={404: {"model": ErrorResponse}},
)
def get_recipe(
    recipe_id: int,
    service: RecipeService = Depends(get_recipe_service),
) -> Recipe:
    try:
        return service.get_recipe(recipe_id)
    except RecipeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post(
    "",
    response_model=Recipe,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def create_recipe(
    payload: RecipeCreate,
    service: RecipeService = Depends(get_recipe_service),
) -> Recipe:
    try:
        return service.create_recipe(payload.model_dump(exclude_none=True))
    except MalformedInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ConcurrentUpdateError:
        raise HTTPException(status_code=409, detail=_CONFLICT_DETAIL)


@router.post(
    "/import",
    response_model=list[Recipe],
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def import_recipes(
    items: Any = Body(...),
    service: RecipeService = Depends(get_recipe_service),
) -> list[Recipe]:
    try:
        return service.import_recipes(items)
    except MalformedInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ConcurrentUpdateError:
        raise HTTPException(status_code=409, detail=_CONFLICT_DETAIL)


@router.put(
    "/{recipe_id}",
    response_model=Recipe,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
def update_recipe(
    recipe_id: int,
    payload: RecipePatch,
    service: RecipeService = Depends(get_recipe_service),
) -> Recipe:
    changes = payload.model_dump(exclude_unset=True)
    try:
        return service.update_recipe(recipe_id, changes)
    except RecipeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except MalformedInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ConcurrentUpdateError:
        raise HTTPException(status_code=409, detail=_CONFLICT_DETAIL)


@router.delete(
    "/{recipe_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={409: {"model": ErrorResponse}},
)
def delete_recipe(
    recipe_id: int,
    service: RecipeService = Depends(get_recipe_service),
) -> Response:
    try:
        service.delete_recipe(recipe_id)
    except ConcurrentUpdateError:
        raise HTTPException(status_code=409, detail=_CONFLICT_DETAIL)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
