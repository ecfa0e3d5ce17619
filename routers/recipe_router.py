# routers/recipe_router.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from app.schemas.recipe_schemas import (
    Recipe,
    RecipeError,
    RecipeFilters,
    RecipeSortBy,
    RecipeUpdate,
    SavedRecipe,
)
from app.services import recipe_service
from app.services.backend import BackendClient
from auth.dependencies import get_session_backend

router = APIRouter(prefix="/api/recipes", tags=["recipes"])

_ERRORS = {
    401: {"model": RecipeError},
    403: {"model": RecipeError},
    404: {"model": RecipeError},
    422: {"model": RecipeError},
}


# ─── saved recipes ───────────────────────────────────────────
@router.post("/", response_model=SavedRecipe, status_code=status.HTTP_201_CREATED, responses=_ERRORS)
async def save_recipe(body: Recipe, backend: BackendClient = Depends(get_session_backend)):
    return await recipe_service.save_recipe(backend, body)


@router.get("/", response_model=List[SavedRecipe])
async def list_recipes(
    q: Optional[str] = Query(default=None, description="Substring to look for in the title"),
    case_sensitive: bool = Query(default=False, alias="caseSensitive"),
    difficulty: Optional[str] = None,
    sort_by: Optional[RecipeSortBy] = Query(default=None, alias="sortBy"),
    backend: BackendClient = Depends(get_session_backend),
):
    # unauthenticated callers get an empty list, not a 401
    filters = RecipeFilters(difficulty=difficulty, sortBy=sort_by)
    return await recipe_service.fetch_user_recipes(backend, q, filters, case_sensitive=case_sensitive)


@router.get("/{recipe_id}", response_model=SavedRecipe, responses=_ERRORS)
async def get_recipe(recipe_id: str, backend: BackendClient = Depends(get_session_backend)):
    return await recipe_service.get_recipe_by_id(backend, recipe_id)


@router.patch("/{recipe_id}", response_model=SavedRecipe, responses=_ERRORS)
async def update_recipe(
    recipe_id: str,
    body: RecipeUpdate,
    backend: BackendClient = Depends(get_session_backend),
):
    return await recipe_service.update_recipe(backend, recipe_id, body)


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT, responses=_ERRORS)
async def delete_recipe(recipe_id: str, backend: BackendClient = Depends(get_session_backend)):
    await recipe_service.delete_recipe(backend, recipe_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
