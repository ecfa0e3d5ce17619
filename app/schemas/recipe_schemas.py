# app/schemas/recipe_schemas.py
from __future__ import annotations

from typing import Literal, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# ─── Domain enums ─────────────────────────────────────────────
RecipeSortBy = Literal["newest", "oldest", "alphabetical"]

# ─── Pydantic models ─────────────────────────────────────────
class Macros(BaseModel):
    calories: Optional[str] = None
    protein: Optional[str] = None
    carbs: Optional[str] = None
    fat: Optional[str] = None

class Recipe(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    ingredients: List[str]
    instructions: str
    description: Optional[str] = None
    prepTime: Optional[str] = None
    cookTime: Optional[str] = None
    totalTime: Optional[str] = None
    servings: Optional[str] = None
    difficulty: Optional[str] = None
    macros: Optional[Macros] = None
    reasoning: Optional[str] = None
    tips: List[str] = Field(default_factory=list)

    # user-managed extras
    tags: List[str] = Field(default_factory=list)
    userRating: Optional[float] = None
    userNotes: Optional[str] = None

class RecipeUpdate(BaseModel):
    """Partial recipe; only the fields a client actually sends are written."""
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    ingredients: Optional[List[str]] = None
    instructions: Optional[str] = None
    description: Optional[str] = None
    prepTime: Optional[str] = None
    cookTime: Optional[str] = None
    totalTime: Optional[str] = None
    servings: Optional[str] = None
    difficulty: Optional[str] = None
    macros: Optional[Macros] = None
    reasoning: Optional[str] = None
    tips: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    userRating: Optional[float] = None
    userNotes: Optional[str] = None

class SavedRecipe(Recipe):
    id: str
    userId: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

class RecipeFilters(BaseModel):
    difficulty: Optional[str] = None
    sortBy: Optional[RecipeSortBy] = None

class RecipeError(BaseModel):
    error: str
    code: Optional[str] = None
    trace: Optional[str] = None
