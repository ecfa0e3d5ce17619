# app/services/recipe_mapping.py
"""
Conversion between the Recipe domain shape and the flat row stored in the
saved-recipes table.

The table only holds scalars and text arrays, so the macros object is stored
as "Label: value" lines. Reads are tolerant by policy: a malformed line or a
non-list column is logged and skipped, never raised, so a bad row can always
be opened.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel

from app.schemas.recipe_schemas import Macros, SavedRecipe

logger = logging.getLogger(__name__)

# fixed serialization order
_MACRO_LABELS = (
    ("calories", "Calories"),
    ("protein", "Protein"),
    ("carbs", "Carbs"),
    ("fat", "Fat"),
)

_MACRO_KEYS = {
    "calories": "calories",
    "energy": "calories",
    "protein": "protein",
    "carbs": "carbs",
    "carbohydrates": "carbs",
    "fat": "fat",
}

_MACRO_SPLIT = re.compile(r":\s*")

# domain field → column, for plain values copied as-is
_SCALAR_COLUMNS = {
    "title": "title",
    "description": "description",
    "instructions": "instructions",
    "prepTime": "prep_time",
    "cookTime": "cook_time",
    "totalTime": "total_time",
    "servings": "servings",
    "difficulty": "difficulty",
    "reasoning": "reasoning",
    "tags": "tags",
    "userRating": "user_rating",
    "userNotes": "user_notes",
}

OWNER_COLUMN = "user_id"

MacrosLike = Union[Macros, Mapping[str, Any]]


def format_macros(macros: Optional[MacrosLike]) -> Optional[List[str]]:
    """Macros object → ["Calories: 450 kcal", ...]; None when nothing is set."""
    if macros is None:
        return None
    if isinstance(macros, BaseModel):
        macros = macros.model_dump(exclude_none=True)
    formatted = []
    for key, label in _MACRO_LABELS:
        value = macros.get(key)
        if value is None:
            continue
        value = str(value)
        if not value:
            continue
        formatted.append(f"{label}: {value}")
    return formatted or None


def parse_macros(lines: Any, doc_id: Optional[str] = None) -> Optional[Macros]:
    """["Protein: 30g", ...] → Macros; None when no line could be used."""
    if not isinstance(lines, list) or not lines:
        return None
    parsed: Dict[str, str] = {}
    for item in lines:
        if not isinstance(item, str):
            continue
        parts = _MACRO_SPLIT.split(item, maxsplit=1)
        if len(parts) != 2:
            logger.warning("Could not parse macro item %r in doc %s", item, doc_id)
            continue
        key = parts[0].strip().lower()
        value = parts[1].strip()
        field = _MACRO_KEYS.get(key)
        if field is None:
            logger.warning("Skipping unknown macro label %r in doc %s", parts[0], doc_id)
            continue
        if value:
            parsed[field] = value
    return Macros(**parsed) if parsed else None


def _text_list(value: Any, column: str, doc_id: Optional[str]) -> List[str]:
    if isinstance(value, list):
        return value
    logger.warning("%s for doc %s was not a list: %r", column, doc_id, value)
    return []


def parse_ingredients(doc: Mapping[str, Any]) -> List[str]:
    return _text_list(doc.get("ingredients"), "ingredients", doc.get("id"))


def parse_tips(doc: Mapping[str, Any]) -> List[str]:
    return _text_list(doc.get("tips_json"), "tips_json", doc.get("id"))


def prepare_recipe_payload(fields: Mapping[str, Any], user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the column payload for an insert or update.

    Only keys present in `fields` are written, so a partial mapping yields a
    partial update. Unknown keys are ignored, which is how a client-supplied
    owner id gets dropped; ownership is only ever set from `user_id`.
    """
    payload: Dict[str, Any] = {}
    if user_id:
        payload[OWNER_COLUMN] = user_id

    for field, column in _SCALAR_COLUMNS.items():
        if field in fields:
            payload[column] = fields[field]

    if "ingredients" in fields:
        payload["ingredients"] = list(fields["ingredients"] or [])
    if "tips" in fields:
        payload["tips_json"] = list(fields["tips"] or [])

    if "macros" in fields:
        macros_lines = format_macros(fields["macros"])
        if macros_lines is not None:
            payload["macros_json"] = macros_lines

    return payload


def document_to_recipe(doc: Mapping[str, Any]) -> SavedRecipe:
    doc_id = doc.get("id")
    tags = doc.get("tags")
    return SavedRecipe(
        id=str(doc_id),
        userId=doc.get(OWNER_COLUMN),
        createdAt=_as_text(doc.get("created_at")),
        updatedAt=_as_text(doc.get("updated_at")),
        title=doc.get("title") or "Untitled Recipe",
        ingredients=parse_ingredients(doc),
        instructions=doc.get("instructions") or "No instructions provided.",
        description=doc.get("description"),
        prepTime=doc.get("prep_time"),
        cookTime=doc.get("cook_time"),
        totalTime=doc.get("total_time"),
        servings=doc.get("servings"),
        difficulty=doc.get("difficulty"),
        macros=parse_macros(doc.get("macros_json"), doc_id),
        reasoning=doc.get("reasoning"),
        tips=parse_tips(doc),
        tags=tags if isinstance(tags, list) else [],
        userRating=doc.get("user_rating"),
        userNotes=doc.get("user_notes"),
    )


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)
