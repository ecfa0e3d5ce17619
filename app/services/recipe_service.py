# app/services/recipe_service.py
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

from app.schemas.recipe_schemas import Recipe, RecipeFilters, RecipeUpdate, SavedRecipe
from app.schemas.user_schemas import Identity
from app.services.auth_service import get_current_user
from app.services.backend import BackendClient, DocumentQuery
from app.services.errors import (
    BackendError,
    NotAuthenticatedError,
    RecipeForbiddenError,
    RecipeNotFoundError,
    RecipeServiceError,
    RecipeValidationError,
)
from app.services.recipe_mapping import OWNER_COLUMN, document_to_recipe, prepare_recipe_payload

logger = logging.getLogger(__name__)

# sortBy → (column, descending)
_SORT_ORDERS = {
    "newest": ("created_at", True),
    "oldest": ("created_at", False),
    "alphabetical": ("title", False),
}
_DEFAULT_SORT = "newest"

_REQUIRED_FIELDS = ("title", "ingredients", "instructions")
# an explicit null for these means "leave as is"; the columns are not nullable
_NOT_NULL_FIELDS = frozenset(_REQUIRED_FIELDS + ("tips", "tags"))


def _log_backend_error(action: str, e: BackendError) -> None:
    logger.error("Error %s: %s (code=%s, type=%s)", action, e.message, e.code, e.type)


def _blank_required(fields: Mapping[str, Any], names) -> List[str]:
    return [
        name for name in names
        if not fields.get(name) or (isinstance(fields.get(name), str) and not fields[name].strip())
    ]


def _fields(recipe: Union[Recipe, RecipeUpdate, Mapping[str, Any]], *, only_set: bool) -> Mapping[str, Any]:
    if isinstance(recipe, (Recipe, RecipeUpdate)):
        return recipe.model_dump(exclude_unset=only_set)
    return recipe


async def save_recipe(backend: BackendClient, recipe: Union[Recipe, Mapping[str, Any]]) -> SavedRecipe:
    fields = _fields(recipe, only_set=False)

    # checked before any backend round trip
    missing = _blank_required(fields, _REQUIRED_FIELDS)
    if missing:
        logger.error("Missing required fields for save_recipe: %s", missing)
        raise RecipeValidationError(
            f"Cannot save recipe: Missing required fields ({', '.join(missing)})."
        )

    user = await get_current_user(backend)
    if user is None:
        raise NotAuthenticatedError("Not authenticated. Cannot save recipe.")

    payload = prepare_recipe_payload(fields, user.id)
    logger.info("Attempting to save recipe %r for user %s", payload.get("title"), user.id)
    try:
        doc = await backend.create_document(backend.recipes_table, payload)
    except BackendError as e:
        _log_backend_error("saving recipe", e)
        raise RecipeServiceError(f"Failed to save recipe: {e.message}") from e
    logger.info("Recipe saved successfully: %s", doc.get("id"))
    return document_to_recipe(doc)


async def update_recipe(
    backend: BackendClient,
    document_id: str,
    changes: Union[RecipeUpdate, Mapping[str, Any]],
) -> SavedRecipe:
    user = await get_current_user(backend)
    if user is None:
        raise NotAuthenticatedError("Not authenticated. Cannot update recipe.")

    fields = {
        name: value for name, value in _fields(changes, only_set=True).items()
        if not (value is None and name in _NOT_NULL_FIELDS)
    }
    blank = _blank_required(fields, [name for name in _REQUIRED_FIELDS if name in fields])
    if blank:
        raise RecipeValidationError(
            f"Cannot update recipe: required fields cannot be empty ({', '.join(blank)})."
        )
    if "userId" in fields or OWNER_COLUMN in fields:
        logger.warning("Dropping ownership field from update of recipe %s", document_id)
    payload = prepare_recipe_payload(fields)

    if not payload:
        logger.warning("Update request for recipe %s received no data to update.", document_id)
        return await get_recipe_by_id(backend, document_id)

    logger.info("Attempting to update recipe %s (fields: %s)", document_id, sorted(payload))
    try:
        doc = await backend.update_document(backend.recipes_table, document_id, payload)
    except BackendError as e:
        _log_backend_error(f"updating recipe {document_id}", e)
        raise RecipeServiceError(f"Failed to update recipe: {e.message}") from e
    logger.info("Recipe updated successfully: %s", document_id)
    return document_to_recipe(doc)


async def fetch_user_recipes(
    backend: BackendClient,
    query: Optional[str] = None,
    filters: Optional[RecipeFilters] = None,
    case_sensitive: bool = False,
    user: Optional[Identity] = None,
) -> List[SavedRecipe]:
    # callers that already resolved the identity pass it to skip a round trip
    if user is None:
        user = await get_current_user(backend)
    if user is None:
        return []

    filters = filters or RecipeFilters()
    equal = {OWNER_COLUMN: user.id}
    if filters.difficulty:
        equal["difficulty"] = filters.difficulty
    order_by, descending = _SORT_ORDERS.get(filters.sortBy or _DEFAULT_SORT, _SORT_ORDERS[_DEFAULT_SORT])

    doc_query = DocumentQuery(
        equal=equal,
        search=query.strip() if query and query.strip() else None,
        case_sensitive=case_sensitive,
        order_by=order_by,
        descending=descending,
    )
    try:
        docs = await backend.list_documents(backend.recipes_table, doc_query)
    except BackendError as e:
        _log_backend_error("fetching recipes", e)
        return []
    logger.info("Fetched %d recipes for user %s", len(docs), user.id)
    return [document_to_recipe(doc) for doc in docs]


async def delete_recipe(backend: BackendClient, recipe_id: str) -> None:
    """Delete a saved recipe. Ownership is enforced by the backend's row rules, not here."""
    user = await get_current_user(backend)
    if user is None:
        raise NotAuthenticatedError("Not authenticated.")

    try:
        await backend.delete_document(backend.recipes_table, recipe_id)
    except BackendError as e:
        _log_backend_error("deleting recipe", e)
        raise RecipeServiceError(f"Failed to delete recipe: {e.message}") from e
    logger.info("Recipe deleted successfully: %s", recipe_id)


async def get_recipe_by_id(backend: BackendClient, document_id: str) -> SavedRecipe:
    logger.info("Attempting to fetch recipe with ID: %s", document_id)
    try:
        doc = await backend.get_document(backend.recipes_table, document_id)
    except BackendError as e:
        _log_backend_error(f"fetching recipe {document_id}", e)
        if e.code == 404:
            raise RecipeNotFoundError(document_id) from e
        if e.code in (401, 403):
            raise RecipeForbiddenError(document_id) from e
        raise RecipeServiceError(f"Failed to fetch recipe: {e.message}") from e
    logger.info("Recipe %s fetched successfully.", document_id)
    return document_to_recipe(doc)
