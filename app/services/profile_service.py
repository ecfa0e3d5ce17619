# app/services/profile_service.py
import logging
from typing import Any, Dict, Mapping, Optional

from app.schemas.user_schemas import UserProfile
from app.services.auth_service import (
    ensure_user_profile_exists,
    find_profile_document,
    get_current_user,
    profile_from_document,
)
from app.services.backend import BackendClient
from app.services.errors import BackendError, NotAuthenticatedError, ProfileError

logger = logging.getLogger(__name__)

_PROFILE_COLUMNS = {
    "displayName": "display_name",
    "avatarUrl": "avatar_url",
    "dietaryPreferences": "dietary_preferences",
    "cuisinePreferences": "cuisine_preferences",
    "skillLevel": "skill_level",
    "darkMode": "dark_mode",
    "savedIngredients": "saved_ingredients",
    "defaultServings": "default_servings",
}


def prepare_profile_payload(fields: Mapping[str, Any]) -> Dict[str, Any]:
    # userId is not in the column map, so it can never be rewritten
    return {column: fields[field] for field, column in _PROFILE_COLUMNS.items() if field in fields}


async def get_user_profile(backend: BackendClient) -> Optional[UserProfile]:
    user = await get_current_user(backend)
    if user is None:
        return None

    try:
        doc = await find_profile_document(backend, user.id)
    except BackendError as e:
        logger.error(
            "Error fetching user profile for %s: %s (code=%s, type=%s)",
            user.id, e.message, e.code, e.type,
        )
        return None

    if doc is not None:
        return profile_from_document(doc)

    logger.warning("No profile document found for user %s. Attempting to create one.", user.id)
    return await ensure_user_profile_exists(backend, user.id, user.name)


async def update_user_profile(backend: BackendClient, changes: Mapping[str, Any]) -> Optional[UserProfile]:
    user = await get_current_user(backend)
    if user is None:
        raise NotAuthenticatedError("Not authenticated. Cannot update profile.")

    if "userId" in changes:
        logger.warning("Ignoring userId in profile update for user %s", user.id)
    payload = prepare_profile_payload(changes)
    if not payload:
        logger.warning("update_user_profile called with no data to update.")
        return await get_user_profile(backend)

    profile = await get_user_profile(backend)
    if profile is None:
        raise ProfileError(f"Failed to find or create profile document for user {user.id}.")

    logger.info("Updating profile document %s for user %s", profile.id, user.id)
    try:
        doc = await backend.update_document(backend.profiles_table, profile.id, payload)
    except BackendError as e:
        logger.error(
            "Error updating user profile for %s: %s (code=%s, type=%s)",
            user.id, e.message, e.code, e.type,
        )
        raise
    logger.info("Profile document %s updated successfully.", profile.id)
    return profile_from_document(doc)


async def clear_saved_ingredients(backend: BackendClient) -> Optional[UserProfile]:
    try:
        profile = await update_user_profile(backend, {"savedIngredients": []})
    except Exception as e:
        logger.error("Error clearing saved ingredients in profile: %s", e)
        raise
    logger.info("Cleared saved ingredients in user profile.")
    return profile
