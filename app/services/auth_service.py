# app/services/auth_service.py
import logging
from typing import Optional, Tuple

from app.schemas.user_schemas import Identity, Session, UserProfile
from app.services.backend import BackendClient, DocumentQuery
from app.services.errors import BackendError

logger = logging.getLogger(__name__)

DEFAULT_SKILL_LEVEL = "Any"
DEFAULT_SERVINGS = 2


def profile_from_document(doc: dict) -> UserProfile:
    return UserProfile(
        id=str(doc["id"]),
        userId=doc["user_id"],
        displayName=doc.get("display_name"),
        avatarUrl=doc.get("avatar_url"),
        dietaryPreferences=doc.get("dietary_preferences") or [],
        cuisinePreferences=doc.get("cuisine_preferences") or [],
        skillLevel=doc.get("skill_level"),
        darkMode=bool(doc.get("dark_mode")),
        savedIngredients=doc.get("saved_ingredients") or [],
        defaultServings=doc.get("default_servings"),
        createdAt=None if doc.get("created_at") is None else str(doc["created_at"]),
        updatedAt=None if doc.get("updated_at") is None else str(doc["updated_at"]),
    )


async def find_profile_document(backend: BackendClient, user_id: str) -> Optional[dict]:
    docs = await backend.list_documents(
        backend.profiles_table,
        DocumentQuery(equal={"user_id": user_id}, limit=1),
    )
    return docs[0] if docs else None


async def ensure_user_profile_exists(
    backend: BackendClient, user_id: str, name: Optional[str] = None
) -> Optional[UserProfile]:
    """
    Return the user's profile document, creating it with defaults when absent.

    Lookup and create are two separate calls; two first logins racing each
    other can both create a profile. Failures are logged and yield None so
    they never block signup or login.
    """
    try:
        existing = await find_profile_document(backend, user_id)
        if existing is not None:
            return profile_from_document(existing)

        logger.info("Creating initial profile document for user %s", user_id)
        doc = await backend.create_document(
            backend.profiles_table,
            {
                "user_id": user_id,
                "display_name": name or "",
                "dietary_preferences": [],
                "cuisine_preferences": [],
                "skill_level": DEFAULT_SKILL_LEVEL,
                "dark_mode": False,
                "saved_ingredients": [],
                "default_servings": DEFAULT_SERVINGS,
            },
        )
        logger.info("Initial profile document created: %s", doc.get("id"))
        return profile_from_document(doc)
    except BackendError as e:
        logger.error(
            "Error ensuring user profile exists for %s: %s (code=%s, type=%s)",
            user_id, e.message, e.code, e.type,
        )
        return None
    except Exception:
        logger.exception("Unexpected error ensuring user profile exists for %s", user_id)
        return None


async def create_user_account(
    backend: BackendClient, email: str, password: str, name: Optional[str] = None
) -> Tuple[Identity, Session]:
    """Sign up, sign in, then lazily create the profile. Profile failures are swallowed."""
    try:
        account = await backend.create_account(email, password, name)
        logger.info("User account created: %s", account.id)
        session = await login_user(backend, email, password)
        logger.info("User logged in after creation.")
    except BackendError as e:
        logger.error("Error creating user account: %s (code=%s, type=%s)", e.message, e.code, e.type)
        raise

    session_backend = await backend.for_session(session.access_token)
    try:
        await ensure_user_profile_exists(session_backend, account.id, name)
    finally:
        await session_backend.aclose()
    return account, session


async def login_user(backend: BackendClient, email: str, password: str) -> Session:
    # profile creation is left to signup and the lazy profile read
    try:
        return await backend.create_session(email, password)
    except BackendError as e:
        logger.error("Error logging in user: %s (code=%s, type=%s)", e.message, e.code, e.type)
        raise


async def logout_user(backend: BackendClient) -> None:
    try:
        await backend.delete_session()
    except Exception as e:
        logger.error("Error logging out user: %s", e)


async def get_current_user(backend: BackendClient) -> Optional[Identity]:
    """The signed-in identity, or None when there is no usable session.

    Any failure reads as "no session", so a network error looks like a logout.
    """
    try:
        return await backend.get_account()
    except BackendError as e:
        if e.code == 401 or e.type in ("user_unauthorized", "general_unauthorized_scope"):
            return None
        logger.error("Error fetching current user: %s (code=%s, type=%s)", e.message, e.code, e.type)
        return None
    except Exception as e:
        logger.error("Error fetching current user: %s", e)
        return None
