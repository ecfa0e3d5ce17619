# core/config.py
import logging
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

load_dotenv()

logger = logging.getLogger(__name__)

_supabase_backend_client = None # set by init_supabase() at startup


class Settings(BaseSettings):
    SUPABASE_URL: str = Field(...)
    SUPABASE_ANON_KEY: str = Field(...)
    SUPABASE_SCHEMA: str = Field(default="public")

    SUPABASE_TABLE_RECIPES: str = Field(default="saved_recipes")
    SUPABASE_TABLE_USER_PROFILES: str = Field(default="user_profiles")

    AUTH_REDIRECT_ROUTE: str = Field(default="/recipes")
    SESSION_COOKIE_NAME: str = Field(default="recipify_session")
    PASSWORD_MIN_LENGTH: int = Field(default=8, ge=1)

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


async def init_supabase():
    global _supabase_backend_client
    # imported here so the settings module stays importable without the SDK wiring
    from app.services.backend import BackendClient

    logger.info("Initializing Supabase backend client")
    try:
        settings = get_settings()
    except Exception as e:
        logger.error("FATAL_CONFIG_ERROR: invalid Supabase configuration: %s", e)
        return

    logger.info("Supabase endpoint: %s (schema=%s)", settings.SUPABASE_URL, settings.SUPABASE_SCHEMA)
    try:
        _supabase_backend_client = await BackendClient.connect(settings)
        logger.info("Supabase backend client initialized successfully.")
    except Exception:
        logger.exception("Failed to create Supabase backend client during init_supabase")
        _supabase_backend_client = None


def is_backend_ready() -> bool:
    return _supabase_backend_client is not None


# Getter function to be used as a dependency
async def get_supabase_backend_client():
    if _supabase_backend_client is None:
        logger.critical("get_supabase_backend_client called but the backend client is not initialized")
        raise RuntimeError("Supabase client not initialized. Application startup might have failed.")
    return _supabase_backend_client

