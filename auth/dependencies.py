# auth/dependencies.py
import logging
from typing import AsyncIterator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.schemas.user_schemas import Identity
from app.services.auth_service import get_current_user
from app.services.backend import BackendClient
from core.config import get_settings, get_supabase_backend_client

logger = logging.getLogger(__name__)

# auto_error is off so cookie-based page sessions can fall through
http_bearer_scheme = HTTPBearer(auto_error=False)


def get_access_token(
    request: Request,
    auth_creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer_scheme),
) -> Optional[str]:
    if auth_creds and auth_creds.credentials:
        return auth_creds.credentials
    return request.cookies.get(get_settings().SESSION_COOKIE_NAME)


async def get_session_backend(
    token: Optional[str] = Depends(get_access_token),
    backend: BackendClient = Depends(get_supabase_backend_client),
) -> AsyncIterator[BackendClient]:
    """Backend handle acting as the caller; the anonymous handle when there is no token.

    A per-session handle is closed once the request is done; the shared
    anonymous one lives for the whole process.
    """
    if not token:
        yield backend
        return
    try:
        session_backend = await backend.for_session(token)
    except Exception as e:
        logger.error("Could not open a backend session for the caller: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Error connecting to authentication service.",
        )
    try:
        yield session_backend
    finally:
        await session_backend.aclose()


async def get_optional_user(backend: BackendClient = Depends(get_session_backend)) -> Optional[Identity]:
    return await get_current_user(backend)


async def get_current_supabase_user(user: Optional[Identity] = Depends(get_optional_user)) -> Identity:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
