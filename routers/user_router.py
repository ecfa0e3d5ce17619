# routers/user_router.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas.user_schemas import Identity, UserProfile, UserProfileUpdate
from app.services import profile_service
from app.services.backend import BackendClient
from auth.dependencies import get_current_supabase_user, get_session_backend

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
)


@router.get("/me", response_model=UserProfile)
async def read_users_me(
    current_user: Identity = Depends(get_current_supabase_user),
    backend: BackendClient = Depends(get_session_backend),
):
    logger.info("/api/users/me called for user ID: %s", current_user.id)

    user_profile = await profile_service.get_user_profile(backend)
    if not user_profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User application profile not found in the database.",
        )
    return user_profile


@router.patch("/me", response_model=UserProfile)
async def update_users_me(
    body: UserProfileUpdate,
    current_user: Identity = Depends(get_current_supabase_user),
    backend: BackendClient = Depends(get_session_backend),
):
    changes = body.model_dump(exclude_unset=True)
    user_profile = await profile_service.update_user_profile(backend, changes)
    if not user_profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User application profile not found in the database.",
        )
    return user_profile


@router.delete("/me/saved-ingredients", response_model=UserProfile)
async def clear_my_saved_ingredients(
    current_user: Identity = Depends(get_current_supabase_user),
    backend: BackendClient = Depends(get_session_backend),
):
    return await profile_service.clear_saved_ingredients(backend)
