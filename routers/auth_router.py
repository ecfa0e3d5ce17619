# routers/auth_router.py
from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.schemas.user_schemas import AuthResponse, Identity, LoginForm, SignupForm
from app.services import auth_service
from app.services.backend import BackendClient
from app.services.errors import BackendError
from auth.dependencies import get_current_supabase_user, get_session_backend
from core.config import get_settings, get_supabase_backend_client

router = APIRouter(prefix="/api/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid email or password. Please try again."


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(body: SignupForm, backend: BackendClient = Depends(get_supabase_backend_client)):
    body.check_password_length(get_settings().PASSWORD_MIN_LENGTH)
    try:
        user, session = await auth_service.create_user_account(backend, body.email, body.password, body.name)
    except BackendError as e:
        code = e.code if e.code and 400 <= e.code < 500 else status.HTTP_502_BAD_GATEWAY
        raise HTTPException(status_code=code, detail=e.message)
    return AuthResponse(user=user, session=session)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginForm, backend: BackendClient = Depends(get_supabase_backend_client)):
    try:
        session = await auth_service.login_user(backend, body.email, body.password)
    except BackendError:
        # deliberately the same message for unknown account and wrong password
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)
    return AuthResponse(user=session.user, session=session)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(backend: BackendClient = Depends(get_session_backend)):
    await auth_service.logout_user(backend)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=Identity)
async def me(current_user: Identity = Depends(get_current_supabase_user)):
    return current_user
