# routers/pages_router.py
"""Server-rendered login / signup forms and the post-login landing page."""
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from app.schemas.recipe_schemas import RecipeFilters
from app.schemas.user_schemas import Identity, LoginForm, Session, SignupForm, first_error_message
from app.services import auth_service, recipe_service
from app.services.backend import BackendClient
from app.services.errors import BackendError, FormValidationError
from auth.dependencies import get_optional_user, get_session_backend
from core.config import get_settings, get_supabase_backend_client

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "app" / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["pages"], include_in_schema=False)

INVALID_CREDENTIALS = "Invalid email or password. Please try again."
UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."


def _redirect_with_session(session: Session) -> RedirectResponse:
    settings = get_settings()
    response = RedirectResponse(settings.AUTH_REDIRECT_ROUTE, status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        session.access_token,
        max_age=session.expires_in,
        httponly=True,
        samesite="lax",
    )
    return response


def _already_signed_in() -> RedirectResponse:
    return RedirectResponse(get_settings().AUTH_REDIRECT_ROUTE, status_code=status.HTTP_303_SEE_OTHER)


def _render_form(request: Request, name: str, *, error: Optional[str] = None,
                 values: Optional[dict] = None, status_code: int = 200) -> HTMLResponse:
    context = {
        "error": error,
        "values": values or {},
        "password_min_length": get_settings().PASSWORD_MIN_LENGTH,
    }
    return templates.TemplateResponse(request, name, context, status_code=status_code)


# ─── login ───────────────────────────────────────────────────
@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, user: Optional[Identity] = Depends(get_optional_user)):
    if user:
        return _already_signed_in()
    return _render_form(request, "login.html")


@router.post("/login", response_class=HTMLResponse)
async def login_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    backend: BackendClient = Depends(get_supabase_backend_client),
):
    values = {"email": email}
    try:
        form = LoginForm(email=email, password=password)
    except ValidationError as e:
        return _render_form(request, "login.html", error=first_error_message(e), values=values,
                            status_code=status.HTTP_400_BAD_REQUEST)

    try:
        session = await auth_service.login_user(backend, form.email, form.password)
    except BackendError:
        return _render_form(request, "login.html", error=INVALID_CREDENTIALS, values=values,
                            status_code=status.HTTP_401_UNAUTHORIZED)
    return _redirect_with_session(session)


# ─── signup ──────────────────────────────────────────────────
@router.get("/signup", response_class=HTMLResponse)
async def signup_page(request: Request, user: Optional[Identity] = Depends(get_optional_user)):
    if user:
        return _already_signed_in()
    return _render_form(request, "signup.html")


@router.post("/signup", response_class=HTMLResponse)
async def signup_submit(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    backend: BackendClient = Depends(get_supabase_backend_client),
):
    values = {"email": email, "name": name}
    try:
        form = SignupForm(email=email, password=password, name=name)
        form.check_password_length(get_settings().PASSWORD_MIN_LENGTH)
    except ValidationError as e:
        return _render_form(request, "signup.html", error=first_error_message(e), values=values,
                            status_code=status.HTTP_400_BAD_REQUEST)
    except FormValidationError as e:
        return _render_form(request, "signup.html", error=e.message, values=values,
                            status_code=status.HTTP_400_BAD_REQUEST)

    try:
        _, session = await auth_service.create_user_account(backend, form.email, form.password, form.name)
    except BackendError as e:
        return _render_form(request, "signup.html", error=e.message or UNEXPECTED_ERROR, values=values,
                            status_code=status.HTTP_400_BAD_REQUEST)
    except Exception:
        logger.exception("Signup error")
        return _render_form(request, "signup.html", error=UNEXPECTED_ERROR, values=values,
                            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return _redirect_with_session(session)


# ─── logout & landing ────────────────────────────────────────
@router.post("/logout")
async def logout_submit(backend: BackendClient = Depends(get_session_backend)):
    await auth_service.logout_user(backend)
    response = RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(get_settings().SESSION_COOKIE_NAME)
    return response


@router.get("/recipes", response_class=HTMLResponse)
async def recipes_page(
    request: Request,
    q: Optional[str] = None,
    difficulty: Optional[str] = None,
    sortBy: Optional[str] = None,
    user: Optional[Identity] = Depends(get_optional_user),
    backend: BackendClient = Depends(get_session_backend),
):
    if not user:
        return RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)

    sort_by = sortBy if sortBy in ("newest", "oldest", "alphabetical") else None
    recipes = await recipe_service.fetch_user_recipes(
        backend, q, RecipeFilters(difficulty=difficulty or None, sortBy=sort_by), user=user
    )
    context = {"user": user, "recipes": recipes, "q": q or "", "difficulty": difficulty or "",
               "sort_by": sort_by or "newest"}
    return templates.TemplateResponse(request, "recipes.html", context)
