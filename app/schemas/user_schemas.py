# app/schemas/user_schemas.py
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.services.errors import FormValidationError


class Identity(BaseModel):
    """The authenticated account as reported by the backend."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


class Session(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    user: Optional[Identity] = None


class UserProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    userId: str
    displayName: Optional[str] = None
    avatarUrl: Optional[str] = None
    dietaryPreferences: List[str] = Field(default_factory=list)
    cuisinePreferences: List[str] = Field(default_factory=list)
    skillLevel: Optional[str] = None
    darkMode: bool = False
    savedIngredients: List[str] = Field(default_factory=list)
    defaultServings: Optional[int] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class UserProfileUpdate(BaseModel):
    # userId is accepted so it can be dropped explicitly rather than rejected
    model_config = ConfigDict(extra="ignore")

    userId: Optional[str] = None
    displayName: Optional[str] = None
    avatarUrl: Optional[str] = None
    dietaryPreferences: Optional[List[str]] = None
    cuisinePreferences: Optional[List[str]] = None
    skillLevel: Optional[str] = None
    darkMode: Optional[bool] = None
    savedIngredients: Optional[List[str]] = None
    defaultServings: Optional[int] = Field(default=None, ge=1)


# ─── login / signup forms ─────────────────────────────────────
class LoginForm(BaseModel):
    email: str
    password: str

    @field_validator("email", "password")
    @classmethod
    def _required(cls, v: str, info):
        if not v or not v.strip():
            raise ValueError(f"{info.field_name.capitalize()} is required")
        return v.strip() if info.field_name == "email" else v


class SignupForm(LoginForm):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _blank_name_is_none(cls, v: Optional[str]):
        if v is None or not v.strip():
            return None
        return v.strip()

    def check_password_length(self, min_length: int) -> None:
        # the minimum comes from settings, so it is checked outside field validation
        if len(self.password) < min_length:
            raise FormValidationError(f"Password must be at least {min_length} characters long")


def first_error_message(exc: ValidationError) -> str:
    """Human-readable message for the first failing field of a form."""
    err = exc.errors()[0]
    ctx_error = (err.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    field = ".".join(str(p) for p in err.get("loc", ()))
    return f"{field.capitalize()}: {err['msg']}" if field else err["msg"]


class AuthResponse(BaseModel):
    user: Optional[Identity] = None
    session: Optional[Session] = None
