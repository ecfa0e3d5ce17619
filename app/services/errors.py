# app/services/errors.py
from typing import Optional


class RecipifyError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "RECIPIFY_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotAuthenticatedError(RecipifyError):
    status_code = 401
    code = "NOT_AUTHENTICATED"


class RecipeValidationError(RecipifyError):
    status_code = 422
    code = "RECIPE_VALIDATION_ERROR"


class FormValidationError(RecipifyError):
    status_code = 422
    code = "VALIDATION_ERROR"


class RecipeNotFoundError(RecipifyError):
    status_code = 404
    code = "RECIPE_NOT_FOUND"

    def __init__(self, recipe_id: str):
        super().__init__(f"Recipe not found (ID: {recipe_id}).")
        self.recipe_id = recipe_id


class RecipeForbiddenError(RecipifyError):
    status_code = 403
    code = "RECIPE_FORBIDDEN"

    def __init__(self, recipe_id: str):
        super().__init__(f"You do not have permission to view this recipe (ID: {recipe_id}).")
        self.recipe_id = recipe_id


class RecipeServiceError(RecipifyError):
    code = "RECIPE_SERVICE_ERROR"


class ProfileError(RecipifyError):
    code = "PROFILE_ERROR"


class BackendError(Exception):
    """A failure reported by the hosted backend, normalized across SDK error types.

    `code` is an HTTP-like status (401, 403, 404, ...) when one is known and
    `type` is a short machine-readable reason such as "user_unauthorized".
    """

    def __init__(self, message: str, code: Optional[int] = None, type: str = "unknown"):
        super().__init__(message)
        self.message = message
        self.code = code
        self.type = type

    def __repr__(self) -> str:
        return f"BackendError(code={self.code!r}, type={self.type!r}, message={self.message!r})"
