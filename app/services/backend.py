# app/services/backend.py
"""
Thin facade over the Supabase async client.

Everything the app persists or authenticates goes through `BackendClient`:
account/session calls against Supabase Auth and document CRUD against
PostgREST tables. SDK exceptions never leak past this module; they are
normalized into `BackendError` so callers can branch on `code`/`type`.

A handle is either anonymous (the process-wide one built at startup) or
bound to a user's access token via `for_session()`, in which case table
calls carry that token and the backend's row-level-security rules apply.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field
from supabase import AsyncClient, AsyncClientOptions, create_async_client

from app.schemas.user_schemas import Identity, Session
from app.services.errors import BackendError
from core.config import Settings

logger = logging.getLogger(__name__)

# PostgREST / Postgres error codes we care about → HTTP-like status
_POSTGREST_CODES: Dict[str, int] = {
    "42501": 403,      # insufficient_privilege (RLS)
    "PGRST116": 404,   # no rows for a singular response
    "PGRST301": 401,   # JWT invalid
    "PGRST302": 401,   # anonymous access disabled
    "23505": 409,      # unique_violation
    "22P02": 404,      # malformed id (invalid_text_representation) can't match a row
}

_STATUS_TYPES: Dict[int, str] = {
    401: "user_unauthorized",
    403: "forbidden",
    404: "document_not_found",
    409: "document_already_exists",
}


def wrap_backend_error(exc: Exception) -> BackendError:
    """Normalize Supabase Auth, PostgREST and httpx failures into a BackendError."""
    if isinstance(exc, BackendError):
        return exc

    status = getattr(exc, "status", None)          # supabase auth errors
    raw_code = getattr(exc, "code", None)          # postgrest APIError / auth error code
    message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code

    code: Optional[int] = None
    if isinstance(status, int) and status > 0:
        code = status
    elif isinstance(raw_code, str) and raw_code in _POSTGREST_CODES:
        code = _POSTGREST_CODES[raw_code]
    elif isinstance(raw_code, int):
        code = raw_code

    if isinstance(raw_code, str) and raw_code:
        err_type = raw_code
    else:
        err_type = _STATUS_TYPES.get(code, exc.__class__.__name__)
    return BackendError(str(message), code=code, type=err_type)


class DocumentQuery(BaseModel):
    """What to ask of a table when listing documents."""

    equal: Dict[str, Any] = Field(default_factory=dict)
    search: Optional[str] = None
    search_field: str = "title"
    case_sensitive: bool = False
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = Field(default=None, ge=1)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _identity_from_user(user: Any) -> Identity:
    metadata = getattr(user, "user_metadata", None) or {}
    return Identity(id=str(user.id), email=getattr(user, "email", None), name=metadata.get("name"))


class BackendClient:
    def __init__(self, settings: Settings, client: AsyncClient, access_token: Optional[str] = None):
        self.settings = settings
        self._client = client
        self._access_token = access_token

    # ─── construction ───────────────────────────────────────
    @classmethod
    async def connect(cls, settings: Settings, access_token: Optional[str] = None) -> "BackendClient":
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        options = AsyncClientOptions(
            schema=settings.SUPABASE_SCHEMA,
            headers=headers,
            auto_refresh_token=False,
            persist_session=False,
        )
        client = await create_async_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY, options=options)
        return cls(settings, client, access_token)

    async def for_session(self, access_token: str) -> "BackendClient":
        return await BackendClient.connect(self.settings, access_token)

    async def aclose(self) -> None:
        """Close the SDK's HTTP clients. Only for handles built per session or per call."""
        postgrest = getattr(self._client, "_postgrest", None)
        auth = getattr(self._client, "auth", None)
        for closer in (getattr(postgrest, "aclose", None), getattr(auth, "close", None)):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.warning("Error closing backend client: %s", e)

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def recipes_table(self) -> str:
        return self.settings.SUPABASE_TABLE_RECIPES

    @property
    def profiles_table(self) -> str:
        return self.settings.SUPABASE_TABLE_USER_PROFILES

    # ─── accounts & sessions ────────────────────────────────
    @asynccontextmanager
    async def _isolated_auth(self):
        # sign-up/sign-in store the new session on the client they run on;
        # a throwaway client keeps the shared anonymous handle anonymous
        fresh = await BackendClient.connect(self.settings)
        try:
            yield fresh._client.auth
        finally:
            await fresh.aclose()

    async def create_account(self, email: str, password: str, name: Optional[str] = None) -> Identity:
        credentials: Dict[str, Any] = {"email": email, "password": password}
        if name:
            credentials["options"] = {"data": {"name": name}}
        try:
            async with self._isolated_auth() as auth:
                response = await auth.sign_up(credentials)
        except Exception as e:
            raise wrap_backend_error(e) from e
        if response.user is None:
            raise BackendError("Sign-up returned no user", code=500, type="user_missing")
        return _identity_from_user(response.user)

    async def create_session(self, email: str, password: str) -> Session:
        try:
            async with self._isolated_auth() as auth:
                response = await auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            raise wrap_backend_error(e) from e
        session = response.session
        if session is None:
            raise BackendError("Sign-in returned no session", code=401, type="user_unauthorized")
        return Session(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in,
            user=_identity_from_user(session.user) if session.user else None,
        )

    async def delete_session(self) -> None:
        if not self._access_token:
            raise BackendError("No active session", code=401, type="user_unauthorized")
        try:
            await self._client.auth.admin.sign_out(self._access_token, "local")
        except Exception as e:
            raise wrap_backend_error(e) from e

    async def get_account(self) -> Identity:
        if not self._access_token:
            raise BackendError("No active session", code=401, type="user_unauthorized")
        try:
            response = await self._client.auth.get_user(self._access_token)
        except Exception as e:
            raise wrap_backend_error(e) from e
        if response is None or response.user is None:
            raise BackendError("No active session", code=401, type="user_unauthorized")
        return _identity_from_user(response.user)

    # ─── documents ──────────────────────────────────────────
    async def create_document(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.table(table).insert(data).execute()
        except Exception as e:
            raise wrap_backend_error(e) from e
        if not response.data:
            # RLS can accept the insert yet hide the returned row
            raise BackendError(f"Document in '{table}' was not returned after insert", code=403, type="forbidden")
        return response.data[0]

    async def get_document(self, table: str, document_id: str) -> Dict[str, Any]:
        try:
            response = await self._client.table(table).select("*").eq("id", document_id).limit(1).execute()
        except Exception as e:
            raise wrap_backend_error(e) from e
        if not response.data:
            raise BackendError(
                f"Document with the requested ID could not be found ({document_id})",
                code=404,
                type="document_not_found",
            )
        return response.data[0]

    async def update_document(self, table: str, document_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.table(table).update(data).eq("id", document_id).execute()
        except Exception as e:
            raise wrap_backend_error(e) from e
        if not response.data:
            raise BackendError(
                f"Document with the requested ID could not be found ({document_id})",
                code=404,
                type="document_not_found",
            )
        return response.data[0]

    async def delete_document(self, table: str, document_id: str) -> None:
        try:
            response = await self._client.table(table).delete().eq("id", document_id).execute()
        except Exception as e:
            raise wrap_backend_error(e) from e
        if not response.data:
            raise BackendError(
                f"Document with the requested ID could not be found ({document_id})",
                code=404,
                type="document_not_found",
            )

    async def list_documents(self, table: str, query: Optional[DocumentQuery] = None) -> List[Dict[str, Any]]:
        query = query or DocumentQuery()
        request = self._client.table(table).select("*")
        for column, value in query.equal.items():
            request = request.eq(column, value)
        if query.search:
            pattern = _like_pattern(query.search)
            if query.case_sensitive:
                request = request.like(query.search_field, pattern)
            else:
                request = request.ilike(query.search_field, pattern)
        if query.order_by:
            request = request.order(query.order_by, desc=query.descending)
        if query.limit:
            request = request.limit(query.limit)
        try:
            response = await request.execute()
        except Exception as e:
            raise wrap_backend_error(e) from e
        return list(response.data or [])
