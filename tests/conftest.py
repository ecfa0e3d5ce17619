import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

# Settings are read at request time; give them something to load
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")

from app.schemas.user_schemas import Identity, Session  # noqa: E402
from app.services.backend import DocumentQuery  # noqa: E402
from app.services.errors import BackendError  # noqa: E402

RECIPES = "saved_recipes"
PROFILES = "user_profiles"
_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeBackendState:
    """Everything a fake Supabase project remembers, shared by all handles."""

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}     # email -> {"password", "identity"}
        self.tokens: Dict[str, str] = {}               # access token -> user id
        self.tables: Dict[str, Dict[str, dict]] = {RECIPES: {}, PROFILES: {}}
        self.calls: List[str] = []
        self.failures: Dict[str, BackendError] = {}
        self.closed = 0                                 # per-session handles closed
        self._clock = 0

    def fail(self, method: str, error: BackendError) -> None:
        self.failures[method] = error

    def tick(self) -> str:
        self._clock += 1
        return (_EPOCH + timedelta(minutes=self._clock)).isoformat()

    def add_user(self, email: str, password: str = "password123", name: Optional[str] = None) -> Identity:
        identity = Identity(id=str(uuid.uuid4()), email=email, name=name)
        self.users[email] = {"password": password, "identity": identity}
        return identity

    def token_for(self, identity: Identity) -> str:
        token = f"token-{identity.id}"
        self.tokens[token] = identity.id
        return token


class FakeBackend:
    """In-memory stand-in for BackendClient with the same method surface."""

    recipes_table = RECIPES
    profiles_table = PROFILES

    def __init__(self, state: FakeBackendState, access_token: Optional[str] = None):
        self.state = state
        self.access_token = access_token

    def _record(self, method: str) -> None:
        self.state.calls.append(method)
        error = self.state.failures.pop(method, None)
        if error is not None:
            raise error

    async def for_session(self, access_token: str) -> "FakeBackend":
        return FakeBackend(self.state, access_token)

    async def aclose(self) -> None:
        self.state.closed += 1

    # accounts & sessions
    async def create_account(self, email, password, name=None) -> Identity:
        self._record("create_account")
        if email in self.state.users:
            raise BackendError("A user with the same email already exists", code=409, type="user_already_exists")
        return self.state.add_user(email, password, name)

    async def create_session(self, email, password) -> Session:
        self._record("create_session")
        entry = self.state.users.get(email)
        if entry is None or entry["password"] != password:
            raise BackendError("Invalid login credentials", code=400, type="invalid_credentials")
        identity = entry["identity"]
        return Session(access_token=self.state.token_for(identity), expires_in=3600, user=identity)

    async def delete_session(self) -> None:
        self._record("delete_session")
        if not self.access_token or self.access_token not in self.state.tokens:
            raise BackendError("No active session", code=401, type="user_unauthorized")
        del self.state.tokens[self.access_token]

    async def get_account(self) -> Identity:
        self._record("get_account")
        user_id = self.state.tokens.get(self.access_token or "")
        if user_id is None:
            raise BackendError("No active session", code=401, type="user_unauthorized")
        for entry in self.state.users.values():
            if entry["identity"].id == user_id:
                return entry["identity"]
        raise BackendError("No active session", code=401, type="user_unauthorized")

    # documents
    async def create_document(self, table, data) -> dict:
        self._record("create_document")
        now = self.state.tick()
        doc = {**data, "id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
        self.state.tables[table][doc["id"]] = doc
        return dict(doc)

    async def get_document(self, table, document_id) -> dict:
        self._record("get_document")
        doc = self.state.tables[table].get(document_id)
        if doc is None:
            raise BackendError(
                f"Document with the requested ID could not be found ({document_id})",
                code=404, type="document_not_found",
            )
        return dict(doc)

    async def update_document(self, table, document_id, data) -> dict:
        self._record("update_document")
        doc = self.state.tables[table].get(document_id)
        if doc is None:
            raise BackendError("Document not found", code=404, type="document_not_found")
        doc.update(data)
        doc["updated_at"] = self.state.tick()
        return dict(doc)

    async def delete_document(self, table, document_id) -> None:
        self._record("delete_document")
        if self.state.tables[table].pop(document_id, None) is None:
            raise BackendError("Document not found", code=404, type="document_not_found")

    async def list_documents(self, table, query: Optional[DocumentQuery] = None) -> List[dict]:
        self._record("list_documents")
        query = query or DocumentQuery()
        docs = [
            d for d in self.state.tables[table].values()
            if all(d.get(k) == v for k, v in query.equal.items())
        ]
        if query.search:
            if query.case_sensitive:
                docs = [d for d in docs if query.search in (d.get(query.search_field) or "")]
            else:
                needle = query.search.lower()
                docs = [d for d in docs if needle in (d.get(query.search_field) or "").lower()]
        if query.order_by:
            docs.sort(key=lambda d: d.get(query.order_by) or "", reverse=query.descending)
        if query.limit:
            docs = docs[: query.limit]
        return [dict(d) for d in docs]


@pytest.fixture
def state() -> FakeBackendState:
    return FakeBackendState()


@pytest.fixture
def anon_backend(state) -> FakeBackend:
    return FakeBackend(state)


@pytest.fixture
def alice(state) -> Identity:
    return state.add_user("alice@example.com", "password123", "Alice")


@pytest.fixture
def alice_backend(state, alice) -> FakeBackend:
    return FakeBackend(state, state.token_for(alice))


def stored_recipe(state: FakeBackendState, owner: Identity, **fields) -> dict:
    """Insert a recipe row directly, bypassing the service layer."""
    now = state.tick()
    doc = {
        "id": str(uuid.uuid4()),
        "user_id": owner.id,
        "title": "Pancakes",
        "ingredients": ["flour", "milk", "eggs"],
        "instructions": "Mix and fry.",
        "tips_json": [],
        "tags": [],
        "created_at": now,
        "updated_at": now,
    }
    doc.update(fields)
    state.tables[RECIPES][doc["id"]] = doc
    return doc
