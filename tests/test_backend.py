from types import SimpleNamespace

import httpx
import pytest

from app.services import backend as backend_module
from app.services import recipe_service
from app.services.backend import BackendClient, DocumentQuery, _like_pattern, wrap_backend_error
from app.services.errors import BackendError, RecipeNotFoundError
from core.config import get_settings


class FakeAuthApiError(Exception):
    def __init__(self, message, status, code):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


class FakePostgrestError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.message = message
        self.code = code


def test_auth_errors_keep_status_and_code():
    err = wrap_backend_error(FakeAuthApiError("Invalid login credentials", 400, "invalid_credentials"))
    assert err.code == 400
    assert err.type == "invalid_credentials"
    assert err.message == "Invalid login credentials"


@pytest.mark.parametrize(
    "pg_code, status",
    [("42501", 403), ("PGRST116", 404), ("PGRST301", 401), ("23505", 409), ("22P02", 404)],
)
def test_postgrest_codes_map_to_status(pg_code, status):
    err = wrap_backend_error(FakePostgrestError("nope", pg_code))
    assert err.code == status
    assert err.type == pg_code


def test_httpx_status_errors_use_response_status():
    request = httpx.Request("GET", "http://localhost/rest/v1/saved_recipes")
    response = httpx.Response(503, request=request)
    exc = httpx.HTTPStatusError("unavailable", request=request, response=response)

    err = wrap_backend_error(exc)

    assert err.code == 503
    assert err.type == "HTTPStatusError"


def test_unknown_errors_have_no_code():
    err = wrap_backend_error(RuntimeError("socket closed"))
    assert err.code is None
    assert err.type == "RuntimeError"
    assert err.message == "socket closed"


def test_backend_errors_pass_through():
    original = BackendError("x", code=404, type="document_not_found")
    assert wrap_backend_error(original) is original


def test_like_pattern_escapes_wildcards():
    assert _like_pattern("50%_off") == "%50\\%\\_off%"


def test_document_query_defaults():
    query = DocumentQuery()
    assert query.equal == {}
    assert query.search_field == "title"
    assert query.case_sensitive is False
    assert query.limit is None


# ─── BackendClient against a stubbed SDK client ─────────────
class StubQuery:
    """Records the builder chain; execute() answers with the stub's canned data."""

    def __init__(self, stub, table):
        self.stub = stub
        self.table = table
        self.ops = []

    def _add(self, name, *args, **kwargs):
        self.ops.append((name, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        return self._add("select", *args, **kwargs)

    def insert(self, *args, **kwargs):
        return self._add("insert", *args, **kwargs)

    def update(self, *args, **kwargs):
        return self._add("update", *args, **kwargs)

    def delete(self, *args, **kwargs):
        return self._add("delete", *args, **kwargs)

    def eq(self, *args, **kwargs):
        return self._add("eq", *args, **kwargs)

    def like(self, *args, **kwargs):
        return self._add("like", *args, **kwargs)

    def ilike(self, *args, **kwargs):
        return self._add("ilike", *args, **kwargs)

    def order(self, *args, **kwargs):
        return self._add("order", *args, **kwargs)

    def limit(self, *args, **kwargs):
        return self._add("limit", *args, **kwargs)

    async def execute(self):
        if self.stub.error is not None:
            raise self.stub.error
        return SimpleNamespace(data=self.stub.data)


class StubAuth:
    def __init__(self):
        self.user_tokens = []
        self.closed = 0

    async def get_user(self, jwt=None):
        self.user_tokens.append(jwt)
        return SimpleNamespace(user=SimpleNamespace(id="u-1", email="alice@example.com", user_metadata={"name": "Alice"}))

    async def sign_in_with_password(self, credentials):
        user = SimpleNamespace(id="u-1", email=credentials["email"], user_metadata={})
        session = SimpleNamespace(access_token="tok-3", refresh_token="r-3", expires_in=3600, user=user)
        return SimpleNamespace(session=session, user=user)

    async def close(self):
        self.closed += 1


class StubPostgrest:
    def __init__(self):
        self.closed = 0

    async def aclose(self):
        self.closed += 1


class StubClient:
    def __init__(self, data=None, error=None):
        self.data = data if data is not None else []
        self.error = error
        self.queries = []
        self.auth = StubAuth()
        self._postgrest = StubPostgrest()

    def table(self, name):
        query = StubQuery(self, name)
        self.queries.append(query)
        return query

    @property
    def ops(self):
        return self.queries[-1].ops


def make_client(stub, token=None):
    return BackendClient(get_settings(), stub, token)


async def test_list_documents_builds_filters_search_order_and_limit():
    stub = StubClient(data=[{"id": "r1"}])
    query = DocumentQuery(
        equal={"user_id": "u-1", "difficulty": "Easy"},
        search="50%",
        order_by="created_at",
        descending=True,
        limit=5,
    )

    docs = await make_client(stub).list_documents("saved_recipes", query)

    assert docs == [{"id": "r1"}]
    assert stub.queries[-1].table == "saved_recipes"
    assert stub.ops == [
        ("select", ("*",), {}),
        ("eq", ("user_id", "u-1"), {}),
        ("eq", ("difficulty", "Easy"), {}),
        ("ilike", ("title", "%50\\%%"), {}),
        ("order", ("created_at",), {"desc": True}),
        ("limit", (5,), {}),
    ]


async def test_list_documents_case_sensitive_search_uses_like():
    stub = StubClient()
    await make_client(stub).list_documents("saved_recipes", DocumentQuery(search="Dal", case_sensitive=True))
    assert ("like", ("title", "%Dal%"), {}) in stub.ops
    assert not any(name == "ilike" for name, _, _ in stub.ops)


async def test_list_documents_without_query_selects_everything():
    stub = StubClient()
    stub.data = None

    assert await make_client(stub).list_documents("saved_recipes") == []
    assert stub.ops == [("select", ("*",), {})]


async def test_get_document_selects_one_row_by_id():
    stub = StubClient(data=[{"id": "r1", "title": "Dal"}])

    doc = await make_client(stub).get_document("saved_recipes", "r1")

    assert doc["title"] == "Dal"
    assert stub.ops == [("select", ("*",), {}), ("eq", ("id", "r1"), {}), ("limit", (1,), {})]


async def test_update_and_delete_filter_by_id():
    stub = StubClient(data=[{"id": "r1", "title": "Crepes"}])
    backend = make_client(stub)

    assert (await backend.update_document("saved_recipes", "r1", {"title": "Crepes"}))["title"] == "Crepes"
    assert stub.ops == [("update", ({"title": "Crepes"},), {}), ("eq", ("id", "r1"), {})]

    await backend.delete_document("saved_recipes", "r1")
    assert stub.ops == [("delete", (), {}), ("eq", ("id", "r1"), {})]


@pytest.mark.parametrize("method, args", [
    ("get_document", ("saved_recipes", "r1")),
    ("update_document", ("saved_recipes", "r1", {"title": "x"})),
    ("delete_document", ("saved_recipes", "r1")),
])
async def test_no_rows_means_not_found(method, args):
    backend = make_client(StubClient(data=[]))
    with pytest.raises(BackendError) as exc_info:
        await getattr(backend, method)(*args)
    assert exc_info.value.code == 404
    assert exc_info.value.type == "document_not_found"
    assert "r1" in exc_info.value.message


async def test_insert_hidden_by_row_rules_is_forbidden():
    backend = make_client(StubClient(data=[]))
    with pytest.raises(BackendError) as exc_info:
        await backend.create_document("saved_recipes", {"title": "x"})
    assert exc_info.value.code == 403


async def test_sdk_errors_are_normalized():
    stub = StubClient(error=FakePostgrestError("permission denied for table saved_recipes", "42501"))
    with pytest.raises(BackendError) as exc_info:
        await make_client(stub).list_documents("saved_recipes")
    assert exc_info.value.code == 403
    assert exc_info.value.type == "42501"


async def test_malformed_recipe_id_reads_as_not_found():
    stub = StubClient(error=FakePostgrestError('invalid input syntax for type uuid: "abc"', "22P02"))
    with pytest.raises(RecipeNotFoundError):
        await recipe_service.get_recipe_by_id(make_client(stub), "abc")


async def test_get_account_sends_the_bound_token():
    stub = StubClient()

    identity = await make_client(stub, "tok-1").get_account()

    assert identity.id == "u-1"
    assert identity.name == "Alice"
    assert stub.auth.user_tokens == ["tok-1"]


async def test_get_account_without_token_skips_the_network():
    stub = StubClient()
    with pytest.raises(BackendError) as exc_info:
        await make_client(stub).get_account()
    assert exc_info.value.code == 401
    assert stub.auth.user_tokens == []


async def test_for_session_binds_token_in_headers(monkeypatch):
    built = []

    async def fake_create_async_client(url, key, options=None):
        stub = StubClient()
        built.append((url, key, options, stub))
        return stub

    monkeypatch.setattr(backend_module, "create_async_client", fake_create_async_client)
    settings = get_settings()
    anon = make_client(StubClient())

    bound = await anon.for_session("tok-2")

    url, key, options, stub = built[0]
    assert (url, key) == (settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
    assert options.headers["Authorization"] == "Bearer tok-2"
    assert options.schema == settings.SUPABASE_SCHEMA
    assert bound.access_token == "tok-2"
    assert bound._client is stub
    assert anon.access_token is None


async def test_aclose_closes_sdk_http_clients():
    stub = StubClient()
    await make_client(stub, "tok").aclose()
    assert stub._postgrest.closed == 1
    assert stub.auth.closed == 1


async def test_aclose_tolerates_close_failures():
    stub = StubClient()

    async def broken():
        raise RuntimeError("already closed")

    stub._postgrest.aclose = broken
    await make_client(stub, "tok").aclose()
    assert stub.auth.closed == 1


async def test_sign_in_runs_on_a_throwaway_client_that_gets_closed(monkeypatch):
    built = []

    async def fake_create_async_client(url, key, options=None):
        stub = StubClient()
        built.append(stub)
        return stub

    monkeypatch.setattr(backend_module, "create_async_client", fake_create_async_client)
    shared = StubClient()

    session = await make_client(shared).create_session("alice@example.com", "password123")

    assert session.access_token == "tok-3"
    assert len(built) == 1
    assert built[0].auth.closed == 1
    assert built[0]._postgrest.closed == 1
    assert shared.auth.closed == 0
