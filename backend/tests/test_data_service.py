"""
Data service client: request shaping and error translation, checked against
a mocked transport.
"""
import json

import httpx
import pytest

from alumni_connect.client.data_service import AuthEvent, DataServiceClient
from alumni_connect.core.exceptions import (
    AuthError,
    PermissionDeniedError,
    RemoteServiceError,
    SessionExpiredError,
    UniquenessError,
    ValidationError,
)

BASE_URL = "http://data.test/api/v1"
SESSION = {
    "access_token": "token-123",
    "token_type": "bearer",
    "user": {"id": "u1", "email": "user@example.com"},
}


def make_client(handler, signed_in=True):
    client = DataServiceClient(BASE_URL, transport=httpx.MockTransport(handler))
    if signed_in:
        client.storage.save(SESSION)
    return client


def responding(status_code, body=None):
    def handler(request):
        return httpx.Response(status_code, json=body)

    return handler


class TestRequests:
    async def test_query_builder_encodes_filters_order_and_limit(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        client = make_client(handler)
        await (
            client.table("profiles")
            .select("id,full_name")
            .eq("role", "alumni")
            .eq("is_approved", True)
            .is_("company", None)
            .order("full_name")
            .order("created_at", ascending=False)
            .limit(5)
            .execute()
        )

        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/api/v1/rest/profiles"
        assert request.url.params.multi_items() == [
            ("role", "eq.alumni"),
            ("is_approved", "eq.true"),
            ("company", "is.null"),
            ("select", "id,full_name"),
            ("order", "full_name.asc,created_at.desc"),
            ("limit", "5"),
        ]
        assert request.headers["Authorization"] == "Bearer token-123"
        await client.close()

    async def test_update_sends_filters_and_body(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": "p1"}])

        client = make_client(handler)
        rows = await client.table("profiles").eq("user_id", "u1").update({"bio": "Hello"})

        assert rows == [{"id": "p1"}]
        assert seen[0].method == "PATCH"
        assert seen[0].url.params["user_id"] == "eq.u1"
        assert json.loads(seen[0].content) == {"bio": "Hello"}
        await client.close()

    async def test_sign_in_stores_session_and_notifies(self):
        def handler(request):
            assert "Authorization" not in request.headers
            return httpx.Response(200, json=SESSION)

        client = make_client(handler, signed_in=False)
        events = []
        client.on_auth_state_change(lambda event, identity: events.append((event, identity.email)))

        identity = await client.sign_in("user@example.com", "password123")

        assert identity.id == "u1"
        assert client.access_token == "token-123"
        assert events == [(AuthEvent.SIGNED_IN, "user@example.com")]
        await client.close()

    async def test_current_session_without_token_makes_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = make_client(handler, signed_in=False)
        assert await client.get_current_session() is None
        await client.close()


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status_code,body,error",
        [
            (409, {"detail": {"code": "23505", "message": "duplicate key"}}, UniquenessError),
            (403, {"detail": {"code": "42501", "message": "Only alumni can post jobs"}}, PermissionDeniedError),
            (422, {"detail": [{"msg": "field required"}]}, ValidationError),
            (400, {"detail": {"code": "PGRST100", "message": "Invalid filter"}}, RemoteServiceError),
            (500, {"detail": "boom"}, RemoteServiceError),
        ],
    )
    async def test_table_errors(self, status_code, body, error):
        client = make_client(responding(status_code, body))
        with pytest.raises(error):
            await client.table("jobs").select().execute()
        await client.close()

    async def test_error_message_comes_from_service(self):
        body = {"detail": {"code": "42501", "message": "Only alumni can post jobs"}}
        client = make_client(responding(403, body))

        with pytest.raises(PermissionDeniedError) as exc_info:
            await client.table("jobs").insert({"title": "x"})

        assert exc_info.value.message == "Only alumni can post jobs"
        await client.close()

    async def test_remote_status_is_kept(self):
        client = make_client(responding(503, {"detail": "maintenance"}))
        with pytest.raises(RemoteServiceError) as exc_info:
            await client.table("events").select().execute()
        assert exc_info.value.status_code == 503
        await client.close()

    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(RemoteServiceError):
            await client.table("events").select().execute()
        await client.close()

    async def test_duplicate_sign_up_is_auth_error(self):
        body = {"detail": {"code": "user_already_exists", "message": "User already registered"}}
        client = make_client(responding(400, body), signed_in=False)

        with pytest.raises(AuthError) as exc_info:
            await client.sign_up("user@example.com", "password123")

        assert exc_info.value.message == "User already registered"
        assert client.access_token is None
        await client.close()

    async def test_bad_credentials_are_auth_error(self):
        body = {"detail": {"code": "invalid_grant", "message": "Invalid login credentials"}}
        client = make_client(responding(401, body), signed_in=False)

        with pytest.raises(AuthError) as exc_info:
            await client.sign_in("user@example.com", "wrong")

        assert not isinstance(exc_info.value, SessionExpiredError)
        await client.close()

    async def test_rejected_token_expires_session(self):
        client = make_client(responding(401, {"detail": {"code": "invalid_token", "message": "revoked"}}))
        events = []
        client.on_auth_state_change(lambda event, identity: events.append((event, identity.id)))

        with pytest.raises(SessionExpiredError):
            await client.table("profiles").select().execute()

        assert client.access_token is None
        assert events == [(AuthEvent.SESSION_EXPIRED, "u1")]
        await client.close()

    async def test_sign_out_clears_token_when_service_fails(self):
        client = make_client(responding(500, {"detail": "boom"}))
        events = []
        client.on_auth_state_change(lambda event, identity: events.append(event))

        with pytest.raises(RemoteServiceError):
            await client.sign_out()

        assert client.access_token is None
        assert events == [AuthEvent.SIGNED_OUT]
        await client.close()
