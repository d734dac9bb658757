"""
Session store lifecycle: restore, sign-up, sign-in, sign-out, refresh and
remote invalidation against the in-process data service.
"""
import asyncio

import pytest
import httpx
from httpx import MockTransport, Response
from pydantic import ValidationError as PydanticValidationError

from alumni_connect.client import portal
from alumni_connect.client.authorization import can_post_job, is_approved_alumni
from alumni_connect.client.data_service import DataServiceClient
from alumni_connect.client.session_store import SessionState, SessionStore
from alumni_connect.client.token_storage import FileTokenStorage
from alumni_connect.core.config import settings
from alumni_connect.core.exceptions import (
    AuthError,
    PermissionDeniedError,
    ProfileMissingError,
    RemoteServiceError,
    SessionExpiredError,
    ValidationError,
)
from alumni_connect.core.security import decode_access_token
from alumni_connect.models import AuthUser, Profile, RevokedToken

from conftest import BASE_URL, PASSWORD


def revoke(database, access_token):
    """Invalidate a session token behind the client's back."""
    payload = decode_access_token(access_token)
    with database() as db:
        db.add(RevokedToken(jti=payload["jti"], user_id=payload["sub"]))
        db.commit()


class TestRestoreSession:
    async def test_no_stored_session_settles_anonymous(self, client):
        store = SessionStore(client)
        seen = []
        store.subscribe(lambda snapshot: seen.append(snapshot.state))

        assert store.state == SessionState.UNINITIALIZED
        snapshot = await store.restore_session()

        assert snapshot.state == SessionState.ANONYMOUS
        assert snapshot.identity is None
        assert snapshot.profile is None
        assert seen == [SessionState.LOADING, SessionState.ANONYMOUS]
        assert (await store.wait_until_ready()) is snapshot
        await store.close()

    async def test_restore_runs_only_once(self, store):
        before = store.snapshot
        assert (await store.restore_session()) is before

    async def test_restores_stored_session(self, transport, make_account, tmp_path):
        make_account("asha@example.com", role="student", full_name="Asha")
        storage_path = tmp_path / "session.json"

        first = SessionStore(DataServiceClient(BASE_URL, storage=FileTokenStorage(storage_path), transport=transport))
        await first.restore_session()
        await first.sign_in("asha@example.com", PASSWORD)
        await first.client.close()

        second = SessionStore(DataServiceClient(BASE_URL, storage=FileTokenStorage(storage_path), transport=transport))
        snapshot = await second.restore_session()

        assert snapshot.state == SessionState.AUTHENTICATED
        assert snapshot.identity.email == "asha@example.com"
        assert snapshot.profile.role == "student"
        await second.close()
        await second.client.close()

    async def test_revoked_stored_session_settles_anonymous(self, transport, make_account, database, tmp_path):
        make_account("ravi@example.com")
        storage = FileTokenStorage(tmp_path / "session.json")

        first = SessionStore(DataServiceClient(BASE_URL, storage=storage, transport=transport))
        await first.restore_session()
        await first.sign_in("ravi@example.com", PASSWORD)
        revoke(database, first.client.access_token)
        await first.client.close()

        second = SessionStore(DataServiceClient(BASE_URL, storage=storage, transport=transport))
        snapshot = await second.restore_session()

        assert snapshot.state == SessionState.ANONYMOUS
        assert snapshot.identity is None
        assert storage.load() is None
        await second.close()
        await second.client.close()

    async def test_identity_without_profile_is_degraded(self, transport, make_account):
        make_account("orphan@example.com", role=None)
        client = DataServiceClient(BASE_URL, transport=transport)
        await client.sign_in("orphan@example.com", PASSWORD)

        store = SessionStore(client)
        snapshot = await store.restore_session()

        assert snapshot.state == SessionState.ANONYMOUS
        assert snapshot.is_degraded
        assert snapshot.identity.email == "orphan@example.com"
        await store.close()
        await client.close()

    async def test_unreachable_service_settles_anonymous(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = DataServiceClient(BASE_URL, transport=MockTransport(handler))
        client.storage.save({"access_token": "stale", "user": {"id": "u1", "email": "x@example.com"}})
        store = SessionStore(client)

        snapshot = await store.restore_session()

        assert snapshot.state == SessionState.ANONYMOUS
        assert snapshot.error
        await client.close()

    async def test_malformed_identity_still_settles(self):
        def handler(request):
            return Response(200, json={"unexpected": True})

        client = DataServiceClient(BASE_URL, transport=MockTransport(handler))
        client.storage.save({"access_token": "stale", "user": {"id": "u1", "email": "x@example.com"}})
        store = SessionStore(client)

        with pytest.raises(PydanticValidationError):
            await store.restore_session()

        snapshot = await store.wait_until_ready()
        assert snapshot.state == SessionState.ANONYMOUS
        assert snapshot.error
        await store.close()
        await client.close()

    async def test_operations_require_restore(self, client):
        store = SessionStore(client)
        with pytest.raises(RuntimeError):
            await store.sign_in("someone@example.com", PASSWORD)
        with pytest.raises(RuntimeError):
            await store.refresh_profile()
        await store.close()


class TestSignUp:
    @pytest.mark.parametrize("role", ["alumni", "student", "admin"])
    async def test_sign_in_after_sign_up_yields_role(self, store, role):
        await store.sign_up(f"{role}@example.com", PASSWORD, "New User", role)
        await store.sign_out()

        snapshot = await store.sign_in(f"{role}@example.com", PASSWORD)

        assert snapshot.state == SessionState.AUTHENTICATED
        assert snapshot.profile.role == role
        assert snapshot.profile.user_id == snapshot.identity.id

    @pytest.mark.parametrize("role,approved", [("alumni", False), ("student", True), ("admin", True)])
    async def test_initial_approval_depends_on_role(self, store, role, approved):
        snapshot = await store.sign_up("fresh@example.com", PASSWORD, "Fresh User", role, batch="2021")
        assert snapshot.profile.is_approved is approved

    async def test_sign_up_normalizes_input(self, store):
        snapshot = await store.sign_up("  Mixed@Example.COM ", PASSWORD, "  Kiran  ", "alumni", batch="2019", branch="  ")

        assert snapshot.identity.email == "mixed@example.com"
        assert snapshot.profile.full_name == "Kiran"
        assert snapshot.profile.batch == "2019"
        assert snapshot.profile.branch is None

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"email": "not-an-email"}, "email"),
            ({"password": "123"}, "password"),
            ({"full_name": "   "}, "full_name"),
            ({"role": "professor"}, "role"),
            ({"batch": "20x1"}, "batch"),
        ],
    )
    async def test_invalid_input_never_reaches_service(self, overrides, field):
        requests = []

        def handler(request):
            requests.append(request)
            return Response(500)

        client = DataServiceClient(BASE_URL, transport=MockTransport(handler))
        store = SessionStore(client)
        await store.restore_session()

        fields = {"email": "valid@example.com", "password": PASSWORD, "full_name": "Valid", "role": "student"}
        fields.update(overrides)
        with pytest.raises(ValidationError) as exc_info:
            await store.sign_up(**fields)

        assert exc_info.value.field == field
        assert requests == []
        assert store.state == SessionState.ANONYMOUS
        await client.close()

    async def test_duplicate_email_leaves_session_unchanged(self, store):
        first = await store.sign_up("dup@example.com", PASSWORD, "First", "student")

        with pytest.raises(AuthError):
            await store.sign_up("dup@example.com", PASSWORD, "Second", "student")

        assert store.snapshot == first

    async def test_failed_profile_creation_removes_identity(self, store, database, monkeypatch):
        monkeypatch.setattr(settings, "ALLOW_ADMIN_SIGNUP", False)

        with pytest.raises(PermissionDeniedError):
            await store.sign_up("sneaky@example.com", PASSWORD, "Sneaky", "admin")

        assert store.state == SessionState.ANONYMOUS
        assert store.snapshot.error
        assert store.client.access_token is None
        with database() as db:
            assert db.query(AuthUser).filter(AuthUser.email == "sneaky@example.com").first() is None
            assert db.query(Profile).count() == 0


class TestSignIn:
    async def test_bad_credentials_keep_current_session(self, store, make_account):
        make_account("meera@example.com")
        before = store.snapshot

        with pytest.raises(AuthError):
            await store.sign_in("meera@example.com", "wrong-password")

        assert store.snapshot == before

    async def test_missing_profile_raises_and_degrades(self, store, make_account):
        make_account("noprofile@example.com", role=None)

        with pytest.raises(ProfileMissingError):
            await store.sign_in("noprofile@example.com", PASSWORD)

        assert store.state == SessionState.ANONYMOUS
        assert store.snapshot.is_degraded

    async def test_failed_profile_load_does_not_keep_previous_user(self, store, make_account, monkeypatch):
        make_account("first@example.com", full_name="First")
        make_account("second@example.com", full_name="Second")
        await store.sign_in("first@example.com", PASSWORD)

        async def unavailable(identity):
            raise RemoteServiceError("Service unavailable", status_code=503)

        monkeypatch.setattr(store, "_fetch_profile", unavailable)
        with pytest.raises(RemoteServiceError):
            await store.sign_in("second@example.com", PASSWORD)

        assert store.state == SessionState.ANONYMOUS
        assert store.snapshot.identity is None
        assert store.snapshot.profile is None
        assert store.snapshot.error == "Service unavailable"
        assert store.client.access_token is None

    async def test_service_error_while_loading_profile(self):
        def handler(request):
            if request.url.path.endswith("/auth/login"):
                return Response(
                    200,
                    json={
                        "access_token": "token-123",
                        "token_type": "bearer",
                        "user": {"id": "u1", "email": "user@example.com"},
                    },
                )
            return Response(503, json={"detail": "maintenance"})

        client = DataServiceClient(BASE_URL, transport=MockTransport(handler))
        store = SessionStore(client)
        await store.restore_session()

        with pytest.raises(RemoteServiceError):
            await store.sign_in("user@example.com", PASSWORD)

        assert store.state == SessionState.ANONYMOUS
        assert store.snapshot.identity is None
        assert client.access_token is None
        await store.close()
        await client.close()

    async def test_concurrent_sign_ins_never_mix_identities(self, store, make_account):
        make_account("first@example.com", full_name="First")
        make_account("second@example.com", role="student", full_name="Second")
        authenticated = []
        store.subscribe(lambda s: authenticated.append(s) if s.is_authenticated else None)

        await asyncio.gather(
            store.sign_in("first@example.com", PASSWORD),
            store.sign_in("second@example.com", PASSWORD),
        )

        assert len(authenticated) == 2
        for snapshot in authenticated:
            assert snapshot.profile.user_id == snapshot.identity.id
        assert store.snapshot.identity.email == "second@example.com"
        assert store.snapshot.profile.role == "student"

    async def test_sign_out_issued_after_sign_in_wins(self, store, make_account):
        make_account("late@example.com")

        await asyncio.gather(store.sign_in("late@example.com", PASSWORD), store.sign_out())

        assert store.state == SessionState.ANONYMOUS
        assert store.client.access_token is None


class TestSignOut:
    async def test_sign_out_clears_session(self, store, make_account, database):
        make_account("leaving@example.com")
        await store.sign_in("leaving@example.com", PASSWORD)
        token = store.client.access_token

        snapshot = await store.sign_out()

        assert snapshot.state == SessionState.ANONYMOUS
        assert snapshot.identity is None and snapshot.profile is None
        assert snapshot.error is None
        with database() as db:
            assert db.get(RevokedToken, decode_access_token(token)["jti"]) is not None

    async def test_sign_out_succeeds_when_service_fails(self, store, make_account, monkeypatch):
        make_account("offline@example.com")
        await store.sign_in("offline@example.com", PASSWORD)

        async def unreachable(*args, **kwargs):
            raise RemoteServiceError("Data service unreachable")

        monkeypatch.setattr(store.client, "_request", unreachable)
        snapshot = await store.sign_out()

        assert snapshot.state == SessionState.ANONYMOUS
        assert snapshot.identity is None
        assert snapshot.error == "Data service unreachable"
        assert store.client.access_token is None

    async def test_sign_out_while_anonymous_is_harmless(self, store):
        snapshot = await store.sign_out()
        assert snapshot.state == SessionState.ANONYMOUS


class TestRefreshProfile:
    async def test_anonymous_refresh_is_noop(self, store):
        before = store.snapshot
        assert (await store.refresh_profile()) is before

    async def test_picks_up_admin_approval(self, store, admin_store):
        snapshot = await store.sign_up("pending@example.com", PASSWORD, "Pending Alum", "alumni", batch="2022")
        assert not snapshot.profile.is_approved
        assert not is_approved_alumni(snapshot.profile)
        assert can_post_job(snapshot.profile)

        await portal.approve_user(admin_store, snapshot.identity.id)
        refreshed = await store.refresh_profile()

        assert refreshed.state == SessionState.AUTHENTICATED
        assert refreshed.profile.is_approved
        assert is_approved_alumni(refreshed.profile)
        assert can_post_job(refreshed.profile)

    async def test_expired_session_becomes_anonymous(self, store, make_account, database):
        make_account("expiring@example.com")
        await store.sign_in("expiring@example.com", PASSWORD)
        revoke(database, store.client.access_token)

        with pytest.raises(SessionExpiredError):
            await store.refresh_profile()

        assert store.state == SessionState.ANONYMOUS
        assert store.client.access_token is None


class TestRemoteInvalidation:
    async def test_rejected_token_ends_session(self, store, make_account, database):
        make_account("kicked@example.com")
        await store.sign_in("kicked@example.com", PASSWORD)
        revoke(database, store.client.access_token)

        with pytest.raises(SessionExpiredError):
            await store.client.table("event_registrations").select().execute()
        await store.close()

        assert store.state == SessionState.ANONYMOUS
        assert store.snapshot.identity is None
        assert store.snapshot.error == SessionExpiredError().message


class TestListeners:
    async def test_failing_listener_does_not_break_transitions(self, client):
        store = SessionStore(client)

        def broken(snapshot):
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        snapshot = await store.restore_session()

        assert snapshot.state == SessionState.ANONYMOUS
        await store.close()

    async def test_unsubscribe_stops_notifications(self, store, make_account):
        make_account("quiet@example.com")
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()

        await store.sign_in("quiet@example.com", PASSWORD)

        assert seen == []
