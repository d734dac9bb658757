"""
HTTP client for the remote data service.

Wraps authentication (sign-up, sign-in, sign-out, current session) and the
generic table interface. Every failure is translated into the client error
taxonomy; nothing is retried.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Union

import httpx

from alumni_connect.client.models import Identity
from alumni_connect.client.token_storage import FileTokenStorage, MemoryTokenStorage
from alumni_connect.core.config import Settings, settings as default_settings
from alumni_connect.core.constants import UNIQUE_VIOLATION
from alumni_connect.core.exceptions import (
    AuthError,
    PermissionDeniedError,
    RemoteServiceError,
    SessionExpiredError,
    UniquenessError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class AuthEvent(str, Enum):
    """Notifications sent to auth state listeners."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    SESSION_EXPIRED = "SESSION_EXPIRED"


AuthListener = Callable[[AuthEvent, Optional[Identity]], None]


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.isoformat().replace("+00:00", "Z")
    return str(value)


def _error_detail(response: httpx.Response) -> tuple[Optional[str], str]:
    """Extract ``(code, message)`` from an error response."""
    try:
        body = response.json()
    except ValueError:
        return None, response.text or response.reason_phrase

    detail = body.get("detail", body) if isinstance(body, dict) else body
    if isinstance(detail, dict):
        return detail.get("code"), detail.get("message") or str(detail)
    if isinstance(detail, list):
        # FastAPI request validation errors
        messages = [item.get("msg", str(item)) for item in detail if isinstance(item, dict)]
        return None, "; ".join(messages) or str(detail)
    return None, str(detail)


class TableQuery:
    """
    Query against one table, built fluently and sent by a terminal call.

        rows = await (
            client.table("profiles")
            .select()
            .eq("role", "alumni")
            .eq("is_approved", True)
            .order("full_name")
            .execute()
        )

    Filters also scope ``update()`` and ``delete()``.
    """

    def __init__(self, client: "DataServiceClient", table: str):
        self._client = client
        self.table = table
        self._columns = "*"
        self._filters: list[tuple[str, str]] = []
        self._order: list[str] = []
        self._limit: Optional[int] = None

    def select(self, columns: str = "*") -> "TableQuery":
        self._columns = columns
        return self

    def _filter(self, column: str, op: str, value: Any) -> "TableQuery":
        self._filters.append((column, f"{op}.{_format_value(value)}"))
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        return self._filter(column, "eq", value)

    def neq(self, column: str, value: Any) -> "TableQuery":
        return self._filter(column, "neq", value)

    def gt(self, column: str, value: Any) -> "TableQuery":
        return self._filter(column, "gt", value)

    def gte(self, column: str, value: Any) -> "TableQuery":
        return self._filter(column, "gte", value)

    def lt(self, column: str, value: Any) -> "TableQuery":
        return self._filter(column, "lt", value)

    def lte(self, column: str, value: Any) -> "TableQuery":
        return self._filter(column, "lte", value)

    def ilike(self, column: str, pattern: str) -> "TableQuery":
        return self._filter(column, "ilike", pattern)

    def is_(self, column: str, value: Optional[bool]) -> "TableQuery":
        return self._filter(column, "is", value)

    def order(self, column: str, ascending: bool = True) -> "TableQuery":
        self._order.append(f"{column}.{'asc' if ascending else 'desc'}")
        return self

    def limit(self, count: int) -> "TableQuery":
        self._limit = count
        return self

    @property
    def params(self) -> list[tuple[str, str]]:
        params = list(self._filters)
        if self._columns != "*":
            params.append(("select", self._columns))
        if self._order:
            params.append(("order", ",".join(self._order)))
        if self._limit is not None:
            params.append(("limit", str(self._limit)))
        return params

    async def execute(self) -> list[dict]:
        return await self._client._request("GET", f"/rest/{self.table}", params=self.params)

    async def insert(self, values: Union[dict, list[dict]]) -> list[dict]:
        return await self._client._request("POST", f"/rest/{self.table}", json=values)

    async def update(self, values: dict) -> list[dict]:
        return await self._client._request(
            "PATCH", f"/rest/{self.table}", params=list(self._filters), json=values
        )

    async def delete(self) -> list[dict]:
        return await self._client._request("DELETE", f"/rest/{self.table}", params=list(self._filters))


class DataServiceClient:
    """
    Async client for the remote data service.

    The session token lives in ``storage``; a stored token is attached to
    every request except sign-up and sign-in. When the service rejects a
    stored token the client forgets it and notifies its auth listeners with
    ``AuthEvent.SESSION_EXPIRED``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        storage=None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.storage = storage if storage is not None else MemoryTokenStorage()
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._listeners: list[AuthListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "DataServiceClient":
        settings = settings or default_settings
        if settings.SESSION_STORAGE_PATH:
            storage = FileTokenStorage(settings.SESSION_STORAGE_PATH)
        else:
            storage = MemoryTokenStorage()
        return cls(
            settings.DATA_SERVICE_URL,
            storage=storage,
            timeout=settings.DATA_SERVICE_TIMEOUT,
            transport=transport,
        )

    # ============== Session token ==============

    @property
    def access_token(self) -> Optional[str]:
        session = self.storage.load()
        return session.get("access_token") if session else None

    @property
    def stored_identity(self) -> Optional[Identity]:
        session = self.storage.load()
        if not session or not session.get("user"):
            return None
        return Identity.model_validate(session["user"])

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: AuthEvent, identity: Optional[Identity]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, identity)
            except Exception:
                logger.exception("Auth state listener failed on %s", event.value)

    def _store_session(self, data: dict) -> Identity:
        identity = Identity.model_validate(data["user"])
        self.storage.save(
            {
                "access_token": data["access_token"],
                "token_type": data.get("token_type", "bearer"),
                "user": identity.model_dump(mode="json"),
            }
        )
        self._emit(AuthEvent.SIGNED_IN, identity)
        return identity

    def _expire_session(self) -> None:
        identity = self.stored_identity
        self.storage.clear()
        logger.info("Stored session was rejected by the data service")
        self._emit(AuthEvent.SESSION_EXPIRED, identity)

    # ============== Transport ==============

    async def _request(self, method: str, path: str, *, authenticated: bool = True, **kwargs) -> Any:
        token = self.access_token if authenticated else None
        headers = {"Authorization": f"Bearer {token}"} if token else {}

        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteServiceError(f"Data service unreachable: {e}") from e

        if not response.is_success:
            self._raise_for_response(response, token_sent=token is not None)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _raise_for_response(self, response: httpx.Response, *, token_sent: bool) -> None:
        code, message = _error_detail(response)
        status_code = response.status_code
        auth_endpoint = response.request.url.path.endswith(("/auth/signup", "/auth/login"))

        if status_code == 401:
            if token_sent:
                self._expire_session()
                raise SessionExpiredError()
            raise AuthError(message)
        if status_code == 409 or code == UNIQUE_VIOLATION:
            raise UniquenessError(message)
        if status_code == 403:
            raise PermissionDeniedError(message)
        if status_code == 422:
            raise ValidationError(message)
        if status_code == 400 and auth_endpoint:
            raise AuthError(message)
        raise RemoteServiceError(message, status_code=status_code)

    # ============== Authentication ==============

    async def sign_up(self, email: str, password: str) -> Identity:
        data = await self._request(
            "POST",
            "/auth/signup",
            json={"email": email, "password": password},
            authenticated=False,
        )
        return self._store_session(data)

    async def sign_in(self, email: str, password: str) -> Identity:
        data = await self._request(
            "POST",
            "/auth/login",
            data={"username": email, "password": password},
            authenticated=False,
        )
        return self._store_session(data)

    async def sign_out(self) -> None:
        """Revoke the remote session; the local token is dropped even if that fails."""
        identity = self.stored_identity
        try:
            if self.access_token:
                await self._request("POST", "/auth/logout")
        finally:
            self.storage.clear()
            self._emit(AuthEvent.SIGNED_OUT, identity)

    async def get_current_session(self) -> Optional[Identity]:
        """Identity behind the stored token, or None when there is no valid session."""
        if not self.access_token:
            return None
        try:
            data = await self._request("GET", "/auth/user")
        except SessionExpiredError:
            return None
        return Identity.model_validate(data)

    async def delete_current_user(self) -> None:
        identity = self.stored_identity
        await self._request("DELETE", "/auth/user")
        self.storage.clear()
        self._emit(AuthEvent.SIGNED_OUT, identity)

    async def change_role(self, user_id: str, role: str) -> dict:
        return await self._request("POST", f"/admin/profiles/{user_id}/role", json={"role": role})

    # ============== Tables ==============

    def table(self, name: str) -> TableQuery:
        return TableQuery(self, name)

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "DataServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
