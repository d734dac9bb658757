"""
Session store: who is signed in and what their profile is.

One store per process is the single writer of session state. UI surfaces
read ``store.snapshot`` and ``subscribe()`` to transitions:

    UNINITIALIZED -> LOADING            restore_session() starts
    LOADING       -> ANONYMOUS          no valid stored session
    LOADING       -> AUTHENTICATED      session and profile found
    LOADING       -> ANONYMOUS          identity without profile (degraded)
    ANONYMOUS     -> AUTHENTICATED      sign_in() / sign_up()
    AUTHENTICATED -> ANONYMOUS          sign_out() / remote session expired
    AUTHENTICATED -> AUTHENTICATED      refresh_profile()

Operations that mutate the session are serialized with one lock, so a
later call never interleaves with an earlier one still waiting on the
data service.
"""

import asyncio
import logging
import re
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from alumni_connect.client.data_service import AuthEvent, DataServiceClient
from alumni_connect.client.models import Identity, Profile
from alumni_connect.core.config import settings
from alumni_connect.core.constants import ROLE_ALUMNI, ROLES
from alumni_connect.core.exceptions import (
    AlumniConnectError,
    ProfileMissingError,
    SessionExpiredError,
    ValidationError,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$"
BATCH_PATTERN = r"^\d{4}$"


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class SessionSnapshot(BaseModel):
    """Immutable view of the session handed to readers and listeners."""

    model_config = ConfigDict(frozen=True)

    state: SessionState = SessionState.UNINITIALIZED
    identity: Optional[Identity] = None
    profile: Optional[Profile] = None
    error: Optional[str] = None  # diagnostic of the last failed transition

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED

    @property
    def is_degraded(self) -> bool:
        """An identity is known but its profile is missing."""
        return self.state == SessionState.ANONYMOUS and self.identity is not None and self.profile is None


SessionListener = Callable[[SessionSnapshot], None]


class SignUpRequest(BaseModel):
    """Sign-up input, validated before anything is sent to the data service."""

    email: str
    password: str
    full_name: str
    role: str
    batch: Optional[str] = None
    branch: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if not re.match(EMAIL_PATTERN, v):
            raise ValueError("Invalid email format")
        return v.lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password should be at least {settings.MIN_PASSWORD_LENGTH} characters")
        return v

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Full name is required")
        return v.strip()

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in ROLES:
            raise ValueError(f"Role must be one of {', '.join(ROLES)}")
        return v

    @field_validator("batch")
    @classmethod
    def validate_batch(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        if not re.match(BATCH_PATTERN, v.strip()):
            raise ValueError("Batch must be a four-digit year")
        return v.strip()

    @field_validator("branch")
    @classmethod
    def validate_branch(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


def validate_sign_up(**fields) -> SignUpRequest:
    try:
        return SignUpRequest(**fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else None
        message = first["msg"].removeprefix("Value error, ")
        raise ValidationError(message, field=field) from e


class SessionStore:
    """Single source of truth for the signed-in identity and its profile."""

    def __init__(self, client: DataServiceClient):
        self.client = client
        self._snapshot = SessionSnapshot()
        self._lock = asyncio.Lock()
        self._ready = asyncio.Event()
        self._listeners: list[SessionListener] = []
        self._background: set[asyncio.Task] = set()
        self._unsubscribe_auth = client.on_auth_state_change(self._on_auth_event)

    # ============== Readers ==============

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def state(self) -> SessionState:
        return self._snapshot.state

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call ``listener(snapshot)`` on every transition; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_until_ready(self) -> SessionSnapshot:
        """Wait for restore_session() to settle, whatever its outcome."""
        await self._ready.wait()
        return self._snapshot

    # ============== Transitions ==============

    def _set(
        self,
        state: SessionState,
        identity: Optional[Identity] = None,
        profile: Optional[Profile] = None,
        error: Optional[str] = None,
    ) -> SessionSnapshot:
        previous = self._snapshot.state
        self._snapshot = SessionSnapshot(state=state, identity=identity, profile=profile, error=error)
        logger.debug("Session %s -> %s", previous.value, state.value)

        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Session listener failed")
        return self._snapshot

    def _require_initialized(self, operation: str) -> None:
        if self._snapshot.state == SessionState.UNINITIALIZED:
            raise RuntimeError(f"restore_session() must complete before {operation}()")

    async def _fetch_profile(self, identity: Identity) -> Profile:
        rows = await self.client.table("profiles").select().eq("user_id", identity.id).limit(1).execute()
        if not rows:
            raise ProfileMissingError(identity.id)
        return Profile.model_validate(rows[0])

    async def _load_profile(self, identity: Identity) -> SessionSnapshot:
        """Populate the session for ``identity``; a missing profile leaves it degraded."""
        try:
            profile = await self._fetch_profile(identity)
        except ProfileMissingError as e:
            logger.warning("Identity %s has no profile", identity.id)
            self._set(SessionState.ANONYMOUS, identity=identity, error=e.message)
            raise
        return self._set(SessionState.AUTHENTICATED, identity=identity, profile=profile)

    # ============== Operations ==============

    async def restore_session(self) -> SessionSnapshot:
        """
        Resume a previously issued session, once, at process start.

        Never raises for data service failures: they are logged and kept as
        the snapshot's ``error`` while the session settles as anonymous.
        """
        async with self._lock:
            if self._snapshot.state != SessionState.UNINITIALIZED:
                logger.debug("restore_session() already ran")
                return self._snapshot

            self._set(SessionState.LOADING)
            try:
                identity = await self.client.get_current_session()
                if identity is None:
                    self._set(SessionState.ANONYMOUS)
                else:
                    await self._load_profile(identity)
                    logger.info("Restored session for %s", identity.email)
            except ProfileMissingError:
                pass
            except AlumniConnectError as e:
                logger.warning("Could not restore session: %s", e.message)
                self._set(SessionState.ANONYMOUS, error=e.message)
            finally:
                if self._snapshot.state == SessionState.LOADING:
                    self._set(SessionState.ANONYMOUS, error="Session could not be restored")
                self._ready.set()
            return self._snapshot

    async def sign_up(
        self,
        email: str,
        password: str,
        full_name: str,
        role: str,
        batch: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> SessionSnapshot:
        """
        Create an identity and its profile, then make them the active session.

        Alumni start unapproved; students and admins are approved at once.
        If the profile cannot be created the new identity is deleted again
        so that no orphaned account is left behind.
        """
        request = validate_sign_up(
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            batch=batch,
            branch=branch,
        )

        async with self._lock:
            self._require_initialized("sign_up")
            identity = await self.client.sign_up(request.email, request.password)

            try:
                rows = await self.client.table("profiles").insert(
                    {
                        "user_id": identity.id,
                        "full_name": request.full_name,
                        "email": request.email,
                        "role": request.role,
                        "is_approved": request.role != ROLE_ALUMNI,
                        "batch": request.batch,
                        "branch": request.branch,
                    }
                )
                profile = Profile.model_validate(rows[0])
            except AlumniConnectError as e:
                await self._discard_identity(identity)
                self._set(SessionState.ANONYMOUS, error=e.message)
                raise

            logger.info("Signed up %s as %s", identity.email, profile.role)
            return self._set(SessionState.AUTHENTICATED, identity=identity, profile=profile)

    async def _discard_identity(self, identity: Identity) -> None:
        """Compensate a failed profile insert by deleting the identity just created."""
        try:
            await self.client.delete_current_user()
            logger.warning("Profile creation failed; identity %s was removed", identity.id)
        except AlumniConnectError as e:
            self.client.storage.clear()
            logger.error(
                "Profile creation failed and identity %s (%s) could not be removed: %s",
                identity.id,
                identity.email,
                e.message,
            )

    async def sign_in(self, email: str, password: str) -> SessionSnapshot:
        """
        Authenticate and load the matching profile.

        Raises AuthError on bad credentials (the session is left as it was)
        and ProfileMissingError when the identity has no profile. Any other
        failure after authentication leaves the session anonymous.
        """
        async with self._lock:
            self._require_initialized("sign_in")
            identity = await self.client.sign_in(email.strip().lower(), password)
            try:
                snapshot = await self._load_profile(identity)
            except ProfileMissingError:
                raise
            except AlumniConnectError as e:
                # The new token is already stored; drop it rather than pair it with the old profile
                self.client.storage.clear()
                logger.warning("Could not load profile for %s: %s", identity.email, e.message)
                self._set(SessionState.ANONYMOUS, error=e.message)
                raise
            logger.info("Signed in %s", identity.email)
            return snapshot

    async def sign_out(self) -> SessionSnapshot:
        """
        End the session. Local state is always cleared, even when the data
        service cannot be reached; such a failure is only logged.
        """
        async with self._lock:
            error = None
            try:
                await self.client.sign_out()
            except AlumniConnectError as e:
                error = e.message
                logger.warning("Remote sign-out failed, local session cleared anyway: %s", e.message)
            finally:
                self._ready.set()
                snapshot = self._set(SessionState.ANONYMOUS, error=error)
            logger.info("Signed out")
            return snapshot

    async def refresh_profile(self) -> SessionSnapshot:
        """Re-read the current profile after another screen changed it."""
        async with self._lock:
            self._require_initialized("refresh_profile")
            current = self._snapshot
            if current.state != SessionState.AUTHENTICATED or current.identity is None:
                return current

            try:
                return await self._load_profile(current.identity)
            except SessionExpiredError as e:
                self._set(SessionState.ANONYMOUS, error=e.message)
                raise

    # ============== Remote invalidation ==============

    def _on_auth_event(self, event: AuthEvent, identity: Optional[Identity]) -> None:
        if event != AuthEvent.SESSION_EXPIRED:
            return
        task = asyncio.get_running_loop().create_task(self._expire(identity))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _expire(self, identity: Optional[Identity]) -> None:
        async with self._lock:
            current = self._snapshot
            if current.identity is None:
                return
            if identity is not None and identity.id != current.identity.id:
                return
            logger.info("Session for %s expired", current.identity.email)
            self._set(SessionState.ANONYMOUS, error=SessionExpiredError().message)

    async def close(self) -> None:
        """Stop listening to the client and wait for pending expiry handling."""
        self._unsubscribe_auth()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
