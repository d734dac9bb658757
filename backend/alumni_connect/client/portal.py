"""
Data-access operations behind the directory, events, jobs, profile and
admin screens.

These are thin wrappers over table calls. They read the session to know
who is acting but never change it, except update_profile() which refreshes
the cached profile afterwards. Duplicate inserts surface as
UniquenessError with a message ready to show to the user.
"""

from datetime import datetime, timezone
from typing import Optional

from alumni_connect.client.authorization import can_moderate_users, can_post_job
from alumni_connect.client.models import Identity, Profile
from alumni_connect.client.session_store import SessionSnapshot, SessionStore
from alumni_connect.core.constants import CONNECTION_PENDING, JOB_TYPES, ROLE_ALUMNI, ROLES
from alumni_connect.core.exceptions import (
    AuthError,
    PermissionDeniedError,
    UniquenessError,
    ValidationError,
)

EDITABLE_PROFILE_FIELDS = (
    "full_name",
    "batch",
    "branch",
    "profession",
    "company",
    "location",
    "bio",
    "linkedin_url",
    "resume_url",
)


def _require_identity(store: SessionStore, action: str) -> Identity:
    snapshot = store.snapshot
    if not snapshot.is_authenticated or snapshot.identity is None:
        raise AuthError(f"Please login to {action}", code="LOGIN_REQUIRED")
    return snapshot.identity


def _require_moderator(store: SessionStore) -> SessionSnapshot:
    snapshot = store.snapshot
    if not can_moderate_users(snapshot.profile):
        raise PermissionDeniedError("Admin access required")
    return snapshot


# ============== Directory ==============


async def list_alumni(
    store: SessionStore,
    search: Optional[str] = None,
    batch: Optional[str] = None,
    branch: Optional[str] = None,
) -> list[Profile]:
    """Approved alumni by name, narrowed by a free-text search and exact filters."""
    rows = await (
        store.client.table("profiles")
        .select()
        .eq("role", ROLE_ALUMNI)
        .eq("is_approved", True)
        .order("full_name")
        .execute()
    )
    alumni = [Profile.model_validate(row) for row in rows]

    if search:
        term = search.lower()
        alumni = [
            a for a in alumni
            if term in a.full_name.lower()
            or term in (a.company or "").lower()
            or term in (a.profession or "").lower()
        ]
    if batch:
        alumni = [a for a in alumni if a.batch == batch]
    if branch:
        alumni = [a for a in alumni if a.branch == branch]
    return alumni


async def send_connection_request(store: SessionStore, receiver_id: str) -> dict:
    identity = _require_identity(store, "send connection requests")
    try:
        rows = await store.client.table("connection_requests").insert(
            {"sender_id": identity.id, "receiver_id": receiver_id, "status": CONNECTION_PENDING}
        )
    except UniquenessError as e:
        raise UniquenessError("Connection request already sent", table="connection_requests") from e
    return rows[0]


# ============== Events ==============


async def list_upcoming_events(store: SessionStore, now: Optional[datetime] = None) -> list[dict]:
    now = now or datetime.now(timezone.utc)
    return await (
        store.client.table("events")
        .select()
        .gte("event_date", now)
        .order("event_date")
        .execute()
    )


async def registered_event_ids(store: SessionStore) -> set[str]:
    snapshot = store.snapshot
    if not snapshot.is_authenticated or snapshot.identity is None:
        return set()
    rows = await (
        store.client.table("event_registrations")
        .select("event_id")
        .eq("user_id", snapshot.identity.id)
        .execute()
    )
    return {row["event_id"] for row in rows}


def is_fully_booked(event: dict) -> bool:
    """A capacity of zero means unlimited."""
    capacity = event.get("capacity") or 0
    return capacity > 0 and (event.get("registration_count") or 0) >= capacity


async def register_for_event(store: SessionStore, event_id: str) -> dict:
    identity = _require_identity(store, "register for events")
    rows = await (
        store.client.table("events")
        .select("id,capacity,registration_count")
        .eq("id", event_id)
        .execute()
    )
    if rows and is_fully_booked(rows[0]):
        raise PermissionDeniedError("This event is fully booked")

    try:
        rows = await store.client.table("event_registrations").insert(
            {"event_id": event_id, "user_id": identity.id}
        )
    except UniquenessError as e:
        raise UniquenessError("You are already registered for this event", table="event_registrations") from e
    return rows[0]


# ============== Jobs ==============


async def list_jobs(store: SessionStore, job_type: Optional[str] = None) -> list[dict]:
    """Active postings, newest first."""
    query = store.client.table("jobs").select().eq("is_active", True)
    if job_type:
        query = query.eq("type", job_type)
    return await query.order("created_at", ascending=False).execute()


async def post_job(
    store: SessionStore,
    title: str,
    company: str,
    description: str = "",
    job_type: str = "job",
    location: str = "",
    salary_range: str = "",
    requirements: str = "",
) -> dict:
    identity = _require_identity(store, "post jobs")
    if not can_post_job(store.snapshot.profile):
        raise PermissionDeniedError("Only alumni can post jobs")
    if not title.strip() or not company.strip():
        raise ValidationError("Title and company are required", field="title" if not title.strip() else "company")
    if job_type not in JOB_TYPES:
        raise ValidationError(f"Job type must be one of {', '.join(JOB_TYPES)}", field="type")

    rows = await store.client.table("jobs").insert(
        {
            "title": title.strip(),
            "company": company.strip(),
            "description": description,
            "type": job_type,
            "location": location,
            "salary_range": salary_range,
            "requirements": requirements,
            "posted_by": identity.id,
            "is_active": True,
        }
    )
    return rows[0]


async def apply_for_job(store: SessionStore, job_id: str) -> dict:
    identity = _require_identity(store, "apply for jobs")
    try:
        rows = await store.client.table("job_applications").insert(
            {"job_id": job_id, "applicant_id": identity.id}
        )
    except UniquenessError as e:
        raise UniquenessError("You have already applied for this job", table="job_applications") from e
    return rows[0]


# ============== Profile ==============


async def update_profile(store: SessionStore, **changes) -> SessionSnapshot:
    """Save profile edits, then refresh the session's cached profile."""
    identity = _require_identity(store, "edit your profile")
    unknown = sorted(set(changes) - set(EDITABLE_PROFILE_FIELDS))
    if unknown:
        raise ValidationError(f"Cannot edit {', '.join(unknown)} from the profile page", field=unknown[0])
    if "full_name" in changes and not (changes["full_name"] or "").strip():
        raise ValidationError("Full name is required", field="full_name")

    await store.client.table("profiles").eq("user_id", identity.id).update(changes)
    return await store.refresh_profile()


# ============== Admin ==============


async def list_users(store: SessionStore) -> tuple[list[Profile], list[Profile]]:
    """Split every profile into (alumni awaiting approval, everyone else)."""
    _require_moderator(store)
    rows = await store.client.table("profiles").select().order("created_at", ascending=False).execute()
    profiles = [Profile.model_validate(row) for row in rows]
    pending = [p for p in profiles if p.role == ROLE_ALUMNI and not p.is_approved]
    approved = [p for p in profiles if p.is_approved or p.role != ROLE_ALUMNI]
    return pending, approved


async def _set_approval(store: SessionStore, user_id: str, approved: bool) -> Profile:
    _require_moderator(store)
    rows = await store.client.table("profiles").eq("user_id", user_id).update({"is_approved": approved})
    if not rows:
        raise ValidationError("No profile for that user", field="user_id")
    return Profile.model_validate(rows[0])


async def approve_user(store: SessionStore, user_id: str) -> Profile:
    return await _set_approval(store, user_id, True)


async def reject_user(store: SessionStore, user_id: str) -> Profile:
    return await _set_approval(store, user_id, False)


async def change_role(store: SessionStore, user_id: str, role: str) -> Profile:
    """Explicit administrative role change; generic profile updates cannot do this."""
    _require_moderator(store)
    if role not in ROLES:
        raise ValidationError(f"Role must be one of {', '.join(ROLES)}", field="role")
    return Profile.model_validate(await store.client.change_role(user_id, role))


async def create_event(
    store: SessionStore,
    title: str,
    event_date: datetime,
    description: str = "",
    location: str = "",
    capacity: int = 0,
    image_url: Optional[str] = None,
) -> dict:
    snapshot = _require_moderator(store)
    if not title.strip():
        raise ValidationError("Title is required", field="title")
    if capacity < 0:
        raise ValidationError("Capacity cannot be negative", field="capacity")

    rows = await store.client.table("events").insert(
        {
            "title": title.strip(),
            "description": description,
            "event_date": event_date.isoformat(),
            "location": location,
            "capacity": capacity,
            "image_url": image_url,
            "created_by": snapshot.identity.id,
        }
    )
    return rows[0]


async def delete_event(store: SessionStore, event_id: str) -> None:
    _require_moderator(store)
    await store.client.table("events").eq("id", event_id).delete()


async def list_all_jobs(store: SessionStore) -> list[dict]:
    _require_moderator(store)
    return await store.client.table("jobs").select().order("created_at", ascending=False).execute()


async def delete_job(store: SessionStore, job_id: str) -> None:
    _require_moderator(store)
    await store.client.table("jobs").eq("id", job_id).delete()
