"""
Row-level access rules for the generic table endpoints.

Each table has a policy deciding which rows a caller can see and which
inserts, updates and deletes it accepts. These rules are the authoritative
side of authorization; the client-side gate only mirrors them for the UI.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import false, or_, select, update
from sqlalchemy.orm import Session

from alumni_connect.core.config import settings
from alumni_connect.core.constants import (
    CONNECTION_PENDING,
    CONNECTION_STATUSES,
    JOB_TYPES,
    ROLE_ADMIN,
    ROLE_ALUMNI,
    ROLES,
)
from alumni_connect.models import (
    AuthUser,
    ConnectionRequest,
    Event,
    EventRegistration,
    Job,
    JobApplication,
    Profile,
)
from alumni_connect.services.query import QueryError


class AccessDenied(Exception):
    """A row-level rule rejected the request."""


@dataclass
class Caller:
    """Who is making the request: an identity and its profile, either may be absent."""

    identity: Optional[AuthUser] = None
    profile: Optional[Profile] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.id if self.identity is not None else None

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.role == ROLE_ADMIN


def _require_identity(caller: Caller, action: str) -> None:
    if caller.identity is None:
        raise AccessDenied(f"Login required to {action}")


def _require_unchanged(row, values: dict, fields: tuple) -> None:
    for field in fields:
        if field in values and values[field] != getattr(row, field):
            raise AccessDenied(f"'{field}' cannot be changed")


class TablePolicy:
    """Default policy: everyone reads, only admins write."""

    model = None

    def visible(self, caller: Caller):
        """Extra filter clause restricting readable rows, or None for all rows."""
        return None

    def check_insert(self, db: Session, caller: Caller, values: dict) -> None:
        if not caller.is_admin:
            raise AccessDenied(f"Only admins can add {self.model.__tablename__}")

    def check_update(self, db: Session, caller: Caller, row, values: dict) -> None:
        if not caller.is_admin:
            raise AccessDenied(f"Only admins can change {self.model.__tablename__}")

    def check_delete(self, db: Session, caller: Caller, row) -> None:
        if not caller.is_admin:
            raise AccessDenied(f"Only admins can delete {self.model.__tablename__}")

    def before_delete(self, db: Session, row) -> None:
        pass

    def after_insert(self, db: Session, row) -> None:
        pass

    def after_delete(self, db: Session, row) -> None:
        pass


class ProfilePolicy(TablePolicy):
    model = Profile

    def check_insert(self, db, caller, values):
        _require_identity(caller, "create a profile")
        values.setdefault("user_id", caller.user_id)
        if values["user_id"] != caller.user_id and not caller.is_admin:
            raise AccessDenied("Profiles can only be created for yourself")

        role = values.get("role")
        if role not in ROLES:
            raise QueryError(f"Invalid role '{role}'", code="PGRST204")
        if role == ROLE_ADMIN and not (caller.is_admin or settings.ALLOW_ADMIN_SIGNUP):
            raise AccessDenied("Admin accounts cannot be self-registered")

        default_approval = role != ROLE_ALUMNI
        requested = values.get("is_approved")
        if requested is not None and requested != default_approval and not caller.is_admin:
            raise AccessDenied("Approval is granted by an admin")
        values["is_approved"] = default_approval if requested is None else requested
        values.setdefault("email", caller.identity.email)

    def check_update(self, db, caller, row, values):
        _require_identity(caller, "edit a profile")
        if row.user_id != caller.user_id and not caller.is_admin:
            raise AccessDenied("You can only edit your own profile")
        _require_unchanged(row, values, ("id", "user_id", "created_at"))
        if "role" in values and values["role"] != row.role:
            raise AccessDenied("Role is set when the account is created; an admin must change it")
        if "is_approved" in values and values["is_approved"] != row.is_approved and not caller.is_admin:
            raise AccessDenied("Only admins can approve accounts")


class EventPolicy(TablePolicy):
    model = Event

    def check_insert(self, db, caller, values):
        super().check_insert(db, caller, values)
        values.setdefault("created_by", caller.user_id)
        values.setdefault("registration_count", 0)

    def before_delete(self, db, row):
        db.query(EventRegistration).filter(EventRegistration.event_id == row.id).delete(
            synchronize_session=False
        )


class EventRegistrationPolicy(TablePolicy):
    model = EventRegistration

    def visible(self, caller):
        if caller.is_admin:
            return None
        if caller.identity is None:
            return false()
        return EventRegistration.user_id == caller.user_id

    def check_insert(self, db, caller, values):
        _require_identity(caller, "register for events")
        values.setdefault("user_id", caller.user_id)
        if values["user_id"] != caller.user_id:
            raise AccessDenied("You can only register yourself")
        event_id = values.get("event_id")
        event = db.get(Event, event_id) if event_id is not None else None
        if event is None:
            raise QueryError("Event does not exist", code="23503")
        if event.capacity and event.registration_count >= event.capacity:
            raise AccessDenied("This event is fully booked")

    def check_delete(self, db, caller, row):
        _require_identity(caller, "cancel a registration")
        if row.user_id != caller.user_id and not caller.is_admin:
            raise AccessDenied("You can only cancel your own registration")

    def after_insert(self, db, row):
        db.execute(
            update(Event)
            .where(Event.id == row.event_id)
            .values(registration_count=Event.registration_count + 1)
        )

    def after_delete(self, db, row):
        db.execute(
            update(Event)
            .where(Event.id == row.event_id, Event.registration_count > 0)
            .values(registration_count=Event.registration_count - 1)
        )


class JobPolicy(TablePolicy):
    model = Job

    def check_insert(self, db, caller, values):
        _require_identity(caller, "post jobs")
        if caller.profile is None or caller.profile.role != ROLE_ALUMNI:
            raise AccessDenied("Only alumni can post jobs")
        values.setdefault("posted_by", caller.user_id)
        if values["posted_by"] != caller.user_id:
            raise AccessDenied("Jobs can only be posted under your own account")
        values.setdefault("type", "job")
        if values["type"] not in JOB_TYPES:
            raise QueryError(f"Invalid job type '{values['type']}'", code="PGRST204")
        values.setdefault("is_active", True)

    def check_update(self, db, caller, row, values):
        _require_identity(caller, "edit jobs")
        if row.posted_by != caller.user_id and not caller.is_admin:
            raise AccessDenied("Only the poster can edit this job")
        _require_unchanged(row, values, ("id", "posted_by", "created_at"))

    def check_delete(self, db, caller, row):
        _require_identity(caller, "delete jobs")
        if row.posted_by != caller.user_id and not caller.is_admin:
            raise AccessDenied("Only the poster can delete this job")

    def before_delete(self, db, row):
        db.query(JobApplication).filter(JobApplication.job_id == row.id).delete(
            synchronize_session=False
        )


class JobApplicationPolicy(TablePolicy):
    model = JobApplication

    def visible(self, caller):
        if caller.is_admin:
            return None
        if caller.identity is None:
            return false()
        own_jobs = select(Job.id).where(Job.posted_by == caller.user_id)
        return or_(
            JobApplication.applicant_id == caller.user_id,
            JobApplication.job_id.in_(own_jobs),
        )

    def check_insert(self, db, caller, values):
        _require_identity(caller, "apply for jobs")
        values.setdefault("applicant_id", caller.user_id)
        if values["applicant_id"] != caller.user_id:
            raise AccessDenied("You can only apply for yourself")
        job_id = values.get("job_id")
        job = db.get(Job, job_id) if job_id is not None else None
        if job is None:
            raise QueryError("Job does not exist", code="23503")
        if not job.is_active:
            raise AccessDenied("This job is no longer accepting applications")
        if values.setdefault("status", "pending") != "pending":
            raise AccessDenied("Applications start as pending")

    def check_update(self, db, caller, row, values):
        _require_identity(caller, "review applications")
        job = db.get(Job, row.job_id)
        if not caller.is_admin and (job is None or job.posted_by != caller.user_id):
            raise AccessDenied("Only the job poster can review applications")
        _require_unchanged(row, values, ("id", "job_id", "applicant_id", "created_at"))

    def check_delete(self, db, caller, row):
        _require_identity(caller, "withdraw applications")
        if row.applicant_id != caller.user_id and not caller.is_admin:
            raise AccessDenied("You can only withdraw your own application")


class ConnectionRequestPolicy(TablePolicy):
    model = ConnectionRequest

    def visible(self, caller):
        if caller.is_admin:
            return None
        if caller.identity is None:
            return false()
        return or_(
            ConnectionRequest.sender_id == caller.user_id,
            ConnectionRequest.receiver_id == caller.user_id,
        )

    def check_insert(self, db, caller, values):
        _require_identity(caller, "send connection requests")
        values.setdefault("sender_id", caller.user_id)
        if values["sender_id"] != caller.user_id:
            raise AccessDenied("Connection requests can only be sent from your own account")
        if values.get("receiver_id") == caller.user_id:
            raise QueryError("You cannot connect with yourself", code="PGRST204")
        if values.setdefault("status", CONNECTION_PENDING) != CONNECTION_PENDING:
            raise AccessDenied("Connection requests start as pending")

    def check_update(self, db, caller, row, values):
        _require_identity(caller, "answer connection requests")
        if row.receiver_id != caller.user_id and not caller.is_admin:
            raise AccessDenied("Only the receiver can answer a connection request")
        _require_unchanged(row, values, ("id", "sender_id", "receiver_id", "created_at"))
        if values.get("status", row.status) not in CONNECTION_STATUSES:
            raise QueryError(f"Invalid status '{values['status']}'", code="PGRST204")

    def check_delete(self, db, caller, row):
        _require_identity(caller, "withdraw connection requests")
        if row.sender_id != caller.user_id and not caller.is_admin:
            raise AccessDenied("Only the sender can withdraw a connection request")


POLICIES = {
    "profiles": ProfilePolicy(),
    "events": EventPolicy(),
    "event_registrations": EventRegistrationPolicy(),
    "jobs": JobPolicy(),
    "job_applications": JobApplicationPolicy(),
    "connection_requests": ConnectionRequestPolicy(),
}


def get_policy(table: str) -> TablePolicy:
    """Raises KeyError for tables the service does not expose."""
    return POLICIES[table]
