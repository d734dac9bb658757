from alumni_connect.models.identity import AuthUser, RevokedToken
from alumni_connect.models.profile import Profile
from alumni_connect.models.event import Event, EventRegistration
from alumni_connect.models.job import Job, JobApplication
from alumni_connect.models.connection import ConnectionRequest

__all__ = [
    "AuthUser",
    "RevokedToken",
    "Profile",
    "Event",
    "EventRegistration",
    "Job",
    "JobApplication",
    "ConnectionRequest",
]
