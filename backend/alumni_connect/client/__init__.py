from alumni_connect.client.data_service import AuthEvent, DataServiceClient, TableQuery
from alumni_connect.client.models import Identity, Profile
from alumni_connect.client.session_store import SessionSnapshot, SessionState, SessionStore
from alumni_connect.client.authorization import (
    can_apply_for_job,
    can_moderate_users,
    can_post_job,
    can_view_page,
    is_admin,
    is_approved,
    is_approved_alumni,
    navigation_items,
)
from alumni_connect.client.bootstrap import bootstrap_session, guard_page, session_lifespan
from alumni_connect.client.token_storage import FileTokenStorage, MemoryTokenStorage

__all__ = [
    "AuthEvent",
    "DataServiceClient",
    "TableQuery",
    "Identity",
    "Profile",
    "SessionSnapshot",
    "SessionState",
    "SessionStore",
    "can_apply_for_job",
    "can_moderate_users",
    "can_post_job",
    "can_view_page",
    "is_admin",
    "is_approved",
    "is_approved_alumni",
    "navigation_items",
    "bootstrap_session",
    "guard_page",
    "session_lifespan",
    "FileTokenStorage",
    "MemoryTokenStorage",
]
