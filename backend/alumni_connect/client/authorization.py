"""
Authorization gate.

Pure predicates over the current profile snapshot. They are advisory: the
data service enforces the same rules on its side. Recompute them from
``store.snapshot`` on every session change instead of caching the result.
"""

from typing import Optional

from alumni_connect.client.models import Profile
from alumni_connect.client.session_store import SessionSnapshot, SessionState
from alumni_connect.core.constants import ROLE_ADMIN, ROLE_ALUMNI

PUBLIC_PAGES = ("home", "directory", "events", "jobs", "about", "contact")
PAGES = PUBLIC_PAGES + ("profile", "admin")


def is_admin(profile: Optional[Profile]) -> bool:
    return profile is not None and profile.role == ROLE_ADMIN


def is_approved_alumni(profile: Optional[Profile]) -> bool:
    return profile is not None and profile.role == ROLE_ALUMNI and profile.is_approved


def is_approved(profile: Optional[Profile]) -> bool:
    """Approval only applies to alumni; everyone else is implicitly approved."""
    if profile is None:
        return False
    return profile.is_approved or profile.role != ROLE_ALUMNI


def can_post_job(profile: Optional[Profile]) -> bool:
    # Approval is not required: pending alumni can post too.
    return profile is not None and profile.role == ROLE_ALUMNI


def can_apply_for_job(profile: Optional[Profile]) -> bool:
    return profile is not None


def can_moderate_users(profile: Optional[Profile]) -> bool:
    return is_admin(profile)


def can_view_page(page: str, snapshot: SessionSnapshot) -> bool:
    """
    Route-level gate.

    Public pages are always viewable. Until the session has settled
    (UNINITIALIZED or LOADING) nothing else is, so role-gated content never
    flashes before restore completes.
    """
    if page not in PAGES:
        return False
    if page in PUBLIC_PAGES:
        return True
    if snapshot.state != SessionState.AUTHENTICATED:
        return False
    if page == "admin":
        return is_admin(snapshot.profile)
    return snapshot.identity is not None and snapshot.profile is not None


def navigation_items(snapshot: SessionSnapshot) -> list[str]:
    """Pages to offer in the navigation bar for this session."""
    return [page for page in PAGES if can_view_page(page, snapshot)]
