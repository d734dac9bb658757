"""
Client-side records returned by the data service.

Both are immutable snapshots: a new instance replaces the cached one on
every refresh, so listeners never observe a half-updated profile.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

Role = Literal["alumni", "student", "admin"]


class Identity(BaseModel):
    """Authenticated principal issued by the data service."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    email: str
    created_at: Optional[datetime] = None


class Profile(BaseModel):
    """Application-level record describing a user's role and public attributes."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    user_id: str
    full_name: str
    email: str
    role: Role
    is_approved: bool = False
    batch: Optional[str] = None
    branch: Optional[str] = None
    profession: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    linkedin_url: Optional[str] = None
    resume_url: Optional[str] = None
    created_at: Optional[datetime] = None
