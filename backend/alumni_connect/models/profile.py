from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text

from alumni_connect.db.base import Base, generate_id


class Profile(Base):
    """
    Application-level record describing a user's role and public attributes.

    Exactly one row per identity. ``role`` is set at creation; ``is_approved``
    only matters for alumni.
    """

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("auth_users.id"), unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    role = Column(String, nullable=False, index=True)  # 'alumni' | 'student' | 'admin'
    is_approved = Column(Boolean, default=False, nullable=False)

    batch = Column(String)  # graduation year, e.g. "2022"
    branch = Column(String)
    profession = Column(String)
    company = Column(String)
    location = Column(String)
    bio = Column(Text)
    linkedin_url = Column(String)
    resume_url = Column(String)

    created_at = Column(DateTime, default=datetime.utcnow)
