from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from alumni_connect.db.base import Base, generate_id


class Event(Base):
    """Alumni meetups, webinars and reunions."""

    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=generate_id)
    title = Column(String, nullable=False)
    description = Column(Text)
    event_date = Column(DateTime, nullable=False, index=True)
    location = Column(String)
    capacity = Column(Integer, default=0)
    registration_count = Column(Integer, default=0, nullable=False)
    image_url = Column(String)
    created_by = Column(String(36), ForeignKey("auth_users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)


class EventRegistration(Base):
    """One user's registration for one event."""

    __tablename__ = "event_registrations"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_registration"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("auth_users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
