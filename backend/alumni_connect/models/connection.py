from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint

from alumni_connect.db.base import Base, generate_id


class ConnectionRequest(Base):
    """Networking request between two users."""

    __tablename__ = "connection_requests"
    __table_args__ = (UniqueConstraint("sender_id", "receiver_id", name="uq_connection_request"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    sender_id = Column(String(36), ForeignKey("auth_users.id"), nullable=False, index=True)
    receiver_id = Column(String(36), ForeignKey("auth_users.id"), nullable=False, index=True)
    status = Column(String, default="pending", nullable=False)  # 'pending' | 'accepted' | 'rejected'
    created_at = Column(DateTime, default=datetime.utcnow)
