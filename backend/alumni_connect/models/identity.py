from datetime import datetime

from sqlalchemy import Column, DateTime, String

from alumni_connect.db.base import Base, generate_id


class AuthUser(Base):
    """Authenticated principal (identity) issued on sign-up."""

    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class RevokedToken(Base):
    """Access tokens invalidated by sign-out, keyed by their ``jti`` claim."""

    __tablename__ = "revoked_tokens"

    jti = Column(String, primary_key=True)
    user_id = Column(String(36), index=True)
    revoked_at = Column(DateTime, default=datetime.utcnow)
