from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint

from alumni_connect.db.base import Base, generate_id


class Job(Base):
    """Job or internship posted by an alumnus."""

    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=generate_id)
    title = Column(String, nullable=False)
    company = Column(String, nullable=False)
    description = Column(Text)
    type = Column(String, default="job", nullable=False)  # 'job' | 'internship'
    location = Column(String)
    salary_range = Column(String)
    requirements = Column(Text)
    posted_by = Column(String(36), ForeignKey("auth_users.id"), index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class JobApplication(Base):
    """An application by one user to one job."""

    __tablename__ = "job_applications"
    __table_args__ = (UniqueConstraint("job_id", "applicant_id", name="uq_job_application"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    job_id = Column(String(36), ForeignKey("jobs.id"), nullable=False, index=True)
    applicant_id = Column(String(36), ForeignKey("auth_users.id"), nullable=False, index=True)
    status = Column(String, default="pending", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
