"""
AlumniConnect Database Seeder

Creates demo accounts for the reference data service:
- An admin who can approve alumni
- One approved and one pending alumnus
- A student
- Upcoming events and a couple of job postings
"""

import sys
sys.path.insert(0, ".")

from datetime import datetime, timedelta

from alumni_connect.db.session import SessionLocal, engine
from alumni_connect.db.base import Base
from alumni_connect.models import AuthUser, Event, Job, Profile
from alumni_connect.core.security import get_password_hash


def _create_account(db, email, password, full_name, role, **profile_fields):
    user = AuthUser(email=email, hashed_password=get_password_hash(password))
    db.add(user)
    db.flush()  # Get IDs

    profile = Profile(
        user_id=user.id,
        email=email,
        full_name=full_name,
        role=role,
        is_approved=profile_fields.pop("is_approved", role != "alumni"),
        **profile_fields,
    )
    db.add(profile)
    return user


def seed_database():
    """Seed the database with demo data."""

    # Create all tables
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()

    try:
        # Check if already seeded
        existing_admin = db.query(AuthUser).filter(AuthUser.email == "admin@alumniconnect.com").first()
        if existing_admin:
            print("Database already seeded. Skipping...")
            return

        print("Seeding database...")

        # 1. Admin
        admin = _create_account(
            db, "admin@alumniconnect.com", "admin123", "Priya Raman", "admin",
        )

        # 2. Approved alumnus
        alumnus = _create_account(
            db, "arjun.mehta@example.com", "alumni123", "Arjun Mehta", "alumni",
            is_approved=True,
            batch="2020",
            branch="Computer Science",
            profession="Software Engineer",
            company="Acme Cloud",
            location="Bengaluru",
            bio="Backend engineer, happy to mentor final-year students.",
        )

        # 3. Alumnus awaiting approval
        _create_account(
            db, "neha.kapoor@example.com", "alumni123", "Neha Kapoor", "alumni",
            batch="2022",
            branch="Electrical Engineering",
            profession="Design Engineer",
            company="VoltWorks",
        )

        # 4. Student
        _create_account(
            db, "student@example.com", "student123", "Rohan Das", "student",
            batch="2026",
            branch="Mechanical Engineering",
        )

        # 5. Events
        now = datetime.utcnow()
        db.add_all([
            Event(
                title="Annual Alumni Meet",
                description="Reconnect with your batchmates on campus.",
                event_date=now + timedelta(days=30),
                location="Main Auditorium",
                capacity=300,
                created_by=admin.id,
            ),
            Event(
                title="Career Guidance Webinar",
                description="Alumni share how they chose their first job.",
                event_date=now + timedelta(days=10),
                location="Online",
                capacity=500,
                created_by=admin.id,
            ),
        ])

        # 6. Jobs
        db.add_all([
            Job(
                title="Backend Developer",
                company="Acme Cloud",
                description="Build APIs for our storage platform.",
                type="job",
                location="Bengaluru",
                salary_range="12-18 LPA",
                requirements="Python, SQL, 1+ years experience",
                posted_by=alumnus.id,
            ),
            Job(
                title="Summer Intern - Data",
                company="Acme Cloud",
                description="Two-month internship with the analytics team.",
                type="internship",
                location="Remote",
                posted_by=alumnus.id,
            ),
        ])

        db.commit()

        print("Database seeded successfully!")
        print("\nTest Accounts:")
        print("  Admin:   admin@alumniconnect.com / admin123")
        print("  Alumni:  arjun.mehta@example.com / alumni123 (approved)")
        print("  Alumni:  neha.kapoor@example.com / alumni123 (pending)")
        print("  Student: student@example.com / student123")

    except Exception as e:
        db.rollback()
        print(f"Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
