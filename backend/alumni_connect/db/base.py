import uuid

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_id() -> str:
    """Primary keys are opaque UUID strings, as issued by the hosted service."""
    return str(uuid.uuid4())
