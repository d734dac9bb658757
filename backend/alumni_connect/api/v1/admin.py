"""
Admin API endpoints.

Administrative operations that the generic table rules deliberately refuse,
such as changing a user's role after account creation.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from alumni_connect.api.v1.auth import get_current_user
from alumni_connect.core.constants import ACCESS_RULE_VIOLATION, ROLE_ADMIN, ROLE_ALUMNI, ROLES
from alumni_connect.db.session import get_db
from alumni_connect.models import AuthUser, Profile
from alumni_connect.services.query import row_to_dict

logger = logging.getLogger(__name__)

router = APIRouter()


class RoleChange(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in ROLES:
            raise ValueError(f"Role must be one of {', '.join(ROLES)}")
        return v


def _ensure_admin(db: Session, user: AuthUser) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    if profile is None or profile.role != ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": ACCESS_RULE_VIOLATION, "message": "Admin access required"},
        )
    return profile


@router.post("/profiles/{user_id}/role")
async def change_role(
    user_id: str,
    body: RoleChange,
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Change a user's role.

    Approval is reset to the new role's default: alumni need approval
    again, everyone else is implicitly approved.
    """
    _ensure_admin(db, current_user)

    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "PGRST116", "message": "Profile not found"},
        )

    if profile.role != body.role:
        logger.info("Role of %s changed from %s to %s by %s", user_id, profile.role, body.role, current_user.id)
        profile.role = body.role
        profile.is_approved = body.role != ROLE_ALUMNI
        db.commit()

    return row_to_dict(profile)
