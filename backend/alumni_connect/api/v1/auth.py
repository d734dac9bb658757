"""
Authentication API endpoints.

Handles identity sign-up, password sign-in, sign-out (token revocation) and
current-session lookup. Profiles are separate rows created by the client
through the table endpoints.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, ConfigDict, field_validator
import logging
import re
from sqlalchemy.orm import Session

from alumni_connect.core.config import settings
from alumni_connect.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from alumni_connect.db.session import get_db
from alumni_connect.models import AuthUser, Profile, RevokedToken

logger = logging.getLogger(__name__)

router = APIRouter()

# OAuth2 scheme for token authentication; anonymous requests are allowed
# through and rejected by the dependencies that need an identity
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

EMAIL_PATTERN = r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$"


# ============== Pydantic Schemas ==============


class SignUpRequest(BaseModel):
    """Schema for identity sign-up."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Validate email format."""
        if not re.match(EMAIL_PATTERN, v):
            raise ValueError("Invalid email format")
        return v.lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password should be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        return v


class IdentityResponse(BaseModel):
    """Schema for an identity (without password)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    created_at: Optional[datetime] = None


class SessionResponse(BaseModel):
    """Schema for an issued session."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: IdentityResponse


# ============== Helper Functions ==============


def _error(code: str, message: str) -> dict:
    return {"code": code, "message": message}


def _credentials_exception(message: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=_error("invalid_token", message),
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_user_by_email(db: Session, email: str) -> Optional[AuthUser]:
    """Get an identity by email address."""
    return db.query(AuthUser).filter(AuthUser.email == email.lower()).first()


def authenticate_user(db: Session, email: str, password: str) -> Optional[AuthUser]:
    """Authenticate an identity by email and password."""
    user = get_user_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def issue_session(user: AuthUser) -> SessionResponse:
    access_token = create_access_token(data={"sub": user.id, "email": user.email})
    return SessionResponse(
        access_token=access_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=IdentityResponse.model_validate(user),
    )


def resolve_token(token: str, db: Session) -> tuple[AuthUser, dict]:
    """Validate a bearer token and return its identity and payload."""
    payload = decode_access_token(token)
    if payload is None:
        raise _credentials_exception("Invalid or expired token")

    user_id = payload.get("sub")
    jti = payload.get("jti")
    if user_id is None or jti is None:
        raise _credentials_exception()

    if db.get(RevokedToken, jti) is not None:
        raise _credentials_exception("Session has been signed out")

    user = db.get(AuthUser, user_id)
    if user is None:
        raise _credentials_exception("User not found")

    return user, payload


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> AuthUser:
    """
    Dependency to get the current identity from the JWT token.

    Raises HTTPException if the token is missing, invalid, expired or revoked.
    """
    if token is None:
        raise _credentials_exception("Not authenticated")
    user, _ = resolve_token(token, db)
    return user


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[AuthUser]:
    """Like get_current_user, but anonymous requests yield None."""
    if token is None:
        return None
    user, _ = resolve_token(token, db)
    return user


# ============== API Endpoints ==============


@router.post("/signup", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def signup(user_data: SignUpRequest, db: Session = Depends(get_db)):
    """
    Create a new identity and sign it in.

    The caller is expected to create the matching profile row next.
    """
    if get_user_by_email(db, user_data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error("user_already_exists", "User already registered"),
        )

    new_user = AuthUser(
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info("Identity created for %s", new_user.email)
    return issue_session(new_user)


@router.post("/login", response_model=SessionResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """
    Login and get a JWT access token.

    Uses OAuth2 password flow. Send username (email) and password
    as form data.
    """
    user = authenticate_user(db, form_data.username, form_data.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_error("invalid_grant", "Invalid login credentials"),
            headers={"WWW-Authenticate": "Bearer"},
        )

    return issue_session(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
):
    """Revoke the presented access token."""
    if token is None:
        raise _credentials_exception("Not authenticated")
    user, payload = resolve_token(token, db)

    db.add(RevokedToken(jti=payload["jti"], user_id=user.id))
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/user", response_model=IdentityResponse)
async def get_user(current_user: AuthUser = Depends(get_current_user)):
    """Return the identity behind a still-valid session token."""
    return current_user


@router.delete("/user", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
):
    """Delete the calling identity (and its profile, if any) and revoke the token."""
    if token is None:
        raise _credentials_exception("Not authenticated")
    user, payload = resolve_token(token, db)

    db.query(Profile).filter(Profile.user_id == user.id).delete(synchronize_session=False)
    db.add(RevokedToken(jti=payload["jti"], user_id=user.id))
    db.delete(user)
    db.commit()

    logger.info("Identity %s deleted", user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
