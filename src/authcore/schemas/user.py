"""Pydantic schemas for user profiles, plus explicit record ↔ DTO mapping.

Learn: Nothing is copied between request bodies and ORM rows implicitly.
to_profile() builds the outbound DTO field by field, and the apply_*()
functions copy only the fields each endpoint is allowed to touch.
Self-service updates can change profile fields only; the admin update can
also change username, email, role and enabled.
"""

from typing import Optional

from pydantic import BaseModel, Field

from authcore.auth.context import Role
from authcore.db.models import User
from authcore.errors import ErrorKind

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PROFILE_FIELDS = ("full_name", "phone_number", "city", "profile_picture_url")


class UserProfile(BaseModel):
    id: int
    username: str
    email: str
    role: str
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    city: Optional[str] = None
    profile_picture_url: Optional[str] = None
    enabled: bool


class UpdateProfileRequest(BaseModel):
    """Self-service profile update. Omitted/None fields stay unchanged."""

    full_name: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    profile_picture_url: Optional[str] = None


class UpdateUserRequest(UpdateProfileRequest):
    """Admin update of any user."""

    username: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[str] = Field(
        None, min_length=3, max_length=100, pattern=EMAIL_PATTERN
    )
    role: Optional[str] = None
    enabled: Optional[bool] = None


def to_profile(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        username=user.username,
        email=user.email,
        role=Role(user.role).value,
        full_name=user.full_name,
        phone_number=user.phone_number,
        city=user.city,
        profile_picture_url=user.profile_picture_url,
        enabled=user.enabled,
    )


def apply_profile_update(user: User, body: UpdateProfileRequest) -> None:
    for field in PROFILE_FIELDS:
        value = getattr(body, field)
        if value is not None:
            setattr(user, field, value)


def apply_user_update(user: User, body: UpdateUserRequest) -> Optional[ErrorKind]:
    """Copy admin-editable fields onto `user`. Returns INVALID_ROLE on a bad role."""
    if body.role is not None:
        role = Role.parse(body.role)
        if role is None:
            return ErrorKind.INVALID_ROLE
        user.role = role

    apply_profile_update(user, body)
    if body.username is not None:
        user.username = body.username
    if body.email is not None:
        user.email = body.email
    if body.enabled is not None:
        user.enabled = body.enabled
    return None
