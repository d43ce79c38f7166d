"""Users API — self-service profile and admin user management.

Learn: Two kinds of routes that must never be confused:
- /users/profile  → the target is *always* the caller, taken from the
                    identity context's subject. No id is accepted.
- /users/{id} ... → admin only. The ADMIN check runs as a dependency
                    before the handler, so a non-admin gets 403 whether
                    or not the id exists.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.api.errors import raise_for
from authcore.auth.context import IdentityContext
from authcore.auth.policy import require_admin, require_authenticated
from authcore.db.engine import get_db
from authcore.errors import ErrorKind
from authcore.schemas.user import (
    UpdateProfileRequest,
    UpdateUserRequest,
    UserProfile,
    to_profile,
)
from authcore.services.identity_service import IdentityService

router = APIRouter(prefix="/users")


# ─── Self-service ───────────────────────────────────────


@router.get("/profile", response_model=UserProfile)
async def get_my_profile(
    identity: IdentityContext = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db),
):
    result = await IdentityService(db).get_profile(identity.subject)
    if isinstance(result, ErrorKind):
        raise_for(result)
    return to_profile(result)


@router.put("/profile", response_model=UserProfile)
async def update_my_profile(
    body: UpdateProfileRequest,
    identity: IdentityContext = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db),
):
    result = await IdentityService(db).update_profile(identity.subject, body)
    if isinstance(result, ErrorKind):
        raise_for(result)
    return to_profile(result)


# ─── Admin ──────────────────────────────────────────────


@router.get("", response_model=list[UserProfile])
async def list_users(
    _admin: IdentityContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users = await IdentityService(db).list_users()
    return [to_profile(u) for u in users]


@router.get("/role/{role}", response_model=list[UserProfile])
async def list_users_by_role(
    role: str,
    _admin: IdentityContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await IdentityService(db).list_by_role(role)
    if isinstance(result, ErrorKind):
        raise_for(result)
    return [to_profile(u) for u in result]


@router.get("/{user_id}", response_model=UserProfile)
async def get_user(
    user_id: int,
    _admin: IdentityContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await IdentityService(db).get_user(user_id)
    if isinstance(result, ErrorKind):
        raise_for(result)
    return to_profile(result)


@router.put("/{user_id}", response_model=UserProfile)
async def update_user(
    user_id: int,
    body: UpdateUserRequest,
    _admin: IdentityContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await IdentityService(db).update_user(user_id, body)
    if isinstance(result, ErrorKind):
        raise_for(result)
    return to_profile(result)


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    _admin: IdentityContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    error = await IdentityService(db).delete_user(user_id)
    if error is not None:
        raise_for(error)
    return {"deleted": True}
