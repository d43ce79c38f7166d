"""Identity service — registration, login, profiles, admin user management.

Learn: Service layer separates business logic from HTTP routing.
API routes call services, services call the database. Expected failures
come back as ErrorKind values (see errors.py) rather than exceptions.

Uniqueness of username/email is decided by the database, not by a
"SELECT then INSERT" check: two concurrent registrations for the same
email both try to insert, the unique constraint lets exactly one commit,
and the other's IntegrityError becomes DUPLICATE_IDENTITY.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Union

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.auth.context import Role
from authcore.auth.password import burn_password_check, hash_password, verify_password
from authcore.auth.verification import VerificationTokenManager
from authcore.config import settings
from authcore.db.models import User, VerificationToken
from authcore.errors import ErrorKind
from authcore.schemas.user import (
    UpdateProfileRequest,
    UpdateUserRequest,
    apply_profile_update,
    apply_user_update,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class Registration:
    user: User
    verification_token: str


class IdentityService:
    """Business logic for user identities."""

    def __init__(
        self,
        db: AsyncSession,
        verification: Optional[VerificationTokenManager] = None,
    ):
        self.db = db
        self.verification = verification or VerificationTokenManager(
            db,
            lifetime=timedelta(hours=settings.verification_token_expire_hours),
        )

    # ─── Registration ──────────────────────────────────

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        role: str,
        allow_admin: bool = False,
    ) -> Union[Registration, ErrorKind]:
        """Create a disabled user and its verification token in one transaction."""
        parsed = Role.parse(role)
        if parsed is None:
            return ErrorKind.INVALID_ROLE
        if parsed is Role.ADMIN and not allow_admin:
            logger.warning("registration.admin_refused", email=email)
            return ErrorKind.FORBIDDEN

        password_hash = await asyncio.to_thread(hash_password, password)
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            enabled=False,
            role=parsed,
        )
        self.db.add(user)
        try:
            await self.db.flush()
            token = await self.verification.create(user.id)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info("registration.duplicate", email=email, username=username)
            return ErrorKind.DUPLICATE_IDENTITY

        logger.info("registration.created", user_id=user.id, role=parsed.value)
        return Registration(user=user, verification_token=token)

    async def create_enabled_user(
        self, username: str, email: str, password: str, role: Role
    ) -> Union[User, ErrorKind]:
        """Insert an already-verified user (operator bootstrap, no email flow)."""
        user = User(
            username=username,
            email=email,
            password_hash=await asyncio.to_thread(hash_password, password),
            enabled=True,
            role=role,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return ErrorKind.DUPLICATE_IDENTITY
        return user

    async def resend_verification(self, email: str) -> Union[str, ErrorKind]:
        """Issue a fresh verification token for an unverified account.

        Replaces any live token, so an account whose token expired (and was
        deleted on the failed attempt) can still be activated.
        """
        user = await self._by_email(email)
        if user is None or user.enabled:
            return ErrorKind.NOT_FOUND
        user_id = user.id
        token = await self.verification.create(user_id)
        await self.db.commit()
        logger.info("registration.verification_resent", user_id=user_id)
        return token

    # ─── Login ─────────────────────────────────────────

    async def authenticate(self, email: str, password: str) -> Union[User, ErrorKind]:
        """Check credentials. Disabled accounts never authenticate."""
        user = await self._by_email(email)
        if user is None:
            await asyncio.to_thread(burn_password_check, password)
            return ErrorKind.UNAUTHENTICATED

        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            return ErrorKind.UNAUTHENTICATED
        if not user.enabled:
            return ErrorKind.ACCOUNT_DISABLED
        return user

    # ─── Self-service ──────────────────────────────────

    async def get_profile(self, email: str) -> Union[User, ErrorKind]:
        user = await self._by_email(email)
        return user if user is not None else ErrorKind.NOT_FOUND

    async def update_profile(
        self, email: str, body: UpdateProfileRequest
    ) -> Union[User, ErrorKind]:
        user = await self._by_email(email)
        if user is None:
            return ErrorKind.NOT_FOUND
        apply_profile_update(user, body)
        await self.db.commit()
        return user

    # ─── Admin ─────────────────────────────────────────

    async def list_users(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.id))
        return list(result.scalars().all())

    async def list_by_role(self, role: str) -> Union[list[User], ErrorKind]:
        parsed = Role.parse(role)
        if parsed is None:
            return ErrorKind.INVALID_ROLE
        result = await self.db.execute(
            select(User).where(User.role == parsed).order_by(User.id)
        )
        return list(result.scalars().all())

    async def get_user(self, user_id: int) -> Union[User, ErrorKind]:
        user = await self.db.get(User, user_id)
        return user if user is not None else ErrorKind.NOT_FOUND

    async def update_user(
        self, user_id: int, body: UpdateUserRequest
    ) -> Union[User, ErrorKind]:
        user = await self.db.get(User, user_id)
        if user is None:
            return ErrorKind.NOT_FOUND

        error = apply_user_update(user, body)
        if error is not None:
            return error
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return ErrorKind.DUPLICATE_IDENTITY

        logger.info("admin.user_updated", user_id=user_id)
        return user

    async def delete_user(self, user_id: int) -> Optional[ErrorKind]:
        """Delete a user and its verification token."""
        user = await self.db.get(User, user_id)
        if user is None:
            return ErrorKind.NOT_FOUND

        await self.db.execute(
            delete(VerificationToken)
            .where(VerificationToken.identity_id == user_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.delete(user)
        await self.db.commit()
        logger.info("admin.user_deleted", user_id=user_id)
        return None

    # ─── Helpers ───────────────────────────────────────

    async def _by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()
