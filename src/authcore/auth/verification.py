"""Email verification tokens — single-use, time-boxed account activation.

Learn: Registration creates a user with enabled=False plus one random
token (256 bits from `secrets`). The user proves they own the mailbox by
presenting the token back; that is the only path that flips enabled to
True.

State machine per token:

    created ──consume (now < expires_at)──► deleted, user enabled
       │
       ├──consume (now >= expires_at)─────► deleted, TOKEN_EXPIRED
       └──create() again for same user───► replaced (old one deleted)

An expired token is gone after the failed attempt; the account stays
disabled until IdentityService.resend_verification() issues a new one.

Consumption claims the row with a single DELETE ... RETURNING, so two
concurrent requests with the same token cannot both succeed; the loser
sees NOT_FOUND, exactly like a replay.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import structlog
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.db.models import User, VerificationToken
from authcore.errors import ErrorKind

logger = structlog.get_logger()

TOKEN_BYTES = 32


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class VerificationTokenManager:
    """Create and consume verification tokens against the store."""

    def __init__(
        self,
        db: AsyncSession,
        lifetime: timedelta = timedelta(hours=24),
    ):
        self.db = db
        self.lifetime = lifetime

    async def create(self, identity_id: int, now: Optional[datetime] = None) -> str:
        """Issue a fresh token for a user, replacing any previous one.

        Flushes but does not commit. Registration commits the user and
        the token together.
        """
        now = now or datetime.now(timezone.utc)
        await self.db.execute(
            delete(VerificationToken)
            .where(VerificationToken.identity_id == identity_id)
            .execution_options(synchronize_session=False)
        )

        token = secrets.token_urlsafe(TOKEN_BYTES)
        self.db.add(
            VerificationToken(
                token=token,
                identity_id=identity_id,
                expires_at=now + self.lifetime,
            )
        )
        await self.db.flush()
        logger.info("verification.token_created", identity_id=identity_id)
        return token

    async def consume(
        self, token: str, now: Optional[datetime] = None
    ) -> Union[int, ErrorKind]:
        """Redeem a token. Returns the enabled user's id, or an error kind."""
        if not token:
            return ErrorKind.NOT_FOUND
        now = now or datetime.now(timezone.utc)

        result = await self.db.execute(
            delete(VerificationToken)
            .where(VerificationToken.token == token)
            .returning(VerificationToken.identity_id, VerificationToken.expires_at)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            await self.db.commit()
            logger.info("verification.token_not_found")
            return ErrorKind.NOT_FOUND

        identity_id, expires_at = row
        if now >= _as_utc(expires_at):
            await self.db.commit()
            logger.info("verification.token_expired", identity_id=identity_id)
            return ErrorKind.TOKEN_EXPIRED

        enabled = await self.db.execute(
            update(User)
            .where(User.id == identity_id)
            .values(enabled=True, updated_at=now)
        )
        if enabled.rowcount == 0:
            # User deleted between registration and verification
            await self.db.commit()
            return ErrorKind.NOT_FOUND

        await self.db.commit()
        logger.info("verification.consumed", identity_id=identity_id)
        return identity_id
