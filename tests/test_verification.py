"""Verification token lifecycle tests.

Learn: Covers the single-use state machine directly against the store:
create → consume enables the user and deletes the token; replay and
unknown tokens are NOT_FOUND; expiry is exclusive (consuming exactly at
expires_at fails); creating a new token replaces the old one.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from authcore.auth.context import Role
from authcore.auth.verification import VerificationTokenManager
from authcore.db.models import User, VerificationToken
from authcore.errors import ErrorKind

T0 = datetime(2026, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


async def _make_user(db, email="bob@x.com") -> User:
    user = User(
        username=email.split("@")[0],
        email=email,
        password_hash="$2b$04$notarealhashnotarealhashnotarealhashnotarealhashnot",
        enabled=False,
        role=Role.VISITOR,
    )
    db.add(user)
    await db.commit()
    return user


async def _token_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(VerificationToken))).scalar_one()


async def _enabled(db, user_id: int) -> bool:
    result = await db.execute(select(User.enabled).where(User.id == user_id))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_create_stores_random_token_with_24h_expiry(db_session):
    user = await _make_user(db_session)
    manager = VerificationTokenManager(db_session)

    token = await manager.create(user.id, now=T0)
    await db_session.commit()

    row = (await db_session.execute(select(VerificationToken))).scalar_one()
    assert row.token == token
    assert row.identity_id == user.id
    expires = row.expires_at.replace(tzinfo=row.expires_at.tzinfo or timezone.utc)
    assert expires == T0 + timedelta(hours=24)
    # 32 random bytes, base64url without padding
    assert len(token) >= 43


@pytest.mark.asyncio
async def test_tokens_are_unique(db_session):
    a = await _make_user(db_session, "a@x.com")
    b = await _make_user(db_session, "b@x.com")
    manager = VerificationTokenManager(db_session)

    ta = await manager.create(a.id)
    tb = await manager.create(b.id)
    assert ta != tb


@pytest.mark.asyncio
async def test_consume_enables_user_and_deletes_token(db_session):
    user = await _make_user(db_session)
    manager = VerificationTokenManager(db_session)
    token = await manager.create(user.id, now=T0)
    await db_session.commit()

    result = await manager.consume(token, now=T0 + timedelta(hours=1))

    assert result == user.id
    assert await _enabled(db_session, user.id) is True
    assert await _token_count(db_session) == 0


@pytest.mark.asyncio
async def test_replay_is_not_found(db_session):
    user = await _make_user(db_session)
    manager = VerificationTokenManager(db_session)
    token = await manager.create(user.id, now=T0)
    await db_session.commit()

    assert await manager.consume(token, now=T0) == user.id
    assert await manager.consume(token, now=T0) is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_unknown_and_empty_tokens(db_session):
    manager = VerificationTokenManager(db_session)
    assert await manager.consume("does-not-exist") is ErrorKind.NOT_FOUND
    assert await manager.consume("") is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_consume_exactly_at_expiry_is_rejected(db_session):
    user = await _make_user(db_session)
    manager = VerificationTokenManager(db_session)
    token = await manager.create(user.id, now=T0)
    await db_session.commit()

    result = await manager.consume(token, now=T0 + timedelta(hours=24))

    assert result is ErrorKind.TOKEN_EXPIRED
    assert await _enabled(db_session, user.id) is False


@pytest.mark.asyncio
async def test_consume_one_second_before_expiry_succeeds(db_session):
    user = await _make_user(db_session)
    manager = VerificationTokenManager(db_session)
    token = await manager.create(user.id, now=T0)
    await db_session.commit()

    result = await manager.consume(token, now=T0 + timedelta(hours=24) - timedelta(seconds=1))
    assert result == user.id


@pytest.mark.asyncio
async def test_expired_token_is_removed(db_session):
    user = await _make_user(db_session)
    manager = VerificationTokenManager(db_session)
    token = await manager.create(user.id, now=T0)
    await db_session.commit()

    assert await manager.consume(token, now=T0 + timedelta(days=2)) is ErrorKind.TOKEN_EXPIRED
    assert await _token_count(db_session) == 0
    assert await manager.consume(token, now=T0) is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_new_token_replaces_previous(db_session):
    user = await _make_user(db_session)
    manager = VerificationTokenManager(db_session)
    first = await manager.create(user.id, now=T0)
    await db_session.commit()
    second = await manager.create(user.id, now=T0 + timedelta(minutes=1))
    await db_session.commit()

    assert await _token_count(db_session) == 1
    assert await manager.consume(first, now=T0) is ErrorKind.NOT_FOUND
    assert await manager.consume(second, now=T0 + timedelta(minutes=2)) == user.id


@pytest.mark.asyncio
async def test_custom_lifetime(db_session):
    user = await _make_user(db_session)
    manager = VerificationTokenManager(db_session, lifetime=timedelta(minutes=15))
    token = await manager.create(user.id, now=T0)
    await db_session.commit()

    assert await manager.consume(token, now=T0 + timedelta(minutes=15)) is ErrorKind.TOKEN_EXPIRED
