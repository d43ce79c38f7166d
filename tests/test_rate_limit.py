"""Rate limiting tests — login/register get the stricter bucket.

Learn: Redis is replaced by a tiny in-process counter patched in where
the middleware looks it up. The counter ignores the minute suffix of the
key so a test never straddles two windows.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from authcore.config import settings
from authcore.middleware import rate_limit

API = "/api/v1"


class FakeCounter:
    def __init__(self):
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        bucket = key.rsplit(":", 1)[0]
        self.counts[bucket] = self.counts.get(bucket, 0) + 1
        return self.counts[bucket]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True


class BrokenRedis:
    async def incr(self, key: str) -> int:
        raise RedisConnectionError("connection refused")

    async def expire(self, key: str, seconds: int) -> bool:
        raise RedisConnectionError("connection refused")


@pytest.fixture()
def counter(monkeypatch):
    fake = FakeCounter()
    monkeypatch.setattr(rate_limit, "get_redis", lambda: fake)
    return fake


async def _login(client):
    return await client.post(
        f"{API}/auth/login", json={"email": "nobody@x.com", "password": "pw"}
    )


@pytest.mark.asyncio
async def test_login_limited_after_auth_rpm(client, counter):
    limit = settings.rate_limit_auth_rpm
    for i in range(limit):
        r = await _login(client)
        assert r.status_code == 401
        assert r.headers["X-RateLimit-Limit"] == str(limit)
        assert r.headers["X-RateLimit-Remaining"] == str(limit - i - 1)

    r = await _login(client)
    assert r.status_code == 429
    assert r.headers["Retry-After"] == "60"
    assert r.json()["detail"].startswith("Rate limit exceeded")


@pytest.mark.asyncio
async def test_auth_bucket_does_not_starve_other_routes(client, counter):
    for _ in range(settings.rate_limit_auth_rpm + 1):
        await _login(client)

    r = await client.get(f"{API}/health")
    assert r.status_code == 200
    assert r.headers["X-RateLimit-Limit"] == str(settings.rate_limit_rpm)


@pytest.mark.asyncio
async def test_register_shares_the_auth_bucket(client, counter):
    for _ in range(settings.rate_limit_auth_rpm):
        await _login(client)

    r = await client.post(
        f"{API}/auth/register",
        json={"username": "late", "email": "late@x.com", "password": "pw", "role": "VISITOR"},
    )
    assert r.status_code == 429


@pytest.mark.asyncio
async def test_window_key_gets_a_ttl(client, counter):
    await client.get(f"{API}/health")
    assert list(counter.ttls.values()) == [120]


@pytest.mark.asyncio
async def test_redis_error_lets_request_through(client, monkeypatch):
    monkeypatch.setattr(rate_limit, "get_redis", lambda: BrokenRedis())

    r = await _login(client)
    assert r.status_code == 401
    assert "X-RateLimit-Limit" not in r.headers
