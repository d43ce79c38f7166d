"""Authentication gate tests.

Learn: The gate is exercised two ways — on a tiny FastAPI app that just
echoes the attached identity (so we can see exactly what a handler
receives), and against the real app's allow-list.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from authcore.auth.context import Role
from authcore.auth.dependencies import get_identity
from authcore.auth.jwt import TokenService
from authcore.middleware.auth_gate import AuthenticationGate, parse_bearer

API = "/api/v1"
SECRET = "gate-test-secret-0123456789abcdef0123456789"


@pytest.fixture()
def tokens():
    return TokenService(SECRET)


@pytest_asyncio.fixture()
async def echo_client(tokens):
    app = FastAPI()
    app.add_middleware(
        AuthenticationGate,
        token_service=tokens,
        public_paths=["/open", "/open/*"],
    )

    @app.get("/open")
    async def open_route(identity=Depends(get_identity)):
        return {"identity": None if identity is None else identity.subject}

    @app.get("/whoami")
    async def whoami(identity=Depends(get_identity)):
        return {"subject": identity.subject, "role": identity.role.value}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


# ═══════════════════════════════════════════════════════════
# Header parsing and allow-list matching
# ═══════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("Bearer   abc", "abc"),
        (None, None),
        ("", None),
        ("Bearer", None),
        ("Bearer ", None),
        ("bearer abc", None),
        ("Basic dXNlcjpwdw==", None),
        ("Bearer abc def", None),
    ],
)
def test_parse_bearer(header, expected):
    assert parse_bearer(header) == expected


def test_is_public_patterns(tokens):
    gate = AuthenticationGate(
        FastAPI(), token_service=tokens, public_paths=[f"{API}/auth/*", f"{API}/health"]
    )
    assert gate.is_public(f"{API}/auth/login")
    assert gate.is_public(f"{API}/auth/verify")
    assert gate.is_public(f"{API}/health")
    assert not gate.is_public(f"{API}/users")
    assert not gate.is_public(f"{API}/health/extra")
    assert not gate.is_public("/auth/login")


# ═══════════════════════════════════════════════════════════
# Dispatch
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_public_path_needs_no_token(echo_client):
    r = await echo_client.get("/open")
    assert r.status_code == 200
    assert r.json() == {"identity": None}


@pytest.mark.asyncio
async def test_public_path_ignores_bad_token(echo_client):
    r = await echo_client.get("/open", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_missing_token_is_401(echo_client):
    r = await echo_client.get("/whoami")
    assert r.status_code == 401
    assert r.json() == {"detail": "Not authenticated"}
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_non_bearer_scheme_is_401(echo_client):
    r = await echo_client.get("/whoami", headers={"Authorization": "Basic dXNlcjpwdw=="})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_valid_token_attaches_identity(echo_client, tokens):
    token = tokens.issue("alice@x.com", Role.PROPOSER)
    r = await echo_client.get("/whoami", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json() == {"subject": "alice@x.com", "role": "PROPOSER"}


@pytest.mark.asyncio
async def test_expired_token_is_401(echo_client, tokens):
    stale = datetime.now(timezone.utc) - timedelta(hours=25)
    token = tokens.issue("alice@x.com", Role.ADMIN, now=stale)
    r = await echo_client.get("/whoami", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_token_from_other_secret_is_401(echo_client):
    forged = TokenService("some-other-secret-0123456789abcdef012345").issue(
        "mallory@x.com", Role.ADMIN
    )
    r = await echo_client.get("/whoami", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_rejections_share_one_body(echo_client, tokens):
    """Missing, malformed and expired tokens are indistinguishable to the caller."""
    stale = tokens.issue("a@x.com", Role.VISITOR, now=datetime(2000, 1, 1, tzinfo=timezone.utc))
    bodies = []
    for headers in ({}, {"Authorization": "Bearer x.y.z"}, {"Authorization": f"Bearer {stale}"}):
        r = await echo_client.get("/whoami", headers=headers)
        assert r.status_code == 401
        bodies.append(r.json())
    assert bodies[0] == bodies[1] == bodies[2]


@pytest.mark.asyncio
async def test_identity_does_not_leak_between_requests(echo_client, tokens):
    token = tokens.issue("alice@x.com", Role.ADMIN)
    r = await echo_client.get("/whoami", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200

    r = await echo_client.get("/open")
    assert r.json() == {"identity": None}


# ═══════════════════════════════════════════════════════════
# Real app allow-list
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_app_health_is_public(client):
    r = await client.get(f"{API}/health")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_app_profile_requires_token(client):
    r = await client.get(f"{API}/users/profile")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_app_unknown_protected_path_is_401_not_404(client):
    r = await client.get(f"{API}/nothing-here")
    assert r.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/users/profile", "/users", "/nothing-here"])
async def test_app_bare_options_needs_token(client, path):
    """OPTIONS without CORS preflight headers is an ordinary protected request."""
    r = await client.options(f"{API}{path}")
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_bare_options_on_gate_only_app(echo_client):
    r = await echo_client.options("/whoami")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_app_redoc_subpaths_are_public(client):
    r = await client.get("/redoc/static/anything")
    assert r.status_code == 404
