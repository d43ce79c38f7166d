"""Authentication gate — every request is public or carries a valid token.

Learn: This middleware runs before any route handler. Paths matching the
static allow-list (register, login, verify, docs, health...) pass straight
through. Everything else must present `Authorization: Bearer <token>`:

1. Header missing or not "Bearer <token>"  → 401
2. TokenService.verify() returns an error   → 401 (same body; callers
   never learn *why* a token was refused)
3. Valid token → IdentityContext on request.state for this request only

Role checks happen later, per route (auth/policy.py). The allow-list is
fixed at construction time and never changes while the process runs.
"""

from fnmatch import fnmatchcase
from typing import Iterable, Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from authcore.auth.context import IdentityContext
from authcore.auth.jwt import TokenService
from authcore.errors import ErrorKind

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer "


def parse_bearer(header: Optional[str]) -> Optional[str]:
    """Extract the token from an Authorization header value, if well-formed."""
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX):].strip()
    if not token or " " in token:
        return None
    return token


def _unauthenticated() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": "Not authenticated"},
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthenticationGate(BaseHTTPMiddleware):
    """Verify bearer tokens on every non-public path."""

    def __init__(
        self,
        app,
        token_service: TokenService,
        public_paths: Iterable[str] = (),
    ):
        super().__init__(app)
        self.token_service = token_service
        self.public_paths = tuple(public_paths)

    def is_public(self, path: str) -> bool:
        return any(fnmatchcase(path, pattern) for pattern in self.public_paths)

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.identity = None

        if self.is_public(request.url.path):
            return await call_next(request)

        token = parse_bearer(request.headers.get("Authorization"))
        if token is None:
            logger.info("auth_gate.missing_token", path=request.url.path)
            return _unauthenticated()

        claims = self.token_service.verify(token)
        if isinstance(claims, ErrorKind):
            logger.info(
                "auth_gate.invalid_token",
                path=request.url.path,
                reason=claims.value,
            )
            return _unauthenticated()

        request.state.identity = IdentityContext(
            subject=claims.subject, role=claims.role
        )
        return await call_next(request)
