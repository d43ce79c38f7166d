"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers. The auth gate
middleware has already verified the bearer token (or rejected the request)
by the time a handler runs; get_identity just reads the result off
request.state and hands it to the handler as a normal parameter.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Request

from authcore.auth.context import IdentityContext
from authcore.auth.jwt import TokenService
from authcore.config import settings


@lru_cache(maxsize=1)
def get_token_service() -> TokenService:
    """Process-wide TokenService built once from settings."""
    return TokenService.from_settings(settings)


def get_identity(request: Request) -> Optional[IdentityContext]:
    """Identity attached by the auth gate, or None on public routes."""
    return getattr(request.state, "identity", None)
