"""Role-based access control.

Learn: The auth gate answers "who is calling?"; this module answers
"may they do this?". Two requirement kinds exist:

- AUTHENTICATED: any verified identity
- ADMIN:         role == ADMIN exactly (no hierarchy)

authorize() is a pure decision function. require() wraps it as a FastAPI
dependency that turns the decision into 401/403 before the handler body
runs, so an admin route never reaches its lookup for a non-admin caller,
and a non-admin can never learn whether a given user id exists.
"""

import enum
from typing import Callable, Optional

import structlog
from fastapi import Depends, HTTPException, status

from authcore.auth.context import IdentityContext, Role
from authcore.auth.dependencies import get_identity

logger = structlog.get_logger()


class Requirement(str, enum.Enum):
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"


class Decision(str, enum.Enum):
    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"
    UNAUTHENTICATED = "unauthenticated"


def authorize(
    context: Optional[IdentityContext], requirement: Requirement
) -> Decision:
    """Decide whether `context` satisfies `requirement`."""
    if context is None:
        return Decision.UNAUTHENTICATED
    if requirement is Requirement.ADMIN and context.role is not Role.ADMIN:
        return Decision.FORBIDDEN
    return Decision.ALLOWED


def require(requirement: Requirement) -> Callable[..., IdentityContext]:
    """Dependency factory enforcing `requirement` on a route.

    Usage:
        @router.get("/users")
        async def list_users(identity: IdentityContext = Depends(require(Requirement.ADMIN))):
    """

    async def checker(
        identity: Optional[IdentityContext] = Depends(get_identity),
    ) -> IdentityContext:
        decision = authorize(identity, requirement)
        if decision is Decision.UNAUTHENTICATED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if decision is Decision.FORBIDDEN:
            logger.info(
                "policy.forbidden",
                subject=identity.subject,
                role=identity.role.value,
                requirement=requirement.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Admin role required.",
            )
        return identity

    return checker


require_authenticated = require(Requirement.AUTHENTICATED)
require_admin = require(Requirement.ADMIN)
