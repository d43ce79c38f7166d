"""API route aggregation.

All routers registered here get mounted in main.py under the API prefix.

Learn: Authentication is not wired per router here. The auth gate
middleware rejects unauthenticated requests for every path outside its
allow-list, and the users router adds per-route role requirements on
top (auth/policy.py).
"""

from fastapi import APIRouter

from authcore.api.auth import router as auth_router
from authcore.api.health import router as health_router
from authcore.api.users import router as users_router
from authcore.config import settings

api_router = APIRouter(prefix=settings.api_prefix)

# Public: on the auth gate allow-list
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected: bearer token required, roles checked per route
api_router.include_router(users_router, tags=["users"])
