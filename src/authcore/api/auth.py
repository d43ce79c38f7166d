"""Auth API — registration, email verification, login, token validation.

Learn: Every route here is public (on the auth gate's allow-list):
- POST /auth/register → disabled user + verification email
- GET  /auth/verify   → consume the emailed token, redirect to the frontend
- POST /auth/resend-verification → replace an unverified account's token
- POST /auth/login    → email/password → session token (24h)
- GET  /auth/validate → check a token from the Authorization header
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.api.errors import raise_for
from authcore.auth.dependencies import get_token_service
from authcore.auth.jwt import TokenService
from authcore.config import settings
from authcore.db.engine import get_db
from authcore.errors import ErrorKind
from authcore.middleware.auth_gate import parse_bearer
from authcore.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    ResendVerificationRequest,
    TokenResponse,
    ValidateResponse,
)
from authcore.schemas.user import to_profile
from authcore.services.identity_service import IdentityService
from authcore.services.mailer import Mailer, get_mailer

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")

LOGIN_FAILED = "Invalid credentials or inactive account."


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Create a disabled account and email its verification link."""
    result = await IdentityService(db).register(
        username=body.username,
        email=body.email,
        password=body.password,
        role=body.role,
        allow_admin=settings.allow_admin_registration,
    )
    if result is ErrorKind.FORBIDDEN:
        raise_for(result, "Self-registration as ADMIN is not allowed")
    if isinstance(result, ErrorKind):
        raise_for(result)

    user = result.user
    if not await mailer.send_verification_email(user.email, result.verification_token):
        logger.warning("registration.verification_email_failed", user_id=user.id)

    return RegisterResponse(
        message=(
            f"The {user.role.value.lower()} account has been created. "
            "Verify your email to activate it."
        ),
        user=to_profile(user),
    )


# ─── Verify email ────────────────────────────────────────


@router.get("/verify")
async def verify_email(
    token: str = Query(""),
    db: AsyncSession = Depends(get_db),
):
    """Consume a verification token and redirect to the frontend."""
    result = await IdentityService(db).verification.consume(token)
    outcome = "failed" if isinstance(result, ErrorKind) else "success"
    return RedirectResponse(
        url=f"{settings.frontend_url.rstrip('/')}/verified?status={outcome}",
        status_code=302,
    )


# ─── Resend verification ───────────────────────────────

RESEND_ACCEPTED = (
    "If the account exists and is not yet verified, a new link has been sent."
)


@router.post("/resend-verification", status_code=202)
async def resend_verification(
    body: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Email a fresh verification link. The response never says whether it did."""
    result = await IdentityService(db).resend_verification(body.email)
    if isinstance(result, ErrorKind):
        logger.info("registration.resend_skipped", email=body.email)
    elif not await mailer.send_verification_email(body.email, result):
        logger.warning("registration.verification_email_failed", email=body.email)
    return {"message": RESEND_ACCEPTED}


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Login with email and password → session token."""
    result = await IdentityService(db).authenticate(body.email, body.password)
    if isinstance(result, ErrorKind):
        logger.info("auth.login_failed", email=body.email, reason=result.value)
        raise_for(ErrorKind.UNAUTHENTICATED, LOGIN_FAILED)

    now = datetime.now(timezone.utc).replace(microsecond=0)
    access_token = tokens.issue(result.email, result.role, now=now)
    logger.info("auth.login", user_id=result.id, role=result.role.value)
    return TokenResponse(access_token=access_token, expires_at=now + tokens.lifetime)


# ─── Validate ────────────────────────────────────────────


@router.get("/validate", response_model=ValidateResponse)
async def validate(
    authorization: Optional[str] = Header(None),
    tokens: TokenService = Depends(get_token_service),
):
    """Report whether the bearer token in the Authorization header is valid."""
    token = parse_bearer(authorization)
    if token is None:
        return _invalid("Missing or invalid Authorization header")

    claims = tokens.verify(token)
    if isinstance(claims, ErrorKind):
        return _invalid("Invalid or expired token")

    return ValidateResponse(
        valid=True,
        email=claims.subject,
        role=claims.role.value,
        expires_at=claims.expires_at,
    )


def _invalid(error: str) -> JSONResponse:
    body = ValidateResponse(valid=False, error=error)
    return JSONResponse(
        status_code=401,
        content=body.model_dump(mode="json", exclude_none=True),
        headers={"WWW-Authenticate": "Bearer"},
    )
