"""JWT session token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication. A session
token is `header.payload.signature`, each part base64url-encoded, signed
with HMAC-SHA256 over header+payload using the process-wide secret.

Payload claims:
- sub:  the user's email (stable subject)
- role: VISITOR | PROPOSER | ADMIN
- iat:  issued-at, epoch seconds
- exp:  expiry, epoch seconds (iat + 24h by default)

There is no refresh token and no revocation list. A token is good
until `exp`, and `now >= exp` means expired (no clock-skew leeway).

verify() never raises for a bad token. It returns TokenClaims on success
or one of TOKEN_SIGNATURE_INVALID / TOKEN_MALFORMED / TOKEN_EXPIRED.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import jwt

from authcore.auth.context import Role
from authcore.errors import ErrorKind

REQUIRED_CLAIMS = ["sub", "role", "iat", "exp"]


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified contents of a session token."""

    subject: str
    role: Role
    issued_at: datetime
    expires_at: datetime


def _epoch(value) -> Optional[int]:
    # bool is an int subclass; a JSON `true` is not a timestamp.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


class TokenService:
    """Issues and verifies signed session tokens.

    Learn: Holds only immutable configuration (secret, algorithm, lifetime),
    so a single instance is safe to share across any number of concurrent
    requests. `now` is injectable to make expiry behaviour testable.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        lifetime: timedelta = timedelta(hours=24),
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        if lifetime <= timedelta(0):
            raise ValueError("Token lifetime must be positive")
        self._secret = secret
        self._algorithm = algorithm
        self._lifetime = lifetime

    @classmethod
    def from_settings(cls, settings) -> "TokenService":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            lifetime=timedelta(hours=settings.access_token_expire_hours),
        )

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    def issue(self, subject: str, role: Role, now: Optional[datetime] = None) -> str:
        """Create a signed session token for `subject` with `role`."""
        issued = int((now or datetime.now(timezone.utc)).timestamp())
        payload = {
            "sub": subject,
            "role": Role(role).value,
            "iat": issued,
            "exp": issued + int(self._lifetime.total_seconds()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(
        self, token: str, now: Optional[datetime] = None
    ) -> Union[TokenClaims, ErrorKind]:
        """Check signature, structure, and expiry of a session token."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "require": REQUIRED_CLAIMS,
                    # Expiry is checked below against the injected clock.
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError:
            return ErrorKind.TOKEN_SIGNATURE_INVALID
        except jwt.InvalidTokenError:
            return ErrorKind.TOKEN_MALFORMED

        subject = payload.get("sub")
        role = Role.parse(payload["role"]) if isinstance(payload.get("role"), str) else None
        issued = _epoch(payload.get("iat"))
        expires = _epoch(payload.get("exp"))
        if not isinstance(subject, str) or not subject or role is None:
            return ErrorKind.TOKEN_MALFORMED
        if issued is None or expires is None:
            return ErrorKind.TOKEN_MALFORMED

        current = (now or datetime.now(timezone.utc)).timestamp()
        if current >= expires:
            return ErrorKind.TOKEN_EXPIRED

        return TokenClaims(
            subject=subject,
            role=role,
            issued_at=datetime.fromtimestamp(issued, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires, tz=timezone.utc),
        )
