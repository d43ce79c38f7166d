"""Roles and the per-request identity context."""

import enum
from dataclasses import dataclass
from typing import Optional


class Role(str, enum.Enum):
    """Closed set of roles. Flat: ADMIN does not imply PROPOSER."""

    VISITOR = "VISITOR"
    PROPOSER = "PROPOSER"
    ADMIN = "ADMIN"

    @classmethod
    def parse(cls, value: str) -> Optional["Role"]:
        """Case-insensitive lookup; None for anything outside the set."""
        try:
            return cls(value.strip().upper())
        except (ValueError, AttributeError):
            return None


@dataclass(frozen=True)
class IdentityContext:
    """Who is making the current request.

    Learn: Derived from a verified session token and attached to
    request.state by the auth gate. It lives exactly as long as the
    request and is handed to handlers as an explicit parameter.
    """

    subject: str  # email
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN
