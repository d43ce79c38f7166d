"""Error kinds returned by the token components and services.

Learn: Expected failures (duplicate email, expired token, wrong role...)
are *returned* as an ErrorKind rather than raised. Callers check the
result with isinstance() and decide what to do. The API layer turns
kinds into HTTP responses in exactly one place (api/errors.py).
Exceptions are kept for things that really are unexpected.
"""

import enum


class ErrorKind(str, enum.Enum):
    DUPLICATE_IDENTITY = "duplicate_identity"
    INVALID_ROLE = "invalid_role"
    UNAUTHENTICATED = "unauthenticated"
    ACCOUNT_DISABLED = "account_disabled"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_MALFORMED = "token_malformed"
    TOKEN_SIGNATURE_INVALID = "token_signature_invalid"
