"""ErrorKind → HTTP translation, in one place.

Learn: Services return ErrorKind values; routes call raise_for() to turn
them into HTTPExceptions. Every authentication-flavoured failure maps to
the same coarse 401 so responses never reveal *why* a credential failed.
"""

from typing import NoReturn, Optional

from fastapi import HTTPException, status

from authcore.errors import ErrorKind

_STATUS = {
    ErrorKind.DUPLICATE_IDENTITY: (status.HTTP_409_CONFLICT, "Username or email already registered"),
    ErrorKind.INVALID_ROLE: (
        status.HTTP_400_BAD_REQUEST,
        "Invalid role. Possible values: VISITOR, PROPOSER, ADMIN.",
    ),
    ErrorKind.UNAUTHENTICATED: (status.HTTP_401_UNAUTHORIZED, "Not authenticated"),
    ErrorKind.ACCOUNT_DISABLED: (status.HTTP_401_UNAUTHORIZED, "Not authenticated"),
    ErrorKind.FORBIDDEN: (status.HTTP_403_FORBIDDEN, "Access denied"),
    ErrorKind.NOT_FOUND: (status.HTTP_404_NOT_FOUND, "User not found"),
    ErrorKind.TOKEN_EXPIRED: (status.HTTP_401_UNAUTHORIZED, "Not authenticated"),
    ErrorKind.TOKEN_MALFORMED: (status.HTTP_401_UNAUTHORIZED, "Not authenticated"),
    ErrorKind.TOKEN_SIGNATURE_INVALID: (status.HTTP_401_UNAUTHORIZED, "Not authenticated"),
}


def raise_for(kind: ErrorKind, detail: Optional[str] = None) -> NoReturn:
    status_code, default_detail = _STATUS[kind]
    headers = (
        {"WWW-Authenticate": "Bearer"}
        if status_code == status.HTTP_401_UNAUTHORIZED
        else None
    )
    raise HTTPException(
        status_code=status_code,
        detail=detail or default_detail,
        headers=headers,
    )
