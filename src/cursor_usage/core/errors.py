# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Error types for credential extraction and the usage API.

Two families exist:
- CredentialError: raised once at startup while reading the local store.
  Fatal for the process run; the user has to log in again and restart.
- UsageAPIError: raised per refresh attempt (HTTP status, transport, decode).
  Transient; the next periodic refresh retries.
"""

from typing import Optional


def mask_credential(value: str, keep: int = 4) -> str:
    """
    Mask a token or identifier for safe logging.

    Examples:
        "user_01JWV7FARDJPMQ5QZSANMJDS9A" -> "user...DS9A"
        "short" -> "*****"
    """
    if not value:
        return ""
    if len(value) <= keep * 2:
        return "*" * len(value)
    return f"{value[:keep]}...{value[-keep:]}"


class CursorUsageError(Exception):
    """Base class for all library errors."""


# =============================================================================
# CREDENTIAL ERRORS
# =============================================================================


class CredentialError(CursorUsageError):
    """The local store could not yield a usable credential."""


class StoreNotFoundError(CredentialError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Cursor database not found at: {path}")


class StoreOpenError(CredentialError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Cannot open database: {message}")


class QueryFailedError(CredentialError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Query failed: {message}")


class TokenNotFoundError(CredentialError):
    def __init__(self):
        super().__init__("No auth token found in Cursor database. Are you logged in?")


class InvalidTokenError(CredentialError):
    def __init__(self):
        super().__init__("Auth token is not a valid JWT")


class MissingIdentityClaimError(CredentialError):
    def __init__(self, claim: str = "sub"):
        self.claim = claim
        super().__init__(f"JWT missing '{claim}' claim")


# =============================================================================
# API ERRORS
# =============================================================================


class UsageAPIError(CursorUsageError):
    """A single refresh attempt against the usage API failed."""


class NetworkError(UsageAPIError):
    """The request did not produce a successful HTTP response."""


class HttpError(NetworkError):
    """Non-2xx status. ``body`` is None when the response had no text."""

    def __init__(self, status_code: int, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body or 'no body'}")

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code in (401, 403)


class TransportError(NetworkError):
    """Connection failure or timeout before any status was received."""


class DecodeError(UsageAPIError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Decoding error: {message}")
