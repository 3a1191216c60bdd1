# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Credential extraction from Cursor's local state database.

Cursor keeps its access token (a JWT) in a SQLite key-value table:

    SELECT value FROM ItemTable WHERE key = 'cursorAuth/accessToken'

The JWT payload's 'sub' claim looks like "auth0|user_XXXX"; the part after
the first pipe is the user id. The API session cookie is then:

    WorkosCursorSessionToken={user_id}%3A%3A{jwt}

The token is decoded without signature verification; it is only read to
find the user id.
"""

import base64
import binascii
import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Optional, Union

from ..core.constants import (
    ACCESS_TOKEN_KEY,
    ACCESS_TOKEN_QUERY,
    IDENTITY_CLAIM,
    SESSION_TOKEN_SEPARATOR,
)
from ..core.errors import (
    InvalidTokenError,
    MissingIdentityClaimError,
    QueryFailedError,
    StoreNotFoundError,
    StoreOpenError,
    TokenNotFoundError,
    mask_credential,
)
from ..core.types import Credential
from ..utils.paths import get_state_db_path

lib_logger = logging.getLogger("cursor_usage")


# =========================================================================
# TOKEN PARSING
# =========================================================================


def _decode_base64url(segment: str) -> bytes:
    """Decode a base64url segment that may lack padding."""
    normalized = segment.replace("-", "+").replace("_", "/")
    remainder = len(normalized) % 4
    if remainder:
        normalized += "=" * (4 - remainder)
    return base64.b64decode(normalized, validate=True)


def extract_user_id(token: str) -> str:
    """
    Extract the user id from a JWT access token.

    Args:
        token: Raw JWT (header.payload.signature)

    Returns:
        The identity claim after the first "|", or the whole claim

    Raises:
        InvalidTokenError: fewer than two segments, empty payload, or payload
            not base64
        MissingIdentityClaimError: payload is not JSON or lacks the claim
    """
    parts = token.split(".")
    if len(parts) < 2 or not parts[1]:
        raise InvalidTokenError()

    try:
        payload_bytes = _decode_base64url(parts[1])
    except (binascii.Error, ValueError) as e:
        raise InvalidTokenError() from e

    try:
        payload = json.loads(payload_bytes)
    except ValueError as e:
        raise MissingIdentityClaimError(IDENTITY_CLAIM) from e

    subject = payload.get(IDENTITY_CLAIM) if isinstance(payload, dict) else None
    if not isinstance(subject, str):
        raise MissingIdentityClaimError(IDENTITY_CLAIM)

    # "provider|userId" -> "userId"
    if "|" in subject:
        return subject.split("|", 1)[1]
    return subject


def build_session_token(user_id: str, token: str) -> str:
    """Format the WorkosCursorSessionToken cookie value."""
    return f"{user_id}{SESSION_TOKEN_SEPARATOR}{token}"


# =========================================================================
# LOCAL STORE
# =========================================================================


class CursorTokenStore:
    """
    Read-only view of Cursor's state.vscdb.

    Usage:
        store = CursorTokenStore()
        credential = store.extract_credential()
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.db_path = Path(db_path) if db_path else get_state_db_path()

    def _open(self) -> sqlite3.Connection:
        # URI mode so the file is never created or written
        uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
        try:
            return sqlite3.connect(uri, uri=True)
        except sqlite3.Error as e:
            raise StoreOpenError(str(e)) from e

    def read_access_token(self) -> str:
        """
        Run the single point lookup for the stored access token.

        Raises:
            StoreNotFoundError: database file does not exist
            StoreOpenError: file cannot be opened read-only
            QueryFailedError: the lookup statement failed
            TokenNotFoundError: no row (or an empty value) for the key
        """
        if not self.db_path.exists():
            raise StoreNotFoundError(str(self.db_path))

        with closing(self._open()) as conn:
            try:
                row = conn.execute(ACCESS_TOKEN_QUERY, (ACCESS_TOKEN_KEY,)).fetchone()
            except sqlite3.Error as e:
                raise QueryFailedError(str(e)) from e

        if row is None or row[0] is None:
            raise TokenNotFoundError()

        value = row[0]
        if isinstance(value, (bytes, bytearray)):
            try:
                value = bytes(value).decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidTokenError() from e
        value = str(value).strip()
        if not value:
            raise TokenNotFoundError()
        return value

    def extract_credential(self) -> Credential:
        """
        Read the access token and derive the session credential.

        Returns:
            Credential with session_token and user_id
        """
        token = self.read_access_token()
        user_id = extract_user_id(token)
        lib_logger.debug(
            f"Extracted Cursor credential for user {mask_credential(user_id)} "
            f"from {self.db_path}"
        )
        return Credential(
            session_token=build_session_token(user_id, token),
            user_id=user_id,
        )


def extract_credential(db_path: Optional[Union[str, Path]] = None) -> Credential:
    """Extract the session credential from the local store."""
    return CursorTokenStore(db_path).extract_credential()
