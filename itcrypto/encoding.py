"""
Encoding helpers for itcrypto.

Provides strict base64url handling for JOSE members and random identifiers.
"""

import base64
import binascii
import re
import secrets
import uuid

_B64URL_PATTERN = re.compile(r'^[A-Za-z0-9_-]*$')


def b64url_encode(b: bytes) -> str:
    """URL-safe base64 encode bytes to string (no padding)."""
    return base64.urlsafe_b64encode(b).rstrip(b'=').decode('ascii')


def b64url_decode(s: str) -> bytes:
    """
    Strictly decode unpadded base64url.

    Rejects padding, characters outside the URL-safe alphabet and
    non-canonical encodings (trailing bits that re-encode differently), so
    that no single-character edit can decode to the same bytes.

    Raises:
        ValueError: If the input is not canonical unpadded base64url
    """
    if not isinstance(s, str) or not _B64URL_PATTERN.match(s):
        raise ValueError("invalid base64url string")
    if len(s) % 4 == 1:
        raise ValueError("invalid base64url length")
    try:
        data = base64.urlsafe_b64decode(s + '=' * (-len(s) % 4))
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64url string: {e}") from e
    if b64url_encode(data) != s:
        raise ValueError("non-canonical base64url string")
    return data


def b64e(b: bytes) -> str:
    """Standard base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Standard base64 decode string to bytes."""
    return base64.b64decode(s.encode('ascii'), validate=True)


def generate_share_id(length: int = 16) -> str:
    """Generate a fresh random token for one sharing event."""
    return secrets.token_hex(length)


def generate_user_id() -> str:
    """Generate a random user id for freshly generated identities."""
    return str(uuid.uuid4())
