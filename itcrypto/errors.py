"""
itcrypto Error Taxonomy

Every failure of the envelope protocol is terminal. Nothing here is retried
or swallowed internally; the embedding application decides presentation
and whether to retry (e.g. re-fetching a directory entry).
"""

from enum import Enum
from typing import Optional


class ItCryptoError(Exception):
    """Base class for all itcrypto failures."""


class NotFound(ItCryptoError):
    """Raised when a directory cannot resolve a claimed user id."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Could not find user {user_id}")


class DecryptionFailed(ItCryptoError):
    """
    The envelope could not be opened.

    Deliberately generic: wrong key, tampered ciphertext, tampered tag and
    tampered protected header all surface as the same error.
    """

    MESSAGE = "decryption operation failed"

    def __init__(self):
        super().__init__(self.MESSAGE)


class MalformedEnvelope(ItCryptoError):
    """Structurally invalid content after a successful open."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Malformed data: {detail}")


class VerificationFailed(ItCryptoError):
    """A nested signature did not verify against the resolved identity."""

    LAYERS = ("SharedLog", "SharedHeader", "AccessLog")

    def __init__(self, which: str):
        if which not in self.LAYERS:
            raise ValueError(f"Unknown signed layer: {which}")
        self.which = which
        super().__init__(f"Could not verify {which}.")


class InvariantCode(str, Enum):
    """Sharing-authorization invariants checked after all signatures verify."""
    OWNER_MISMATCH = "OWNER_MISMATCH"
    SHARE_ID_MISMATCH = "SHARE_ID_MISMATCH"
    UNAUTHORIZED_CREATOR = "UNAUTHORIZED_CREATOR"
    MONITOR_RESHARE = "MONITOR_RESHARE"
    RECEIVER_NOT_LISTED = "RECEIVER_NOT_LISTED"


class InvariantViolation(ItCryptoError):
    """A sharing invariant failed even though every signature verified."""

    def __init__(self, code: InvariantCode, detail: str):
        self.code = code
        self.detail = detail
        super().__init__(f"Malformed data: {detail}")


class CertificateVerificationFailed(ItCryptoError):
    """Raised during identity import when a certificate is not CA-issued."""

    CERTIFICATES = ("encryption", "verification")

    def __init__(self, which: str, reason: Optional[str] = None):
        if which not in self.CERTIFICATES:
            raise ValueError(f"Unknown certificate role: {which}")
        self.which = which
        self.reason = reason
        super().__init__(f"Could not verify {which}Certificate.")


class NotLoggedIn(ItCryptoError):
    """Raised by the session facade when no user is logged in."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Before you can {operation} you need to login a user.")
