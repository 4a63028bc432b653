"""
Login session facade.

Holds one logged-in AuthenticatedUser and a directory, so applications can
call sign/encrypt/decrypt without passing identities around.
"""

from typing import Optional, Sequence, Union

from .decryption import Directory, decrypt_log
from .encryption import encrypt_log
from .errors import NotLoggedIn
from .logs import AccessLog, SignedLog
from .models import Envelope
from .users import AuthenticatedUser, RemoteUser, import_authenticated


class ItCrypto:
    """Session wrapper around the envelope protocol."""

    def __init__(self, directory: Directory):
        self.directory = directory
        self.user: Optional[AuthenticatedUser] = None

    @property
    def logged_in(self) -> bool:
        return self.user is not None

    def login(self, user: AuthenticatedUser) -> None:
        self.user = user

    def login_with_credentials(self, user_id: str, encryption_certificate: str,
                               verification_certificate: str, decryption_key: str,
                               signing_key: str, is_monitor: bool = False) -> AuthenticatedUser:
        """Import the user's own PEM credentials and log them in."""
        user = import_authenticated(
            user_id, encryption_certificate, verification_certificate,
            decryption_key, signing_key, is_monitor=is_monitor,
        )
        self.login(user)
        return user

    def logout(self) -> None:
        self.user = None

    def _require_user(self, operation: str) -> AuthenticatedUser:
        if self.user is None:
            raise NotLoggedIn(operation)
        return self.user

    def sign_log(self, log: AccessLog) -> SignedLog:
        return self._require_user("sign data").sign_log(log)

    def encrypt_log(self, log: SignedLog,
                    receivers: Sequence[Union[RemoteUser, AuthenticatedUser]]) -> Envelope:
        user = self._require_user("encrypt")
        return encrypt_log(log, user, [r.as_remote() for r in receivers])

    def decrypt_log(self, envelope: Union[Envelope, str, bytes, dict]) -> SignedLog:
        user = self._require_user("decrypt")
        return decrypt_log(envelope, user, self.directory)
