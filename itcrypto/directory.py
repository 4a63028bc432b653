"""
User directories.

A directory maps a user id to a RemoteUser and raises NotFound for unknown
ids. Decryption calls it to resolve the claimed creator and monitor of an
envelope; any other exception it raises reaches the caller unchanged.

Two implementations:
- InMemoryDirectory: fixed set of already trusted users (tests, demos)
- HttpDirectory: fetches certificates from a directory service and checks
  them against the CA on every lookup
"""

import logging
from typing import Any, Dict, Iterable, Optional, Union
from urllib.parse import quote

import requests

from . import config
from .encoding import b64d
from .errors import NotFound
from .users import AuthenticatedUser, RemoteUser, import_remote

logger = logging.getLogger(__name__)

_PEM_MARKER = "-----BEGIN"


class InMemoryDirectory:
    """Directory over a fixed collection of users."""

    def __init__(self, users: Iterable[Union[RemoteUser, AuthenticatedUser]] = ()):
        self._users: Dict[str, RemoteUser] = {}
        for user in users:
            self.add(user)

    def add(self, user: Union[RemoteUser, AuthenticatedUser]) -> None:
        remote = user.as_remote()
        self._users[remote.id] = remote

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._users

    def __len__(self) -> int:
        return len(self._users)

    def __call__(self, user_id: str) -> RemoteUser:
        try:
            return self._users[user_id]
        except KeyError:
            raise NotFound(user_id) from None


def create_directory(users: Iterable[Union[RemoteUser, AuthenticatedUser]]) -> InMemoryDirectory:
    """Build an in-memory directory from users."""
    return InMemoryDirectory(users)


def decode_pem(value: str) -> str:
    """
    Accept PEM text or base64 of the PEM text.

    Raises:
        ValueError: If value is neither
    """
    if not isinstance(value, str):
        raise ValueError(f"expected PEM text, got {type(value).__name__}")
    if value.lstrip().startswith(_PEM_MARKER):
        return value
    try:
        pem = b64d(value).decode('ascii')
    except ValueError as e:
        raise ValueError(f"value is neither PEM nor base64 PEM: {e}") from None
    if not pem.lstrip().startswith(_PEM_MARKER):
        raise ValueError("value is neither PEM nor base64 PEM")
    return pem


class HttpDirectory:
    """
    Directory backed by an HTTP service.

    GET {base_url}/users/{id} returns a JSON object with
    ``encryptionCertificate``, ``verificationCertificate`` and optionally
    ``isMonitor``. Every returned certificate must be issued by the CA.
    Nothing is cached.
    """

    def __init__(self, base_url: str, ca_certificate: str,
                 session: Optional[requests.Session] = None,
                 timeout: float = config.DIRECTORY_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.ca_certificate = ca_certificate
        self.session = session or requests.Session()
        self.timeout = timeout

    def _fetch(self, user_id: str) -> Dict[str, Any]:
        url = f"{self.base_url}/users/{quote(user_id, safe='')}"
        r = self.session.get(url, timeout=self.timeout)
        if r.status_code == 404:
            raise NotFound(user_id)
        r.raise_for_status()
        body = r.json()
        if not isinstance(body, dict):
            raise ValueError(f"directory entry for {user_id} is not an object")
        return body

    def __call__(self, user_id: str) -> RemoteUser:
        body = self._fetch(user_id)
        try:
            encryption_certificate = decode_pem(body["encryptionCertificate"])
            verification_certificate = decode_pem(body["verificationCertificate"])
        except KeyError as e:
            raise ValueError(f"directory entry for {user_id} is incomplete: {e}") from None

        logger.debug("Resolved %s from %s", user_id, self.base_url)
        return import_remote(
            user_id,
            encryption_certificate,
            verification_certificate,
            bool(body.get("isMonitor", False)),
            self.ca_certificate,
        )
