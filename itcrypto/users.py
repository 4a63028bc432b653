"""
itcrypto Identities

A party is identified by an opaque string id and comes in two capability
levels:

- RemoteUser: public keys only. Data can be encrypted for it and its
  signatures can be verified.
- AuthenticatedUser: a RemoteUser plus the private decryption and signing
  keys. Only an AuthenticatedUser can sign, encrypt as creator or decrypt.

A RemoteUser's certificates are trusted for verification only when they
were generated locally or checked against a CA by import_remote().
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from . import config
from .errors import CertificateVerificationFailed
from .jwe import require_p256
from .logging_config import audit_log
from .logs import AccessLog, SignedLog
from .models import Envelope, FlattenedJWS
from .signing import (
    Signer,
    VerificationKey,
    alg_for_key,
    generate_signer,
    sign_jws,
    signer_from_pem,
)
from .encoding import generate_user_id
from .trust import load_certificate, verify_certificate


@dataclass(frozen=True)
class RemoteUser:
    """
    Public view of a party.

    Do not build this from untrusted certificates by hand; use
    import_remote() so the certificates are checked against the CA.
    """
    id: str
    encryption_certificate: ec.EllipticCurvePublicKey = field(repr=False)
    verification_certificate: VerificationKey = field(repr=False)
    is_monitor: bool = False

    def as_remote(self) -> 'RemoteUser':
        return self


@dataclass(frozen=True)
class AuthenticatedUser:
    """
    A RemoteUser together with its private keys.

    Composition rather than inheritance: the public identity is held as a
    RemoteUser value and exposed through as_remote().
    """
    remote: RemoteUser
    decryption_key: ec.EllipticCurvePrivateKey = field(repr=False)
    signer: Signer = field(repr=False)

    @property
    def id(self) -> str:
        return self.remote.id

    @property
    def encryption_certificate(self) -> ec.EllipticCurvePublicKey:
        return self.remote.encryption_certificate

    @property
    def verification_certificate(self) -> VerificationKey:
        return self.remote.verification_certificate

    @property
    def is_monitor(self) -> bool:
        return self.remote.is_monitor

    @property
    def signing_key(self):
        return self.signer.private_key

    def as_remote(self) -> RemoteUser:
        return self.remote

    def sign(self, data: bytes) -> FlattenedJWS:
        """Cryptographically sign the provided data as a flattened JWS."""
        return sign_jws(data, self.signer)

    def sign_log(self, log: AccessLog) -> SignedLog:
        """Sign a raw AccessLog."""
        signed = SignedLog.from_jws(self.sign(log.as_bytes()))
        audit_log.log_signed(signer=self.id, monitor=log.monitor, owner=log.owner)
        return signed

    def encrypt_log(self, log: SignedLog,
                    receivers: Sequence[Union[RemoteUser, 'AuthenticatedUser']]) -> Envelope:
        """Encrypt a SignedLog for receivers, with this user as creator."""
        from .encryption import encrypt_log
        return encrypt_log(log, self, receivers)

    def decrypt_log(self, envelope: Union[Envelope, str, dict],
                    directory: Callable[[str], RemoteUser]) -> SignedLog:
        """Decrypt and verify an envelope addressed to this user."""
        from .decryption import decrypt_log
        return decrypt_log(envelope, self, directory)


# ============================================================
# Generation (testing and demos)
# ============================================================

def _generate_keys(signing_alg: Optional[str]):
    decryption_key = ec.generate_private_key(ec.SECP256R1())
    signer = generate_signer(signing_alg or config.SIGNING_ALG)
    return decryption_key, signer


def generate_remote(signing_alg: Optional[str] = None, user_id: Optional[str] = None,
                    is_monitor: bool = False) -> RemoteUser:
    """Generate a RemoteUser with fresh random keys and a random id."""
    decryption_key, signer = _generate_keys(signing_alg)
    return RemoteUser(
        id=user_id or generate_user_id(),
        encryption_certificate=decryption_key.public_key(),
        verification_certificate=signer.public_key(),
        is_monitor=is_monitor,
    )


def generate_authenticated(signing_alg: Optional[str] = None, user_id: Optional[str] = None,
                           is_monitor: bool = False) -> AuthenticatedUser:
    """Generate an AuthenticatedUser with fresh random keys and a random id."""
    decryption_key, signer = _generate_keys(signing_alg)
    remote = RemoteUser(
        id=user_id or generate_user_id(),
        encryption_certificate=decryption_key.public_key(),
        verification_certificate=signer.public_key(),
        is_monitor=is_monitor,
    )
    return AuthenticatedUser(remote=remote, decryption_key=decryption_key, signer=signer)


# ============================================================
# Import
# ============================================================

def _spki(public_key: Any) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def keys_match(private_key: Any, public_key: Any) -> bool:
    """Check that public_key is the public half of private_key."""
    return _spki(private_key.public_key()) == _spki(public_key)


def import_remote(user_id: str, encryption_certificate: str, verification_certificate: str,
                  is_monitor: bool, ca_certificate: str) -> RemoteUser:
    """
    Import a remote user from PEM certificates verified against a CA.

    Raises:
        CertificateVerificationFailed: If either certificate was not issued
            by the CA ("encryption" is checked first)
        ValueError: If the CA certificate is unparseable or a key type is
            not supported
    """
    ca = load_certificate(ca_certificate)
    try:
        enc_cert = verify_certificate(encryption_certificate, ca, "encryption")
        vrf_cert = verify_certificate(verification_certificate, ca, "verification")
    except CertificateVerificationFailed as e:
        audit_log.certificate_rejected(user_id, e.which)
        raise

    verification_key = vrf_cert.public_key()
    alg_for_key(verification_key)
    return RemoteUser(
        id=user_id,
        encryption_certificate=require_p256(enc_cert.public_key()),
        verification_certificate=verification_key,
        is_monitor=is_monitor,
    )


def import_authenticated(user_id: str, encryption_certificate: str, verification_certificate: str,
                         decryption_key: str, signing_key: str,
                         is_monitor: bool = False) -> AuthenticatedUser:
    """
    Import the local user's own certificates and PKCS8 private keys.

    Raises:
        ValueError: If anything is unparseable, a key type is unsupported,
            or a private key does not belong to its certificate
    """
    encryption_key = require_p256(load_certificate(encryption_certificate).public_key())
    verification_key = load_certificate(verification_certificate).public_key()
    alg_for_key(verification_key)

    private_decryption_key = serialization.load_pem_private_key(
        decryption_key.encode('ascii'), password=None
    )
    if not isinstance(private_decryption_key, ec.EllipticCurvePrivateKey):
        raise ValueError("decryption key must be a P-256 private key")
    signer = signer_from_pem(signing_key)

    if not keys_match(private_decryption_key, encryption_key):
        raise ValueError("decryption key does not match the encryption certificate")
    if not keys_match(signer.private_key, verification_key):
        raise ValueError("signing key does not match the verification certificate")

    remote = RemoteUser(
        id=user_id,
        encryption_certificate=encryption_key,
        verification_certificate=verification_key,
        is_monitor=is_monitor,
    )
    return AuthenticatedUser(remote=remote, decryption_key=private_decryption_key, signer=signer)
