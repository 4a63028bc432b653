"""
Development key and certificate generation.

Creates a P-256 development CA and issues per-user encryption and
verification certificates, producing everything import_remote() and
import_authenticated() consume. Not a PKI: no extensions beyond the basic
CA flag, no revocation, no chains.
"""

import datetime
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from . import config
from .encoding import b64e
from .signing import generate_signer, private_key_pem

CA_COMMON_NAME = "Development CA"


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def certificate_pem(certificate: x509.Certificate) -> str:
    return certificate.public_bytes(serialization.Encoding.PEM).decode('ascii')


def generate_ca(common_name: str = CA_COMMON_NAME,
                days: Optional[int] = None) -> Tuple[ec.EllipticCurvePrivateKey, x509.Certificate]:
    """Generate a self-signed P-256 CA key and certificate."""
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(datetime.timezone.utc)
    name = _name(common_name)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=days or config.CERT_VALIDITY_DAYS))
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .sign(key, hashes.SHA256())
    )
    return key, certificate


def issue_certificate(ca_key: ec.EllipticCurvePrivateKey, ca_certificate: x509.Certificate,
                      public_key: Any, common_name: str,
                      days: Optional[int] = None) -> x509.Certificate:
    """Issue a leaf certificate for public_key, signed by the CA."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(ca_certificate.subject)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=days or config.CERT_VALIDITY_DAYS))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(ca_key, hashes.SHA256())
    )


@dataclass(frozen=True)
class Credentials:
    """PEM material of one user, as produced by generate_credentials()."""
    user_id: str
    encryption_certificate: str
    verification_certificate: str
    decryption_key: str
    signing_key: str

    def to_descriptor(self) -> Dict[str, str]:
        """
        Sender descriptor in the CLI format (base64 of each PEM).

        Carries the signing key and both certificates, so the same file
        also serves as a receiver descriptor with a decryptionKey.
        """
        return {
            "id": self.user_id,
            "signingKey": b64e(self.signing_key.encode('ascii')),
            "verificationCertificate": b64e(self.verification_certificate.encode('ascii')),
            "encryptionCertificate": b64e(self.encryption_certificate.encode('ascii')),
            "decryptionKey": b64e(self.decryption_key.encode('ascii')),
        }


def generate_credentials(user_id: str, ca_key: ec.EllipticCurvePrivateKey,
                         ca_certificate: x509.Certificate,
                         signing_alg: Optional[str] = None) -> Credentials:
    """Generate fresh keys for user_id and CA-issued certificates for them."""
    decryption_key = ec.generate_private_key(ec.SECP256R1())
    signer = generate_signer(signing_alg or config.SIGNING_ALG)

    encryption_certificate = issue_certificate(
        ca_key, ca_certificate, decryption_key.public_key(), user_id
    )
    verification_certificate = issue_certificate(
        ca_key, ca_certificate, signer.public_key(), user_id
    )
    return Credentials(
        user_id=user_id,
        encryption_certificate=certificate_pem(encryption_certificate),
        verification_certificate=certificate_pem(verification_certificate),
        decryption_key=private_key_pem(decryption_key),
        signing_key=private_key_pem(signer.private_key),
    )
