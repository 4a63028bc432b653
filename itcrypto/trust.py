"""
itcrypto Trust Verification

Single-issuer trust: a remote identity's certificates are usable only if
they were signed directly by the designated CA. No chains, no revocation,
no expiry policy beyond what certificate parsing enforces.
"""

import logging
from typing import Union

from cryptography import x509
from cryptography.exceptions import InvalidSignature

from .errors import CertificateVerificationFailed

logger = logging.getLogger(__name__)


def load_certificate(pem: Union[str, bytes]) -> x509.Certificate:
    """
    Parse a PEM encoded X.509 certificate.

    Raises:
        ValueError: If the PEM data is not a certificate
    """
    if isinstance(pem, str):
        pem = pem.encode('ascii')
    return x509.load_pem_x509_certificate(pem)


def is_issued_by(certificate: x509.Certificate, ca_certificate: x509.Certificate) -> bool:
    """
    Check that certificate was directly issued by ca_certificate.

    Verifies the issuer name and the signature over the TBS certificate
    with the CA's public key.
    """
    try:
        certificate.verify_directly_issued_by(ca_certificate)
        return True
    except (ValueError, TypeError, InvalidSignature) as e:
        logger.debug("Certificate %s not issued by CA: %s", certificate.subject.rfc4514_string(), e)
        return False


def verify_certificate(pem: Union[str, bytes], ca_certificate: x509.Certificate,
                       which: str) -> x509.Certificate:
    """
    Parse and verify one certificate of an identity against the CA.

    Args:
        pem: PEM encoded certificate
        ca_certificate: Parsed trust anchor
        which: "encryption" or "verification", named in the error

    Raises:
        CertificateVerificationFailed: If parsing or verification fails
    """
    try:
        certificate = load_certificate(pem)
    except ValueError as e:
        raise CertificateVerificationFailed(which, reason=f"unparseable certificate: {e}") from e
    if not is_issued_by(certificate, ca_certificate):
        raise CertificateVerificationFailed(which, reason="not issued by trusted CA")
    return certificate
