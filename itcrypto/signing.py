"""
itcrypto Cryptographic Signing

Produces and verifies flattened JWS objects (RFC 7515).

Two signature algorithms are supported, selected by the signing key type:
- ES256 (ECDSA P-256 / SHA-256), the wire-format default
- EdDSA (Ed25519, RFC 8037), signed and verified with PyNaCl
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .encoding import b64url_decode, b64url_encode
from .models import FlattenedJWS

logger = logging.getLogger(__name__)

SIGNING_ALG = "ES256"
EDDSA_ALG = "EdDSA"
SUPPORTED_SIGNING_ALGS = (SIGNING_ALG, EDDSA_ALG)

_P256_COORD_BYTES = 32

VerificationKey = Union[ec.EllipticCurvePublicKey, ed25519.Ed25519PublicKey]
PrivateSigningKey = Union[ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey]


class Signer(ABC):
    """Abstract interface for a private signing key."""

    alg: str

    @abstractmethod
    def sign(self, data: bytes) -> bytes:
        """Return the raw JWS signature over data."""

    @property
    @abstractmethod
    def private_key(self) -> PrivateSigningKey:
        """The underlying private key."""

    def public_key(self) -> VerificationKey:
        return self.private_key.public_key()


class ES256Signer(Signer):
    """ECDSA P-256 signer emitting the fixed-length r||s JWS encoding."""

    alg = SIGNING_ALG

    def __init__(self, private_key: ec.EllipticCurvePrivateKey):
        if not isinstance(private_key, ec.EllipticCurvePrivateKey) or \
                not isinstance(private_key.curve, ec.SECP256R1):
            raise ValueError("ES256 requires a P-256 private key")
        self._key = private_key

    @property
    def private_key(self) -> ec.EllipticCurvePrivateKey:
        return self._key

    def sign(self, data: bytes) -> bytes:
        der = self._key.sign(data, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        return r.to_bytes(_P256_COORD_BYTES, 'big') + s.to_bytes(_P256_COORD_BYTES, 'big')


class EdDSASigner(Signer):
    """Ed25519 signer backed by a PyNaCl SigningKey."""

    alg = EDDSA_ALG

    def __init__(self, private_key: ed25519.Ed25519PrivateKey):
        if not isinstance(private_key, ed25519.Ed25519PrivateKey):
            raise ValueError("EdDSA requires an Ed25519 private key")
        self._key = private_key
        seed = private_key.private_bytes(
            serialization.Encoding.Raw,
            serialization.PrivateFormat.Raw,
            serialization.NoEncryption(),
        )
        self._signing_key = SigningKey(seed)

    @property
    def private_key(self) -> ed25519.Ed25519PrivateKey:
        return self._key

    def sign(self, data: bytes) -> bytes:
        return self._signing_key.sign(data).signature


def generate_signer(alg: str = SIGNING_ALG) -> Signer:
    """Generate a fresh signing key for the given JWS algorithm."""
    if alg == SIGNING_ALG:
        return ES256Signer(ec.generate_private_key(ec.SECP256R1()))
    if alg == EDDSA_ALG:
        return EdDSASigner(ed25519.Ed25519PrivateKey.generate())
    raise ValueError(f"Unsupported signing algorithm: {alg}")


def load_signer(private_key: Any) -> Signer:
    """Wrap a private key object in the matching Signer."""
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        return ES256Signer(private_key)
    if isinstance(private_key, ed25519.Ed25519PrivateKey):
        return EdDSASigner(private_key)
    raise ValueError(f"Unsupported signing key type: {type(private_key).__name__}")


def signer_from_pem(pem: Union[str, bytes]) -> Signer:
    """Load a PKCS8 PEM private key as Signer."""
    if isinstance(pem, str):
        pem = pem.encode('ascii')
    return load_signer(serialization.load_pem_private_key(pem, password=None))


def alg_for_key(public_key: Any) -> str:
    """The JWS algorithm a verification key is used with."""
    if isinstance(public_key, ec.EllipticCurvePublicKey) and \
            isinstance(public_key.curve, ec.SECP256R1):
        return SIGNING_ALG
    if isinstance(public_key, ed25519.Ed25519PublicKey):
        return EDDSA_ALG
    raise ValueError(f"Unsupported verification key type: {type(public_key).__name__}")


def sign_jws(data: bytes, signer: Signer) -> FlattenedJWS:
    """
    Sign data as a flattened JWS.

    Args:
        data: Payload bytes
        signer: Private signing key

    Returns:
        FlattenedJWS with protected header {"alg": signer.alg}
    """
    protected = b64url_encode(json.dumps({"alg": signer.alg}, separators=(',', ':')).encode('utf-8'))
    payload = b64url_encode(data)
    signing_input = f"{protected}.{payload}".encode('ascii')
    signature = signer.sign(signing_input)
    return FlattenedJWS(payload=payload, protected=protected, signature=b64url_encode(signature))


def _protected_header(jws: FlattenedJWS) -> Dict[str, Any]:
    if jws.protected is None:
        raise ValueError("JWS has no protected header")
    header = json.loads(b64url_decode(jws.protected))
    if not isinstance(header, dict):
        raise ValueError("JWS protected header is not an object")
    return header


def verify_jws(jws: FlattenedJWS, public_key: VerificationKey) -> bool:
    """
    Verify a flattened JWS against a public key.

    The declared algorithm must match the key type; critical header
    extensions are not supported and fail verification.

    Returns:
        True if the signature is valid, False otherwise
    """
    try:
        header = _protected_header(jws)
        if "crit" in header:
            return False
        alg = alg_for_key(public_key)
        if header.get("alg") != alg:
            return False

        signature = b64url_decode(jws.signature)
        b64url_decode(jws.payload)
        signing_input = f"{jws.protected}.{jws.payload}".encode('ascii')

        if alg == SIGNING_ALG:
            if len(signature) != 2 * _P256_COORD_BYTES:
                return False
            r = int.from_bytes(signature[:_P256_COORD_BYTES], 'big')
            s = int.from_bytes(signature[_P256_COORD_BYTES:], 'big')
            public_key.verify(encode_dss_signature(r, s), signing_input, ec.ECDSA(hashes.SHA256()))
        else:
            raw = public_key.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)
            VerifyKey(raw).verify(signing_input, signature)
        return True
    except (InvalidSignature, BadSignatureError, ValueError, TypeError) as e:
        logger.debug("JWS verification failed: %s", type(e).__name__)
        return False


def private_key_pem(private_key: Any) -> str:
    """Serialize a private key as unencrypted PKCS8 PEM."""
    return private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode('ascii')
