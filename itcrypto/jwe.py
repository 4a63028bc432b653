"""
itcrypto JWE Primitives

Multi-recipient JWE (RFC 7516) with:
- ECDH-ES+A256KW key agreement and key wrapping on P-256 (RFC 7518, 4.6)
- A256GCM content encryption (RFC 7518, 5.3)

Every failure while opening an envelope surfaces as DecryptionFailed, with
no hint about which check failed.
"""

import json
import logging
import os
from typing import Any, Dict, Iterable, Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.concatkdf import ConcatKDFHash
from cryptography.hazmat.primitives.keywrap import InvalidUnwrap, aes_key_unwrap, aes_key_wrap

from .encoding import b64url_decode, b64url_encode
from .errors import DecryptionFailed
from .models import Envelope, Recipient

logger = logging.getLogger(__name__)

KEY_WRAP_ALG = "ECDH-ES+A256KW"
ENCRYPTION_ALG = "A256GCM"

CEK_BYTES = 32
IV_BYTES = 12
TAG_BYTES = 16
_P256_COORD_BYTES = 32


# ============================================================
# Key Agreement
# ============================================================

def _length_prefixed(data: bytes) -> bytes:
    return len(data).to_bytes(4, 'big') + data


def concat_kdf(shared_secret: bytes, alg: str, key_bytes: int,
               apu: bytes = b"", apv: bytes = b"") -> bytes:
    """
    Concat KDF as profiled for JWA ECDH-ES (RFC 7518, 4.6.2).

    OtherInfo = AlgorithmID || PartyUInfo || PartyVInfo || SuppPubInfo
    """
    other_info = (
        _length_prefixed(alg.encode('ascii'))
        + _length_prefixed(apu)
        + _length_prefixed(apv)
        + (key_bytes * 8).to_bytes(4, 'big')
    )
    kdf = ConcatKDFHash(algorithm=hashes.SHA256(), length=key_bytes, otherinfo=other_info)
    return kdf.derive(shared_secret)


def epk_to_jwk(public_key: ec.EllipticCurvePublicKey) -> Dict[str, str]:
    numbers = public_key.public_numbers()
    return {
        "kty": "EC",
        "crv": "P-256",
        "x": b64url_encode(numbers.x.to_bytes(_P256_COORD_BYTES, 'big')),
        "y": b64url_encode(numbers.y.to_bytes(_P256_COORD_BYTES, 'big')),
    }


def jwk_to_epk(jwk: Any) -> ec.EllipticCurvePublicKey:
    """Load an ephemeral P-256 public key; raises ValueError if invalid."""
    if not isinstance(jwk, dict) or jwk.get("kty") != "EC" or jwk.get("crv") != "P-256":
        raise ValueError("epk must be a P-256 EC JWK")
    x = b64url_decode(jwk.get("x", ""))
    y = b64url_decode(jwk.get("y", ""))
    if len(x) != _P256_COORD_BYTES or len(y) != _P256_COORD_BYTES:
        raise ValueError("epk coordinates have invalid length")
    numbers = ec.EllipticCurvePublicNumbers(
        int.from_bytes(x, 'big'), int.from_bytes(y, 'big'), ec.SECP256R1()
    )
    return numbers.public_key()


def require_p256(public_key: Any) -> ec.EllipticCurvePublicKey:
    if not isinstance(public_key, ec.EllipticCurvePublicKey) or \
            not isinstance(public_key.curve, ec.SECP256R1):
        raise ValueError(f"{KEY_WRAP_ALG} requires a P-256 encryption key")
    return public_key


def wrap_key(cek: bytes, recipient_key: ec.EllipticCurvePublicKey) -> Recipient:
    """Wrap the CEK for one recipient using a fresh ephemeral key."""
    require_p256(recipient_key)
    ephemeral = ec.generate_private_key(ec.SECP256R1())
    shared = ephemeral.exchange(ec.ECDH(), recipient_key)
    kek = concat_kdf(shared, KEY_WRAP_ALG, 32)
    return Recipient(
        encrypted_key=b64url_encode(aes_key_wrap(kek, cek)),
        header={"alg": KEY_WRAP_ALG, "epk": epk_to_jwk(ephemeral.public_key())},
    )


def joint_header(*headers: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Union of the protected, shared unprotected and per-recipient headers.

    Raises:
        ValueError: If a member name appears in more than one of them
    """
    joint: Dict[str, Any] = {}
    for header in headers:
        if not header:
            continue
        duplicates = joint.keys() & header.keys()
        if duplicates:
            raise ValueError(f"Duplicate header members: {sorted(duplicates)}")
        joint.update(header)
    return joint


def unwrap_key(encrypted_key: str, header: Dict[str, Any],
               decryption_key: ec.EllipticCurvePrivateKey) -> bytes:
    """
    Recover the CEK from one recipient entry.

    header is the recipient's joint header, see joint_header().

    Raises:
        ValueError: If the entry is not for this key or is malformed
    """
    if header.get("alg") != KEY_WRAP_ALG:
        raise ValueError(f"Unsupported key management algorithm: {header.get('alg')}")
    epk = jwk_to_epk(header.get("epk"))
    apu = b64url_decode(header["apu"]) if "apu" in header else b""
    apv = b64url_decode(header["apv"]) if "apv" in header else b""
    shared = decryption_key.exchange(ec.ECDH(), epk)
    kek = concat_kdf(shared, KEY_WRAP_ALG, 32, apu, apv)
    try:
        cek = aes_key_unwrap(kek, b64url_decode(encrypted_key))
    except InvalidUnwrap as e:
        raise ValueError("key unwrap failed") from e
    if len(cek) != CEK_BYTES:
        raise ValueError("unwrapped key has invalid length")
    return cek


# ============================================================
# Envelope
# ============================================================

def encode_protected_header(header: Dict[str, Any]) -> str:
    return b64url_encode(json.dumps(header, separators=(',', ':')).encode('utf-8'))


def _aad(envelope_protected: str, aad: Optional[str]) -> bytes:
    if aad is None:
        return envelope_protected.encode('ascii')
    return f"{envelope_protected}.{aad}".encode('ascii')


def seal(plaintext: bytes, protected_header: Dict[str, Any],
         recipient_keys: Iterable[ec.EllipticCurvePublicKey]) -> Envelope:
    """
    Encrypt plaintext once under a fresh CEK and wrap the CEK per recipient.

    The protected header is authenticated as additional data, so it cannot
    be moved onto another ciphertext.
    """
    header = dict(protected_header)
    header["enc"] = ENCRYPTION_ALG
    protected = encode_protected_header(header)

    cek = AESGCM.generate_key(bit_length=CEK_BYTES * 8)
    iv = os.urandom(IV_BYTES)
    sealed = AESGCM(cek).encrypt(iv, plaintext, _aad(protected, None))
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]

    recipients = [wrap_key(cek, key) for key in recipient_keys]
    if not recipients:
        raise ValueError("At least one recipient is required")

    return Envelope(
        protected=protected,
        recipients=recipients,
        iv=b64url_encode(iv),
        ciphertext=b64url_encode(ciphertext),
        tag=b64url_encode(tag),
    )


def open_envelope(envelope: Envelope,
                  decryption_key: ec.EllipticCurvePrivateKey) -> Tuple[bytes, Dict[str, Any]]:
    """
    Open an envelope with the receiver's decryption key.

    Tries every recipient entry; the first one whose key unwraps and whose
    content authenticates wins. Key management parameters (alg, epk,
    apu, apv) may sit in any of the protected, shared unprotected or
    per-recipient headers.

    Returns:
        Tuple of (plaintext, decoded protected header)

    Raises:
        DecryptionFailed: On any failure
    """
    try:
        header = json.loads(b64url_decode(envelope.protected))
        if not isinstance(header, dict) or header.get("enc") != ENCRYPTION_ALG:
            raise ValueError("unsupported or missing content encryption algorithm")
        iv = b64url_decode(envelope.iv)
        ciphertext = b64url_decode(envelope.ciphertext)
        tag = b64url_decode(envelope.tag)
        if envelope.aad is not None:
            b64url_decode(envelope.aad)
        if len(iv) != IV_BYTES or len(tag) != TAG_BYTES:
            raise ValueError("invalid iv or tag length")
        aad = _aad(envelope.protected, envelope.aad)
    except ValueError as e:
        logger.debug("Envelope rejected before key unwrap: %s", e)
        raise DecryptionFailed() from None

    for recipient in envelope.recipients:
        try:
            joint = joint_header(header, envelope.unprotected, recipient.header)
            cek = unwrap_key(recipient.encrypted_key, joint, decryption_key)
            plaintext = AESGCM(cek).decrypt(iv, ciphertext + tag, aad)
        except (ValueError, InvalidTag):
            continue
        return plaintext, header

    raise DecryptionFailed()
