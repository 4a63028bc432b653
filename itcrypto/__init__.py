"""
itcrypto - Inverse Transparency Envelope Protocol

Version: 0.4.0

Cryptographic envelopes for access logs. A monitor that accessed an
owner's data signs an AccessLog and hands it to the owner; the owner may
re-share it with others. Every hand-off is a nested-signature,
multi-recipient envelope:

    JWE (A256GCM, ECDH-ES+A256KW per receiver)
      protected: sharedHeader = JWS(SharedHeader{shareId, owner, receivers})
      plaintext: JWS(SharedLog{log: JWS(AccessLog), shareId, creator})

A receiver accepts an envelope only if it opens, every signature verifies
against the identity it claims, and the sharing rules hold: the creator
is the log's monitor or owner, and a monitor shares with the owner only.

Usage:
    from itcrypto import (
        AccessLog,
        create_directory,
        generate_authenticated,
    )

    monitor = generate_authenticated(user_id="monitor")
    owner = generate_authenticated(user_id="owner")
    directory = create_directory([monitor, owner])

    # Monitor signs the log and hands it to the owner
    log = AccessLog(monitor="monitor", owner="owner", tool="crm",
                    justification="support ticket", timestamp=1700000000,
                    access_kind="read", data_type=["email"])
    signed = monitor.sign_log(log)
    envelope = monitor.encrypt_log(signed, [owner])

    # Owner decrypts and verifies
    verified = owner.decrypt_log(envelope.to_json(), directory)
    access_log = verified.extract()
"""

__version__ = "0.4.0"

# Errors
from .errors import (
    ItCryptoError,
    NotFound,
    DecryptionFailed,
    MalformedEnvelope,
    VerificationFailed,
    InvariantCode,
    InvariantViolation,
    CertificateVerificationFailed,
    NotLoggedIn,
)

# Canonicalization
from .canonicalization import canonicalize, canonicalize_str

# Wire models and log records
from .models import FlattenedJWS, Envelope, Recipient
from .logs import AccessLog, SignedLog, SharedLog, SharedHeader

# Signing
from .signing import (
    Signer,
    ES256Signer,
    EdDSASigner,
    generate_signer,
    sign_jws,
    verify_jws,
)

# Identities
from .users import (
    RemoteUser,
    AuthenticatedUser,
    generate_remote,
    generate_authenticated,
    import_remote,
    import_authenticated,
)

# Protocol
from .encryption import encrypt_log, build_envelope
from .decryption import LogDecryptor, decrypt_log
from .invariants import check_sharing_invariants

# Directories and session
from .directory import InMemoryDirectory, HttpDirectory, create_directory
from .session import ItCrypto

# Logging
from .logging_config import configure_logging, audit_log


__all__ = [
    # Version
    "__version__",

    # Errors
    "ItCryptoError",
    "NotFound",
    "DecryptionFailed",
    "MalformedEnvelope",
    "VerificationFailed",
    "InvariantCode",
    "InvariantViolation",
    "CertificateVerificationFailed",
    "NotLoggedIn",

    # Canonicalization
    "canonicalize",
    "canonicalize_str",

    # Wire models and records
    "FlattenedJWS",
    "Envelope",
    "Recipient",
    "AccessLog",
    "SignedLog",
    "SharedLog",
    "SharedHeader",

    # Signing
    "Signer",
    "ES256Signer",
    "EdDSASigner",
    "generate_signer",
    "sign_jws",
    "verify_jws",

    # Identities
    "RemoteUser",
    "AuthenticatedUser",
    "generate_remote",
    "generate_authenticated",
    "import_remote",
    "import_authenticated",

    # Protocol
    "encrypt_log",
    "build_envelope",
    "LogDecryptor",
    "decrypt_log",
    "check_sharing_invariants",

    # Directories and session
    "InMemoryDirectory",
    "HttpDirectory",
    "create_directory",
    "ItCrypto",

    # Logging
    "configure_logging",
    "audit_log",
]
