#!/usr/bin/env python3
"""
itcrypto Command Line Interface

Usage:
    itcrypto encrypt <log> <sender> <receiver> [<receiver> ...]
    itcrypto decrypt <envelope-file> --receiver <descriptor> [--ca <file>] [--user <descriptor> ...]
    itcrypto keygen --id <user-id> [--ca-cert <file> --ca-key <file>]

Logs and descriptors are JSON text or paths to JSON files. Descriptor
values (keys and certificates) are base64 of the PEM text:

    sender:   {"id", "signingKey", "verificationCertificate"}
    receiver: {"id", "encryptionCertificate", "decryptionKey"?}
"""

import argparse
import json
import logging
import sys
import traceback
from dataclasses import replace
from typing import Any, Dict, List, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from . import __version__, config
from .decryption import decrypt_log
from .directory import HttpDirectory, InMemoryDirectory, decode_pem
from .errors import ItCryptoError
from .jwe import require_p256
from .keygen import certificate_pem, generate_ca, generate_credentials
from .logging_config import configure_logging, set_correlation_id
from .logs import AccessLog
from .signing import generate_signer, private_key_pem, signer_from_pem
from .trust import load_certificate
from .users import (
    AuthenticatedUser,
    RemoteUser,
    generate_authenticated,
    import_authenticated,
    import_remote,
    keys_match,
)

logger = logging.getLogger(__name__)


def load_json(path: str) -> Any:
    """Load JSON from file."""
    with open(path, 'r') as f:
        return json.load(f)


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w') as f:
        json.dump(data, f, indent=2)


def load_json_arg(value: str) -> Dict[str, Any]:
    """Parse an argument given as inline JSON or as a path to a JSON file."""
    if value.lstrip().startswith('{'):
        obj = json.loads(value)
    else:
        obj = load_json(value)
    if not isinstance(obj, dict):
        raise ValueError(f"expected a JSON object: {value[:40]}")
    return obj


def _member(descriptor: Dict[str, Any], name: str) -> Any:
    try:
        return descriptor[name]
    except KeyError:
        raise ValueError(f"descriptor is missing '{name}'") from None


def _pem(descriptor: Dict[str, Any], name: str) -> str:
    return decode_pem(_member(descriptor, name))


def _load_decryption_key(pem: str) -> ec.EllipticCurvePrivateKey:
    key = serialization.load_pem_private_key(pem.encode('ascii'), password=None)
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise ValueError("decryption key must be a P-256 private key")
    return key


# ============================================================
# Descriptors
# ============================================================

def sender_from_descriptor(descriptor: Dict[str, Any]) -> AuthenticatedUser:
    """
    Build the signing user from a sender descriptor.

    A descriptor with encryption material is imported in full. Otherwise
    the user gets throwaway encryption keys; a sender only signs and
    encrypts for others, which needs neither.
    """
    user_id = _member(descriptor, "id")
    is_monitor = bool(descriptor.get("isMonitor", False))
    if "encryptionCertificate" in descriptor and "decryptionKey" in descriptor:
        return import_authenticated(
            user_id,
            _pem(descriptor, "encryptionCertificate"),
            _pem(descriptor, "verificationCertificate"),
            _pem(descriptor, "decryptionKey"),
            _pem(descriptor, "signingKey"),
            is_monitor=is_monitor,
        )

    signer = signer_from_pem(_pem(descriptor, "signingKey"))
    verification_key = load_certificate(_pem(descriptor, "verificationCertificate")).public_key()
    if not keys_match(signer.private_key, verification_key):
        raise ValueError("signing key does not match the verification certificate")

    placeholder = generate_authenticated(user_id=user_id, is_monitor=is_monitor)
    remote = replace(placeholder.remote, verification_certificate=verification_key)
    return AuthenticatedUser(remote=remote, decryption_key=placeholder.decryption_key, signer=signer)


def receiver_from_descriptor(descriptor: Dict[str, Any]) -> Union[RemoteUser, AuthenticatedUser]:
    """
    Build a receiver from a receiver descriptor.

    Returns an AuthenticatedUser when the descriptor carries a
    decryptionKey, so the envelope can be checked on its behalf.
    """
    user_id = _member(descriptor, "id")
    encryption_key = require_p256(
        load_certificate(_pem(descriptor, "encryptionCertificate")).public_key()
    )
    # Receivers are never resolved as signers here
    signer = generate_signer()
    if "verificationCertificate" in descriptor:
        verification_key = load_certificate(_pem(descriptor, "verificationCertificate")).public_key()
    else:
        verification_key = signer.public_key()

    remote = RemoteUser(
        id=user_id,
        encryption_certificate=encryption_key,
        verification_certificate=verification_key,
        is_monitor=bool(descriptor.get("isMonitor", False)),
    )
    if "decryptionKey" not in descriptor:
        return remote

    decryption_key = _load_decryption_key(_pem(descriptor, "decryptionKey"))
    if not keys_match(decryption_key, encryption_key):
        raise ValueError(f"decryption key of {user_id} does not match its encryption certificate")
    return AuthenticatedUser(remote=remote, decryption_key=decryption_key, signer=signer)


# ============================================================
# Commands
# ============================================================

def cmd_encrypt(args) -> int:
    """Sign and encrypt an AccessLog for receivers."""
    access_log = AccessLog.from_dict(load_json_arg(args.log))
    sender = sender_from_descriptor(load_json_arg(args.sender))
    receivers = [receiver_from_descriptor(load_json_arg(r)) for r in args.receiver]

    signed_log = sender.sign_log(access_log)
    envelope = sender.encrypt_log(signed_log, [r.as_remote() for r in receivers])

    # Sender last so it wins over receiver placeholders with the same id
    directory = InMemoryDirectory([*receivers, sender])
    for receiver in receivers:
        if isinstance(receiver, AuthenticatedUser):
            decrypt_log(envelope, receiver, directory)
            logger.debug("Envelope verified for %s", receiver.id)

    print(envelope.to_json())
    return 0


def _trusted_remote(descriptor: Dict[str, Any], ca_certificate: str) -> RemoteUser:
    return import_remote(
        _member(descriptor, "id"),
        _pem(descriptor, "encryptionCertificate"),
        _pem(descriptor, "verificationCertificate"),
        bool(descriptor.get("isMonitor", False)),
        ca_certificate,
    )


def cmd_decrypt(args) -> int:
    """
    Decrypt an envelope and print the verified AccessLog.

    Every identity the directory can answer with, the receiver's own
    included, has its certificates checked against the CA.
    """
    ca_certificate = config.load_ca_certificate(args.ca)

    descriptor = load_json_arg(args.receiver)
    receiver = import_authenticated(
        _member(descriptor, "id"),
        _pem(descriptor, "encryptionCertificate"),
        _pem(descriptor, "verificationCertificate"),
        _pem(descriptor, "decryptionKey"),
        _pem(descriptor, "signingKey"),
        is_monitor=bool(descriptor.get("isMonitor", False)),
    )

    if args.directory_url:
        directory = HttpDirectory(args.directory_url, ca_certificate)
    else:
        users = [_trusted_remote(load_json_arg(value), ca_certificate) for value in args.user or []]
        directory = InMemoryDirectory([*users, _trusted_remote(descriptor, ca_certificate)])

    if args.envelope == '-':
        envelope = sys.stdin.read()
    else:
        with open(args.envelope, 'r') as f:
            envelope = f.read()

    signed_log = decrypt_log(envelope, receiver, directory)
    print(json.dumps(signed_log.extract().to_dict(), indent=2))
    return 0


def cmd_keygen(args) -> int:
    """Issue credentials for a user, creating a development CA if needed."""
    output: Dict[str, Any] = {}
    if args.ca_cert and args.ca_key:
        ca_certificate = load_certificate(config.load_ca_certificate(args.ca_cert))
        with open(args.ca_key, 'rb') as f:
            ca_key = serialization.load_pem_private_key(f.read(), password=None)
        if not isinstance(ca_key, ec.EllipticCurvePrivateKey):
            raise ValueError("CA key must be an EC private key")
    elif args.ca_cert or args.ca_key:
        raise ValueError("--ca-cert and --ca-key must be given together")
    else:
        ca_key, ca_certificate = generate_ca()
        output["caCertificate"] = certificate_pem(ca_certificate)
        output["caKey"] = private_key_pem(ca_key)

    credentials = generate_credentials(args.id, ca_key, ca_certificate, args.signing_alg)
    output["descriptor"] = credentials.to_descriptor()

    if args.output:
        save_json(output, args.output)
        print(f"Credentials saved to: {args.output}", file=sys.stderr)
    else:
        print(json.dumps(output, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="itcrypto",
        description="Inverse transparency crypto CLI. Signs and encrypts AccessLogs "
                    "for multiple receivers and decrypts them again.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  itcrypto keygen --id monitor -o monitor.json
  itcrypto encrypt log.json sender.json owner.json > envelope.json
  itcrypto decrypt envelope.json --receiver owner.json --ca ca.pem --user sender.json
        """
    )
    parser.add_argument("-v", "--version", action="version", version=__version__)
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level")
    parser.add_argument("--log-json", action=argparse.BooleanOptionalAction,
                        default=config.LOG_JSON, help="JSON formatted logs")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # encrypt
    enc_parser = subparsers.add_parser("encrypt", help="Sign and encrypt an AccessLog")
    enc_parser.add_argument("log", help="JSON encoded AccessLog, signed by the sender")
    enc_parser.add_argument("sender", help='Sender descriptor: {"id", "signingKey", "verificationCertificate"}')
    enc_parser.add_argument("receiver", nargs="+",
                            help='Receiver descriptor: {"id", "encryptionCertificate", "decryptionKey"?}')
    enc_parser.set_defaults(func=cmd_encrypt)

    # decrypt
    dec_parser = subparsers.add_parser("decrypt", help="Decrypt and verify an envelope")
    dec_parser.add_argument("envelope", help="Envelope JSON file, or - for stdin")
    dec_parser.add_argument("-r", "--receiver", required=True, help="Full descriptor of the decrypting user")
    dec_parser.add_argument("--ca", default=None, help="Trusted CA certificate (PEM file)")
    dec_parser.add_argument("-u", "--user", action="append", help="Descriptor of a known user (repeatable)")
    dec_parser.add_argument("--directory-url", default=config.DIRECTORY_URL or None,
                            help="Resolve users from a directory service instead")
    dec_parser.set_defaults(func=cmd_decrypt)

    # keygen
    keygen_parser = subparsers.add_parser("keygen", help="Generate user credentials")
    keygen_parser.add_argument("--id", required=True, help="User id")
    keygen_parser.add_argument("--ca-cert", help="CA certificate (PEM file)")
    keygen_parser.add_argument("--ca-key", help="CA private key (PEM file)")
    keygen_parser.add_argument("--signing-alg", choices=["ES256", "EdDSA"], default=None,
                               help="Signing algorithm")
    keygen_parser.add_argument("-o", "--output", help="Output file for credentials")
    keygen_parser.set_defaults(func=cmd_keygen)

    return parser


def main(argv: List[str] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 2

    configure_logging(args.log_level, args.log_json, config.LOG_FILE or None)
    set_correlation_id()

    try:
        return args.func(args)
    except (ItCryptoError, ValueError, OSError) as e:
        logger.debug("%s failed", args.command, exc_info=True)
        if config.is_debug():
            traceback.print_exc(file=sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
