"""
itcrypto Encryption Protocol

Builds the nested-signature, multi-recipient envelope:

    JWE (A256GCM, one ECDH-ES+A256KW entry per receiver)
      protected: {enc, sharedHeader: JWS(SharedHeader{shareId, owner, receivers})}
      plaintext: JWS(SharedLog{log: JWS(AccessLog), shareId, creator})

Used by a monitor for the first hand-off to the owner and by the owner for
every later re-share. A fresh share_id is generated on every call.
"""

from typing import TYPE_CHECKING, Sequence

from .claims import claimed_owner
from .encoding import generate_share_id
from .jwe import seal
from .logging_config import audit_log
from .logs import SharedHeader, SharedLog, SignedLog
from .models import Envelope, FlattenedJWS

if TYPE_CHECKING:
    from .users import AuthenticatedUser, RemoteUser

SHARED_HEADER_PARAM = "sharedHeader"


def build_envelope(signed_shared_log: FlattenedJWS, signed_shared_header: FlattenedJWS,
                   receivers: Sequence['RemoteUser']) -> Envelope:
    """
    Encrypt an already signed SharedLog for receivers.

    The signed SharedHeader travels in the protected header and is covered
    by the AEAD tag.
    """
    if not receivers:
        raise ValueError("At least one receiver is required")
    plaintext = signed_shared_log.to_json().encode('utf-8')
    protected = {SHARED_HEADER_PARAM: signed_shared_header.to_dict()}
    return seal(plaintext, protected, [r.encryption_certificate for r in receivers])


def encrypt_log(log: SignedLog, sender: 'AuthenticatedUser',
                receivers: Sequence['RemoteUser']) -> Envelope:
    """
    Encrypt a SignedLog for receivers in the name of sender.

    Args:
        log: AccessLog signed by its monitor
        sender: Creator of this sharing event (monitor or owner)
        receivers: Non-empty list of users who may decrypt

    Returns:
        The envelope

    Raises:
        ValueError: If receivers is empty or log's payload is unreadable
    """
    if not receivers:
        raise ValueError("At least one receiver is required")

    share_id = generate_share_id()
    shared_log = SharedLog(log=log, share_id=share_id, creator=sender.id)
    signed_shared_log = sender.sign(shared_log.as_bytes())

    # Unverified on purpose: the owner only populates the header here,
    # decryption re-derives it from the verified log.
    owner = claimed_owner(log).value
    header = SharedHeader(share_id=share_id, owner=owner, receivers=[r.id for r in receivers])
    signed_shared_header = sender.sign(header.as_bytes())

    envelope = build_envelope(signed_shared_log, signed_shared_header, receivers)
    audit_log.envelope_encrypted(creator=sender.id, share_id=share_id, receiver_count=len(receivers))
    return envelope
