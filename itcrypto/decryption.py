"""
itcrypto Decryption Protocol

Undoes the nesting built by the encryption protocol and releases a
SignedLog only once every layer has been verified.

Steps, each terminal on failure:
1. AEAD open with the receiver's decryption key      -> DecryptionFailed
2. Parse SharedLog JWS and embedded SharedHeader JWS  -> MalformedEnvelope
3. Resolve claimed creator, verify SharedLog and
   SharedHeader against that identity                -> VerificationFailed
4. Resolve claimed monitor, verify the AccessLog      -> VerificationFailed
5. Enforce the sharing invariants                     -> InvariantViolation

Directory lookups happen at steps 3 and 4; whatever the directory raises
is propagated unchanged. Reading a claimed id to know whom to ask is safe
because the signature check that follows rejects any payload whose claim
does not match its actual signer.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Tuple, Union

from .claims import ClaimedId, claimed_creator, claimed_monitor
from .encoding import b64url_decode
from .encryption import SHARED_HEADER_PARAM
from .errors import ItCryptoError, MalformedEnvelope, VerificationFailed
from .invariants import check_sharing_invariants
from .jwe import open_envelope
from .logging_config import audit_log
from .logs import AccessLog, SharedHeader, SharedLog, SignedLog
from .models import Envelope, FlattenedJWS
from .signing import verify_jws

if TYPE_CHECKING:
    from .users import AuthenticatedUser, RemoteUser

logger = logging.getLogger(__name__)

Directory = Callable[[str], 'RemoteUser']


class DecryptionStage(str, Enum):
    """Pipeline stage, reported with rejected envelopes."""
    OPEN = "OPEN"
    PARSE = "PARSE"
    VERIFY_CREATOR = "VERIFY_CREATOR"
    VERIFY_MONITOR = "VERIFY_MONITOR"
    INVARIANTS = "INVARIANTS"


@dataclass(frozen=True)
class OpenedEnvelope:
    """Signed layers recovered from an opened envelope, none verified yet."""
    jws_shared_log: FlattenedJWS
    jws_shared_header: FlattenedJWS


class LogDecryptor:
    """
    Decrypts envelopes for one receiving user.

    Holds no state between calls; a single instance may be shared freely.
    """

    def __init__(self, receiver: 'AuthenticatedUser', directory: Directory):
        self.receiver = receiver
        self.directory = directory

    def decrypt(self, envelope: Union[Envelope, str, bytes, Dict[str, Any]]) -> SignedLog:
        """
        Decrypt and verify an envelope.

        Returns:
            The verified SignedLog; call extract() for the AccessLog

        Raises:
            DecryptionFailed, MalformedEnvelope, VerificationFailed,
            InvariantViolation, or whatever the directory raises
        """
        stage = DecryptionStage.OPEN
        try:
            plaintext, protected_header = open_envelope(
                self._parse_envelope(envelope), self.receiver.decryption_key
            )

            stage = DecryptionStage.PARSE
            opened = self._parse(plaintext, protected_header)

            stage = DecryptionStage.VERIFY_CREATOR
            shared_log, shared_header = self._verify_creator(opened)

            stage = DecryptionStage.VERIFY_MONITOR
            access_log = self._verify_monitor(shared_log)

            stage = DecryptionStage.INVARIANTS
            check_sharing_invariants(access_log, shared_log, shared_header, self.receiver.id)
        except ItCryptoError as e:
            audit_log.decryption_rejected(
                receiver=self.receiver.id, stage=stage.value, reason=type(e).__name__
            )
            raise

        audit_log.envelope_decrypted(
            receiver=self.receiver.id, creator=shared_log.creator, share_id=shared_log.share_id
        )
        return shared_log.log

    # --------------------------------------------------------
    # Steps
    # --------------------------------------------------------

    @staticmethod
    def _parse_envelope(envelope: Union[Envelope, str, bytes, Dict[str, Any]]) -> Envelope:
        try:
            return Envelope.parse(envelope)
        except ValueError as e:
            raise MalformedEnvelope(f"envelope is not a valid JWE ({type(e).__name__})") from None

    @staticmethod
    def _parse(plaintext: bytes, protected_header: Dict[str, Any]) -> OpenedEnvelope:
        try:
            obj = json.loads(plaintext)
            if not isinstance(obj, dict):
                raise ValueError("plaintext is not a JSON object")
            jws_shared_log = FlattenedJWS.model_validate(obj)
        except ValueError:
            raise MalformedEnvelope("plaintext does not contain a SharedLog JWS") from None

        header_obj = protected_header.get(SHARED_HEADER_PARAM)
        if not isinstance(header_obj, dict):
            raise MalformedEnvelope("protected header does not contain a SharedHeader JWS")
        try:
            jws_shared_header = FlattenedJWS.model_validate(header_obj)
        except ValueError:
            raise MalformedEnvelope("protected header does not contain a SharedHeader JWS") from None

        return OpenedEnvelope(jws_shared_log=jws_shared_log, jws_shared_header=jws_shared_header)

    def _resolve(self, claim: ClaimedId, layer: str) -> 'RemoteUser':
        user = self.directory(claim.value).as_remote()
        if user.id != claim.value:
            logger.warning("Directory returned %s for %s", user.id, claim.value)
            raise VerificationFailed(layer)
        return user

    def _verify_creator(self, opened: OpenedEnvelope) -> Tuple[SharedLog, SharedHeader]:
        try:
            claim = claimed_creator(opened.jws_shared_log)
        except ValueError as e:
            raise MalformedEnvelope(str(e)) from None

        creator = self._resolve(claim, "SharedLog")
        if not verify_jws(opened.jws_shared_log, creator.verification_certificate):
            raise VerificationFailed("SharedLog")
        if not verify_jws(opened.jws_shared_header, creator.verification_certificate):
            raise VerificationFailed("SharedHeader")

        try:
            shared_log = SharedLog.from_bytes(b64url_decode(opened.jws_shared_log.payload))
            shared_header = SharedHeader.from_bytes(b64url_decode(opened.jws_shared_header.payload))
        except ValueError as e:
            raise MalformedEnvelope(str(e)) from None
        return shared_log, shared_header

    def _verify_monitor(self, shared_log: SharedLog) -> AccessLog:
        try:
            claim = claimed_monitor(shared_log.log)
        except ValueError as e:
            raise MalformedEnvelope(str(e)) from None

        monitor = self._resolve(claim, "AccessLog")
        if not verify_jws(shared_log.log, monitor.verification_certificate):
            raise VerificationFailed("AccessLog")

        try:
            return shared_log.log.extract()
        except ValueError as e:
            raise MalformedEnvelope(str(e)) from None


def decrypt_log(envelope: Union[Envelope, str, bytes, Dict[str, Any]],
                receiver: 'AuthenticatedUser', directory: Directory) -> SignedLog:
    """
    Convenience function to decrypt an envelope.

    Args:
        envelope: Envelope model, JSON text or decoded dict
        receiver: The user decrypting
        directory: Resolves a user id to a RemoteUser
    """
    return LogDecryptor(receiver, directory).decrypt(envelope)
