"""
itcrypto Envelope Protocol Test Suite

End-to-end sharing scenarios between a monitor, an owner and third
parties, and the attacks decryption must reject:

- Tampering with any protected part of the envelope
- Impersonating the creator of a SharedLog or SharedHeader
- Forging an AccessLog in a monitor's name
- Monitors sharing with anyone but the owner
- Re-sharing by parties other than monitor and owner
- Splicing headers and logs of different sharing events
"""

import json
import unittest

from itcrypto import (
    DecryptionFailed,
    Envelope,
    InvariantCode,
    InvariantViolation,
    LogDecryptor,
    MalformedEnvelope,
    NotFound,
    SharedHeader,
    SharedLog,
    SignedLog,
    VerificationFailed,
    build_envelope,
    create_directory,
    decrypt_log,
    encrypt_log,
    generate_authenticated,
)
from itcrypto.encoding import b64url_decode
from itcrypto.jwe import open_envelope, seal

from support import make_access_log, modify_first_char, seal_single_recipient


class ProtocolTestCase(unittest.TestCase):
    """Users and a directory shared by the protocol suites."""

    def setUp(self):
        self.monitor = generate_authenticated(user_id="monitor", is_monitor=True)
        self.owner = generate_authenticated(user_id="owner")
        self.x = generate_authenticated(user_id="x")
        self.y = generate_authenticated(user_id="y")
        self.directory = create_directory([self.monitor, self.owner, self.x, self.y])

        self.log = make_access_log()
        self.signed = self.monitor.sign_log(self.log)

    def hand_off(self) -> Envelope:
        """Monitor shares the signed log with its owner."""
        return self.monitor.encrypt_log(self.signed, [self.owner])

    def forge(self, log_signer, shared_log, header_signer, header, receivers) -> Envelope:
        """Assemble an envelope from arbitrarily signed layers."""
        return build_envelope(
            log_signer.sign(shared_log.as_bytes()),
            header_signer.sign(header.as_bytes()),
            receivers,
        )

    def assertViolation(self, code, envelope, receiver):
        with self.assertRaises(InvariantViolation) as ctx:
            receiver.decrypt_log(envelope, self.directory)
        self.assertEqual(ctx.exception.code, code)


class TestRoundTrip(ProtocolTestCase):

    def test_owner_receives_log_from_monitor(self):
        verified = self.owner.decrypt_log(self.hand_off(), self.directory)
        self.assertIsInstance(verified, SignedLog)
        self.assertEqual(verified, self.signed)
        self.assertEqual(verified.extract(), self.log)

    def test_envelope_as_json_and_dict(self):
        envelope = self.hand_off()
        for form in (envelope.to_json(), envelope.to_json().encode('utf-8'), envelope.to_dict()):
            verified = decrypt_log(form, self.owner, self.directory)
            self.assertEqual(verified.extract(), self.log)

    def test_owner_reshares_with_multiple_receivers(self):
        verified = self.owner.decrypt_log(self.hand_off(), self.directory)
        envelope = self.owner.encrypt_log(verified, [self.x, self.y])

        self.assertEqual(len(envelope.recipients), 2)
        for receiver in (self.x, self.y):
            self.assertEqual(receiver.decrypt_log(envelope, self.directory).extract(), self.log)

    def test_reshare_chain_keeps_monitor_signature(self):
        first = self.owner.decrypt_log(self.hand_off(), self.directory)
        second = self.x.decrypt_log(self.owner.encrypt_log(first, [self.x]), self.directory)
        third = self.owner.decrypt_log(
            self.owner.encrypt_log(first, [self.owner, self.y]), self.directory
        )
        self.assertEqual(second, self.signed)
        self.assertEqual(third, self.signed)

    def test_fresh_share_id_per_encryption(self):
        share_ids = set()
        for _ in range(3):
            plaintext, _ = open_envelope(self.hand_off(), self.owner.decryption_key)
            payload = b64url_decode(json.loads(plaintext)["payload"])
            share_ids.add(SharedLog.from_bytes(payload).share_id)
        self.assertEqual(len(share_ids), 3)

    def test_mixed_signing_algorithms(self):
        monitor = generate_authenticated(signing_alg="EdDSA", user_id="monitor")
        directory = create_directory([monitor, self.owner])
        envelope = monitor.encrypt_log(monitor.sign_log(self.log), [self.owner])
        self.assertEqual(self.owner.decrypt_log(envelope, directory).extract(), self.log)

    def test_decryptor_is_reusable(self):
        decryptor = LogDecryptor(self.owner, self.directory)
        self.assertEqual(decryptor.decrypt(self.hand_off()), decryptor.decrypt(self.hand_off()))

    def test_flattened_single_recipient_envelope(self):
        data = self.hand_off().to_dict()
        recipient = data.pop("recipients")[0]
        data.update(recipient)
        self.assertEqual(self.owner.decrypt_log(data, self.directory).extract(), self.log)

    def test_key_parameters_in_protected_header(self):
        shared_log = SharedLog(log=self.signed, share_id="s", creator="monitor")
        header = SharedHeader(share_id="s", owner="owner", receivers=["owner"])
        data = seal_single_recipient(
            self.monitor.sign(shared_log.as_bytes()).to_json().encode('utf-8'),
            {"sharedHeader": self.monitor.sign(header.as_bytes()).to_dict()},
            self.owner.encryption_certificate,
        )
        self.assertEqual(self.owner.decrypt_log(json.dumps(data), self.directory).extract(), self.log)

    def test_encrypt_requires_receivers(self):
        with self.assertRaises(ValueError):
            encrypt_log(self.signed, self.monitor, [])


class TestConfidentiality(ProtocolTestCase):

    def test_non_receiver_cannot_decrypt(self):
        with self.assertRaises(DecryptionFailed) as ctx:
            self.x.decrypt_log(self.hand_off(), self.directory)
        self.assertEqual(str(ctx.exception), "decryption operation failed")

    def test_tampered_members_fail_identically(self):
        for member in ("protected", "iv", "ciphertext", "tag"):
            with self.subTest(member=member):
                data = self.hand_off().to_dict()
                data[member] = modify_first_char(data[member])
                with self.assertRaises(DecryptionFailed):
                    self.owner.decrypt_log(data, self.directory)

    def test_tampered_wrapped_key(self):
        data = self.hand_off().to_dict()
        recipient = data["recipients"][0]
        recipient["encrypted_key"] = modify_first_char(recipient["encrypted_key"])
        with self.assertRaises(DecryptionFailed):
            self.owner.decrypt_log(data, self.directory)

    def test_protected_header_cannot_be_moved(self):
        a = self.hand_off().to_dict()
        b = self.hand_off().to_dict()
        a["protected"] = b["protected"]
        with self.assertRaises(DecryptionFailed):
            self.owner.decrypt_log(a, self.directory)


class TestAuthenticity(ProtocolTestCase):

    def test_impersonated_shared_log_creator(self):
        shared_log = SharedLog(log=self.signed, share_id="s", creator="owner")
        header = SharedHeader(share_id="s", owner="owner", receivers=["y"])
        envelope = self.forge(self.x, shared_log, self.x, header, [self.y])

        with self.assertRaises(VerificationFailed) as ctx:
            self.y.decrypt_log(envelope, self.directory)
        self.assertEqual(ctx.exception.which, "SharedLog")
        self.assertEqual(str(ctx.exception), "Could not verify SharedLog.")

    def test_shared_header_signed_by_someone_else(self):
        shared_log = SharedLog(log=self.signed, share_id="s", creator="owner")
        header = SharedHeader(share_id="s", owner="owner", receivers=["y"])
        envelope = self.forge(self.owner, shared_log, self.x, header, [self.y])

        with self.assertRaises(VerificationFailed) as ctx:
            self.y.decrypt_log(envelope, self.directory)
        self.assertEqual(ctx.exception.which, "SharedHeader")

    def test_forged_access_log(self):
        # x claims the monitor accessed x's data
        forged = self.x.sign_log(make_access_log(monitor="monitor", owner="x"))
        envelope = self.x.encrypt_log(forged, [self.y])

        with self.assertRaises(VerificationFailed) as ctx:
            self.y.decrypt_log(envelope, self.directory)
        self.assertEqual(ctx.exception.which, "AccessLog")

    def test_directory_returning_other_identity(self):
        envelope = self.hand_off()
        with self.assertRaises(VerificationFailed):
            decrypt_log(envelope, self.owner, lambda user_id: self.x.as_remote())


class TestSharingInvariants(ProtocolTestCase):

    def test_monitor_shares_with_owner_and_third_party(self):
        envelope = self.monitor.encrypt_log(self.signed, [self.owner, self.x])
        self.assertViolation(InvariantCode.MONITOR_RESHARE, envelope, self.owner)
        self.assertViolation(InvariantCode.MONITOR_RESHARE, envelope, self.x)

    def test_monitor_shares_with_third_party_only(self):
        envelope = self.monitor.encrypt_log(self.signed, [self.x])
        self.assertViolation(InvariantCode.MONITOR_RESHARE, envelope, self.x)

    def test_third_party_reshares(self):
        verified = self.owner.decrypt_log(self.hand_off(), self.directory)
        received = self.x.decrypt_log(self.owner.encrypt_log(verified, [self.x]), self.directory)
        envelope = self.x.encrypt_log(received, [self.y])
        self.assertViolation(InvariantCode.UNAUTHORIZED_CREATOR, envelope, self.y)

    def test_share_id_mismatch(self):
        shared_log = SharedLog(log=self.signed, share_id="a", creator="owner")
        header = SharedHeader(share_id="b", owner="owner", receivers=["x"])
        envelope = self.forge(self.owner, shared_log, self.owner, header, [self.x])
        self.assertViolation(InvariantCode.SHARE_ID_MISMATCH, envelope, self.x)

    def test_spliced_sharing_events(self):
        verified = self.owner.decrypt_log(self.hand_off(), self.directory)
        to_x = self.owner.encrypt_log(verified, [self.x])
        to_y = self.owner.encrypt_log(verified, [self.y])

        plaintext, _ = open_envelope(to_x, self.x.decryption_key)
        _, header = open_envelope(to_y, self.y.decryption_key)
        envelope = seal(plaintext, {"sharedHeader": header["sharedHeader"]}, [self.y.encryption_certificate])
        self.assertViolation(InvariantCode.SHARE_ID_MISMATCH, envelope, self.y)

    def test_owner_mismatch(self):
        shared_log = SharedLog(log=self.signed, share_id="s", creator="owner")
        header = SharedHeader(share_id="s", owner="x", receivers=["x"])
        envelope = self.forge(self.owner, shared_log, self.owner, header, [self.x])
        self.assertViolation(InvariantCode.OWNER_MISMATCH, envelope, self.x)

    def test_receiver_not_listed(self):
        shared_log = SharedLog(log=self.signed, share_id="s", creator="owner")
        header = SharedHeader(share_id="s", owner="owner", receivers=["x"])
        envelope = self.forge(self.owner, shared_log, self.owner, header, [self.x, self.y])

        self.assertEqual(self.x.decrypt_log(envelope, self.directory), self.signed)
        self.assertViolation(InvariantCode.RECEIVER_NOT_LISTED, envelope, self.y)


class TestMalformedContent(ProtocolTestCase):

    def _header(self):
        shared_header = SharedHeader(share_id="s", owner="owner", receivers=["owner"])
        return {"sharedHeader": self.monitor.sign(shared_header.as_bytes()).to_dict()}

    def test_plaintext_not_a_jws(self):
        envelope = seal(b"not json", self._header(), [self.owner.encryption_certificate])
        with self.assertRaises(MalformedEnvelope):
            self.owner.decrypt_log(envelope, self.directory)

    def test_missing_shared_header(self):
        plaintext = self.monitor.sign(b"{}").to_json().encode('utf-8')
        envelope = seal(plaintext, {}, [self.owner.encryption_certificate])
        with self.assertRaises(MalformedEnvelope):
            self.owner.decrypt_log(envelope, self.directory)

    def test_signed_garbage_shared_log(self):
        plaintext = self.monitor.sign(b'{"creator": "monitor"}').to_json().encode('utf-8')
        envelope = seal(plaintext, self._header(), [self.owner.encryption_certificate])
        with self.assertRaises(MalformedEnvelope):
            self.owner.decrypt_log(envelope, self.directory)

    def test_unparseable_envelope(self):
        for value in ("{not json", "[]", {"protected": "x"}):
            with self.subTest(value=value):
                with self.assertRaises(MalformedEnvelope):
                    self.owner.decrypt_log(value, self.directory)


class TestDirectoryFailures(ProtocolTestCase):

    def test_unknown_creator(self):
        directory = create_directory([self.owner])
        with self.assertRaises(NotFound) as ctx:
            self.owner.decrypt_log(self.hand_off(), directory)
        self.assertEqual(ctx.exception.user_id, "monitor")

    def test_directory_errors_propagate_unchanged(self):
        class Unavailable(Exception):
            pass

        def directory(user_id):
            raise Unavailable(user_id)

        with self.assertRaises(Unavailable):
            self.owner.decrypt_log(self.hand_off(), directory)

    def test_rejections_are_audited(self):
        with self.assertLogs("itcrypto.audit", level="WARNING") as logs:
            with self.assertRaises(DecryptionFailed):
                self.x.decrypt_log(self.hand_off(), self.directory)
        self.assertIn("DECRYPTION_REJECTED", logs.output[0])


if __name__ == "__main__":
    unittest.main(verbosity=2)
