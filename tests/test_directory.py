"""
itcrypto Directory Test Suite

In-memory directories and the HTTP directory client.
"""

import json
import unittest

import requests

from itcrypto import (
    CertificateVerificationFailed,
    HttpDirectory,
    InMemoryDirectory,
    NotFound,
    RemoteUser,
    create_directory,
    generate_authenticated,
    import_authenticated,
)
from itcrypto.directory import decode_pem
from itcrypto.encoding import b64e
from itcrypto.keygen import certificate_pem, generate_ca

from support import development_ca, issue, make_access_log


def _response(status: int, body=None) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r._content = json.dumps(body).encode('utf-8') if body is not None else b""
    r.url = "http://directory.test"
    return r


class FakeSession:
    """Records requested URLs and answers from a table of user entries."""

    def __init__(self, entries, status=None):
        self.entries = entries
        self.status = status
        self.requested = []

    def get(self, url, timeout=None):
        self.requested.append((url, timeout))
        if self.status is not None:
            return _response(self.status)
        user_id = url.rsplit("/", 1)[-1]
        if user_id not in self.entries:
            return _response(404)
        return _response(200, self.entries[user_id])


class TestInMemoryDirectory(unittest.TestCase):

    def test_resolves_public_view(self):
        alice = generate_authenticated(user_id="alice")
        directory = create_directory([alice])
        resolved = directory("alice")
        self.assertIsInstance(resolved, RemoteUser)
        self.assertIs(resolved, alice.as_remote())
        self.assertIn("alice", directory)
        self.assertEqual(len(directory), 1)

    def test_unknown_user(self):
        directory = InMemoryDirectory()
        with self.assertRaises(NotFound) as ctx:
            directory("nobody")
        self.assertEqual(ctx.exception.user_id, "nobody")

    def test_add(self):
        directory = InMemoryDirectory()
        directory.add(generate_authenticated(user_id="bob"))
        self.assertEqual(directory("bob").id, "bob")


class TestDecodePem(unittest.TestCase):

    def test_plain_and_base64(self):
        pem = certificate_pem(development_ca()[1])
        self.assertEqual(decode_pem(pem), pem)
        self.assertEqual(decode_pem(b64e(pem.encode('ascii'))), pem)

    def test_rejects_other_values(self):
        for value in ("not base64!", b64e(b"hello"), 5, None, ["-----BEGIN"]):
            with self.assertRaises(ValueError):
                decode_pem(value)


class TestHttpDirectory(unittest.TestCase):

    def setUp(self):
        self.ca_pem = certificate_pem(development_ca()[1])
        self.alice = issue("alice")
        self.entries = {
            "alice": {
                "encryptionCertificate": b64e(self.alice.encryption_certificate.encode('ascii')),
                "verificationCertificate": self.alice.verification_certificate,
                "isMonitor": True,
            }
        }

    def test_resolves_and_verifies(self):
        session = FakeSession(self.entries)
        directory = HttpDirectory("http://directory.test/", self.ca_pem, session=session, timeout=2)
        user = directory("alice")

        self.assertEqual(user.id, "alice")
        self.assertTrue(user.is_monitor)
        self.assertEqual(session.requested, [("http://directory.test/users/alice", 2)])

    def test_never_caches(self):
        session = FakeSession(self.entries)
        directory = HttpDirectory("http://directory.test", self.ca_pem, session=session)
        directory("alice")
        directory("alice")
        self.assertEqual(len(session.requested), 2)

    def test_ids_are_quoted(self):
        session = FakeSession({})
        directory = HttpDirectory("http://directory.test", self.ca_pem, session=session)
        with self.assertRaises(NotFound):
            directory("a/b")
        self.assertTrue(session.requested[0][0].endswith("/users/a%2Fb"))

    def test_not_found(self):
        directory = HttpDirectory("http://directory.test", self.ca_pem, session=FakeSession({}))
        with self.assertRaises(NotFound):
            directory("bob")

    def test_server_errors_propagate(self):
        directory = HttpDirectory("http://directory.test", self.ca_pem,
                                  session=FakeSession({}, status=503))
        with self.assertRaises(requests.HTTPError):
            directory("alice")

    def test_incomplete_entry(self):
        entries = {"alice": {"encryptionCertificate": self.alice.encryption_certificate}}
        directory = HttpDirectory("http://directory.test", self.ca_pem, session=FakeSession(entries))
        with self.assertRaises(ValueError):
            directory("alice")

    def test_certificates_from_other_ca(self):
        _, rogue_ca = generate_ca()
        directory = HttpDirectory("http://directory.test", certificate_pem(rogue_ca),
                                  session=FakeSession(self.entries))
        with self.assertRaises(CertificateVerificationFailed):
            directory("alice")

    def test_decrypt_with_http_directory(self):
        monitor = import_authenticated(
            "alice", self.alice.encryption_certificate, self.alice.verification_certificate,
            self.alice.decryption_key, self.alice.signing_key, is_monitor=True,
        )
        owner = generate_authenticated(user_id="owner")
        envelope = monitor.encrypt_log(monitor.sign_log(make_access_log(monitor="alice")), [owner])

        directory = HttpDirectory("http://directory.test", self.ca_pem, session=FakeSession(self.entries))
        self.assertEqual(owner.decrypt_log(envelope, directory).extract().monitor, "alice")


if __name__ == "__main__":
    unittest.main(verbosity=2)
