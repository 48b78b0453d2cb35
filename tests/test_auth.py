import tempfile
import unittest

import jwt

from blogcms.entities import AuthUser
from blogcms.services import auth
from tests.support import ADMIN_PASSWORD, ADMIN_USERNAME, make_settings


class TestPasswords(unittest.TestCase):
    def test_hash_and_verify(self):
        password_hash = auth.hash_password("s3cret", rounds=4)
        self.assertTrue(password_hash.startswith("$2"))
        self.assertTrue(auth.verify_password("s3cret", password_hash))
        self.assertFalse(auth.verify_password("S3cret", password_hash))

    def test_malformed_hash_never_matches(self):
        self.assertFalse(auth.verify_password("anything", "not-a-bcrypt-hash"))
        self.assertFalse(auth.verify_password("", auth.hash_password("x", rounds=4)))


class TestAuthenticateUser(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.settings = make_settings(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_exact_pair_succeeds(self):
        user = auth.authenticate_user(ADMIN_USERNAME, ADMIN_PASSWORD, self.settings)
        self.assertEqual(user, AuthUser(username=ADMIN_USERNAME, is_admin=True))

    def test_any_other_pair_fails(self):
        cases = [
            (ADMIN_USERNAME, "wrong"),
            ("Admin", ADMIN_PASSWORD),
            ("someone", ADMIN_PASSWORD),
            ("", ADMIN_PASSWORD),
            (ADMIN_USERNAME, ""),
            (ADMIN_USERNAME, ADMIN_PASSWORD + " "),
        ]
        for username, password in cases:
            with self.subTest(username=username, password=password):
                self.assertIsNone(auth.authenticate_user(username, password, self.settings))

    def test_unconfigured_admin_always_fails(self):
        settings = make_settings(self.tmp.name, admin_username=None, admin_password_hash=None)
        self.assertIsNone(auth.authenticate_user(ADMIN_USERNAME, ADMIN_PASSWORD, settings))


class TestTokens(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.settings = make_settings(self.tmp.name)
        self.user = AuthUser(username=ADMIN_USERNAME, is_admin=True)

    def tearDown(self):
        self.tmp.cleanup()

    def test_round_trip(self):
        token = auth.create_token(self.user, self.settings)
        self.assertEqual(auth.verify_token(token, self.settings), self.user)

    def test_token_claims(self):
        token = auth.create_token(self.user, self.settings)
        payload = jwt.decode(token, "test-secret", algorithms=["HS256"])
        self.assertEqual(payload["username"], ADMIN_USERNAME)
        self.assertTrue(payload["isAdmin"])
        self.assertEqual(payload["exp"] - payload["iat"], 600)

    def test_expired_token_is_rejected(self):
        expired_settings = make_settings(self.tmp.name, token_ttl_seconds=-10)
        token = auth.create_token(self.user, expired_settings)
        self.assertIsNone(auth.verify_token(token, self.settings))

    def test_wrong_secret_is_rejected(self):
        other = make_settings(self.tmp.name, jwt_secret="another-secret")
        token = auth.create_token(self.user, other)
        self.assertIsNone(auth.verify_token(token, self.settings))

    def test_tampered_and_garbage_tokens_are_rejected(self):
        token = auth.create_token(self.user, self.settings)
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        self.assertIsNone(auth.verify_token(tampered, self.settings))
        self.assertIsNone(auth.verify_token("garbage", self.settings))

    def test_token_without_expiry_is_rejected(self):
        token = jwt.encode({"username": ADMIN_USERNAME, "isAdmin": True}, "test-secret", algorithm="HS256")
        self.assertIsNone(auth.verify_token(token, self.settings))


if __name__ == "__main__":
    unittest.main()
