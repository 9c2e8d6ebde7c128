import unittest
from unittest.mock import MagicMock, patch

from firebase_admin import auth as firebase_auth

from portal.auth import AuthenticatedUser, FirebaseTokenVerifier, InMemoryTokenVerifier
from portal.errors import AuthenticationError, NotFoundError


class InMemoryTokenVerifierTests(unittest.TestCase):
    def test_register_verify_lookup(self):
        verifier = InMemoryTokenVerifier()
        verifier.register("tok", AuthenticatedUser(uid="u1", email="a@example.com"))
        self.assertEqual(verifier.verify("tok").uid, "u1")
        self.assertFalse(verifier.lookup("u1").email_verified)

        verifier.set_email_verified("u1")
        self.assertTrue(verifier.lookup("u1").email_verified)
        self.assertTrue(verifier.verify("tok").email_verified)

        with self.assertRaises(AuthenticationError):
            verifier.verify("other")
        with self.assertRaises(NotFoundError):
            verifier.lookup("u2")

        verifier.reset()
        with self.assertRaises(AuthenticationError):
            verifier.verify("tok")


class FirebaseTokenVerifierTests(unittest.TestCase):
    def setUp(self):
        self.verifier = FirebaseTokenVerifier(app=MagicMock())

    @patch("portal.auth.firebase_auth.verify_id_token")
    def test_verify_maps_claims(self, mock_verify):
        mock_verify.return_value = {
            "uid": "u1",
            "email": "a@example.com",
            "email_verified": True,
            "name": "Ada",
            "picture": "https://example.com/a.png",
            "firebase": {"sign_in_provider": "github.com"},
        }
        user = self.verifier.verify("token")
        self.assertEqual(
            user,
            AuthenticatedUser(
                uid="u1",
                email="a@example.com",
                email_verified=True,
                display_name="Ada",
                photo_url="https://example.com/a.png",
                provider="github.com",
            ),
        )
        self.assertEqual(mock_verify.call_args.args, ("token",))

    @patch("portal.auth.firebase_auth.verify_id_token")
    def test_invalid_token(self, mock_verify):
        mock_verify.side_effect = firebase_auth.InvalidIdTokenError("bad token")
        with self.assertRaises(AuthenticationError):
            self.verifier.verify("token")

    @patch("portal.auth.firebase_auth.get_user")
    def test_lookup(self, mock_get_user):
        provider = MagicMock(provider_id="password")
        mock_get_user.return_value = MagicMock(
            uid="u1",
            email="a@example.com",
            email_verified=True,
            display_name=None,
            photo_url=None,
            provider_data=[provider],
        )
        user = self.verifier.lookup("u1")
        self.assertTrue(user.email_verified)
        self.assertEqual(user.provider, "password")

    @patch("portal.auth.firebase_auth.get_user")
    def test_lookup_missing_user(self, mock_get_user):
        mock_get_user.side_effect = firebase_auth.UserNotFoundError("gone")
        with self.assertRaises(NotFoundError):
            self.verifier.lookup("u1")


if __name__ == "__main__":
    unittest.main()
