"""
Firebase ID-token verification.

Browsers sign in with the Firebase client SDK (Google, GitHub or email and
password) and send the resulting ID token as `Authorization: Bearer <token>`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional, Protocol

from firebase_admin import auth as firebase_auth

from portal.errors import AuthenticationError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedUser:
    uid: str
    email: str = ""
    email_verified: bool = False
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    provider: Optional[str] = None


class TokenVerifier(Protocol):
    def verify(self, id_token: str) -> AuthenticatedUser:
        ...

    def lookup(self, uid: str) -> AuthenticatedUser:
        """Fetch the current account state, like `user.reload()` in the browser."""
        ...


class InMemoryTokenVerifier:
    """Static token table for development and tests."""

    def __init__(self):
        self.tokens: Dict[str, str] = {}
        self.users: Dict[str, AuthenticatedUser] = {}

    def register(self, token: str, user: AuthenticatedUser) -> None:
        self.tokens[token] = user.uid
        self.users[user.uid] = user

    def set_email_verified(self, uid: str, verified: bool = True) -> None:
        self.users[uid] = replace(self.users[uid], email_verified=verified)

    def verify(self, id_token: str) -> AuthenticatedUser:
        uid = self.tokens.get(id_token)
        if uid is None:
            raise AuthenticationError("Invalid or expired sign-in token.")
        return self.users[uid]

    def lookup(self, uid: str) -> AuthenticatedUser:
        user = self.users.get(uid)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    def reset(self) -> None:
        self.tokens.clear()
        self.users.clear()


class FirebaseTokenVerifier:
    """Verifies tokens issued by Firebase Authentication."""

    def __init__(self, app=None, check_revoked: bool = False):
        if app is None:
            from portal.firebase import get_firebase_app

            app = get_firebase_app()
        self.app = app
        self.check_revoked = check_revoked

    def verify(self, id_token: str) -> AuthenticatedUser:
        try:
            claims = firebase_auth.verify_id_token(
                id_token, app=self.app, check_revoked=self.check_revoked
            )
        except (
            firebase_auth.InvalidIdTokenError,
            firebase_auth.RevokedIdTokenError,
            firebase_auth.UserDisabledError,
        ) as e:
            logger.warning("Rejected ID token: %s", e)
            raise AuthenticationError("Invalid or expired sign-in token.") from e

        return AuthenticatedUser(
            uid=claims["uid"],
            email=claims.get("email") or "",
            email_verified=bool(claims.get("email_verified", False)),
            display_name=claims.get("name"),
            photo_url=claims.get("picture"),
            provider=(claims.get("firebase") or {}).get("sign_in_provider"),
        )

    def lookup(self, uid: str) -> AuthenticatedUser:
        try:
            record = firebase_auth.get_user(uid, app=self.app)
        except firebase_auth.UserNotFoundError as e:
            raise NotFoundError("User not found.") from e

        provider = record.provider_data[0].provider_id if record.provider_data else None
        return AuthenticatedUser(
            uid=record.uid,
            email=record.email or "",
            email_verified=bool(record.email_verified),
            display_name=record.display_name,
            photo_url=record.photo_url,
            provider=provider,
        )
