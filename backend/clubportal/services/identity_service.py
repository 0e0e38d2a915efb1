"""Google sign-in verification and first-sign-in provisioning"""

import logging
from dataclasses import dataclass
from typing import Optional

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from clubportal.config import settings
from clubportal.exceptions import EmailInUse, NotAuthenticated, WrongDomain
from clubportal.models import User, UserRole
from clubportal.services.change_feed import ChangeFeed, ChangeOperation, change_feed
from clubportal.services.snapshots import publish_instance
from clubportal.services.transaction import Transaction, TransactionRunner

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


@dataclass
class Identity:
    """Verified identity returned by the sign-in provider"""
    uid: str
    email: str
    display_name: str = ""


class GoogleIdentityVerifier:
    """Verify Google ID tokens sent by the Google Sign-In button"""

    def __init__(self, client_id: Optional[str] = None):
        self.client_id = client_id or settings.google_client_id

    def verify(self, token: str) -> Identity:
        """
        Verify a Google ID token.

        Raises:
            NotAuthenticated: Token is invalid, expired or not for this client
        """
        try:
            idinfo = id_token.verify_oauth2_token(
                token,
                google_requests.Request(),
                self.client_id,
            )
        except ValueError as e:
            logger.warning(f"Invalid Google ID token: {e}")
            raise NotAuthenticated("Invalid Google ID token")

        if idinfo.get("iss") not in GOOGLE_ISSUERS:
            logger.warning(f"Google ID token has unexpected issuer {idinfo.get('iss')}")
            raise NotAuthenticated("Invalid Google ID token issuer")
        if not idinfo.get("email") or not idinfo.get("email_verified", False):
            raise NotAuthenticated("Google account email is not verified")

        return Identity(
            uid=idinfo["sub"],
            email=idinfo["email"],
            display_name=idinfo.get("name", ""),
        )


def check_email_domain(email: str, domain: Optional[str] = None) -> None:
    """
    Raises:
        WrongDomain: ``email`` is not on the institutional domain
    """
    domain = (domain or settings.allowed_email_domain).lower().lstrip("@")
    if not email or not email.lower().endswith(f"@{domain}"):
        raise WrongDomain(f"Sign in with your @{domain} account")


class SignInService:
    """Turns a verified identity into a portal user"""

    def __init__(self, runner: TransactionRunner, feed: ChangeFeed = change_feed):
        self.runner = runner
        self.feed = feed

    async def sign_in(self, identity: Identity) -> User:
        """
        Return the user for ``identity``, creating it on first sign-in.

        Raises:
            WrongDomain: Email outside the institutional domain
            EmailInUse: Email already held by a user with another uid
        """
        check_email_domain(identity.email)

        async def body(tx: Transaction):
            user = await tx.get(User, identity.uid)
            if user is not None:
                return user, False
            if await tx.scalars(select(User.id).where(User.email == identity.email)):
                raise EmailInUse()
            return tx.add(
                User(
                    id=identity.uid,
                    email=identity.email,
                    name=identity.display_name or identity.email.split("@")[0],
                    role=UserRole.MEMBER.value,
                    departments=[],
                    total_points=0,
                    project_id=None,
                )
            ), True

        try:
            user, created = await self.runner.run(body, operation="sign_in")
        except IntegrityError:
            # Concurrent first sign-in already inserted this uid or email
            try:
                user, created = await self.runner.run(body, operation="sign_in")
            except IntegrityError as e:
                raise EmailInUse() from e
        if created:
            logger.info(f"Provisioned new user {user.id} ({user.email})")
            publish_instance(self.feed, "users", user, ChangeOperation.ADDED)
        return user
