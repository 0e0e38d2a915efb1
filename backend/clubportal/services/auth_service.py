"""Authentication service for JWT token management and password hashing"""

import time
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import bcrypt
from clubportal.config import settings

TOKEN_ISSUER = "clubportal-api"
REFRESH_TOKEN_HOURS = 168  # 7 days


class AuthService:
    """Service for portal-issued JWT tokens and admin passwords"""

    @staticmethod
    def hash_password(password: str) -> str:
        """
        Hash a password using bcrypt with 12 salt rounds

        Args:
            password: Plain text password

        Returns:
            Hashed password string
        """
        salt = bcrypt.gensalt(rounds=12)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
        """
        Verify a password against its hash

        Users provisioned through Google sign-in have no password hash and
        never match.
        """
        if not hashed_password:
            return False
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))

    @staticmethod
    def _secret() -> str:
        # jwt_secret wins over the general secret key when both are set
        return settings.jwt_secret or settings.secret_key

    @staticmethod
    def access_token_lifetime() -> int:
        """Access token lifetime in seconds"""
        return settings.jwt_expiration_hours * 3600

    @staticmethod
    def generate_token(
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None,
        token_type: str = "access"
    ) -> str:
        """
        Generate a JWT token with the provided data

        Args:
            data: Dictionary of claims to include in the token
            expires_delta: Optional expiration time delta (defaults to
                ``jwt_expiration_hours`` for access, 7 days for refresh)
            token_type: Type of token ('access' or 'refresh')

        Returns:
            Encoded JWT token string
        """
        to_encode = data.copy()

        now = datetime.utcnow()
        if expires_delta is None:
            hours = settings.jwt_expiration_hours if token_type == "access" else REFRESH_TOKEN_HOURS
            expires_delta = timedelta(hours=hours)

        to_encode.update({
            "exp": now + expires_delta,
            "iat": now,
            "iss": TOKEN_ISSUER,
            "type": token_type
        })

        return jwt.encode(to_encode, AuthService._secret(), algorithm=settings.jwt_algorithm)

    @staticmethod
    def decode_token(token: str) -> Optional[Dict[str, Any]]:
        """
        Decode and validate a JWT token

        Returns:
            Dictionary of token claims if valid, None otherwise
        """
        try:
            return jwt.decode(
                token,
                AuthService._secret(),
                algorithms=[settings.jwt_algorithm],
                issuer=TOKEN_ISSUER,
            )
        except JWTError:
            return None

    @staticmethod
    def validate_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
        """
        Validate a JWT token including signature, expiration, and type

        Args:
            token: JWT token string to validate
            token_type: Expected token type ('access' or 'refresh')

        Returns:
            Dictionary of token claims if valid, None otherwise
        """
        payload = AuthService.decode_token(token)

        if not payload or payload.get("type") != token_type:
            return None

        if not payload.get("sub"):
            return None

        return payload

    @staticmethod
    def remaining_lifetime(payload: Dict[str, Any]) -> int:
        """Seconds until a decoded token expires"""
        exp = payload.get("exp")
        if not exp:
            return 0
        return max(0, int(exp - time.time()))

    @staticmethod
    def create_access_token(user_id: str, email: str, role: str) -> str:
        """
        Create an access token for a user

        Args:
            user_id: Identity provider uid
            email: User email
            role: User role at issue time

        Returns:
            JWT access token
        """
        data = {
            "sub": user_id,
            "email": email,
            "role": role
        }
        return AuthService.generate_token(data, token_type="access")

    @staticmethod
    def create_refresh_token(user_id: str) -> str:
        data = {"sub": user_id}
        return AuthService.generate_token(data, token_type="refresh")
