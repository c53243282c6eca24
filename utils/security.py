"""
security helpers:
- Argon2 password hashing via argon2-cffi
- TokenCodec: access tokens (JWT via PyJWT) and opaque refresh tokens
"""
from __future__ import annotations

import secrets
import uuid
from typing import Any, Callable, Dict, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from models.base_model import utcnow
from models.refresh_token import RefreshToken
from services.settings import TokenSettings
from utils.exceptions import Fatal, InvalidToken

ph = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


class TokenCodec:
    """
    Creates and verifies access tokens and generates refresh tokens.

    `token_exists` is asked whether a freshly generated refresh token string
    is already taken; a hit is treated as a generation failure.
    """

    def __init__(self, settings: TokenSettings, token_exists: Optional[Callable[[str], bool]] = None):
        self.settings = settings
        self.token_exists = token_exists

    def issue_access_token(self, user) -> str:
        now = utcnow()
        payload = {
            "iss": self.settings.jwt_issuer,
            "sub": str(user.id),
            "username": user.username,
            "iat": now,
            "exp": now + self.settings.access_token_lifetime,
            "type": "access",
            "jti": generate_jti(),
        }
        return jwt.encode(payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate an access token. Expired, tampered, foreign or
        wrong-type tokens all raise InvalidToken.
        """
        try:
            decoded = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
                issuer=self.settings.jwt_issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidToken() from exc

        if decoded.get("type") != "access":
            raise InvalidToken()
        return decoded

    def generate_token_string(self) -> str:
        try:
            return secrets.token_urlsafe(self.settings.refresh_token_bytes)
        except (OSError, NotImplementedError) as exc:
            raise Fatal() from exc

    def issue_refresh_token(self, ip: str) -> RefreshToken:
        token = self.generate_token_string()
        if self.token_exists is not None and self.token_exists(token):
            raise Fatal("Refresh token collision")
        now = utcnow()
        return RefreshToken(
            token=token,
            created_at=now,
            expires_at=now + self.settings.refresh_token_lifetime,
            created_by_ip=ip,
        )
