"""
Immutable settings handed to every token component.

Built from the Flask config by api.config.token_settings(); tests build
their own instance directly.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class TokenSettings:
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "refresh-token-api"
    access_token_lifetime: timedelta = timedelta(minutes=15)
    refresh_token_lifetime: timedelta = timedelta(days=7)
    # how long inactive refresh tokens are kept before pruning
    refresh_token_ttl: timedelta = timedelta(days=2)
    refresh_token_bytes: int = 64
    lock_timeout: float = 10.0
