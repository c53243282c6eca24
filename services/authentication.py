"""
AuthenticationFlow: the entry point used by the API layer.

Wires codec, store, rotation, revocation and retention together from one
TokenSettings value and exposes login, refresh, revoke and user lookups.
"""
from __future__ import annotations

import logging
import secrets
from functools import lru_cache
from typing import List, Tuple

from models.db_storage import DBStorage
from models.refresh_token import RefreshToken
from models.token_store import TokenStore
from models.user import User
from services.retention import RetentionPolicy
from services.revocation import REASON_MANUAL, RevocationEngine
from services.rotation import RotationEngine
from services.settings import TokenSettings
from utils.exceptions import ConcurrentUpdate, InvalidCredentials, InvalidToken, NotFound
from utils.security import TokenCodec, hash_password, verify_password

logger = logging.getLogger(__name__)

# created by `flask seed-users` (and at startup when SEED_USERS is set)
DEMO_USERS = (
    {"username": "test", "password": "test", "f_name": "Test", "l_name": "User"},
    {"username": "admin", "password": "admin", "f_name": "Admin", "l_name": "User"},
)


@lru_cache(maxsize=None)
def _dummy_hash() -> str:
    """Hash checked for unknown usernames so every failed login costs one argon2 verify."""
    return hash_password(secrets.token_urlsafe(32))


class AuthenticationFlow:
    def __init__(self, storage: DBStorage, settings: TokenSettings):
        self.settings = settings
        self.store = TokenStore(storage, lock_timeout=settings.lock_timeout)
        self.codec = TokenCodec(settings, token_exists=self.store.token_exists)
        self.revocation = RevocationEngine()
        self.retention = RetentionPolicy(settings)
        self.rotation = RotationEngine(self.store, self.codec, self.revocation, self.retention)

    def authenticate(self, username: str, password: str, ip: str) -> Tuple[User, str, RefreshToken]:
        """Verify credentials and issue the first token pair of a new chain."""
        user = self.store.find_user_by_username(username)
        password_hash = user.password_hash if user is not None else _dummy_hash()
        if not verify_password(password, password_hash) or user is None:
            logger.info("failed login for username %r from %s", username, ip)
            raise InvalidCredentials()

        try:
            with self.store.transaction(user.id) as user:
                refresh_token = self.codec.issue_refresh_token(ip)
                user.refresh_tokens.append(refresh_token)
                self.retention.prune(user)
        except NotFound:
            raise InvalidCredentials()

        access_token = self.codec.issue_access_token(user)
        logger.info("user %s authenticated from %s", user.id, ip)
        return user, access_token, refresh_token

    def refresh_token(self, token: str, ip: str) -> Tuple[User, str, RefreshToken]:
        return self.rotation.refresh(token, ip)

    def revoke_token(self, token: str, ip: str, reason: str = REASON_MANUAL) -> None:
        user_id = self.store.find_owner_id(token)
        if user_id is None:
            raise InvalidToken()
        try:
            with self.store.transaction(user_id) as user:
                record = user.get_refresh_token(token)
                if record is None:
                    raise InvalidToken()
                self.revocation.revoke(record, ip, reason)
        except (NotFound, ConcurrentUpdate):
            raise InvalidToken()
        logger.info("refresh token %s of user %s revoked from %s", record.id, user_id, ip)

    def current_user(self, access_token: str) -> User:
        """Resolve a bearer access token to its user."""
        claims = self.codec.decode_access_token(access_token)
        try:
            return self.store.get_user(claims["sub"])
        except NotFound:
            raise InvalidToken()

    def register(self, username: str, password: str, f_name=None, l_name=None) -> User:
        user = User(
            username=username,
            password_hash=hash_password(password),
            f_name=f_name,
            l_name=l_name,
        )
        return self.store.add_user(user)

    def seed_users(self) -> List[User]:
        created = []
        for data in DEMO_USERS:
            if self.store.find_user_by_username(data["username"]) is None:
                created.append(self.register(**data))
        return created

    def get_all(self) -> List[User]:
        return self.store.all_users()

    def get_by_id(self, user_id: str) -> User:
        return self.store.get_user(user_id)
