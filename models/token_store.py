"""
TokenStore: the durable user -> refresh token list mapping.

All mutations of a user's token list go through transaction(user_id), which
makes the read-decide-mutate-persist sequence atomic:
- a per-user lock serialises callers inside this process
- the user row is reloaded (and row-locked where the database supports
  SELECT ... FOR UPDATE) so decisions are made on committed state
- RefreshToken.version catches writers from other processes at flush time
- commit on success, rollback on any exception
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from models.db_storage import DBStorage
from models.refresh_token import RefreshToken
from models.user import User
from utils.exceptions import ConcurrentUpdate, Conflict, Fatal, NotFound

logger = logging.getLogger(__name__)


class TokenStore:
    def __init__(self, storage: DBStorage, lock_timeout: float = 10.0):
        self.storage = storage
        self.lock_timeout = lock_timeout
        # user id -> [lock, number of callers holding or waiting on it]
        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            entry = self._locks.setdefault(user_id, [threading.Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _forget_lock(self, user_id: str) -> None:
        """Drop the caller's reference; the lock goes once nobody uses it."""
        with self._locks_guard:
            entry = self._locks[user_id]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[user_id]

    # lookups (no lock, read only)

    def find_user_by_username(self, username: str) -> Optional[User]:
        session = self.storage.get_session()
        return session.query(User).filter(User.username == username).first()

    def find_owner_id(self, token: str) -> Optional[str]:
        """Id of the user owning `token`, or None when no such token exists."""
        if not token:
            return None
        session = self.storage.get_session()
        return session.query(RefreshToken.user_id).filter(RefreshToken.token == token).scalar()

    def token_exists(self, token: str) -> bool:
        return self.find_owner_id(token) is not None

    def get_user(self, user_id: str) -> User:
        user = self.storage.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def all_users(self) -> list[User]:
        session = self.storage.get_session()
        return session.query(User).order_by(User.username.asc()).all()

    def add_user(self, user: User) -> User:
        self.storage.new(user)
        try:
            self.storage.save()
        except IntegrityError:
            raise Conflict("Username already registered")
        except SQLAlchemyError as exc:
            raise Fatal() from exc
        return user

    @contextmanager
    def transaction(self, user_id: str) -> Iterator[User]:
        """Yield a freshly loaded user; persist its token list on exit."""
        lock = self._lock_for(user_id)
        try:
            if not lock.acquire(timeout=self.lock_timeout):
                logger.error("timed out waiting for token lock of user %s", user_id)
                raise Fatal()
            try:
                yield from self._locked_transaction(user_id)
            finally:
                lock.release()
        finally:
            self._forget_lock(user_id)

    def _locked_transaction(self, user_id: str) -> Iterator[User]:
        session = self.storage.get_session()
        session.expire_all()
        try:
            user = self.storage.get(User, user_id, for_update=True)
        except SQLAlchemyError as exc:
            self.storage.rollback()
            raise Fatal() from exc
        if user is None:
            raise NotFound("User not found")
        try:
            yield user
        except BaseException:
            self.storage.rollback()
            raise
        try:
            self.storage.save()
        except StaleDataError as exc:
            logger.warning("concurrent update of tokens for user %s", user_id)
            raise ConcurrentUpdate() from exc
        except SQLAlchemyError as exc:
            logger.exception("failed to persist tokens for user %s", user_id)
            raise Fatal() from exc
