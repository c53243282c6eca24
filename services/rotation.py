"""
RotationEngine: exchanges a refresh token for its successor.

A presented token is in exactly one of these states:

    NOT_FOUND                 no such token for its owner
    EXPIRED                   past expires_at, never revoked
    REVOKED_ACTIVE_SUCCESSOR  revoked, and a live descendant exists (reuse)
    REVOKED_NO_SUCCESSOR      revoked, nothing live downstream (reuse)
    ACTIVE                    can be rotated

Only ACTIVE tokens rotate. Revoked tokens trigger cascade revocation of the
live end of their chain and are rejected. Expired tokens are rejected
without a cascade. Every rejection is the same InvalidToken.
"""
from __future__ import annotations

import enum
import logging
from typing import Optional, Tuple

from models.refresh_token import RefreshToken
from models.token_store import TokenStore
from models.user import User
from services.retention import RetentionPolicy
from services.revocation import REASON_REUSE, RevocationEngine
from utils.exceptions import ConcurrentUpdate, Fatal, InvalidToken, NotFound
from utils.security import TokenCodec

logger = logging.getLogger(__name__)


class TokenState(enum.Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    REVOKED_ACTIVE_SUCCESSOR = "revoked_active_successor"
    REVOKED_NO_SUCCESSOR = "revoked_no_successor"
    ACTIVE = "active"


REUSE_STATES = (TokenState.REVOKED_ACTIVE_SUCCESSOR, TokenState.REVOKED_NO_SUCCESSOR)


class RotationEngine:
    def __init__(
        self,
        store: TokenStore,
        codec: TokenCodec,
        revocation: RevocationEngine,
        retention: RetentionPolicy,
    ):
        self.store = store
        self.codec = codec
        self.revocation = revocation
        self.retention = retention

    def classify(self, user: User, record: Optional[RefreshToken]) -> TokenState:
        if record is None:
            return TokenState.NOT_FOUND
        if record.is_revoked:
            if self.revocation.find_active_descendant(user, record) is not None:
                return TokenState.REVOKED_ACTIVE_SUCCESSOR
            return TokenState.REVOKED_NO_SUCCESSOR
        if not record.is_active:
            return TokenState.EXPIRED
        return TokenState.ACTIVE

    def refresh(self, token: str, ip: str) -> Tuple[User, str, RefreshToken]:
        """Rotate `token`; returns (user, access_token, new_refresh_token)."""
        user_id = self.store.find_owner_id(token)
        if user_id is None:
            raise InvalidToken()

        state = TokenState.NOT_FOUND
        try:
            with self.store.transaction(user_id) as user:
                record = user.get_refresh_token(token)
                state = self.classify(user, record)
                if state in REUSE_STATES:
                    contained = self.revocation.cascade_revoke(user, record, ip, REASON_REUSE)
                    logger.warning(
                        "reuse of revoked refresh token %s for user %s, revoked descendant: %s",
                        record.id, user.id, contained.id if contained else None,
                    )
                elif state is TokenState.ACTIVE:
                    successor = self.codec.issue_refresh_token(ip)
                    self.revocation.replace(record, successor, ip)
                    user.refresh_tokens.append(successor)
                    self.retention.prune(user)
                    access_token = self.codec.issue_access_token(user)
                else:
                    logger.info("refresh rejected for user %s: %s", user_id, state.value)
                    raise InvalidToken()
        except (NotFound, ConcurrentUpdate):
            raise InvalidToken()
        except Fatal:
            if state in REUSE_STATES:
                # the token is rejected whether or not containment was persisted
                logger.exception("failed to persist cascade revocation for user %s", user_id)
                raise InvalidToken()
            raise

        if state is not TokenState.ACTIVE:
            raise InvalidToken()
        return user, access_token, successor
