"""
RevocationEngine: retires refresh tokens.

A chain is followed through replaced_by_token over an index of the user's
own token list, never recursively, and never for more hops than the list
holds, so a corrupted or cyclic chain cannot make the walk run away.
"""
from __future__ import annotations

import logging
from typing import Iterator, Optional

from models.base_model import utcnow
from models.refresh_token import RefreshToken
from utils.exceptions import InvalidToken

logger = logging.getLogger(__name__)

REASON_REPLACED = "replaced"
REASON_MANUAL = "manual"
REASON_REUSE = "reuse of revoked ancestor token"


class RevocationEngine:

    def revoke(self, token: RefreshToken, ip: str, reason: str) -> None:
        """Revoke an active token without a successor."""
        if not token.is_active:
            raise InvalidToken()
        self._mark_revoked(token, ip, reason)

    def replace(self, token: RefreshToken, successor: RefreshToken, ip: str) -> None:
        """Retire an active token as part of rotation, linking it to its successor."""
        if not token.is_active:
            raise InvalidToken()
        self._mark_revoked(token, ip, REASON_REPLACED, replaced_by=successor.token)

    def cascade_revoke(self, user, token: RefreshToken, ip: str, reason: str) -> Optional[RefreshToken]:
        """
        Revoke the first active descendant of `token`, if any, and return it.

        Revoked (or merely expired) successors are walked through; the walk
        stops at the first active one since nothing past it was ever handed out.
        """
        for successor in self._descendants(user, token):
            if successor.is_active:
                self._mark_revoked(successor, ip, reason)
                return successor
        return None

    def find_active_descendant(self, user, token: RefreshToken) -> Optional[RefreshToken]:
        for successor in self._descendants(user, token):
            if successor.is_active:
                return successor
        return None

    def _descendants(self, user, token: RefreshToken) -> Iterator[RefreshToken]:
        tokens = list(user.refresh_tokens)
        index = {rt.token: i for i, rt in enumerate(tokens)}
        seen = {token.token}
        next_token = token.replaced_by_token
        for _ in range(len(tokens)):
            if not next_token:
                return
            if next_token in seen:
                logger.error("refresh token chain of user %s loops back on itself", user.id)
                return
            position = index.get(next_token)
            if position is None:
                # successor already pruned
                return
            seen.add(next_token)
            successor = tokens[position]
            yield successor
            next_token = successor.replaced_by_token

    @staticmethod
    def _mark_revoked(token: RefreshToken, ip: str, reason: str, replaced_by: Optional[str] = None) -> None:
        token.revoked_at = utcnow()
        token.revoked_by_ip = ip
        token.reason_revoked = reason
        token.replaced_by_token = replaced_by
