"""RetentionPolicy: drops inactive refresh tokens once their retention window has passed."""
from __future__ import annotations

import logging

from models.base_model import utcnow
from models.refresh_token import RefreshToken
from services.settings import TokenSettings

logger = logging.getLogger(__name__)


class RetentionPolicy:
    def __init__(self, settings: TokenSettings):
        self.ttl = settings.refresh_token_ttl

    def is_prunable(self, token: RefreshToken, now=None) -> bool:
        now = now or utcnow()
        return not token.is_active and token.created_at + self.ttl <= now

    def prune(self, user) -> list[RefreshToken]:
        """Remove prunable tokens from the user's list; active tokens always stay.

        Must run after every other read and mutation of the unit of work.
        """
        now = utcnow()
        stale = [rt for rt in user.refresh_tokens if self.is_prunable(rt, now)]
        for rt in stale:
            user.refresh_tokens.remove(rt)
        if stale:
            logger.debug("pruned %d refresh tokens of user %s", len(stale), user.id)
        return stale
