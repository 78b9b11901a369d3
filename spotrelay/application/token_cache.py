from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from spotrelay.crosscutting.logging import log_with_fields
from spotrelay.domain.entities import TokenGrant, TokenState
from spotrelay.domain.errors import AuthError
from spotrelay.domain.ports import AuthorizationServer, TokenStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCache:
    """Keeps a usable access token for the connected account.

    All reads-then-writes of the store happen under one lock, so requests
    that observe an expired token together trigger a single refresh; the
    ones that waited see the refreshed state and return it.
    """

    def __init__(self, store: TokenStore, auth_server: AuthorizationServer,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.auth_server = auth_server
        self.clock = clock
        self._lock = threading.Lock()

    @property
    def state(self) -> TokenState:
        return self.store.load()

    def ensure_valid(self) -> str:
        """Return a valid access token, refreshing it first if it is missing or expired.

        Raises:
            AuthError: no valid access token and no refresh token stored
            ProviderError: the refresh grant failed
        """
        with self._lock:
            state = self.store.load()
            now = self.clock()
            if not state.is_expired(now):
                return state.access_token

            if not state.can_refresh:
                logger.warning("No access token and no refresh token; authorization required")
                raise AuthError()

            logger.info("Access token missing or expired, refreshing")
            grant = self.auth_server.refresh(state.refresh_token)
            refreshed = self._apply(grant, previous=state, now=self.clock())
            self.store.save(refreshed)
            log_with_fields(logger, 'INFO', "Access token refreshed",
                            expires_at=refreshed.expires_at.isoformat(),
                            rotated=bool(grant.refresh_token))
            return refreshed.access_token

    def store_grant(self, grant: TokenGrant) -> TokenState:
        """Replace the cached state with the result of an authorization-code exchange."""
        with self._lock:
            state = self._apply(grant, previous=None, now=self.clock())
            self.store.save(state)
            logger.info("Stored tokens from authorization code exchange")
            return state

    def clear(self) -> None:
        with self._lock:
            self.store.save(TokenState())

    @staticmethod
    def _apply(grant: TokenGrant, previous: Optional[TokenState], now: datetime) -> TokenState:
        # Refresh token rotation is optional: keep the old one if none came back
        refresh_token = grant.refresh_token
        if not refresh_token and previous is not None:
            refresh_token = previous.refresh_token
        return TokenState(
            access_token=grant.access_token,
            refresh_token=refresh_token,
            expires_at=now + timedelta(seconds=grant.expires_in),
        )
