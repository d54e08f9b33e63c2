"""
Netatmo Token Store
Keeps one OAuth token per owner valid, refreshing it shortly before expiry
"""
import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from typing import AsyncIterator, Optional

import httpx
from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import update
from sqlalchemy.orm import Session

from ..config import Config
from ..exceptions import ConfigurationError, NotConnected, TokenRefreshFailed
from ..models_netatmo import NetatmoToken
from ..utils.timeutils import utcnow

logger = logging.getLogger(__name__)

# A token is used as-is while it has more than this left before expiry
EXPIRY_SKEW = timedelta(seconds=5)
# Subtracted from the vendor's expires_in when computing the stored expiry
EXPIRES_IN_MARGIN = timedelta(seconds=60)


class TokenCipher:
    """Fernet encryption for tokens at rest; plain text when no key is configured"""

    def __init__(self, key: Optional[str]):
        try:
            self.fernet = Fernet(key) if key else None
        except ValueError as e:
            raise ConfigurationError("NETATMO_TOKEN_ENCRYPTION_KEY is not a valid Fernet key") from e

    def encrypt(self, value: str) -> str:
        if not self.fernet:
            return value
        return self.fernet.encrypt(value.encode()).decode()

    def decrypt(self, stored: str) -> str:
        if not self.fernet or not stored:
            return stored or ""
        try:
            return self.fernet.decrypt(stored.encode()).decode()
        except InvalidToken:
            # Rows written before the key was configured
            logger.warning("⚠️ Stored Netatmo token is not encrypted, using raw value")
            return stored


def is_fresh(token: NetatmoToken) -> bool:
    return token.expires_at > utcnow() + EXPIRY_SKEW


@dataclass
class _OwnerLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class TokenStore:
    """Single-writer-per-owner access to Netatmo OAuth tokens"""

    # Refresh locks per event loop and owner; an owner's entry lives only while held or awaited
    _locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, _OwnerLock]]" = (
        weakref.WeakKeyDictionary()
    )

    def __init__(self, db: Session, config: Config, client: Optional[httpx.AsyncClient] = None):
        self.db = db
        self.config = config
        self.client = client
        self.cipher = TokenCipher(config.netatmo_token_encryption_key)

    @classmethod
    @asynccontextmanager
    async def _refresh_lock(cls, owner_id: str) -> AsyncIterator[None]:
        owners = cls._locks.setdefault(asyncio.get_running_loop(), {})
        entry = owners.get(owner_id)
        if entry is None:
            entry = owners[owner_id] = _OwnerLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del owners[owner_id]

    def get_token(self, owner_id: str) -> NetatmoToken:
        token = self.db.query(NetatmoToken).filter(NetatmoToken.user_id == owner_id).first()
        if not token:
            raise NotConnected(owner_id)
        return token

    async def access_token_for(self, owner_id: str) -> str:
        """Plain access token for an owner, refreshed first if needed"""
        token = await self.ensure_fresh_token(self.get_token(owner_id))
        return self.cipher.decrypt(token.access_token)

    async def ensure_fresh_token(self, token: NetatmoToken) -> NetatmoToken:
        """
        Return a usable token, refreshing it when it expires within EXPIRY_SKEW.

        The fresh path makes no network call. On refresh the new pair is
        persisted with an update conditioned on the refresh token we started
        from, so two writers can never both consume the same refresh token.

        Raises:
            TokenRefreshFailed: refresh rejected, unreadable or not persisted
        """
        if is_fresh(token):
            return token

        owner_id = token.user_id
        async with self._refresh_lock(owner_id):
            # Another coroutine may have refreshed while we waited
            self.db.refresh(token)
            if is_fresh(token):
                return token

            logger.info(f"🔄 Netatmo token for owner {owner_id} expires soon, refreshing...")
            previous_refresh_token = token.refresh_token
            payload = await self._request_refresh(owner_id, self.cipher.decrypt(previous_refresh_token))

            scope = payload.get("scope")
            if isinstance(scope, list):
                scope = " ".join(str(s) for s in scope)

            now = utcnow()
            expires_at = now + timedelta(seconds=payload["expires_in"]) - EXPIRES_IN_MARGIN
            result = self.db.execute(
                update(NetatmoToken)
                .where(
                    NetatmoToken.user_id == owner_id,
                    NetatmoToken.refresh_token == previous_refresh_token,
                )
                .values(
                    access_token=self.cipher.encrypt(payload["access_token"]),
                    refresh_token=self.cipher.encrypt(payload["refresh_token"]),
                    scope=scope or token.scope,
                    expires_at=expires_at,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            self.db.refresh(token)

            if result.rowcount == 0:
                # Another process refreshed first; its token is the valid one
                logger.warning(f"⚠️ Netatmo token for owner {owner_id} was refreshed concurrently")
                if is_fresh(token):
                    return token
                raise TokenRefreshFailed(owner_id, "token changed concurrently and is not fresh")

            logger.info(f"✅ Netatmo token refreshed for owner {owner_id}")
            return token

    async def _request_refresh(self, owner_id: str, refresh_token: str) -> dict:
        if not self.config.netatmo_client_id or not self.config.netatmo_client_secret:
            raise TokenRefreshFailed(owner_id, "server not configured for Netatmo refresh")

        url = f"{self.config.netatmo_api_url}/oauth2/token"
        form = {
            "grant_type": "refresh_token",
            "client_id": self.config.netatmo_client_id,
            "client_secret": self.config.netatmo_client_secret,
            "refresh_token": refresh_token,
        }
        headers = {"Accept": "application/json"}

        try:
            if self.client is not None:
                response = await self.client.post(
                    url, data=form, headers=headers, timeout=self.config.http_timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.config.http_timeout) as client:
                    response = await client.post(url, data=form, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"❌ Netatmo refresh request failed for owner {owner_id}: {e}")
            raise TokenRefreshFailed(owner_id, f"request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"❌ Netatmo refresh failed for owner {owner_id}: HTTP {response.status_code}")
            raise TokenRefreshFailed(owner_id, f"HTTP {response.status_code} {response.text[:500]}")

        try:
            payload = response.json()
        except ValueError as e:
            raise TokenRefreshFailed(owner_id, "invalid JSON in refresh response") from e

        if not isinstance(payload, dict):
            raise TokenRefreshFailed(owner_id, "unexpected refresh response")
        missing = [k for k in ("access_token", "refresh_token", "expires_in") if not payload.get(k)]
        if missing:
            raise TokenRefreshFailed(owner_id, f"refresh response missing {', '.join(missing)}")
        try:
            payload["expires_in"] = int(payload["expires_in"])
        except (TypeError, ValueError) as e:
            raise TokenRefreshFailed(owner_id, "expires_in is not a number") from e

        return payload
