"""
Caller authentication and invocation context

A request is either a cron sweep (bearer equals CRON_SECRET, all owners) or a
single owner's on-demand run (bearer validated by the identity provider). The
context is resolved once here and passed explicitly to the domain services.
"""
import logging
import secrets
from dataclasses import dataclass
from typing import Optional, Union

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import Config, get_config
from .database import get_db
from .domain.thermostat.repository import ThermostatRepository
from .exceptions import Forbidden, Unauthorized
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Sweep:
    """Cron-triggered pass over every owner"""

    authorization: str  # forwarded to the booking proxy

    @property
    def is_cron(self) -> bool:
        return True


@dataclass(frozen=True)
class SingleOwner:
    """On-demand run restricted to the authenticated owner"""

    owner_id: str
    authorization: str

    @property
    def is_cron(self) -> bool:
        return False


InvocationContext = Union[Sweep, SingleOwner]


class IdentityClient:
    """Validates end-user bearer tokens against the identity provider"""

    def __init__(self, config: Config, client: Optional[httpx.AsyncClient] = None):
        self.url = f"{config.identity_url}/auth/v1/user"
        self.api_key = config.identity_api_key
        self.timeout = config.http_timeout
        self.client = client

    async def get_user_id(self, token: str) -> str:
        headers = {"Authorization": f"Bearer {token}", "apikey": self.api_key}
        try:
            if self.client is not None:
                response = await self.client.get(self.url, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.url, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"❌ Identity provider unreachable: {e}")
            raise Unauthorized("Unable to verify credentials") from e

        if response.status_code != 200:
            logger.warning(f"⚠️ Identity provider rejected token: HTTP {response.status_code}")
            raise Unauthorized("Unauthorized user")

        try:
            user_id = response.json().get("id")
        except (ValueError, AttributeError) as e:
            raise Unauthorized("Unauthorized user") from e
        if not user_id:
            raise Unauthorized("Unauthorized user")
        return str(user_id)


def get_identity_client(config: Config = Depends(get_config)) -> IdentityClient:
    return IdentityClient(config)


def is_cron_token(token: str, config: Config) -> bool:
    if not config.cron_secret or not token:
        return False
    return secrets.compare_digest(token.strip(), config.cron_secret)


async def build_invocation_context(
    token: Optional[str], config: Config, identity: IdentityClient
) -> InvocationContext:
    if not token:
        raise Unauthorized("Not authenticated. Please provide a valid Bearer token.")
    if is_cron_token(token, config):
        logger.info("🕒 Invocation authorized as cron sweep")
        return Sweep(authorization=f"Bearer {config.cron_secret}")
    owner_id = await identity.get_user_id(token)
    logger.info(f"🔍 Invocation authorized for owner {owner_id}")
    return SingleOwner(owner_id=owner_id, authorization=f"Bearer {token}")


async def resolve_invocation(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    config: Config = Depends(get_config),
    identity: IdentityClient = Depends(get_identity_client),
) -> InvocationContext:
    """FastAPI dependency building the invocation context from the Authorization header"""
    token = credentials.credentials if credentials else None
    return await build_invocation_context(token, config, identity)


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    identity: IdentityClient = Depends(get_identity_client),
    db: Session = Depends(get_db),
) -> User:
    """Authenticated user holding the admin role"""
    if not credentials or not credentials.credentials:
        raise Unauthorized("Not authenticated. Please provide a valid Bearer token.")

    user_id = await identity.get_user_id(credentials.credentials)
    user = ThermostatRepository.get_user(db, user_id)
    if not user or user.role != "admin":
        logger.warning(f"⚠️ User {user_id} attempted to access an admin-only route")
        raise Forbidden("Forbidden: admin only")
    return user


def owner_ids_for(context: InvocationContext, db: Session) -> list[str]:
    """Owners covered by an invocation: everyone with a thermostat for a sweep"""
    if isinstance(context, Sweep):
        return ThermostatRepository.get_owner_ids_with_mappings(db)
    return [context.owner_id]
