"""
ThermoBnB error taxonomy

Unauthorized and Forbidden end a request immediately. Everything else is
collected per owner, room or home and reported alongside partial results.
"""

from typing import Optional


class ThermoBnBError(Exception):
    """Base exception for ThermoBnB."""


class ConfigurationError(ThermoBnBError):
    """A required setting is missing."""


class Unauthorized(ThermoBnBError):
    """Missing or invalid caller credentials."""


class Forbidden(ThermoBnBError):
    """Caller is authenticated but lacks the required role."""


class NotConnected(ThermoBnBError):
    """Owner has never linked a Netatmo account."""

    def __init__(self, owner_id: str):
        super().__init__(f"Owner {owner_id} is not connected to Netatmo")
        self.owner_id = owner_id


class TokenRefreshFailed(ThermoBnBError):
    """OAuth refresh failed; fatal for the owner's operations until re-linked."""

    def __init__(self, owner_id: str, detail: str):
        super().__init__(f"Netatmo refresh failed for owner {owner_id}: {detail}")
        self.owner_id = owner_id
        self.detail = detail


class UpstreamError(ThermoBnBError):
    """Non-2xx, timeout or unreadable response from an external service."""

    def __init__(self, status: Optional[int], body_excerpt: str = "", service: str = "netatmo"):
        label = f"HTTP {status}" if status is not None else "no response"
        message = f"{service} upstream error ({label})"
        if body_excerpt:
            message = f"{message}: {body_excerpt}"
        super().__init__(message)
        self.status = status
        self.body_excerpt = body_excerpt
        self.service = service
