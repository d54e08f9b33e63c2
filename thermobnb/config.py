import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_DATABASE_URL = "sqlite:///./thermobnb.db"
DEFAULT_NETATMO_API_URL = "https://api.netatmo.com"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


@dataclass(frozen=True)
class Config:
    """Process-wide settings, built once at startup and passed to components"""

    database_url: str = DEFAULT_DATABASE_URL

    # Shared secret used by the scheduler to trigger full sweeps
    cron_secret: str = ""

    # Netatmo OAuth application
    netatmo_client_id: Optional[str] = None
    netatmo_client_secret: Optional[str] = None
    netatmo_api_url: str = DEFAULT_NETATMO_API_URL
    # Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
    netatmo_token_encryption_key: Optional[str] = None

    # Booking engine proxy (reservations per room)
    booking_proxy_url: str = "http://localhost:54321/functions/v1/krossbooking-proxy"

    # Identity provider used to validate owner bearer tokens
    identity_url: str = "http://localhost:54321"
    identity_api_key: str = ""

    timezone: str = "Europe/Paris"
    http_timeout: float = 15.0
    max_concurrency: int = 4
    lookahead_days: int = 7

    allowed_origins: tuple[str, ...] = field(default_factory=lambda: ("http://localhost:5173",))

    @classmethod
    def from_env(cls) -> "Config":
        """Read every setting from the environment"""
        origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000")
        return cls(
            database_url=os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL,
            cron_secret=(os.getenv("CRON_SECRET") or "").strip(),
            netatmo_client_id=os.getenv("NETATMO_CLIENT_ID"),
            netatmo_client_secret=os.getenv("NETATMO_CLIENT_SECRET"),
            netatmo_api_url=(os.getenv("NETATMO_API_URL") or DEFAULT_NETATMO_API_URL).rstrip("/"),
            netatmo_token_encryption_key=os.getenv("NETATMO_TOKEN_ENCRYPTION_KEY"),
            booking_proxy_url=os.getenv(
                "BOOKING_PROXY_URL", "http://localhost:54321/functions/v1/krossbooking-proxy"
            ),
            identity_url=(os.getenv("IDENTITY_URL") or "http://localhost:54321").rstrip("/"),
            identity_api_key=os.getenv("IDENTITY_API_KEY", ""),
            timezone=os.getenv("THERMOBNB_TIMEZONE", "Europe/Paris"),
            http_timeout=_float_env("THERMOBNB_HTTP_TIMEOUT", 15.0),
            max_concurrency=max(1, _int_env("THERMOBNB_MAX_CONCURRENCY", 4)),
            lookahead_days=_int_env("THERMOBNB_LOOKAHEAD_DAYS", 7),
            allowed_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    return Config.from_env()
