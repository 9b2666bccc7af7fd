"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SempreCheio happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  Security profile: APP_ENV (or NODE_ENV, for parity with the frontend build)
      selects production / development / test. The profile decides the cookie
      Secure flag, default token lifetimes, and whether unencrypted login
      payloads are tolerated.

Security notes:
  [M6] JWT_SECRET and ENCRYPTION_KEY shorter than 32 chars are rejected in
       production. HMAC-SHA256 signing and PBKDF2 key derivation both rely on
       secret entropy.

  [M7] In production a missing JWT_SECRET or ENCRYPTION_KEY is a hard startup
       failure. Development and test generate a throwaway JWT secret and fall
       back to the shared development encryption secret the frontend uses.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
import re
import secrets
from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("semprecheio.config")

# Default shared secret baked into development builds of the frontend. Never
# accepted in production (see validate_secrets).
DEV_ENCRYPTION_KEY = "SempreCheioApp2025SecureKey!@#"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}

# (access token seconds, refresh token seconds) per security profile.
_TOKEN_LIFETIMES: dict[str, tuple[int, int]] = {
    "production": (12 * 3600, 7 * 86400),
    "development": (24 * 3600, 30 * 86400),
    "test": (3600, 86400),
}


def parse_duration(value: str) -> int:
    """Convert a duration string such as "90s", "30m", "12h" or "7d" to seconds.

    A bare integer is read as seconds. Raises ValueError for anything else, or
    for a zero duration.
    """
    match = _DURATION_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}")
    seconds = int(match.group(1)) * _UNIT_SECONDS[match.group(2)]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return seconds


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: Literal["production", "development", "test"] = Field(
        default="development",
        validation_alias=AliasChoices("APP_ENV", "NODE_ENV", "environment"),
    )
    # Empty string is the sentinel for "not configured" on every secret below.
    # validate_secrets either fills it in (dev/test) or raises (production).
    jwt_secret: str = ""
    encryption_key: str = ""
    # SQLAlchemy URL. Supabase exposes a regular Postgres connection string.
    # Empty means the local SQLite file next to auth/store.py.
    database_url: str = ""

    # ------------------------------------------------------------------
    # Tokens and cookies
    # ------------------------------------------------------------------

    # Empty means "use the profile default" (see _TOKEN_LIFETIMES).
    jwt_expires_in: str = ""
    refresh_token_expires_in: str = ""
    cookie_domain: str = ""
    cookie_samesite: Literal["strict", "lax"] = "strict"
    remember_me_days: int = Field(default=30, ge=1)
    session_days: int = Field(default=1, ge=1)

    # ------------------------------------------------------------------
    # Login policy
    # ------------------------------------------------------------------

    # None means "profile default": rejected in production, tolerated elsewhere.
    accept_plaintext_login: Optional[bool] = None
    super_admin_email: str = "semprecheioapp@gmail.com"
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the secret policy for the active profile [M6][M7].

        Production: JWT_SECRET and ENCRYPTION_KEY are required and must be at
            least 32 characters.

        Development / test: a missing JWT_SECRET is replaced with a random one
            (sessions do not survive restart) and a missing ENCRYPTION_KEY
            falls back to DEV_ENCRYPTION_KEY so a dev frontend build can talk
            to the server out of the box.

        All profiles: duration overrides must parse.
        """
        if self.environment == "production":
            if not self.jwt_secret or not self.encryption_key:
                raise ValueError(
                    "JWT_SECRET and ENCRYPTION_KEY are required in production. "
                    "Set them in your environment or .env file, or run with APP_ENV=development."
                )
            if len(self.jwt_secret) < 32:
                raise ValueError("JWT_SECRET must be at least 32 characters.")
            if len(self.encryption_key) < 32:
                raise ValueError("ENCRYPTION_KEY must be at least 32 characters.")
        else:
            if not self.jwt_secret:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Sessions will not persist across restarts.")
            if not self.encryption_key:
                self.encryption_key = DEV_ENCRYPTION_KEY

        for raw in (self.jwt_expires_in, self.refresh_token_expires_in):
            if raw:
                parse_duration(raw)
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def secure_cookies(self) -> bool:
        return self.is_production

    @property
    def cookie_domain_or_none(self) -> Optional[str]:
        """Cookie Domain attribute. Only honoured in production; dev cookies stay host-only."""
        if self.is_production and self.cookie_domain:
            return self.cookie_domain
        return None

    @property
    def access_token_seconds(self) -> int:
        if self.jwt_expires_in:
            return parse_duration(self.jwt_expires_in)
        return _TOKEN_LIFETIMES[self.environment][0]

    @property
    def refresh_token_seconds(self) -> int:
        if self.refresh_token_expires_in:
            return parse_duration(self.refresh_token_expires_in)
        return _TOKEN_LIFETIMES[self.environment][1]

    @property
    def plaintext_login_allowed(self) -> bool:
        if self.accept_plaintext_login is not None:
            return self.accept_plaintext_login
        return not self.is_production

    def session_seconds(self, remember_me: bool) -> int:
        """Browser session length for a login: long with remember-me, short otherwise."""
        days = self.remember_me_days if remember_me else self.session_days
        return days * 86400


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
