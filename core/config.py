"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
directly. Components never read settings at import time either: the API
lifespan and the CLI call get_settings() once and hand the values to the
constructors of AccountStore, SessionRegistry and the two protocols.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. database_url -> DATABASE_URL).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Invalid settings fail at startup, never inside a request.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
accounts/, or analytics/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("runauth.config")

_ROOT = Path(__file__).resolve().parent.parent

# Below this a session token is guessable by an online attacker.
_MIN_TOKEN_BYTES = 16


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = f"sqlite:///{_ROOT / 'accounts' / 'runauth.db'}"
    analytics_db_path: Path = _ROOT / "analytics" / "runauth_analytics.db"
    # Bounds per-account lock waits, plus the busy wait on SQLite or the
    # pool checkout wait on other backends (see core/db.py).
    storage_timeout_seconds: float = Field(default=5.0, gt=0.0)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_token_bytes: int = 24
    # 0 = tokens never expire; the latest assignment per account wins.
    session_ttl_seconds: int = Field(default=0, ge=0)

    # ------------------------------------------------------------------
    # Login policy
    # ------------------------------------------------------------------

    # Off by default: the game client logs in with a derived value, not the
    # stored password, so any non-empty password is accepted.
    enforce_login_password: bool = False
    default_username: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_security_settings(self) -> "Settings":
        """Reject weak session tokens and flag the open login policy.

        Tokens shorter than 16 random bytes raise ValueError. Running outside
        debug mode without the password check is allowed but logged, since
        every non-empty password then authenticates.
        """
        if self.session_token_bytes < _MIN_TOKEN_BYTES:
            raise ValueError(f"SESSION_TOKEN_BYTES must be at least {_MIN_TOKEN_BYTES}.")
        if not self.enforce_login_password and not self.debug:
            logger.warning(
                "ENFORCE_LOGIN_PASSWORD is off: any non-empty password will authenticate an existing account."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
