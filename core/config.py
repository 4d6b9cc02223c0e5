"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads for userbase happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. database_url -> DATABASE_URL). Type coercion and validation are
      built in.

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Used to tie the password hashing cost floor to DEBUG.

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("userbase.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'userbase.db'}"

# bcrypt.kdf itself warns below this many rounds.
_RECOMMENDED_MIN_ROUNDS = 50


class Settings(BaseSettings):
    """Settings loaded from environment variables and .env file.

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

    # Any SQLAlchemy URL. SQLite gets WAL + foreign_keys pragmas per connection.
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    # bcrypt-pbkdf rounds. Each round is a full bcrypt hash, so this is the
    # login latency knob. Tests drop it to 1.
    password_hash_rounds: int = 64

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_hash_rounds(self) -> "Settings":
        """Reject a non-positive cost outright; warn on a weak one outside DEBUG."""
        if self.password_hash_rounds < 1:
            raise ValueError("PASSWORD_HASH_ROUNDS must be at least 1.")
        if self.password_hash_rounds < _RECOMMENDED_MIN_ROUNDS and not self.debug:
            logger.warning(
                "PASSWORD_HASH_ROUNDS=%d is below the recommended minimum of %d.",
                self.password_hash_rounds,
                _RECOMMENDED_MIN_ROUNDS,
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
