"""
Environment-driven settings for the ddCt Calculator.

Only runtime concerns live here; analysis parameters are passed explicitly
through PipelineConfig.
"""

import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ddct_calculator.config import DEFAULT_LOG_LEVEL, ENV_PREFIX, LOG_LEVEL_ENV_VAR

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    Settings loaded from environment variables.

    Attributes:
        log_level: Logging level, read from DDCT_LOG_LEVEL. Unknown names fall
            back to the default so a typo never stops the package importing.
    """

    log_level: str = DEFAULT_LOG_LEVEL

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)

    @field_validator("log_level", mode="before")
    @classmethod
    def known_level(cls, v: object) -> str:
        level = str(v).strip().upper()
        if level not in LOG_LEVELS:
            logging.getLogger(__name__).warning(
                "Unknown log level %r in %s, using %s", v, LOG_LEVEL_ENV_VAR, DEFAULT_LOG_LEVEL
            )
            return DEFAULT_LOG_LEVEL
        return level


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance (lazy singleton)."""
    return Settings()
