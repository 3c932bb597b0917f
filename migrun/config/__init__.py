"""Configuration loading for migrun.

Configuration is loaded from TOML files with environment variable overrides.

Usage:
    from migrun.config import get_settings

    settings = get_settings()
    batch_size = settings.execution.batch_size
"""

from functools import lru_cache

from migrun.config.loader import MigrationConfigError, load_config
from migrun.config.settings import Settings, set_toml_config
from migrun.observability.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the singleton settings instance.

    Configuration is loaded in this order:
    1. Pydantic model defaults (in code)
    2. config/default.toml (base configuration)
    3. config/{MIGRUN_ENV}.toml (environment overrides)
    4. MIGRUN_* environment variables (runtime overrides)

    Call `get_settings.cache_clear()` to reload configuration.
    """
    try:
        config_dict = load_config()
    except FileNotFoundError as e:
        logger.warning("config_file_not_found", error=str(e))
        config_dict = {}
    except MigrationConfigError as e:
        logger.error("migration_config_invalid", problems=e.problems)
        raise
    set_toml_config(config_dict)

    return Settings()


def reload_settings() -> Settings:
    """Clear the settings cache and reload configuration."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["MigrationConfigError", "get_settings", "reload_settings", "Settings"]
