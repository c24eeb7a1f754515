"""Cached settings accessor for the Firma client.

Usage:
    from firma.core.settings import get_settings

    settings = get_settings()
    client = await DocumentClient.from_settings(settings)

The settings are loaded once and cached. To reload settings (e.g., in tests),
use clear_settings_cache().
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import ValidationError

from firma.core.config import FirmaSettings
from firma.core.errors import ConfigurationInvalidError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> FirmaSettings:
    """Get the cached client settings.

    Returns:
        Validated FirmaSettings instance.

    Raises:
        ConfigurationInvalidError: If the environment holds invalid values.
    """
    try:
        settings = FirmaSettings()
    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            error_messages.append(f"  - {loc}: {error['msg']}")

        logger.error("Configuration validation failed:\n%s", "\n".join(error_messages))
        first_field = ".".join(str(x) for x in e.errors()[0]["loc"]) if e.errors() else None
        raise ConfigurationInvalidError(
            "Invalid Firma configuration:\n" + "\n".join(error_messages),
            field=first_field,
        ) from e

    logger.debug("Configuration loaded: %s", settings.describe())
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Example:
        def test_something(monkeypatch):
            clear_settings_cache()
            monkeypatch.setenv("FIRMA_BASE_URL", "https://firma.test")
            settings = get_settings()
    """
    get_settings.cache_clear()
    logger.debug("Settings cache cleared")
