"""
FastAPI dependency injection providers.

Provides settings and a shared, immutable ConflictDetector built from them.
"""

import logging
from functools import lru_cache

from fastapi import Depends

from calendar_engine.config import Settings, get_settings
from calendar_engine.services.conflicts import ConflictDetector

logger = logging.getLogger(__name__)


def get_app_settings() -> Settings:
    """Dependency injection for settings (overridable in tests)."""
    return get_settings()


@lru_cache()
def get_default_detector() -> ConflictDetector:
    """Detector for the process-wide settings, built once."""
    settings = get_settings()
    logger.info(
        f"Conflict detector configured: window={settings.detection_window_days}d, "
        f"default travel={settings.default_travel_minutes}min"
    )
    return ConflictDetector(settings.conflict_config())


def get_detector(settings: Settings = Depends(get_app_settings)) -> ConflictDetector:
    """
    Dependency injection for the conflict detector.

    Detectors are immutable, so the default one is shared across requests.
    Overridden settings get a detector of their own.
    """
    if settings is get_settings():
        return get_default_detector()
    return ConflictDetector(settings.conflict_config())
