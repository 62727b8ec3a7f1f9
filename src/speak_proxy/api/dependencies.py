"""
FastAPI Dependency Injection Providers.

    get_settings()       - loads and caches configuration (YAML + env)
    get_speak_service()  - the process-wide SpeakService

Both are singletons so every request shares one rate limiter and one
outbound HTTP client. Tests replace get_speak_service through
``app.dependency_overrides``.
"""
from __future__ import annotations

from functools import lru_cache

from speak_proxy.core.config import Settings, load_settings_or_defaults
from speak_proxy.services.speak_service import SpeakService, get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    The file is config/settings.yaml unless SPEAK_PROXY_SETTINGS points
    elsewhere; a missing file means built-in defaults plus environment.
    """
    return load_settings_or_defaults()


def get_speak_service() -> SpeakService:
    return get_service(get_settings())
