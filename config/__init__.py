"""Configuration package for the interview orchestration service."""
from .app_config import AppConfig, ConfigurationError, LlmRoute, load_config, load_route, resolve_route
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "ConfigurationError",
    "LlmRoute",
    "load_config",
    "load_route",
    "resolve_route",
    "Settings",
    "settings",
]
