"""Configuration package for the interview conductor."""
from .routes import INTENT_ROLE, KNOWLEDGE_ROLE, AppConfig, LlmRoute, load_config, resolve_route
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "INTENT_ROLE",
    "KNOWLEDGE_ROLE",
    "load_config",
    "resolve_route",
    "Settings",
    "settings",
]
