"""LLM route configuration loaded from JSON."""
from __future__ import annotations

from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field

INTENT_ROLE = "intent_classifier"
KNOWLEDGE_ROLE = "runtime_knowledge"


class LlmRoute(BaseModel):
    """LLM endpoint configuration."""

    name: str
    base_url: str
    endpoint: str = "/v1/chat/completions"
    model: str
    timeout_s: float = Field(default=2.0, ge=0.1)
    max_retries: int = Field(default=0, ge=0)
    api_key_env: str | None = None
    response_format: str | None = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    sequential: bool = False
    enforce_json: bool = True


class AppConfig(BaseModel):
    """Route table plus the role -> route mapping."""

    llm_routes: Dict[str, LlmRoute]
    registry: Dict[str, str] = Field(default_factory=dict)


def load_config(path: Path) -> AppConfig:
    """Load configuration from disk."""

    data = Path(path).read_text(encoding="utf-8")
    return AppConfig.model_validate_json(data)


def resolve_route(cfg: AppConfig, role: str) -> LlmRoute:
    """Return the route bound to ``role`` or raise ``KeyError``."""

    if role not in cfg.registry:
        raise KeyError(f"Registry entry missing for '{role}'")
    route_id = cfg.registry[role]
    if route_id not in cfg.llm_routes:
        raise KeyError(f"Route '{route_id}' missing for '{role}'")
    return cfg.llm_routes[route_id]


__all__ = ["AppConfig", "LlmRoute", "INTENT_ROLE", "KNOWLEDGE_ROLE", "load_config", "resolve_route"]
