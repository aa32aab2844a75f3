from __future__ import annotations  # Configuration schema for model endpoint routing

from pathlib import Path
from typing import Dict, Literal

from pydantic import BaseModel, Field, ValidationError


class ConfigurationError(RuntimeError):  # Fatal: required configuration is absent
    pass


class LlmRoute(BaseModel):  # Model endpoint configuration
    name: str
    provider: Literal["ollama", "openai"] = "ollama"
    base_url: str
    endpoint: str = "/api/generate"
    model: str
    timeout_s: float = Field(default=60.0, ge=0.1)
    api_key_env: str | None = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    options: Dict[str, object] = Field(default_factory=dict)
    sequential: bool = False


class AppConfig(BaseModel):  # Application configuration root
    llm_routes: Dict[str, LlmRoute]


def load_config(path: Path) -> AppConfig:  # Load configuration from disk
    try:
        data = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Model route file not found: {path}") from exc
    try:
        return AppConfig.model_validate_json(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid model route file {path}: {exc.error_count()} error(s)") from exc


def resolve_route(cfg: AppConfig, name: str) -> LlmRoute:  # Pick the configured model route
    if name not in cfg.llm_routes:
        raise ConfigurationError(f"Model route '{name}' is not configured")
    return cfg.llm_routes[name]


def load_route(path: Path, name: str) -> LlmRoute:  # Load config and resolve a single route
    return resolve_route(load_config(path), name)
