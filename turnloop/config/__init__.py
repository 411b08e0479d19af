"""Configuration loading and schema.

- YAML-first configuration under configs/*.yaml
- Strict ${ENV_VAR} expansion (missing/empty env vars are errors)
"""

from __future__ import annotations

from turnloop.core.errors import ConfigError

from .loader import load_config
from .model import AgentConfig, AppConfig, LlmConfig, LoggingConfig, OrchestratorConfig, ToolsConfig

__all__ = [
    "AgentConfig",
    "AppConfig",
    "ConfigError",
    "LlmConfig",
    "LoggingConfig",
    "OrchestratorConfig",
    "ToolsConfig",
    "load_config",
]
