from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import SecretStr

from turnloop.core.errors import ConfigError

from .model import AgentConfig, AppConfig, LlmConfig, LoggingConfig, OrchestratorConfig, ToolsConfig

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _expand_env_in_str(value: str, *, path: str) -> str:
    def repl(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in os.environ:
            raise ConfigError(f"environment variable {key!r} is missing", path=path)
        if os.environ[key] == "":
            raise ConfigError(f"environment variable {key!r} is empty", path=path)
        return os.environ[key]

    return _ENV_PATTERN.sub(repl, value)


def _expand_env(obj: Any, *, path: str) -> Any:
    if isinstance(obj, str):
        return _expand_env_in_str(obj, path=path)
    if isinstance(obj, list):
        return [_expand_env(v, path=f"{path}[{i}]") for i, v in enumerate(obj)]
    if isinstance(obj, dict):
        return {k: _expand_env(v, path=f"{path}.{k}" if path else str(k)) for k, v in obj.items()}
    return obj


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("must be a mapping", path=key)
    return value


def _number(d: dict[str, Any], key: str, default: float, *, path: str) -> float:
    value = d.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError("must be a number", path=f"{path}.{key}")
    if value <= 0:
        raise ConfigError("must be > 0", path=f"{path}.{key}")
    return float(value)


def _bool(d: dict[str, Any], key: str, default: bool, *, path: str) -> bool:
    value = d.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError("must be a boolean", path=f"{path}.{key}")
    return value


def _str(d: dict[str, Any], key: str, default: str, *, path: str) -> str:
    value = d.get(key, default)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError("must be a non-empty string", path=f"{path}.{key}")
    return value


def find_project_root(start: Path) -> Path | None:
    """Nearest directory at or above `start` holding a pyproject.toml."""

    for candidate in (start, *start.parents):
        if (candidate / "pyproject.toml").is_file():
            return candidate
    return None


def _load_llm(raw: dict[str, Any]) -> LlmConfig:
    llm_raw = _section(raw, "llm")

    api_key = llm_raw.get("api_key")
    if api_key is None or api_key == "":
        api_key = os.getenv("OPENAI_API_KEY")
    if not isinstance(api_key, str) or not api_key.strip():
        raise ConfigError("must be a non-empty string (or set OPENAI_API_KEY)", path="llm.api_key")

    return LlmConfig(
        api_key=SecretStr(api_key),
        base_url=_str(llm_raw, "base_url", LlmConfig.base_url, path="llm").rstrip("/"),
        model=_str(llm_raw, "model", LlmConfig.model, path="llm"),
        timeout_s=_number(llm_raw, "timeout_s", LlmConfig.timeout_s, path="llm"),
        connect_timeout_s=_number(llm_raw, "connect_timeout_s", LlmConfig.connect_timeout_s, path="llm"),
        include_usage=_bool(llm_raw, "include_usage", LlmConfig.include_usage, path="llm"),
    )


def _load_tools(raw: dict[str, Any]) -> ToolsConfig:
    tools_raw = _section(raw, "tools")
    if not tools_raw:
        return ToolsConfig()

    whitelist = tools_raw.get("whitelist") or []
    if not isinstance(whitelist, list) or not all(isinstance(x, str) for x in whitelist):
        raise ConfigError("must be a list of strings", path="tools.whitelist")

    rate_limit = tools_raw.get("rate_limit") or {}
    if not isinstance(rate_limit, dict) or not all(isinstance(k, str) for k in rate_limit):
        raise ConfigError("must be a mapping of tool name to calls/sec", path="tools.rate_limit")
    for name, cps in rate_limit.items():
        if isinstance(cps, bool) or not isinstance(cps, (int, float)) or cps <= 0:
            raise ConfigError("must be a number > 0", path=f"tools.rate_limit.{name}")

    timeout_s: float | None = None
    if tools_raw.get("timeout_s") is not None:
        timeout_s = _number(tools_raw, "timeout_s", 0.0, path="tools")

    files_root = tools_raw.get("files_root")
    if files_root is not None and (not isinstance(files_root, str) or not files_root.strip()):
        raise ConfigError("must be a non-empty string", path="tools.files_root")

    return ToolsConfig(
        enabled=_bool(tools_raw, "enabled", ToolsConfig.enabled, path="tools"),
        whitelist=list(whitelist),
        rate_limit={k: float(v) for k, v in rate_limit.items()},
        timeout_s=timeout_s,
        files_root=files_root,
    )


def load_config(path: str | Path, *, load_dotenv_file: bool = True) -> AppConfig:
    """Load YAML config, expand ${ENV_VAR} strictly and build an AppConfig.

    A `.env` next to the project's pyproject.toml is loaded first without
    overriding variables that are already set.

    Raises:
        ConfigError: missing file, invalid YAML, unresolved env var or a
            value of the wrong type. The error names the dotted key path.
    """

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError("config file does not exist", path=str(config_path))

    if load_dotenv_file:
        root = find_project_root(config_path.resolve().parent) or Path.cwd()
        load_dotenv(root / ".env", override=False)

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse failed: {e}", path=str(config_path)) from e

    if not isinstance(raw, dict):
        raise ConfigError("top level must be a YAML mapping", path=str(config_path))

    expanded = _expand_env(raw, path="")

    agent_raw = _section(expanded, "agent")
    agent = AgentConfig(
        system_prompt=_str(agent_raw, "system_prompt", AgentConfig.system_prompt, path="agent"),
    )

    orch_raw = _section(expanded, "orchestrator")
    max_steps = orch_raw.get("max_steps", OrchestratorConfig.max_steps)
    if isinstance(max_steps, bool) or not isinstance(max_steps, int) or max_steps < 2:
        raise ConfigError("must be an integer >= 2", path="orchestrator.max_steps")

    log_raw = _section(expanded, "logging")
    level = _str(log_raw, "level", LoggingConfig.level, path="logging").upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(f"must be one of {sorted(_LOG_LEVELS)}", path="logging.level")

    return AppConfig(
        llm=_load_llm(expanded),
        agent=agent,
        tools=_load_tools(expanded),
        orchestrator=OrchestratorConfig(max_steps=max_steps),
        logging=LoggingConfig(level=level),
    )
