from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import SecretStr

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful personal assistant. You can read, list and write files "
    "inside the configured workspace when file tools are enabled. Before writing "
    "anything, explain what you are about to change. Be concise and helpful."
)


@dataclass(frozen=True)
class LlmConfig:
    api_key: SecretStr
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o"
    timeout_s: float = 120.0
    connect_timeout_s: float = 10.0
    include_usage: bool = True


@dataclass(frozen=True)
class AgentConfig:
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


@dataclass(frozen=True)
class ToolsConfig:
    enabled: bool = True
    whitelist: list[str] = field(default_factory=list)
    rate_limit: dict[str, float] = field(default_factory=dict)
    timeout_s: float | None = None
    # Builtin file tools are registered only when a root is configured.
    files_root: str | None = None


@dataclass(frozen=True)
class OrchestratorConfig:
    max_steps: int = 50


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class AppConfig:
    llm: LlmConfig
    agent: AgentConfig = field(default_factory=AgentConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def redacted(self) -> dict[str, Any]:
        """Plain-dict view with secrets masked, for display."""

        return {
            "llm": {
                "api_key": "***" if self.llm.api_key.get_secret_value() else "",
                "base_url": self.llm.base_url,
                "model": self.llm.model,
                "timeout_s": self.llm.timeout_s,
                "connect_timeout_s": self.llm.connect_timeout_s,
                "include_usage": self.llm.include_usage,
            },
            "agent": {"system_prompt": self.agent.system_prompt},
            "tools": {
                "enabled": self.tools.enabled,
                "whitelist": list(self.tools.whitelist),
                "rate_limit": dict(self.tools.rate_limit),
                "timeout_s": self.tools.timeout_s,
                "files_root": self.tools.files_root,
            },
            "orchestrator": {"max_steps": self.orchestrator.max_steps},
            "logging": {"level": self.logging.level},
        }
