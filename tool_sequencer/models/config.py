"""
Configuration models for Tool Sequencer.

Defines dataclasses for the YAML configuration file.
"""

from dataclasses import dataclass, field


DEFAULT_APPROVAL_TOOLS = ("write_to_file", "edit_file")


@dataclass
class GatewayConfig:
    """Configuration for the model gateway endpoint."""
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    timeout: float = 120.0
    max_retries: int = 2


@dataclass
class EngineConfig:
    """Configuration for the sequential tool-execution engine."""
    temperature: float = 0.0
    max_output_tokens: int = 0  # 0 means the provider default
    max_consecutive_failures: int = 3
    max_iterations: int = 25
    completion_tool: str = "attempt_completion"
    question_tool: str = "ask_followup_question"
    requires_approval: list[str] = field(
        default_factory=lambda: list(DEFAULT_APPROVAL_TOOLS)
    )
    block_token_cost: int = 0


@dataclass
class WorkspaceConfig:
    """Configuration for the workspace the file tools operate on."""
    root: str = "."
    read_line_limit: int = 250
    list_max_entries: int = 50


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    enabled: bool = False
    public_key: str = ""
    secret_key: str = ""
    host: str = "https://cloud.langfuse.com"
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """Check if Langfuse is configured (both keys present)."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Unified application configuration container.

    Holds all configuration sections loaded from config/config.yaml.
    """
    version: str = "1.0"
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)

    @property
    def log_level(self) -> str:
        """Shortcut for logging.level."""
        return self.logging.level
