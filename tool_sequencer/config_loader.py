"""
Configuration loader for Tool Sequencer.

Loads configuration from YAML files with support for
environment variable interpolation.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .models import (
    AppConfig,
    EngineConfig,
    GatewayConfig,
    LangfuseConfig,
    LoggingConfig,
    WorkspaceConfig,
)
from .models.config import DEFAULT_APPROVAL_TOOLS

logger = logging.getLogger(__name__)

# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """Recursively substitute environment variables in a data structure."""
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def _parse_gateway_config(data: dict) -> GatewayConfig:
    """Parse gateway configuration from dict."""
    return GatewayConfig(
        base_url=data.get("base_url", "https://api.openai.com/v1"),
        api_key=data.get("api_key", ""),
        model=data.get("model", "gpt-4o-mini"),
        timeout=float(data.get("timeout", 120.0)),
        max_retries=int(data.get("max_retries", 2)),
    )


def _parse_engine_config(data: dict) -> EngineConfig:
    """Parse engine configuration from dict."""
    requires_approval = data.get("requires_approval", list(DEFAULT_APPROVAL_TOOLS))
    if isinstance(requires_approval, str):
        requires_approval = [
            item.strip() for item in requires_approval.split(",") if item.strip()
        ]

    max_failures = int(data.get("max_consecutive_failures", 3))
    if max_failures <= 0:
        raise ValueError("engine.max_consecutive_failures must be positive")

    return EngineConfig(
        temperature=float(data.get("temperature", 0.0)),
        max_output_tokens=int(data.get("max_output_tokens", 0)),
        max_consecutive_failures=max_failures,
        max_iterations=int(data.get("max_iterations", 25)),
        completion_tool=data.get("completion_tool", "attempt_completion"),
        question_tool=data.get("question_tool", "ask_followup_question"),
        requires_approval=list(requires_approval),
        block_token_cost=int(data.get("block_token_cost", 0)),
    )


def _parse_workspace_config(data: dict) -> WorkspaceConfig:
    """Parse workspace configuration from dict."""
    return WorkspaceConfig(
        root=data.get("root", "."),
        read_line_limit=int(data.get("read_line_limit", 250)),
        list_max_entries=int(data.get("list_max_entries", 50)),
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(
        level=data.get("level", "INFO"),
    )


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        enabled=_parse_bool(data.get("enabled"), False),
        public_key=data.get("public_key", ""),
        secret_key=data.get("secret_key", ""),
        host=data.get("host", "https://cloud.langfuse.com"),
        debug=_parse_bool(data.get("debug"), False),
    )


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Load unified application configuration from a YAML file.

    Uses a singleton pattern - subsequent calls return the cached config
    unless reload=True is specified.

    Args:
        path: Path to the YAML configuration file. If None, uses
              CONFIG_PATH env var or the default path (config/config.yaml).
        reload: If True, force reload from disk instead of using cache.

    Returns:
        AppConfig with all configuration loaded

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config is invalid
    """
    global _app_config

    if _app_config is not None and not reload:
        return _app_config

    if path is None:
        path = os.environ.get("CONFIG_PATH", str(DEFAULT_CONFIG_PATH))

    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found at {config_path}. "
            f"Create one from config/config.yaml.template or set CONFIG_PATH env var."
        )

    logger.info("Loading configuration from %s", config_path)

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raise ValueError(f"Configuration file {config_path} is empty")
    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    raw_config = _substitute_env_vars_recursive(raw_config)

    app_config = AppConfig(
        version=str(raw_config.get("version", "1.0")),
        gateway=_parse_gateway_config(raw_config.get("gateway") or {}),
        engine=_parse_engine_config(raw_config.get("engine") or {}),
        workspace=_parse_workspace_config(raw_config.get("workspace") or {}),
        logging=_parse_logging_config(raw_config.get("logging") or {}),
        langfuse=_parse_langfuse_config(raw_config.get("langfuse") or {}),
    )

    _app_config = app_config

    logger.debug(
        "Configuration loaded: version=%s, model=%s",
        app_config.version,
        app_config.gateway.model,
    )

    return app_config


def reset_config_cache() -> None:
    """Reset the configuration cache, forcing a reload on next access."""
    global _app_config
    _app_config = None
    logger.debug("Configuration cache reset")
