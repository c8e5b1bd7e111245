"""
Environment-based configuration for Tool Sequencer.

Builds an AppConfig from environment variables with sensible defaults for
local development. A ``.env`` file in the working directory is loaded first.
"""

import os

from dotenv import load_dotenv

from .models import (
    AppConfig,
    EngineConfig,
    GatewayConfig,
    LangfuseConfig,
    LoggingConfig,
    WorkspaceConfig,
)
from .models.config import DEFAULT_APPROVAL_TOOLS

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: tuple[str, ...]) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def config_from_env() -> AppConfig:
    """Read every configuration section from the environment."""
    return AppConfig(
        gateway=GatewayConfig(
            base_url=os.getenv("GATEWAY_BASE_URL", "https://api.openai.com/v1"),
            api_key=os.getenv("GATEWAY_API_KEY", os.getenv("OPENAI_API_KEY", "")),
            model=os.getenv("GATEWAY_MODEL", "gpt-4o-mini"),
            timeout=float(os.getenv("GATEWAY_TIMEOUT", "120")),
            max_retries=int(os.getenv("GATEWAY_MAX_RETRIES", "2")),
        ),
        engine=EngineConfig(
            temperature=float(os.getenv("ENGINE_TEMPERATURE", "0.0")),
            max_output_tokens=int(os.getenv("ENGINE_MAX_OUTPUT_TOKENS", "0")),
            max_consecutive_failures=int(
                os.getenv("ENGINE_MAX_CONSECUTIVE_FAILURES", "3")
            ),
            max_iterations=int(os.getenv("ENGINE_MAX_ITERATIONS", "25")),
            requires_approval=_env_list(
                "ENGINE_REQUIRES_APPROVAL", DEFAULT_APPROVAL_TOOLS
            ),
            block_token_cost=int(os.getenv("ENGINE_BLOCK_TOKEN_COST", "0")),
        ),
        workspace=WorkspaceConfig(
            root=os.getenv("WORKSPACE_ROOT", "."),
        ),
        logging=LoggingConfig(level=os.getenv("LOG_LEVEL", "INFO")),
        langfuse=LangfuseConfig(
            public_key=os.getenv("LANGFUSE_PUBLIC_KEY", ""),
            secret_key=os.getenv("LANGFUSE_SECRET_KEY", ""),
            host=os.getenv("LANGFUSE_HOST", ""),
            debug=_env_bool("LANGFUSE_DEBUG"),
        ),
    )


# Global config instance
config = config_from_env()
