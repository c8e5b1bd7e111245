"""
Data models for Tool Sequencer.
"""

from .catalog import DEFAULT_MODEL_ID, MODELS, ModelInfo, get_model_info
from .config import (
    DEFAULT_APPROVAL_TOOLS,
    GatewayConfig,
    EngineConfig,
    WorkspaceConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

__all__ = [
    # Model catalog
    "DEFAULT_MODEL_ID",
    "MODELS",
    "ModelInfo",
    "get_model_info",
    # Config models
    "DEFAULT_APPROVAL_TOOLS",
    "GatewayConfig",
    "EngineConfig",
    "WorkspaceConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
]
