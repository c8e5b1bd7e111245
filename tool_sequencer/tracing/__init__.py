"""
Langfuse tracing integration for Tool Sequencer.

Records engine runs, model calls and tool executions.
"""

from .client import (
    TracingClient,
    get_tracing_client,
    init_tracing_client,
    shutdown_tracing,
)
from .context import GenerationContext, SpanContext, TracingContext

__all__ = [
    "TracingClient",
    "init_tracing_client",
    "get_tracing_client",
    "shutdown_tracing",
    "TracingContext",
    "SpanContext",
    "GenerationContext",
]
