"""
Run-scoped tracing context for the Langfuse SDK v3.

A ``TracingContext`` opens one root span per engine run. Model calls are
recorded as generations and tool executions as spans, each linked to the
root through an explicit ``TraceContext`` so nesting does not depend on
OpenTelemetry's implicit context (which does not follow ``await`` points
reliably across tasks).
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generator, Optional

from .client import get_tracing_client

if TYPE_CHECKING:
    from langfuse.types import TraceContext

logger = logging.getLogger(__name__)


@dataclass
class _Observation:
    """Shared start/end lifecycle for spans and generations."""

    name: str
    enabled: bool = False
    input: Optional[Any] = None
    metadata: Optional[dict] = None
    _trace_context: Optional[Any] = field(default=None, repr=False)
    _context_manager: Any = field(default=None, repr=False)
    _observation: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    as_type = "span"

    def _start_kwargs(self) -> dict[str, Any]:
        return {
            "trace_context": self._trace_context,
            "as_type": self.as_type,
            "name": self.name,
            "input": self.input,
            "metadata": self.metadata,
        }

    def _end_kwargs(self) -> dict[str, Any]:
        end_kwargs: dict[str, Any] = {
            "metadata": {
                "status": self._status,
                "duration_ms": round((time.time() - self._start_time) * 1000, 2),
            }
        }
        if self._output is not None:
            end_kwargs["output"] = self._output
        if self._status == "error":
            end_kwargs["level"] = "ERROR"
        return end_kwargs

    def start(self) -> None:
        if not self.enabled:
            return
        client = get_tracing_client()
        if not client or not client.client:
            return
        try:
            self._start_time = time.time()
            self._context_manager = client.client.start_as_current_observation(
                **self._start_kwargs()
            )
            self._observation = self._context_manager.__enter__()
        except Exception as e:
            logger.warning("Failed to start %s '%s': %s", self.as_type, self.name, e)
            self._observation = None

    def end(self) -> None:
        if not self.enabled or not self._observation:
            return
        try:
            self._observation.update(**self._end_kwargs())
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning("Failed to end %s '%s': %s", self.as_type, self.name, e)

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        """``"success"`` or ``"error"``."""
        self._status = status


@dataclass
class SpanContext(_Observation):
    """A tool execution or other unit of work."""


@dataclass
class GenerationContext(_Observation):
    """A model call, with model parameters and token usage."""

    model: str = ""
    model_parameters: Optional[dict] = None
    _usage: Optional[dict] = field(default=None, repr=False)

    as_type = "generation"

    def _start_kwargs(self) -> dict[str, Any]:
        start_kwargs = super()._start_kwargs()
        start_kwargs["model"] = self.model
        start_kwargs["model_parameters"] = self.model_parameters
        return start_kwargs

    def _end_kwargs(self) -> dict[str, Any]:
        end_kwargs = super()._end_kwargs()
        if self._usage:
            end_kwargs["usage_details"] = self._usage
        return end_kwargs

    def set_usage(self, input_tokens: int = 0, output_tokens: int = 0) -> None:
        self._usage = {
            "input": input_tokens,
            "output": output_tokens,
            "total": input_tokens + output_tokens,
        }


@dataclass
class TracingContext:
    """
    Tracing state for one engine run.

    Safe to use whether or not tracing is enabled: when the client is
    missing or disabled every method is a no-op and the yielded span and
    generation objects simply record nothing.
    """

    execution_id: str
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    _enabled: bool = field(default=False, repr=False)
    _root: Optional[SpanContext] = field(default=None, repr=False)
    _trace_id: Optional[str] = field(default=None, repr=False)
    _root_span_id: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        client = get_tracing_client()
        self._enabled = client is not None and client.enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start_trace(
        self,
        name: str = "engine_run",
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        """Open the root span and tag the trace with session and user ids."""
        if not self._enabled:
            logger.debug("[%s] start_trace skipped: tracing disabled", self.execution_id)
            return

        root_metadata = {"execution_id": self.execution_id, **(metadata or {})}
        self._root = SpanContext(
            name=name, enabled=True, input=input, metadata=root_metadata
        )
        self._root.start()
        span = self._root._observation
        if span is None:
            return

        self._trace_id = getattr(span, "trace_id", None)
        self._root_span_id = getattr(span, "id", None)
        try:
            span.update_trace(user_id=self.user_id, session_id=self.session_id)
        except Exception as e:
            logger.warning("[%s] Failed to tag trace: %s", self.execution_id, e)

    def end_trace(
        self,
        output: Optional[Any] = None,
        status: str = "success",
    ) -> None:
        """Close the root span."""
        if not self._root:
            return
        self._root.set_output(output)
        self._root.set_status(status)
        self._root.end()
        self._root = None

    def get_trace_context(self) -> Optional["TraceContext"]:
        """Parent reference for child observations, or None before start."""
        if not self._trace_id or not self._root_span_id:
            return None
        from langfuse.types import TraceContext

        return TraceContext(trace_id=self._trace_id, parent_span_id=self._root_span_id)

    @contextmanager
    def span(
        self,
        name: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> Generator[SpanContext, None, None]:
        span_ctx = SpanContext(
            name=name,
            enabled=self._enabled,
            input=input,
            metadata=metadata,
            _trace_context=self.get_trace_context(),
        )
        span_ctx.start()
        try:
            yield span_ctx
        except BaseException:
            span_ctx.set_status("error")
            raise
        finally:
            span_ctx.end()

    @contextmanager
    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
        model_parameters: Optional[dict] = None,
    ) -> Generator[GenerationContext, None, None]:
        gen_ctx = GenerationContext(
            name=name,
            enabled=self._enabled,
            input=input,
            metadata=metadata,
            model=model,
            model_parameters=model_parameters,
            _trace_context=self.get_trace_context(),
        )
        gen_ctx.start()
        try:
            yield gen_ctx
        except BaseException:
            gen_ctx.set_status("error")
            raise
        finally:
            gen_ctx.end()
