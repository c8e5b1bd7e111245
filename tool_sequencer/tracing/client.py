"""
Langfuse tracing client with graceful degradation.

Uses the Langfuse SDK v3 (OpenTelemetry-based) API. A missing package,
missing credentials or an unreachable host disable tracing; every tracing
operation is then a no-op and the engine runs unchanged.
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

_langfuse_error: Optional[str] = None

try:
    from langfuse import Langfuse
except ImportError as e:
    _langfuse_error = f"langfuse package not installed: {e}"
    Langfuse = None  # type: ignore


class TracingClient:
    """Owns the Langfuse client and knows whether tracing is live."""

    def __init__(
        self,
        public_key: str = "",
        secret_key: str = "",
        host: str = "",
        debug: bool = False,
    ):
        self._client: Optional["Langfuse"] = None
        self._enabled = False
        self._error: Optional[str] = None

        if Langfuse is None:
            self._error = _langfuse_error
            logger.debug("Tracing disabled: %s", self._error)
            return

        if not public_key or not secret_key:
            self._error = "Langfuse credentials not configured"
            logger.debug("Tracing disabled: %s", self._error)
            return

        if host and not host.startswith(("http://", "https://")):
            logger.warning(
                "LANGFUSE_HOST '%s' has no scheme; expected http(s)://host:port", host
            )

        try:
            kwargs: dict[str, Any] = {
                "public_key": public_key,
                "secret_key": secret_key,
                "debug": debug,
            }
            if host:
                kwargs["host"] = host
            self._client = Langfuse(**kwargs)
        except Exception as e:
            self._error = f"Failed to initialize Langfuse client: {e}"
            logger.warning("Tracing disabled: %s", self._error)
            return

        if not self._check_auth():
            return

        self._enabled = True
        logger.info("Langfuse tracing enabled (host: %s)", host or "default")

    def _check_auth(self) -> bool:
        """Verify credentials and reachability once, at startup."""
        try:
            ok = self._client.auth_check()
        except Exception as e:
            ok = False
            self._error = f"Langfuse connectivity check failed: {e}"
        else:
            if not ok:
                self._error = "Langfuse auth_check() failed; check host and credentials"
        if not ok:
            logger.warning("Tracing disabled: %s", self._error)
            self._client = None
        return bool(ok)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def error(self) -> Optional[str]:
        """Why tracing is disabled, if it is."""
        return self._error

    @property
    def client(self) -> Optional["Langfuse"]:
        return self._client

    def flush(self) -> None:
        """Send pending events."""
        if not self._enabled or not self._client:
            return
        try:
            self._client.flush()
        except Exception as e:
            logger.warning("Failed to flush tracing events: %s", e)

    def shutdown(self) -> None:
        """Flush and stop the client."""
        if not self._enabled or not self._client:
            return
        try:
            self._client.shutdown()
            logger.info("Langfuse tracing client shutdown complete")
        except Exception as e:
            logger.warning("Error during tracing client shutdown: %s", e)


_tracing_client: Optional[TracingClient] = None


def init_tracing_client(
    public_key: str = "",
    secret_key: str = "",
    host: str = "",
    debug: bool = False,
) -> TracingClient:
    """Create the process-wide tracing client."""
    global _tracing_client
    _tracing_client = TracingClient(
        public_key=public_key,
        secret_key=secret_key,
        host=host,
        debug=debug,
    )
    return _tracing_client


def get_tracing_client() -> Optional[TracingClient]:
    return _tracing_client


def shutdown_tracing() -> None:
    """Shut down and forget the process-wide tracing client."""
    global _tracing_client
    if _tracing_client:
        _tracing_client.shutdown()
        _tracing_client = None
