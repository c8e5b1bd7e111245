"""
Exception hierarchy for Tool Sequencer.
"""


class ToolSequencerError(Exception):
    """Base class for errors raised by this package."""


class ModelGatewayError(ToolSequencerError):
    """
    A model request failed in transport or at the provider.

    Raised by gateways and propagated unchanged out of the engine; the
    conversation keeps every turn appended before the failed request.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
