"""Exception types raised by signalpipe."""


class SignalPipeError(Exception):
    """Base class for all signalpipe errors."""


class ConfigurationError(SignalPipeError):
    """Raised when the pipeline is constructed with invalid configuration."""


class TransportError(SignalPipeError):
    """Raised by a transport when a batch could not be delivered.

    Args:
        message: Description of the failure.
        status_code: HTTP status of the response, or None for network errors.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
