"""Gateway error taxonomy."""


class GatewayError(Exception):
    """Base class for errors reported to callers as structured JSON."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(GatewayError):
    """Missing or malformed request body."""

    status_code = 400


class UnsupportedMediaTypeError(GatewayError):
    """Upload rejected by the type/size filter."""

    status_code = 400


class ProviderError(Exception):
    """The external provider failed or could not be reached.

    Never reaches the caller as an error status: handlers absorb it into a
    degraded response.
    """
