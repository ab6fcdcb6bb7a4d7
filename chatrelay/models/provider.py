"""Provider status model."""

from enum import StrEnum


class ProviderStatus(StrEnum):
    """Availability of the external AI provider as evaluated at startup."""

    NOT_CONFIGURED = "not_configured"
    INVALID_FORMAT = "invalid_format"
    TOO_SHORT = "too_short"
    CONNECTED = "connected"
    CONNECTION_FAILED = "connection_failed"
    INITIALIZATION_ERROR = "initialization_error"
