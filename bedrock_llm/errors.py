"""Exceptions raised by the Bedrock model adapter.

Nothing in this package recovers from these locally: every error aborts
the current invocation and callers own any retry policy.
"""


class BedrockError(Exception):
    """Base class for all adapter errors."""


class ConfigurationError(BedrockError, ValueError):
    """Invalid model handle configuration, raised before any network use."""


class CredentialsError(BedrockError):
    """No AWS credentials could be resolved for signing."""


class TransportError(BedrockError):
    """The HTTP exchange failed or returned a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: int | None = None,
        reason: str = "",
        body: str = "",
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.reason = reason
        self.body = body


class StreamDecodeError(BedrockError):
    """A response stream event could not be framed, validated or decoded."""

    def __init__(self, message: str, *, raw: bytes | None = None):
        super().__init__(message)
        self.raw = raw


class MalformedResponseError(BedrockError):
    """A decoded response lacks the provider's generated-text field."""
