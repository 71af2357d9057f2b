"""Error taxonomy for the chat pipeline.

Each upstream failure kind carries the message shown to the chat user, so
the orchestrator can turn any adapter error into a single in-stream event.
"""


class LeadAgentError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(LeadAgentError):
    """Missing or unusable input."""


class ExtractionError(LeadAgentError):
    """The extraction model call failed or returned unusable content."""


class ConfigError(LeadAgentError):
    """A required credential is not configured."""


class UpstreamError(LeadAgentError):
    """The property-search API returned a non-success response."""

    user_message = "Failed to fetch leads from BatchData"

    def __init__(self, message: str, status_code: int | None = None, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthError(UpstreamError):
    user_message = "Invalid BatchData API token. Please check your configuration."


class NotFoundError(UpstreamError):
    user_message = "BatchData API endpoint not found. Please check the API URL."


class RateLimitError(UpstreamError):
    user_message = "BatchData API rate limit exceeded. Please try again later."


_STATUS_ERRORS: dict[int, type[UpstreamError]] = {
    401: AuthError,
    404: NotFoundError,
    429: RateLimitError,
}


def upstream_error_for_status(status_code: int, details=None) -> UpstreamError:
    """Build the most specific UpstreamError for an HTTP status."""
    cls = _STATUS_ERRORS.get(status_code, UpstreamError)
    return cls(
        f"BatchData API returned status {status_code}",
        status_code=status_code,
        details=details,
    )
