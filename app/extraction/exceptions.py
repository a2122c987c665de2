class ExtractionError(Exception):
    """Raised when job state cannot be obtained from the extraction service."""


class ServiceUnavailableError(ExtractionError):
    """Raised on network errors, timeouts or server errors. Local data may be served stale."""


class AuthExpiredError(ExtractionError):
    """Raised when the extraction service rejects the bearer credential."""


class CredentialUnavailableError(ExtractionError):
    """Raised when no access token could be obtained for a principal. Retryable."""
