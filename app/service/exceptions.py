class AccessDeniedError(Exception):
    """Raised when a principal may not act on a document."""
