class StoreError(Exception):
    """Base exception for document store failures."""


class StoreUnavailableError(StoreError):
    """Raised when the database cannot be reached. Callers may retry."""


class RecordUpdateError(StoreError):
    """Raised when the database rejects an update for a single record."""


class DocumentNotFoundError(StoreError):
    """Raised when a document cannot be found in the database."""


class DuplicateJobError(StoreError):
    """Raised when a document already exists for an external job id."""
