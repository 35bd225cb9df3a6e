"""Error types raised by the mastery engine."""


class EngineError(Exception):
    """Base class for mastery engine errors."""
    pass


class InvalidInputError(EngineError):
    """Raised when an operation receives invalid arguments.

    Always raised before any record is mutated.
    """
    pass


class StorageError(EngineError):
    """Raised when the persistence layer fails to read or write records."""
    pass


class RecordNotFoundError(StorageError):
    """Raised when a record required for an update does not exist."""
    pass
