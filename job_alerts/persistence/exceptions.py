"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError so callers can catch
them with a single except clause.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""


class DatabaseConnectionError(PersistenceError):
    """Raised when the database cannot be initialized or reached.

    Examples:
    - Empty or malformed database URL
    - Database file not accessible
    - ``get_session()`` called before ``init_database()``
    """


class RecordNotFoundError(PersistenceError):
    """Raised when an update targets a row that does not exist.

    Lookups that may legitimately miss return None instead.
    """


class DataIntegrityError(PersistenceError):
    """Raised when a write violates a database constraint."""


class StoreUnavailable(PersistenceError):
    """Raised by the subscription store when any read or write fails.

    Callers treat it as "the store could not answer right now"; the original
    error is chained as ``__cause__``.
    """
