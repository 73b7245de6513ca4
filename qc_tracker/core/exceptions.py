class QCError(Exception):
    """Base class for errors raised by the QC services."""


class ValidationError(QCError):
    pass


class NotFoundError(QCError):
    pass


class ConflictError(QCError):
    pass


class PermissionDeniedError(QCError):
    pass


class StorageError(QCError):
    """The database or file store failed underneath an operation."""
