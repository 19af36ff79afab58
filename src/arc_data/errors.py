"""Exception types shared across the data layer."""


class ArcDataError(Exception):
    """Base class for all arc-data errors."""


class StoreUnavailableError(ArcDataError):
    """A backing SQLite store could not be opened or initialized."""

    def __init__(self, path: str, cause: Exception | None = None):
        self.path = path
        self.cause = cause
        message = f"Unable to open the store: {path}"
        if cause is not None:
            message += f" ({cause})"
        super().__init__(message)


class ValidationError(ArcDataError, ValueError):
    """A required argument or field is missing or invalid."""


class ImportParseError(ArcDataError, ValueError):
    """Import payload cannot be parsed or its format is not recognized."""


class DocumentNotFoundError(ArcDataError, KeyError):
    """A document does not exist (or is deleted) in a store."""

    def __init__(self, store: str, doc_id: str):
        self.store = store
        self.doc_id = doc_id
        super().__init__(f"Document not found: {store}/{doc_id}")

    def __str__(self) -> str:
        return self.args[0]


class ConflictError(ArcDataError):
    """Revision mismatch when updating a document."""

    def __init__(self, store: str, doc_id: str, current_rev: str | None):
        self.store = store
        self.doc_id = doc_id
        self.current_rev = current_rev
        super().__init__(f"Document update conflict: {store}/{doc_id}")
