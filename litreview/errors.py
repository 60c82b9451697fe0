"""Exception hierarchy for the catalog, its stores, and the publishing path."""

from typing import Optional, Sequence


class CatalogError(RuntimeError):
    """Base exception for litreview failures."""


class StoreUnavailable(CatalogError):
    """Raised when the persistent record store cannot be opened."""


class WriteError(CatalogError):
    """Raised when a record or binary write to the record store fails."""

    def __init__(self, message: str, paper_id: Optional[str] = None):
        super().__init__(message)
        self.paper_id = paper_id


class QuotaExceeded(CatalogError):
    """Raised when the fallback store would grow past its capacity."""

    def __init__(self, used: int, quota: int):
        super().__init__(
            f"Fallback storage quota exceeded ({used:,} of {quota:,} bytes)"
        )
        self.used = used
        self.quota = quota


class ValidationError(CatalogError):
    """Raised when an edit is rejected; ``fields`` lists the offending fields."""

    def __init__(self, fields: Sequence[str], message: Optional[str] = None):
        self.fields = list(fields)
        super().__init__(message or f"Invalid or missing fields: {', '.join(self.fields)}")


class ParseError(CatalogError):
    """Raised when an input file is unreadable or misses required fields."""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


class NetworkError(CatalogError):
    """Raised when a call to the hosted release API fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PreconditionFailed(CatalogError):
    """Raised when a release operation is attempted without credentials."""


__all__ = [
    "CatalogError",
    "NetworkError",
    "ParseError",
    "PreconditionFailed",
    "QuotaExceeded",
    "StoreUnavailable",
    "ValidationError",
    "WriteError",
]
