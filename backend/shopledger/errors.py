"""
Ledger error taxonomy.

Every error carries a message plus a details dict (rendered as JSON by the
routes) and the HTTP status the routes answer with.
"""


class LedgerError(Exception):
    """Base class for all ledger failures surfaced to callers."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(LedgerError):
    """Input rejected before any transaction opened; no state changed."""
    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404


class ConflictError(LedgerError):
    """409-level business rule conflict (e.g., duplicate customer mobile)."""
    status_code = 409


class StorageWriteError(LedgerError):
    """A store transaction failed and was rolled back in full."""
    status_code = 500


class StockAdjustmentError(StorageWriteError):
    """Stock could not be applied to a (product, shop) row."""
    status_code = 409


class SnapshotPersistError(LedgerError):
    """
    The durable snapshot write failed after a successful commit.

    Non-fatal: the in-memory store is already correct. The store keeps the
    error and retries on the next commit.
    """
    status_code = 503


class RestoreError(LedgerError):
    """A backup could not be verified or swapped in; the live store is untouched."""
    status_code = 400
