class SyncError(Exception):
    """Base class for errors raised by the sync engine and its collaborators."""


class InvalidTransactionError(SyncError, ValueError):
    """Mutation input failed validation; nothing was applied or queued."""


class TransactionNotFoundError(SyncError, LookupError):
    def __init__(self, ref: str) -> None:
        super().__init__(f"No transaction with id '{ref}' in local state")
        self.ref = ref


class RemoteError(SyncError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ClientDataError(RemoteError):
    """The remote store rejected the request as invalid. Retrying will not help."""


class TransientError(RemoteError):
    """Connectivity loss, timeout or server unavailability. Safe to retry later."""


class PersistenceError(SyncError):
    """The durable cache could not be written."""


class TextExtractionError(SyncError):
    """No text could be extracted from an uploaded image."""
