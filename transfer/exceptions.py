"""Custom exception classes for the transfer service."""


class TransferError(Exception):
    """
    Base exception class for all transfer pipeline errors.
    """
    pass


class InputError(TransferError):
    """
    Raised when an upload payload is missing or malformed.
    """
    pass


class NotFoundError(TransferError):
    """
    Base class for lookups that found nothing usable.
    """
    pass


class FileNotFoundError(NotFoundError):
    """
    Raised when a file does not exist, or is not completed and so cannot
    be downloaded.
    """
    pass


class ChunkNotFoundError(NotFoundError):
    """
    Raised when the object store has no object under a chunk key.
    """
    pass


class StorageError(TransferError):
    """
    Raised when an object-store or ledger operation fails.
    """
    pass


class CollaboratorUnavailableError(StorageError):
    """
    Raised when the object store, ledger or bus cannot be reached in time.
    """
    pass


class ChunkIntegrityError(StorageError):
    """
    Raised when chunk metadata or bytes are inconsistent (index gap, size
    mismatch, checksum mismatch).
    """
    pass


class InvalidStatusTransitionError(StorageError):
    """
    Raised when finalizing a file that is no longer uploading.
    """
    pass
