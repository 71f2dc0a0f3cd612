"""Service locator for the transfer pipeline's collaborators."""

from typing import Optional

from transfer.capabilities import ChunkStore, EventEmitter, MetadataLedger
from transfer.exceptions import CollaboratorUnavailableError
from transfer.services import DownloadService, FileService, UploadService

_chunk_store: Optional[ChunkStore] = None
_ledger: Optional[MetadataLedger] = None
_event_emitter: Optional[EventEmitter] = None


def set_chunk_store(store: Optional[ChunkStore]):
    """Set global chunk store instance"""
    global _chunk_store
    _chunk_store = store


def get_chunk_store() -> Optional[ChunkStore]:
    """Get global chunk store instance"""
    return _chunk_store


def set_ledger(ledger: Optional[MetadataLedger]):
    """Set global metadata ledger instance"""
    global _ledger
    _ledger = ledger


def get_ledger() -> Optional[MetadataLedger]:
    """Get global metadata ledger instance"""
    return _ledger


def set_event_emitter(emitter: Optional[EventEmitter]):
    """Set global event emitter instance"""
    global _event_emitter
    _event_emitter = emitter


def get_event_emitter() -> Optional[EventEmitter]:
    """Get global event emitter instance"""
    return _event_emitter


def _require():
    if _chunk_store is None or _ledger is None or _event_emitter is None:
        raise CollaboratorUnavailableError("Transfer service is not wired to its collaborators")
    return _chunk_store, _ledger, _event_emitter


def get_upload_service() -> UploadService:
    """FastAPI dependency building an UploadService from the registered collaborators."""
    return UploadService(*_require())


def get_download_service() -> DownloadService:
    """FastAPI dependency building a DownloadService from the registered collaborators."""
    return DownloadService(*_require())


def get_file_service() -> FileService:
    """FastAPI dependency building a FileService from the registered collaborators."""
    return FileService(*_require())
