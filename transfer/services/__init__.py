"""Service layer for the transfer pipeline."""

from transfer.services.upload_service import UploadService, UploadResult
from transfer.services.download_service import DownloadService
from transfer.services.file_service import FileService

__all__ = [
    "UploadService",
    "UploadResult",
    "DownloadService",
    "FileService",
]
