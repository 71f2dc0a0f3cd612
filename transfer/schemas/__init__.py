"""Pydantic schemas for API responses."""

from transfer.schemas.files import (
    ChunkResponse,
    UploadResponse,
    FileStatusResponse,
    FileInfoResponse,
    ListFilesResponse,
    DeleteFileResponse
)
from transfer.schemas.common import ErrorResponse

__all__ = [
    "ChunkResponse",
    "UploadResponse",
    "FileStatusResponse",
    "FileInfoResponse",
    "ListFilesResponse",
    "DeleteFileResponse",
    "ErrorResponse"
]
