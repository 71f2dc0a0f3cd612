"""Pydantic schemas for file transfer endpoints."""

from typing import List
from pydantic import BaseModel

from common.types import ChunkRecord, FileRecord


class ChunkResponse(BaseModel):
    """Response model for one stored chunk."""
    id: str
    file_id: str
    index: int
    size: int
    checksum: str
    created_at: str

    @classmethod
    def from_record(cls, chunk: ChunkRecord) -> "ChunkResponse":
        return cls(
            id=chunk.chunk_id,
            file_id=chunk.file_id,
            index=chunk.chunk_index,
            size=chunk.chunk_size,
            checksum=chunk.checksum,
            created_at=chunk.created_at.isoformat(),
        )


class UploadResponse(BaseModel):
    """Response model for file upload."""
    file_id: str
    filename: str
    size: int
    chunk_count: int
    status: str
    chunks: List[ChunkResponse]


class FileStatusResponse(BaseModel):
    """Response model for the full file record."""
    file_id: str
    file_name: str
    file_size: int
    chunk_count: int
    status: str
    user_id: str
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileStatusResponse":
        return cls(
            file_id=record.file_id,
            file_name=record.file_name,
            file_size=record.file_size,
            chunk_count=record.chunk_count,
            status=record.status.value,
            user_id=record.user_id or "",
            created_at=record.created_at.isoformat(),
            updated_at=record.updated_at.isoformat(),
        )


class FileInfoResponse(BaseModel):
    """Response model for file info with its download link."""
    file_id: str
    file_name: str
    file_size: int
    chunk_count: int
    status: str
    created_at: str
    download_url: str


class ListFilesResponse(BaseModel):
    """Response model for file listing."""
    files: List[FileStatusResponse]
    count: int


class DeleteFileResponse(BaseModel):
    """Response model for file deletion."""
    file_id: str
    message: str
