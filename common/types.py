"""Shared data type definitions (FileStatus, FileRecord, ChunkRecord)."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class FileStatus(str, Enum):
    """
    Lifecycle status of an uploaded file.

    uploading is the only non-terminal state; a file moves forward to
    completed or failed exactly once.
    """
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not FileStatus.UPLOADING


@dataclass(frozen=True)
class FileRecord:
    """
    Ledger row for a file.
    """
    file_id: str
    file_name: str
    file_size: int
    chunk_count: int
    status: FileStatus
    user_id: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class ChunkRecord:
    """
    Ledger row for a single stored chunk.
    """
    chunk_id: str
    file_id: str
    chunk_index: int
    chunk_size: int
    checksum: str
    created_at: datetime


def chunk_key(file_id: str, chunk_index: int) -> str:
    """
    Build the object-store key (and chunk id) for a chunk.

    Args:
        file_id: Identifier of the owning file
        chunk_index: Zero-based position of the chunk

    Returns:
        Key of the form "{file_id}_chunk_{index}"
    """
    return f"{file_id}_chunk_{chunk_index}"
