"""Repository layer for ledger data access."""

from transfer.repositories.file_repository import FileRepository
from transfer.repositories.chunk_repository import ChunkRepository

__all__ = [
    "FileRepository",
    "ChunkRepository",
]
