"""Chunk repository for database operations."""

from datetime import datetime
from typing import List

from common.logging_config import get_logger
from common.types import ChunkRecord
from transfer.database import get_db_connection

logger = get_logger(__name__)

_CHUNK_COLUMNS = "chunk_id, file_id, chunk_index, chunk_size, checksum, created_at"


def _row_to_chunk(row) -> ChunkRecord:
    return ChunkRecord(
        chunk_id=row["chunk_id"],
        file_id=row["file_id"],
        chunk_index=row["chunk_index"],
        chunk_size=row["chunk_size"],
        checksum=row["checksum"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class ChunkRepository:
    @staticmethod
    def insert_chunk(chunk: ChunkRecord, conn=None) -> None:
        """
        Append one chunk row. Never updates an existing row; a duplicate
        chunk_id or (file_id, chunk_index) raises sqlite3.IntegrityError.
        """
        if conn is None:
            with get_db_connection() as conn:
                ChunkRepository.insert_chunk(chunk, conn=conn)
                conn.commit()
                return

        cursor = conn.cursor()
        cursor.execute(
            f"""
            INSERT INTO chunks ({_CHUNK_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                chunk.chunk_id,
                chunk.file_id,
                chunk.chunk_index,
                chunk.chunk_size,
                chunk.checksum,
                chunk.created_at.isoformat(),
            )
        )

    @staticmethod
    def get_chunks_by_file(file_id: str, conn=None) -> List[ChunkRecord]:
        if conn is None:
            with get_db_connection() as conn:
                return ChunkRepository.get_chunks_by_file(file_id, conn=conn)

        cursor = conn.cursor()
        cursor.execute(
            f"""
            SELECT {_CHUNK_COLUMNS}
            FROM chunks
            WHERE file_id = ?
            ORDER BY chunk_index
            """,
            (file_id,)
        )
        chunks = [_row_to_chunk(row) for row in cursor.fetchall()]
        chunks.sort(key=lambda chunk: chunk.chunk_index)
        return chunks
