"""SQLite-backed metadata ledger for files and chunks."""

import asyncio
import sqlite3
from datetime import datetime
from typing import Callable, List, Optional, TypeVar

from common.logging_config import get_logger
from common.types import ChunkRecord, FileRecord, FileStatus
from transfer import config
from transfer.database import get_db_connection
from transfer.exceptions import (
    CollaboratorUnavailableError,
    FileNotFoundError,
    InvalidStatusTransitionError,
    StorageError,
)
from transfer.repositories import ChunkRepository, FileRepository

logger = get_logger(__name__)

T = TypeVar("T")


class SqliteMetadataLedger:
    """
    MetadataLedger over the SQLite schema in transfer.database.

    Every call opens its own connection in a worker thread and is bounded
    by a timeout, so a wedged database cannot stall a request forever.
    sqlite3 errors surface as StorageError.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else config.LEDGER_TIMEOUT_SECONDS

    async def _run(self, operation: str, func: Callable[..., T], *args) -> T:
        # A timeout abandons the worker thread but cannot stop it, so a timed-out
        # write may still commit later. Finalize only moves uploading rows,
        # which keeps a late commit from overturning a terminal status.
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise CollaboratorUnavailableError(
                f"Ledger {operation} timed out after {self.timeout}s"
            )
        except sqlite3.Error as e:
            logger.error(f"Ledger {operation} failed: {e}")
            raise StorageError(f"Ledger {operation} failed: {e}") from e

    async def create_file(self, record: FileRecord) -> FileRecord:
        return await self._run("create_file", FileRepository.create_file, record)

    async def record_chunk(self, chunk: ChunkRecord) -> None:
        await self._run("record_chunk", self._insert_chunk, chunk)

    @staticmethod
    def _insert_chunk(chunk: ChunkRecord) -> None:
        with get_db_connection() as conn:
            try:
                ChunkRepository.insert_chunk(chunk, conn=conn)
                conn.commit()
            except sqlite3.IntegrityError:
                conn.rollback()
                existing = [
                    c for c in ChunkRepository.get_chunks_by_file(chunk.file_id, conn=conn)
                    if c.chunk_index == chunk.chunk_index
                ]
                # A retry after an ambiguous failure finds its own row already there.
                if existing and _same_chunk(existing[0], chunk):
                    logger.info(f"Chunk {chunk.chunk_id} already recorded, treating insert as done")
                    return
                raise

    async def finalize_file(
        self,
        file_id: str,
        chunk_count: int,
        status: FileStatus,
        timestamp: datetime,
        file_size: Optional[int] = None,
    ) -> FileRecord:
        if not status.is_terminal:
            raise InvalidStatusTransitionError(f"Cannot finalize file {file_id} as uploading")
        return await self._run(
            "finalize_file", self._finalize, file_id, chunk_count, status, timestamp, file_size
        )

    @staticmethod
    def _finalize(
        file_id: str,
        chunk_count: int,
        status: FileStatus,
        timestamp: datetime,
        file_size: Optional[int],
    ) -> FileRecord:
        with get_db_connection() as conn:
            updated = FileRepository.finalize(
                file_id, chunk_count, status, timestamp, file_size=file_size, conn=conn
            )
            conn.commit()
            record = FileRepository.get_by_id(file_id, conn=conn)

        if record is None:
            raise FileNotFoundError(f"File {file_id} not found")
        if updated == 0:
            raise InvalidStatusTransitionError(
                f"File {file_id} is already {record.status.value}, cannot move to {status.value}"
            )
        return record

    async def lookup_file(self, file_id: str) -> FileRecord:
        record = await self._run("lookup_file", FileRepository.get_by_id, file_id)
        if record is None:
            raise FileNotFoundError(f"File {file_id} not found")
        return record

    async def list_chunks(self, file_id: str) -> List[ChunkRecord]:
        return await self._run("list_chunks", ChunkRepository.get_chunks_by_file, file_id)

    async def list_files(self, status: Optional[FileStatus] = None, limit: int = 100) -> List[FileRecord]:
        return await self._run("list_files", FileRepository.list_files, status, limit)

    async def delete_file(self, file_id: str) -> List[ChunkRecord]:
        return await self._run("delete_file", self._delete, file_id)

    @staticmethod
    def _delete(file_id: str) -> List[ChunkRecord]:
        with get_db_connection() as conn:
            chunks = ChunkRepository.get_chunks_by_file(file_id, conn=conn)
            deleted = FileRepository.delete_file(file_id, conn=conn)
            conn.commit()
        if not deleted:
            raise FileNotFoundError(f"File {file_id} not found")
        logger.info(f"Deleted file {file_id} and {len(chunks)} chunk rows")
        return chunks

    async def ping(self) -> bool:
        try:
            await self._run("ping", self._select_one)
            return True
        except StorageError as e:
            logger.warning(f"Ledger ping failed: {e}")
            return False

    @staticmethod
    def _select_one() -> None:
        with get_db_connection() as conn:
            conn.execute("SELECT 1 FROM files LIMIT 1").fetchall()


def _same_chunk(a: ChunkRecord, b: ChunkRecord) -> bool:
    return (
        a.chunk_id == b.chunk_id
        and a.file_id == b.file_id
        and a.chunk_size == b.chunk_size
        and a.checksum == b.checksum
    )
