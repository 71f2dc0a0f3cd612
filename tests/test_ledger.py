"""Integration tests for the SQLite metadata ledger."""

import sqlite3
from datetime import datetime, timezone

import pytest

from common.types import ChunkRecord, FileRecord, FileStatus, chunk_key
from transfer.database import get_db_connection
from transfer.exceptions import FileNotFoundError, InvalidStatusTransitionError, StorageError
from transfer.repositories.chunk_repository import ChunkRepository
from transfer.repositories.file_repository import FileRepository


def _file(file_id="file_abc", status=FileStatus.UPLOADING) -> FileRecord:
    now = datetime.now(timezone.utc)
    return FileRecord(
        file_id=file_id,
        file_name="report.pdf",
        file_size=0,
        chunk_count=0,
        status=status,
        user_id="anonymous",
        created_at=now,
        updated_at=now,
    )


def _chunk(file_id: str, index: int, size: int = 10, checksum: str = "a" * 64) -> ChunkRecord:
    return ChunkRecord(
        chunk_id=chunk_key(file_id, index),
        file_id=file_id,
        chunk_index=index,
        chunk_size=size,
        checksum=checksum,
        created_at=datetime.now(timezone.utc),
    )


class TestFileLifecycle:

    @pytest.mark.asyncio
    async def test_create_and_lookup(self, ledger):
        await ledger.create_file(_file())
        record = await ledger.lookup_file("file_abc")

        assert record.file_name == "report.pdf"
        assert record.status is FileStatus.UPLOADING
        assert record.user_id == "anonymous"

    @pytest.mark.asyncio
    async def test_lookup_unknown(self, ledger):
        with pytest.raises(FileNotFoundError):
            await ledger.lookup_file("file_missing")

    @pytest.mark.asyncio
    async def test_finalize_completed(self, ledger):
        await ledger.create_file(_file())
        record = await ledger.finalize_file(
            "file_abc", 2, FileStatus.COMPLETED, datetime.now(timezone.utc), file_size=20
        )

        assert record.status is FileStatus.COMPLETED
        assert record.chunk_count == 2
        assert record.file_size == 20

    @pytest.mark.asyncio
    async def test_terminal_status_never_moves(self, ledger):
        await ledger.create_file(_file())
        await ledger.finalize_file("file_abc", 0, FileStatus.FAILED, datetime.now(timezone.utc))

        with pytest.raises(InvalidStatusTransitionError):
            await ledger.finalize_file("file_abc", 0, FileStatus.COMPLETED, datetime.now(timezone.utc))

        record = await ledger.lookup_file("file_abc")
        assert record.status is FileStatus.FAILED

    @pytest.mark.asyncio
    async def test_cannot_finalize_as_uploading(self, ledger):
        await ledger.create_file(_file())
        with pytest.raises(InvalidStatusTransitionError):
            await ledger.finalize_file("file_abc", 0, FileStatus.UPLOADING, datetime.now(timezone.utc))

    @pytest.mark.asyncio
    async def test_finalize_unknown(self, ledger):
        with pytest.raises(FileNotFoundError):
            await ledger.finalize_file("file_missing", 0, FileStatus.COMPLETED, datetime.now(timezone.utc))

    @pytest.mark.asyncio
    async def test_list_files_by_status(self, ledger):
        await ledger.create_file(_file("file_1"))
        await ledger.create_file(_file("file_2"))
        await ledger.finalize_file("file_2", 0, FileStatus.COMPLETED, datetime.now(timezone.utc))

        completed = await ledger.list_files(status=FileStatus.COMPLETED)
        everything = await ledger.list_files()

        assert [f.file_id for f in completed] == ["file_2"]
        assert {f.file_id for f in everything} == {"file_1", "file_2"}

    def test_status_constraint_rejects_processing(self, test_db):
        with get_db_connection() as conn:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO files (file_id, file_name, file_size, status, created_at, updated_at) "
                    "VALUES ('f', 'n', 0, 'processing', 'x', 'x')"
                )


class TestChunks:

    @pytest.mark.asyncio
    async def test_chunks_listed_in_index_order(self, ledger):
        await ledger.create_file(_file())
        for index in (2, 0, 1):
            await ledger.record_chunk(_chunk("file_abc", index))

        chunks = await ledger.list_chunks("file_abc")
        assert [c.chunk_index for c in chunks] == [0, 1, 2]
        assert chunks[0].chunk_id == "file_abc_chunk_0"

    @pytest.mark.asyncio
    async def test_identical_retry_is_accepted(self, ledger):
        await ledger.create_file(_file())
        chunk = _chunk("file_abc", 0)
        await ledger.record_chunk(chunk)
        await ledger.record_chunk(chunk)

        assert len(await ledger.list_chunks("file_abc")) == 1

    @pytest.mark.asyncio
    async def test_conflicting_row_is_rejected(self, ledger):
        await ledger.create_file(_file())
        await ledger.record_chunk(_chunk("file_abc", 0, checksum="a" * 64))

        with pytest.raises(StorageError):
            await ledger.record_chunk(_chunk("file_abc", 0, checksum="b" * 64))

        chunks = await ledger.list_chunks("file_abc")
        assert chunks[0].checksum == "a" * 64

    @pytest.mark.asyncio
    async def test_chunk_for_unknown_file_is_rejected(self, ledger):
        with pytest.raises(StorageError):
            await ledger.record_chunk(_chunk("file_missing", 0))

    @pytest.mark.asyncio
    async def test_delete_cascades_to_chunks(self, ledger):
        await ledger.create_file(_file())
        await ledger.record_chunk(_chunk("file_abc", 0))
        await ledger.record_chunk(_chunk("file_abc", 1))

        removed = await ledger.delete_file("file_abc")

        assert [c.chunk_index for c in removed] == [0, 1]
        assert await ledger.list_chunks("file_abc") == []
        with pytest.raises(FileNotFoundError):
            await ledger.lookup_file("file_abc")

    @pytest.mark.asyncio
    async def test_delete_unknown(self, ledger):
        with pytest.raises(FileNotFoundError):
            await ledger.delete_file("file_missing")

    @pytest.mark.asyncio
    async def test_ping(self, ledger):
        assert await ledger.ping() is True


class TestRepositoriesOwnConnection:

    def test_writes_without_shared_connection_are_committed(self, test_db):
        FileRepository.create_file(_file())
        ChunkRepository.insert_chunk(_chunk("file_abc", 0))
        updated = FileRepository.finalize(
            "file_abc", 1, FileStatus.COMPLETED, datetime.now(timezone.utc), file_size=10
        )

        assert updated == 1
        record = FileRepository.get_by_id("file_abc")
        assert record.status is FileStatus.COMPLETED
        assert [c.chunk_index for c in ChunkRepository.get_chunks_by_file("file_abc")] == [0]

    def test_delete_without_shared_connection(self, test_db):
        FileRepository.create_file(_file())

        assert FileRepository.delete_file("file_abc") is True
        assert FileRepository.get_by_id("file_abc") is None
        assert FileRepository.delete_file("file_abc") is False
