"""Resolves a completed file's chunks back into an ordered byte stream."""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, List

from common.checksum import IncrementalChecksumCalculator
from common.types import ChunkRecord, FileRecord, FileStatus, chunk_key
from transfer.capabilities import ChunkStore, MetadataLedger
from transfer.exceptions import ChunkIntegrityError, FileNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class ReassemblyPlan:
    """
    Checked chunk list for one download, plus progress of its stream.
    """
    file: FileRecord
    chunks: List[ChunkRecord]
    bytes_sent: int = 0
    chunks_sent: int = 0


class Reassembler:
    """
    Streams a file back from its chunks, one chunk at a time.

    All metadata checks run in prepare(), before the first byte leaves.
    stream() buffers a single chunk, verifies its size and SHA-256, then
    emits it; the first failure stops the stream.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        ledger: MetadataLedger,
        verify_availability: bool = True
    ):
        self.chunk_store = chunk_store
        self.ledger = ledger
        self.verify_availability = verify_availability

    async def prepare(self, file_id: str) -> ReassemblyPlan:
        """
        Resolve and check everything a download needs.

        Raises:
            FileNotFoundError: Unknown file, or file not completed
            ChunkIntegrityError: Chunk rows do not describe the file exactly,
                or a chunk object is missing from the store
        """
        record = await self.ledger.lookup_file(file_id)
        if record.status is not FileStatus.COMPLETED:
            raise FileNotFoundError(
                f"File {file_id} is not available for download (status: {record.status.value})"
            )

        chunks = sorted(await self.ledger.list_chunks(file_id), key=lambda c: c.chunk_index)
        _check_chunk_rows(record, chunks)

        if self.verify_availability:
            for chunk in chunks:
                if not await self.chunk_store.exists(chunk_key(file_id, chunk.chunk_index)):
                    raise ChunkIntegrityError(
                        f"Chunk {chunk.chunk_index} of file {file_id} is missing from the object store"
                    )

        return ReassemblyPlan(file=record, chunks=chunks)

    async def stream(self, plan: ReassemblyPlan) -> AsyncIterator[bytes]:
        file_id = plan.file.file_id
        for chunk in plan.chunks:
            key = chunk_key(file_id, chunk.chunk_index)
            calculator = IncrementalChecksumCalculator()
            buffer = bytearray()
            pieces = self.chunk_store.get(key)
            try:
                async for piece in pieces:
                    calculator.update(piece)
                    buffer.extend(piece)
                    if calculator.size > chunk.chunk_size:
                        break
            finally:
                await pieces.aclose()

            if calculator.size != chunk.chunk_size:
                raise ChunkIntegrityError(
                    f"Chunk {key} size mismatch: recorded {chunk.chunk_size}, fetched {calculator.size}"
                )
            actual = calculator.finalize()
            if actual != chunk.checksum:
                raise ChunkIntegrityError(
                    f"Chunk {key} checksum mismatch: recorded {chunk.checksum}, fetched {actual}"
                )

            yield bytes(buffer)
            plan.bytes_sent += chunk.chunk_size
            plan.chunks_sent += 1
            logger.debug(f"Streamed chunk {chunk.chunk_index} of file {file_id}")


def _check_chunk_rows(record: FileRecord, chunks: List[ChunkRecord]) -> None:
    indices = [chunk.chunk_index for chunk in chunks]
    if indices != list(range(record.chunk_count)):
        raise ChunkIntegrityError(
            f"File {record.file_id} expects chunks 0..{record.chunk_count - 1}, ledger has {indices}"
        )

    total = sum(chunk.chunk_size for chunk in chunks)
    if total != record.file_size:
        raise ChunkIntegrityError(
            f"File {record.file_id} chunk sizes sum to {total}, file size is {record.file_size}"
        )
