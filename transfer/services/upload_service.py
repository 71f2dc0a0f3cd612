"""Upload orchestration: chunk, store, record, finalize."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from common.types import ChunkRecord, FileRecord, FileStatus, chunk_key
from transfer import config
from transfer.capabilities import ChunkStore, EventEmitter, MetadataLedger
from transfer.chunker import Chunker
from transfer.events import EventType, PublishOutcome, new_event
from transfer.exceptions import InputError, InvalidStatusTransitionError, StorageError
from transfer.utils import generate_file_id, utc_now

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """Outcome of a completed upload."""
    file: FileRecord
    chunks: List[ChunkRecord]
    undelivered_events: List[PublishOutcome] = field(default_factory=list)


class UploadService:
    """
    Drives one upload through the pipeline.

    Chunks are processed strictly in order: each chunk's bytes are stored
    before its row is recorded, so every recorded row points at durable
    bytes. A failure after the file row exists marks the file failed.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        ledger: MetadataLedger,
        events: EventEmitter,
        chunk_size: Optional[int] = None,
        ledger_retries: Optional[int] = None
    ):
        self.chunk_store = chunk_store
        self.ledger = ledger
        self.events = events
        self.chunker = Chunker(chunk_size or config.CHUNK_SIZE)
        self.ledger_retries = ledger_retries if ledger_retries is not None else config.LEDGER_WRITE_RETRIES

    async def upload(self, file_name: Optional[str], stream, user_id: Optional[str] = None) -> UploadResult:
        """
        Upload a file from a readable stream.

        Args:
            file_name: Client-supplied file name
            stream: Object with read(n), sync or async
            user_id: Owner recorded on the file row

        Returns:
            UploadResult with the completed file record and its chunks

        Raises:
            InputError: Missing file name or stream
            StorageError: Object store or ledger failure
        """
        if stream is None or not file_name:
            raise InputError("No file provided")

        now = utc_now()
        record = FileRecord(
            file_id=generate_file_id(),
            file_name=file_name,
            file_size=0,
            chunk_count=0,
            status=FileStatus.UPLOADING,
            user_id=user_id or config.DEFAULT_USER_ID,
            created_at=now,
            updated_at=now,
        )
        await self.ledger.create_file(record)
        file_id = record.file_id
        logger.info(f"Upload started [file_id={file_id}] name={file_name}")

        undelivered: List[PublishOutcome] = []
        await self._publish(undelivered, EventType.UPLOAD_STARTED, file_id, {
            "file_id": file_id,
            "file_name": file_name,
            "user_id": record.user_id,
        })

        chunks: List[ChunkRecord] = []
        total_size = 0
        try:
            async for piece in self.chunker.asplit(stream):
                key = chunk_key(file_id, piece.index)
                await self.chunk_store.put(key, piece.data)

                chunk = ChunkRecord(
                    chunk_id=key,
                    file_id=file_id,
                    chunk_index=piece.index,
                    chunk_size=piece.size,
                    checksum=piece.checksum,
                    created_at=utc_now(),
                )
                await self._record_chunk(chunk)
                chunks.append(chunk)
                total_size += piece.size

                await self._publish(undelivered, EventType.CHUNK_CREATED, key, {
                    "chunk_id": key,
                    "file_id": file_id,
                    "chunk_index": piece.index,
                    "chunk_size": piece.size,
                    "checksum": piece.checksum,
                })

            completed = await self.ledger.finalize_file(
                file_id, len(chunks), FileStatus.COMPLETED, utc_now(), file_size=total_size
            )
        except asyncio.CancelledError as e:
            # The caller is gone; finish the bookkeeping even if cancelled again.
            await asyncio.shield(self._mark_failed(file_id, chunks, total_size, e, undelivered))
            raise
        except Exception as e:
            await self._mark_failed(file_id, chunks, total_size, e, undelivered)
            raise

        logger.info(
            f"Upload completed [file_id={file_id}] size={total_size} chunks={len(chunks)}"
        )
        await self._publish(undelivered, EventType.UPLOAD_COMPLETED, file_id, {
            "file_id": file_id,
            "file_name": file_name,
            "file_size": total_size,
            "chunk_count": len(chunks),
        })

        return UploadResult(file=completed, chunks=chunks, undelivered_events=undelivered)

    async def _record_chunk(self, chunk: ChunkRecord) -> None:
        """
        Record a chunk row, retrying with exponential backoff.
        """
        attempts = max(1, self.ledger_retries)
        for attempt in range(attempts):
            try:
                await self.ledger.record_chunk(chunk)
                return
            except StorageError as e:
                if attempt < attempts - 1:
                    delay = 0.1 * (2 ** attempt)
                    logger.warning(
                        f"Failed to record chunk {chunk.chunk_id}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{attempts}): {e}"
                    )
                    await asyncio.sleep(delay)
                else:
                    raise

    async def _mark_failed(
        self,
        file_id: str,
        chunks: List[ChunkRecord],
        total_size: int,
        error: BaseException,
        undelivered: List[PublishOutcome]
    ) -> None:
        reason = str(error) or type(error).__name__
        logger.error(
            f"Upload failed [file_id={file_id}] after {len(chunks)} chunks: {reason}"
        )
        try:
            await self.ledger.finalize_file(
                file_id, len(chunks), FileStatus.FAILED, utc_now(), file_size=total_size
            )
        except InvalidStatusTransitionError:
            logger.warning(f"File {file_id} was already finalized, leaving status as is")
            return
        except Exception as e:
            logger.error(f"Could not mark file {file_id} as failed: {e}")

        await self._publish(undelivered, EventType.UPLOAD_FAILED, file_id, {
            "file_id": file_id,
            "chunks_recorded": len(chunks),
            "error": reason,
        })

    async def _publish(self, undelivered: List[PublishOutcome], event_type: EventType, key: str, data: dict) -> None:
        outcome = await self.events.publish(new_event(event_type, key, data))
        if not outcome.delivered:
            undelivered.append(outcome)
