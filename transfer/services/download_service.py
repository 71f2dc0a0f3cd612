"""Download orchestration over the reassembler."""

import logging
from typing import AsyncIterator, Optional, Tuple

from common.types import FileRecord
from transfer import config
from transfer.capabilities import ChunkStore, EventEmitter, MetadataLedger
from transfer.events import EventType, new_event
from transfer.reassembler import Reassembler, ReassemblyPlan

logger = logging.getLogger(__name__)


class DownloadService:
    def __init__(
        self,
        chunk_store: ChunkStore,
        ledger: MetadataLedger,
        events: EventEmitter,
        verify_availability: Optional[bool] = None
    ):
        if verify_availability is None:
            verify_availability = config.VERIFY_CHUNKS_BEFORE_STREAM
        self.events = events
        self.reassembler = Reassembler(chunk_store, ledger, verify_availability=verify_availability)
        self.undelivered_events = 0

    async def open_download(self, file_id: str) -> Tuple[FileRecord, AsyncIterator[bytes]]:
        """
        Check a file is downloadable and return its record and byte stream.

        Every error that can be known before the first byte is raised here,
        so callers can still answer with a proper status code.

        Raises:
            FileNotFoundError: Unknown or not completed file
            StorageError: Pre-flight integrity or availability failure
        """
        plan = await self.reassembler.prepare(file_id)
        logger.info(
            f"Download started [file_id={file_id}] size={plan.file.file_size} chunks={len(plan.chunks)}"
        )
        return plan.file, self._stream(plan)

    async def _stream(self, plan: ReassemblyPlan) -> AsyncIterator[bytes]:
        file_id = plan.file.file_id
        try:
            async for data in self.reassembler.stream(plan):
                yield data
        except Exception as e:
            logger.error(
                f"Download truncated [file_id={file_id}] sent {plan.bytes_sent} of "
                f"{plan.file.file_size} bytes: {e}"
            )
            raise

        outcome = await self.events.publish(new_event(EventType.DOWNLOAD_COMPLETED, file_id, {
            "file_id": file_id,
            "bytes_sent": plan.bytes_sent,
            "chunk_count": plan.chunks_sent,
        }))
        if not outcome.delivered:
            self.undelivered_events += 1
        logger.info(f"Download completed [file_id={file_id}] bytes={plan.bytes_sent}")
