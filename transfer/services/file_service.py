"""File lookup, listing and deletion."""

import asyncio
import logging
from typing import List, Optional

from common.types import FileRecord, FileStatus, chunk_key
from transfer.capabilities import ChunkStore, EventEmitter, MetadataLedger
from transfer.events import EventType, new_event

logger = logging.getLogger(__name__)


class FileService:
    def __init__(self, chunk_store: ChunkStore, ledger: MetadataLedger, events: EventEmitter):
        self.chunk_store = chunk_store
        self.ledger = ledger
        self.events = events

    async def get_file(self, file_id: str) -> FileRecord:
        return await self.ledger.lookup_file(file_id)

    async def list_files(self, status: Optional[FileStatus] = None, limit: int = 100) -> List[FileRecord]:
        return await self.ledger.list_files(status=status, limit=limit)

    async def delete_file(self, file_id: str) -> List[str]:
        """
        Delete a file's rows, then its chunk objects.

        The ledger rows go first so no reader can resolve chunks that are
        about to disappear. Object deletion is best effort.

        Returns:
            Chunk keys that could not be deleted from the object store

        Raises:
            FileNotFoundError: Unknown file id
        """
        chunks = await self.ledger.delete_file(file_id)
        keys = [chunk_key(file_id, chunk.chunk_index) for chunk in chunks]
        failed = await self._cleanup_chunks(keys)

        await self.events.publish(new_event(EventType.FILE_DELETED, file_id, {
            "file_id": file_id,
            "chunk_count": len(chunks),
        }))
        logger.info(f"Deleted file {file_id} ({len(keys) - len(failed)}/{len(keys)} chunk objects removed)")
        return failed

    async def _cleanup_chunks(self, keys: List[str]) -> List[str]:
        """
        Delete chunk objects with retry logic.

        Args:
            keys: Object keys to delete

        Returns:
            Keys that could not be deleted
        """
        failed_deletions = []

        for key in keys:
            max_attempts = 3
            deleted = False

            for attempt in range(max_attempts):
                try:
                    await self.chunk_store.delete(key)
                    deleted = True
                    break
                except Exception as e:
                    if attempt < max_attempts - 1:
                        delay = 0.5 * (2 ** attempt)
                        logger.warning(f"Failed to delete chunk {key}, retrying in {delay}s: {e}")
                        await asyncio.sleep(delay)
                    else:
                        logger.error(f"Failed to delete chunk {key} after {max_attempts} attempts: {e}")

            if not deleted:
                failed_deletions.append(key)

        return failed_deletions
