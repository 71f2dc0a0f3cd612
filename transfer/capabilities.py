"""
Capability interfaces consumed by the transfer pipeline.

The orchestrators receive one implementation of each protocol at
construction time. Production wiring uses the gRPC object store client,
the SQLite ledger and the HTTP event emitter; tests pass in-memory fakes.
"""

from datetime import datetime
from typing import TYPE_CHECKING, AsyncGenerator, List, Optional, Protocol, runtime_checkable

from common.types import ChunkRecord, FileRecord, FileStatus

if TYPE_CHECKING:
    from transfer.events import LifecycleEvent, PublishOutcome


@runtime_checkable
class ChunkStore(Protocol):
    """
    Content-addressed put/get of raw chunk bytes.

    put must be idempotent (re-storing a key overwrites it) and get on an
    absent key must raise ChunkNotFoundError rather than yield nothing.
    Implementations are shared across concurrent requests.
    """

    async def put(self, key: str, data: bytes) -> None:
        """
        Store bytes under key.

        Raises:
            StorageError: If the object store rejects or cannot take the write
        """
        ...

    def get(self, key: str) -> AsyncGenerator[bytes, None]:
        """
        Stream the bytes stored under key.

        Callers that stop early must aclose() the generator.

        Raises:
            ChunkNotFoundError: If nothing is stored under key
            StorageError: On any other failure
        """
        ...

    async def exists(self, key: str) -> bool:
        ...

    async def delete(self, key: str) -> bool:
        ...

    async def bucket_exists(self) -> bool:
        ...

    async def create_bucket(self) -> None:
        ...

    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class MetadataLedger(Protocol):
    """
    Durable file and chunk records plus file lifecycle status.
    """

    async def create_file(self, record: FileRecord) -> FileRecord:
        ...

    async def record_chunk(self, chunk: ChunkRecord) -> None:
        """
        Append a chunk row. Existing rows are never mutated.
        """
        ...

    async def finalize_file(
        self,
        file_id: str,
        chunk_count: int,
        status: FileStatus,
        timestamp: datetime,
        file_size: Optional[int] = None,
    ) -> FileRecord:
        """
        Atomically move an uploading file to a terminal status.

        Raises:
            FileNotFoundError: Unknown file id
            InvalidStatusTransitionError: File already terminal
        """
        ...

    async def lookup_file(self, file_id: str) -> FileRecord:
        """
        Raises:
            FileNotFoundError: Unknown file id
        """
        ...

    async def list_chunks(self, file_id: str) -> List[ChunkRecord]:
        """
        Chunk rows for a file, sorted by chunk_index ascending.
        """
        ...

    async def list_files(self, status: Optional[FileStatus] = None, limit: int = 100) -> List[FileRecord]:
        ...

    async def delete_file(self, file_id: str) -> List[ChunkRecord]:
        """
        Delete a file row and its chunk rows together.

        Returns:
            The chunk rows that were removed
        """
        ...

    async def ping(self) -> bool:
        ...


@runtime_checkable
class EventEmitter(Protocol):
    """
    Best-effort, at-most-once publication of lifecycle events.

    publish never raises; the returned PublishOutcome says whether the
    event left the process.
    """

    async def publish(self, event: "LifecycleEvent") -> "PublishOutcome":
        ...

    async def close(self) -> None:
        ...

