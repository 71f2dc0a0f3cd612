"""Shared pytest fixtures for all tests."""

import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional

import pytest

from transfer.database import init_database
from transfer.events import PublishOutcome
from transfer.exceptions import ChunkNotFoundError, CollaboratorUnavailableError
from transfer.ledger import SqliteMetadataLedger


class InMemoryChunkStore:
    """
    ChunkStore fake keeping objects in a dict.

    Counts every call so tests can assert how many fetches happened and
    whether every fetch stream was closed. Can be told to start failing puts
    after a number of successful ones.
    """

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.put_calls = 0
        self.get_calls = 0
        self.exists_calls = 0
        self.delete_calls = 0
        self.closed_gets = 0
        self.fail_after_puts: Optional[int] = None
        self.piece_size = 1024 * 1024
        self.bucket_created = False

    @property
    def total_calls(self) -> int:
        return self.put_calls + self.get_calls + self.exists_calls + self.delete_calls

    async def put(self, key: str, data: bytes) -> None:
        if self.fail_after_puts is not None and self.put_calls >= self.fail_after_puts:
            self.put_calls += 1
            raise CollaboratorUnavailableError("object store unavailable")
        self.put_calls += 1
        self.objects[key] = bytes(data)

    async def get(self, key: str):
        self.get_calls += 1
        try:
            if key not in self.objects:
                raise ChunkNotFoundError(f"Chunk {key} not found in object store")
            data = self.objects[key]
            for i in range(0, len(data), self.piece_size):
                yield data[i:i + self.piece_size]
        finally:
            self.closed_gets += 1

    async def exists(self, key: str) -> bool:
        self.exists_calls += 1
        return key in self.objects

    async def delete(self, key: str) -> bool:
        self.delete_calls += 1
        return self.objects.pop(key, None) is not None

    async def bucket_exists(self) -> bool:
        return self.bucket_created

    async def create_bucket(self) -> None:
        self.bucket_created = True

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RecordingEventEmitter:
    """EventEmitter fake that records events; can pretend the bus is down."""

    def __init__(self):
        self.events: List = []
        self.failing = False

    @property
    def types(self) -> List[str]:
        return [event.type.value for event in self.events]

    async def publish(self, event) -> PublishOutcome:
        self.events.append(event)
        if self.failing:
            return PublishOutcome(event_id=event.id, event_type=event.type, delivered=False, error="bus down")
        return PublishOutcome(event_id=event.id, event_type=event.type, delivered=True)

    async def close(self) -> None:
        return None


@pytest.fixture
def test_db(monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary test database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("transfer.database.DATABASE_PATH", str(db_path))
        monkeypatch.setattr("transfer.config.DATABASE_PATH", str(db_path))
        init_database()
        yield db_path


@pytest.fixture
def ledger(test_db) -> SqliteMetadataLedger:
    return SqliteMetadataLedger(timeout=5)


@pytest.fixture
def chunk_store() -> InMemoryChunkStore:
    return InMemoryChunkStore()


@pytest.fixture
def events() -> RecordingEventEmitter:
    return RecordingEventEmitter()
