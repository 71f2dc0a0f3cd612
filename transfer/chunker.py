"""Splits a byte stream into fixed-size, checksummed chunks."""

import inspect
import math
from dataclasses import dataclass
from typing import AsyncIterator, BinaryIO, Iterator

from common.checksum import compute_checksum
from common.constants import CHUNK_SIZE_BYTES


@dataclass(frozen=True)
class ChunkPiece:
    """One chunk cut from an upload, still holding its bytes."""
    index: int
    size: int
    checksum: str
    data: bytes


def expected_chunk_count(size: int, chunk_size: int = CHUNK_SIZE_BYTES) -> int:
    """
    Number of chunks a payload of `size` bytes is cut into.
    """
    if size <= 0:
        return 0
    return math.ceil(size / chunk_size)


class Chunker:
    """
    Lazy chunking of an upload stream.

    Only the chunk being built is held in memory. Short reads are
    accumulated, so every chunk except the last is exactly chunk_size
    bytes; an empty stream produces no chunks.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE_BYTES):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size

    def _piece(self, index: int, data: bytes) -> ChunkPiece:
        return ChunkPiece(
            index=index,
            size=len(data),
            checksum=compute_checksum(data),
            data=data,
        )

    def split(self, stream: BinaryIO) -> Iterator[ChunkPiece]:
        index = 0
        while True:
            data = self._fill(stream.read)
            if not data:
                break
            yield self._piece(index, data)
            index += 1
            if len(data) < self.chunk_size:
                break

    async def asplit(self, stream) -> AsyncIterator[ChunkPiece]:
        """
        Async variant of split for streams whose read() may be a coroutine,
        such as FastAPI's UploadFile.
        """
        index = 0
        while True:
            buffer = bytearray()
            while len(buffer) < self.chunk_size:
                data = stream.read(self.chunk_size - len(buffer))
                if inspect.isawaitable(data):
                    data = await data
                if not data:
                    break
                buffer.extend(data)

            if not buffer:
                break
            yield self._piece(index, bytes(buffer))
            index += 1
            if len(buffer) < self.chunk_size:
                break

    def _fill(self, read) -> bytes:
        buffer = bytearray()
        while len(buffer) < self.chunk_size:
            data = read(self.chunk_size - len(buffer))
            if not data:
                break
            buffer.extend(data)
        return bytes(buffer)
