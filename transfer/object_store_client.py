"""gRPC client implementing the ChunkStore capability against the blobstore."""

import asyncio
import logging
from typing import AsyncGenerator, Optional

import grpc

from common.checksum import compute_checksum
from common.constants import (
    BLOBSTORE_GRPC_SERVICE,
    STREAM_PIECE_SIZE_BYTES,
    GRPC_KEEPALIVE_TIME_MS,
    GRPC_KEEPALIVE_TIMEOUT_MS,
)
from common.protocol import (
    PutObjectRequest,
    PutObjectResponse,
    ObjectMetadata,
    ObjectDataPiece,
    ObjectRequest,
    GetObjectResponse,
    StatObjectResponse,
    DeleteObjectResponse,
    BucketRequest,
    BucketExistsResponse,
    CreateBucketResponse,
    PingRequest,
    PingResponse,
)
from transfer import config
from transfer.exceptions import (
    ChunkNotFoundError,
    ChunkIntegrityError,
    CollaboratorUnavailableError,
    StorageError,
)

logger = logging.getLogger(__name__)

_TRANSIENT_CODES = (grpc.StatusCode.UNAVAILABLE, grpc.StatusCode.DEADLINE_EXCEEDED)


def _passthrough(value):
    return value


class ObjectStoreClient:
    """
    gRPC client for blobstore object operations on one bucket.
    Handles connection management, deadlines and retry of idempotent calls.
    """

    def __init__(
        self,
        target: Optional[str] = None,
        bucket: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: int = 3
    ):
        """Initialize client with lazy connection."""
        self._channel = None
        self._target = target or config.OBJECT_STORE_TARGET
        self.bucket = bucket or config.BUCKET_NAME
        self.timeout = timeout if timeout is not None else config.STORE_TIMEOUT_SECONDS
        self.max_retries = max_retries

    def _ensure_channel(self):
        """Ensure gRPC channel is established."""
        if self._channel is None:
            options = [
                ('grpc.keepalive_time_ms', GRPC_KEEPALIVE_TIME_MS),
                ('grpc.keepalive_timeout_ms', GRPC_KEEPALIVE_TIMEOUT_MS),
                ('grpc.keepalive_permit_without_calls', 1),
            ]
            self._channel = grpc.aio.insecure_channel(self._target, options=options)
            logger.info(f"Established gRPC channel to {self._target}")
        return self._channel

    def _method(self, name: str) -> str:
        return f'/{BLOBSTORE_GRPC_SERVICE}/{name}'

    async def close(self):
        """Close gRPC channel."""
        if self._channel:
            await self._channel.close()
            self._channel = None

    @staticmethod
    def _translate(e: grpc.RpcError, action: str) -> StorageError:
        if e.code() in _TRANSIENT_CODES:
            return CollaboratorUnavailableError(f"Object store unavailable during {action}: {e.details()}")
        return StorageError(f"Object store error during {action}: {e.code().name} {e.details()}")

    async def _retry_with_backoff(self, operation, *args):
        """
        Retry an idempotent operation with exponential backoff when the
        failure is transient (UNAVAILABLE, DEADLINE_EXCEEDED).
        """
        for attempt in range(self.max_retries):
            try:
                return await operation(*args)
            except grpc.RpcError as e:
                if e.code() in _TRANSIENT_CODES and attempt < self.max_retries - 1:
                    delay = 2 ** attempt
                    logger.warning(
                        f"Transient failure, retrying in {delay}s (attempt {attempt + 1}/{self.max_retries}): {e.code().name}"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise

    async def _unary(self, method: str, payload: bytes) -> bytes:
        channel = self._ensure_channel()
        call = channel.unary_unary(
            self._method(method),
            request_serializer=_passthrough,
            response_deserializer=_passthrough,
        )
        return await call(payload, timeout=self.timeout)

    async def put(self, key: str, data: bytes) -> None:
        """
        Store chunk bytes under key, overwriting any previous object.

        Raises:
            CollaboratorUnavailableError: If blobstore is unreachable
            ChunkIntegrityError: If blobstore saw different bytes than were sent
            StorageError: If the write is rejected
        """
        checksum = compute_checksum(data)
        try:
            response = await self._retry_with_backoff(self._put_internal, key, data, checksum)
        except grpc.RpcError as e:
            logger.error(f"gRPC error writing object {key}: {e.code().name}")
            raise self._translate(e, f"put {key}") from e

        if not response.success:
            message = response.error_message or "unknown error"
            if 'checksum' in message.lower() or 'size mismatch' in message.lower():
                raise ChunkIntegrityError(f"Object store rejected {key}: {message}")
            raise StorageError(f"Object store rejected {key}: {message}")

        logger.debug(f"Stored object {key} ({len(data)} bytes)")

    async def _put_internal(self, key: str, data: bytes, checksum: str) -> PutObjectResponse:
        channel = self._ensure_channel()

        async def request_generator():
            metadata = ObjectMetadata(
                bucket=self.bucket,
                key=key,
                total_size=len(data),
                checksum=checksum,
            )
            yield PutObjectRequest(metadata=metadata).to_json()

            for i in range(0, len(data), STREAM_PIECE_SIZE_BYTES):
                piece = ObjectDataPiece(data=data[i:i + STREAM_PIECE_SIZE_BYTES])
                yield PutObjectRequest(data=piece).to_json()

        call = channel.stream_unary(
            self._method('PutObject'),
            request_serializer=_passthrough,
            response_deserializer=_passthrough,
        )
        response_bytes = await call(request_generator(), timeout=self.timeout)
        return PutObjectResponse.from_json(response_bytes)

    async def get(self, key: str) -> AsyncGenerator[bytes, None]:
        """
        Retrieve object data from blobstore.

        Streaming reads are not retried: the stream succeeds or fails in
        one attempt.

        Yields:
            Object data in streaming pieces

        Raises:
            ChunkNotFoundError: If no object exists under key
            CollaboratorUnavailableError: If blobstore is unreachable
        """
        channel = self._ensure_channel()
        call = channel.unary_stream(
            self._method('GetObject'),
            request_serializer=_passthrough,
            response_deserializer=_passthrough,
        )

        response_stream = call(
            ObjectRequest(bucket=self.bucket, key=key).to_json(),
            timeout=self.timeout
        )
        try:
            async for response_bytes in response_stream:
                response = GetObjectResponse.from_json(response_bytes)
                if response.data:
                    yield response.data.data
        except grpc.RpcError as e:
            if e.code() == grpc.StatusCode.NOT_FOUND:
                raise ChunkNotFoundError(f"Chunk {key} not found in object store") from e
            logger.error(f"gRPC error reading object {key}: {e.code().name}")
            raise self._translate(e, f"get {key}") from e
        finally:
            if not response_stream.done():
                response_stream.cancel()

    async def exists(self, key: str) -> bool:
        try:
            response_bytes = await self._retry_with_backoff(
                self._unary, 'StatObject', ObjectRequest(bucket=self.bucket, key=key).to_json()
            )
        except grpc.RpcError as e:
            raise self._translate(e, f"stat {key}") from e
        return StatObjectResponse.from_json(response_bytes).exists

    async def delete(self, key: str) -> bool:
        """
        Delete an object. Returns True when something was removed.
        """
        try:
            response_bytes = await self._unary(
                'DeleteObject', ObjectRequest(bucket=self.bucket, key=key).to_json()
            )
        except grpc.RpcError as e:
            raise self._translate(e, f"delete {key}") from e

        response = DeleteObjectResponse.from_json(response_bytes)
        if not response.success:
            raise StorageError(f"Failed to delete {key}: {response.error_message}")
        return response.deleted

    async def bucket_exists(self) -> bool:
        try:
            response_bytes = await self._retry_with_backoff(
                self._unary, 'BucketExists', BucketRequest(bucket=self.bucket).to_json()
            )
        except grpc.RpcError as e:
            raise self._translate(e, "bucket_exists") from e
        return BucketExistsResponse.from_json(response_bytes).exists

    async def create_bucket(self) -> None:
        try:
            response_bytes = await self._unary('CreateBucket', BucketRequest(bucket=self.bucket).to_json())
        except grpc.RpcError as e:
            raise self._translate(e, "create_bucket") from e

        response = CreateBucketResponse.from_json(response_bytes)
        if not response.success:
            raise StorageError(f"Failed to create bucket {self.bucket}: {response.error_message}")
        logger.info(f"Created bucket {self.bucket}")

    async def ping(self) -> bool:
        """
        Check if blobstore is available.
        """
        try:
            response_bytes = await self._unary('Ping', PingRequest().to_json())
            return PingResponse.from_json(response_bytes).available
        except grpc.RpcError as e:
            logger.warning(f"Ping failed: {e.code().name}")
            return False


async def ensure_bucket(store) -> None:
    """
    Create the store's bucket if it does not exist yet.
    """
    if not await store.bucket_exists():
        await store.create_bucket()
