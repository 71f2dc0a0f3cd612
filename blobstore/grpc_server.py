"""gRPC server implementation for the blobstore."""

import asyncio
import errno
import logging
from typing import AsyncIterator

import grpc
from grpc import aio

from blobstore import config
from blobstore.object_storage import ObjectStorage, InvalidObjectNameError
from common.checksum import IncrementalChecksumCalculator
from common.constants import BLOBSTORE_GRPC_SERVICE
from common.protocol import (
    PutObjectRequest,
    PutObjectResponse,
    ObjectRequest,
    GetObjectResponse,
    ObjectMetadata,
    ObjectDataPiece,
    StatObjectResponse,
    DeleteObjectResponse,
    BucketRequest,
    BucketExistsResponse,
    CreateBucketResponse,
    PingResponse,
)

logger = logging.getLogger(__name__)


class BlobStoreServicer:
    """
    gRPC service implementation for object operations.
    """

    def __init__(self, storage: ObjectStorage):
        self.storage = storage

    async def PutObject(
        self,
        request_iterator: AsyncIterator[bytes],
        context: grpc.aio.ServicerContext
    ) -> bytes:
        """
        Handle PutObject RPC (client streaming).
        Receives metadata followed by data pieces, validates checksum and
        size, then atomically replaces the object on disk.
        """
        metadata = None
        data_buffer = bytearray()
        checksum_calculator = IncrementalChecksumCalculator()

        try:
            async for request_bytes in request_iterator:
                request = PutObjectRequest.from_json(request_bytes)

                if request.metadata:
                    metadata = request.metadata
                    logger.debug(f"Receiving object {metadata.bucket}/{metadata.key}, size={metadata.total_size}")

                if request.data:
                    data_buffer.extend(request.data.data)
                    checksum_calculator.update(request.data.data)

            if metadata is None:
                error_msg = "No metadata received in PutObject stream"
                logger.error(error_msg)
                return PutObjectResponse(success=False, error_message=error_msg).to_json()

            computed_checksum = checksum_calculator.finalize()
            if computed_checksum != metadata.checksum:
                error_msg = (
                    f"Checksum mismatch for {metadata.key}: "
                    f"expected {metadata.checksum}, got {computed_checksum}"
                )
                logger.error(error_msg)
                return PutObjectResponse(success=False, error_message=error_msg).to_json()

            if len(data_buffer) != metadata.total_size:
                error_msg = (
                    f"Size mismatch for {metadata.key}: "
                    f"expected {metadata.total_size}, got {len(data_buffer)}"
                )
                logger.error(error_msg)
                return PutObjectResponse(success=False, error_message=error_msg).to_json()

            try:
                await asyncio.to_thread(
                    self.storage.write_object, metadata.bucket, metadata.key, bytes(data_buffer)
                )
            except OSError as os_error:
                if os_error.errno == errno.ENOSPC:
                    error_msg = f"Disk full: cannot write object {metadata.key}"
                    logger.error(error_msg)
                    return PutObjectResponse(success=False, error_message=error_msg).to_json()
                raise

            logger.info(f"Stored object {metadata.bucket}/{metadata.key} ({metadata.total_size} bytes)")
            return PutObjectResponse(success=True).to_json()

        except Exception as e:
            error_msg = f"Error writing object: {e}"
            logger.error(error_msg, exc_info=True)
            return PutObjectResponse(success=False, error_message=error_msg).to_json()

    async def GetObject(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> AsyncIterator[bytes]:
        """
        Handle GetObject RPC (server streaming).
        Sends metadata followed by data pieces; aborts with NOT_FOUND when
        the object is absent.
        """
        request = ObjectRequest.from_json(request_bytes)

        try:
            size = self.storage.object_size(request.bucket, request.key)
        except InvalidObjectNameError as e:
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, str(e))
            return

        if size is None:
            logger.warning(f"Object {request.bucket}/{request.key} not found")
            await context.abort(grpc.StatusCode.NOT_FOUND, f"Object {request.key} not found")
            return

        yield GetObjectResponse(
            metadata=ObjectMetadata(bucket=request.bucket, key=request.key, total_size=size, checksum="")
        ).to_json()

        try:
            pieces = self.storage.read_object_streaming(request.bucket, request.key, config.READ_PIECE_SIZE)
            for piece in pieces:
                yield GetObjectResponse(data=ObjectDataPiece(data=piece)).to_json()
        except FileNotFoundError:
            logger.error(f"Object {request.key} disappeared during read")
            await context.abort(grpc.StatusCode.NOT_FOUND, f"Object {request.key} not found")
            return
        except OSError as e:
            logger.error(f"Error reading object {request.key}: {e}", exc_info=True)
            await context.abort(grpc.StatusCode.INTERNAL, f"Error reading object: {e}")
            return

        logger.debug(f"Streamed object {request.bucket}/{request.key}")

    async def StatObject(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> bytes:
        request = ObjectRequest.from_json(request_bytes)
        try:
            size = self.storage.object_size(request.bucket, request.key)
        except InvalidObjectNameError as e:
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, str(e))
            return b""
        return StatObjectResponse(exists=size is not None, size=size).to_json()

    async def DeleteObject(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> bytes:
        """
        Handle DeleteObject RPC (unary). Deleting an absent object succeeds
        with deleted=False.
        """
        try:
            request = ObjectRequest.from_json(request_bytes)
            deleted = self.storage.delete_object(request.bucket, request.key)
            if deleted:
                logger.info(f"Deleted object {request.bucket}/{request.key}")
            else:
                logger.warning(f"Object {request.bucket}/{request.key} not found for deletion")
            return DeleteObjectResponse(success=True, deleted=deleted).to_json()
        except Exception as e:
            error_msg = f"Error deleting object: {e}"
            logger.error(error_msg, exc_info=True)
            return DeleteObjectResponse(success=False, error_message=error_msg).to_json()

    async def BucketExists(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> bytes:
        request = BucketRequest.from_json(request_bytes)
        try:
            exists = self.storage.bucket_exists(request.bucket)
        except InvalidObjectNameError as e:
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, str(e))
            return b""
        return BucketExistsResponse(exists=exists).to_json()

    async def CreateBucket(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> bytes:
        try:
            request = BucketRequest.from_json(request_bytes)
            self.storage.create_bucket(request.bucket)
            logger.info(f"Created bucket {request.bucket}")
            return CreateBucketResponse(success=True).to_json()
        except Exception as e:
            error_msg = f"Error creating bucket: {e}"
            logger.error(error_msg, exc_info=True)
            return CreateBucketResponse(success=False, error_message=error_msg).to_json()

    async def Ping(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> bytes:
        return PingResponse(available=True).to_json()


def _passthrough(value):
    return value


def create_server(storage: ObjectStorage) -> aio.Server:
    """
    Create and configure gRPC server.

    Args:
        storage: ObjectStorage backing the service

    Returns:
        Configured (not yet started) gRPC server
    """
    server = aio.server()
    servicer = BlobStoreServicer(storage)

    def unary(handler):
        return grpc.unary_unary_rpc_method_handler(
            handler, request_deserializer=_passthrough, response_serializer=_passthrough
        )

    server.add_generic_rpc_handlers((
        grpc.method_handlers_generic_handler(
            BLOBSTORE_GRPC_SERVICE,
            {
                'PutObject': grpc.stream_unary_rpc_method_handler(
                    servicer.PutObject,
                    request_deserializer=_passthrough,
                    response_serializer=_passthrough,
                ),
                'GetObject': grpc.unary_stream_rpc_method_handler(
                    servicer.GetObject,
                    request_deserializer=_passthrough,
                    response_serializer=_passthrough,
                ),
                'StatObject': unary(servicer.StatObject),
                'DeleteObject': unary(servicer.DeleteObject),
                'BucketExists': unary(servicer.BucketExists),
                'CreateBucket': unary(servicer.CreateBucket),
                'Ping': unary(servicer.Ping),
            }
        ),
    ))

    return server
