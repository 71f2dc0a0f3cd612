"""Project-wide constants (chunk size, ports, timeouts)."""

CHUNK_SIZE_BYTES: int = 4 * 1024 * 1024  # 4 MiB default chunk size

STREAM_PIECE_SIZE_BYTES: int = 64 * 1024

DEFAULT_BUCKET_NAME: str = "transfer-chunks"

BLOBSTORE_PORT: int = 50051
BLOBSTORE_SERVICE_NAME: str = "blobstore"
BLOBSTORE_GRPC_SERVICE: str = "blobstore.BlobStoreService"

BLOBSTORE_TIMEOUT_SECONDS: float = 30.0
GRPC_KEEPALIVE_TIME_MS: int = 30000
GRPC_KEEPALIVE_TIMEOUT_MS: int = 10000

DEFAULT_BLOBSTORE_ROOT: str = "/app/data/objects"

LIFECYCLE_TOPIC: str = "file.events"
