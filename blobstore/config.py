"""Configuration settings for the blobstore server."""

import os
from common.constants import BLOBSTORE_PORT, DEFAULT_BLOBSTORE_ROOT, STREAM_PIECE_SIZE_BYTES


BLOBSTORE_ROOT = os.environ.get("BLOBSTORE_ROOT", DEFAULT_BLOBSTORE_ROOT)

BLOBSTORE_HOST = os.environ.get("BLOBSTORE_HOST", "[::]")

BLOBSTORE_LISTEN_PORT = int(os.environ.get("BLOBSTORE_PORT", str(BLOBSTORE_PORT)))

READ_PIECE_SIZE = int(os.environ.get("BLOBSTORE_PIECE_SIZE", str(STREAM_PIECE_SIZE_BYTES)))

SHUTDOWN_GRACE_SECONDS = float(os.environ.get("BLOBSTORE_SHUTDOWN_GRACE", "5"))
