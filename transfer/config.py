"""Configuration settings for the transfer service."""

import os
from common.constants import (
    CHUNK_SIZE_BYTES,
    BLOBSTORE_SERVICE_NAME,
    BLOBSTORE_PORT,
    BLOBSTORE_TIMEOUT_SECONDS,
    DEFAULT_BUCKET_NAME,
    LIFECYCLE_TOPIC,
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_PATH = os.environ.get("TRANSFER_DATABASE_PATH", "/app/data/ledger.db")

TRANSFER_HOST = os.environ.get("TRANSFER_HOST", "0.0.0.0")

TRANSFER_PORT = int(os.environ.get("TRANSFER_PORT", "8081"))

CHUNK_SIZE = int(os.environ.get("TRANSFER_CHUNK_SIZE", str(CHUNK_SIZE_BYTES)))

OBJECT_STORE_TARGET = os.environ.get(
    "TRANSFER_OBJECT_STORE", f"{BLOBSTORE_SERVICE_NAME}:{BLOBSTORE_PORT}"
)

BUCKET_NAME = os.environ.get("TRANSFER_BUCKET", DEFAULT_BUCKET_NAME)

STORE_TIMEOUT_SECONDS = float(os.environ.get("TRANSFER_STORE_TIMEOUT", str(BLOBSTORE_TIMEOUT_SECONDS)))

LEDGER_TIMEOUT_SECONDS = float(os.environ.get("TRANSFER_LEDGER_TIMEOUT", "10"))

LEDGER_WRITE_RETRIES = int(os.environ.get("TRANSFER_LEDGER_WRITE_RETRIES", "3"))

# Empty means no bus: events are logged only.
EVENT_BUS_URL = os.environ.get("TRANSFER_EVENT_BUS_URL", "")

EVENT_TOPIC = os.environ.get("TRANSFER_EVENT_TOPIC", LIFECYCLE_TOPIC)

EVENT_SOURCE = os.environ.get("TRANSFER_EVENT_SOURCE", "transfer")

EVENT_TIMEOUT_SECONDS = float(os.environ.get("TRANSFER_EVENT_TIMEOUT", "3"))

VERIFY_CHUNKS_BEFORE_STREAM = _env_bool("TRANSFER_VERIFY_BEFORE_STREAM", True)

DEFAULT_USER_ID = "anonymous"
