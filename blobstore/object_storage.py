"""Manages object files on disk: bucket directories, atomic writes, streaming reads."""

import os
import re
import tempfile
from pathlib import Path
from typing import Iterator, Optional

from blobstore import config

_NAME_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*$')


class InvalidObjectNameError(ValueError):
    """Raised when a bucket or key would escape the storage root."""


class ObjectStorage:
    """
    Filesystem layout for the object store.

    Each bucket is a directory under the storage root and each object is a
    single file named after its key. Writes go through a temporary file in
    the same directory followed by os.replace, so a put either leaves the
    previous object untouched or replaces it completely.
    """

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or config.BLOBSTORE_ROOT)

    @staticmethod
    def _validate_name(name: str, kind: str) -> None:
        if not name or '..' in name or not _NAME_PATTERN.match(name):
            raise InvalidObjectNameError(f"Invalid {kind} name: {name!r}")

    def bucket_path(self, bucket: str) -> Path:
        self._validate_name(bucket, "bucket")
        return self.root / bucket

    def object_path(self, bucket: str, key: str) -> Path:
        self._validate_name(key, "key")
        return self.bucket_path(bucket) / key

    def bucket_exists(self, bucket: str) -> bool:
        return self.bucket_path(bucket).is_dir()

    def create_bucket(self, bucket: str) -> None:
        """
        Create bucket directory. Creating an existing bucket is a no-op.
        """
        self.bucket_path(bucket).mkdir(parents=True, exist_ok=True)

    def write_object(self, bucket: str, key: str, data: bytes) -> str:
        """
        Atomically write object data to disk.

        Args:
            bucket: Bucket name (must exist)
            key: Object key
            data: Raw object bytes

        Returns:
            String path to written file

        Raises:
            FileNotFoundError: If the bucket does not exist
            OSError: If write operation fails
        """
        bucket_dir = self.bucket_path(bucket)
        if not bucket_dir.is_dir():
            raise FileNotFoundError(f"Bucket {bucket} does not exist")

        target = self.object_path(bucket, key)
        fd, tmp_name = tempfile.mkstemp(dir=bucket_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'wb') as tmp_file:
                tmp_file.write(data)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return str(target)

    def read_object_streaming(self, bucket: str, key: str, piece_size: int) -> Iterator[bytes]:
        """
        Stream object data in pieces.

        Raises:
            FileNotFoundError: If object does not exist
        """
        with open(self.object_path(bucket, key), 'rb') as f:
            while True:
                piece = f.read(piece_size)
                if not piece:
                    break
                yield piece

    def object_size(self, bucket: str, key: str) -> Optional[int]:
        path = self.object_path(bucket, key)
        if path.is_file():
            return path.stat().st_size
        return None

    def delete_object(self, bucket: str, key: str) -> bool:
        """
        Delete object file from disk.

        Returns:
            True if file was deleted, False if it didn't exist
        """
        path = self.object_path(bucket, key)
        if path.is_file():
            path.unlink()
            return True
        return False
