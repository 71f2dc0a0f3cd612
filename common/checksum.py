"""SHA-256 checksum helpers shared by the chunker and the object store."""

import hashlib


def compute_checksum(data: bytes) -> str:
    """
    Compute SHA-256 checksum for given data.

    Args:
        data: Bytes to compute checksum for

    Returns:
        Hexadecimal string representation of SHA-256 hash
    """
    return hashlib.sha256(data).hexdigest()


class IncrementalChecksumCalculator:
    """
    Calculate SHA-256 checksum incrementally for streamed pieces.

    Usage:
        calculator = IncrementalChecksumCalculator()
        calculator.update(piece1)
        calculator.update(piece2)
        final_checksum = calculator.finalize()
    """

    def __init__(self):
        self._hasher = hashlib.sha256()
        self._size = 0
        self._finalized = False

    @property
    def size(self) -> int:
        """Number of bytes fed so far."""
        return self._size

    def update(self, data: bytes) -> None:
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        self._hasher.update(data)
        self._size += len(data)

    def finalize(self) -> str:
        self._finalized = True
        return self._hasher.hexdigest()
