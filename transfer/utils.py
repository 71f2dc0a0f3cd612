"""Utility helper functions for the transfer service."""

import uuid
from datetime import datetime, timezone


def generate_file_id() -> str:
    """
    Generate a new file identifier.

    Returns:
        "file_" followed by a random UUID4 in hex
    """
    return f"file_{uuid.uuid4().hex}"


def utc_now() -> datetime:
    """
    Get the current time as a timezone-aware UTC datetime.
    """
    return datetime.now(timezone.utc)
