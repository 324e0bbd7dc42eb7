"""Blob storage backends."""

from .memory_store import InMemoryBlobStore  # noqa: F401
from .real_file_store import LocalBlobStore  # noqa: F401
