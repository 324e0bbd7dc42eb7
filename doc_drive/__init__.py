"""Document drive: blob-backed markdown documents with a separate metadata store."""

from .config import DocDriveConfig  # noqa: F401
from .runtime import DocDriveRuntime  # noqa: F401
