"""
Scratch file staging

List files are never edited in place on their final storage. They are pulled
into, or built in, a local scratch file, and only a complete scratch file is
published back to the backend.
"""

import logging
import os
import tempfile
import uuid
from pathlib import Path

from tilepyramid._internal.storage.base import StorageType
from tilepyramid._internal.storage.proxy import ProxyStorage
from tilepyramid.core.exceptions import StateError

logger = logging.getLogger(__name__)


class ScratchFile:
    """
    Local scratch copy of a file living on a storage backend

    Lifecycle:
    1. **open**: a unique local path is reserved (nothing written yet)
    2. **pull** (optional): the remote content is copied to the scratch path
    3. **publish** (optional): the scratch content is copied to its final location
    4. **discard**: the scratch path is removed, whatever happened before

    Used as a context manager, discard always runs on exit and exceptions
    propagate.

    Examples:
        >>> with ScratchFile(storage) as scratch:
        ...     scratch.pull(StorageType.S3, "bucket/PYR.list")
        ...     lines = scratch.path.read_text().splitlines()
        >>>
        >>> with ScratchFile(storage) as scratch:
        ...     scratch.path.write_text("0=bucket/PYR\\n#\\n")
        ...     scratch.publish(StorageType.S3, "bucket/PYR.list")
    """

    def __init__(self, storage: ProxyStorage, suffix: str = ".list"):
        self.storage = storage
        self.scratch_id = uuid.uuid4().hex[:8].upper()
        self.path = Path(tempfile.gettempdir()) / f"content{self.scratch_id}{suffix}"
        self.state = "open"  # open, pulled, published, discarded

    def pull(self, kind: StorageType, location: str) -> Path:
        """
        Copy remote content to the scratch path

        Raises:
            StateError: If the scratch file is no longer open
            StorageIOError: If the copy fails
        """
        if self.state != "open":
            raise StateError(f"Cannot pull into scratch file in state: {self.state}")

        self.storage.copy(kind, location, StorageType.FILE, str(self.path))
        self.state = "pulled"
        logger.debug("Pulled %s location %s into %s", kind, location, self.path)
        return self.path

    def publish(self, kind: StorageType, location: str) -> None:
        """
        Copy the scratch content to its final location

        Raises:
            StateError: If the scratch file was discarded or nothing was written
            StorageIOError: If the copy fails
        """
        if self.state not in ("open", "pulled"):
            raise StateError(f"Cannot publish scratch file in state: {self.state}")
        if not self.path.exists():
            raise StateError(f"Scratch file missing: {self.path}")

        self.storage.copy(StorageType.FILE, str(self.path), kind, location)
        self.state = "published"
        logger.debug("Published %s to %s location %s", self.path, kind, location)

    def discard(self) -> None:
        """Remove the scratch path (best effort)"""
        try:
            if self.path.exists():
                os.unlink(self.path)
        except OSError as e:
            logger.warning("Failed to delete scratch file %s: %s", self.path, e)
        self.state = "discarded"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.discard()
        return False  # Don't suppress exceptions
