"""
Storage Backend Protocol

Abstract storage interface for the pyramid backends (local filesystem, S3, Swift, Ceph).
"""

from enum import StrEnum
from typing import Protocol


class StorageType(StrEnum):
    """Backend kinds a pyramid can be stored on"""

    FILE = "FILE"
    S3 = "S3"
    SWIFT = "SWIFT"
    CEPH = "CEPH"

    @property
    def is_object(self) -> bool:
        """True for object storages (S3, Swift, Ceph)"""
        return self is not StorageType.FILE


class StorageBackend(Protocol):
    """
    Abstract storage interface

    One backend serves one storage kind. Paths are file paths for FILE and
    "container/key" strings for object storages.
    """

    def read_bytes(self, path: str) -> bytes:
        """Read file contents as bytes"""
        ...

    def write_bytes(self, path: str, data: bytes) -> None:
        """
        Write bytes to file

        Must not leave a partially written target behind: write to a
        temporary location, then replace the target in one step.
        """
        ...

    def delete(self, path: str) -> None:
        """Delete file"""
        ...

    def exists(self, path: str) -> bool:
        """Check if file exists"""
        ...
