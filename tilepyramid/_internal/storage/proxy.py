"""
Storage proxy

Single entry point for every storage access made by pyramids: one backend per
storage kind, addressed by (kind, location) pairs. Backend failures surface as
StorageIOError.

Use ``get_storage()`` to obtain the process-wide default proxy.
"""

import logging

from tilepyramid._internal.storage.base import StorageBackend, StorageType
from tilepyramid._internal.storage.config import missing_environment
from tilepyramid._internal.storage.local import LocalFileBackend
from tilepyramid._internal.storage.object_store import ObjectStoreBackend, StoreFactory
from tilepyramid.core.exceptions import StorageIOError

logger = logging.getLogger(__name__)


class ProxyStorage:
    """
    Dispatches storage operations to the backend of each storage kind

    Args:
        store_factory: Optional obstore store factory shared by the object
            backends (tests pass one returning MemoryStore instances)

    Examples:
        >>> storage = ProxyStorage()
        >>> storage.store(StorageType.FILE, "/data/PYR.json", b"{}")
        >>> storage.copy(StorageType.FILE, "/data/PYR.json", StorageType.S3, "bucket/PYR.json")
        >>> storage.fetch(StorageType.S3, "bucket/PYR.json")
        b'{}'
    """

    def __init__(self, store_factory: StoreFactory | None = None):
        self._backends: dict[StorageType, StorageBackend] = {
            StorageType.FILE: LocalFileBackend(),
        }
        for kind in (StorageType.S3, StorageType.SWIFT, StorageType.CEPH):
            self._backends[kind] = ObjectStoreBackend(kind, store_factory)

    def backend(self, kind: StorageType) -> StorageBackend:
        """Get the backend serving a storage kind"""
        return self._backends[StorageType(kind)]

    @staticmethod
    def check_environment(kind: StorageType) -> bool:
        """
        Check that the environment holds what the storage kind needs

        Returns:
            True if every required variable is set
        """
        missing = missing_environment(StorageType(kind))
        if missing:
            logger.error("Environment variable(s) missing for %s storage: %s", kind, ", ".join(missing))
            return False
        return True

    def fetch(self, kind: StorageType, location: str) -> bytes:
        """
        Read the content at a location

        Raises:
            StorageIOError: If the read fails
        """
        try:
            return self.backend(kind).read_bytes(location)
        except Exception as e:
            raise StorageIOError(f"Cannot read {kind} location {location}: {e}") from e

    def store(self, kind: StorageType, location: str, data: bytes) -> None:
        """
        Write content to a location, replacing any previous content

        Raises:
            StorageIOError: If the write fails
        """
        try:
            self.backend(kind).write_bytes(location, data)
        except Exception as e:
            raise StorageIOError(f"Cannot write {kind} location {location}: {e}") from e
        logger.debug("Stored %d bytes to %s location %s", len(data), kind, location)

    def copy(
        self, src_kind: StorageType, src: str, dest_kind: StorageType, dest: str
    ) -> None:
        """
        Copy content between locations, possibly across storage kinds

        Raises:
            StorageIOError: If reading the source or writing the destination fails
        """
        src_kind = StorageType(src_kind)
        dest_kind = StorageType(dest_kind)

        backend = self.backend(src_kind)
        if src_kind == dest_kind and isinstance(backend, ObjectStoreBackend):
            try:
                backend.copy(src, dest)
            except Exception as e:
                raise StorageIOError(
                    f"Cannot copy {src_kind} location {src} to {dest}: {e}"
                ) from e
            return

        self.store(dest_kind, dest, self.fetch(src_kind, src))

    def exists(self, kind: StorageType, location: str) -> bool:
        """
        Check whether content exists at a location

        Raises:
            StorageIOError: If the backend cannot be queried
        """
        try:
            return self.backend(kind).exists(location)
        except Exception as e:
            raise StorageIOError(f"Cannot check {kind} location {location}: {e}") from e


_default_storage: ProxyStorage | None = None


def get_storage() -> ProxyStorage:
    """Get the process-wide default ProxyStorage, creating it on first use."""
    global _default_storage
    if _default_storage is None:
        _default_storage = ProxyStorage()
    return _default_storage
