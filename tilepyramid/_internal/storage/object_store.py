"""
Object storage backend

S3, Swift and Ceph containers accessed through obstore. One obstore store is
opened per container and reused; paths are "container/key".
"""

import logging
from collections.abc import Callable
from typing import Any

import obstore
from obstore.store import S3Store

from tilepyramid._internal.storage.base import StorageType
from tilepyramid._internal.storage.config import ObjectStorageConfig

logger = logging.getLogger(__name__)

StoreFactory = Callable[[StorageType, str], Any]


def split_object_path(path: str) -> tuple[str, str]:
    """
    Split "container/key" into its two parts

    Raises:
        ValueError: If the path has no container or no key
    """
    container, _, key = path.partition("/")
    if not container or not key:
        raise ValueError(f"Object path must be 'container/key', got {path!r}")
    return container, key


def s3_store_factory(kind: StorageType, container: str) -> S3Store:
    """Open an S3-compatible store on a container, configured from the environment"""
    config = ObjectStorageConfig.from_env(kind)
    return S3Store(
        container,
        config=config.to_store_config(),
        client_options={"allow_http": config.allow_http},
    )


class ObjectStoreBackend:
    """
    obstore implementation of StorageBackend for one object storage kind

    Args:
        kind: S3, SWIFT or CEPH
        store_factory: Callable building an obstore store for a container
            (default: S3Store configured from environment variables)

    Examples:
        >>> from obstore.store import MemoryStore
        >>> backend = ObjectStoreBackend(StorageType.S3, lambda kind, c: MemoryStore())
        >>> backend.write_bytes("bucket/PYR.json", b"{}")
        >>> backend.read_bytes("bucket/PYR.json")
        b'{}'
    """

    def __init__(self, kind: StorageType, store_factory: StoreFactory | None = None):
        if not kind.is_object:
            raise ValueError(f"{kind.value} is not an object storage")
        self.kind = kind
        self._store_factory = store_factory or s3_store_factory
        self._stores: dict[str, Any] = {}

    def get_store(self, container: str) -> Any:
        """Get the store of a container, opening it on first use"""
        if container not in self._stores:
            self._stores[container] = self._store_factory(self.kind, container)
            logger.debug("Opened %s store for container %s", self.kind.value, container)
        return self._stores[container]

    def read_bytes(self, path: str) -> bytes:
        container, key = split_object_path(path)
        result = obstore.get(self.get_store(container), key)
        return bytes(result.bytes())

    def write_bytes(self, path: str, data: bytes) -> None:
        # Object PUTs replace the whole object in one step
        container, key = split_object_path(path)
        obstore.put(self.get_store(container), key, data)

    def copy(self, src: str, dest: str) -> None:
        """Copy an object, server-side when both paths share a container"""
        src_container, src_key = split_object_path(src)
        dest_container, dest_key = split_object_path(dest)

        if src_container == dest_container:
            obstore.copy(self.get_store(src_container), src_key, dest_key)
        else:
            self.write_bytes(dest, self.read_bytes(src))

    def delete(self, path: str) -> None:
        container, key = split_object_path(path)
        obstore.delete(self.get_store(container), key)

    def exists(self, path: str) -> bool:
        container, key = split_object_path(path)
        try:
            obstore.head(self.get_store(container), key)
        except FileNotFoundError:
            return False
        return True
