"""
Storage variants of levels and pyramids

A level is stored either in a directory tree (FileStorage) or as prefixed
objects in a container (ObjectStorage); a pyramid's storage root follows the
same split (FileRoot / ObjectRoot). Exactly one variant is set at a time.
"""

import os
from dataclasses import dataclass

from tilepyramid._internal.storage.base import StorageType

# Parameter naming the container of each object storage kind, in the order
# used to identify the kind from parameters
CONTAINER_KEYS: dict[StorageType, str] = {
    StorageType.S3: "bucket_name",
    StorageType.CEPH: "pool_name",
    StorageType.SWIFT: "container_name",
}


def identify_object_kind(params: dict) -> StorageType | None:
    """First object storage kind whose container parameter is set, if any"""
    for kind, key in CONTAINER_KEYS.items():
        if params.get(key) is not None:
            return kind
    return None


@dataclass(frozen=True)
class FileStorage:
    """
    Level stored in a directory tree

    Attributes:
        image_dir: Absolute directory of the level's images (".../DATA/<level>")
        depth: Number of subdirectories between image_dir and a slab file
        mask_dir: Absolute directory of the level's masks, if the level owns masks
    """

    image_dir: str
    depth: int
    mask_dir: str | None = None

    @property
    def kind(self) -> StorageType:
        return StorageType.FILE


@dataclass(frozen=True)
class ObjectStorage:
    """
    Level stored as objects in a container

    Attributes:
        kind: S3, SWIFT or CEPH
        container: Bucket, container or pool name
        image_prefix: Image object prefix ("<pyramid>/DATA_<level>")
        mask_prefix: Mask object prefix, if the level owns masks
    """

    kind: StorageType
    container: str
    image_prefix: str
    mask_prefix: str | None = None


LevelStorage = FileStorage | ObjectStorage


@dataclass(frozen=True)
class FileRoot:
    """
    Pyramid stored on a filesystem

    Attributes:
        data_path: Directory holding "<name>.json", "<name>.list" and "<name>/"
        dir_depth: Slab subdirectory depth shared by every level
    """

    data_path: str
    dir_depth: int

    @property
    def kind(self) -> StorageType:
        return StorageType.FILE

    @property
    def location(self) -> str:
        return self.data_path

    def join(self, *parts: str) -> str:
        return os.path.join(self.data_path, *parts)


@dataclass(frozen=True)
class ObjectRoot:
    """
    Pyramid stored in an object container

    Attributes:
        kind: S3, SWIFT or CEPH
        container: Bucket, container or pool name
    """

    kind: StorageType
    container: str

    @property
    def location(self) -> str:
        return self.container

    def join(self, *parts: str) -> str:
        return "/".join((self.container, *parts))


StorageRoot = FileRoot | ObjectRoot
