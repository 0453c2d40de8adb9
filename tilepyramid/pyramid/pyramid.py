"""
Tile pyramid

A pyramid gathers levels sharing a tile matrix set, a slab size and one
storage. It is either loaded from an existing descriptor (READ mode) or built
level by level to be written (WRITE mode).
"""

import copy
import logging
import os
import re
from collections.abc import Callable
from enum import IntEnum, StrEnum
from typing import Any

from tilepyramid._internal.storage.base import StorageType
from tilepyramid._internal.storage.proxy import ProxyStorage, get_storage
from tilepyramid.core.exceptions import (
    BindingError,
    StateError,
    StorageTypeError,
    ValidationError,
)
from tilepyramid.grid.base import TileGrid
from tilepyramid.grid.tile_matrix import TileMatrixSet
from tilepyramid.pyramid.descriptor import descriptor_format, parse_descriptor, to_json
from tilepyramid.pyramid.level import Level
from tilepyramid.pyramid.slab_list import SlabList, SlabRecord
from tilepyramid.pyramid.storage import (
    CONTAINER_KEYS,
    FileRoot,
    ObjectRoot,
    StorageRoot,
)

logger = logging.getLogger(__name__)

DEFAULT_DIR_DEPTH = 2
DEFAULT_IMAGE_WIDTH = 16
DEFAULT_IMAGE_HEIGHT = 16
DEFAULT_FORMAT_CODE = "TIFF_RAW_UINT8"

URI_SCHEMES: dict[str, StorageType] = {
    "file": StorageType.FILE,
    "s3": StorageType.S3,
    "ceph": StorageType.CEPH,
    "swift": StorageType.SWIFT,
}
DESCRIPTOR_URI = re.compile(r"^(file|s3|ceph|swift)://(.+)$")
OBJECT_LOCATION = re.compile(r"^([^/]+)/(.+)$")
NAME_EXTENSION = re.compile(r"\.(pyr|json)$", re.IGNORECASE)


class PyramidMode(StrEnum):
    READ = "READ"
    WRITE = "WRITE"


class Compatibility(IntEnum):
    """How far two pyramids can share slabs"""

    INCOMPATIBLE = 0
    COMPATIBLE = 1
    IDENTICAL = 2


def _strictly_positive(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{name}' is not an integer: {value!r}")
    if number <= 0:
        raise ValidationError(f"'{name}' must be strictly positive, got {number}")
    return number


class Pyramid:
    """
    Tile pyramid and its list index

    Examples:
        >>> # New pyramid, written level by level
        >>> pyramid = Pyramid.from_values("ORTHO", tms="PM", bucket_name="tiles")
        >>> pyramid.add_level("12")
        >>> pyramid.get_slab_path("DATA", "12", 5, 300)
        'tiles/ORTHO/DATA_12_5_300'
        >>> pyramid.write_descriptor()  # tiles/ORTHO.json
        >>>
        >>> # Existing pyramid
        >>> pyramid = Pyramid.from_descriptor("file:///data/ORTHO.json")
        >>> pyramid.load_list()
        >>> pyramid.contain_slab("DATA", "12", 5, 300)
        ('/data/ORTHO', 'DATA/12/00/08/5C.tif')
    """

    def __init__(
        self,
        name: str,
        mode: PyramidMode,
        tms: TileGrid,
        storage_root: StorageRoot,
        image_width: int,
        image_height: int,
        format_code: str = DEFAULT_FORMAT_CODE,
        levels: dict[str, Level] | None = None,
        own_masks: bool = False,
        own_ancestor: bool = False,
        storage: ProxyStorage | None = None,
    ):
        if not name:
            raise ValidationError("A pyramid needs a name")

        self.name = name
        self.mode = PyramidMode(mode)
        self.tms = tms
        self.storage_root = storage_root
        self.image_width = _strictly_positive(image_width, "image_width")
        self.image_height = _strictly_positive(image_height, "image_height")
        self.format_code = format_code
        self.levels: dict[str, Level] = levels or {}
        self.own_masks = own_masks
        self.own_ancestor = own_ancestor
        self.storage = storage or get_storage()

        for level in self.levels.values():
            if level.storage_type != self.storage_type:
                raise StorageTypeError(
                    f"Level {level.id} is stored on {level.storage_type}, pyramid {name} on {self.storage_type}"
                )

        self._list = SlabList(self)

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def from_values(
        cls,
        name: str,
        *,
        tms: TileGrid | str | None = None,
        data_path: str | None = None,
        dir_depth: int | None = None,
        bucket_name: str | None = None,
        pool_name: str | None = None,
        container_name: str | None = None,
        image_width: int | None = None,
        image_height: int | None = None,
        format_code: str | None = None,
        own_masks: bool = False,
        ancestor: "Pyramid | None" = None,
        storage: ProxyStorage | None = None,
    ) -> "Pyramid":
        """
        Create a new pyramid to write

        The storage is the first provided of data_path (FILE), bucket_name
        (S3), pool_name (CEPH) and container_name (SWIFT). With an ancestor,
        the tile matrix set, slab size and directory depth are taken from it.

        Args:
            name: Pyramid name (a ".json" or ".pyr" extension is removed)
            tms: Tile matrix set, or its name (required without ancestor)
            image_width: Slab width in tiles (default 16)
            image_height: Slab height in tiles (default 16)
            format_code: Data format (default TIFF_RAW_UINT8, or the ancestor's)
            own_masks: Levels added to the pyramid store masks
            ancestor: Pyramid this one updates

        Raises:
            ValidationError: If a value is missing or invalid
            StorageTypeError: If no storage is provided, or the ancestor's differs
        """
        name = NAME_EXTENSION.sub("", name or "")
        if name == "":
            raise ValidationError("The pyramid name is required")

        if data_path is not None:
            if "/" in name:
                raise ValidationError(f"FILE pyramid name must not contain a slash: {name}")
            kind = StorageType.FILE
        elif bucket_name is not None:
            kind, container = StorageType.S3, bucket_name
        elif pool_name is not None:
            kind, container = StorageType.CEPH, pool_name
        elif container_name is not None:
            kind, container = StorageType.SWIFT, container_name
        else:
            raise StorageTypeError(f"No storage provided for the new pyramid {name}")

        if ancestor is not None:
            if ancestor.storage_type != kind:
                raise StorageTypeError(
                    f"The ancestor pyramid is stored on {ancestor.storage_type}, not on {kind} like the new pyramid"
                )
            logger.info("Pyramid %s has an ancestor, all parameters are picked from %s", name, ancestor.name)
            tms = ancestor.tms
            image_width = ancestor.image_width
            image_height = ancestor.image_height
            if ancestor.dir_depth is not None:
                dir_depth = ancestor.dir_depth
            if format_code is None:
                format_code = ancestor.format_code
        else:
            if tms is None:
                raise ValidationError("The parameter 'tms' is required")
            if isinstance(tms, str):
                tms = TileMatrixSet.load(tms)

            if kind is StorageType.FILE and dir_depth is None:
                dir_depth = DEFAULT_DIR_DEPTH
                logger.info("Default value for 'dir_depth': %d", dir_depth)
            if image_width is None:
                image_width = DEFAULT_IMAGE_WIDTH
                logger.info("Default value for 'image_width': %d", image_width)
            if image_height is None:
                image_height = DEFAULT_IMAGE_HEIGHT
                logger.info("Default value for 'image_height': %d", image_height)

        if format_code is None:
            format_code = DEFAULT_FORMAT_CODE
            logger.info("Default value for 'format_code': %s", format_code)

        if kind is StorageType.FILE:
            storage_root: StorageRoot = FileRoot(
                data_path=os.path.abspath(data_path),
                dir_depth=_strictly_positive(dir_depth, "dir_depth"),
            )
        else:
            storage_root = ObjectRoot(kind=kind, container=container)

        return cls(
            name,
            PyramidMode.WRITE,
            tms,
            storage_root,
            image_width,
            image_height,
            format_code=format_code,
            own_masks=own_masks,
            own_ancestor=ancestor is not None,
            storage=storage,
        )

    @classmethod
    def from_descriptor(
        cls,
        uri: str,
        storage: ProxyStorage | None = None,
        tms_loader: Callable[[str], TileGrid] | None = None,
    ) -> "Pyramid":
        """
        Load an existing pyramid from its descriptor

        Args:
            uri: file:///path/NAME.json, s3://bucket/NAME.json, ceph://pool/NAME.json
                or swift://container/NAME.json (".pyr" for legacy XML descriptors)
            storage: Storage proxy (default: the process-wide one)
            tms_loader: Resolves the descriptor's tile matrix set name
                (default: TileMatrixSet.load)

        Raises:
            ValidationError: If the URI is not supported or the descriptor incomplete
            FormatError: If the descriptor cannot be parsed
            StorageIOError: If the descriptor cannot be read
            StorageTypeError: If levels do not share one storage type
            BindingError: If a level is not in the tile matrix set
        """
        storage = storage or get_storage()

        match = DESCRIPTOR_URI.match(uri)
        if match is None:
            raise ValidationError(f"Pyramid descriptor storage unknown: {uri}")
        kind = URI_SCHEMES[match.group(1)]
        location = match.group(2)

        if kind.is_object:
            object_match = OBJECT_LOCATION.match(location)
            if object_match is None:
                raise ValidationError(f"Pyramid descriptor URI needs a container and a key: {uri}")
            name = object_match.group(2)
            descriptor_dir = None
        else:
            location = os.path.abspath(location)
            name = os.path.basename(location)
            descriptor_dir = os.path.dirname(location)

        descriptor_format(location)
        content = storage.fetch(kind, location)
        descriptor = parse_descriptor(location, content, descriptor_dir)

        tms = (tms_loader or TileMatrixSet.load)(descriptor.tms_name)

        first = descriptor.levels[0]
        if first.storage_type is StorageType.FILE:
            depth, root = first.get_dirs_info()
            storage_root: StorageRoot = FileRoot(data_path=root, dir_depth=depth)
        else:
            storage_root = ObjectRoot(kind=first.storage_type, container=first.container)

        levels = {level.id: level.bind_tile_matrix(tms) for level in descriptor.levels}

        pyramid = cls(
            NAME_EXTENSION.sub("", name),
            PyramidMode.READ,
            tms,
            storage_root,
            first.image_width,
            first.image_height,
            format_code=descriptor.format_code,
            levels=levels,
            own_masks=any(level.own_masks() for level in levels.values()),
            storage=storage,
        )
        logger.info("Loaded pyramid %s (%d levels) from %s", pyramid.name, len(levels), uri)
        return pyramid

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    def add_level(self, level_id: str, ancestor: "Pyramid | None" = None) -> Level:
        """
        Add a level to a new pyramid, stored on the pyramid's storage

        Limits are inherited from the ancestor's level with the same id.

        Raises:
            StateError: If the pyramid is read only
            ValidationError: If the level already exists
            BindingError: If the tile matrix set has no such level
        """
        if self.mode is PyramidMode.READ:
            raise StateError(f"Cannot add level {level_id} to the read only pyramid {self.name}")

        level_id = str(level_id)
        if level_id in self.levels:
            raise ValidationError(f"Cannot add level {level_id} to pyramid {self.name}: already exists")

        tm = self.tms.get_tile_matrix(level_id)
        if tm is None:
            raise BindingError(f"Cannot find a level with the id {level_id} in the TMS {self.tms.name}")

        params: dict[str, Any] = {
            "id": level_id,
            "tm": tm,
            "size": [self.image_width, self.image_height],
            "has_mask": self.own_masks,
        }
        descriptor_dir = None
        if isinstance(self.storage_root, FileRoot):
            params["dir_data"] = self.get_data_root()
            params["dir_depth"] = self.storage_root.dir_depth
            descriptor_dir = self.storage_root.data_path
        else:
            params["prefix"] = self.name
            params[CONTAINER_KEYS[self.storage_root.kind]] = self.storage_root.container

        if ancestor is not None:
            ancestor_level = ancestor.get_level(level_id)
            if ancestor_level is not None and ancestor_level.limits is not None:
                params["limits"] = ancestor_level.limits

        level = Level.from_values(params, descriptor_dir=descriptor_dir)
        self.levels[level_id] = level
        logger.debug("Added level %s to pyramid %s", level_id, self.name)
        return level

    def update_tm_limits(self, level_id: str, bbox: tuple[float, float, float, float]) -> None:
        """Extend a level's limits to contain a bbox (xmin, ymin, xmax, ymax)"""
        self._require_level(level_id).update_limits_from_bbox(*bbox)

    def update_storage_infos(
        self,
        name: str,
        *,
        data_path: str | None = None,
        dir_depth: int | None = None,
        bucket_name: str | None = None,
        pool_name: str | None = None,
        container_name: str | None = None,
    ) -> None:
        """
        Move the pyramid and all its levels to another name and storage

        Raises:
            StorageTypeError: If no storage is provided
        """
        self.name = NAME_EXTENSION.sub("", name)

        if data_path is not None:
            if dir_depth is None:
                dir_depth = DEFAULT_DIR_DEPTH
            self.storage_root = FileRoot(
                data_path=os.path.abspath(data_path),
                dir_depth=_strictly_positive(dir_depth, "dir_depth"),
            )
            params: dict[str, Any] = {
                "desc_path": self.storage_root.data_path,
                "dir_depth": self.storage_root.dir_depth,
                "dir_data": self.get_data_root(),
            }
        else:
            containers = {
                StorageType.S3: bucket_name,
                StorageType.CEPH: pool_name,
                StorageType.SWIFT: container_name,
            }
            kind = next((k for k, c in containers.items() if c is not None), None)
            if kind is None:
                raise StorageTypeError(f"No storage provided to move the pyramid {self.name}")
            self.storage_root = ObjectRoot(kind=kind, container=containers[kind])
            params = {"prefix": self.name, CONTAINER_KEYS[kind]: containers[kind]}

        for level in self.levels.values():
            level.update_storage_infos(params)

        logger.info("Pyramid %s moved to %s %s", self.name, self.storage_type, self.get_storage_root())

    def clone(self) -> "Pyramid":
        """
        Copy the pyramid: levels are copied, the tile matrix set and storage
        proxy are shared, the list is not loaded in the copy
        """
        clone = copy.copy(self)
        clone.levels = {level_id: copy.copy(level) for level_id, level in self.levels.items()}
        clone._list = SlabList(clone)
        return clone

    # -------------------------------------------------------------------------
    # Comparison / write
    # -------------------------------------------------------------------------

    def check_compatibility(self, other: "Pyramid") -> Compatibility:
        """
        Whether slabs of another pyramid can be used as they are in this one

        Returns:
            IDENTICAL if storage, slab size, tile matrix set and format match,
            INCOMPATIBLE otherwise
        """
        if self.storage_type != other.storage_type:
            return Compatibility.INCOMPATIBLE

        if self.storage_type is StorageType.FILE:
            if self.dir_depth != other.dir_depth:
                return Compatibility.INCOMPATIBLE
        elif self.get_storage_root() != other.get_storage_root():
            return Compatibility.INCOMPATIBLE

        if self.image_width != other.image_width or self.image_height != other.image_height:
            return Compatibility.INCOMPATIBLE

        if self.tms.name != other.tms.name:
            return Compatibility.INCOMPATIBLE

        if self.format_code != other.format_code:
            return Compatibility.INCOMPATIBLE

        return Compatibility.IDENTICAL

    def write_descriptor(self) -> None:
        """
        Write the JSON descriptor to the pyramid's storage

        Raises:
            StorageIOError: If the descriptor cannot be written
        """
        path = self.get_descriptor_path()
        content = to_json(self.tms.name, self.format_code, list(self.levels.values()))
        self.storage.store(self.storage_type, path, content)
        logger.info("Wrote descriptor of pyramid %s to %s", self.name, path)

    # -------------------------------------------------------------------------
    # List index
    # -------------------------------------------------------------------------

    @property
    def list_loaded(self) -> bool:
        return self._list.loaded

    @property
    def list_dirty(self) -> bool:
        return self._list.dirty

    def load_list(self) -> None:
        """Read the list file into the cache (see SlabList.load)"""
        self._list.load()

    def contain_slab(self, kind: str, level_id: str, col: int, row: int) -> tuple[str, str] | None:
        return self._list.contain_slab(kind, level_id, col, row)

    def modify_slab(self, kind: str, level_id: str, col: int, row: int) -> None:
        self._list.modify_slab(kind, level_id, col, row)

    def delete_slab(self, kind: str, level_id: str, col: int, row: int) -> None:
        self._list.delete_slab(kind, level_id, col, row)

    def flush_cached_list(self) -> None:
        """Write the cached DATA slabs to the list file (see SlabList.flush)"""
        self._list.flush()

    def get_levels_slabs(self) -> dict[str, dict[str, dict[str, SlabRecord]]]:
        return self._list.get_levels_slabs()

    def get_level_slabs(self, level_id: str) -> dict[str, dict[str, SlabRecord]] | None:
        return self._list.get_level_slabs(level_id)

    def get_cached_list_stats(self) -> dict[str, Any]:
        return self._list.get_stats()

    # -------------------------------------------------------------------------
    # Getters
    # -------------------------------------------------------------------------

    @property
    def storage_type(self) -> StorageType:
        return self.storage_root.kind

    @property
    def dir_depth(self) -> int | None:
        if isinstance(self.storage_root, FileRoot):
            return self.storage_root.dir_depth
        return None

    def get_storage_root(self) -> str:
        """Data directory (FILE) or container name"""
        return self.storage_root.location

    def get_data_root(self) -> str:
        return self.storage_root.join(self.name)

    def get_descriptor_path(self) -> str:
        return self.storage_root.join(f"{self.name}.json")

    def get_list_path(self) -> str:
        return self.storage_root.join(f"{self.name}.list")

    def get_slab_path(
        self, kind: str, level_id: str, col: int, row: int, full: bool = True
    ) -> str | None:
        """Theoretical slab path, None if the level is not in the pyramid"""
        level = self.get_level(level_id)
        if level is None:
            return None
        return level.get_slab_path(kind, col, row, full)

    def get_slab_size(self, level_id: str) -> tuple[int, int]:
        """Slab size in pixels (width, height) for a level"""
        return (
            self.image_width * self.tms.get_tile_width(level_id),
            self.image_height * self.tms.get_tile_height(level_id),
        )

    def get_level(self, level_id: str) -> Level | None:
        return self.levels.get(str(level_id))

    def has_level(self, level_id: str) -> bool:
        return level_id is not None and str(level_id) in self.levels

    def get_levels(self) -> list[Level]:
        return list(self.levels.values())

    def get_ordered_levels(self) -> list[Level]:
        """Levels by ascending order (bottom first)"""
        return sorted(self.levels.values(), key=lambda level: level.order)

    def get_bottom_id(self) -> str | None:
        ordered = self.get_ordered_levels()
        return ordered[0].id if ordered else None

    def get_bottom_order(self) -> int | None:
        ordered = self.get_ordered_levels()
        return ordered[0].order if ordered else None

    def get_top_id(self) -> str | None:
        ordered = self.get_ordered_levels()
        return ordered[-1].id if ordered else None

    def get_top_order(self) -> int | None:
        ordered = self.get_ordered_levels()
        return ordered[-1].order if ordered else None

    def _require_level(self, level_id: str) -> Level:
        level = self.get_level(level_id)
        if level is None:
            raise ValidationError(f"Pyramid {self.name} has no level {level_id}")
        return level

    def __repr__(self) -> str:
        return (
            f"<Pyramid: {self.name}> ({self.mode}, {self.storage_type} {self.get_storage_root()}, "
            f"{len(self.levels)} levels)"
        )
