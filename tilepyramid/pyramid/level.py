"""
Pyramid level

A level is one resolution of a pyramid: it knows where its slabs are stored,
how a slab (col, row) is named on its storage and which tile range holds data.
"""

import copy
import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from tilepyramid._internal.codecs import b36_path_to_indices, indices_to_b36_path
from tilepyramid._internal.storage.base import StorageType
from tilepyramid.core.exceptions import (
    BindingError,
    FormatError,
    StorageTypeError,
    ValidationError,
)
from tilepyramid.grid.base import TileGrid
from tilepyramid.grid.tile_matrix import TileMatrix
from tilepyramid.pyramid.storage import (
    CONTAINER_KEYS,
    FileStorage,
    LevelStorage,
    ObjectStorage,
    identify_object_kind,
)

logger = logging.getLogger(__name__)

TIF_EXTENSION = re.compile(r"\.tiff?$", re.IGNORECASE)


class SlabType(StrEnum):
    """Kinds of slabs a level stores"""

    DATA = "DATA"
    MASK = "MASK"


@dataclass(frozen=True)
class TileLimits:
    """
    Extreme tile indices holding data in a level

    Attributes:
        row_min, row_max, col_min, col_max: Inclusive tile index bounds
    """

    row_min: int
    row_max: int
    col_min: int
    col_max: int

    @classmethod
    def from_slab(cls, col: int, row: int, width: int, height: int) -> "TileLimits":
        """Tiles of slab (col, row), slabs being width x height tiles"""
        return cls(
            row_min=row * height,
            row_max=row * height + height - 1,
            col_min=col * width,
            col_max=col * width + width - 1,
        )

    def union(self, other: "TileLimits") -> "TileLimits":
        """Smallest limits containing both"""
        return TileLimits(
            row_min=min(self.row_min, other.row_min),
            row_max=max(self.row_max, other.row_max),
            col_min=min(self.col_min, other.col_min),
            col_max=max(self.col_max, other.col_max),
        )

    def contains(self, other: "TileLimits") -> bool:
        return self.union(other) == self

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.row_min, self.row_max, self.col_min, self.col_max)

    def to_dict(self) -> dict[str, int]:
        return {
            "min_row": self.row_min,
            "max_row": self.row_max,
            "min_col": self.col_min,
            "max_col": self.col_max,
        }


def _parse_limits(values: Any) -> TileLimits | None:
    """Limits from a TileLimits, or from 4 values (all set or all unset)"""
    if values is None or isinstance(values, TileLimits):
        return values

    values = list(values)
    if len(values) != 4:
        raise ValidationError(f"Limits need 4 values (rowMin, rowMax, colMin, colMax), got {values}")
    if all(v is None or v == "" for v in values):
        return None
    if any(v is None or v == "" for v in values):
        raise ValidationError(f"Limits must be all defined or all undefined, got {values}")

    try:
        return TileLimits(*(int(v) for v in values))
    except (TypeError, ValueError) as e:
        raise FormatError(f"Limits are not integers: {values} ({e})")


def _positive_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise FormatError(f"'{name}' is not an integer: {value!r}")
    if number <= 0:
        raise ValidationError(f"'{name}' must be strictly positive, got {number}")
    return number


def _absolute(path: str, base_dir: str | None) -> str:
    return os.path.normpath(os.path.join(base_dir or os.getcwd(), path))


def _xml_text(element: ET.Element, path: str) -> str | None:
    text = element.findtext(path)
    if text is None or text.strip() == "":
        return None
    return text.strip()


class Level:
    """
    One level of a tile pyramid

    A level is created from values (new pyramid), from an XML node or from a
    JSON object (existing pyramid descriptor). Levels read from descriptors
    only know their id: they are unbound until ``bind_tile_matrix`` returns a
    bound copy holding the tile matrix and the order.

    Attributes:
        id: Level identifier, shared with the tile matrix
        size: Slab size in tiles (tiles_per_width, tiles_per_height)
        storage: FileStorage or ObjectStorage
        limits: Tile range holding data, or None when unknown
        descriptor_dir: Directory relative FILE paths are resolved against

    Examples:
        >>> level = Level.from_values({
        ...     "id": "12",
        ...     "tm": tms.get_tile_matrix("12"),
        ...     "size": [16, 16],
        ...     "prefix": "PYR",
        ...     "bucket_name": "bucket",
        ... })
        >>> level.get_slab_path("DATA", 5, 300)
        'bucket/PYR/DATA_12_5_300'
        >>> level.get_from_slab_path('bucket/PYR/DATA_12_5_300')
        (5, 300)
    """

    def __init__(
        self,
        level_id: str,
        size: tuple[int, int],
        storage: LevelStorage,
        limits: TileLimits | None = None,
        tile_matrix: TileMatrix | None = None,
        order: int | None = None,
        descriptor_dir: str | None = None,
    ):
        if level_id is None or str(level_id) == "":
            raise ValidationError("A level needs an id")
        if len(size) != 2:
            raise ValidationError(f"Level size needs 2 values (width, height), got {size}")

        self.id = str(level_id)
        self.size = (
            _positive_int(size[0], "tiles_per_width"),
            _positive_int(size[1], "tiles_per_height"),
        )
        self.storage = storage
        self.limits = limits
        self.descriptor_dir = descriptor_dir
        self._tile_matrix = tile_matrix
        self._order = order

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def from_values(cls, params: dict[str, Any], descriptor_dir: str | None = None) -> "Level":
        """
        Create a bound level from explicit values

        Args:
            params: Level values:
                - id, tm (TileMatrix), size ([width, height]): required
                - limits: optional [rowMin, rowMax, colMin, colMax]
                - dir_depth + dir_data: file storage, or
                - prefix + bucket_name | pool_name | container_name: object storage
                - has_mask: also store masks
            descriptor_dir: Directory of the pyramid descriptor (file storage)

        Raises:
            ValidationError: If a required value is missing
            StorageTypeError: If no storage can be identified
        """
        for key in ("id", "tm", "size"):
            if params.get(key) is None:
                raise ValidationError(f"The parameter '{key}' is required")

        tm = params["tm"]
        if not isinstance(tm, TileMatrix):
            raise ValidationError(f"The parameter 'tm' is not a TileMatrix: {tm!r}")

        level_id = str(params["id"])
        has_mask = bool(params.get("has_mask"))

        if params.get("dir_depth") is not None:
            depth = _positive_int(params["dir_depth"], "dir_depth")
            if params.get("dir_data") is None:
                raise ValidationError("The parameter 'dir_data' is required for a file level")
            dir_data = params["dir_data"]
            storage: LevelStorage = FileStorage(
                image_dir=os.path.join(dir_data, "DATA", level_id),
                depth=depth,
                mask_dir=os.path.join(dir_data, "MASK", level_id) if has_mask else None,
            )
        else:
            kind = identify_object_kind(params)
            if kind is None:
                raise StorageTypeError(f"Cannot identify the storage type of level {level_id}")
            if params.get("prefix") is None:
                raise ValidationError("The parameter 'prefix' is required for an object level")
            prefix = params["prefix"]
            storage = ObjectStorage(
                kind=kind,
                container=params[CONTAINER_KEYS[kind]],
                image_prefix=f"{prefix}/DATA_{level_id}",
                mask_prefix=f"{prefix}/MASK_{level_id}" if has_mask else None,
            )

        return cls(
            level_id,
            params["size"],
            storage,
            limits=_parse_limits(params.get("limits")),
            tile_matrix=tm,
            order=tm.order,
            descriptor_dir=descriptor_dir,
        )

    @classmethod
    def from_xml(cls, element: ET.Element, descriptor_dir: str | None = None) -> "Level":
        """
        Create an unbound level from a legacy XML <level> node

        Raises:
            ValidationError: If a required element is missing
            StorageTypeError: If no storage can be identified
        """
        level_id = _xml_text(element, "tileMatrix")
        if level_id is None:
            raise ValidationError("Cannot extract 'tileMatrix' from the XML level")

        size = (_xml_text(element, "tilesPerWidth"), _xml_text(element, "tilesPerHeight"))
        if None in size:
            raise ValidationError(f"Cannot extract slab size from the XML level {level_id}")

        limits = _parse_limits(
            [
                _xml_text(element, "TMSLimits/minTileRow"),
                _xml_text(element, "TMSLimits/maxTileRow"),
                _xml_text(element, "TMSLimits/minTileCol"),
                _xml_text(element, "TMSLimits/maxTileCol"),
            ]
        )

        base_dir = _xml_text(element, "baseDir")
        image_prefix = _xml_text(element, "imagePrefix")

        if base_dir is not None:
            depth = _xml_text(element, "pathDepth")
            if depth is None:
                raise ValidationError(f"Cannot extract 'pathDepth' from the XML level {level_id}")
            mask_dir = _xml_text(element, "mask/baseDir")
            storage: LevelStorage = FileStorage(
                image_dir=_absolute(base_dir, descriptor_dir),
                depth=_positive_int(depth, "pathDepth"),
                mask_dir=_absolute(mask_dir, descriptor_dir) if mask_dir else None,
            )
        elif image_prefix is not None:
            containers = {
                StorageType.S3: _xml_text(element, "s3Context/bucketName"),
                StorageType.CEPH: _xml_text(element, "cephContext/poolName"),
                StorageType.SWIFT: _xml_text(element, "swiftContext/containerName"),
            }
            kind = next((k for k, name in containers.items() if name is not None), None)
            if kind is None:
                raise StorageTypeError(
                    f"No container name (bucket, pool or container) for the XML level {level_id}"
                )
            storage = ObjectStorage(
                kind=kind,
                container=containers[kind],
                image_prefix=image_prefix,
                mask_prefix=_xml_text(element, "mask/maskPrefix"),
            )
        else:
            raise StorageTypeError(f"Cannot identify the storage type of the XML level {level_id}")

        return cls(level_id, size, storage, limits=limits, descriptor_dir=descriptor_dir)

    @classmethod
    def from_json(cls, data: dict[str, Any], descriptor_dir: str | None = None) -> "Level":
        """
        Create an unbound level from a JSON descriptor object

        Raises:
            ValidationError: If a required field is missing
            StorageTypeError: If the storage type is missing or unknown
        """
        if data.get("id") is None:
            raise ValidationError("Cannot extract 'id' from the JSON level")
        level_id = str(data["id"])

        if "tiles_per_width" not in data or "tiles_per_height" not in data:
            raise ValidationError(f"Cannot extract slab size from the JSON level {level_id}")

        limits = None
        if data.get("tile_limits") is not None:
            tile_limits = data["tile_limits"]
            limits = _parse_limits(
                [
                    tile_limits.get("min_row"),
                    tile_limits.get("max_row"),
                    tile_limits.get("min_col"),
                    tile_limits.get("max_col"),
                ]
            )
            # Unset limits are exported as zeros
            if limits == TileLimits(0, 0, 0, 0):
                limits = None

        storage_data = data.get("storage") or {}
        if "type" not in storage_data:
            raise StorageTypeError(f"Cannot extract storage type from the JSON level {level_id}")
        try:
            kind = StorageType(storage_data["type"])
        except ValueError:
            raise StorageTypeError(f"Unknown storage type for the JSON level {level_id}: {storage_data['type']}")

        if kind is StorageType.FILE:
            for key in ("image_directory", "path_depth"):
                if key not in storage_data:
                    raise ValidationError(f"Cannot extract '{key}' from the JSON level {level_id}")
            mask_dir = storage_data.get("mask_directory")
            storage: LevelStorage = FileStorage(
                image_dir=_absolute(storage_data["image_directory"], descriptor_dir),
                depth=_positive_int(storage_data["path_depth"], "path_depth"),
                mask_dir=_absolute(mask_dir, descriptor_dir) if mask_dir else None,
            )
        else:
            container_key = CONTAINER_KEYS[kind]
            for key in ("image_prefix", container_key):
                if key not in storage_data:
                    raise ValidationError(f"Cannot extract '{key}' from the JSON level {level_id}")
            storage = ObjectStorage(
                kind=kind,
                container=storage_data[container_key],
                image_prefix=storage_data["image_prefix"],
                mask_prefix=storage_data.get("mask_prefix"),
            )

        return cls(
            level_id,
            (data["tiles_per_width"], data["tiles_per_height"]),
            storage,
            limits=limits,
            descriptor_dir=descriptor_dir,
        )

    # -------------------------------------------------------------------------
    # Tile matrix binding
    # -------------------------------------------------------------------------

    @property
    def is_bound(self) -> bool:
        return self._tile_matrix is not None

    @property
    def tile_matrix(self) -> TileMatrix:
        if self._tile_matrix is None:
            raise BindingError(f"Level {self.id} is not bound to a tile matrix")
        return self._tile_matrix

    @property
    def order(self) -> int:
        if self._tile_matrix is None or self._order is None:
            raise BindingError(f"Level {self.id} is not bound to a tile matrix, it has no order")
        return self._order

    def bind_tile_matrix(self, tms: TileGrid) -> "Level":
        """
        Link the level to its tile matrix in a tile matrix set

        Returns:
            A bound copy of this level, or this level if already bound

        Raises:
            BindingError: If the tile matrix set has no tile matrix with the level's id
        """
        if self.is_bound:
            return self

        tm = tms.get_tile_matrix(self.id)
        if tm is None:
            raise BindingError(f"Cannot find a level with the id {self.id} in the TMS {tms.name}")

        bound = copy.copy(self)
        bound._tile_matrix = tm
        bound._order = tms.get_order_from_id(self.id)
        return bound

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------

    @property
    def storage_type(self) -> StorageType:
        return self.storage.kind

    @property
    def image_width(self) -> int:
        return self.size[0]

    @property
    def image_height(self) -> int:
        return self.size[1]

    @property
    def container(self) -> str | None:
        """Bucket, pool or container name, None for file storage"""
        if isinstance(self.storage, ObjectStorage):
            return self.storage.container
        return None

    def own_masks(self) -> bool:
        if isinstance(self.storage, FileStorage):
            return self.storage.mask_dir is not None
        return self.storage.mask_prefix is not None

    def get_dirs_info(self) -> tuple[int | None, str | None]:
        """
        Directory depth and storage root of a file level

        The storage root is the image directory without its "<pyramid>/DATA/<level>" end.

        Returns:
            (depth, root), or (None, None) for object storage
        """
        if not isinstance(self.storage, FileStorage):
            return (None, None)

        root = self.storage.image_dir
        for _ in range(3):
            root = os.path.dirname(root)
        return (self.storage.depth, root)

    def update_storage_infos(self, params: dict[str, Any]) -> None:
        """
        Move the level to another storage, keeping mask ownership

        Args:
            params: dir_depth + dir_data (+ desc_path) for file storage,
                or prefix + bucket_name | pool_name | container_name
        """
        has_mask = self.own_masks()

        if params.get("dir_depth") is not None:
            dir_data = params["dir_data"]
            self.storage = FileStorage(
                image_dir=os.path.join(dir_data, "DATA", self.id),
                depth=_positive_int(params["dir_depth"], "dir_depth"),
                mask_dir=os.path.join(dir_data, "MASK", self.id) if has_mask else None,
            )
            self.descriptor_dir = params.get("desc_path")
            return

        kind = identify_object_kind(params)
        if kind is None:
            raise StorageTypeError(f"Cannot identify the new storage type of level {self.id}")
        prefix = params["prefix"]
        self.storage = ObjectStorage(
            kind=kind,
            container=params[CONTAINER_KEYS[kind]],
            image_prefix=f"{prefix}/DATA_{self.id}",
            mask_prefix=f"{prefix}/MASK_{self.id}" if has_mask else None,
        )
        self.descriptor_dir = None

    # -------------------------------------------------------------------------
    # Slab addressing
    # -------------------------------------------------------------------------

    def get_slab_path(self, kind: str, col: int, row: int, full: bool = True) -> str | None:
        """
        Theoretical path (file) or name (object) of a slab

        Args:
            kind: "DATA" or "MASK"
            col: Slab column
            row: Slab row
            full: Full path with storage root, or the relative name used in lists

        Returns:
            Slab path, None for a mask when the level has no mask
        """
        try:
            slab_type = SlabType(kind)
        except ValueError:
            raise ValidationError(f"Unknown slab kind {kind}, expected DATA or MASK")
        if slab_type is SlabType.MASK and not self.own_masks():
            return None

        if isinstance(self.storage, FileStorage):
            b36 = indices_to_b36_path(col, row, self.storage.depth + 1)
            if not full:
                return f"{slab_type}/{self.id}/{b36}.tif"
            # TODO: masks should live under mask_dir; callers rely on the image root today
            return os.path.join(self.storage.image_dir, f"{b36}.tif")

        if not full:
            return f"{slab_type}_{self.id}_{col}_{row}"
        prefix = self.storage.image_prefix
        if slab_type is SlabType.MASK:
            prefix = self.storage.mask_prefix
        return f"{self.storage.container}/{prefix}_{col}_{row}"

    def get_from_slab_path(self, path: str) -> tuple[int, int]:
        """
        Extract slab column and row from a slab path

        Raises:
            FormatError: If the path does not encode slab indices
        """
        if isinstance(self.storage, FileStorage):
            segments = self.storage.depth + 1
            parts = path.split("/")
            if len(parts) < segments:
                raise FormatError(f"Slab path {path} has less than {segments} segments")
            b36 = TIF_EXTENSION.sub("", "/".join(parts[-segments:]))
            try:
                return b36_path_to_indices(b36)
            except ValueError as e:
                raise FormatError(f"Cannot decode slab path {path}: {e}")

        parts = path.split("_")
        try:
            return (int(parts[-2]), int(parts[-1]))
        except (IndexError, ValueError):
            raise FormatError(f"Cannot extract column and row from slab name {path}")

    # -------------------------------------------------------------------------
    # Limits
    # -------------------------------------------------------------------------

    def get_limits(self) -> tuple[int | None, int | None, int | None, int | None]:
        """Limits as (rowMin, rowMax, colMin, colMax), all None if unknown"""
        if self.limits is None:
            return (None, None, None, None)
        return self.limits.as_tuple()

    def update_limits(self, row_min: int, row_max: int, col_min: int, col_max: int) -> None:
        """Extend the limits to contain the provided tile range"""
        extent = TileLimits(row_min, row_max, col_min, col_max)
        self.limits = extent if self.limits is None else self.limits.union(extent)

    def update_limits_from_slab(self, col: int, row: int) -> None:
        """Extend the limits to contain every tile of a slab"""
        extent = TileLimits.from_slab(col, row, *self.size)
        self.limits = extent if self.limits is None else self.limits.union(extent)

    def update_limits_from_bbox(self, xmin: float, ymin: float, xmax: float, ymax: float) -> None:
        """Extend the limits to contain the tiles of a bbox (bound level only)"""
        tm = self.tile_matrix
        self.update_limits(
            tm.y_to_row(ymax),
            tm.y_to_row(ymin),
            tm.x_to_column(xmin),
            tm.x_to_column(xmax),
        )

    def bbox_to_slab_indices(
        self, xmin: float, ymin: float, xmax: float, ymax: float
    ) -> tuple[int, int, int, int]:
        """Extreme slab indices (rowMin, rowMax, colMin, colMax) of a bbox"""
        return self.tile_matrix.bbox_to_indices(xmin, ymin, xmax, ymax, *self.size)

    def slab_indices_to_bbox(self, col: int, row: int) -> tuple[float, float, float, float]:
        """Bbox (xmin, ymin, xmax, ymax) of a slab"""
        return self.tile_matrix.indices_to_bbox(col, row, *self.size)

    # -------------------------------------------------------------------------
    # Export / copy
    # -------------------------------------------------------------------------

    def export_to_json_object(self) -> dict[str, Any]:
        """Level as a JSON descriptor object (inverse of from_json)"""
        if self.limits is not None:
            tile_limits = self.limits.to_dict()
        else:
            tile_limits = {"min_row": 0, "max_row": 0, "min_col": 0, "max_col": 0}

        data: dict[str, Any] = {
            "id": self.id,
            "tiles_per_width": self.size[0],
            "tiles_per_height": self.size[1],
            "tile_limits": tile_limits,
        }

        if isinstance(self.storage, FileStorage):
            storage = {
                "type": StorageType.FILE.value,
                "image_directory": self._relative(self.storage.image_dir),
                "path_depth": self.storage.depth,
            }
            if self.storage.mask_dir is not None:
                storage["mask_directory"] = self._relative(self.storage.mask_dir)
        else:
            storage = {
                "type": self.storage.kind.value,
                "image_prefix": self.storage.image_prefix,
                CONTAINER_KEYS[self.storage.kind]: self.storage.container,
            }
            if self.storage.mask_prefix is not None:
                storage["mask_prefix"] = self.storage.mask_prefix

        data["storage"] = storage
        return data

    def _relative(self, path: str) -> str:
        if self.descriptor_dir is None:
            return path
        return os.path.relpath(path, self.descriptor_dir)

    def clone(self, new_name: str, new_root: str | None = None) -> "Level":
        """
        Copy the level for a pyramid named new_name

        File levels are moved under new_root when provided; object levels get
        prefixes built on new_name. The tile matrix is shared, not copied.
        """
        clone = copy.copy(self)

        if isinstance(self.storage, FileStorage):
            if new_root is not None:
                clone.storage = FileStorage(
                    image_dir=os.path.join(new_root, new_name, "DATA", self.id),
                    depth=self.storage.depth,
                    mask_dir=(
                        os.path.join(new_root, new_name, "MASK", self.id)
                        if self.storage.mask_dir is not None
                        else None
                    ),
                )
                clone.descriptor_dir = new_root
        else:
            clone.storage = ObjectStorage(
                kind=self.storage.kind,
                container=self.storage.container,
                image_prefix=f"{new_name}/DATA_{self.id}",
                mask_prefix=(
                    f"{new_name}/MASK_{self.id}" if self.storage.mask_prefix is not None else None
                ),
            )

        return clone

    def __repr__(self) -> str:
        state = f"order {self._order}" if self.is_bound else "unbound"
        return f"<Level: {self.id}> ({self.storage_type}, {state}, limits {self.get_limits()})"
