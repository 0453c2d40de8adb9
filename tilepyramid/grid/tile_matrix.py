"""
TileMatrixSet Implementation

Tile matrices and tile matrix sets, loaded from OGC-style JSON definitions.
"""

import json
import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tilepyramid.core.exceptions import FormatError, ValidationError

logger = logging.getLogger(__name__)

# Tile matrix set definitions directory
TMS_DIR_ENV = "TILEPYRAMID_TMS_DIR"
DEFAULT_TMS_DIR = "tms"

# Fraction of a tile ignored at bbox edges, so that a bbox ending exactly on a
# tile border does not select the next tile
EPSILON = 1e-6


@dataclass
class TileMatrix:
    """
    One resolution level of a tile matrix set

    Rows grow downward from the origin (top left corner), columns grow
    eastward.

    Attributes:
        id: Tile matrix identifier (e.g. "12")
        resolution: Cell size, in CRS units per pixel
        origin_x: X coordinate of the top left corner
        origin_y: Y coordinate of the top left corner
        tile_width: Tile width in pixels
        tile_height: Tile height in pixels
        matrix_width: Number of tile columns
        matrix_height: Number of tile rows
        order: Position in the set by ascending resolution (set by the TileMatrixSet)

    Examples:
        >>> tm = TileMatrix("0", 1.0, 0.0, 256.0, 256, 256, 1, 1)
        >>> tm.x_to_column(100.0), tm.y_to_row(100.0)
        (0, 0)
    """

    id: str
    resolution: float
    origin_x: float
    origin_y: float
    tile_width: int = 256
    tile_height: int = 256
    matrix_width: int = 1
    matrix_height: int = 1
    order: int | None = None

    def x_to_column(self, x: float) -> int:
        """Tile column containing the X coordinate"""
        return int(math.floor((x - self.origin_x) / (self.resolution * self.tile_width)))

    def y_to_row(self, y: float) -> int:
        """Tile row containing the Y coordinate"""
        return int(math.floor((self.origin_y - y) / (self.resolution * self.tile_height)))

    def bbox_to_indices(
        self,
        xmin: float,
        ymin: float,
        xmax: float,
        ymax: float,
        slab_width: int = 1,
        slab_height: int = 1,
    ) -> tuple[int, int, int, int]:
        """
        Extreme indices of the tiles (or slabs of slab_width x slab_height tiles)
        intersecting a bbox

        Returns:
            (row_min, row_max, col_min, col_max)
        """
        width = self.resolution * self.tile_width * slab_width
        height = self.resolution * self.tile_height * slab_height

        col_min = int(math.floor((xmin - self.origin_x) / width + EPSILON))
        col_max = int(math.floor((xmax - self.origin_x) / width - EPSILON))
        row_min = int(math.floor((self.origin_y - ymax) / height + EPSILON))
        row_max = int(math.floor((self.origin_y - ymin) / height - EPSILON))

        return (row_min, row_max, col_min, col_max)

    def indices_to_bbox(
        self, col: int, row: int, slab_width: int = 1, slab_height: int = 1
    ) -> tuple[float, float, float, float]:
        """
        Bbox of a tile (or of a slab of slab_width x slab_height tiles)

        Returns:
            (xmin, ymin, xmax, ymax)
        """
        width = self.resolution * self.tile_width * slab_width
        height = self.resolution * self.tile_height * slab_height

        xmin = self.origin_x + col * width
        ymax = self.origin_y - row * height
        return (xmin, ymax - height, xmin + width, ymax)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TileMatrix":
        try:
            origin = data["pointOfOrigin"]
            return cls(
                id=str(data["id"]),
                resolution=float(data["cellSize"]),
                origin_x=float(origin[0]),
                origin_y=float(origin[1]),
                tile_width=int(data["tileWidth"]),
                tile_height=int(data["tileHeight"]),
                matrix_width=int(data["matrixWidth"]),
                matrix_height=int(data["matrixHeight"]),
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise FormatError(f"Invalid tile matrix definition: {e}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "cellSize": self.resolution,
            "pointOfOrigin": [self.origin_x, self.origin_y],
            "tileWidth": self.tile_width,
            "tileHeight": self.tile_height,
            "matrixWidth": self.matrix_width,
            "matrixHeight": self.matrix_height,
        }


class TileMatrixSet:
    """
    Set of tile matrices sharing a CRS

    Orders are assigned by ascending resolution: the most detailed tile
    matrix gets order 0.

    Examples:
        >>> tms = TileMatrixSet.load("PM")  # reads $TILEPYRAMID_TMS_DIR/PM.json
        >>> tms.get_order_from_id("0")
        21
        >>> tms.get_tile_matrix("12").x_to_column(260000.0)
        2054
    """

    def __init__(self, name: str, tile_matrices: list[TileMatrix], crs: str | None = None):
        if not tile_matrices:
            raise ValidationError(f"Tile matrix set {name} has no tile matrix")

        self.name = name
        self.crs = crs
        self._tile_matrices: dict[str, TileMatrix] = {}
        self._ordered_ids: list[str] = []

        for order, tm in enumerate(sorted(tile_matrices, key=lambda t: t.resolution)):
            if tm.id in self._tile_matrices:
                raise ValidationError(f"Tile matrix set {name} has twice the id {tm.id}")
            tm.order = order
            self._tile_matrices[tm.id] = tm
            self._ordered_ids.append(tm.id)

    @classmethod
    def from_dict(cls, data: dict[str, Any], name: str | None = None) -> "TileMatrixSet":
        """Build a tile matrix set from its JSON definition"""
        if "tileMatrices" not in data:
            raise FormatError("Tile matrix set definition has no 'tileMatrices'")

        return cls(
            name=name or str(data.get("id", "")),
            tile_matrices=[TileMatrix.from_dict(tm) for tm in data["tileMatrices"]],
            crs=data.get("crs"),
        )

    @classmethod
    def load(cls, name: str, directory: str | None = None) -> "TileMatrixSet":
        """
        Load a tile matrix set definition from "<directory>/<name>.json"

        Args:
            name: Tile matrix set name
            directory: Definitions directory (default: $TILEPYRAMID_TMS_DIR, then "./tms")

        Raises:
            ValidationError: If the definition file cannot be read
            FormatError: If the definition is not valid JSON
        """
        tms_dir = directory or os.environ.get(TMS_DIR_ENV, DEFAULT_TMS_DIR)
        path = Path(tms_dir) / f"{name}.json"

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ValidationError(f"Cannot read tile matrix set {name} from {path}: {e}")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise FormatError(f"Tile matrix set {path} is not valid JSON: {e}")

        tms = cls.from_dict(data, name=name)
        logger.debug("Loaded tile matrix set %s (%d levels)", name, len(tms))
        return tms

    def get_tile_matrix(self, tm_id: str) -> TileMatrix | None:
        return self._tile_matrices.get(str(tm_id))

    def get_order_from_id(self, tm_id: str) -> int | None:
        tm = self.get_tile_matrix(tm_id)
        return tm.order if tm else None

    def get_id_from_order(self, order: int) -> str | None:
        if 0 <= order < len(self._ordered_ids):
            return self._ordered_ids[order]
        return None

    def get_tile_width(self, tm_id: str) -> int:
        return self._require(tm_id).tile_width

    def get_tile_height(self, tm_id: str) -> int:
        return self._require(tm_id).tile_height

    def level_exists(self, tm_id: str) -> bool:
        return str(tm_id) in self._tile_matrices

    def get_tile_matrices(self) -> list[TileMatrix]:
        """Tile matrices by ascending order"""
        return [self._tile_matrices[tm_id] for tm_id in self._ordered_ids]

    def _require(self, tm_id: str) -> TileMatrix:
        tm = self.get_tile_matrix(tm_id)
        if tm is None:
            raise ValidationError(f"Tile matrix set {self.name} has no level {tm_id}")
        return tm

    def __len__(self) -> int:
        return len(self._tile_matrices)

    def __repr__(self) -> str:
        return f"<TileMatrixSet: {self.name}> ({len(self)} tile matrices)"
