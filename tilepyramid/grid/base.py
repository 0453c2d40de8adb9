"""
Tile Grid System Protocol

Tile matrix set consumed by pyramid levels.
"""

from typing import Protocol

from tilepyramid.grid.tile_matrix import TileMatrix


class TileGrid(Protocol):
    """
    Multi-resolution tile grid (tile matrix set)

    Each level of a pyramid matches one tile matrix of the grid by id. Tile
    matrices are ordered by ascending cell size: order 0 is the most detailed
    one, the highest order is the top of the pyramid.
    """

    name: str

    def get_tile_matrix(self, tm_id: str) -> TileMatrix | None:
        """
        Get a tile matrix by id

        Returns:
            The tile matrix, or None if the grid has no such id
        """
        ...

    def get_order_from_id(self, tm_id: str) -> int | None:
        """Order of a tile matrix (0 = smallest cell size), None if unknown"""
        ...

    def get_tile_width(self, tm_id: str) -> int:
        """Tile width in pixels"""
        ...

    def get_tile_height(self, tm_id: str) -> int:
        """Tile height in pixels"""
        ...

    def level_exists(self, tm_id: str) -> bool:
        """Check if the grid has a tile matrix with this id"""
        ...
