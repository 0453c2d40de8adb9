"""
tilepyramid Grid Module

Tile matrix sets used to cut pyramids into tiles and slabs.
"""

from tilepyramid.grid.base import TileGrid
from tilepyramid.grid.tile_matrix import TileMatrix, TileMatrixSet

__all__ = [
    "TileGrid",
    "TileMatrix",
    "TileMatrixSet",
]
