"""
tilepyramid Pyramid Module

Pyramids, their levels and their list index.
"""

from tilepyramid.pyramid.level import Level, SlabType, TileLimits
from tilepyramid.pyramid.pyramid import Compatibility, Pyramid, PyramidMode
from tilepyramid.pyramid.slab_list import RootTable, SlabList, SlabRecord
from tilepyramid.pyramid.storage import FileRoot, FileStorage, ObjectRoot, ObjectStorage

__all__ = [
    "Compatibility",
    "FileRoot",
    "FileStorage",
    "Level",
    "ObjectRoot",
    "ObjectStorage",
    "Pyramid",
    "PyramidMode",
    "RootTable",
    "SlabList",
    "SlabRecord",
    "SlabType",
    "TileLimits",
]
