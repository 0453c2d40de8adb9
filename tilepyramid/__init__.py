"""
tilepyramid - Tile pyramid storage addressing and list index

Slabs of a multi-resolution tile pyramid stored on a filesystem or on object
storage (S3, Swift, Ceph), with the list index inventorying them.

Quick Start:
    >>> import tilepyramid as tp
    >>>
    >>> # New pyramid, updating an existing one
    >>> ancestor = tp.Pyramid.from_descriptor("s3://tiles/ORTHO_2023.json")
    >>> pyramid = tp.Pyramid.from_values("ORTHO_2024", bucket_name="tiles", ancestor=ancestor)
    >>> pyramid.add_level("12", ancestor=ancestor)
    >>> pyramid.get_slab_path("DATA", "12", 5, 300)
    'tiles/ORTHO_2024/DATA_12_5_300'
    >>>
    >>> # List index
    >>> ancestor.load_list()
    >>> ancestor.contain_slab("DATA", "12", 5, 300)
    ('tiles/ORTHO_2023', 'DATA_12_5_300')
"""

from tilepyramid._internal.storage.base import StorageType
from tilepyramid._internal.storage.proxy import ProxyStorage, get_storage
from tilepyramid.core import (
    BindingError,
    FormatError,
    PyramidError,
    StateError,
    StorageIOError,
    StorageTypeError,
    ValidationError,
)
from tilepyramid.grid import TileGrid, TileMatrix, TileMatrixSet
from tilepyramid.pyramid import (
    Compatibility,
    Level,
    Pyramid,
    PyramidMode,
    SlabType,
    TileLimits,
)

__version__ = "0.1.0"

__all__ = [
    "BindingError",
    "Compatibility",
    "FormatError",
    "Level",
    "ProxyStorage",
    "Pyramid",
    "PyramidError",
    "PyramidInspector",
    "PyramidMode",
    "SlabType",
    "StateError",
    "StorageIOError",
    "StorageType",
    "StorageTypeError",
    "TileGrid",
    "TileLimits",
    "TileMatrix",
    "TileMatrixSet",
    "ValidationError",
    "__version__",
    "get_storage",
]


# Lazy import for the inspection tool
def __getattr__(name):
    if name == "PyramidInspector":
        from tilepyramid.util.inspector import PyramidInspector

        return PyramidInspector
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
