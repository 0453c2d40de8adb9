"""
tilepyramid Core Module

Exceptions shared by every component.
"""

from tilepyramid.core.exceptions import (
    BindingError,
    FormatError,
    PyramidError,
    StateError,
    StorageIOError,
    StorageTypeError,
    ValidationError,
)

__all__ = [
    "BindingError",
    "FormatError",
    "PyramidError",
    "StateError",
    "StorageIOError",
    "StorageTypeError",
    "ValidationError",
]
