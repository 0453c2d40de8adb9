"""
tilepyramid Utility Module

Provides pyramid inspection tools.
"""

from tilepyramid.util.inspector import PyramidInspector

__all__ = [
    "PyramidInspector",
]
