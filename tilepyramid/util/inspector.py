"""
Pyramid inspection

Compares what a pyramid's descriptor says with what its list holds:
- slab counts per level
- slabs inherited from other pyramids (foreign roots)
- slabs outside the recorded level limits
"""

import logging
from typing import Any

from tilepyramid.pyramid.level import SlabType, TileLimits
from tilepyramid.pyramid.pyramid import Pyramid

logger = logging.getLogger(__name__)


class PyramidInspector:
    """
    Inspection utilities for a pyramid and its list

    The list is loaded on first use if needed.

    Examples:
        >>> inspector = PyramidInspector(Pyramid.from_descriptor("file:///data/ORTHO.json"))
        >>> report = inspector.diagnose()
        >>> report["health_status"]
        'healthy'
        >>> inspector.compute_limits()
        {'12': TileLimits(row_min=4800, row_max=4815, col_min=80, col_max=95)}
    """

    def __init__(self, pyramid: Pyramid):
        self.pyramid = pyramid

    def _ensure_list(self) -> None:
        if not self.pyramid.list_loaded:
            self.pyramid.load_list()

    def compute_limits(self) -> dict[str, TileLimits]:
        """Tile limits implied by the DATA slabs of the list, per level"""
        self._ensure_list()

        limits: dict[str, TileLimits] = {}
        for level_id, kinds in self.pyramid.get_levels_slabs().items():
            level = self.pyramid.get_level(level_id)
            for key in kinds.get(SlabType.DATA.value, {}):
                col, row = (int(v) for v in key.split("_"))
                extent = TileLimits.from_slab(col, row, *level.size)
                limits[level_id] = limits[level_id].union(extent) if level_id in limits else extent
        return limits

    def diagnose(self) -> dict[str, Any]:
        """Diagnose the pyramid's list against its levels"""
        self._ensure_list()

        issues: dict[str, Any] = {
            "levels": {},
            "foreign_roots": [],
            "slabs_outside_limits": [],
            "health_status": "healthy",
            "warnings": [],
        }

        data_root = self.pyramid.get_data_root()
        foreign_roots: set[str] = set()

        for level in self.pyramid.get_ordered_levels():
            kinds = self.pyramid.get_level_slabs(level.id) or {}
            issues["levels"][level.id] = {
                "data_slabs": len(kinds.get(SlabType.DATA.value, {})),
                "mask_slabs": len(kinds.get(SlabType.MASK.value, {})),
                "limits": level.limits.to_dict() if level.limits else None,
            }

        implied = self.compute_limits()
        for level_id, kinds in self.pyramid.get_levels_slabs().items():
            level = self.pyramid.get_level(level_id)
            for records in kinds.values():
                foreign_roots.update(r.root for r in records.values() if r.root != data_root)

            if level_id not in implied:
                continue
            if level.limits is None or not level.limits.contains(implied[level_id]):
                for key in kinds.get(SlabType.DATA.value, {}):
                    col, row = (int(v) for v in key.split("_"))
                    extent = TileLimits.from_slab(col, row, *level.size)
                    if level.limits is None or not level.limits.contains(extent):
                        issues["slabs_outside_limits"].append(
                            {"level": level_id, "col": col, "row": row}
                        )

        issues["foreign_roots"] = sorted(foreign_roots)

        if issues["slabs_outside_limits"]:
            issues["warnings"].append(
                f"Found {len(issues['slabs_outside_limits'])} slab(s) outside their level limits"
            )

        if issues["warnings"]:
            issues["health_status"] = "warning"
            for warning in issues["warnings"]:
                logger.warning(warning)

        return issues
