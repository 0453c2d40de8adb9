"""
Info CLI command

Shows a pyramid's storage, grid, levels and, on demand, list content.
"""

import argparse

from tilepyramid.cli.verify import load_pyramid
from tilepyramid.core.exceptions import PyramidError


def run_info(args: argparse.Namespace) -> int:
    """Run the info command"""
    try:
        pyramid = load_pyramid(args.descriptor)
    except PyramidError as e:
        print(f"Error: {e}")
        return 1

    print(f"Pyramid: {pyramid.name}")
    print(f"  Mode: {pyramid.mode}")
    print(f"  Storage: {pyramid.storage_type} {pyramid.get_storage_root()}")
    if pyramid.dir_depth is not None:
        print(f"  Directory depth: {pyramid.dir_depth}")
    print(f"  Format: {pyramid.format_code}")
    print(f"  Tile matrix set: {pyramid.tms.name}")
    print(f"  Slab size: {pyramid.image_width} x {pyramid.image_height} tiles")
    print()

    print("Levels (top first):")
    for level in reversed(pyramid.get_ordered_levels()):
        row_min, row_max, col_min, col_max = level.get_limits()
        limits = "unknown" if row_min is None else f"rows {row_min}-{row_max}, cols {col_min}-{col_max}"
        print(f"  {level.id:>4}  order {level.order:<3} {limits}")
    print()

    if args.list:
        try:
            pyramid.load_list()
        except PyramidError as e:
            print(f"Error: Cannot load list {pyramid.get_list_path()}: {e}")
            return 1

        stats = pyramid.get_cached_list_stats()
        print(f"List: {pyramid.get_list_path()}")
        print(f"  Slabs: {stats['slabs']:,}")
        print(f"  Roots: {stats['roots']}")
        for level_id, kinds in sorted(stats["levels"].items()):
            counts = ", ".join(f"{kind} {count:,}" for kind, count in sorted(kinds.items()))
            print(f"  Level {level_id}: {counts}")
        print()

    return 0
