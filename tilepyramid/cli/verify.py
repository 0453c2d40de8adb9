"""
Verify CLI command

Checks a pyramid's list against its levels.
"""

import argparse

from tilepyramid._internal.storage.proxy import ProxyStorage
from tilepyramid.core.exceptions import PyramidError, StorageTypeError
from tilepyramid.pyramid.pyramid import URI_SCHEMES, Pyramid


def load_pyramid(uri: str) -> Pyramid:
    """Load a pyramid, checking the environment its storage needs first"""
    scheme = uri.split("://", 1)[0]
    kind = URI_SCHEMES.get(scheme)
    if kind is not None and not ProxyStorage.check_environment(kind):
        raise StorageTypeError(f"Environment is not configured for {kind} storage")
    return Pyramid.from_descriptor(uri)


def run_verify(args: argparse.Namespace) -> int:
    """Run the verify command"""
    from tilepyramid.util.inspector import PyramidInspector

    try:
        pyramid = load_pyramid(args.descriptor)
        issues = PyramidInspector(pyramid).diagnose()
    except PyramidError as e:
        print(f"Error: {e}")
        return 1

    print(f"Verifying pyramid {pyramid.name}...")
    print()

    status_symbol = {"healthy": "OK", "warning": "WARNING"}
    print(f"Health Status: {status_symbol.get(issues['health_status'], issues['health_status'])}")
    print()

    print("Levels:")
    for level_id, info in issues["levels"].items():
        print(f"  {level_id:>4}  DATA {info['data_slabs']:,}  MASK {info['mask_slabs']:,}")
    print()

    if issues["foreign_roots"]:
        print(f"Slabs inherited from {len(issues['foreign_roots'])} other root(s):")
        for root in issues["foreign_roots"]:
            print(f"  - {root}")
        print()

    outside = issues["slabs_outside_limits"]
    if outside:
        print(f"Slabs Outside Limits: {len(outside)}")
        for slab in outside[:5]:
            print(f"  - level {slab['level']}, col {slab['col']}, row {slab['row']}")
        if len(outside) > 5:
            print(f"  ... and {len(outside) - 5} more")
        print()

    if issues["warnings"]:
        print("Warnings:")
        for w in issues["warnings"]:
            print(f"  - {w}")
        print()

    return 0 if issues["health_status"] == "healthy" else 1
