"""
tilepyramid CLI Entry Points

Provides command-line interface for:
- info: Show a pyramid's descriptor and list content
- verify: Check a pyramid's list against its levels
"""

import argparse
import logging
import sys


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="tilepyramid - Tile pyramid storage and list index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tilepyramid info file:///data/ORTHO.json          Show pyramid information
  tilepyramid info s3://tiles/ORTHO.json --list     Also count listed slabs
  tilepyramid verify file:///data/ORTHO.json        Check the list against levels
        """,
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Info command
    info_parser = subparsers.add_parser("info", help="Show pyramid information")
    info_parser.add_argument("descriptor", help="Descriptor URI (file://, s3://, ceph://, swift://)")
    info_parser.add_argument(
        "--list", action="store_true", help="Load the list and show slab counts per level"
    )

    # Verify command
    verify_parser = subparsers.add_parser("verify", help="Check a pyramid's list against its levels")
    verify_parser.add_argument("descriptor", help="Descriptor URI (file://, s3://, ceph://, swift://)")

    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(message)s" if not args.verbose else "%(levelname)s: %(message)s"
    )

    if args.command == "info":
        from tilepyramid.cli.info import run_info

        sys.exit(run_info(args))
    elif args.command == "verify":
        from tilepyramid.cli.verify import run_verify

        sys.exit(run_verify(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
