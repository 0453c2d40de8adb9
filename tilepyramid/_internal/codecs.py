"""
Base 36 slab path codec.

File pyramids spread slabs over a tree of subdirectories. A slab (col, row) is
named by interleaving the base 36 digits of its column and row, two characters
per path segment, least significant pair last:

    (5, 300), depth 3  ->  "00/08/5C"

When the indices need more digits than ``depth`` segments hold, the extra
pairs are prepended to the first segment, so every index stays addressable
whatever the depth.
"""

B36_CHARS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def indices_to_b36_path(col: int, row: int, depth: int) -> str:
    """
    Encode slab indices into a base 36 path

    Args:
        col: Slab column (>= 0)
        row: Slab row (>= 0)
        depth: Number of path segments (>= 1)

    Returns:
        Path such as "00/08/5C" (no extension)

    Examples:
        >>> indices_to_b36_path(5, 300, 3)
        '00/08/5C'
    """
    if col < 0 or row < 0:
        raise ValueError(f"Slab indices must be positive, got ({col}, {row})")
    if depth < 1:
        raise ValueError(f"Path depth must be at least 1, got {depth}")

    segments = []
    for _ in range(depth):
        segments.insert(0, B36_CHARS[col % 36] + B36_CHARS[row % 36])
        col //= 36
        row //= 36

    overflow = ""
    while col > 0 or row > 0:
        overflow = B36_CHARS[col % 36] + B36_CHARS[row % 36] + overflow
        col //= 36
        row //= 36

    segments[0] = overflow + segments[0]
    return "/".join(segments)


def b36_path_to_indices(path: str) -> tuple[int, int]:
    """
    Decode a base 36 path into slab indices

    Args:
        path: Path produced by indices_to_b36_path (no extension)

    Returns:
        (col, row)

    Examples:
        >>> b36_path_to_indices("00/08/5C")
        (5, 300)
    """
    digits = path.replace("/", "").upper()
    if not digits or len(digits) % 2 != 0:
        raise ValueError(f"Invalid base 36 slab path: {path!r}")

    try:
        col = int(digits[0::2], 36)
        row = int(digits[1::2], 36)
    except ValueError as e:
        raise ValueError(f"Invalid base 36 slab path {path!r}: {e}")

    return (col, row)
