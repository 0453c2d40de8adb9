"""
Pyramid list index

The list file inventories every slab physically present in a pyramid:

    0=/data/PYR                 root table, one "<index>=<root>" line per root
    1=/data/ANCESTOR
    #                           separator
    0/DATA/12/00/08/5C.tif      records, "<root index>/<slab name>"
    1/DATA/12/00/08/5D.tif

Object pyramids name slabs "<kind>_<level>_<col>_<row>" under roots
"<container>/<pyramid>". Older object lists put the pyramid name in the slab
name ("<pyramid>_<kind>_<level>_<col>_<row>") under a root without it; both
are read, only the first is written.
"""

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tilepyramid._internal.transactions import ScratchFile
from tilepyramid.core.exceptions import FormatError, StateError, ValidationError
from tilepyramid.pyramid.level import SlabType

if TYPE_CHECKING:
    from tilepyramid.pyramid.pyramid import Pyramid

logger = logging.getLogger(__name__)

# Data kind tokens found in lists, including legacy ones
KIND_ALIASES: dict[str, SlabType] = {
    "DATA": SlabType.DATA,
    "IMG": SlabType.DATA,
    "IMAGE": SlabType.DATA,
    "MASK": SlabType.MASK,
}

RECORD_LINE = re.compile(r"^(\d+)/(.+)$")
SEPARATOR = "#"


@dataclass
class SlabRecord:
    """
    One slab of the list

    Attributes:
        root: Storage location the slab lives under (data root of its pyramid)
        name: Slab name relative to the root
        origin: Full slab location, as read from the list
    """

    root: str
    name: str
    origin: str


class RootTable:
    """
    Interned root locations, each with a stable small index

    Examples:
        >>> roots = RootTable(["/data/PYR"])
        >>> roots.index("/data/ANCESTOR")
        1
        >>> roots.index("/data/PYR")
        0
    """

    def __init__(self, roots: list[str] | None = None):
        self._indices: dict[str, int] = {}
        for root in roots or []:
            self.index(root)

    def index(self, root: str) -> int:
        """Index of a root, registering it if unknown"""
        if root not in self._indices:
            self._indices[root] = len(self._indices)
        return self._indices[root]

    def items(self) -> list[tuple[int, str]]:
        """(index, root) pairs by ascending index"""
        return sorted((index, root) for root, index in self._indices.items())

    def __contains__(self, root: str) -> bool:
        return root in self._indices

    def __len__(self) -> int:
        return len(self._indices)


def slab_key(col: int, row: int) -> str:
    return f"{col}_{row}"


class SlabList:
    """
    In-memory cache of a pyramid's list file

    The cache maps level id -> data kind -> "col_row" -> SlabRecord. It must be
    loaded before being modified, and is refused to reload while holding
    unflushed modifications.
    """

    def __init__(self, pyramid: "Pyramid"):
        self.pyramid = pyramid
        self.loaded = False
        self.dirty = False
        self._cache: dict[str, dict[str, dict[str, SlabRecord]]] = {}

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    def load(self) -> None:
        """
        Read the pyramid's list file into the cache

        Raises:
            StateError: If the cache holds unflushed modifications
            StorageIOError: If the list file cannot be copied locally
            FormatError: If the list content is malformed
        """
        if self.dirty:
            raise StateError(
                "Cached list has been modified, loading the list file would discard modifications"
            )
        if self.loaded:
            logger.debug("List of pyramid %s already loaded", self.pyramid.name)
            return

        list_path = self.pyramid.get_list_path()
        cache: dict[str, dict[str, dict[str, SlabRecord]]] = {}
        with ScratchFile(self.pyramid.storage) as scratch:
            scratch.pull(self.pyramid.storage_type, list_path)
            with open(scratch.path, encoding="utf-8") as f:
                roots = self._read_roots(f)
                count = 0
                for line in f:
                    line = line.rstrip("\r\n")
                    if line.strip() == "":
                        continue
                    self._read_record(line, roots, cache)
                    count += 1

        # Only a completely parsed list replaces the cache
        self._cache = cache
        self.loaded = True
        logger.info("Loaded %d slab(s) from list %s", count, list_path)

    @staticmethod
    def _read_roots(f) -> dict[str, str]:
        roots: dict[str, str] = {}
        for line in f:
            line = line.rstrip("\r\n")
            if line == SEPARATOR:
                break
            line = re.sub(r"\s+", "", line)
            if line == "":
                continue
            parts = line.split("=")
            if len(parts) != 2:
                raise FormatError(f"Wrong formatted pyramid list (root definition): {line}")
            roots[parts[0]] = parts[1]
        return roots

    def _read_record(
        self, line: str, roots: dict[str, str], cache: dict[str, dict[str, dict[str, SlabRecord]]]
    ) -> None:
        match = RECORD_LINE.match(line)
        if match is None:
            raise FormatError(f"Wrong formatted pyramid list (slab): {line}")

        index, target = match.groups()
        if index not in roots:
            raise FormatError(f"Unknown root index {index} in pyramid list: {line}")
        root = roots[index]
        origin = f"{root}/{target}"

        if self.pyramid.storage_type.is_object:
            kind, level_id, col, row, root, target = self._parse_object_target(target, root)
        else:
            kind, level_id, col, row = self._parse_file_target(target)

        level = self.pyramid.get_level(level_id)
        if level is None:
            raise FormatError(f"Slab {target} belongs to level {level_id}, absent from the pyramid")

        slabs = cache.setdefault(level.id, {}).setdefault(kind, {})
        key = slab_key(col, row)
        if key in slabs:
            logger.warning(
                "The list contains twice the same slab: %s, %s, %d, %d", kind, level_id, col, row
            )
        slabs[key] = SlabRecord(root=root, name=target, origin=origin)

    def _parse_file_target(self, target: str) -> tuple[str, str, int, int]:
        # DATA/15/AB/CD/EF.tif
        parts = target.split("/")
        if len(parts) < 3:
            raise FormatError(f"Slab path {target} has no kind and level")

        kind = KIND_ALIASES.get(parts[0])
        if kind is None:
            raise FormatError(f"Unknown slab kind {parts[0]} in {target}")

        level = self.pyramid.get_level(parts[1])
        if level is None:
            raise FormatError(f"Slab {target} belongs to level {parts[1]}, absent from the pyramid")

        col, row = level.get_from_slab_path(target)
        return kind.value, level.id, col, row

    @staticmethod
    def _parse_object_target(target: str, root: str) -> tuple[str, str, int, int, str, str]:
        # DATA_15_12_34, or PYRAMID_NAME_DATA_15_12_34 in older lists
        parts = target.split("_")
        if len(parts) < 4:
            raise FormatError(f"Slab name {target} has less than 4 parts")

        if len(parts) == 4:
            kind_token, level_id, col, row = parts
        else:
            row = parts.pop()
            col = parts.pop()
            level_id = parts.pop()
            kind_token = parts.pop()
            root = f"{root}/{'_'.join(parts)}"

        kind = KIND_ALIASES.get(kind_token)
        if kind is None:
            raise FormatError(f"Unknown slab kind {kind_token} in {target}")

        try:
            col_index, row_index = int(col), int(row)
        except ValueError:
            raise FormatError(f"Cannot extract column and row from slab name {target}")

        return kind.value, level_id, col_index, row_index, root, f"{kind}_{level_id}_{col}_{row}"

    # -------------------------------------------------------------------------
    # Query / modify
    # -------------------------------------------------------------------------

    def get_levels_slabs(self) -> dict[str, dict[str, dict[str, SlabRecord]]]:
        return self._cache

    def get_level_slabs(self, level_id: str) -> dict[str, dict[str, SlabRecord]] | None:
        return self._cache.get(str(level_id))

    def contain_slab(self, kind: str, level_id: str, col: int, row: int) -> tuple[str, str] | None:
        """(root, name) of a slab if the list holds it, None otherwise"""
        record = self._cache.get(str(level_id), {}).get(kind, {}).get(slab_key(col, row))
        if record is None:
            return None
        return (record.root, record.name)

    def modify_slab(self, kind: str, level_id: str, col: int, row: int) -> None:
        """
        Claim a slab for the pyramid: its root becomes the pyramid's data root

        The level's limits are extended to contain the slab. A slab missing
        from the list is added with its theoretical name.

        Raises:
            StateError: If the list has not been loaded
            ValidationError: If the pyramid has no such level
        """
        if not self.loaded:
            raise StateError("Cannot modify the cached list, it has not been loaded")

        level = self.pyramid.get_level(level_id)
        if level is None:
            raise ValidationError(f"Cannot modify slab of level {level_id}, absent from the pyramid")

        if kind not in SlabType.__members__:
            raise ValidationError(f"Unknown slab kind {kind}")

        data_root = self.pyramid.get_data_root()
        slabs = self._cache.setdefault(level.id, {}).setdefault(SlabType(kind).value, {})
        key = slab_key(col, row)

        if key in slabs:
            slabs[key].root = data_root
        else:
            name = level.get_slab_path(kind, col, row, full=False)
            if name is None:
                raise ValidationError(f"Level {level.id} has no {kind} slab")
            slabs[key] = SlabRecord(root=data_root, name=name, origin=f"{data_root}/{name}")

        self.dirty = True
        level.update_limits_from_slab(col, row)

    def delete_slab(self, kind: str, level_id: str, col: int, row: int) -> None:
        """Remove a slab from the cache (the cache is not marked modified)"""
        self._cache.get(str(level_id), {}).get(kind, {}).pop(slab_key(col, row), None)

    # -------------------------------------------------------------------------
    # Flush
    # -------------------------------------------------------------------------

    def flush(self) -> None:
        """
        Write the cached DATA slabs back to the pyramid's list file

        Raises:
            StateError: If the list has not been loaded
            StorageIOError: If the list file cannot be published
        """
        if not self.loaded:
            raise StateError("Cannot flush an unloaded list")
        if not self.dirty:
            logger.warning("The cached list has not been modified, nothing to flush")
            return

        roots = RootTable([self.pyramid.get_data_root()])
        records: list[str] = []
        for slabs in self._cache.values():
            for record in slabs.get(SlabType.DATA.value, {}).values():
                records.append(f"{roots.index(record.root)}/{record.name}\n")

        list_path = self.pyramid.get_list_path()
        with ScratchFile(self.pyramid.storage) as scratch:
            with open(scratch.path, "w", encoding="utf-8") as f:
                for index, root in roots.items():
                    f.write(f"{index}={root}\n")
                f.write(f"{SEPARATOR}\n")
                f.writelines(records)

            self.dirty = False
            scratch.publish(self.pyramid.storage_type, list_path)

        logger.info("Flushed %d slab(s) and %d root(s) to list %s", len(records), len(roots), list_path)

    def get_stats(self) -> dict[str, Any]:
        """Counts of cached slabs per level and kind, and of distinct roots"""
        levels = {}
        roots = set()
        total = 0
        for level_id, kinds in self._cache.items():
            levels[level_id] = {kind: len(slabs) for kind, slabs in kinds.items()}
            for slabs in kinds.values():
                total += len(slabs)
                roots.update(record.root for record in slabs.values())

        return {
            "loaded": self.loaded,
            "dirty": self.dirty,
            "slabs": total,
            "roots": len(roots),
            "levels": levels,
        }
