"""
Pyramid descriptors

A descriptor names the tile matrix set and the data format of a pyramid and
describes each of its levels. JSON descriptors are read and written; XML
(".pyr") descriptors are legacy and only read:

    {
        "tile_matrix_set": "PM",
        "format": "TIFF_RAW_UINT8",
        "levels": [{"id": "12", "tiles_per_width": 16, ...}, ...]
    }

    <Pyramid>
        <tileMatrixSet>PM</tileMatrixSet>
        <format>TIFF_RAW_UINT8</format>
        <level><tileMatrix>12</tileMatrix>...</level>
    </Pyramid>
"""

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from tilepyramid.core.exceptions import FormatError, StorageTypeError, ValidationError
from tilepyramid.pyramid.level import Level

logger = logging.getLogger(__name__)

XML_EXTENSIONS = (".pyr", ".xml")
JSON_EXTENSIONS = (".json",)


@dataclass
class PyramidDescriptor:
    """Content of a pyramid descriptor, levels unbound"""

    tms_name: str
    format_code: str
    levels: list[Level] = field(default_factory=list)


def descriptor_format(path: str) -> str:
    """
    Descriptor format ("xml" or "json") from its path extension

    Raises:
        FormatError: If the extension is neither XML nor JSON
    """
    lower = path.lower()
    if lower.endswith(XML_EXTENSIONS):
        return "xml"
    if lower.endswith(JSON_EXTENSIONS):
        return "json"
    raise FormatError(f"Cannot determine pyramid descriptor format from path (neither XML nor JSON): {path}")


def parse_descriptor(path: str, content: bytes, descriptor_dir: str | None = None) -> PyramidDescriptor:
    """
    Parse descriptor content, the format being given by the path extension

    Args:
        path: Descriptor path or key
        content: Raw descriptor
        descriptor_dir: Directory relative level paths are resolved against

    Raises:
        FormatError: If the content cannot be parsed
        ValidationError: If a required field is missing
        StorageTypeError: If the levels do not share one storage type
    """
    if descriptor_format(path) == "xml":
        return parse_xml(content, descriptor_dir)
    return parse_json(content, descriptor_dir)


def parse_xml(content: bytes | str, descriptor_dir: str | None = None) -> PyramidDescriptor:
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise FormatError(f"Cannot read the XML pyramid descriptor: {e}")

    tms_name = (root.findtext("tileMatrixSet") or "").strip()
    if tms_name == "":
        raise ValidationError("Cannot extract 'tileMatrixSet' from the XML pyramid descriptor")

    format_code = (root.findtext("format") or "").strip()
    if format_code == "":
        raise ValidationError("Cannot extract 'format' from the XML pyramid descriptor")

    levels = [Level.from_xml(element, descriptor_dir) for element in root.iter("level")]
    _check_levels(levels)

    return PyramidDescriptor(tms_name=tms_name, format_code=format_code, levels=levels)


def parse_json(content: bytes | str, descriptor_dir: str | None = None) -> PyramidDescriptor:
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FormatError(f"Cannot read the JSON pyramid descriptor: {e}")

    if not isinstance(data, dict):
        raise FormatError("The JSON pyramid descriptor is not an object")

    for key in ("tile_matrix_set", "format"):
        if key not in data:
            raise ValidationError(f"Cannot extract '{key}' from the JSON pyramid descriptor")

    levels = [Level.from_json(level, descriptor_dir) for level in data.get("levels") or []]
    _check_levels(levels)

    return PyramidDescriptor(
        tms_name=str(data["tile_matrix_set"]),
        format_code=str(data["format"]),
        levels=levels,
    )


def _check_levels(levels: list[Level]) -> None:
    if not levels:
        raise ValidationError("No level in the pyramid descriptor")

    kind = levels[0].storage_type
    for level in levels[1:]:
        if level.storage_type != kind:
            raise StorageTypeError(
                f"All levels have to own the same storage type ({level.id}: {level.storage_type} != {kind})"
            )

    ids = [level.id for level in levels]
    duplicates = {level_id for level_id in ids if ids.count(level_id) > 1}
    if duplicates:
        raise ValidationError(f"Levels defined twice in the pyramid descriptor: {sorted(duplicates)}")


def to_json(tms_name: str, format_code: str, levels: list[Level]) -> bytes:
    """
    Serialize a pyramid descriptor, levels from the top (highest order) to the bottom
    """
    ordered = sorted(levels, key=lambda level: level.order, reverse=True)
    descriptor = {
        "tile_matrix_set": tms_name,
        "format": format_code,
        "levels": [level.export_to_json_object() for level in ordered],
    }
    return json.dumps(descriptor, indent=2).encode("utf-8")
