"""
Tests for Pyramid creation, loading and comparison
"""

import json
import logging

import pytest

from tilepyramid._internal.storage.base import StorageType
from tilepyramid.core.exceptions import (
    BindingError,
    FormatError,
    StateError,
    StorageIOError,
    StorageTypeError,
    ValidationError,
)
from tilepyramid.grid.tile_matrix import TileMatrixSet
from tilepyramid.pyramid.pyramid import Compatibility, Pyramid, PyramidMode
from tilepyramid.pyramid.storage import FileRoot, ObjectRoot


@pytest.fixture
def file_pyramid(tmp_path, tms, storage):
    """New file pyramid with levels 10 and 12"""
    pyramid = Pyramid.from_values("PYR", tms=tms, data_path=str(tmp_path), storage=storage)
    pyramid.add_level("10")
    pyramid.add_level("12")
    return pyramid


@pytest.fixture
def s3_pyramid(tms, storage):
    """New S3 pyramid with levels 10, 11 and 12"""
    pyramid = Pyramid.from_values(
        "PYR", tms=tms, bucket_name="bucket", image_width=8, image_height=4, storage=storage
    )
    for level_id in ("10", "11", "12"):
        pyramid.add_level(level_id)
    return pyramid


class TestFromValues:
    """Test new pyramid creation"""

    def test_file_defaults(self, tmp_path, tms, storage, caplog):
        """Test defaults of a new file pyramid"""
        with caplog.at_level(logging.INFO):
            pyramid = Pyramid.from_values("PYR.json", tms=tms, data_path=str(tmp_path), storage=storage)

        assert pyramid.name == "PYR"
        assert pyramid.mode is PyramidMode.WRITE
        assert pyramid.storage_root == FileRoot(str(tmp_path), 2)
        assert (pyramid.image_width, pyramid.image_height) == (16, 16)
        assert pyramid.format_code == "TIFF_RAW_UINT8"
        assert not pyramid.own_ancestor
        assert "Default value for 'dir_depth'" in caplog.text

    @pytest.mark.parametrize(
        "kwargs,kind,container",
        [
            ({"bucket_name": "b", "pool_name": "p"}, StorageType.S3, "b"),
            ({"pool_name": "p", "container_name": "c"}, StorageType.CEPH, "p"),
            ({"container_name": "c"}, StorageType.SWIFT, "c"),
        ],
    )
    def test_object_storage(self, tms, storage, kwargs, kind, container):
        """Test object storage choice"""
        pyramid = Pyramid.from_values("PYR.pyr", tms=tms, storage=storage, **kwargs)

        assert pyramid.name == "PYR"
        assert pyramid.storage_root == ObjectRoot(kind, container)
        assert pyramid.dir_depth is None

    def test_no_storage(self, tms, storage):
        """Test a new pyramid needs a storage"""
        with pytest.raises(StorageTypeError):
            Pyramid.from_values("PYR", tms=tms, storage=storage)

    def test_file_name_with_slash(self, tmp_path, tms, storage):
        """Test file pyramid names are plain file names"""
        with pytest.raises(ValidationError, match="slash"):
            Pyramid.from_values("DIR/PYR", tms=tms, data_path=str(tmp_path), storage=storage)

    def test_tms_required(self, storage):
        """Test a new pyramid without ancestor needs a tile matrix set"""
        with pytest.raises(ValidationError, match="tms"):
            Pyramid.from_values("PYR", bucket_name="b", storage=storage)

    def test_tms_by_name(self, tms_dir, storage):
        """Test the tile matrix set is loaded from its name"""
        pyramid = Pyramid.from_values("PYR", tms="TEST", bucket_name="b", storage=storage)

        assert pyramid.tms.name == "TEST"

    def test_ancestor_parameters(self, s3_pyramid, storage):
        """Test parameters are picked from the ancestor"""
        pyramid = Pyramid.from_values(
            "NEW", bucket_name="other", image_width=32, ancestor=s3_pyramid, storage=storage
        )

        assert pyramid.own_ancestor
        assert pyramid.tms is s3_pyramid.tms
        assert (pyramid.image_width, pyramid.image_height) == (8, 4)
        assert pyramid.format_code == s3_pyramid.format_code

    def test_ancestor_storage_mismatch(self, s3_pyramid, tmp_path, storage):
        """Test the ancestor must use the same storage type"""
        with pytest.raises(StorageTypeError, match="ancestor"):
            Pyramid.from_values("NEW", data_path=str(tmp_path), ancestor=s3_pyramid, storage=storage)

    def test_ancestor_dir_depth(self, file_pyramid, tmp_path, storage):
        """Test file pyramids keep the ancestor's directory depth"""
        pyramid = Pyramid.from_values(
            "NEW", data_path=str(tmp_path), dir_depth=5, ancestor=file_pyramid, storage=storage
        )

        assert pyramid.dir_depth == 2


class TestAddLevel:
    """Test adding levels to a new pyramid"""

    def test_file_level(self, file_pyramid, tmp_path):
        """Test file levels are stored under the data root"""
        level = file_pyramid.get_level("12")

        assert level.storage.image_dir == str(tmp_path / "PYR" / "DATA" / "12")
        assert level.storage.depth == 2
        assert file_pyramid.get_slab_path("DATA", "12", 5, 300) == str(
            tmp_path / "PYR" / "DATA" / "12" / "00" / "08" / "5C.tif"
        )

    def test_object_level(self, s3_pyramid):
        """Test object levels use the pyramid name as prefix"""
        assert s3_pyramid.get_slab_path("DATA", "12", 5, 300) == "bucket/PYR/DATA_12_5_300"
        assert s3_pyramid.get_level("12").size == (8, 4)

    def test_masks(self, tms, storage):
        """Test levels own masks when the pyramid does"""
        pyramid = Pyramid.from_values("PYR", tms=tms, pool_name="pool", own_masks=True, storage=storage)
        pyramid.add_level("12")

        assert pyramid.get_slab_path("MASK", "12", 1, 2) == "pool/PYR/MASK_12_1_2"

    def test_duplicate_level(self, file_pyramid):
        """Test a level is added once"""
        with pytest.raises(ValidationError, match="already exists"):
            file_pyramid.add_level("12")

    def test_unknown_level(self, file_pyramid):
        """Test the level must exist in the tile matrix set"""
        with pytest.raises(BindingError):
            file_pyramid.add_level("99")

    def test_read_pyramid(self, s3_pyramid, storage, tms_loader):
        """Test levels cannot be added to a loaded pyramid"""
        s3_pyramid.write_descriptor()
        pyramid = Pyramid.from_descriptor("s3://bucket/PYR.json", storage=storage, tms_loader=tms_loader)
        del pyramid.levels["12"]

        with pytest.raises(StateError):
            pyramid.add_level("12")

    def test_limits_from_ancestor(self, s3_pyramid, storage):
        """Test limits are inherited from the ancestor's level"""
        s3_pyramid.get_level("12").update_limits(1, 2, 3, 4)
        pyramid = Pyramid.from_values("NEW", bucket_name="bucket", ancestor=s3_pyramid, storage=storage)

        level = pyramid.add_level("12", ancestor=s3_pyramid)
        other = pyramid.add_level("11", ancestor=s3_pyramid)

        assert level.get_limits() == (1, 2, 3, 4)
        assert other.limits is None

    def test_update_tm_limits(self, s3_pyramid):
        """Test limits from a bbox"""
        s3_pyramid.update_tm_limits("12", (256.0, 65536.0 - 512, 600.0, 65536.0 - 256))

        assert s3_pyramid.get_level("12").get_limits() == (1, 2, 1, 2)

    def test_update_tm_limits_unknown_level(self, s3_pyramid):
        """Test limits of an unknown level"""
        with pytest.raises(ValidationError):
            s3_pyramid.update_tm_limits("99", (0.0, 0.0, 1.0, 1.0))


class TestDescriptor:
    """Test descriptor writing and loading"""

    def test_write_file_descriptor(self, file_pyramid, tmp_path):
        """Test levels are written from the top"""
        file_pyramid.write_descriptor()

        content = json.loads((tmp_path / "PYR.json").read_text())

        assert content["tile_matrix_set"] == "TEST"
        assert content["format"] == "TIFF_RAW_UINT8"
        assert [level["id"] for level in content["levels"]] == ["10", "12"]
        assert content["levels"][1]["storage"]["image_directory"] == "PYR/DATA/12"

    def test_file_round_trip(self, file_pyramid, tmp_path, storage, tms_loader):
        """Test a written file pyramid is loaded back"""
        file_pyramid.get_level("12").update_limits(0, 15, 0, 15)
        file_pyramid.write_descriptor()

        pyramid = Pyramid.from_descriptor(f"file://{tmp_path}/PYR.json", storage=storage, tms_loader=tms_loader)

        assert pyramid.name == "PYR"
        assert pyramid.mode is PyramidMode.READ
        assert pyramid.storage_root == FileRoot(str(tmp_path), 2)
        assert sorted(pyramid.levels) == ["10", "12"]
        assert pyramid.get_level("12").is_bound
        assert pyramid.get_level("12").get_limits() == (0, 15, 0, 15)
        assert pyramid.get_slab_path("DATA", "12", 5, 300) == file_pyramid.get_slab_path("DATA", "12", 5, 300)
        assert pyramid.check_compatibility(file_pyramid) is Compatibility.IDENTICAL

    def test_object_round_trip(self, s3_pyramid, storage, tms_loader):
        """Test a written S3 pyramid is loaded back"""
        s3_pyramid.write_descriptor()

        pyramid = Pyramid.from_descriptor("s3://bucket/PYR.json", storage=storage, tms_loader=tms_loader)

        assert pyramid.storage_root == ObjectRoot(StorageType.S3, "bucket")
        assert (pyramid.image_width, pyramid.image_height) == (8, 4)
        assert pyramid.get_slab_path("DATA", "11", 1, 2) == "bucket/PYR/DATA_11_1_2"
        assert pyramid.check_compatibility(s3_pyramid) is Compatibility.IDENTICAL

    def test_xml_descriptor(self, tmp_path, storage, tms_loader):
        """Test loading a legacy XML descriptor"""
        (tmp_path / "OLD.pyr").write_text(
            """<?xml version="1.0" encoding="UTF-8"?>
            <Pyramid>
                <tileMatrixSet>TEST</tileMatrixSet>
                <format>TIFF_JPG_UINT8</format>
                <level>
                    <tileMatrix>11</tileMatrix>
                    <baseDir>OLD/DATA/11</baseDir>
                    <pathDepth>2</pathDepth>
                    <tilesPerWidth>16</tilesPerWidth>
                    <tilesPerHeight>16</tilesPerHeight>
                </level>
            </Pyramid>
            """
        )

        pyramid = Pyramid.from_descriptor(f"file://{tmp_path}/OLD.pyr", storage=storage, tms_loader=tms_loader)

        assert pyramid.name == "OLD"
        assert pyramid.format_code == "TIFF_JPG_UINT8"
        assert pyramid.get_storage_root() == str(tmp_path)
        assert pyramid.get_level("11").order == 1

    def test_unknown_scheme(self, storage):
        """Test unsupported descriptor URIs"""
        with pytest.raises(ValidationError, match="unknown"):
            Pyramid.from_descriptor("http://host/PYR.json", storage=storage)

    def test_object_uri_without_key(self, storage):
        """Test object URIs need a container and a key"""
        with pytest.raises(ValidationError):
            Pyramid.from_descriptor("s3://bucket", storage=storage)

    def test_unknown_extension(self, tmp_path, storage):
        """Test the descriptor format comes from the extension"""
        with pytest.raises(FormatError):
            Pyramid.from_descriptor(f"file://{tmp_path}/PYR.txt", storage=storage)

    def test_missing_descriptor(self, tmp_path, storage):
        """Test unreadable descriptors"""
        with pytest.raises(StorageIOError):
            Pyramid.from_descriptor(f"file://{tmp_path}/MISSING.json", storage=storage)

    def test_mixed_storage_levels(self, tmp_path, storage, tms_loader):
        """Test levels on different storages are refused"""
        descriptor = {
            "tile_matrix_set": "TEST",
            "format": "TIFF_RAW_UINT8",
            "levels": [
                {
                    "id": "12",
                    "tiles_per_width": 16,
                    "tiles_per_height": 16,
                    "storage": {"type": "FILE", "image_directory": "PYR/DATA/12", "path_depth": 2},
                },
                {
                    "id": "11",
                    "tiles_per_width": 16,
                    "tiles_per_height": 16,
                    "storage": {"type": "S3", "image_prefix": "PYR/DATA_11", "bucket_name": "b"},
                },
            ],
        }
        (tmp_path / "PYR.json").write_text(json.dumps(descriptor))

        with pytest.raises(StorageTypeError):
            Pyramid.from_descriptor(f"file://{tmp_path}/PYR.json", storage=storage, tms_loader=tms_loader)

    def test_level_not_in_tms(self, s3_pyramid, storage, tms_definition):
        """Test descriptor levels must exist in the tile matrix set"""
        s3_pyramid.write_descriptor()
        definition = dict(tms_definition, tileMatrices=tms_definition["tileMatrices"][:1])
        smaller = TileMatrixSet.from_dict(definition, name="TEST")

        with pytest.raises(BindingError):
            Pyramid.from_descriptor("s3://bucket/PYR.json", storage=storage, tms_loader=lambda name: smaller)


class TestCompatibility:
    """Test check_compatibility"""

    def test_reflexive(self, file_pyramid, s3_pyramid):
        """Test a pyramid is identical to itself"""
        assert file_pyramid.check_compatibility(file_pyramid) is Compatibility.IDENTICAL
        assert s3_pyramid.check_compatibility(s3_pyramid) is Compatibility.IDENTICAL

    def test_storage_type(self, file_pyramid, tms, storage):
        """Test different storage types"""
        other = Pyramid.from_values("PYR", tms=tms, bucket_name="bucket", storage=storage)

        assert file_pyramid.check_compatibility(other) is Compatibility.INCOMPATIBLE

    def test_dir_depth(self, file_pyramid, tmp_path, tms, storage):
        """Test different directory depths"""
        other = Pyramid.from_values("OTHER", tms=tms, data_path=str(tmp_path), dir_depth=3, storage=storage)

        assert file_pyramid.check_compatibility(other) is Compatibility.INCOMPATIBLE

    def test_container(self, s3_pyramid, tms, storage):
        """Test different buckets"""
        other = Pyramid.from_values(
            "PYR", tms=tms, bucket_name="other", image_width=8, image_height=4, storage=storage
        )

        assert s3_pyramid.check_compatibility(other) is Compatibility.INCOMPATIBLE

    def test_slab_size(self, s3_pyramid, tms, storage):
        """Test different slab sizes"""
        other = Pyramid.from_values(
            "OTHER", tms=tms, bucket_name="bucket", image_width=8, image_height=8, storage=storage
        )

        assert s3_pyramid.check_compatibility(other) is Compatibility.INCOMPATIBLE

    def test_tms_name(self, s3_pyramid, storage, tms_definition):
        """Test different tile matrix sets"""
        other_tms = TileMatrixSet.from_dict(tms_definition, name="OTHER")
        other = Pyramid.from_values(
            "OTHER", tms=other_tms, bucket_name="bucket", image_width=8, image_height=4, storage=storage
        )

        assert s3_pyramid.check_compatibility(other) is Compatibility.INCOMPATIBLE

    def test_format(self, s3_pyramid, tms, storage):
        """Test different formats"""
        other = Pyramid.from_values(
            "OTHER",
            tms=tms,
            bucket_name="bucket",
            image_width=8,
            image_height=4,
            format_code="TIFF_PNG_UINT8",
            storage=storage,
        )

        assert s3_pyramid.check_compatibility(other) is Compatibility.INCOMPATIBLE

    def test_same_parameters_other_name(self, s3_pyramid, tms, storage):
        """Test pyramids differing by name only are identical"""
        other = Pyramid.from_values(
            "OTHER", tms=tms, bucket_name="bucket", image_width=8, image_height=4, storage=storage
        )

        assert s3_pyramid.check_compatibility(other) == 2


class TestGetters:
    """Test pyramid getters"""

    def test_paths_file(self, file_pyramid, tmp_path):
        """Test file pyramid paths"""
        assert file_pyramid.get_storage_root() == str(tmp_path)
        assert file_pyramid.get_data_root() == str(tmp_path / "PYR")
        assert file_pyramid.get_descriptor_path() == str(tmp_path / "PYR.json")
        assert file_pyramid.get_list_path() == str(tmp_path / "PYR.list")

    def test_paths_object(self, s3_pyramid):
        """Test object pyramid paths"""
        assert s3_pyramid.get_storage_root() == "bucket"
        assert s3_pyramid.get_data_root() == "bucket/PYR"
        assert s3_pyramid.get_descriptor_path() == "bucket/PYR.json"
        assert s3_pyramid.get_list_path() == "bucket/PYR.list"

    def test_top_and_bottom(self, s3_pyramid):
        """Test top is the least detailed level"""
        assert s3_pyramid.get_top_id() == "10"
        assert s3_pyramid.get_top_order() == 2
        assert s3_pyramid.get_bottom_id() == "12"
        assert s3_pyramid.get_bottom_order() == 0
        assert [level.id for level in s3_pyramid.get_ordered_levels()] == ["12", "11", "10"]

    def test_empty_pyramid(self, tms, storage):
        """Test getters without levels"""
        pyramid = Pyramid.from_values("PYR", tms=tms, bucket_name="b", storage=storage)

        assert pyramid.get_top_id() is None
        assert pyramid.get_bottom_order() is None
        assert pyramid.get_levels() == []

    def test_levels(self, s3_pyramid):
        """Test level lookups"""
        assert s3_pyramid.has_level("11")
        assert not s3_pyramid.has_level("99")
        assert not s3_pyramid.has_level(None)
        assert s3_pyramid.get_level("99") is None
        assert s3_pyramid.get_slab_path("DATA", "99", 0, 0) is None
        assert len(s3_pyramid.get_levels()) == 3

    def test_slab_size(self, s3_pyramid):
        """Test slab size in pixels"""
        assert s3_pyramid.get_slab_size("12") == (8 * 256, 4 * 256)


class TestStorageUpdates:
    """Test moving and cloning pyramids"""

    def test_move_to_object(self, file_pyramid):
        """Test moving a file pyramid to Swift"""
        file_pyramid.update_storage_infos("MOVED", container_name="container")

        assert file_pyramid.name == "MOVED"
        assert file_pyramid.storage_root == ObjectRoot(StorageType.SWIFT, "container")
        assert file_pyramid.get_slab_path("DATA", "12", 5, 300) == "container/MOVED/DATA_12_5_300"

    def test_move_to_file(self, s3_pyramid, tmp_path):
        """Test moving an S3 pyramid to a directory"""
        s3_pyramid.update_storage_infos("MOVED", data_path=str(tmp_path), dir_depth=1)

        assert s3_pyramid.storage_root == FileRoot(str(tmp_path), 1)
        assert s3_pyramid.get_slab_path("DATA", "12", 5, 300) == str(tmp_path / "MOVED" / "DATA" / "12" / "08" / "5C.tif")
        assert s3_pyramid.get_level("12").export_to_json_object()["storage"]["image_directory"] == "MOVED/DATA/12"

    def test_move_without_storage(self, s3_pyramid):
        """Test moving needs a storage"""
        with pytest.raises(StorageTypeError):
            s3_pyramid.update_storage_infos("MOVED")

    def test_clone(self, s3_pyramid):
        """Test clones own their levels"""
        clone = s3_pyramid.clone()
        clone.get_level("12").update_limits(0, 1, 0, 1)

        assert clone.get_level("12") is not s3_pyramid.get_level("12")
        assert s3_pyramid.get_level("12").limits is None
        assert clone.tms is s3_pyramid.tms
        assert clone.check_compatibility(s3_pyramid) is Compatibility.IDENTICAL

    def test_clone_keeps_legacy_prefixes(self, storage, tms_loader):
        """Test clones of loaded pyramids address the same objects"""
        storage.store(
            StorageType.S3,
            "bucket/OLD.pyr",
            b"""<Pyramid>
                <tileMatrixSet>TEST</tileMatrixSet>
                <format>TIFF_JPG_UINT8</format>
                <level>
                    <tileMatrix>12</tileMatrix>
                    <imagePrefix>OLD/IMAGE_12</imagePrefix>
                    <s3Context><bucketName>bucket</bucketName></s3Context>
                    <tilesPerWidth>16</tilesPerWidth>
                    <tilesPerHeight>16</tilesPerHeight>
                </level>
            </Pyramid>""",
        )
        pyramid = Pyramid.from_descriptor("s3://bucket/OLD.pyr", storage=storage, tms_loader=tms_loader)

        clone = pyramid.clone()

        assert clone.get_slab_path("DATA", "12", 5, 300) == "bucket/OLD/IMAGE_12_5_300"
        assert clone.get_level("12").storage == pyramid.get_level("12").storage

    def test_repr(self, s3_pyramid):
        """Test representation"""
        assert "PYR" in repr(s3_pyramid)
