"""
Tests for the base 36 slab path codec
"""

import pytest

from tilepyramid._internal.codecs import b36_path_to_indices, indices_to_b36_path


class TestEncode:
    """Test indices_to_b36_path"""

    def test_known_path(self):
        """Test (5, 300) at depth 3"""
        assert indices_to_b36_path(5, 300, 3) == "00/08/5C"

    def test_depth_one(self):
        """Test single segment path"""
        assert indices_to_b36_path(35, 1, 1) == "Z1"

    def test_overflow_goes_to_first_segment(self):
        """Test indices too large for the depth"""
        path = indices_to_b36_path(36**3, 0, 1)

        assert path == "10000000"
        assert b36_path_to_indices(path) == (36**3, 0)

    def test_negative_indices_fail(self):
        """Test negative indices are refused"""
        with pytest.raises(ValueError, match="positive"):
            indices_to_b36_path(-1, 0, 2)

    def test_zero_depth_fails(self):
        """Test depth must be at least 1"""
        with pytest.raises(ValueError, match="depth"):
            indices_to_b36_path(1, 1, 0)


class TestDecode:
    """Test b36_path_to_indices"""

    def test_known_path(self):
        """Test decoding "00/08/5C" """
        assert b36_path_to_indices("00/08/5C") == (5, 300)

    def test_lowercase(self):
        """Test decoding is case insensitive"""
        assert b36_path_to_indices("00/08/5c") == (5, 300)

    @pytest.mark.parametrize("path", ["", "0/08/5C", "00/08/5!"])
    def test_invalid_paths_fail(self, path):
        """Test malformed paths are refused"""
        with pytest.raises(ValueError):
            b36_path_to_indices(path)

    @pytest.mark.parametrize("depth", [1, 2, 4])
    @pytest.mark.parametrize("col,row", [(0, 0), (5, 300), (46655, 1), (123456, 789012)])
    def test_decode_inverts_encode(self, col, row, depth):
        """Test decode(encode(col, row, depth)) == (col, row)"""
        assert b36_path_to_indices(indices_to_b36_path(col, row, depth)) == (col, row)
