"""
tilepyramid Test Configuration

Shared pytest fixtures for all tests.
"""

import copy
import json

import pytest
from obstore.store import MemoryStore

from tilepyramid._internal.storage.proxy import ProxyStorage
from tilepyramid.grid.tile_matrix import TileMatrix, TileMatrixSet

# Three tile matrices, 256 px tiles, origin (0, 65536): "12" is the most
# detailed (order 0), "10" the least (order 2)
TMS_DEFINITION = {
    "id": "TEST",
    "crs": "EPSG:3857",
    "tileMatrices": [
        {
            "id": "10",
            "cellSize": 4.0,
            "pointOfOrigin": [0.0, 65536.0],
            "tileWidth": 256,
            "tileHeight": 256,
            "matrixWidth": 64,
            "matrixHeight": 64,
        },
        {
            "id": "11",
            "cellSize": 2.0,
            "pointOfOrigin": [0.0, 65536.0],
            "tileWidth": 256,
            "tileHeight": 256,
            "matrixWidth": 128,
            "matrixHeight": 128,
        },
        {
            "id": "12",
            "cellSize": 1.0,
            "pointOfOrigin": [0.0, 65536.0],
            "tileWidth": 256,
            "tileHeight": 256,
            "matrixWidth": 256,
            "matrixHeight": 256,
        },
    ],
}


@pytest.fixture
def tms_definition():
    """JSON definition of the TEST tile matrix set"""
    return copy.deepcopy(TMS_DEFINITION)


@pytest.fixture
def tms(tms_definition):
    """Small tile matrix set named TEST"""
    return TileMatrixSet.from_dict(tms_definition, name="TEST")


@pytest.fixture
def tms_loader(tms):
    """Tile matrix set loader returning the TEST set whatever the name"""
    return lambda name: tms


@pytest.fixture
def tms_dir(tmp_path, monkeypatch):
    """Directory holding TEST.json, set as the tile matrix set directory"""
    directory = tmp_path / "tms"
    directory.mkdir()
    (directory / "TEST.json").write_text(json.dumps(TMS_DEFINITION))
    monkeypatch.setenv("TILEPYRAMID_TMS_DIR", str(directory))
    return directory


@pytest.fixture
def tm12(tms) -> TileMatrix:
    """Most detailed tile matrix of the TEST set"""
    return tms.get_tile_matrix("12")


@pytest.fixture
def memory_stores():
    """In-memory object stores, one per (kind, container)"""
    return {}


@pytest.fixture
def storage(memory_stores):
    """Storage proxy with in-memory object stores"""

    def factory(kind, container):
        return memory_stores.setdefault((kind, container), MemoryStore())

    return ProxyStorage(store_factory=factory)
