"""
Shared fixtures: a tiny synthetic reference geography and temporary data trees.

Coordinates are plain unit squares rather than real lon/lat so that areas
can be checked exactly:

    Virginia (51)      0..10 x 0..10
    Texas (48)        20..30 x 0..10
    DC (11)           40..41 x 0..1   (no abbreviation -> degraded county key)

    Bristol (County), VA   0..2 x 0..2
    Bristol (city), VA     2..3 x 0..1
    Fairfax (County), VA   4..6 x 4..6
    El Paso (County), TX  20..22 x 0..2

    24201  0..1 x 0..1     24202  1..2 x 0..1
    22030  4..5 x 4..5     79901 20..21 x 0..1
"""

import json

import pytest

from region_engine.config import load_settings
from region_engine.reference import COUNTIES_FILE, STATES_FILE, ZIPCODES_FILE, ReferenceIndex
from region_engine.store import DocumentStore

HOST = "test.local"
SOURCE_HOST = "source.local"


def square(x0, y0, x1, y1) -> dict:
    """GeoJSON Polygon for an axis-aligned rectangle."""
    return {
        "type": "Polygon",
        "coordinates": [[[x0, y0], [x1, y0], [x1, y1], [x0, y1], [x0, y0]]],
    }


def bowtie() -> dict:
    """Self-intersecting ring; parses but is not a valid polygon."""
    return {
        "type": "Polygon",
        "coordinates": [[[0, 0], [2, 2], [2, 0], [0, 2], [0, 0]]],
    }


def feature(geometry: dict, **properties) -> dict:
    return {"type": "Feature", "geometry": geometry, "properties": properties}


def feature_collection(features: list[dict]) -> dict:
    return {"type": "FeatureCollection", "features": features}


def write_json(path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the host process environment out of settings resolution."""
    for key in (
        "HOSTNAME",
        "SOURCE_HOSTNAME",
        "REGION_DATA_DIR",
        "GEOJSON_CACHE_DIR",
        "STATES_GEOJSON_URL",
        "COUNTIES_GEOJSON_URL",
        "LOGFIRE_TOKEN",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def state_features():
    return [
        feature(square(0, 0, 10, 10), STATE="51", NAME="Virginia"),
        feature(square(20, 0, 30, 10), STATE="48", NAME="Texas"),
        feature(square(40, 0, 41, 1), STATE="11", NAME="District of Columbia"),
    ]


@pytest.fixture
def county_features():
    return [
        feature(square(0, 0, 2, 2), STATE="51", COUNTY="191", NAME="Bristol", LSAD="County"),
        feature(square(2, 0, 3, 1), STATE="51", COUNTY="520", NAME="Bristol", LSAD="city"),
        feature(square(4, 4, 6, 6), STATE="51", COUNTY="059", NAME="Fairfax", LSAD="County"),
        feature(square(20, 0, 22, 2), STATE="48", COUNTY="141", NAME="El Paso", LSAD="County"),
        feature(square(40, 0, 41, 1), STATE="11", COUNTY="001", NAME="District of Columbia", LSAD=""),
    ]


@pytest.fixture
def zipcode_features():
    return [
        feature(square(0, 0, 1, 1), ZCTA5CE10="24201", STATEFP10="51"),
        feature(square(1, 0, 2, 1), ZCTA5CE10="24202", STATEFP10="51"),
        feature(square(4, 4, 5, 5), ZCTA5CE10="22030", STATEFP10="51"),
        feature(square(20, 0, 21, 1), ZCTA5CE10="79901", STATEFP10="48"),
    ]


@pytest.fixture
def reference_index(state_features, county_features, zipcode_features):
    return ReferenceIndex.build(state_features, county_features, zipcode_features)


@pytest.fixture
def geojson_dir(tmp_path, state_features, county_features, zipcode_features):
    """Cache directory already holding all three reference datasets."""
    cache = tmp_path / "geojson-data"
    write_json(cache / STATES_FILE, feature_collection(state_features))
    write_json(cache / COUNTIES_FILE, feature_collection(county_features))
    write_json(cache / ZIPCODES_FILE, feature_collection(zipcode_features))
    return cache


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def env_file(tmp_path, data_dir, geojson_dir):
    path = tmp_path / ".env"
    path.write_text(
        "\n".join([
            f"HOSTNAME={HOST}",
            f"SOURCE_HOSTNAME={SOURCE_HOST}",
            f"REGION_DATA_DIR={data_dir}",
            f"GEOJSON_CACHE_DIR={geojson_dir}",
        ]) + "\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def settings(env_file):
    return load_settings(env_file, environ={})


@pytest.fixture
def store(data_dir):
    return DocumentStore(data_dir, HOST)
