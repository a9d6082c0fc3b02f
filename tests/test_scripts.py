"""End-to-end tests for the command entry points."""

import json

import pytest
from shapely.geometry import shape

from conftest import HOST, SOURCE_HOST, bowtie, square, write_json
from region_engine.editor import ScriptedLineSource
from region_engine.schemas import RegionKind
from region_engine.scripts import build_boundaries, define_regions, generate_regions
from region_engine.store import AREAS, COMMUNITIES, ZIPCODE_ASSIGNMENTS, DocumentStore

TARGET_HOST = "target.local"


@pytest.fixture
def source_store(data_dir):
    return DocumentStore(data_dir, SOURCE_HOST)


@pytest.fixture
def target_store(data_dir):
    return DocumentStore(data_dir, TARGET_HOST)


@pytest.fixture
def exported_zipcodes(source_store):
    rows = [
        ("10001", "Metro", "North", square(0, 0, 1, 1)),
        ("10002", "Metro", "North", square(1, 0, 2, 1)),
        ("10003", "Metro", "North", bowtie()),
        ("20001", "Lakeside", "South", square(5, 5, 6, 6)),
        ("20002", "Lakeside", "South", None),
        ("30001", None, None, square(9, 9, 10, 10)),
    ]
    for zipcode, community, area, geometry in rows:
        write_json(source_store.path_for(ZIPCODE_ASSIGNMENTS, zipcode), {
            "zipcode": zipcode,
            "county": "Example",
            "st": "VA",
            "area": area,
            "community": community,
            "latitude": 37.0,
            "longitude": -80.0,
            "geo_polygon": geometry,
        })
    return rows


def generate(env_file, kind, *extra):
    argv = [str(env_file), "--source-host", SOURCE_HOST, "--target-host", TARGET_HOST, *extra]
    return generate_regions.main(argv, kind=kind)


def documents(store, entity) -> dict[str, dict]:
    return {d.data["code"]: d.data for d in store.read_all(entity).documents}


class TestGenerateRegions:
    """Test generate-areas and generate-communities."""

    def test_areas_then_communities(self, env_file, exported_zipcodes, target_store):
        assert generate(env_file, RegionKind.AREA) == 0
        areas = documents(target_store, AREAS)
        assert set(areas) == {"north", "south"}

        assert generate(env_file, RegionKind.COMMUNITY) == 0
        communities = documents(target_store, COMMUNITIES)
        assert set(communities) == {"metro", "lakeside"}

        metro = communities["metro"]
        assert metro["name"] == "Metro"
        assert metro["area_id"] == areas["north"]["id"]
        geometry = metro["geo_polygon"]["features"][0]["geometry"]
        assert shape(geometry).area == pytest.approx(2.0)

        assert communities["lakeside"]["area_id"] == areas["south"]["id"]

    def test_communities_without_areas(self, env_file, exported_zipcodes, target_store, capsys):
        assert generate(env_file, RegionKind.COMMUNITY) == 0
        assert documents(target_store, COMMUNITIES)["metro"]["area_id"] is None
        assert "Area 'North' not found" in capsys.readouterr().out

    def test_compact_output(self, env_file, exported_zipcodes, target_store):
        generate(env_file, RegionKind.AREA)
        text = target_store.path_for(AREAS, "north").read_text(encoding="utf-8")
        assert "\n" not in text
        assert '"name":"North"' in text

    def test_pretty_output(self, env_file, exported_zipcodes, target_store):
        generate(env_file, RegionKind.AREA, "--pretty")
        text = target_store.path_for(AREAS, "north").read_text(encoding="utf-8")
        assert '\n  "name": "North"' in text

    def test_dry_run(self, env_file, exported_zipcodes, target_store, capsys):
        assert generate(env_file, RegionKind.COMMUNITY, "--dry-run") == 0
        assert not target_store.directory(COMMUNITIES).exists()
        out = capsys.readouterr().out
        assert "[DRY RUN] Would create: metro.json" in out

    def test_unlabeled_zipcodes_are_skipped(self, env_file, exported_zipcodes, capsys):
        generate(env_file, RegionKind.COMMUNITY)
        assert "⊘ Skipped: 1" in capsys.readouterr().out

    def test_empty_source_is_nothing_to_do(self, env_file, source_store, capsys):
        source_store.directory(ZIPCODE_ASSIGNMENTS).mkdir(parents=True)
        assert generate(env_file, RegionKind.AREA) == 0
        assert "No JSON files found" in capsys.readouterr().out

    def test_missing_source_directory(self, env_file, capsys):
        assert generate(env_file, RegionKind.AREA) == 1
        assert "Directory not found" in capsys.readouterr().err

    def test_malformed_source_file_fails_the_run(self, env_file, exported_zipcodes, source_store, target_store):
        source_store.path_for(ZIPCODE_ASSIGNMENTS, "99999").write_text("{bad", encoding="utf-8")
        assert generate(env_file, RegionKind.AREA) == 1
        assert set(documents(target_store, AREAS)) == {"north", "south"}

    def test_code_collision(self, env_file, source_store, target_store, capsys):
        write_json(source_store.path_for(ZIPCODE_ASSIGNMENTS, "1"),
                   {"zipcode": "1", "community": "St. Louis", "geo_polygon": square(0, 0, 1, 1)})
        write_json(source_store.path_for(ZIPCODE_ASSIGNMENTS, "2"),
                   {"zipcode": "2", "community": "St Louis", "geo_polygon": square(1, 0, 2, 1)})

        assert generate(env_file, RegionKind.COMMUNITY) == 1

        written = documents(target_store, COMMUNITIES)
        assert list(written) == ["st-louis"]
        assert written["st-louis"]["name"] == "St. Louis"
        assert "already used by St. Louis" in capsys.readouterr().out

    def test_missing_source_host(self, tmp_path, capsys):
        env = tmp_path / "bare.env"
        env.write_text("HOSTNAME=only-target\n", encoding="utf-8")
        assert generate_regions.main([str(env)], kind=RegionKind.AREA) == 1
        assert "SOURCE_HOSTNAME" in capsys.readouterr().err


class TestBuildBoundaries:
    """Test build-boundaries against the cached reference datasets."""

    @pytest.fixture
    def areas(self, store):
        store.write(store.path_for(AREAS, "west"), {
            "id": "a-1", "name": "West Virginia Side", "code": "west",
            "geo_definition": {"states": ["+Virginia"], "counties": ["-Bristol (County), VA"], "zipcodes": []},
        })
        store.write(store.path_for(AREAS, "texas"), {
            "id": "a-2", "name": "Texas", "code": "texas",
            "geo_definition": {"states": ["+Texas"], "counties": [], "zipcodes": []},
        })
        store.write(store.path_for(AREAS, "blank"), {"id": "a-3", "name": "Blank", "code": "blank"})
        return store

    def test_updates_every_defined_area(self, env_file, areas):
        assert build_boundaries.main([str(env_file)]) == 0

        written = documents(areas, AREAS)
        west = written["west"]["geo_json"]["features"][0]["geometry"]
        assert shape(west).area == pytest.approx(96.0)
        assert "geo_json" in written["texas"]
        assert "geo_json" not in written["blank"]

    def test_name_filter(self, env_file, areas):
        assert build_boundaries.main([str(env_file), "--name", "tex"]) == 0
        written = documents(areas, AREAS)
        assert "geo_json" in written["texas"]
        assert "geo_json" not in written["west"]

    def test_no_match_is_nothing_to_do(self, env_file, areas, capsys):
        assert build_boundaries.main([str(env_file), "--name", "nowhere"]) == 0
        assert "No areas found matching: nowhere" in capsys.readouterr().out

    def test_dry_run(self, env_file, areas):
        before = areas.path_for(AREAS, "west").read_bytes()
        assert build_boundaries.main([str(env_file), "--dry-run"]) == 0
        assert areas.path_for(AREAS, "west").read_bytes() == before

    def test_communities_kind(self, env_file, store):
        store.write(store.path_for(COMMUNITIES, "metro"), {
            "id": "c-1", "name": "Metro", "code": "metro",
            "geo_definition": {"zipcodes": ["+24201", "+24202"]},
        })
        assert build_boundaries.main([str(env_file), "--kind", "communities"]) == 0
        geometry = documents(store, COMMUNITIES)["metro"]["geo_json"]["features"][0]["geometry"]
        assert shape(geometry).area == pytest.approx(2.0)

    def test_host_override(self, env_file, data_dir):
        other = DocumentStore(data_dir, "other.local")
        other.write(other.path_for(AREAS, "texas"), {
            "id": "a-9", "name": "Texas", "code": "texas", "geo_definition": {"states": ["+Texas"]},
        })
        assert build_boundaries.main([str(env_file), "--host", "other.local"]) == 0
        assert "geo_json" in documents(other, AREAS)["texas"]

    def test_missing_zipcode_dataset(self, env_file, geojson_dir, areas, capsys):
        (geojson_dir / "usa_zipcodes_100m.geo.json").unlink()
        assert build_boundaries.main([str(env_file)]) == 1
        assert "add-zipcode-geojson" in capsys.readouterr().err


class TestDefineRegions:
    """Test define-communities and define-areas with scripted input."""

    def test_define_community(self, env_file, store):
        path = store.path_for(COMMUNITIES, "metro")
        store.write(path, {"id": "c-1", "name": "Metro", "code": "metro"})
        lines = ScriptedLineSource(["y", "+Virginia", "done", "+Fairfax, VA", "done", "+22030", "done"])

        assert define_regions.main([str(env_file)], kind=RegionKind.COMMUNITY, lines=lines) == 0

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["geo_definition"] == {
            "states": ["+Virginia"],
            "counties": ["+Fairfax (County), VA"],
            "zipcodes": ["+22030"],
        }

    def test_define_area_with_filter(self, env_file, store):
        store.write(store.path_for(AREAS, "north"), {"id": "a-1", "name": "North", "code": "north"})
        store.write(store.path_for(AREAS, "south"), {"id": "a-2", "name": "South", "code": "south"})
        lines = ScriptedLineSource(["y", "+Texas", "done", "done", "done"])

        assert define_regions.main([str(env_file), "--area", "sou"], kind=RegionKind.AREA, lines=lines) == 0

        written = documents(store, AREAS)
        assert written["south"]["geo_definition"]["states"] == ["+Texas"]
        assert "geo_definition" not in written["north"]

    def test_community_shows_area(self, env_file, store, capsys):
        store.write(store.path_for(AREAS, "north"), {"id": "a-1", "name": "North", "code": "north"})
        store.write(store.path_for(COMMUNITIES, "metro"),
                    {"id": "c-1", "name": "Metro", "code": "metro", "area_id": "a-1"})

        define_regions.main([str(env_file)], kind=RegionKind.COMMUNITY, lines=ScriptedLineSource(["n"]))

        assert "Area: North (north)" in capsys.readouterr().out

    def test_missing_region_directory(self, env_file, capsys):
        code = define_regions.main([str(env_file)], kind=RegionKind.COMMUNITY, lines=ScriptedLineSource([]))
        assert code == 1
        assert "Directory not found" in capsys.readouterr().err

    def test_missing_hostname(self, tmp_path, capsys):
        env = tmp_path / "empty.env"
        env.write_text("", encoding="utf-8")
        code = define_regions.main([str(env)], kind=RegionKind.AREA, lines=ScriptedLineSource([]))
        assert code == 1
        assert "HOSTNAME must be set" in capsys.readouterr().err

    def test_missing_env_file(self, tmp_path, capsys):
        code = define_regions.main([str(tmp_path / "nope.env")], lines=ScriptedLineSource([]))
        assert code == 1
        assert "not found" in capsys.readouterr().err
