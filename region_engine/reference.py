"""Reference geography: cached Census GeoJSON datasets and their lookup index.

The states and counties datasets are downloaded on first use into the
GeoJSON cache directory. The zipcode (ZCTA) dataset is produced by a
separate ``add-zipcode-geojson`` step and must already be present.
Presence is checked by filename only; a cached file is never re-fetched.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import httpx

from .config import Settings

logger = logging.getLogger(__name__)

STATES_FILE = "usa_states_5m.geo.json"
COUNTIES_FILE = "usa_counties_5m.geo.json"
ZIPCODES_FILE = "usa_zipcodes_100m.geo.json"
ZIPCODES_LEGACY_FILE = "usa_zip_codes_geo_100m.json"
ZIPCODES_COMMAND = "add-zipcode-geojson"

# Only the 50 states; DC and territories have no entry and therefore no
# state-code -> abbreviation mapping.
STATE_ABBREVIATIONS = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR", "california": "CA",
    "colorado": "CO", "connecticut": "CT", "delaware": "DE", "florida": "FL", "georgia": "GA",
    "hawaii": "HI", "idaho": "ID", "illinois": "IL", "indiana": "IN", "iowa": "IA",
    "kansas": "KS", "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
    "massachusetts": "MA", "michigan": "MI", "minnesota": "MN", "mississippi": "MS",
    "missouri": "MO", "montana": "MT", "nebraska": "NE", "nevada": "NV",
    "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM", "new york": "NY",
    "north carolina": "NC", "north dakota": "ND", "ohio": "OH", "oklahoma": "OK",
    "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI", "south carolina": "SC",
    "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT", "vermont": "VT",
    "virginia": "VA", "washington": "WA", "west virginia": "WV", "wisconsin": "WI",
    "wyoming": "WY",
}


class ReferenceDataError(Exception):
    """A reference dataset could not be fetched or read."""


class MissingZipcodeDataError(ReferenceDataError):
    """The locally produced zipcode dataset is absent."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(
            f"{path.name} not found in {path.parent}. "
            f"Please run {ZIPCODES_COMMAND} first."
        )


# =============================================================================
# Reference records
# =============================================================================


@dataclass(frozen=True)
class ReferenceState:
    name: str
    state_code: str
    abbreviation: str | None
    geometry: dict | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ReferenceCounty:
    name: str
    state_abbreviation: str
    qualifier: str
    state_code: str
    county_code: str | None = None
    geometry: dict | None = field(default=None, compare=False, repr=False)

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.qualifier}), {self.state_abbreviation}"


@dataclass(frozen=True)
class ReferenceZipcode:
    code: str
    state_code: str | None
    geometry: dict | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ReferenceFiles:
    """Local paths of the three reference datasets."""

    states: Path
    counties: Path
    zipcodes: Path


# =============================================================================
# Fetching and caching
# =============================================================================


def download_if_missing(url: str, path: Path, client: httpx.Client) -> bool:
    """Download ``url`` to ``path`` unless a file of that name already exists.

    Returns True if a download happened. A failed download removes the
    partial file and raises ReferenceDataError.
    """
    if path.exists():
        print(f"  ✓ {path.name} already exists")
        return False

    print(f"  Downloading {path.name}...")
    try:
        with client.stream("GET", url) as response:
            response.raise_for_status()
            with path.open("wb") as fh:
                for chunk in response.iter_bytes():
                    fh.write(chunk)
    except (httpx.HTTPError, OSError) as e:
        path.unlink(missing_ok=True)
        raise ReferenceDataError(f"Download of {url} failed: {e}") from e

    print(f"  ✓ Downloaded {path.name}")
    return True


def ensure_reference_files(settings: Settings, client: httpx.Client | None = None) -> ReferenceFiles:
    """Make sure all three reference datasets exist in the cache directory."""
    cache_dir = settings.geojson_dir
    cache_dir.mkdir(parents=True, exist_ok=True)
    files = ReferenceFiles(
        states=cache_dir / STATES_FILE,
        counties=cache_dir / COUNTIES_FILE,
        zipcodes=cache_dir / ZIPCODES_FILE,
    )

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=60.0, follow_redirects=True)
    try:
        download_if_missing(settings.states_url, files.states, client)
        download_if_missing(settings.counties_url, files.counties, client)
    finally:
        if owns_client:
            client.close()

    legacy = cache_dir / ZIPCODES_LEGACY_FILE
    if files.zipcodes.exists():
        print(f"  ✓ {ZIPCODES_FILE} already exists")
    elif legacy.exists():
        legacy.rename(files.zipcodes)
        print(f"  ✓ Renamed {ZIPCODES_LEGACY_FILE} → {ZIPCODES_FILE}")
    else:
        raise MissingZipcodeDataError(files.zipcodes)

    return files


def load_features(path: Path) -> list[dict]:
    """Read the feature list of a GeoJSON FeatureCollection file."""
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise ReferenceDataError(f"Could not read {path}: {e}") from e
    features = data.get("features") if isinstance(data, dict) else None
    if not isinstance(features, list):
        raise ReferenceDataError(f"{path} is not a GeoJSON FeatureCollection")
    return features


# =============================================================================
# Index
# =============================================================================


def _properties(feature: dict) -> dict[str, Any]:
    return feature.get("properties") or {}


def county_key(name: str, state: str) -> str:
    return f"{name}, {state}".lower()


class ReferenceIndex:
    """Read-only lookups over the loaded reference datasets.

    Built once per run; there is no refresh.
    """

    def __init__(
        self,
        states_by_name: dict[str, ReferenceState],
        abbreviations: dict[str, str],
        counties_by_key: dict[str, list[ReferenceCounty]],
        zipcodes_by_code: dict[str, ReferenceZipcode],
    ):
        self._states_by_name = states_by_name
        self._abbreviations = abbreviations
        self._counties_by_key = counties_by_key
        self._zipcodes_by_code = zipcodes_by_code

    @classmethod
    def build(
        cls,
        state_features: Iterable[dict],
        county_features: Iterable[dict],
        zipcode_features: Iterable[dict],
    ) -> "ReferenceIndex":
        states_by_name: dict[str, ReferenceState] = {}
        abbreviations: dict[str, str] = {}
        for feature in state_features:
            props = _properties(feature)
            name = str(props.get("NAME") or "").strip()
            state_code = str(props.get("STATE") or "").strip()
            if not name:
                continue
            abbreviation = STATE_ABBREVIATIONS.get(name.lower())
            states_by_name[name.lower()] = ReferenceState(
                name=name,
                state_code=state_code,
                abbreviation=abbreviation,
                geometry=feature.get("geometry"),
            )
            if abbreviation:
                abbreviations[state_code] = abbreviation

        counties_by_key: dict[str, list[ReferenceCounty]] = {}
        unmapped_codes: set[str] = set()
        for feature in county_features:
            props = _properties(feature)
            name = str(props.get("NAME") or "").strip()
            state_code = str(props.get("STATE") or "").strip()
            if not name:
                continue
            state = abbreviations.get(state_code)
            if state is None:
                # Degraded path: index under the raw numeric state code.
                unmapped_codes.add(state_code)
                state = state_code
            county = ReferenceCounty(
                name=name,
                state_abbreviation=state,
                qualifier=str(props.get("LSAD") or "").strip(),
                state_code=state_code,
                county_code=props.get("COUNTY"),
                geometry=feature.get("geometry"),
            )
            counties_by_key.setdefault(county_key(name, state), []).append(county)
        if unmapped_codes:
            logger.debug(f"Counties indexed by raw state code: {sorted(unmapped_codes)}")

        zipcodes_by_code: dict[str, ReferenceZipcode] = {}
        for feature in zipcode_features:
            props = _properties(feature)
            code = str(props.get("ZCTA5CE10") or "").strip()
            if not code:
                continue
            if code in zipcodes_by_code:
                logger.warning(f"Duplicate zipcode {code} in reference data, keeping the later record")
            zipcodes_by_code[code] = ReferenceZipcode(
                code=code,
                state_code=props.get("STATEFP10"),
                geometry=feature.get("geometry"),
            )

        return cls(states_by_name, abbreviations, counties_by_key, zipcodes_by_code)

    @classmethod
    def from_files(cls, files: ReferenceFiles) -> "ReferenceIndex":
        index = cls.build(
            load_features(files.states),
            load_features(files.counties),
            load_features(files.zipcodes),
        )
        logger.info(
            f"Loaded {index.state_count} states, {index.county_count} counties, "
            f"{index.zipcode_count} zipcodes"
        )
        return index

    def state(self, name: str) -> ReferenceState | None:
        return self._states_by_name.get(name.strip().lower())

    def abbreviation(self, state_code: str) -> str | None:
        return self._abbreviations.get(state_code)

    def counties(self, key: str) -> list[ReferenceCounty]:
        """All counties sharing a ``"name, st"`` key; empty when unknown."""
        return list(self._counties_by_key.get(key.lower(), []))

    def zipcode(self, code: str) -> ReferenceZipcode | None:
        return self._zipcodes_by_code.get(code)

    @property
    def state_count(self) -> int:
        return len(self._states_by_name)

    @property
    def county_count(self) -> int:
        return sum(len(counties) for counties in self._counties_by_key.values())

    @property
    def zipcode_count(self) -> int:
        return len(self._zipcodes_by_code)


def load_reference_index(settings: Settings, client: httpx.Client | None = None) -> ReferenceIndex:
    """Fetch missing datasets and build the index for one run."""
    print("Checking GeoJSON data files...")
    files = ensure_reference_files(settings, client)
    print("\nLoading GeoJSON data...")
    index = ReferenceIndex.from_files(files)
    print(f"  ✓ Loaded {index.state_count} states")
    print(f"  ✓ Loaded {index.county_count} counties")
    print(f"  ✓ Loaded {index.zipcode_count} zipcodes\n")
    return index
