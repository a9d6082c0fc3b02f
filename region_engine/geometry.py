"""Polygon union and difference with per-member failure isolation.

Members are GeoJSON geometry dicts. Each fold step returns a UnionOutcome
instead of raising, so one malformed or self-intersecting member is logged
and skipped while the rest of the group still merges.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

import shapely
from shapely.errors import GEOSException, ShapelyError
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry
from shapely.validation import explain_validity

logger = logging.getLogger(__name__)

POLYGONAL_TYPES = ("Polygon", "MultiPolygon")


@dataclass(frozen=True)
class UnionOutcome:
    """Result of one fold step: a geometry, or the reason the step failed."""

    geometry: BaseGeometry | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, geometry: BaseGeometry) -> "UnionOutcome":
        return cls(geometry=geometry)

    @classmethod
    def failure(cls, error: str) -> "UnionOutcome":
        return cls(error=error)


@dataclass
class FoldResult:
    """Merged boundary of one group plus the members that were skipped."""

    geometry: dict[str, Any] | None
    merged: int = 0
    skipped: list[tuple[str, str]] = field(default_factory=list)


def parse_geometry(geojson: Any) -> UnionOutcome:
    """Turn a GeoJSON geometry into a valid polygonal shapely geometry."""
    if not isinstance(geojson, dict):
        return UnionOutcome.failure("geometry is not a GeoJSON object")
    try:
        geometry = shape(geojson)
    except (ShapelyError, ValueError, TypeError, KeyError, IndexError, AttributeError) as e:
        return UnionOutcome.failure(f"malformed geometry: {e}")
    if geometry.is_empty:
        return UnionOutcome.failure("empty geometry")
    if geometry.geom_type not in POLYGONAL_TYPES:
        return UnionOutcome.failure(f"unsupported geometry type {geometry.geom_type}")
    if not geometry.is_valid:
        return UnionOutcome.failure(f"invalid geometry: {explain_validity(geometry)}")
    return UnionOutcome.success(geometry)


def union_step(accumulator: BaseGeometry | None, geojson: Any) -> UnionOutcome:
    """Union one member into the accumulator; an empty accumulator takes the member."""
    member = parse_geometry(geojson)
    if not member.ok or accumulator is None:
        return member
    try:
        return UnionOutcome.success(accumulator.union(member.geometry))
    except (GEOSException, ValueError) as e:
        return UnionOutcome.failure(f"union failed: {e}")


def difference_step(accumulator: BaseGeometry, geojson: Any) -> UnionOutcome:
    """Subtract one member from the accumulator."""
    member = parse_geometry(geojson)
    if not member.ok:
        return member
    try:
        return UnionOutcome.success(accumulator.difference(member.geometry))
    except (GEOSException, ValueError) as e:
        return UnionOutcome.failure(f"difference failed: {e}")


def to_geojson(geometry: BaseGeometry) -> dict[str, Any]:
    return json.loads(shapely.to_geojson(geometry))


def wrap_in_feature_collection(geometry: dict[str, Any]) -> dict[str, Any]:
    """Container shape stored in ``geo_polygon`` / ``geo_json`` fields."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": geometry,
                "properties": {},
            }
        ],
    }


def fold_union(members: Sequence[tuple[str, Any]], group: str = "") -> FoldResult:
    """Left-fold member geometries into one boundary.

    ``members`` are ``(label, geojson)`` pairs in processing order. Failed
    steps are logged with the member label and leave the accumulator as it
    was. If at most one member could be used, that member's GeoJSON is
    returned as given; if none could, the first member's is.
    """
    if not members:
        return FoldResult(geometry=None)

    accumulator: BaseGeometry | None = None
    source: Any = None
    result = FoldResult(geometry=None)

    for label, geojson in members:
        outcome = union_step(accumulator, geojson)
        if not outcome.ok:
            where = f" in {group}" if group else ""
            logger.warning(f"Failed to union {label}{where}: {outcome.error}")
            result.skipped.append((label, outcome.error))
            continue
        source = geojson if accumulator is None else None
        accumulator = outcome.geometry
        result.merged += 1

    if accumulator is None:
        result.geometry = members[0][1]
    elif source is not None:
        result.geometry = source
    else:
        result.geometry = to_geojson(accumulator)
    return result
