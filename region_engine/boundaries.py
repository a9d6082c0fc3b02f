"""Turn stored geo_definitions into region boundaries.

Included states, counties and zipcodes are unioned; excluded ones are
unioned separately and subtracted. The result is written back into the
region document under ``geo_json``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from .geometry import difference_step, fold_union, parse_geometry, to_geojson, wrap_in_feature_collection
from .reference import ReferenceIndex
from .schemas import RegionDefinition, RegionRuleEntry, RuleCategory, RuleSign, RunSummary
from .store import DocumentStore, StoredDocument

logger = logging.getLogger(__name__)


@dataclass
class ResolvedDefinition:
    include: list[tuple[str, dict]] = field(default_factory=list)
    exclude: list[tuple[str, dict]] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)


@dataclass
class BoundaryResult:
    geometry: dict[str, Any] | None = None
    polygons: int = 0
    error: str | None = None
    resolved: ResolvedDefinition | None = None


def _lookup_geometry(entry: RegionRuleEntry, index: ReferenceIndex) -> dict | None:
    if entry.category is RuleCategory.STATE:
        state = index.state(entry.value)
        return state.geometry if state else None

    if entry.category is RuleCategory.ZIPCODE:
        zipcode = index.zipcode(entry.value)
        return zipcode.geometry if zipcode else None

    expression = entry.county
    if expression is None:
        return None
    matches = index.counties(expression.key)
    if not matches:
        return None
    if expression.qualifier:
        wanted = expression.qualifier.lower()
        matches = [county for county in matches if county.qualifier.lower() == wanted]
        if not matches:
            logger.warning(f'County "{expression.base_name}" with qualifier "{expression.qualifier}" not found')
            return None
    elif len(matches) > 1:
        available = ", ".join(county.qualifier for county in matches)
        logger.warning(
            f'Multiple entries for "{expression.base_name}", using {matches[0].qualifier} '
            f"(available: {available})"
        )
    return matches[0].geometry


def resolve_definition(definition: RegionDefinition, index: ReferenceIndex) -> ResolvedDefinition:
    """Look up the geometry of every rule; unknown entries are reported, not fatal."""
    resolved = ResolvedDefinition()
    for category in RuleCategory:
        for entry in definition.entries(category):
            label = f"{category.value} {entry.value}"
            geometry = _lookup_geometry(entry, index)
            if geometry is None:
                logger.warning(f"{category.value.title()} not found: {entry.value}")
                resolved.unresolved.append(str(entry))
                continue
            target = resolved.include if entry.sign is RuleSign.INCLUDE else resolved.exclude
            target.append((label, geometry))
    return resolved


def polygon_count(geometry: dict[str, Any]) -> int:
    if geometry.get("type") == "MultiPolygon":
        return len(geometry.get("coordinates") or [])
    return 1


def build_boundary(definition: RegionDefinition, index: ReferenceIndex, name: str = "") -> BoundaryResult:
    """Compute include-minus-exclude for one definition.

    Returns a result with ``geometry`` None when nothing is included; sets
    ``error`` when no included geometry could be used.
    """
    resolved = resolve_definition(definition, index)
    result = BoundaryResult(resolved=resolved)
    if not resolved.include:
        return result

    included = fold_union(resolved.include, group=name)
    if included.merged == 0:
        result.error = "no valid geometries to include"
        return result

    boundary = included.geometry
    if resolved.exclude:
        excluded = fold_union(resolved.exclude, group=f"{name} exclusions")
        if excluded.merged:
            accumulator = parse_geometry(boundary).geometry
            outcome = difference_step(accumulator, excluded.geometry)
            if outcome.ok and outcome.geometry.is_empty:
                result.error = "excluded geometries cover the whole region"
                return result
            if outcome.ok:
                boundary = to_geojson(outcome.geometry)
            else:
                logger.warning(f"Failed to subtract excluded geometry from {name}: {outcome.error}")

    result.geometry = boundary
    result.polygons = polygon_count(boundary)
    return result


class BoundaryBuilder:
    """Writes ``geo_json`` boundaries for a batch of region documents."""

    def __init__(self, index: ReferenceIndex, store: DocumentStore, dry_run: bool = False, pretty: bool = False):
        self.index = index
        self.store = store
        self.dry_run = dry_run
        self.pretty = pretty

    def process(self, document: StoredDocument, summary: RunSummary) -> None:
        data = document.data
        name = data.get("name") or document.filename
        print(f"\n{'=' * 60}")
        print(f"Region: {name} ({data.get('code') or 'no code'})")
        print("=" * 60)

        try:
            definition = RegionDefinition.from_document(data.get("geo_definition"))
        except (ValueError, ValidationError) as e:
            logger.error(f"Invalid geo_definition in {document.filename}: {e}")
            summary.record_error(f"{document.filename}: {e}")
            return

        result = build_boundary(definition, self.index, name)
        if result.error:
            print(f"  ✗ Error building boundary: {result.error}")
            summary.record_error(f"{document.filename}: {result.error}")
            return
        if result.geometry is None:
            print("  ⚠ No geometries to include, skipping")
            summary.skipped += 1
            return

        print(f"  ✓ Created boundary with {result.polygons} polygon(s)")
        data["geo_json"] = wrap_in_feature_collection(result.geometry)

        if self.dry_run:
            print(f"  [DRY RUN] Would update: {document.filename}")
            summary.updated += 1
            return
        try:
            self.store.write(document.path, data, self.pretty)
        except OSError as e:
            print(f"  ✗ Error writing {document.filename}: {e}")
            summary.record_error(f"{document.filename}: {e}")
            return
        print(f"  ✓ Updated: {document.filename}")
        summary.updated += 1

    def run(self, documents: list[StoredDocument]) -> RunSummary:
        summary = RunSummary(total=len(documents))
        for document in documents:
            self.process(document, summary)
        return summary
