"""Build Community and Area records from zipcode assignments.

Every run recomputes from the full batch of exported zipcode documents:
assignments are grouped by label, each group's polygons are folded into one
boundary, and a fresh record is produced per group.
"""

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from .codes import derive_code
from .geometry import FoldResult, fold_union, wrap_in_feature_collection
from .schemas import GeneratedArea, GeneratedCommunity, RegionKind, ZipcodeCommunityAssignment
from .store import AREAS, DocumentError, DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class AssignmentBatch:
    """Parsed zipcode assignments and the documents that could not be used."""

    assignments: list[ZipcodeCommunityAssignment] = field(default_factory=list)
    errors: list[DocumentError] = field(default_factory=list)


@dataclass
class GroupedAssignments:
    groups: dict[str, list[ZipcodeCommunityAssignment]] = field(default_factory=dict)
    unlabeled: list[ZipcodeCommunityAssignment] = field(default_factory=list)


@dataclass
class AggregatedRegion:
    """One generated record and how its boundary was assembled."""

    record: GeneratedCommunity | GeneratedArea
    members: int
    fold: FoldResult | None = None
    area_label: str | None = None
    area_resolved: bool = True


def load_assignments(store: DocumentStore, entity: str) -> AssignmentBatch:
    """Read every exported zipcode document of a source namespace."""
    documents = store.read_all(entity, hint="Make sure you have exported zipcodes first")
    batch = AssignmentBatch(errors=list(documents.errors))
    for document in documents.documents:
        try:
            batch.assignments.append(ZipcodeCommunityAssignment.model_validate(document.data))
        except ValidationError as e:
            logger.error(f"Error parsing {document.filename}: {e}")
            batch.errors.append(DocumentError(path=document.path, message=str(e)))
    return batch


def group_assignments(
    assignments: list[ZipcodeCommunityAssignment], kind: RegionKind
) -> GroupedAssignments:
    """Group by community or area label, keeping first-seen order."""
    grouped = GroupedAssignments()
    for assignment in assignments:
        label = assignment.community if kind is RegionKind.COMMUNITY else assignment.area
        if not label:
            logger.warning(f"Skipping zipcode {assignment.zipcode}: no {kind.singular} specified")
            grouped.unlabeled.append(assignment)
            continue
        grouped.groups.setdefault(label, []).append(assignment)
    return grouped


def load_area_lookup(store: DocumentStore) -> dict[str, str]:
    """Map generated Area names to ids for the community area_id field."""
    batch = store.read_all(AREAS, required=False)
    lookup = {}
    for document in batch.documents:
        name, area_id = document.data.get("name"), document.data.get("id")
        if name and area_id:
            lookup[name] = str(area_id)
    if not batch.documents:
        logger.warning(
            f"No generated areas found in {store.directory(AREAS)}; "
            "communities will be created with area_id = null"
        )
    return lookup


class RegionAggregator:
    """Folds each label group into a GeneratedCommunity or GeneratedArea."""

    def __init__(self, kind: RegionKind, area_lookup: dict[str, str] | None = None):
        self.kind = kind
        self.area_lookup = area_lookup or {}

    def build(self, label: str, members: list[ZipcodeCommunityAssignment]) -> AggregatedRegion:
        area_label = members[0].area if members else None
        area_id = None
        area_resolved = True
        if self.kind is RegionKind.COMMUNITY and area_label:
            area_id = self.area_lookup.get(area_label)
            if area_id is None:
                area_resolved = False
                logger.warning(f"Area '{area_label}' for {label} not found in generated areas")

        with_geometry = [m for m in members if m.geo_polygon]
        fold = None
        boundary = None
        if with_geometry:
            fold = fold_union([(m.zipcode, m.geo_polygon) for m in with_geometry], group=label)
            if fold.geometry is not None:
                boundary = wrap_in_feature_collection(fold.geometry)
        else:
            logger.warning(f"No zipcodes with geo_polygon data for {label}")

        code = derive_code(label)
        if self.kind is RegionKind.COMMUNITY:
            record = GeneratedCommunity(name=label, code=code, area_id=area_id, geo_polygon=boundary)
        else:
            record = GeneratedArea(name=label, code=code, geo_polygon=boundary)

        return AggregatedRegion(
            record=record,
            members=len(members),
            fold=fold,
            area_label=area_label,
            area_resolved=area_resolved,
        )

    def run(self, groups: dict[str, list[ZipcodeCommunityAssignment]]) -> list[AggregatedRegion]:
        return [self.build(label, members) for label, members in groups.items()]
